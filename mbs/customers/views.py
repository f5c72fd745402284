import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.conf import settings
from django.db import DatabaseError, transaction
from django.http import HttpResponse
from django.utils import timezone

from mbs.core.exceptions import NotFound, Conflict
from mbs.core.listing import TableQuery
from mbs.core.model_cache import get_cached_customer_rows, cache_customer_rows
from mbs.core.store_context import store_required
from mbs.core.utils import create_audit_log
from mbs.deliveries.services import get_order_lines_for_delivery
from .csv_import import import_customers_csv, export_customers_csv
from .models import Customer
from .serializers import CustomerRowSerializer, CustomerSerializer, CustomerDetailSerializer

logger = logging.getLogger('mbs.customers')

CUSTOMER_SEARCH_FIELDS = ('id', 'customer_name', 'manager_name')


def get_store_customer(store, pk):
    """Active customer ``pk`` of ``store`` or NotFound"""
    customer = Customer.objects.active().select_related('store').filter(pk=pk, store=store).first()
    if customer is None:
        raise NotFound('Customer not found')
    return customer


def get_customer_rows(store):
    rows = get_cached_customer_rows(store.id)
    if rows is None:
        customers = Customer.objects.active().filter(store=store).select_related('store').order_by('id')
        rows = [dict(row) for row in CustomerRowSerializer(customers, many=True).data]
        cache_customer_rows(store.id, rows)
    return rows


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
@store_required
def customer_list_create(request):
    """Customer table of the selected store, or create a customer"""
    if request.method == 'GET':
        query = TableQuery.from_request(
            request, CUSTOMER_SEARCH_FIELDS, columns=CustomerRowSerializer.Meta.fields,
        )
        return Response(query.to_payload(get_customer_rows(request.store)))
    else:
        serializer = CustomerSerializer(data=request.data)
        if serializer.is_valid():
            with transaction.atomic():
                customer = serializer.save(id=Customer.next_id(), store=request.store)
            logger.info(f"Customer {customer.id} created in store '{request.store.name}' by {request.user.username}")
            create_audit_log(
                request=request,
                action='create',
                model_name='Customer',
                object_id=customer.id,
                object_name=customer.name,
            )
            return Response(CustomerSerializer(customer).data, status=status.HTTP_201_CREATED)
        logger.warning(f"Customer creation validation failed: {serializer.errors}")
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
@store_required
def customer_all(request):
    """Every customer of the selected store with all fields, ordered by name"""
    customers = Customer.objects.active().filter(store=request.store).select_related('store').order_by('name', 'id')
    serializer = CustomerSerializer(customers, many=True)
    return Response(serializer.data)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
@store_required
def customer_detail(request, pk):
    """Retrieve, update or delete a customer"""
    customer = get_store_customer(request.store, pk)

    if request.method == 'GET':
        serializer = CustomerDetailSerializer(customer)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = CustomerSerializer(customer, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            logger.info(f"Customer {pk} updated by {request.user.username}")
            create_audit_log(
                request=request,
                action='update',
                model_name='Customer',
                object_id=customer.id,
                object_name=customer.name,
                changes={'fields': sorted(serializer.validated_data.keys())},
            )
            return Response(serializer.data)
        logger.warning(f"Customer update validation failed: {serializer.errors}")
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        if get_order_lines_for_delivery(customer):
            raise Conflict('The customer still has undelivered orders and cannot be deleted')
        customer.soft_delete()
        logger.info(f"Customer {pk} ({customer.name}) deleted by {request.user.username}")
        create_audit_log(
            request=request,
            action='delete',
            model_name='Customer',
            object_id=customer.id,
            object_name=customer.name,
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
@store_required
def customer_import(request):
    """Import customers of the selected store from a Shift_JIS CSV upload"""
    upload = request.FILES.get('file')
    if upload is None:
        return Response(
            {'status': 'error', 'error': 'Choose a CSV file to import'},
            status=status.HTTP_400_BAD_REQUEST,
        )

    logger.info(f"User {request.user.username} importing '{upload.name}' into store '{request.store.name}'")
    try:
        result = import_customers_csv(request.store, upload.read())
    except DatabaseError as e:
        logger.error(f"Customer import failed for store '{request.store.name}': {str(e)}", exc_info=True)
        return Response(
            {'status': 'error', 'error': 'Failed to import customer data'},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    create_audit_log(
        request=request,
        action='import',
        model_name='Customer',
        object_id=request.store.id,
        object_name=upload.name,
        changes={
            'created': result.created_count,
            'updated': result.updated_count,
            'skipped': result.skipped_count,
        },
    )
    return Response({
        'status': 'success',
        'created_count': result.created_count,
        'updated_count': result.updated_count,
        'skipped_count': result.skipped_count,
        'warnings': result.warnings,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
@store_required
def customer_export(request):
    """Download the selected store's customers in the import format"""
    customers = Customer.objects.active().filter(store=request.store).select_related('store').order_by('id')
    content = export_customers_csv(customers)
    filename = f"customers_{request.store.id}_{timezone.localtime():%Y%m%d_%H%M%S}.csv"
    response = HttpResponse(content, content_type=f'text/csv; charset={settings.MBS_CSV_ENCODING}')
    response['Content-Disposition'] = f'attachment; filename="{filename}"'
    create_audit_log(
        request=request,
        action='export',
        model_name='Customer',
        object_id=request.store.id,
        object_name=filename,
    )
    return response
