import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from mbs.core.exceptions import NotFound
from mbs.core.listing import TableQuery
from mbs.core.store_context import store_required
from mbs.core.utils import create_audit_log
from mbs.customers.models import Customer
from .models import Delivery
from .serializers import (
    DeliveryWriteSerializer, DeliveryUpdateSerializer, DeliveryRowSerializer,
    DeliverySerializer, OpenOrderLineSerializer,
)
from .services import (
    get_order_lines_for_delivery, get_store_delivery, create_delivery, update_delivery, delete_delivery,
)

logger = logging.getLogger('mbs.deliveries')

DELIVERY_SEARCH_FIELDS = ('id', 'delivery_date', 'customer_name', 'note')
DELIVERY_SORT_FIELDS = DELIVERY_SEARCH_FIELDS + ('total_amount', 'total_quantity')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
@store_required
def delivery_list_create(request):
    """Delivery table of the selected store, or create a delivery from order lines"""
    if request.method == 'GET':
        deliveries = Delivery.objects.active().filter(
            customer__store=request.store,
        ).select_related('customer').order_by('id')
        rows = [dict(row) for row in DeliveryRowSerializer(deliveries, many=True).data]
        query = TableQuery.from_request(
            request, DELIVERY_SEARCH_FIELDS, DELIVERY_SORT_FIELDS, columns=DeliveryRowSerializer.Meta.fields,
        )
        return Response(query.to_payload(rows))
    else:  # POST
        serializer = DeliveryWriteSerializer(data=request.data)
        if not serializer.is_valid():
            logger.warning(f"Delivery creation validation failed: {serializer.errors}")
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        data = serializer.validated_data
        delivery = create_delivery(
            request.store,
            customer=data['customer'],
            delivery_date=data['delivery_date'],
            allocations=data['allocations'],
            note=data.get('note', ''),
            user=request.user,
        )
        create_audit_log(
            request=request,
            action='create',
            model_name='Delivery',
            object_id=delivery.id,
            object_name=delivery.customer.name,
            changes={'total_quantity': delivery.total_quantity, 'total_amount': str(delivery.total_amount)},
        )
        return Response(DeliverySerializer(delivery).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
@store_required
def delivery_detail(request, pk):
    """Retrieve, update or delete a delivery"""
    delivery = get_store_delivery(request.store, pk)

    if request.method == 'GET':
        return Response(DeliverySerializer(delivery).data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = DeliveryUpdateSerializer(data=request.data)
        if not serializer.is_valid():
            logger.warning(f"Delivery {pk} update validation failed: {serializer.errors}")
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        data = dict(serializer.validated_data)
        allocations = data.pop('allocations', None)
        update_delivery(delivery, data, allocations=allocations)
        create_audit_log(
            request=request,
            action='allocation_update' if allocations is not None else 'update',
            model_name='Delivery',
            object_id=delivery.id,
            object_name=delivery.customer.name,
            changes={'fields': sorted(data.keys()), 'total_quantity': delivery.total_quantity},
        )
        return Response(DeliverySerializer(get_store_delivery(request.store, pk)).data)
    else:  # DELETE
        delete_delivery(delivery)
        create_audit_log(
            request=request,
            action='delete',
            model_name='Delivery',
            object_id=delivery.id,
            object_name=delivery.customer.name,
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
@store_required
def delivery_allocations(request, pk):
    """Order lines of the delivery's customer with what this delivery allocates"""
    delivery = get_store_delivery(request.store, pk)
    rows = get_order_lines_for_delivery(delivery.customer, delivery)
    return Response(OpenOrderLineSerializer(rows, many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
@store_required
def customer_undelivered_lines(request, pk):
    """Order lines of a customer that still have something to deliver"""
    customer = Customer.objects.active().filter(pk=pk, store=request.store).first()
    if customer is None:
        raise NotFound('Customer not found or access denied')
    rows = get_order_lines_for_delivery(customer)
    return Response(OpenOrderLineSerializer(rows, many=True).data)
