import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from mbs.core.exceptions import NotFound
from mbs.core.listing import TableQuery
from mbs.core.store_context import store_required
from mbs.core.utils import create_audit_log
from .filters import OrderFilter
from .models import Order
from .serializers import OrderLineInputSerializer, OrderWriteSerializer, OrderRowSerializer, OrderSerializer
from .services import create_order, update_order, delete_order

logger = logging.getLogger('mbs.orders')

ORDER_SEARCH_FIELDS = ('id', 'order_date', 'customer_name', 'note')
ORDER_SORT_FIELDS = ORDER_SEARCH_FIELDS + ('status', 'total_amount')


def get_store_order(store, pk):
    """Active order ``pk`` whose customer belongs to ``store``, or NotFound"""
    order = Order.objects.active().select_related('customer').filter(pk=pk, customer__store=store).first()
    if order is None:
        raise NotFound('Order not found')
    return order


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
@store_required
def order_list_create(request):
    """Order table of the selected store, or create an order with its lines"""
    if request.method == 'GET':
        queryset = Order.objects.active().filter(
            customer__store=request.store,
            customer__is_deleted=False,
        ).select_related('customer').prefetch_related('details').order_by('-order_date', '-id')

        filterset = OrderFilter(request.query_params, queryset=queryset)
        if not filterset.is_valid():
            return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)

        rows = [dict(row) for row in OrderRowSerializer(filterset.qs, many=True).data]
        query = TableQuery.from_request(
            request, ORDER_SEARCH_FIELDS, ORDER_SORT_FIELDS, columns=OrderRowSerializer.Meta.fields,
        )
        return Response(query.to_payload(rows))
    else:  # POST
        serializer = OrderWriteSerializer(data=request.data)
        if not serializer.is_valid():
            logger.warning(f"Order creation validation failed: {serializer.errors}")
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        data = serializer.validated_data
        order = create_order(
            request.store,
            customer=data['customer'],
            order_date=data['order_date'],
            details=data['details'],
            note=data.get('note', ''),
            user=request.user,
        )
        create_audit_log(
            request=request,
            action='create',
            model_name='Order',
            object_id=order.id,
            object_name=order.customer.name,
            changes={'lines': len(data['details']), 'total': str(order.get_total())},
        )
        return Response(OrderSerializer(order).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
@store_required
def order_detail(request, pk):
    """Retrieve, update or delete an order"""
    order = get_store_order(request.store, pk)

    if request.method == 'GET':
        if order.customer.is_deleted:
            return Response(
                {'error': 'The order cannot be shown because its customer has been deleted'},
                status=status.HTTP_404_NOT_FOUND,
            )
        return Response(OrderSerializer(order).data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = OrderWriteSerializer(data=request.data, partial=request.method == 'PATCH')
        if not serializer.is_valid():
            logger.warning(f"Order {pk} update validation failed: {serializer.errors}")
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        data = dict(serializer.validated_data)
        details = data.pop('details', None)
        if details is not None and serializer.partial:
            # Submitted lines are complete lines even on PATCH
            lines = OrderLineInputSerializer(data=request.data['details'], many=True)
            if not lines.is_valid():
                logger.warning(f"Order {pk} line validation failed: {lines.errors}")
                return Response({'details': lines.errors}, status=status.HTTP_400_BAD_REQUEST)
            details = lines.validated_data
        update_order(order, request.store, data, details=details)
        create_audit_log(
            request=request,
            action='update',
            model_name='Order',
            object_id=order.id,
            object_name=order.customer.name,
            changes={'fields': sorted(data.keys()), 'lines_replaced': details is not None},
        )
        return Response(OrderSerializer(get_store_order(request.store, pk)).data)
    else:  # DELETE
        delete_order(order)
        create_audit_log(
            request=request,
            action='delete',
            model_name='Order',
            object_id=order.id,
            object_name=order.customer.name,
        )
        return Response(status=status.HTTP_204_NO_CONTENT)
