"""
Delivery allocation.

A delivery line delivers part (or all) of one order line; the link is a
DeliveryAllocation. The quantity still open on an order line is its quantity
minus every active allocation, so editing a delivery measures against the
allocations of the *other* deliveries only.
"""
import logging
from collections import defaultdict

from django.db import transaction

from mbs.core.exceptions import NotFound, ValidationFailed
from mbs.customers.models import Customer
from mbs.orders.models import Order, OrderDetail
from mbs.orders.services import refresh_order_status
from .models import Delivery, DeliveryDetail, DeliveryAllocation

logger = logging.getLogger(__name__)


def get_order_lines_for_delivery(customer, delivery=None):
    """
    Open order lines of ``customer`` as plain dicts.

    ``remaining_quantity`` excludes what ``delivery`` itself allocated and
    ``current_allocation`` is that allocation (0 for a new delivery). Lines
    with nothing left to deliver are omitted.
    """
    lines = list(
        OrderDetail.objects.active()
        .filter(order__customer=customer, order__is_deleted=False)
        .select_related('order')
        .order_by('order__order_date', 'order_id', 'id')
    )

    elsewhere = defaultdict(int)
    current = defaultdict(int)
    allocations = DeliveryAllocation.objects.active().filter(
        order_detail__in=[line.id for line in lines],
    ).values('order_detail_id', 'delivery_detail__delivery_id', 'allocated_quantity')
    for allocation in allocations:
        if delivery is not None and allocation['delivery_detail__delivery_id'] == delivery.id:
            current[allocation['order_detail_id']] += allocation['allocated_quantity']
        else:
            elsewhere[allocation['order_detail_id']] += allocation['allocated_quantity']

    rows = []
    for line in lines:
        remaining = line.quantity - elsewhere[line.id]
        if remaining <= 0:
            continue
        rows.append({
            'order_detail_id': line.id,
            'order_id': line.order_id,
            'order_date': line.order.order_date,
            'product_name': line.product_name,
            'description': line.description,
            'unit_price': line.unit_price,
            'quantity': line.quantity,
            'remaining_quantity': remaining,
            'current_allocation': current[line.id],
        })
    return rows


def get_store_delivery(store, pk):
    delivery = Delivery.objects.active().select_related('customer').filter(pk=pk, customer__store=store).first()
    if delivery is None:
        raise NotFound('Delivery not found or access denied')
    return delivery


def _check_allocation(line, quantity):
    if line is None:
        return
    if quantity > line['remaining_quantity']:
        raise ValidationFailed(
            f"Order line {line['order_detail_id']}: only {line['remaining_quantity']} left to deliver"
        )


def _add_delivery_line(delivery, order_detail, allocation):
    detail = DeliveryDetail.objects.create(
        id=delivery.next_detail_id(),
        delivery=delivery,
        product_name=allocation.get('product_name') or order_detail.product_name or order_detail.description,
        unit_price=allocation.get('unit_price', order_detail.unit_price),
        quantity=allocation['quantity'],
    )
    DeliveryAllocation.objects.create(
        order_detail=order_detail,
        delivery_detail=detail,
        allocated_quantity=allocation['quantity'],
    )
    return detail


def _refresh_orders(order_ids):
    for order in Order.objects.filter(pk__in=set(order_ids)):
        refresh_order_status(order)


def _check_unique_lines(allocations):
    seen = set()
    for allocation in allocations:
        if allocation['order_detail'] in seen:
            raise ValidationFailed(f"Order line {allocation['order_detail']} is listed more than once")
        seen.add(allocation['order_detail'])


def create_delivery(store, customer, delivery_date, allocations, note='', user=None):
    """Create a delivery with one line per allocated order line"""
    customer = Customer.objects.active().filter(pk=customer, store=store).first()
    if customer is None:
        raise NotFound('Customer not found or access denied')

    allocations = [allocation for allocation in allocations if allocation['quantity'] > 0]
    if not allocations:
        raise ValidationFailed('Select at least one item to deliver')
    _check_unique_lines(allocations)

    open_lines = {row['order_detail_id']: row for row in get_order_lines_for_delivery(customer)}
    for allocation in allocations:
        line = open_lines.get(allocation['order_detail'])
        if line is None:
            raise ValidationFailed(f"Order line {allocation['order_detail']} has nothing left to deliver for this customer")
        _check_allocation(line, allocation['quantity'])

    order_details = OrderDetail.objects.in_bulk([allocation['order_detail'] for allocation in allocations])
    with transaction.atomic():
        delivery = Delivery.objects.create(
            id=Delivery.next_id(),
            customer=customer,
            delivery_date=delivery_date,
            note=note or '',
            created_by=user,
        )
        for allocation in allocations:
            _add_delivery_line(delivery, order_details[allocation['order_detail']], allocation)
        delivery.recalculate_totals()
        _refresh_orders(detail.order_id for detail in order_details.values())

    logger.info(
        f"Delivery {delivery.id} created for customer {customer.id}: "
        f"{delivery.total_quantity} item(s), total {delivery.total_amount}"
    )
    return delivery


def update_delivery_allocations(delivery, allocations):
    """
    Apply allocation changes to an existing delivery.

    Quantity 0 removes an existing allocation together with its delivery line,
    a positive quantity updates it (or adds a line for a newly chosen order
    line). Totals are recalculated afterwards.
    """
    _check_unique_lines(allocations)
    open_lines = {row['order_detail_id']: row for row in get_order_lines_for_delivery(delivery.customer, delivery)}
    existing = {
        allocation.order_detail_id: allocation
        for allocation in DeliveryAllocation.objects.active()
        .filter(delivery_detail__delivery=delivery)
        .select_related('delivery_detail', 'order_detail')
    }

    touched_orders = {allocation.order_detail.order_id for allocation in existing.values()}
    with transaction.atomic():
        for allocation in allocations:
            order_detail_id = allocation['order_detail']
            quantity = allocation['quantity']
            current = existing.get(order_detail_id)

            if current is not None:
                detail = current.delivery_detail
                if quantity == 0:
                    current.soft_delete()
                    detail.soft_delete()
                    continue
                _check_allocation(open_lines.get(order_detail_id), quantity)
                current.allocated_quantity = quantity
                current.save()
                detail.quantity = quantity
                if 'unit_price' in allocation:
                    detail.unit_price = allocation['unit_price']
                if allocation.get('product_name'):
                    detail.product_name = allocation['product_name']
                detail.save()
            elif quantity > 0:
                line = open_lines.get(order_detail_id)
                if line is None:
                    raise ValidationFailed(f"Order line {order_detail_id} has nothing left to deliver for this customer")
                _check_allocation(line, quantity)
                order_detail = OrderDetail.objects.get(pk=order_detail_id)
                _add_delivery_line(delivery, order_detail, allocation)
                touched_orders.add(order_detail.order_id)

        delivery.recalculate_totals()
        _refresh_orders(touched_orders)

    logger.info(f"Delivery {delivery.id} allocations updated: {delivery.total_quantity} item(s), total {delivery.total_amount}")
    return delivery


def update_delivery(delivery, data, allocations=None):
    """Header changes plus, when given, allocation changes"""
    with transaction.atomic():
        for name in ('delivery_date', 'note'):
            if name in data:
                setattr(delivery, name, data[name])
        delivery.save()
        if allocations is not None:
            update_delivery_allocations(delivery, allocations)
    return delivery


def delete_delivery(delivery):
    """Soft-delete the delivery, its lines and their allocations"""
    with transaction.atomic():
        order_ids = set()
        for detail in delivery.details.active():
            for allocation in detail.allocations.active().select_related('order_detail'):
                order_ids.add(allocation.order_detail.order_id)
                allocation.soft_delete()
            detail.soft_delete()
        delivery.soft_delete()
        _refresh_orders(order_ids)
    logger.info(f"Delivery {delivery.id} deleted")
