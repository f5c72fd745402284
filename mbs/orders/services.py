"""
Order write operations.

Views validate the payload shape with serializers; the rules that need the
database (customer scope, delivered quantities) live here.
"""
import logging

from django.db import transaction

from mbs.core.exceptions import Conflict, NotFound, ValidationFailed
from mbs.customers.models import Customer
from .models import Order, OrderDetail

logger = logging.getLogger(__name__)

LINE_FIELDS = ('product_name', 'unit_price', 'quantity', 'description')


def get_store_customer_for_order(store, customer_id):
    customer = Customer.objects.active().filter(pk=customer_id, store=store).first()
    if customer is None:
        raise NotFound('Customer not found')
    return customer


def _create_line(order, line):
    return OrderDetail.objects.create(
        id=order.next_detail_id(),
        order=order,
        **{name: line[name] for name in LINE_FIELDS if name in line},
    )


def create_order(store, customer, order_date, details, note='', user=None):
    """Create an order and its lines; returns the order"""
    customer = get_store_customer_for_order(store, customer)
    if not details:
        raise ValidationFailed('Add at least one line item')

    with transaction.atomic():
        order = Order.objects.create(
            id=Order.next_id(),
            customer=customer,
            order_date=order_date,
            note=note or '',
            status='incomplete',
            created_by=user,
        )
        for line in details:
            _create_line(order, line)

    logger.info(f"Order {order.id} created for customer {customer.id} with {len(details)} line(s)")
    return order


def reconcile_order_lines(order, details):
    """
    Make the order's active lines match ``details``.

    Lines carrying the id of an existing line are updated, lines without an id
    are added and active lines missing from ``details`` are soft-deleted.
    Delivered quantities are protected.
    """
    if not details:
        raise ValidationFailed('Add at least one line item')

    existing = {detail.id: detail for detail in order.details.active()}
    kept = set()
    for line in details:
        line_id = line.get('id')
        if not line_id:
            _create_line(order, line)
            continue

        detail = existing.get(line_id)
        if detail is None:
            raise ValidationFailed(f'Line {line_id} does not belong to order {order.id}')
        delivered = detail.get_delivered_quantity()
        if 'quantity' in line and line['quantity'] < delivered:
            raise ValidationFailed(
                f'Line {line_id} already has {delivered} delivered; the quantity cannot be lower'
            )
        for name in LINE_FIELDS:
            if name in line:
                setattr(detail, name, line[name])
        detail.save()
        kept.add(line_id)

    for line_id, detail in existing.items():
        if line_id in kept:
            continue
        if detail.get_delivered_quantity() > 0:
            raise Conflict(f'Line {line_id} has deliveries and cannot be removed')
        detail.soft_delete()


def update_order(order, store, data, details=None):
    """Apply header changes and, when given, the new set of lines"""
    with transaction.atomic():
        if 'customer' in data and data['customer'] != order.customer_id:
            customer = get_store_customer_for_order(store, data['customer'])
            if order_has_deliveries(order):
                raise Conflict('The customer of an order with deliveries cannot be changed')
            order.customer = customer
        for name in ('order_date', 'note', 'status'):
            if name in data:
                setattr(order, name, data[name])
        order.save()

        if details is not None:
            reconcile_order_lines(order, details)
            refresh_order_status(order)

    logger.info(f"Order {order.id} updated")
    return order


def order_has_deliveries(order):
    from mbs.deliveries.models import DeliveryAllocation

    return DeliveryAllocation.objects.active().filter(order_detail__order=order).exists()


def delete_order(order):
    """Soft-delete an order and its lines"""
    if order_has_deliveries(order):
        raise Conflict('The order has deliveries and cannot be deleted')
    with transaction.atomic():
        for detail in order.details.active():
            detail.soft_delete()
        order.soft_delete()
    logger.info(f"Order {order.id} deleted")


def refresh_order_status(order):
    """``complete`` once every active line is fully delivered"""
    status = 'complete' if order.is_fully_delivered() else 'incomplete'
    if order.status != status:
        order.status = status
        order.save(update_fields=['status', 'updated_at'])
        logger.info(f"Order {order.id} is now {status}")
    return status
