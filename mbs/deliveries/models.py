from decimal import Decimal

from django.db import models

from mbs.core.ids import next_sequential_id, next_detail_id
from mbs.core.models import SoftDeleteModel, User
from mbs.customers.models import Customer
from mbs.orders.models import OrderDetail


class Delivery(SoftDeleteModel):
    """Delivery to a customer, filled from one or more order lines"""
    ID_PREFIX = 'D'
    ID_WIDTH = 7

    id = models.CharField(max_length=20, primary_key=True)
    customer = models.ForeignKey(Customer, on_delete=models.PROTECT, related_name='deliveries')
    delivery_date = models.DateField()
    note = models.TextField(blank=True, default='')
    total_amount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    total_quantity = models.PositiveIntegerField(default=0)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='deliveries')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.id

    @classmethod
    def next_id(cls):
        return next_sequential_id(cls.objects.all(), cls.ID_PREFIX, cls.ID_WIDTH)

    def next_detail_id(self):
        return next_detail_id(DeliveryDetail.objects.all(), self.id)

    def recalculate_totals(self):
        """Totals over active details"""
        details = list(self.details.filter(is_deleted=False))
        self.total_amount = sum((detail.get_line_total() for detail in details), Decimal('0'))
        self.total_quantity = sum(detail.quantity for detail in details)
        self.save(update_fields=['total_amount', 'total_quantity', 'updated_at'])

    class Meta:
        db_table = 'deliveries'
        ordering = ['id']
        indexes = [
            models.Index(fields=['delivery_date'], name='idx_delivery_date'),
        ]


class DeliveryDetail(SoftDeleteModel):
    """Delivered line"""
    id = models.CharField(max_length=30, primary_key=True)
    delivery = models.ForeignKey(Delivery, on_delete=models.CASCADE, related_name='details')
    product_name = models.CharField(max_length=200, blank=True, default='')
    unit_price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    quantity = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.id} {self.product_name}"

    def get_line_total(self):
        return self.unit_price * self.quantity

    class Meta:
        db_table = 'delivery_details'
        ordering = ['id']


class DeliveryAllocation(SoftDeleteModel):
    """Quantity of an order line delivered by a delivery line"""
    order_detail = models.ForeignKey(OrderDetail, on_delete=models.PROTECT, related_name='allocations')
    delivery_detail = models.ForeignKey(DeliveryDetail, on_delete=models.CASCADE, related_name='allocations')
    allocated_quantity = models.PositiveIntegerField()
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.order_detail_id} -> {self.delivery_detail_id} ({self.allocated_quantity})"

    class Meta:
        db_table = 'delivery_allocations'
        constraints = [
            models.UniqueConstraint(fields=['order_detail', 'delivery_detail'], name='uniq_allocation_order_delivery_detail'),
        ]
