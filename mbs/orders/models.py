from decimal import Decimal

from django.db import models
from django.db.models import Sum

from mbs.core.ids import next_sequential_id, next_detail_id
from mbs.core.models import SoftDeleteModel, User
from mbs.customers.models import Customer


class Order(SoftDeleteModel):
    """Customer order"""
    STATUS_CHOICES = [
        ('incomplete', 'Incomplete'),
        ('complete', 'Complete'),
    ]
    ID_PREFIX = 'O'
    ID_WIDTH = 7

    id = models.CharField(max_length=20, primary_key=True)
    customer = models.ForeignKey(Customer, on_delete=models.PROTECT, related_name='orders')
    order_date = models.DateField()
    note = models.TextField(blank=True, default='')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='incomplete')
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='orders')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.id

    @classmethod
    def next_id(cls):
        return next_sequential_id(cls.objects.all(), cls.ID_PREFIX, cls.ID_WIDTH)

    def next_detail_id(self):
        return next_detail_id(OrderDetail.objects.all(), self.id)

    def get_active_details(self):
        """Active lines; uses prefetched details when available"""
        return [detail for detail in self.details.all() if not detail.is_deleted]

    def get_total(self):
        """Total of all active lines"""
        return sum((detail.get_line_total() for detail in self.get_active_details()), Decimal('0'))

    def is_fully_delivered(self):
        details = list(self.details.filter(is_deleted=False))
        return bool(details) and all(detail.get_remaining_quantity() <= 0 for detail in details)

    class Meta:
        db_table = 'orders'
        ordering = ['-order_date', '-id']
        indexes = [
            models.Index(fields=['status'], name='idx_order_status'),
            models.Index(fields=['order_date'], name='idx_order_date'),
        ]


class OrderDetail(SoftDeleteModel):
    """Order line"""
    DELIVERY_STATUS_UNDELIVERED = 'undelivered'
    DELIVERY_STATUS_PARTIAL = 'partially_delivered'
    DELIVERY_STATUS_DELIVERED = 'delivered'

    id = models.CharField(max_length=30, primary_key=True)
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='details')
    product_name = models.CharField(max_length=200, blank=True, default='')
    unit_price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    quantity = models.PositiveIntegerField(default=1)
    description = models.TextField(blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.id} {self.product_name}"

    def get_line_total(self):
        return self.unit_price * self.quantity

    def get_delivered_quantity(self):
        """Quantity allocated to active deliveries"""
        return self.allocations.filter(is_deleted=False).aggregate(
            total=Sum('allocated_quantity')
        )['total'] or 0

    def get_remaining_quantity(self):
        return self.quantity - self.get_delivered_quantity()

    def get_delivery_status(self):
        delivered = self.get_delivered_quantity()
        if delivered <= 0:
            return self.DELIVERY_STATUS_UNDELIVERED
        if delivered < self.quantity:
            return self.DELIVERY_STATUS_PARTIAL
        return self.DELIVERY_STATUS_DELIVERED

    class Meta:
        db_table = 'order_details'
        ordering = ['id']
