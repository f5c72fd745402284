from decimal import Decimal

from django.db import models

from mbs.core.models import SoftDeleteModel
from mbs.customers.models import Customer


class Statistics(SoftDeleteModel):
    """Per-customer sales figures, rebuilt by the recalculation job"""
    customer = models.OneToOneField(Customer, on_delete=models.CASCADE, related_name='statistics')
    average_lead_time = models.DecimalField(max_digits=8, decimal_places=2, default=Decimal('0.00'))
    total_sales = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Statistics for {self.customer_id}"

    class Meta:
        db_table = 'statistics'
        verbose_name_plural = 'statistics'
        ordering = ['customer_id']
