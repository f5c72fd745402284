from django.db import models

from mbs.core.ids import next_sequential_id
from mbs.core.models import SoftDeleteModel
from mbs.stores.models import Store


class Customer(SoftDeleteModel):
    """Customer of a store"""
    ID_PREFIX = 'C-'
    ID_WIDTH = 5

    id = models.CharField(max_length=20, primary_key=True)
    store = models.ForeignKey(Store, on_delete=models.PROTECT, related_name='customers')
    name = models.CharField(max_length=100)
    contact_person = models.CharField(max_length=100, blank=True, default='')
    address = models.CharField(max_length=255, blank=True, default='')
    phone = models.CharField(max_length=30, blank=True, default='')
    delivery_condition = models.CharField(max_length=255, blank=True, default='')
    note = models.TextField(blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.id} {self.name}"

    @classmethod
    def next_id(cls):
        return next_sequential_id(cls.objects.all(), cls.ID_PREFIX, cls.ID_WIDTH)

    class Meta:
        db_table = 'customers'
        ordering = ['id']
        indexes = [
            models.Index(fields=['store', 'is_deleted'], name='idx_customer_store'),
            models.Index(fields=['name'], name='idx_customer_name'),
        ]
