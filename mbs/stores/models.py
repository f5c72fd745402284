from django.db import models


class Store(models.Model):
    """Business unit that scopes customers, orders and deliveries"""
    name = models.CharField(max_length=200, unique=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'stores'
        ordering = ['name']
