import django_filters

from .models import Order


class OrderFilter(django_filters.FilterSet):
    """Order list filters"""
    status = django_filters.ChoiceFilter(choices=Order.STATUS_CHOICES)
    customer = django_filters.CharFilter(field_name='customer_id')
    date_from = django_filters.DateFilter(field_name='order_date', lookup_expr='gte')
    date_to = django_filters.DateFilter(field_name='order_date', lookup_expr='lte')

    class Meta:
        model = Order
        fields = ['status', 'customer', 'date_from', 'date_to']
