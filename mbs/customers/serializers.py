from rest_framework import serializers

from mbs.reports.models import Statistics
from mbs.reports.serializers import StatisticsSerializer
from .models import Customer


class CustomerRowSerializer(serializers.ModelSerializer):
    """Row of the customer table"""
    customer_name = serializers.CharField(source='name', read_only=True)
    manager_name = serializers.SerializerMethodField()
    store_name = serializers.CharField(source='store.name', read_only=True)

    class Meta:
        model = Customer
        fields = ['id', 'customer_name', 'manager_name', 'store_name']

    def get_manager_name(self, obj):
        return obj.contact_person or ''


class CustomerSerializer(serializers.ModelSerializer):
    store_name = serializers.CharField(source='store.name', read_only=True)
    name = serializers.CharField(
        max_length=100,
        error_messages={'required': 'Customer name is required', 'blank': 'Customer name is required'},
    )

    class Meta:
        model = Customer
        fields = [
            'id', 'store', 'store_name', 'name', 'contact_person', 'address', 'phone',
            'delivery_condition', 'note', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'store', 'created_at', 'updated_at']


class CustomerDetailSerializer(CustomerSerializer):
    statistics = serializers.SerializerMethodField()

    class Meta(CustomerSerializer.Meta):
        fields = CustomerSerializer.Meta.fields + ['statistics']

    def get_statistics(self, obj):
        statistics = Statistics.objects.active().filter(customer=obj).first()
        return StatisticsSerializer(statistics).data if statistics else None
