from decimal import Decimal

from rest_framework import serializers

from .models import Delivery, DeliveryDetail


class AllocationInputSerializer(serializers.Serializer):
    """One order line of the delivery form"""
    order_detail = serializers.CharField()
    quantity = serializers.IntegerField(min_value=0)
    unit_price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0'), required=False)
    product_name = serializers.CharField(max_length=200, required=False, allow_blank=True)


class DeliveryWriteSerializer(serializers.Serializer):
    customer = serializers.CharField(
        error_messages={'required': 'Select a customer', 'blank': 'Select a customer'},
    )
    delivery_date = serializers.DateField()
    note = serializers.CharField(required=False, allow_blank=True)
    allocations = AllocationInputSerializer(many=True)


class DeliveryUpdateSerializer(serializers.Serializer):
    delivery_date = serializers.DateField(required=False)
    note = serializers.CharField(required=False, allow_blank=True)
    allocations = AllocationInputSerializer(many=True, required=False)


class DeliveryRowSerializer(serializers.ModelSerializer):
    """Row of the delivery table"""
    delivery_date = serializers.DateField(format='%Y/%m/%d', read_only=True)
    customer_id = serializers.CharField(source='customer.id', read_only=True)
    customer_name = serializers.CharField(source='customer.name', read_only=True)

    class Meta:
        model = Delivery
        fields = ['id', 'delivery_date', 'customer_id', 'customer_name', 'note', 'total_amount', 'total_quantity']


class DeliveryDetailSerializer(serializers.ModelSerializer):
    line_total = serializers.SerializerMethodField()
    order_detail = serializers.SerializerMethodField()
    order_id = serializers.SerializerMethodField()

    class Meta:
        model = DeliveryDetail
        fields = ['id', 'product_name', 'unit_price', 'quantity', 'line_total', 'order_detail', 'order_id']

    def _allocation(self, obj):
        return obj.allocations.filter(is_deleted=False).select_related('order_detail').first()

    def get_line_total(self, obj):
        return obj.get_line_total()

    def get_order_detail(self, obj):
        allocation = self._allocation(obj)
        return allocation.order_detail_id if allocation else None

    def get_order_id(self, obj):
        allocation = self._allocation(obj)
        return allocation.order_detail.order_id if allocation else None


class DeliverySerializer(serializers.ModelSerializer):
    customer_name = serializers.CharField(source='customer.name', read_only=True)
    details = serializers.SerializerMethodField()

    class Meta:
        model = Delivery
        fields = [
            'id', 'customer', 'customer_name', 'delivery_date', 'note',
            'total_amount', 'total_quantity', 'created_at', 'updated_at', 'details',
        ]

    def get_details(self, obj):
        details = obj.details.filter(is_deleted=False).order_by('id')
        return DeliveryDetailSerializer(details, many=True).data


class OpenOrderLineSerializer(serializers.Serializer):
    """Order line offered for delivery"""
    order_detail_id = serializers.CharField()
    order_id = serializers.CharField()
    order_date = serializers.DateField()
    product_name = serializers.CharField()
    description = serializers.CharField()
    unit_price = serializers.DecimalField(max_digits=12, decimal_places=2)
    quantity = serializers.IntegerField()
    remaining_quantity = serializers.IntegerField()
    current_allocation = serializers.IntegerField()
