from decimal import Decimal

from rest_framework import serializers

from mbs.deliveries.models import DeliveryAllocation
from .models import Order, OrderDetail


class OrderLineInputSerializer(serializers.Serializer):
    """Order line as submitted by the order form"""
    id = serializers.CharField(required=False, allow_blank=True)
    product_name = serializers.CharField(max_length=200, required=False, allow_blank=True, default='')
    unit_price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0'))
    quantity = serializers.IntegerField(min_value=1)
    description = serializers.CharField(required=False, allow_blank=True, default='')

    def validate(self, attrs):
        if not attrs.get('product_name', '').strip() and not attrs.get('description', '').strip():
            raise serializers.ValidationError('Enter a product name or a description for every line')
        return attrs


class OrderWriteSerializer(serializers.Serializer):
    customer = serializers.CharField(
        error_messages={'required': 'Select a customer', 'blank': 'Select a customer'},
    )
    order_date = serializers.DateField()
    note = serializers.CharField(required=False, allow_blank=True)
    status = serializers.ChoiceField(choices=Order.STATUS_CHOICES, required=False)
    details = OrderLineInputSerializer(
        many=True,
        error_messages={'required': 'Add at least one line item'},
    )

    def validate_details(self, value):
        if not value:
            raise serializers.ValidationError('Add at least one line item')
        return value


class OrderRowSerializer(serializers.ModelSerializer):
    """Row of the order table"""
    customer_id = serializers.CharField(source='customer.id', read_only=True)
    customer_name = serializers.CharField(source='customer.name', read_only=True)
    total_amount = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = ['id', 'order_date', 'customer_id', 'customer_name', 'note', 'status', 'total_amount']

    def get_total_amount(self, obj):
        return obj.get_total()


class LineAllocationSerializer(serializers.ModelSerializer):
    delivery_id = serializers.CharField(source='delivery_detail.delivery_id', read_only=True)
    delivery_date = serializers.DateField(source='delivery_detail.delivery.delivery_date', read_only=True)

    class Meta:
        model = DeliveryAllocation
        fields = ['delivery_id', 'delivery_date', 'allocated_quantity']


class OrderDetailSerializer(serializers.ModelSerializer):
    line_total = serializers.SerializerMethodField()
    delivered_quantity = serializers.SerializerMethodField()
    remaining_quantity = serializers.SerializerMethodField()
    delivery_status = serializers.SerializerMethodField()
    allocations = serializers.SerializerMethodField()

    class Meta:
        model = OrderDetail
        fields = [
            'id', 'product_name', 'unit_price', 'quantity', 'description', 'line_total',
            'delivered_quantity', 'remaining_quantity', 'delivery_status', 'allocations',
        ]

    def get_line_total(self, obj):
        return obj.get_line_total()

    def get_delivered_quantity(self, obj):
        return obj.get_delivered_quantity()

    def get_remaining_quantity(self, obj):
        return obj.get_remaining_quantity()

    def get_delivery_status(self, obj):
        return obj.get_delivery_status()

    def get_allocations(self, obj):
        allocations = obj.allocations.filter(is_deleted=False).select_related(
            'delivery_detail', 'delivery_detail__delivery'
        ).order_by('delivery_detail__delivery__delivery_date', 'delivery_detail_id')
        return LineAllocationSerializer(allocations, many=True).data


class OrderSerializer(serializers.ModelSerializer):
    customer_name = serializers.CharField(source='customer.name', read_only=True)
    details = serializers.SerializerMethodField()
    total = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = [
            'id', 'customer', 'customer_name', 'order_date', 'note', 'status',
            'created_at', 'updated_at', 'details', 'total',
        ]

    def get_details(self, obj):
        details = obj.details.filter(is_deleted=False).order_by('id')
        return OrderDetailSerializer(details, many=True).data

    def get_total(self, obj):
        return obj.get_total()
