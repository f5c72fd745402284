from rest_framework import serializers

from .models import Statistics


class StatisticsSerializer(serializers.ModelSerializer):
    customer_id = serializers.CharField(source='customer.id', read_only=True)
    customer_name = serializers.CharField(source='customer.name', read_only=True)

    class Meta:
        model = Statistics
        fields = ['customer_id', 'customer_name', 'average_lead_time', 'total_sales', 'updated_at']
