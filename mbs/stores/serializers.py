from rest_framework import serializers
from .models import Store


class StoreSerializer(serializers.ModelSerializer):
    name = serializers.CharField(
        max_length=200,
        error_messages={'required': 'Store name is required', 'blank': 'Store name is required'},
    )

    class Meta:
        model = Store
        fields = ['id', 'name', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('Store name is required')
        queryset = Store.objects.filter(name=value)
        if self.instance is not None:
            queryset = queryset.exclude(pk=self.instance.pk)
        if queryset.exists():
            raise serializers.ValidationError('A store with this name already exists')
        return value


class StoreSelectSerializer(serializers.Serializer):
    store = serializers.IntegerField(error_messages={'required': 'Please select a store'})
