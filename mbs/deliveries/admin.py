from django.contrib import admin
from .models import Delivery, DeliveryDetail, DeliveryAllocation


class DeliveryDetailInline(admin.TabularInline):
    model = DeliveryDetail
    extra = 0
    fields = ['id', 'product_name', 'unit_price', 'quantity', 'is_deleted']


@admin.register(Delivery)
class DeliveryAdmin(admin.ModelAdmin):
    list_display = ['id', 'customer', 'delivery_date', 'total_quantity', 'get_total', 'is_deleted']
    list_filter = ['delivery_date', 'is_deleted']
    search_fields = ['id', 'customer__name', 'note']
    ordering = ['-delivery_date', '-id']
    inlines = [DeliveryDetailInline]
    readonly_fields = ['total_amount', 'total_quantity', 'created_at', 'updated_at', 'deleted_at']

    def get_total(self, obj):
        return f"¥{obj.total_amount:,.0f}"
    get_total.short_description = 'Total'


@admin.register(DeliveryAllocation)
class DeliveryAllocationAdmin(admin.ModelAdmin):
    list_display = ['order_detail', 'delivery_detail', 'allocated_quantity', 'is_deleted', 'updated_at']
    list_filter = ['is_deleted']
    search_fields = ['order_detail__id', 'delivery_detail__id']
    raw_id_fields = ['order_detail', 'delivery_detail']
