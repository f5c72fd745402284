from django.contrib import admin
from .models import Order, OrderDetail


class OrderDetailInline(admin.TabularInline):
    model = OrderDetail
    extra = 0
    fields = ['id', 'product_name', 'unit_price', 'quantity', 'description', 'is_deleted']


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ['id', 'customer', 'order_date', 'status', 'get_total', 'is_deleted', 'created_at']
    list_filter = ['status', 'order_date', 'is_deleted']
    search_fields = ['id', 'customer__name', 'note']
    ordering = ['-order_date', '-id']
    inlines = [OrderDetailInline]
    readonly_fields = ['created_at', 'updated_at', 'deleted_at']

    def get_total(self, obj):
        return f"¥{obj.get_total():,.0f}"
    get_total.short_description = 'Total'
