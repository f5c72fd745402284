from django.contrib import admin
from .models import Statistics


@admin.register(Statistics)
class StatisticsAdmin(admin.ModelAdmin):
    list_display = ['customer', 'average_lead_time', 'total_sales', 'is_deleted', 'updated_at']
    list_filter = ['customer__store', 'is_deleted']
    search_fields = ['customer__id', 'customer__name']
    readonly_fields = ['created_at', 'updated_at', 'deleted_at']
