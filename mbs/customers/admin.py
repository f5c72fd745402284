from django.contrib import admin
from .models import Customer


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ['id', 'name', 'store', 'contact_person', 'phone', 'is_deleted', 'updated_at']
    list_filter = ['store', 'is_deleted']
    search_fields = ['id', 'name', 'contact_person', 'phone', 'address']
    ordering = ['id']
    readonly_fields = ['created_at', 'updated_at', 'deleted_at']
