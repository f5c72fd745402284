"""
URL configuration for the mbs project.

Every app is mounted under ``api/v1/``.
"""
from django.contrib import admin
from django.urls import path, include

admin.site.site_header = "MBS Management Admin Panel"
admin.site.site_title = "MBS Management Admin Portal"
admin.site.index_title = "Customers, orders and deliveries"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include('mbs.core.urls')),
    path('api/v1/', include('mbs.stores.urls')),
    path('api/v1/', include('mbs.customers.urls')),
    path('api/v1/', include('mbs.orders.urls')),
    path('api/v1/', include('mbs.deliveries.urls')),
    path('api/v1/', include('mbs.reports.urls')),
]
