from django.urls import path
from .views import (
    customer_list_create, customer_all, customer_import, customer_export, customer_detail,
)

urlpatterns = [
    path('customers/', customer_list_create, name='customer-list-create'),
    path('customers/all/', customer_all, name='customer-all'),
    path('customers/import/', customer_import, name='customer-import'),
    path('customers/export/', customer_export, name='customer-export'),
    path('customers/<str:pk>/', customer_detail, name='customer-detail'),
]
