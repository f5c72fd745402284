from django.urls import path
from .views import delivery_list_create, delivery_detail, delivery_allocations, customer_undelivered_lines

urlpatterns = [
    path('deliveries/', delivery_list_create, name='delivery-list-create'),
    path('deliveries/<str:pk>/', delivery_detail, name='delivery-detail'),
    path('deliveries/<str:pk>/allocations/', delivery_allocations, name='delivery-allocations'),
    path('customers/<str:pk>/undelivered/', customer_undelivered_lines, name='customer-undelivered-lines'),
]
