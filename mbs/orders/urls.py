from django.urls import path
from .views import order_list_create, order_detail

urlpatterns = [
    path('orders/', order_list_create, name='order-list-create'),
    path('orders/<str:pk>/', order_detail, name='order-detail'),
]
