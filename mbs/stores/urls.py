from django.urls import path
from .views import store_list_create, store_detail, store_current, store_select

urlpatterns = [
    path('stores/', store_list_create, name='store-list-create'),
    path('stores/current/', store_current, name='store-current'),
    path('stores/select/', store_select, name='store-select'),
    path('stores/<int:pk>/', store_detail, name='store-detail'),
]
