from django.urls import path
from .views import statistics_list, statistics_recalculate, statistics_export

urlpatterns = [
    path('statistics/', statistics_list, name='statistics-list'),
    path('statistics/recalculate/', statistics_recalculate, name='statistics-recalculate'),
    path('statistics/export/', statistics_export, name='statistics-export'),
]
