from django.urls import path
from core import views

urlpatterns = [
    path('api/rectify/', views.rectify, name='rectify'),
]
