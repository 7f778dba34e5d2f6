from django.urls import path
from .views import client_status

urlpatterns = [
    path('status/', client_status, name='client-status'),
]
