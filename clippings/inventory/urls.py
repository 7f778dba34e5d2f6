from django.urls import path
from .views import inventory_update, inventory_batch_import

urlpatterns = [
    path('inventory/update/', inventory_update, name='inventory-update'),
    path('inventory/batch/', inventory_batch_import, name='inventory-batch-import'),
]
