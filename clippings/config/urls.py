"""
URL configuration for the Clippings API.

All operations sit under /api/v1/, one include per app.
"""
from django.urls import path, include

urlpatterns = [
    path('api/v1/', include('clippings.core.urls')),
    path('api/v1/', include('clippings.search.urls')),
    path('api/v1/', include('clippings.inventory.urls')),
    path('api/v1/', include('clippings.duplicates.urls')),
]
