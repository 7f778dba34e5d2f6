from django.urls import path
from .views import duplicate_list, duplicate_scan, duplicate_merge, duplicate_dismiss

urlpatterns = [
    path('duplicates/', duplicate_list, name='duplicate-list'),
    path('duplicates/scan/', duplicate_scan, name='duplicate-scan'),
    path('duplicates/<str:candidate_id>/merge/', duplicate_merge, name='duplicate-merge'),
    path('duplicates/<str:candidate_id>/dismiss/', duplicate_dismiss, name='duplicate-dismiss'),
]
