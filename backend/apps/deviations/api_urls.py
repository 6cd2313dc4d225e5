"""
API routes for deviation reports, mounted at /api/v1/deviations/.
"""

from django.urls import path
from . import views

urlpatterns = [
    path('', views.deviation_collection_api, name='deviation-collection'),
    path('mine/', views.my_submissions_api, name='deviation-mine'),
    path('resolutions/', views.resolutions_api, name='deviation-resolutions'),
    path('changes/', views.changes_api, name='deviation-changes'),
    path('<int:report_id>/', views.deviation_detail_api, name='deviation-detail'),
    path('<int:report_id>/assess/', views.assess_api, name='deviation-assess'),
    path('<int:report_id>/corrective-action/', views.corrective_action_api, name='deviation-corrective-action'),
    path('<int:report_id>/resolution/', views.resolution_api, name='deviation-resolution'),
    path('<int:report_id>/acknowledge/', views.acknowledge_api, name='deviation-acknowledge'),
]
