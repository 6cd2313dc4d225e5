"""
API routes for dashboards, mounted at /api/v1/dashboards/.
"""

from django.urls import path
from . import views

urlpatterns = [
    path('', views.dashboard_api, name='dashboard'),
    path('dismiss/', views.dismiss_api, name='dashboard-dismiss'),
]
