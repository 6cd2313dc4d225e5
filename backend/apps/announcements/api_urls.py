"""
API routes for announcements, mounted at /api/v1/announcements/.
"""

from django.urls import path
from . import views

urlpatterns = [
    path('', views.announcements_api, name='announcements'),
    path('notifications/', views.notifications_api, name='notifications'),
]
