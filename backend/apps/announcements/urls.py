"""
Page routes for announcements.
"""

from django.urls import path
from . import views

app_name = 'announcements'

urlpatterns = [
    path('staff/announcements/new', views.create_announcement_page, name='create'),
    path('announcements', views.announcements_page, name='list'),
]
