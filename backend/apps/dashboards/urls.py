"""
Page routes for the role dashboards.
"""

from django.urls import path
from . import views

app_name = 'dashboards'

urlpatterns = [
    path('researcher/dashboard', views.researcher_dashboard_page, name='researcher'),
    path('reviewer/dashboard', views.reviewer_dashboard_page, name='reviewer'),
    path('staff/dashboard', views.staff_dashboard_page, name='staff'),
]
