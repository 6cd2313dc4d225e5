"""
Page routes for the ethics forms catalog.
"""

from django.urls import path
from . import views

app_name = 'submissions'

urlpatterns = [
    path('researcher/forms', views.forms_page, name='forms'),
]
