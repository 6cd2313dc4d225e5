"""
API routes for the ethics forms catalog, mounted at /api/v1/forms/.
"""

from django.urls import path
from . import views

urlpatterns = [
    path('', views.forms_catalog_api, name='forms-catalog'),
    path('<slug:form_id>/', views.form_detail_api, name='form-detail'),
    path('<slug:form_id>/preview/', views.form_preview_api, name='form-preview'),
    path('<slug:form_id>/submit/', views.form_submit_api, name='form-submit'),
]
