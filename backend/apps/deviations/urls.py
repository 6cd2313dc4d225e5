"""
Page routes for the deviation report lifecycle.
"""

from django.urls import path
from . import views

app_name = 'deviations'

urlpatterns = [
    # Researcher
    path('researcher/deviation-report', views.report_form_page, name='report-form'),
    path('researcher/submissions', views.submissions_page, name='submissions'),
    path('researcher/submissions/<int:report_id>', views.feedback_detail_page, name='feedback-detail'),

    # Staff
    path('staff/deviations', views.deviations_page, name='staff-list'),
    path('staff/deviations/<int:report_id>', views.deviation_detail_page, name='staff-detail'),
    path('staff/corrective-action-request', views.corrective_action_page, name='corrective-action'),
    path('staff/resolution-reviews', views.resolution_reviews_page, name='resolution-reviews'),
    path('staff/resolution-reviews/<int:report_id>', views.resolution_detail_page, name='resolution-detail'),
]
