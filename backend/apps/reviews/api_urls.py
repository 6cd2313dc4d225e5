"""
API routes for reviews, mounted at /api/v1/reviews/.
"""

from django.urls import path
from . import views

urlpatterns = [
    path('assigned/', views.assigned_reviews_api, name='assigned-reviews'),
    path('summary/', views.reviewer_summary_api, name='reviewer-summary'),
    path('<int:review_id>/', views.review_detail_api, name='review-detail'),
    path('<int:review_id>/submit/', views.submit_review_api, name='review-submit'),
]
