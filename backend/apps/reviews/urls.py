"""
Page routes for committee reviewers.
"""

from django.urls import path
from . import views

app_name = 'reviews'

urlpatterns = [
    path('reviewer/reviews', views.assigned_reviews_page, name='assigned-reviews'),
    path('reviewer/reviews/<int:review_id>', views.review_detail_page, name='review-detail'),
]
