"""
Views for committee reviewers.

Pages (Reviewer):
    - assigned_reviews_page: /reviewer/reviews?tab=<tab>&search=<text>
    - review_detail_page:    /reviewer/reviews/<id>

API (/api/v1/reviews/):
    - assigned_reviews_api   GET  assigned/
    - review_detail_api      GET  <id>/
    - submit_review_api      POST <id>/submit/
    - reviewer_summary_api   GET  summary/
"""

import logging

from django.contrib import messages
from django.http import Http404
from django.shortcuts import redirect, render
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from apps.core.auth_helpers import HasRole, require_roles, user_role
from apps.core.gateway import PersistenceError, RecordNotFound

from .models import Review
from .serializers import AssignmentRowSerializer, ReviewSerializer
from .services import (
    ASSIGNMENT_TABS,
    ReviewSubmissionError,
    activities,
    assigned_reviews_for,
    filter_assignments,
    review_or_none,
    reviewer_stats,
    submit_review,
    upcoming_deadlines,
)

logger = logging.getLogger(__name__)


def _tab(value):
    keys = [key for key, _ in ASSIGNMENT_TABS]
    return value if value in keys else 'all'


@require_roles(['Reviewer'])
def assigned_reviews_page(request):
    """
    Assigned reviews with status tabs and a title/researcher search.

    Query parameters:
        tab     all | in_progress | completed | overdue
        search  free text
    """
    tab = _tab(request.GET.get('tab'))
    search = request.GET.get('search', '')
    assignments = assigned_reviews_for(request.user)
    return render(request, 'reviews/assigned_reviews.html', {
        'tabs': ASSIGNMENT_TABS,
        'tab': tab,
        'search': search,
        'assignments': filter_assignments(assignments, tab, search),
        'total': len(assignments),
    })


@require_roles(['Reviewer'])
def review_detail_page(request, review_id):
    review = review_or_none(review_id, reviewer=request.user)
    if review is None:
        raise Http404('Review not found')

    errors = {}
    if request.method == 'POST':
        try:
            submit_review(review.pk, request.POST, reviewer=request.user)
            messages.success(request, 'Review saved.')
            return redirect('reviews:review-detail', review_id=review.pk)
        except ReviewSubmissionError as e:
            errors = e.errors
        except PersistenceError as e:
            logger.error('Saving review %s failed: %s', review.pk, e)
            messages.error(request, 'Could not save the review. Please try again.')

    return render(request, 'reviews/review_detail.html', {
        'review': review,
        'proposal': review.proposal,
        'errors': errors,
        'status_choices': Review.STATUS_CHOICES,
        'recommendation_choices': Review.RECOMMENDATION_CHOICES,
        'values': request.POST if request.method == 'POST' else {
            'status': review.status,
            'comments': review.comments,
            'recommendation': review.recommendation,
        },
    })


@api_view(['GET'])
@permission_classes([HasRole.of('Reviewer')])
def assigned_reviews_api(request):
    """
    API endpoint for the caller's assigned reviews.

    Inputs: ?tab=all|in_progress|completed|overdue, ?search=

    Outputs: {results: [...], count, total}
    """
    assignments = assigned_reviews_for(request.user)
    rows = filter_assignments(
        assignments,
        _tab(request.query_params.get('tab')),
        request.query_params.get('search', ''),
    )
    return Response({
        'results': AssignmentRowSerializer(rows, many=True).data,
        'count': len(rows),
        'total': len(assignments),
    })


@api_view(['GET'])
@permission_classes([HasRole.of('Reviewer')])
def review_detail_api(request, review_id):
    review = review_or_none(review_id, reviewer=request.user)
    if review is None:
        return Response({'error': 'Review not found'}, status=status.HTTP_404_NOT_FOUND)
    return Response(ReviewSerializer(review).data)


@api_view(['POST'])
@permission_classes([HasRole.of('Reviewer')])
def submit_review_api(request, review_id):
    """
    Save a review.

    Inputs (JSON): status, comments, recommendation

    Outputs:
        200 review on success
        400 {error, errors} on invalid input
        404 when the review is not assigned to the caller
        503 when the write fails
    """
    try:
        review = submit_review(review_id, request.data, reviewer=request.user)
    except ReviewSubmissionError as e:
        return Response({'error': 'Validation failed', 'errors': e.errors},
                        status=status.HTTP_400_BAD_REQUEST)
    except RecordNotFound:
        return Response({'error': 'Review not found'}, status=status.HTTP_404_NOT_FOUND)
    except PersistenceError as e:
        logger.error('Saving review %s failed: %s', review_id, e)
        return Response({'error': 'Could not save the review'},
                        status=status.HTTP_503_SERVICE_UNAVAILABLE)
    return Response(ReviewSerializer(review).data)


@api_view(['GET'])
@permission_classes([HasRole.of('Reviewer', 'Staff')])
def reviewer_summary_api(request):
    """Stats, recent activity and upcoming deadlines (the caller's own for reviewers)."""
    reviewer = request.user if user_role(request) == 'Reviewer' else None
    return Response({
        'stats': [{'label': s.label, 'value': s.value} for s in reviewer_stats(reviewer)],
        'activities': activities(reviewer=reviewer),
        'deadlines': upcoming_deadlines(reviewer=reviewer),
    })
