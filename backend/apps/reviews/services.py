"""
Reviewer services: assigned reviews, review submission and dashboard data.

Reads degrade to empty results on PersistenceError (logged), so a reviewer
page never fails because one source is unavailable. ``submit_review`` is the
only write and lets its errors propagate to the view.
"""

import logging
from dataclasses import dataclass

from django.utils import timezone

from apps.core.gateway import PersistenceError, RecordNotFound, gateway

logger = logging.getLogger(__name__)


ASSIGNMENT_TABS = [
    ('all', 'All'),
    ('in_progress', 'In Progress'),
    ('completed', 'Completed'),
    ('overdue', 'Overdue'),
]

COMPLETED = 'Completed'

REVIEW_STATUSES = ('Pending', 'In Progress', 'Completed')
RECOMMENDATIONS = ('approve', 'minor_revisions', 'major_revisions', 'reject')


class ReviewSubmissionError(Exception):
    """Review input was rejected before anything was written."""

    def __init__(self, errors):
        super().__init__('; '.join(errors.values()))
        self.errors = errors


def status_key(value):
    """'In Progress' -> 'in_progress', '' -> 'pending'."""
    text = '_'.join(str(value or '').replace('-', ' ').split()).lower()
    return text or 'pending'


def _today():
    return timezone.localdate()


def _is_overdue(row, today=None):
    today = today or _today()
    if row.get('status_key') == 'overdue':
        return True
    due = row.get('due_date')
    return bool(due) and due < today and row.get('status_key') != 'completed'


# ============================================================================
# Assigned reviews
# ============================================================================

def assigned_reviews_for(reviewer):
    """
    Assignments for one reviewer, newest first.

    Returns:
        list of dicts: id, proposal_id, title, date_assigned, due_date,
        researcher, status, status_key. Empty on lookup failure.
    """
    if reviewer is None or not getattr(reviewer, 'pk', None):
        return []
    try:
        rows = gateway.select(
            'assigned_reviews',
            filters={'reviewer': reviewer},
            order_by=['-assigned_at'],
            related=['proposal'],
        )
    except PersistenceError as e:
        logger.error('Error fetching assigned reviews for %s: %s', reviewer, e)
        return []

    assignments = []
    for row in rows:
        proposal = row.proposal
        status = row.status or 'pending'
        assignments.append({
            'id': row.pk,
            'proposal_id': row.proposal_id,
            'title': (proposal.title if proposal else '') or 'Untitled Proposal',
            'date_assigned': row.assigned_at,
            'due_date': row.due_date,
            'researcher': (proposal.researcher_name if proposal else '') or 'Unknown',
            'status': status,
            'status_key': status_key(status),
        })
    return assignments


def filter_assignments(assignments, tab='all', search=''):
    """Apply the Assigned Reviews tab and the title/researcher search."""
    needle = (search or '').strip().lower()
    today = _today()
    visible = []
    for row in assignments:
        if needle and needle not in row['title'].lower() and needle not in row['researcher'].lower():
            continue
        if tab == 'overdue':
            if not _is_overdue(row, today):
                continue
        elif tab and tab != 'all' and row['status_key'] != tab:
            continue
        visible.append(row)
    return visible


# ============================================================================
# Reviews
# ============================================================================

def get_review(review_id, reviewer=None):
    """
    Fetch one review with its proposal.

    When ``reviewer`` is given, a review assigned to someone else is
    reported as missing.
    """
    lookup = {'pk': review_id}
    if reviewer is not None:
        lookup['reviewer'] = reviewer
    return gateway.get('reviews', related=['proposal'], **lookup)


def submit_review(review_id, data, reviewer=None):
    """
    Write a reviewer's comments and recommendation.

    Args:
        data: dict with status, comments, recommendation

    Returns:
        The updated Review

    Raises:
        ReviewSubmissionError: invalid status or recommendation, or a
            completed review without comments
        RecordNotFound: no such review (for this reviewer)
        PersistenceError: the write failed
    """
    review = get_review(review_id, reviewer=reviewer)

    status = (data.get('status') or COMPLETED).strip()
    comments = (data.get('comments') or '').strip()
    recommendation = (data.get('recommendation') or '').strip()

    errors = {}
    if status not in REVIEW_STATUSES:
        errors['status'] = f'Status must be one of: {", ".join(REVIEW_STATUSES)}'
    if recommendation and recommendation not in RECOMMENDATIONS:
        errors['recommendation'] = 'Select a valid recommendation'
    if status == COMPLETED:
        if not comments:
            errors['comments'] = 'Comments are required to complete a review'
        if not recommendation:
            errors['recommendation'] = 'Select a recommendation'
    if errors:
        raise ReviewSubmissionError(errors)

    values = {'status': status, 'comments': comments, 'recommendation': recommendation}
    if status == COMPLETED:
        values['submitted_at'] = timezone.now()
    updated = gateway.update('reviews', review.pk, values)
    logger.info('Review %s saved with status %s', review.pk, status)
    return updated


# ============================================================================
# Dashboard data
# ============================================================================

@dataclass
class ReviewerStat:
    label: str
    value: int


def reviewer_stats(reviewer=None):
    """
    Assigned / Completed / Overdue counts over reviews.

    Scoped to ``reviewer`` when given. Returns [] when counting fails.
    """
    scope = {'reviewer': reviewer} if reviewer is not None else {}
    today = _today()
    try:
        assigned = gateway.count('reviews', filters=scope)
        completed = gateway.count('reviews', filters={**scope, 'status': COMPLETED})
        overdue = gateway.count(
            'reviews',
            filters={**scope, 'due_date__lt': today},
            exclude={'status': COMPLETED},
        )
    except PersistenceError as e:
        logger.error('getReviewerStats failed: %s', e)
        return []
    return [
        ReviewerStat('Assigned', assigned),
        ReviewerStat('Completed', completed),
        ReviewerStat('Overdue', overdue),
    ]


def activities(limit=10, reviewer=None):
    """Most recent reviews as activity entries: id, title, type (status), date."""
    filters = {'reviewer': reviewer} if reviewer is not None else None
    try:
        rows = gateway.select('reviews', filters=filters, order_by=['-created_at'],
                              limit=limit, related=['proposal'])
    except PersistenceError as e:
        logger.error('getActivities failed: %s', e)
        return []
    return [
        {
            'id': row.pk,
            'title': row.proposal.title or 'Untitled',
            'type': row.status,
            'date': row.created_at,
        }
        for row in rows
    ]


def upcoming_deadlines(limit=20, reviewer=None):
    """Reviews due today or later, soonest first."""
    filters = {'due_date__gte': _today()}
    if reviewer is not None:
        filters['reviewer'] = reviewer
    try:
        rows = gateway.select('reviews', filters=filters, order_by=['due_date'],
                              limit=limit, related=['proposal'])
    except PersistenceError as e:
        logger.error('getUpcomingDeadlines failed: %s', e)
        return []
    return [
        {'id': row.pk, 'title': row.proposal.title or 'Untitled', 'due_date': row.due_date}
        for row in rows
    ]


def review_or_none(review_id, reviewer=None):
    try:
        return get_review(review_id, reviewer=reviewer)
    except RecordNotFound:
        return None
