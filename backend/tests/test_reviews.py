"""
Tests for reviewer assignments, review submission and reviewer stats.
"""
import datetime
from unittest import mock

import pytest
from django.utils import timezone

from apps.core.gateway import PersistenceError
from apps.reviews.models import AssignedReview, Proposal, Review
from apps.reviews.services import (
    ReviewSubmissionError,
    activities,
    assigned_reviews_for,
    filter_assignments,
    reviewer_stats,
    status_key,
    submit_review,
    upcoming_deadlines,
)


def _days(n):
    return timezone.localdate() + datetime.timedelta(days=n)


@pytest.fixture
def proposal(db):
    return Proposal.objects.create(title='Sleep and memory', researcher_name='Dr. Ana Cruz')


class TestStatusKey:
    @pytest.mark.parametrize('value, expected', [
        ('In Progress', 'in_progress'),
        ('in-progress', 'in_progress'),
        ('Completed', 'completed'),
        ('', 'pending'),
        (None, 'pending'),
    ])
    def test_status_key(self, value, expected):
        assert status_key(value) == expected


@pytest.mark.django_db
class TestAssignedReviews:
    def test_rows_for_reviewer(self, reviewer, proposal, make_user):
        other = make_user('other-rev@uni.edu', role='Reviewer')
        AssignedReview.objects.create(reviewer=reviewer, proposal=proposal, status='In Progress', due_date=_days(3))
        AssignedReview.objects.create(reviewer=other, proposal=proposal)

        rows = assigned_reviews_for(reviewer)
        assert len(rows) == 1
        row = rows[0]
        assert row['title'] == 'Sleep and memory'
        assert row['researcher'] == 'Dr. Ana Cruz'
        assert row['status_key'] == 'in_progress'

    def test_defaults_for_blank_proposal(self, reviewer):
        blank = Proposal.objects.create()
        AssignedReview.objects.create(reviewer=reviewer, proposal=blank, status='')
        row = assigned_reviews_for(reviewer)[0]
        assert row['title'] == 'Untitled Proposal'
        assert row['researcher'] == 'Unknown'
        assert row['status'] == 'pending'

    def test_lookup_failure_is_empty(self, reviewer):
        with mock.patch('apps.reviews.services.gateway.select', side_effect=PersistenceError('down')):
            assert assigned_reviews_for(reviewer) == []

    def test_no_reviewer(self):
        assert assigned_reviews_for(None) == []


class TestFilterAssignments:
    @property
    def rows(self):
        return [
            {'title': 'Sleep study', 'researcher': 'Ana', 'status_key': 'in_progress', 'due_date': _days(2)},
            {'title': 'Diet study', 'researcher': 'Ben', 'status_key': 'completed', 'due_date': _days(-5)},
            {'title': 'Gait study', 'researcher': 'Cy', 'status_key': 'pending', 'due_date': _days(-1)},
            {'title': 'Flagged', 'researcher': 'Di', 'status_key': 'overdue', 'due_date': None},
        ]

    def test_all(self):
        assert len(filter_assignments(self.rows, 'all')) == 4

    def test_in_progress_tab(self):
        assert [r['title'] for r in filter_assignments(self.rows, 'in_progress')] == ['Sleep study']

    def test_overdue_includes_past_due_open_rows(self):
        titles = [r['title'] for r in filter_assignments(self.rows, 'overdue')]
        assert titles == ['Gait study', 'Flagged']

    def test_search_title_or_researcher(self):
        assert [r['title'] for r in filter_assignments(self.rows, 'all', 'BEN')] == ['Diet study']
        assert [r['title'] for r in filter_assignments(self.rows, 'all', 'gait')] == ['Gait study']


@pytest.mark.django_db
class TestSubmitReview:
    def test_complete_review(self, reviewer, proposal):
        review = Review.objects.create(proposal=proposal, reviewer=reviewer)
        updated = submit_review(review.pk, {'comments': 'Solid design', 'recommendation': 'approve'},
                                reviewer=reviewer)
        assert updated.status == 'Completed'
        assert updated.submitted_at is not None

    def test_completed_needs_comments_and_recommendation(self, reviewer, proposal):
        review = Review.objects.create(proposal=proposal, reviewer=reviewer)
        with pytest.raises(ReviewSubmissionError) as excinfo:
            submit_review(review.pk, {'status': 'Completed'}, reviewer=reviewer)
        assert set(excinfo.value.errors) == {'comments', 'recommendation'}

    def test_save_in_progress_without_recommendation(self, reviewer, proposal):
        review = Review.objects.create(proposal=proposal, reviewer=reviewer)
        updated = submit_review(review.pk, {'status': 'In Progress', 'comments': 'draft'}, reviewer=reviewer)
        assert updated.status == 'In Progress'
        assert updated.submitted_at is None

    def test_invalid_values(self, reviewer, proposal):
        review = Review.objects.create(proposal=proposal, reviewer=reviewer)
        with pytest.raises(ReviewSubmissionError) as excinfo:
            submit_review(review.pk, {'status': 'Done', 'recommendation': 'maybe'}, reviewer=reviewer)
        assert set(excinfo.value.errors) == {'status', 'recommendation'}


@pytest.mark.django_db
class TestReviewerStats:
    def test_counts_scoped_to_reviewer(self, reviewer, proposal, make_user):
        other = make_user('other-rev@uni.edu', role='Reviewer')
        Review.objects.create(proposal=proposal, reviewer=reviewer, status='Completed', due_date=_days(-3))
        Review.objects.create(proposal=proposal, reviewer=reviewer, status='Pending', due_date=_days(-1))
        Review.objects.create(proposal=proposal, reviewer=reviewer, status='In Progress', due_date=_days(4))
        Review.objects.create(proposal=proposal, reviewer=other, status='Pending', due_date=_days(-1))

        stats = {s.label: s.value for s in reviewer_stats(reviewer)}
        assert stats == {'Assigned': 3, 'Completed': 1, 'Overdue': 1}
        assert {s.label: s.value for s in reviewer_stats()}['Assigned'] == 4

    def test_failure_returns_empty(self):
        with mock.patch('apps.reviews.services.gateway.count', side_effect=PersistenceError('down')):
            assert reviewer_stats() == []

    def test_deadlines_soonest_first(self, reviewer, proposal):
        Review.objects.create(proposal=proposal, reviewer=reviewer, due_date=_days(10))
        Review.objects.create(proposal=proposal, reviewer=reviewer, due_date=_days(1))
        Review.objects.create(proposal=proposal, reviewer=reviewer, due_date=_days(-1))

        deadlines = upcoming_deadlines(reviewer=reviewer)
        assert [d['due_date'] for d in deadlines] == [_days(1), _days(10)]
        assert deadlines[0]['title'] == 'Sleep and memory'

    def test_activities(self, reviewer, proposal):
        Review.objects.create(proposal=proposal, reviewer=reviewer, status='In Progress')
        rows = activities(reviewer=reviewer)
        assert rows[0]['title'] == 'Sleep and memory'
        assert rows[0]['type'] == 'In Progress'


@pytest.mark.django_db
class TestReviewsApi:
    def test_assigned_tab(self, api_client_for, reviewer, proposal):
        AssignedReview.objects.create(reviewer=reviewer, proposal=proposal, status='In Progress')
        AssignedReview.objects.create(reviewer=reviewer, proposal=proposal, status='Completed')

        body = api_client_for(reviewer).get('/api/v1/reviews/assigned/', {'tab': 'completed'}).json()
        assert body['count'] == 1
        assert body['total'] == 2

    def test_submit(self, api_client_for, reviewer, proposal):
        review = Review.objects.create(proposal=proposal, reviewer=reviewer)
        response = api_client_for(reviewer).post(
            f'/api/v1/reviews/{review.pk}/submit/',
            {'comments': 'Fine', 'recommendation': 'minor_revisions'},
            format='json',
        )
        assert response.status_code == 200
        assert response.json()['status'] == 'Completed'

    def test_submit_invalid(self, api_client_for, reviewer, proposal):
        review = Review.objects.create(proposal=proposal, reviewer=reviewer)
        response = api_client_for(reviewer).post(f'/api/v1/reviews/{review.pk}/submit/', {}, format='json')
        assert response.status_code == 400

    def test_someone_elses_review_is_404(self, api_client_for, reviewer, proposal, make_user):
        other = make_user('other-rev@uni.edu', role='Reviewer')
        review = Review.objects.create(proposal=proposal, reviewer=other)
        client = api_client_for(reviewer)
        assert client.get(f'/api/v1/reviews/{review.pk}/').status_code == 404
        assert client.post(f'/api/v1/reviews/{review.pk}/submit/', {}, format='json').status_code == 404

    def test_summary_for_staff_is_unscoped(self, api_client_for, staff, reviewer, proposal):
        Review.objects.create(proposal=proposal, reviewer=reviewer)
        body = api_client_for(staff).get('/api/v1/reviews/summary/').json()
        assert body['stats'][0] == {'label': 'Assigned', 'value': 1}

    def test_researcher_forbidden(self, api_client_for, researcher):
        assert api_client_for(researcher).get('/api/v1/reviews/assigned/').status_code == 403
