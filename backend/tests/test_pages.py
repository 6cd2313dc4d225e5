"""
Smoke tests for the server-rendered pages.
"""
import pytest

from apps.deviations.models import DeviationReport
from apps.reviews.models import Proposal, Review
from apps.submissions.models import FormSubmission


@pytest.mark.django_db
class TestResearcherPages:
    def test_report_form_prefills_reporter(self, page_client_for, researcher):
        response = page_client_for(researcher).get('/researcher/deviation-report')
        assert response.status_code == 200
        assert response.context['values']['reported_by'] == 'ana.cruz@uni.edu'

    def test_report_form_submit(self, page_client_for, researcher, report_data):
        response = page_client_for(researcher).post('/researcher/deviation-report', report_data)
        assert response.status_code == 302
        assert DeviationReport.objects.get().reporter == researcher

    def test_report_form_keeps_values_on_error(self, page_client_for, researcher, report_data):
        report_data['rationale'] = ''
        response = page_client_for(researcher).post('/researcher/deviation-report', report_data)
        assert response.status_code == 200
        assert response.context['errors'] == ['Rationale is required.']
        assert response.context['values']['protocol_title'] == 'Study X'
        assert DeviationReport.objects.count() == 0

    def test_submissions_and_feedback(self, page_client_for, researcher, make_report):
        report = make_report(reported_by='ana.cruz@uni.edu', severity='Minor', review='Looks fine')
        client = page_client_for(researcher)

        response = client.get('/researcher/submissions')
        assert [row['id'] for row in response.context['rows']] == [report.pk]

        response = client.get(f'/researcher/submissions/{report.pk}')
        assert response.status_code == 200
        assert response.context['detail']['can_resolve'] is True

    def test_submissions_are_paged(self, page_client_for, researcher, make_report, settings):
        settings.RECHECK_DEVIATION_PAGE_SIZE = 2
        for index in range(3):
            make_report(protocol_title=f'Study {index}', reported_by='ana.cruz@uni.edu')
        client = page_client_for(researcher)

        response = client.get('/researcher/submissions', {'page': 2})
        assert (response.context['page'], response.context['page_count']) == (2, 2)
        assert len(response.context['rows']) == 1

        response = client.get('/researcher/submissions', {'page': 9})
        assert response.context['page'] == 1
        assert len(response.context['rows']) == 2

    def test_forms_page_submit(self, page_client_for, researcher):
        from apps.submissions.catalog import get_form

        values = {}
        for field in get_form('progress-report').required_fields:
            values[field.name] = {'date': '2024-03-01', 'number': '3'}.get(field.type, 'text')
        response = page_client_for(researcher).post('/researcher/forms?form=progress-report', values)
        assert response.status_code == 200
        assert response.context['payload']['form_id'] == 'progress-report'
        assert FormSubmission.objects.count() == 1


@pytest.mark.django_db
class TestStaffPages:
    def test_deviation_list(self, page_client_for, staff, make_report):
        make_report(protocol_title='Listed')
        response = page_client_for(staff).get('/staff/deviations', {'severity': '-'})
        assert response.status_code == 200
        assert [row['title'] for row in response.context['rows']] == ['Listed']

    def test_minor_assessment_from_detail(self, page_client_for, staff, make_report):
        report = make_report()
        response = page_client_for(staff).post(
            f'/staff/deviations/{report.pk}', {'severity': 'Minor', 'review': 'Looks fine'}
        )
        assert response.status_code == 302
        report.refresh_from_db()
        assert report.status == 'Reviewed'

    def test_major_goes_to_corrective_action(self, page_client_for, staff, make_report):
        report = make_report()
        response = page_client_for(staff).post(f'/staff/deviations/{report.pk}', {'severity': 'Major'})
        assert response['Location'] == f'/staff/corrective-action-request?deviation={report.pk}'
        report.refresh_from_db()
        assert report.severity == ''

    def test_corrective_action_without_deviation(self, page_client_for, staff):
        response = page_client_for(staff).post('/staff/corrective-action-request', {
            'corrective_action_feedback': 'x',
            'corrective_action_required': 'none',
            'corrective_action_docs': 'none',
        })
        assert response.status_code == 200
        assert response.context['errors'] == ['No deviation selected.']

    def test_corrective_action_saves_major(self, page_client_for, staff, make_report):
        report = make_report()
        response = page_client_for(staff).post(f'/staff/corrective-action-request?deviation={report.pk}', {
            'corrective_action_feedback': 'Retrain staff',
            'corrective_action_required': 'changes',
            'corrective_action_docs': 'none',
        })
        assert response.status_code == 302
        report.refresh_from_db()
        assert (report.severity, report.corrective_action_feedback) == ('Major', 'Retrain staff')

    def test_resolution_review_approve(self, page_client_for, staff, make_report):
        report = make_report(severity='Minor', review='ok', resolution_status='in_progress')
        response = page_client_for(staff).post(
            f'/staff/resolution-reviews/{report.pk}',
            {'decision': 'approve', 'staff_acknowledgment': 'Thanks'},
        )
        assert response['Location'] == '/staff/resolution-reviews'
        report.refresh_from_db()
        assert report.resolution_status == 'resolved'

    def test_announcement_create_page(self, page_client_for, staff):
        response = page_client_for(staff).post('/staff/announcements/new', {
            'title': 'Hello', 'description': 'World', 'audience': 'all',
        })
        assert response.status_code == 302


@pytest.mark.django_db
class TestReviewerPages:
    def test_review_detail_submit(self, page_client_for, reviewer):
        proposal = Proposal.objects.create(title='Gait study')
        review = Review.objects.create(proposal=proposal, reviewer=reviewer)
        client = page_client_for(reviewer)

        response = client.post(f'/reviewer/reviews/{review.pk}', {'status': 'Completed'})
        assert response.status_code == 200
        assert 'comments' in response.context['errors']

        response = client.post(f'/reviewer/reviews/{review.pk}', {
            'status': 'Completed', 'comments': 'Fine', 'recommendation': 'approve',
        })
        assert response.status_code == 302

    def test_assigned_reviews_page(self, page_client_for, reviewer):
        response = page_client_for(reviewer).get('/reviewer/reviews', {'tab': 'bogus'})
        assert response.status_code == 200
        assert response.context['tab'] == 'all'
