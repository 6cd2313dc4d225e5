"""
Tests for the deviation report API.
"""
from unittest import mock

import pytest

from apps.core.gateway import PersistenceError
from apps.deviations.models import DeviationReport


CORRECTIVE_ACTION = {
    'corrective_action_feedback': 'Re-consent all participants',
    'corrective_action_required': 'changes',
    'corrective_action_details': '',
    'corrective_action_docs': 'docs',
    'corrective_action_docs_details': 'Signed forms',
    'corrective_action_deadline': '',
}


@pytest.mark.django_db
class TestCollection:
    def test_researcher_submits_report(self, api_client_for, researcher, report_data):
        response = api_client_for(researcher).post('/api/v1/deviations/', report_data, format='json')

        assert response.status_code == 201
        body = response.json()
        assert body['severity'] == ''
        assert body['display_status'] == 'Pending / View'
        assert DeviationReport.objects.get().reporter == researcher

    def test_multipart_submission_with_documents(self, api_client_for, researcher, report_data, pdf_file):
        response = api_client_for(researcher).post(
            '/api/v1/deviations/',
            {**report_data, 'supporting_documents': [pdf_file('a.pdf')]},
            format='multipart',
        )
        assert response.status_code == 201
        assert len(DeviationReport.objects.get().supporting_documents) == 1

    def test_validation_errors(self, api_client_for, researcher, report_data):
        report_data['protocol_title'] = ''
        response = api_client_for(researcher).post('/api/v1/deviations/', report_data, format='json')
        assert response.status_code == 400
        assert response.json()['errors'] == {'protocol_title': 'Protocol title is required.'}

    def test_list_body_is_rejected(self, api_client_for, researcher):
        response = api_client_for(researcher).post('/api/v1/deviations/', [1, 2], format='json')
        assert response.status_code == 400
        assert list(response.json()['errors']) == ['report']
        assert DeviationReport.objects.count() == 0

    def test_staff_cannot_submit(self, api_client_for, staff, report_data):
        response = api_client_for(staff).post('/api/v1/deviations/', report_data, format='json')
        assert response.status_code == 403

    def test_staff_list_page(self, api_client_for, staff, make_report):
        for index in range(6):
            make_report(protocol_title=f'Study {index}')

        response = api_client_for(staff).get('/api/v1/deviations/', {'severity': 'All', 'page': 2})
        body = response.json()
        assert body['count'] == 6
        assert body['page'] == 2
        assert body['page_count'] == 2
        assert body['page_size'] == 5
        assert len(body['results']) == 1
        assert body['type_options'] == ['All', 'Informed Consent']

    def test_list_degrades_on_read_failure(self, api_client_for, staff):
        with mock.patch('apps.deviations.views.deviation_page', side_effect=PersistenceError('down')):
            response = api_client_for(staff).get('/api/v1/deviations/')
        assert response.status_code == 200
        assert response.json()['results'] == []
        assert response.json()['message'] == 'Could not load deviations.'

    def test_researcher_cannot_list(self, api_client_for, researcher):
        assert api_client_for(researcher).get('/api/v1/deviations/').status_code == 403


@pytest.mark.django_db
class TestMine:
    def test_only_own_reports(self, api_client_for, researcher, make_report):
        make_report(protocol_title='Mine', reported_by='ana.cruz@uni.edu', severity='Minor', review='ok')
        make_report(protocol_title='Theirs', reported_by='other@uni.edu')

        body = api_client_for(researcher).get('/api/v1/deviations/mine/').json()
        assert body['count'] == 1
        row = body['results'][0]
        assert row['title'] == 'Mine'
        assert row['feedback'] == 'ok'
        assert row['action_status'] == 'Action Required'

    def test_detail_of_someone_elses_report_is_404(self, api_client_for, researcher, make_report):
        report = make_report(reported_by='other@uni.edu')
        assert api_client_for(researcher).get(f'/api/v1/deviations/{report.pk}/').status_code == 404


@pytest.mark.django_db
class TestAssessApi:
    def test_minor(self, api_client_for, staff, make_report):
        report = make_report()
        response = api_client_for(staff).post(
            f'/api/v1/deviations/{report.pk}/assess/',
            {'severity': 'Minor', 'review': 'Looks fine', 'version': 1},
            format='json',
        )
        assert response.status_code == 200
        body = response.json()
        assert body['status'] == 'Reviewed'
        assert body['version'] == 2
        assert body['lifecycle_state'] == 'assessed_minor'

    def test_major_with_corrective_action(self, api_client_for, staff, make_report):
        report = make_report()
        response = api_client_for(staff).post(
            f'/api/v1/deviations/{report.pk}/assess/',
            {'severity': 'Major', 'corrective_action': CORRECTIVE_ACTION},
            format='json',
        )
        assert response.status_code == 200
        assert response.json()['documents_required'] is True

    def test_stale_version_conflict(self, api_client_for, staff, make_report):
        report = make_report(version=3)
        response = api_client_for(staff).post(
            f'/api/v1/deviations/{report.pk}/assess/',
            {'severity': 'Minor', 'review': 'x', 'version': 2},
            format='json',
        )
        assert response.status_code == 409
        body = response.json()
        assert body['code'] == 'STALE_WRITE'
        assert body['current_version'] == 3

    def test_review_must_be_a_string(self, api_client_for, staff, make_report):
        report = make_report()
        response = api_client_for(staff).post(
            f'/api/v1/deviations/{report.pk}/assess/',
            {'severity': 'Minor', 'review': ['fine']},
            format='json',
        )
        assert response.status_code == 400
        assert 'review' in response.json()['errors']

    def test_numeric_review_is_stored_as_text(self, api_client_for, staff, make_report):
        report = make_report()
        response = api_client_for(staff).post(
            f'/api/v1/deviations/{report.pk}/assess/',
            {'severity': 'Minor', 'review': 123},
            format='json',
        )
        assert response.status_code == 200
        assert response.json()['review'] == '123'

    def test_non_object_body(self, api_client_for, staff, make_report):
        report = make_report()
        response = api_client_for(staff).post(
            f'/api/v1/deviations/{report.pk}/assess/', ['Minor'], format='json'
        )
        assert response.status_code == 400
        assert 'non_field_errors' in response.json()['errors']

    def test_missing_report(self, api_client_for, staff):
        response = api_client_for(staff).post(
            '/api/v1/deviations/999/assess/', {'severity': 'Minor', 'review': 'x'}, format='json'
        )
        assert response.status_code == 404

    def test_corrective_action_must_be_object(self, api_client_for, staff, make_report):
        report = make_report()
        response = api_client_for(staff).post(
            f'/api/v1/deviations/{report.pk}/assess/',
            {'severity': 'Major', 'corrective_action': 'fix it'},
            format='json',
        )
        assert response.status_code == 400

    def test_reviewer_forbidden(self, api_client_for, reviewer, make_report):
        report = make_report()
        response = api_client_for(reviewer).post(
            f'/api/v1/deviations/{report.pk}/assess/', {'severity': 'Minor', 'review': 'x'}, format='json'
        )
        assert response.status_code == 403


@pytest.mark.django_db
class TestResolutionFlow:
    def test_full_cycle(self, api_client_for, staff, researcher, make_report, pdf_file):
        report = make_report(reported_by='ana.cruz@uni.edu')
        staff_client = api_client_for(staff)
        researcher_client = api_client_for(researcher)

        staff_client.post(
            f'/api/v1/deviations/{report.pk}/corrective-action/', CORRECTIVE_ACTION, format='json'
        )

        response = researcher_client.post(
            f'/api/v1/deviations/{report.pk}/resolution/',
            {'researcher_response': 'Done', 'resolution_actions_taken': 'Re-consented'},
            format='multipart',
        )
        assert response.status_code == 400
        assert 'resolution_supporting_documents' in response.json()['errors']

        response = researcher_client.post(
            f'/api/v1/deviations/{report.pk}/resolution/',
            {
                'researcher_response': 'Done',
                'resolution_actions_taken': 'Re-consented',
                'resolution_supporting_documents': [pdf_file()],
            },
            format='multipart',
        )
        assert response.status_code == 200
        assert response.json()['resolution_status'] == 'in_progress'

        listing = staff_client.get('/api/v1/deviations/resolutions/', {'status': 'In Progress'}).json()
        assert [row['id'] for row in listing['results']] == [report.pk]

        response = staff_client.post(
            f'/api/v1/deviations/{report.pk}/acknowledge/',
            {'decision': 'revise', 'acknowledgment': 'Add the logs'},
            format='json',
        )
        assert response.json()['resolution_status'] == 'rejected'

        response = researcher_client.post(
            f'/api/v1/deviations/{report.pk}/resolution/',
            {
                'researcher_response': 'Logs added',
                'resolution_actions_taken': 'Uploaded logs',
                'resolution_supporting_documents': [pdf_file('logs.pdf')],
            },
            format='multipart',
        )
        assert response.status_code == 200

        response = staff_client.post(
            f'/api/v1/deviations/{report.pk}/acknowledge/',
            {'decision': 'approve', 'acknowledgment': 'Thanks'},
            format='json',
        )
        assert response.json()['resolution_status'] == 'resolved'

    def test_acknowledge_needs_decision(self, api_client_for, staff, make_report):
        report = make_report(severity='Minor', review='ok', resolution_status='in_progress')
        response = api_client_for(staff).post(
            f'/api/v1/deviations/{report.pk}/acknowledge/', {'acknowledgment': 'x'}, format='json'
        )
        assert response.status_code == 400

    def test_acknowledgment_must_be_a_string(self, api_client_for, staff, make_report):
        report = make_report(severity='Minor', review='ok', resolution_status='in_progress')
        response = api_client_for(staff).post(
            f'/api/v1/deviations/{report.pk}/acknowledge/',
            {'decision': 'approve', 'acknowledgment': ['ok']},
            format='json',
        )
        assert response.status_code == 400
        assert 'acknowledgment' in response.json()['errors']
        report.refresh_from_db()
        assert report.resolution_status == 'in_progress'

    def test_resolution_fields_must_be_strings(self, api_client_for, researcher, make_report):
        report = make_report(reported_by='ana.cruz@uni.edu', severity='Minor', review='ok')
        response = api_client_for(researcher).post(
            f'/api/v1/deviations/{report.pk}/resolution/',
            {'researcher_response': {'text': 'Done'}, 'resolution_actions_taken': 'Re-consented'},
            format='json',
        )
        assert response.status_code == 400
        assert 'researcher_response' in response.json()['errors']

    def test_acknowledge_wrong_state_conflicts(self, api_client_for, staff, make_report):
        report = make_report(severity='Minor', review='ok')
        response = api_client_for(staff).post(
            f'/api/v1/deviations/{report.pk}/acknowledge/',
            {'decision': 'approve', 'acknowledgment': 'x'},
            format='json',
        )
        assert response.status_code == 409
        assert response.json()['code'] == 'TRANSITION_NOT_ALLOWED'

    def test_researcher_cannot_resolve_others_report(self, api_client_for, researcher, make_report):
        report = make_report(reported_by='other@uni.edu', severity='Minor', review='ok')
        response = api_client_for(researcher).post(
            f'/api/v1/deviations/{report.pk}/resolution/',
            {'researcher_response': 'r', 'resolution_actions_taken': 'a'},
            format='json',
        )
        assert response.status_code == 404


@pytest.mark.django_db
class TestChangesApi:
    def test_events_after_cursor(self, api_client_for, staff, make_report):
        client = api_client_for(staff)
        cursor = client.get('/api/v1/deviations/changes/').json()['cursor']

        make_report(protocol_title='New one')
        body = client.get('/api/v1/deviations/changes/', {'after': cursor}).json()

        assert body['reset'] is False
        assert [e['event'] for e in body['events']] == ['INSERT']
        assert body['events'][0]['record']['title'] == 'New one'
        assert body['cursor'] == cursor + 1

    def test_cursor_ahead_of_feed_requests_reset(self, api_client_for, staff, make_report):
        make_report()
        client = api_client_for(staff)
        cursor = client.get('/api/v1/deviations/changes/').json()['cursor']

        body = client.get('/api/v1/deviations/changes/', {'after': cursor + 100}).json()
        assert body['reset'] is True
        assert body['events'] == []

    def test_cursor_from_another_epoch_requests_reset(self, api_client_for, staff, make_report):
        client = api_client_for(staff)
        first = client.get('/api/v1/deviations/changes/').json()
        make_report(protocol_title='New one')

        body = client.get('/api/v1/deviations/changes/',
                          {'after': first['cursor'], 'epoch': 'not-this-process'}).json()
        assert body['reset'] is True

        body = client.get('/api/v1/deviations/changes/',
                          {'after': first['cursor'], 'epoch': first['epoch']}).json()
        assert body['reset'] is False
        assert len(body['events']) == 1

    def test_list_reports_epoch(self, api_client_for, staff):
        body = api_client_for(staff).get('/api/v1/deviations/').json()
        assert body['epoch'] == api_client_for(staff).get('/api/v1/deviations/changes/').json()['epoch']
