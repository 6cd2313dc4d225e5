"""
RECheck - Test Configuration and Fixtures
"""
import datetime

import pytest
from django.contrib.auth import get_user_model
from django.core.files.uploadedfile import SimpleUploadedFile
from rest_framework.test import APIClient

from apps.core.models import UserAccount
from apps.deviations.models import DeviationReport
from apps.deviations.realtime import feed


@pytest.fixture(autouse=True)
def media_root(settings, tmp_path):
    """Keep uploaded attachments out of the project tree."""
    settings.MEDIA_ROOT = str(tmp_path / 'media')
    return settings.MEDIA_ROOT


@pytest.fixture(autouse=True)
def clear_change_feed():
    feed.clear()
    yield
    feed.clear()


@pytest.fixture
def make_user(db):
    """Create an auth user, with a ``users`` role row when ``role`` is given."""
    def _make(email, role=None, full_name='', password='s3cret-pass'):
        first_name, _, last_name = full_name.partition(' ')
        user = get_user_model().objects.create_user(
            username=email,
            email=email,
            password=password,
            first_name=first_name,
            last_name=last_name,
        )
        if role:
            UserAccount.objects.create(email=email, role=role, full_name=full_name, user=user)
        return user
    return _make


@pytest.fixture
def researcher(make_user):
    return make_user('ana.cruz@uni.edu', role='Researcher', full_name='Ana Cruz')


@pytest.fixture
def reviewer(make_user):
    return make_user('rev@uni.edu', role='Reviewer', full_name='Rex Viewer')


@pytest.fixture
def staff(make_user):
    return make_user('staff@uni.edu', role='Staff', full_name='Stella Staff')


@pytest.fixture
def api_client_for():
    def _client(user):
        client = APIClient()
        client.force_authenticate(user=user)
        return client
    return _client


@pytest.fixture
def page_client_for(client):
    """Django test client logged in as ``user`` (session auth for page views)."""
    def _client(user):
        client.force_login(user)
        return client
    return _client


@pytest.fixture
def report_data():
    return {
        'protocol_title': 'Study X',
        'protocol_code': 'P-001',
        'deviation_date': '2024-01-01',
        'deviation_description': 'desc',
        'rationale': 'r',
        'impact': 'i',
        'corrective_action': 'c',
        'reportedBy': 'user@example.com',
        'reportSubmissionDate': '2024-01-02',
        'type': 'Informed Consent',
    }


@pytest.fixture
def make_report(db):
    """Insert a DeviationReport directly, bypassing the lifecycle."""
    def _make(**overrides):
        values = {
            'protocol_title': 'Study X',
            'protocol_code': 'P-001',
            'type': 'Informed Consent',
            'deviation_date': datetime.date(2024, 1, 1),
            'deviation_description': 'desc',
            'rationale': 'r',
            'impact': 'i',
            'corrective_action': 'c',
            'reported_by': 'user@example.com',
            'report_submission_date': datetime.date(2024, 1, 2),
        }
        values.update(overrides)
        return DeviationReport.objects.create(**values)
    return _make


@pytest.fixture
def pdf_file():
    def _file(name='evidence.pdf', size=64):
        return SimpleUploadedFile(name, b'%PDF' + b'0' * (size - 4), content_type='application/pdf')
    return _file
