"""
Tests for role lookup and route gating.
"""
from unittest import mock

import pytest
from django.contrib.auth.models import AnonymousUser

from apps.core.auth_helpers import (
    AccessDecision,
    decide_access,
    dashboard_url,
    lookup_role,
    normalize_role,
)
from apps.core.gateway import PersistenceError


class _User:
    is_authenticated = True


class TestNormalizeRole:
    def test_canonical_names(self):
        assert normalize_role('staff') == 'Staff'
        assert normalize_role(' REVIEWER ') == 'Reviewer'
        assert normalize_role('Researcher') == 'Researcher'

    def test_unknown_or_empty(self):
        assert normalize_role('admin') is None
        assert normalize_role('') is None
        assert normalize_role(None) is None

    def test_dashboard_url(self):
        assert dashboard_url('reviewer') == '/reviewer/dashboard'
        assert dashboard_url('nobody') is None


class TestDecideAccess:
    def test_pending_lookups_never_redirect(self):
        """While auth or role is still resolving the route waits."""
        assert decide_access(None, None, ['Staff'], auth_pending=True).outcome == AccessDecision.LOADING
        assert decide_access(_User(), None, ['Staff'], role_pending=True).outcome == AccessDecision.LOADING

    def test_anonymous_goes_to_login(self):
        decision = decide_access(AnonymousUser(), None, ['Staff'])
        assert decision == AccessDecision(AccessDecision.LOGIN, '/login')

    def test_missing_role_is_unauthorized(self):
        assert decide_access(_User(), None, ['Staff']).outcome == AccessDecision.UNAUTHORIZED

    def test_allowed_role_is_case_insensitive(self):
        assert decide_access(_User(), 'staff', ['Staff']).outcome == AccessDecision.RENDER

    def test_wrong_role_redirects_to_own_dashboard(self):
        decision = decide_access(_User(), 'Reviewer', ['Staff'])
        assert decision == AccessDecision(AccessDecision.REDIRECT, '/reviewer/dashboard')

    def test_unknown_role_without_dashboard_is_unauthorized(self):
        assert decide_access(_User(), 'Auditor', ['Staff']).outcome == AccessDecision.UNAUTHORIZED


@pytest.mark.django_db
class TestLookupRole:
    def test_role_from_users_table(self, staff):
        assert lookup_role('STAFF@uni.edu') == 'Staff'

    def test_no_row_means_no_role(self, make_user):
        make_user('nobody@uni.edu')
        assert lookup_role('nobody@uni.edu') is None

    def test_lookup_failure_means_no_role(self):
        """A failed lookup is never treated as permission."""
        with mock.patch('apps.core.auth_helpers.gateway.select', side_effect=PersistenceError('down')):
            assert lookup_role('staff@uni.edu') is None


@pytest.mark.django_db
class TestPageGating:
    def test_anonymous_redirected_to_login(self, client):
        response = client.get('/staff/dashboard')
        assert response.status_code == 302
        assert response['Location'] == '/login'

    def test_wrong_role_redirected_to_own_dashboard(self, page_client_for, reviewer):
        response = page_client_for(reviewer).get('/staff/deviations')
        assert response.status_code == 302
        assert response['Location'] == '/reviewer/dashboard'

    def test_user_without_role_sees_unauthorized(self, page_client_for, make_user):
        user = make_user('norole@uni.edu')
        response = page_client_for(user).get('/researcher/dashboard')
        assert response.status_code == 403

    def test_unmatched_path_falls_back_to_dashboard(self, page_client_for, researcher):
        response = page_client_for(researcher).get('/no/such/page')
        assert response.status_code == 302
        assert response['Location'] == '/researcher/dashboard'

    def test_root_redirects_by_role(self, page_client_for, staff):
        response = page_client_for(staff).get('/')
        assert response['Location'] == '/staff/dashboard'


@pytest.mark.django_db
class TestApiGating:
    def test_health_check_is_public(self, client):
        response = client.get('/health/')
        assert response.status_code == 200
        assert response.json()['status'] == 'ok'

    def test_anonymous_api_call_is_401(self, client):
        response = client.get('/api/v1/deviations/')
        assert response.status_code == 401

    def test_wrong_role_api_call_is_403(self, api_client_for, researcher):
        response = api_client_for(researcher).get('/api/v1/deviations/')
        assert response.status_code == 403

    def test_me_reports_role_and_menu(self, api_client_for, reviewer):
        response = api_client_for(reviewer).get('/api/v1/me/')
        assert response.status_code == 200
        body = response.json()
        assert body['role'] == 'Reviewer'
        assert body['dashboard_url'] == '/reviewer/dashboard'
        assert [item['title'] for item in body['menu']] == ['Dashboard', 'Assigned Reviews', 'Announcements']

    def test_me_anonymous(self, client):
        assert client.get('/api/v1/me/').status_code == 401


@pytest.mark.django_db
class TestLoginAndSignup:
    def test_login_lands_on_role_dashboard(self, client, make_user):
        make_user('login@uni.edu', role='Researcher', password='pass1234')
        response = client.post('/login', {'email': 'login@uni.edu', 'password': 'pass1234'})
        assert response.status_code == 302
        assert response['Location'] == '/researcher/dashboard'

    def test_login_bad_password(self, client, make_user):
        make_user('login@uni.edu', role='Researcher', password='pass1234')
        response = client.post('/login', {'email': 'login@uni.edu', 'password': 'wrong'})
        assert response.status_code == 200
        assert response.context['error_message'] == 'Invalid email or password.'

    def test_signup_mismatched_passwords_writes_nothing(self, client):
        from django.contrib.auth import get_user_model

        response = client.post('/signup', {
            'full_name': 'New Person',
            'email': 'new@uni.edu',
            'password': 'abcdef',
            'confirm_password': 'abcdeg',
        })
        assert response.status_code == 200
        assert not response.context['created']
        assert not get_user_model().objects.filter(email='new@uni.edu').exists()

    def test_signup_creates_user_without_role(self, client):
        client.post('/signup', {
            'full_name': 'New Person',
            'email': 'new@uni.edu',
            'password': 'abcdef',
            'confirm_password': 'abcdef',
        })
        assert lookup_role('new@uni.edu') is None
