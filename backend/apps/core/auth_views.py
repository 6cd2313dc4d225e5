"""
Authentication Views for RECheck.

Provides login, signup, logout, and user API endpoints using Django's built-in auth.

Views:
    - login_view: GET/POST login page
    - signup_view: GET/POST sign-up page (role is assigned later by staff)
    - logout_view: Logout and redirect
    - user_me_api: GET /api/v1/me/ - current user info
"""

import logging

from django.contrib.auth import authenticate, get_user_model, login, logout
from django.shortcuts import redirect, render
from django.views.decorators.csrf import ensure_csrf_cookie
from django.views.decorators.http import require_http_methods
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from .auth_helpers import LOGIN_URL, dashboard_url, get_user_context, lookup_role
from .forms import LoginForm, SignupForm

logger = logging.getLogger(__name__)


def _landing_for(user):
    """The user's role dashboard, or the Unauthorized page when no role is known."""
    return dashboard_url(lookup_role(user.email)) or '/unauthorized'


@require_http_methods(["GET", "POST"])
def login_view(request):
    """
    Handle user login.

    GET: Display login form
    POST: Authenticate by email and redirect to the role dashboard

    Template: login.html
    """
    if request.user.is_authenticated:
        return redirect(_landing_for(request.user))

    error_message = None
    form = LoginForm(request.POST or None)

    if request.method == 'POST':
        if not form.is_valid():
            error_message = 'Please enter both email and password.'
        else:
            email = form.cleaned_data['email']
            account = get_user_model().objects.filter(email__iexact=email).first()
            user = None
            if account is not None:
                user = authenticate(
                    request,
                    username=account.get_username(),
                    password=form.cleaned_data['password'],
                )

            if user is not None and user.is_active:
                login(request, user)
                next_url = request.GET.get('next')
                return redirect(next_url or _landing_for(user))
            error_message = 'Invalid email or password.'

    return render(request, 'login.html', {
        'form': form,
        'error_message': error_message,
    })


@require_http_methods(["GET", "POST"])
def signup_view(request):
    """
    Create an auth user. No role row is written here; until staff assign one
    the account lands on the Unauthorized page.
    """
    form = SignupForm(request.POST or None)
    created = False

    if request.method == 'POST' and form.is_valid():
        email = form.cleaned_data['email']
        full_name = form.cleaned_data['full_name'].strip()
        first_name, _, last_name = full_name.partition(' ')
        get_user_model().objects.create_user(
            username=email,
            email=email,
            password=form.cleaned_data['password'],
            first_name=first_name,
            last_name=last_name,
        )
        logger.info('New account registered: %s', email)
        created = True
        form = SignupForm()

    return render(request, 'signup.html', {
        'form': form,
        'created': created,
    })


def logout_view(request):
    """
    Log out the current user and redirect to login page.
    """
    logout(request)
    return redirect(LOGIN_URL)


@ensure_csrf_cookie
@api_view(['GET'])
@permission_classes([AllowAny])
def user_me_api(request):
    """
    API endpoint to get current user info.

    GET /api/v1/me/

    Returns:
        JSON object with email, full_name, role, menu and dashboard_url.
        401 when not authenticated.
    """
    context = get_user_context(request)
    if not context['is_authenticated']:
        return Response({
            'is_authenticated': False,
            'error': 'Not authenticated'
        }, status=401)
    return Response(context)
