"""
Views for core app.
Handles landing, the Unauthorized page and the unmatched-path fallback.
"""

from django.shortcuts import redirect, render

from .auth_helpers import LOGIN_URL, dashboard_url, user_role


def home(request):
    """
    Send the visitor to their role dashboard.

    Unauthenticated visitors go to /login; authenticated users without a role
    see the Unauthorized page.
    """
    if not request.user.is_authenticated:
        return redirect(LOGIN_URL)
    target = dashboard_url(user_role(request))
    if target:
        return redirect(target)
    return unauthorized(request)


def fallback(request, unmatched=None):
    """Unmatched paths fall back to the default dashboard."""
    return home(request)


def unauthorized(request):
    return render(request, 'unauthorized.html', {}, status=403)
