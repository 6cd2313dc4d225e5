"""
Authentication and Authorization Helpers for RECheck.

Contains the role lookup and the route-gating decision used by every
role-prefixed page and API endpoint.

The decision order is fixed:
    1. auth or role still resolving  -> LOADING (no redirect on partial data)
    2. no authenticated user         -> LOGIN   (/login)
    3. role could not be determined  -> UNAUTHORIZED
    4. role not in allowed roles     -> REDIRECT to the user's own dashboard
    5. otherwise                     -> RENDER

Usage:
    from apps.core.auth_helpers import require_roles

    @require_roles(['Staff'])
    def deviations_page(request):
        ...
"""

import logging
from dataclasses import dataclass
from functools import wraps

from django.http import JsonResponse
from django.shortcuts import redirect, render
from rest_framework.permissions import BasePermission

from .gateway import PersistenceError, gateway

logger = logging.getLogger(__name__)


ROLES = ('Staff', 'Reviewer', 'Researcher')

LOGIN_URL = '/login'

DASHBOARD_URLS = {
    'Staff': '/staff/dashboard',
    'Reviewer': '/reviewer/dashboard',
    'Researcher': '/researcher/dashboard',
}

# Sidebar menu per role
ROLE_MENUS = {
    'Staff': [
        {'title': 'Dashboard', 'url': '/staff/dashboard'},
        {'title': 'Deviation Management', 'url': '/staff/deviations'},
        {'title': 'Resolution Reviews', 'url': '/staff/resolution-reviews'},
        {'title': 'Create Announcement', 'url': '/staff/announcements/new'},
        {'title': 'Announcements', 'url': '/announcements'},
    ],
    'Researcher': [
        {'title': 'Dashboard', 'url': '/researcher/dashboard'},
        {'title': 'Submissions', 'url': '/researcher/submissions'},
        {'title': 'Forms', 'url': '/researcher/forms'},
        {'title': 'Deviation Reports', 'url': '/researcher/deviation-report'},
        {'title': 'Announcements', 'url': '/announcements'},
    ],
    'Reviewer': [
        {'title': 'Dashboard', 'url': '/reviewer/dashboard'},
        {'title': 'Assigned Reviews', 'url': '/reviewer/reviews'},
        {'title': 'Announcements', 'url': '/announcements'},
    ],
}


def normalize_role(raw):
    """
    Map a stored role value to Staff / Reviewer / Researcher.

    Returns None for empty or unrecognized values.
    """
    if not raw:
        return None
    lowered = str(raw).strip().lower()
    for role in ROLES:
        if role.lower() == lowered:
            return role
    return None


def lookup_role(email):
    """
    Resolve a role from the ``users`` table by email.

    A failed or empty lookup yields None; callers treat that as "no role",
    never as permission.
    """
    if not email:
        return None
    try:
        rows = gateway.select('users', filters={'email__iexact': email}, limit=1)
    except PersistenceError as e:
        logger.error('Role lookup failed for %s: %s', email, e)
        return None
    if not rows:
        return None
    return normalize_role(rows[0].role)


def user_role(request):
    """
    Get the portal role for the request's user, cached on the request.

    Returns:
        str role name, or None when unauthenticated or undetermined
    """
    if not request.user.is_authenticated:
        return None
    if not hasattr(request, '_recheck_role'):
        request._recheck_role = lookup_role(request.user.email)
    return request._recheck_role


def dashboard_url(role):
    return DASHBOARD_URLS.get(normalize_role(role))


@dataclass(frozen=True)
class AccessDecision:
    LOADING = 'loading'
    RENDER = 'render'
    LOGIN = 'login'
    REDIRECT = 'redirect'
    UNAUTHORIZED = 'unauthorized'

    outcome: str
    location: str = None


def decide_access(user, role, allowed_roles, auth_pending=False, role_pending=False):
    """
    Decide what a role-gated route does for this identity.

    Args:
        user: Authenticated user object, or None/anonymous
        role: Resolved role string, or None
        allowed_roles: Iterable of role names (compared case-insensitively)
        auth_pending / role_pending: True while either lookup is in flight

    Returns:
        AccessDecision
    """
    if auth_pending or role_pending:
        return AccessDecision(AccessDecision.LOADING)

    if user is None or not getattr(user, 'is_authenticated', False):
        return AccessDecision(AccessDecision.LOGIN, LOGIN_URL)

    if not role:
        return AccessDecision(AccessDecision.UNAUTHORIZED)

    normalized_role = role.lower()
    normalized_allowed = [r.lower() for r in allowed_roles]
    if normalized_role in normalized_allowed:
        return AccessDecision(AccessDecision.RENDER)

    target = dashboard_url(role)
    if target:
        return AccessDecision(AccessDecision.REDIRECT, target)
    return AccessDecision(AccessDecision.UNAUTHORIZED)


def render_unauthorized(request, status=403):
    return render(request, 'unauthorized.html', {}, status=status)


def require_roles(allowed_roles, api_mode=False):
    """
    Decorator to gate a view by portal role.

    Args:
        allowed_roles: List of role names that can access the view
        api_mode: If True, return 401/403 JSON instead of redirecting

    Usage:
        @require_roles(['Staff'])
        def staff_dashboard(request):
            ...

        @require_roles(['Researcher'], api_mode=True)
        def my_submissions_api(request):
            ...
    """
    def decorator(view_func):
        @wraps(view_func)
        def wrapper(request, *args, **kwargs):
            role = user_role(request)
            decision = decide_access(request.user, role, allowed_roles)

            if decision.outcome == AccessDecision.RENDER:
                return view_func(request, *args, **kwargs)

            logger.debug('Access to %s: %s (role=%s, allowed=%s)',
                         request.path, decision.outcome, role, allowed_roles)

            if api_mode:
                if decision.outcome == AccessDecision.LOGIN:
                    return JsonResponse(
                        {'error': 'Authentication required', 'code': 'AUTH_REQUIRED'},
                        status=401
                    )
                return JsonResponse(
                    {
                        'error': 'Access denied',
                        'code': 'FORBIDDEN',
                        'required_roles': list(allowed_roles),
                        'user_role': role,
                        'redirect': decision.location,
                    },
                    status=403
                )

            if decision.outcome in (AccessDecision.LOGIN, AccessDecision.REDIRECT):
                return redirect(decision.location)
            return render_unauthorized(request)
        return wrapper
    return decorator


class HasRole(BasePermission):
    """
    DRF permission: the caller's portal role must be in ``view.allowed_roles``.

    Function views set it through ``@permission_classes([HasRole.of('Staff')])``.
    """

    allowed_roles = ROLES
    message = 'Access denied'

    @classmethod
    def of(cls, *roles):
        return type(f'HasRole_{"_".join(roles)}', (cls,), {'allowed_roles': roles})

    def has_permission(self, request, view):
        role = user_role(request)
        return decide_access(request.user, role, self.allowed_roles).outcome == AccessDecision.RENDER


def get_user_context(request):
    """
    Get a context dictionary with user info for templates and /api/v1/me/.
    """
    if not request.user.is_authenticated:
        return {
            'is_authenticated': False,
            'email': '',
            'full_name': '',
            'role': None,
            'menu': [],
            'dashboard_url': None,
        }

    user = request.user
    role = user_role(request)

    return {
        'is_authenticated': True,
        'username': user.get_username(),
        'email': user.email,
        'full_name': user.get_full_name() or user.get_username(),
        'role': role,
        'menu': ROLE_MENUS.get(role, []),
        'dashboard_url': dashboard_url(role),
    }
