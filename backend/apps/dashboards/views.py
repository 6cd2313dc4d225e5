"""
Role dashboards.

Pages:
    - researcher_dashboard_page: /researcher/dashboard
    - reviewer_dashboard_page:   /reviewer/dashboard
    - staff_dashboard_page:      /staff/dashboard

Each page also accepts ``POST dismiss=<item id>`` to hide a feed item for the
session (no-JS fallback of the dismiss API).

API (/api/v1/dashboards/):
    - dashboard_api  GET  ''         dashboard for the caller's role
    - dismiss_api    POST dismiss/   {"id": "<feed item id>"}
"""

import logging

from django.conf import settings
from django.shortcuts import redirect, render
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from apps.core.auth_helpers import HasRole, require_roles, user_role

from .services import dismiss, researcher_dashboard, reviewer_dashboard, staff_dashboard

logger = logging.getLogger(__name__)


def _handle_dismiss(request):
    item_id = request.POST.get('dismiss')
    if item_id:
        dismiss(request.session, item_id)
    return redirect(request.path)


def _display_name(request, fallback):
    user = request.user
    return user.get_full_name() or (user.email.split('@')[0] if user.email else '') or fallback


@require_roles(['Researcher'])
def researcher_dashboard_page(request):
    if request.method == 'POST':
        return _handle_dismiss(request)
    context = researcher_dashboard(request.user, request.session)
    context['display_name'] = _display_name(request, 'Researcher')
    context['fade_ms'] = settings.RECHECK_DISMISS_FADE_MS
    return render(request, 'dashboards/researcher.html', context)


@require_roles(['Reviewer'])
def reviewer_dashboard_page(request):
    if request.method == 'POST':
        return _handle_dismiss(request)
    context = reviewer_dashboard(request.user, request.session)
    context['display_name'] = _display_name(request, 'Reviewer')
    context['fade_ms'] = settings.RECHECK_DISMISS_FADE_MS
    return render(request, 'dashboards/reviewer.html', context)


@require_roles(['Staff'])
def staff_dashboard_page(request):
    if request.method == 'POST':
        return _handle_dismiss(request)
    context = staff_dashboard(request.session)
    context['display_name'] = _display_name(request, 'Staff')
    context['fade_ms'] = settings.RECHECK_DISMISS_FADE_MS
    return render(request, 'dashboards/staff.html', context)


def _serialize(data):
    """FeedItems and dataclass stats to plain JSON-ready values."""
    result = dict(data)
    result['feed'] = [item.to_dict() for item in data['feed']]
    if 'stats' in data:
        result['stats'] = [{'label': s.label, 'value': s.value} for s in data['stats']]
    return result


@api_view(['GET'])
@permission_classes([HasRole])
def dashboard_api(request):
    """
    Dashboard data for the caller's role.

    Outputs:
        Researcher: {role, submissions, feed, errors}
        Reviewer:   {role, stats, feed, deadlines, errors}
        Staff:      {role, counts, feed, deadlines, errors}

    A source that failed to load is empty and has a message in ``errors``.
    """
    role = user_role(request)
    if role == 'Researcher':
        data = researcher_dashboard(request.user, request.session)
    elif role == 'Reviewer':
        data = reviewer_dashboard(request.user, request.session)
    else:
        data = staff_dashboard(request.session)
    return Response({'role': role, **_serialize(data)})


@api_view(['POST'])
@permission_classes([HasRole])
def dismiss_api(request):
    """
    Hide a feed item for the rest of the session.

    Outputs: {dismissed: id, fade_ms} ; 400 when no id is given

    Side effects: session only, nothing is persisted
    """
    item_id = request.data.get('id')
    if not item_id:
        return Response({'error': 'id is required'}, status=status.HTTP_400_BAD_REQUEST)
    fade_ms = dismiss(request.session, str(item_id))
    return Response({'dismissed': str(item_id), 'fade_ms': fade_ms})
