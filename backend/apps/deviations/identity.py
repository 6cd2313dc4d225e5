"""
Reporter identity resolution.

Historical ``reported_by`` values hold an email, a full name, a short name or
the email local part, depending on which form created the row. New rows also
carry the canonical ``reporter`` foreign key. This module is the one place
that maps a signed-in user to "their" reports:

    1. exact query: reporter FK, or reported_by in the candidate identifiers
    2. if that finds nothing: read every report and keep rows whose
       reported_by contains any candidate (case-insensitive)
"""

import logging

from django.db.models import Q

from apps.core.gateway import PersistenceError, gateway

logger = logging.getLogger(__name__)


DEFAULT_ORDER = ['-report_submission_date', '-created_at']


def candidate_identifiers(email, full_name='', short_name=''):
    """
    Ordered, de-duplicated identifiers a user may appear under.

    >>> candidate_identifiers('ana.cruz@uni.edu', 'Ana Cruz')
    ['ana.cruz@uni.edu', 'Ana Cruz', 'ana.cruz']
    """
    candidates = []
    local_part = email.split('@')[0] if email else ''
    for value in (email, full_name, short_name, local_part):
        value = (value or '').strip()
        if value and value not in candidates:
            candidates.append(value)
    return candidates


def candidates_for_user(user):
    """Candidate identifiers for an auth user, preferring the ``users`` profile name."""
    if user is None or not getattr(user, 'is_authenticated', False):
        return []
    full_name = ''
    try:
        rows = gateway.select('users', filters={'email__iexact': user.email}, limit=1)
        if rows:
            full_name = rows[0].full_name
    except PersistenceError as e:
        logger.warning('Profile lookup for %s failed: %s', user.email, e)
    return candidate_identifiers(
        user.email,
        full_name or user.get_full_name(),
        user.get_short_name(),
    )


def matches_candidates(reported_by, candidates):
    """Case-insensitive substring match of any candidate within reported_by."""
    reported = (reported_by or '').lower()
    return any(candidate.lower() in reported for candidate in candidates)


def reports_for_user(user, order_by=None):
    """
    All deviation reports belonging to ``user``.

    Raises:
        PersistenceError: when the store cannot be read
    """
    order_by = order_by or DEFAULT_ORDER
    candidates = candidates_for_user(user)
    if not candidates:
        return []

    rows = gateway.select(
        'deviation_reports',
        q=Q(reporter=user) | Q(reported_by__in=candidates),
        order_by=order_by,
    )
    if rows:
        return rows

    logger.debug('No exact reporter match for %s, falling back to substring match', user.email)
    everything = gateway.select('deviation_reports', order_by=order_by)
    return [row for row in everything if matches_candidates(row.reported_by, candidates)]


def is_reporter(user, report):
    """Whether ``report`` belongs to ``user`` under the same matching rules."""
    if report.reporter_id is not None:
        return report.reporter_id == getattr(user, 'pk', None)
    return matches_candidates(report.reported_by, candidates_for_user(user))
