"""
Dashboard aggregation for the three portal roles.

Each dashboard gathers several independent sources, maps them to FeedItems
and merges them newest first. A source that fails to load contributes
nothing and records a message under ``errors``; the rest of the dashboard
still renders.

Dismissing a feed item only hides it for the current session. Nothing is
written to the store.

Usage:
    from apps.dashboards.services import researcher_dashboard

    data = researcher_dashboard(request.user, request.session)
    data['feed']        # [FeedItem, ...] newest first, dismissed items removed
    data['errors']      # {'notifications': 'Notifications could not be loaded.'}
"""

import logging
from dataclasses import asdict, dataclass
from datetime import date, datetime, time, timezone as dt_timezone

from django.conf import settings
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

from apps.announcements.services import announcements_for_role, notifications_for
from apps.core.gateway import PersistenceError, gateway
from apps.deviations.identity import reports_for_user
from apps.deviations.status import display_status, has_severity
from apps.reviews.services import activities, assigned_reviews_for, reviewer_stats, upcoming_deadlines

logger = logging.getLogger(__name__)


DISMISSED_SESSION_KEY = 'dashboard_dismissed'

# Oldest possible instant; undated items sort last
_EPOCH = datetime(1970, 1, 1, tzinfo=dt_timezone.utc)


@dataclass
class FeedItem:
    id: str
    title: str
    date: object = None
    type: str = ''
    description: str = ''
    link: str = ''

    def to_dict(self):
        data = asdict(self)
        data['date'] = self.date.isoformat() if hasattr(self.date, 'isoformat') else self.date
        return data


def normalize_date(value):
    """
    Coerce a date, datetime or ISO string to an aware datetime for ordering.

    Missing or unparseable values become the epoch.
    """
    if value is None or value == '':
        return _EPOCH
    if isinstance(value, str):
        parsed = parse_datetime(value)
        if parsed is None:
            day = parse_date(value)
            if day is None:
                return _EPOCH
            parsed = datetime.combine(day, time.min)
        value = parsed
    elif isinstance(value, date) and not isinstance(value, datetime):
        value = datetime.combine(value, time.min)
    if timezone.is_naive(value):
        value = timezone.make_aware(value, dt_timezone.utc)
    return value


def sort_newest_first(items):
    return sorted(items, key=lambda item: normalize_date(item.date), reverse=True)


def merge_feed(*sources, limit=None):
    """Concatenate feed sources and order newest first (stable for equal dates)."""
    merged = sort_newest_first([item for source in sources for item in source])
    if limit is not None:
        return merged[:limit]
    return merged


# ============================================================================
# Dismiss (session scoped)
# ============================================================================

def dismissed_ids(session):
    return set(session.get(DISMISSED_SESSION_KEY, []))


def dismiss(session, item_id):
    """Hide one feed item for the rest of the session."""
    hidden = session.get(DISMISSED_SESSION_KEY, [])
    if item_id and item_id not in hidden:
        session[DISMISSED_SESSION_KEY] = hidden + [item_id]
    return settings.RECHECK_DISMISS_FADE_MS


def without_dismissed(items, session):
    hidden = dismissed_ids(session) if session is not None else set()
    return [item for item in items if item.id not in hidden]


# ============================================================================
# Feed item mappers
# ============================================================================

def reviewed_items(reports):
    """A "Deviation Reviewed" entry for every assessed report."""
    return [
        FeedItem(
            id=f'reviewed-{report.pk}',
            type='reviewed',
            title='Deviation Reviewed',
            description=f'Your Deviation "{report.protocol_title}" has been reviewed.',
            date=report.reviewed_at or report.updated_at or report.report_submission_date,
            link=f'/researcher/submissions/{report.pk}',
        )
        for report in reports
        if has_severity(report)
    ]


def notification_items(notifications):
    return [
        FeedItem(
            id=f'notif-{n.pk}',
            type=n.type,
            title=n.title,
            description=n.description,
            date=n.created_at,
        )
        for n in notifications
    ]


def announcement_items(announcements):
    return [
        FeedItem(
            id=f'anno-{a.pk}',
            type='announcement',
            title=f'Announcement: {a.title}',
            description=a.description,
            date=a.created_at,
            link='/announcements',
        )
        for a in announcements
    ]


def assignment_items(assignments):
    return [
        FeedItem(
            id=f'assign-{row["id"]}',
            type='assignment',
            title=f'New Proposal Assigned: {row["title"]}',
            date=row['date_assigned'],
            link='/reviewer/reviews',
        )
        for row in assignments
    ]


def activity_items(rows, prefix=''):
    return [
        FeedItem(id=f'{prefix}{row["id"]}', type=row.get('type') or '', title=row['title'], date=row['date'])
        for row in rows
    ]


def deviation_items(reports):
    return [
        FeedItem(
            id=f'devi-{report.pk}',
            type='deviation',
            title=f'Deviation submitted: {report.protocol_title}',
            date=report.report_submission_date,
            link=f'/staff/deviations/{report.pk}',
        )
        for report in reports
    ]


def proposal_items(proposals):
    items = []
    for proposal in proposals:
        status = f' ({proposal.status})' if proposal.status else ''
        items.append(FeedItem(
            id=f'prop-{proposal.pk}',
            type='proposal',
            title=f'Proposal{status}: {proposal.display_title}',
            date=proposal.submitted_at or proposal.created_at,
        ))
    return items


def compose_staff_feed(deviations, proposals, activity, size=None, per_source=2):
    """
    Staff activity feed.

    The ``per_source`` newest deviations, then the ``per_source`` newest
    proposals, then the newest remaining items of all three sources until
    the feed holds ``size`` entries.
    """
    size = size or settings.RECHECK_FEED_LIMIT
    deviations = sort_newest_first(deviations)
    proposals = sort_newest_first(proposals)
    activity = sort_newest_first(activity)

    result = deviations[:per_source] + proposals[:per_source]
    result = result[:size]
    remaining = size - len(result)
    if remaining > 0:
        taken = {item.id for item in result}
        pool = merge_feed(deviations, proposals, activity)
        result.extend([item for item in pool if item.id not in taken][:remaining])
    return result


# ============================================================================
# Dashboards
# ============================================================================

def _load(errors, key, message, loader, default=None):
    """Run one source loader; on PersistenceError log, record the message and return default."""
    try:
        return loader()
    except PersistenceError as e:
        logger.error('Dashboard source %s failed: %s', key, e)
        errors[key] = message
        return [] if default is None else default


def researcher_dashboard(user, session=None):
    """
    Researcher dashboard.

    Returns:
        dict with
            submissions: [{id, title, date, status}] own reports, newest first
            feed: merged reviewed entries, notifications and announcements
            errors: {source: message}
    """
    errors = {}
    reports = _load(
        errors, 'submissions', 'Your submissions could not be loaded.',
        lambda: reports_for_user(user, order_by=['-report_submission_date', '-created_at']),
    )
    notifications = _load(
        errors, 'notifications', 'Notifications could not be loaded.',
        lambda: notifications_for(user.email),
    )
    announcements = _load(
        errors, 'announcements', 'Announcements could not be loaded.',
        lambda: announcements_for_role('Researcher'),
    )

    submissions = [
        {
            'id': report.pk,
            'title': report.protocol_title,
            'date': report.report_submission_date,
            'status': display_status(report),
        }
        for report in reports
    ]
    feed = merge_feed(
        reviewed_items(reports),
        notification_items(notifications),
        announcement_items(announcements),
    )
    return {
        'submissions': submissions,
        'feed': without_dismissed(feed, session),
        'errors': errors,
    }


def reviewer_dashboard(user, session=None):
    """Reviewer dashboard: stats, merged recent activity and upcoming deadlines."""
    errors = {}
    limit = settings.RECHECK_FEED_LIMIT
    announcements = _load(
        errors, 'announcements', 'Announcements could not be loaded.',
        lambda: announcements_for_role('Reviewer'),
    )
    feed = merge_feed(
        assignment_items(assigned_reviews_for(user)),
        announcement_items(announcements[:limit]),
        activity_items(activities(reviewer=user), prefix='review-'),
    )
    stats = reviewer_stats(user)
    if not stats:
        errors['stats'] = 'Review statistics could not be loaded.'
    return {
        'stats': stats,
        'feed': without_dismissed(feed, session),
        'deadlines': upcoming_deadlines(reviewer=user),
        'errors': errors,
    }


def staff_counts():
    """Total applications, pending reviews and approved proposals."""
    return {
        'total_applications': gateway.count('proposals'),
        'pending_reviews': gateway.count('reviews', exclude={'status': 'Completed'}),
        'approved': gateway.count('proposals', filters={'status': 'Approved'}),
    }


def staff_dashboard(session=None):
    """Staff dashboard: counts, the composed activity feed and upcoming deadlines."""
    errors = {}
    limit = settings.RECHECK_FEED_LIMIT
    counts = _load(
        errors, 'counts', 'Counts could not be loaded.', staff_counts,
        default={'total_applications': 0, 'pending_reviews': 0, 'approved': 0},
    )
    deviations = _load(
        errors, 'deviations', 'Recent deviations could not be loaded.',
        lambda: gateway.select('deviation_reports', order_by=['-report_submission_date', '-created_at'],
                               limit=limit),
    )
    proposals = _load(
        errors, 'proposals', 'Recent proposals could not be loaded.',
        lambda: gateway.select('proposals', order_by=['-created_at'], limit=limit),
    )
    feed = compose_staff_feed(
        deviation_items(deviations),
        proposal_items(proposals),
        activity_items(activities(limit=limit), prefix='act-'),
        size=limit,
    )
    return {
        'counts': counts,
        'feed': without_dismissed(feed, session),
        'deadlines': upcoming_deadlines(limit=limit),
        'errors': errors,
    }
