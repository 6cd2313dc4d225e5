"""
Derived, never-stored status labels for deviation reports.

All functions accept a DeviationReport instance or a plain mapping (e.g. a
serialized row or realtime event payload) so list views, tests and the
change feed share one definition.
"""

REVIEWED = 'Reviewed'
PENDING_VIEW = 'Pending / View'

COMPLETED = 'Completed'
REVIEW_RESPONSE = 'Review Response'
ACTION_REQUIRED = 'Action Required'
VIEW_FEEDBACK = 'View Feedback'

RESOLUTION_LABELS = {
    'pending': 'Pending',
    'in_progress': 'In Progress',
    'resolved': 'Resolved',
    'rejected': 'Rejected',
}


def field_value(report, name):
    if isinstance(report, dict):
        return report.get(name)
    return getattr(report, name, None)


def _text(report, name):
    value = field_value(report, name)
    return value.strip() if isinstance(value, str) else ''


def has_severity(report):
    severity = field_value(report, 'severity')
    return severity is not None and severity != ''


def display_status(report):
    """'Reviewed' iff severity is set and non-empty, else 'Pending / View'."""
    return REVIEWED if has_severity(report) else PENDING_VIEW


def severity_label(report):
    return field_value(report, 'severity') if has_severity(report) else '-'


def feedback_text(report):
    """The staff feedback a researcher sees for this report's severity path."""
    if field_value(report, 'severity') == 'Major':
        return _text(report, 'corrective_action_feedback')
    return _text(report, 'review')


def has_feedback(report):
    return bool(_text(report, 'review') or _text(report, 'corrective_action_feedback'))


def resolution_status(report):
    """Normalized resolution status; unset is returned as ''."""
    return field_value(report, 'resolution_status') or ''


def action_status(report):
    """
    What the researcher needs to do next.

    Completed        -> resolution approved
    Review Response  -> resolution submitted, awaiting staff
    Action Required  -> feedback given, no resolution yet (or still pending)
    View Feedback    -> anything else, including a requested revision
    """
    status = resolution_status(report)
    if status == 'resolved':
        return COMPLETED
    if status == 'in_progress':
        return REVIEW_RESPONSE
    if has_feedback(report) and status in ('', 'pending'):
        return ACTION_REQUIRED
    return VIEW_FEEDBACK


def resolution_label(report):
    status = resolution_status(report)
    return RESOLUTION_LABELS.get(status, status or '-')
