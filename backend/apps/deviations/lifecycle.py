"""
Deviation Report Lifecycle.

States (derived by lifecycle_state):

    submitted -> assessed_minor ---------------------------+
              -> assessed_major (corrective action issued)  +-> resolution_in_progress
                                                                  -> resolved
                                                                  -> revision_requested -> resolution_in_progress

``awaiting_corrective_action`` only occurs for rows written as
``severity='Major'`` without feedback; issue_corrective_action re-enters them.

Every transition is a single write through the persistence gateway. Local
validation (required fields, required documents) runs before any upload or
write. Uploads in a batch run sequentially and the first failure aborts the
transition with nothing written; files uploaded before the failure stay in
the store.

Usage:
    from apps.deviations import lifecycle

    report = lifecycle.submit_report(request.POST, request.FILES.getlist('files'),
                                     reporter=request.user)
    lifecycle.assess_severity(report.pk, 'Minor', review='Looks fine')
"""

import logging
import re
from collections.abc import Mapping
from datetime import date, datetime

from django.utils import timezone
from django.utils.dateparse import parse_date

from apps.core.gateway import RecordNotFound, gateway
from apps.core.storage import UPLOAD_CONFIGS, FileUploadService, upload_errors

from .status import has_feedback, has_severity, resolution_status

logger = logging.getLogger(__name__)


DEVIATION_TYPES = (
    'Informed Consent',
    'Adverse Events',
    'Sample Collection',
    'Confidentiality Breach',
    'Regulatory Compliance',
    'Other',
)

SEVERITIES = ('Minor', 'Major')

# Report fields that must be non-empty on submission, with their labels
REQUIRED_REPORT_FIELDS = {
    'protocol_title': 'Protocol title',
    'protocol_code': 'Protocol code',
    'deviation_date': 'Deviation date',
    'deviation_description': 'Deviation description',
    'rationale': 'Rationale',
    'impact': 'Impact',
    'corrective_action': 'Corrective action',
    'reported_by': 'Reported by',
    'report_submission_date': 'Report submission date',
    'type': 'Type',
}

DATE_FIELDS = ('deviation_date', 'report_submission_date')

CORRECTIVE_ACTION_FIELDS = (
    'corrective_action_feedback',
    'corrective_action_required',
    'corrective_action_details',
    'corrective_action_docs',
    'corrective_action_docs_details',
    'corrective_action_deadline',
)

RESOLVABLE_STATUSES = ('', 'pending', 'rejected')


class LifecycleState:
    SUBMITTED = 'submitted'
    AWAITING_CORRECTIVE_ACTION = 'awaiting_corrective_action'
    ASSESSED_MINOR = 'assessed_minor'
    ASSESSED_MAJOR = 'assessed_major'
    RESOLUTION_IN_PROGRESS = 'resolution_in_progress'
    RESOLVED = 'resolved'
    REVISION_REQUESTED = 'revision_requested'


# ============================================================================
# Errors
# ============================================================================

class LifecycleError(Exception):
    """Base class for rejected lifecycle transitions."""


class ReportValidationError(LifecycleError):
    """Local validation failed; ``errors`` maps field name to message."""

    def __init__(self, errors):
        super().__init__('; '.join(f'{k}: {v}' for k, v in errors.items()))
        self.errors = errors


class UploadFailed(LifecycleError):
    """One or more attachments could not be uploaded; nothing was written."""

    def __init__(self, errors):
        super().__init__('; '.join(errors))
        self.errors = errors


class TransitionNotAllowed(LifecycleError):
    """The report is not in a state that permits this transition."""


class MissingReport(LifecycleError):
    """No report id was given, or it does not exist."""


# ============================================================================
# Helpers
# ============================================================================

def _snake(key):
    return re.sub(r'(?<!^)(?=[A-Z])', '_', key).lower()


def normalize_report_input(data):
    """Accept snake_case or camelCase keys (``reportedBy`` -> ``reported_by``)."""
    if not isinstance(data, Mapping):
        raise ReportValidationError({'report': 'Expected an object with the report fields.'})
    normalized = {}
    for key in data.keys():
        value = data.get(key)
        normalized[_snake(key)] = value.strip() if isinstance(value, str) else value
    return normalized


def _blank(value):
    return value is None or (isinstance(value, str) and not value.strip())


def _not_text(value):
    return not _blank(value) and not isinstance(value, str)


def _parse_date_field(values, name, errors):
    raw = values.get(name)
    if _blank(raw):
        return raw
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    if not isinstance(raw, str):
        errors[name] = 'Enter a valid date (YYYY-MM-DD).'
        return None
    try:
        parsed = parse_date(raw)
    except ValueError:
        parsed = None
    if parsed is None:
        errors[name] = 'Enter a valid date (YYYY-MM-DD).'
    return parsed


def _upload_batch(files, options, uploader):
    """Upload sequentially; raise UploadFailed at the first failure."""
    if not files:
        return []
    uploader = uploader or FileUploadService()
    results = uploader.upload_files(files, options, stop_on_error=True)
    errors = upload_errors(results, files)
    if errors:
        logger.warning('Attachment upload aborted: %s', errors)
        raise UploadFailed(errors)
    return [result.url for result in results]


def load_report(report_id):
    """Fetch a report or raise MissingReport."""
    if report_id in (None, ''):
        raise MissingReport('No deviation selected.')
    try:
        return gateway.get('deviation_reports', pk=report_id)
    except RecordNotFound:
        raise MissingReport(f'Deviation report {report_id} does not exist.')


# ============================================================================
# Transitions
# ============================================================================

def submit_report(data, files=(), reporter=None, uploader=None):
    """
    Create a deviation report.

    Args:
        data: Mapping with the report fields (snake_case or camelCase keys)
        files: Supporting documents to upload before the write
        reporter: Auth user recorded as the canonical reporter
        uploader: FileUploadService to use (default storage when None)

    Returns:
        The stored DeviationReport with severity and resolution status unset

    Raises:
        ReportValidationError, UploadFailed, PersistenceError
    """
    values = normalize_report_input(data)

    errors = {
        name: f'{label} is required.'
        for name, label in REQUIRED_REPORT_FIELDS.items()
        if _blank(values.get(name))
    }
    for name, label in REQUIRED_REPORT_FIELDS.items():
        if name not in errors and name not in DATE_FIELDS and _not_text(values[name]):
            errors[name] = f'{label} must be text.'
    if 'type' not in errors and values['type'] not in DEVIATION_TYPES:
        errors['type'] = f'Unknown deviation type: {values["type"]}'
    deviation_date = _parse_date_field(values, 'deviation_date', errors)
    submission_date = _parse_date_field(values, 'report_submission_date', errors)
    if errors:
        raise ReportValidationError(errors)

    documents = _upload_batch(
        list(files),
        UPLOAD_CONFIGS['DEVIATIONS'].in_folder('deviations/reports'),
        uploader,
    )

    report = gateway.insert('deviation_reports', {
        'protocol_title': values['protocol_title'],
        'protocol_code': values['protocol_code'],
        'type': values['type'],
        'deviation_date': deviation_date,
        'deviation_description': values['deviation_description'],
        'rationale': values['rationale'],
        'impact': values['impact'],
        'corrective_action': values['corrective_action'],
        'supporting_documents': documents,
        'reported_by': values['reported_by'],
        'reporter': reporter if getattr(reporter, 'is_authenticated', False) else None,
        'report_submission_date': submission_date,
    })
    logger.info('Deviation report %s submitted by %s', report.pk, report.reported_by)
    return report


def _validate_corrective_action(corrective_action):
    if not isinstance(corrective_action, Mapping):
        raise ReportValidationError({'corrective_action': 'Expected an object.'})
    values = {name: corrective_action.get(name) for name in CORRECTIVE_ACTION_FIELDS}
    for name, value in values.items():
        if isinstance(value, str):
            values[name] = value.strip()

    errors = {}
    if _blank(values['corrective_action_feedback']):
        errors['corrective_action_feedback'] = 'Deviation feedback is required.'
    if values['corrective_action_required'] not in ('changes', 'none'):
        errors['corrective_action_required'] = "Choose 'changes' or 'none'."
    if values['corrective_action_docs'] not in ('docs', 'none'):
        errors['corrective_action_docs'] = "Choose 'docs' or 'none'."
    for name in ('corrective_action_feedback', 'corrective_action_details', 'corrective_action_docs_details'):
        if name not in errors and _not_text(values[name]):
            errors[name] = 'Must be text.'
    values['corrective_action_deadline'] = _parse_date_field(values, 'corrective_action_deadline', errors)
    if errors:
        raise ReportValidationError(errors)

    for name in ('corrective_action_details', 'corrective_action_docs_details'):
        values[name] = values[name] or ''
    values['corrective_action_deadline'] = values['corrective_action_deadline'] or None
    return values


def _check_assessable(report):
    if resolution_status(report) in ('in_progress', 'resolved'):
        raise TransitionNotAllowed(
            'This deviation already has a resolution under review or approved.'
        )


def assess_severity(report_id, severity, review='', corrective_action=None, expected_version=None):
    """
    Record the staff assessment in one write.

    Minor: ``review`` is required and becomes the researcher's feedback.
    Major: ``corrective_action`` (the six corrective_action_* fields) is
    required and is written together with the severity, so a Major report
    is never stored without its feedback through this path.

    Raises:
        MissingReport, ReportValidationError, TransitionNotAllowed,
        StaleWriteError, PersistenceError
    """
    if severity not in SEVERITIES:
        raise ReportValidationError({'severity': 'Severity must be Minor or Major.'})

    report = load_report(report_id)
    _check_assessable(report)

    if severity == 'Minor':
        if _blank(review):
            raise ReportValidationError({'review': 'Deviation review is required.'})
        if not isinstance(review, str):
            raise ReportValidationError({'review': 'Deviation review must be text.'})
        values = {'severity': 'Minor', 'review': review.strip()}
    else:
        if corrective_action is None:
            raise ReportValidationError(
                {'corrective_action': 'Major deviations require a corrective action request.'}
            )
        values = {'severity': 'Major', **_validate_corrective_action(corrective_action)}

    values.update({'status': 'Reviewed', 'reviewed_at': timezone.now()})
    updated = gateway.update('deviation_reports', report.pk, values, expected_version=expected_version)
    logger.info('Deviation %s assessed as %s', report.pk, severity)
    return updated


def issue_corrective_action(report_id, corrective_action, expected_version=None):
    """
    Write the corrective action for a Major deviation.

    Also the re-entry path for reports left at ``severity='Major'`` without
    feedback. Fails closed with MissingReport when no report id is given.
    """
    report = load_report(report_id)
    _check_assessable(report)
    if has_severity(report) and report.severity != 'Major':
        raise TransitionNotAllowed('Corrective actions apply to Major deviations only.')

    values = {
        **_validate_corrective_action(corrective_action),
        'severity': 'Major',
        'status': 'Reviewed',
        'reviewed_at': report.reviewed_at or timezone.now(),
    }
    updated = gateway.update('deviation_reports', report.pk, values, expected_version=expected_version)
    logger.info('Corrective action issued for deviation %s', report.pk)
    return updated


def can_resolve(report):
    """
    A researcher may submit a resolution when the report has a severity,
    staff feedback, and no resolution pending or approved.
    """
    return (
        has_severity(report)
        and resolution_status(report) in RESOLVABLE_STATUSES
        and has_feedback(report)
    )


def resolution_documents_required(report):
    return report.severity == 'Major' and report.corrective_action_docs == 'docs'


def submit_resolution(report_id, researcher_response, actions_taken, notes='', files=(),
                      expected_version=None, uploader=None):
    """
    Submit the researcher's resolution; status becomes ``in_progress``.

    Raises:
        MissingReport, TransitionNotAllowed, ReportValidationError,
        UploadFailed, StaleWriteError, PersistenceError
    """
    report = load_report(report_id)
    if not can_resolve(report):
        raise TransitionNotAllowed('This deviation is not awaiting a resolution.')

    files = list(files)
    errors = {}
    if _blank(researcher_response):
        errors['researcher_response'] = 'Response to feedback is required.'
    if _blank(actions_taken):
        errors['resolution_actions_taken'] = 'Actions taken are required.'
    for name, value in (('researcher_response', researcher_response),
                        ('resolution_actions_taken', actions_taken),
                        ('resolution_notes', notes)):
        if name not in errors and _not_text(value):
            errors[name] = 'Must be text.'
    if resolution_documents_required(report) and not files:
        errors['resolution_supporting_documents'] = (
            'Supporting documents are required for this corrective action.'
        )
    if errors:
        raise ReportValidationError(errors)

    documents = _upload_batch(
        files,
        UPLOAD_CONFIGS['DEVIATIONS'].in_folder(f'deviations/resolutions/{report.pk}'),
        uploader,
    )

    values = {
        'resolution_status': 'in_progress',
        'researcher_response': researcher_response.strip(),
        'resolution_actions_taken': actions_taken.strip(),
        'resolution_notes': (notes or '').strip(),
        'resolution_supporting_documents': documents,
        'resolution_submission_date': timezone.now(),
    }
    if expected_version is None:
        expected_version = report.version
    updated = gateway.update('deviation_reports', report.pk, values, expected_version=expected_version)
    logger.info('Resolution submitted for deviation %s', report.pk)
    return updated


def acknowledge_resolution(report_id, acknowledgment, approve, expected_version=None):
    """
    Staff closure of a submitted resolution.

    approve=True  -> ``resolved``
    approve=False -> ``rejected`` (revision requested; researcher may resubmit)
    """
    if _blank(acknowledgment):
        field_message = 'Please provide acknowledgment notes.' if approve else 'Please provide revision notes.'
        raise ReportValidationError({'staff_acknowledgment': field_message})
    if not isinstance(acknowledgment, str):
        raise ReportValidationError({'staff_acknowledgment': 'Acknowledgment must be text.'})

    report = load_report(report_id)
    if resolution_status(report) != 'in_progress':
        raise TransitionNotAllowed('Only resolutions awaiting review can be acknowledged.')

    values = {
        'resolution_status': 'resolved' if approve else 'rejected',
        'staff_acknowledgment': acknowledgment.strip(),
        'staff_acknowledgment_date': timezone.now(),
    }
    if expected_version is None:
        expected_version = report.version
    updated = gateway.update('deviation_reports', report.pk, values, expected_version=expected_version)
    logger.info('Resolution for deviation %s %s', report.pk, values['resolution_status'])
    return updated


def lifecycle_state(report):
    """Derive the lifecycle state from the stored fields."""
    status = resolution_status(report)
    if status == 'resolved':
        return LifecycleState.RESOLVED
    if status == 'in_progress':
        return LifecycleState.RESOLUTION_IN_PROGRESS
    if status == 'rejected':
        return LifecycleState.REVISION_REQUESTED
    if not has_severity(report):
        return LifecycleState.SUBMITTED
    if report.severity == 'Minor':
        return LifecycleState.ASSESSED_MINOR
    if not has_feedback(report):
        return LifecycleState.AWAITING_CORRECTIVE_ACTION
    return LifecycleState.ASSESSED_MAJOR
