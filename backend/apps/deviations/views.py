"""
Views for the deviation report lifecycle.

Pages (role-gated):
    Researcher
        - report_form_page:         /researcher/deviation-report
        - submissions_page:         /researcher/submissions
        - feedback_detail_page:     /researcher/submissions/<id>
    Staff
        - deviations_page:          /staff/deviations
        - deviation_detail_page:    /staff/deviations/<id>
        - corrective_action_page:   /staff/corrective-action-request?deviation=<id>
        - resolution_reviews_page:  /staff/resolution-reviews
        - resolution_detail_page:   /staff/resolution-reviews/<id>

API (/api/v1/deviations/):
    - deviation_collection_api  GET list (Staff) / POST submit (Researcher)
    - my_submissions_api        GET mine/
    - deviation_detail_api      GET <id>/
    - assess_api                POST <id>/assess/
    - corrective_action_api     POST <id>/corrective-action/
    - resolution_api            POST <id>/resolution/
    - acknowledge_api           POST <id>/acknowledge/
    - resolutions_api           GET resolutions/
    - changes_api               GET changes/?after=N
"""

import logging

from django.conf import settings
from django.contrib import messages
from django.http import Http404
from django.shortcuts import redirect, render
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from apps.core.auth_helpers import HasRole, require_roles, user_role
from apps.core.gateway import PersistenceError, StaleWriteError

from . import lifecycle
from .filters import clean_params, deviation_page, paginate, resolution_page, row_matches, type_options
from .identity import is_reporter, reports_for_user
from .lifecycle import (
    DEVIATION_TYPES,
    LifecycleError,
    MissingReport,
    ReportValidationError,
    TransitionNotAllowed,
    UploadFailed,
)
from .realtime import feed
from .serializers import (
    AcknowledgmentInputSerializer,
    AssessmentInputSerializer,
    CorrectiveActionInputSerializer,
    DeviationReportSerializer,
    DeviationRowSerializer,
    ResolutionInputSerializer,
    ResolutionRowSerializer,
    SubmissionRowSerializer,
)
from .status import PENDING_VIEW, REVIEWED

logger = logging.getLogger(__name__)


SEVERITY_OPTIONS = ['All', '-', 'Minor', 'Major']
STATUS_OPTIONS = ['All', PENDING_VIEW, REVIEWED]
RESOLUTION_STATUS_OPTIONS = ['All', 'In Progress', 'Resolved']

STALE_MESSAGE = 'This report changed since you opened it. Reload and try again.'


def _optional_int(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _error_messages(error):
    """Flatten a lifecycle or persistence error into user-facing strings."""
    if isinstance(error, ReportValidationError):
        return list(error.errors.values())
    if isinstance(error, UploadFailed):
        return list(error.errors)
    if isinstance(error, StaleWriteError):
        return [STALE_MESSAGE]
    if isinstance(error, PersistenceError):
        return ['Something went wrong while saving. Please try again.']
    return [str(error)]


def _error_response(error):
    """Map lifecycle and persistence errors to API responses."""
    if isinstance(error, ReportValidationError):
        return Response({'error': 'Validation failed', 'errors': error.errors},
                        status=status.HTTP_400_BAD_REQUEST)
    if isinstance(error, UploadFailed):
        return Response({'error': 'Upload failed', 'errors': error.errors},
                        status=status.HTTP_400_BAD_REQUEST)
    if isinstance(error, MissingReport):
        return Response({'error': str(error)}, status=status.HTTP_404_NOT_FOUND)
    if isinstance(error, TransitionNotAllowed):
        return Response({'error': str(error), 'code': 'TRANSITION_NOT_ALLOWED'},
                        status=status.HTTP_409_CONFLICT)
    if isinstance(error, StaleWriteError):
        return Response({'error': STALE_MESSAGE, 'code': 'STALE_WRITE',
                         'expected_version': error.expected, 'current_version': error.actual},
                        status=status.HTTP_409_CONFLICT)
    logger.error('Deviation write failed: %s', error)
    return Response({'error': 'Could not save the deviation report'},
                    status=status.HTTP_503_SERVICE_UNAVAILABLE)


def _invalid_body(serializer):
    """400 response for a request body that failed its input serializer."""
    errors = {
        name: messages[0] if isinstance(messages, list) else messages
        for name, messages in serializer.errors.items()
    }
    return Response({'error': 'Validation failed', 'errors': errors},
                    status=status.HTTP_400_BAD_REQUEST)


def _load_or_404(report_id):
    try:
        return lifecycle.load_report(report_id)
    except MissingReport:
        raise Http404('Deviation report not found')


def _own_report_or_404(request, report_id):
    report = _load_or_404(report_id)
    if not is_reporter(request.user, report):
        raise Http404('Deviation report not found')
    return report


def _corrective_action_input(data):
    return {name: data.get(name, '') for name in lifecycle.CORRECTIVE_ACTION_FIELDS}


# ============================================================================
# Researcher pages
# ============================================================================

@require_roles(['Researcher'])
def report_form_page(request):
    """
    Deviation report form.

    POST validates every required field locally, uploads attachments, then
    writes the report. On success the form is reset; on failure nothing is
    stored and the entered values are kept.
    """
    values = {'reported_by': request.user.email, 'report_submission_date': timezone.localdate().isoformat()}
    errors = []

    if request.method == 'POST':
        values = request.POST.dict()
        try:
            report = lifecycle.submit_report(
                request.POST,
                request.FILES.getlist('supporting_documents'),
                reporter=request.user,
            )
            messages.success(request, f'Deviation report "{report.protocol_title}" submitted.')
            return redirect('deviations:report-form')
        except (LifecycleError, PersistenceError) as e:
            errors = _error_messages(e)

    return render(request, 'deviations/report_form.html', {
        'values': values,
        'errors': errors,
        'deviation_types': DEVIATION_TYPES,
    })


@require_roles(['Researcher'])
def submissions_page(request):
    """The researcher's own deviation reports with search, type and status filters."""
    params = clean_params(request.GET)
    error_message = None
    try:
        reports = reports_for_user(request.user)
    except PersistenceError:
        reports = []
        error_message = 'Could not load submissions.'

    rows = [row for row in SubmissionRowSerializer(reports, many=True).data if row_matches(row, params)]
    page_rows, _, page, page_count = paginate(rows, request.GET.get('page', 1), settings.RECHECK_DEVIATION_PAGE_SIZE)

    return render(request, 'deviations/submissions.html', {
        'rows': page_rows,
        'page': page,
        'page_count': page_count,
        'params': params,
        'type_options': ['All'] + sorted({row['type'] for row in rows if row['type'] != '-'}),
        'status_options': STATUS_OPTIONS,
        'error_message': error_message,
    })


@require_roles(['Researcher'])
def feedback_detail_page(request, report_id):
    """Staff feedback for one of the researcher's reports, plus the resolution form."""
    report = _own_report_or_404(request, report_id)
    errors = []

    if request.method == 'POST':
        try:
            report = lifecycle.submit_resolution(
                report.pk,
                request.POST.get('researcher_response', ''),
                request.POST.get('resolution_actions_taken', ''),
                notes=request.POST.get('resolution_notes', ''),
                files=request.FILES.getlist('resolution_supporting_documents'),
                expected_version=_optional_int(request.POST.get('version')),
            )
            messages.success(request, 'Resolution submitted for staff review.')
            return redirect('deviations:feedback-detail', report_id=report.pk)
        except (LifecycleError, PersistenceError) as e:
            errors = _error_messages(e)

    return render(request, 'deviations/feedback_detail.html', {
        'report': report,
        'detail': DeviationReportSerializer(report).data,
        'errors': errors,
    })


# ============================================================================
# Staff pages
# ============================================================================

@require_roles(['Staff'])
def deviations_page(request):
    params = clean_params(request.GET)
    error_message = None
    try:
        reports, total, page, page_count = deviation_page(params, request.GET.get('page', 1))
    except PersistenceError:
        reports, total, page, page_count = [], 0, 1, 1
        error_message = 'Could not load deviations.'

    return render(request, 'deviations/staff_list.html', {
        'rows': DeviationRowSerializer(reports, many=True).data,
        'total': total,
        'page': page,
        'page_count': page_count,
        'params': params,
        'severity_options': SEVERITY_OPTIONS,
        'type_options': type_options(),
        'status_options': STATUS_OPTIONS,
        'change_cursor': feed.last_seq,
        'error_message': error_message,
    })


@require_roles(['Staff'])
def deviation_detail_page(request, report_id):
    """
    Report detail with the severity assessment.

    Minor: the review text is saved with the severity in one write.
    Major: continues to the corrective action request, where severity and
           corrective action are saved together.
    """
    report = _load_or_404(report_id)
    errors = []

    if request.method == 'POST':
        severity = request.POST.get('severity')
        if severity == 'Major':
            return redirect(f"{reverse('deviations:corrective-action')}?deviation={report.pk}")
        try:
            lifecycle.assess_severity(
                report.pk, severity,
                review=request.POST.get('review', ''),
                expected_version=_optional_int(request.POST.get('version')),
            )
            messages.success(request, 'Deviation review has been saved and sent to the Researcher')
            return redirect('deviations:staff-detail', report_id=report.pk)
        except (LifecycleError, PersistenceError) as e:
            errors = _error_messages(e)

    return render(request, 'deviations/staff_detail.html', {
        'report': report,
        'detail': DeviationReportSerializer(report).data,
        'errors': errors,
    })


@require_roles(['Staff'])
def corrective_action_page(request):
    """
    Corrective action request for a Major deviation.

    Without a deviation id in the query string the page shows an error and
    writes nothing.
    """
    report_id = request.GET.get('deviation') or request.POST.get('deviation')
    report = None
    errors = []
    try:
        report = lifecycle.load_report(report_id)
    except MissingReport as e:
        errors = [str(e)]

    if request.method == 'POST' and report is not None:
        corrective_action = _corrective_action_input(request.POST)
        expected_version = _optional_int(request.POST.get('version'))
        try:
            if report.severity == 'Major':
                lifecycle.issue_corrective_action(report.pk, corrective_action, expected_version)
            else:
                lifecycle.assess_severity(report.pk, 'Major', corrective_action=corrective_action,
                                          expected_version=expected_version)
            messages.success(request, 'Corrective action submitted!')
            return redirect('deviations:staff-detail', report_id=report.pk)
        except (LifecycleError, PersistenceError) as e:
            errors = _error_messages(e)

    return render(request, 'deviations/corrective_action.html', {
        'report': report,
        'values': request.POST if request.method == 'POST' else {},
        'errors': errors,
    })


@require_roles(['Staff'])
def resolution_reviews_page(request):
    params = {key: value for key, value in clean_params(request.GET).items() if key in ('search', 'status')}
    error_message = None
    try:
        reports, total, page, page_count = resolution_page(params, request.GET.get('page', 1))
    except PersistenceError:
        reports, total, page, page_count = [], 0, 1, 1
        error_message = 'Could not load resolutions.'

    return render(request, 'deviations/resolution_reviews.html', {
        'rows': ResolutionRowSerializer(reports, many=True).data,
        'total': total,
        'page': page,
        'page_count': page_count,
        'params': params,
        'status_options': RESOLUTION_STATUS_OPTIONS,
        'error_message': error_message,
    })


@require_roles(['Staff'])
def resolution_detail_page(request, report_id):
    """Approve a resolution or request a revision."""
    report = _load_or_404(report_id)
    errors = []

    if request.method == 'POST':
        approve = request.POST.get('decision') == 'approve'
        try:
            lifecycle.acknowledge_resolution(
                report.pk,
                request.POST.get('staff_acknowledgment', ''),
                approve=approve,
                expected_version=_optional_int(request.POST.get('version')),
            )
            messages.success(request, 'Resolution approved successfully!' if approve
                             else 'Revision requested successfully!')
            return redirect('deviations:resolution-reviews')
        except (LifecycleError, PersistenceError) as e:
            errors = _error_messages(e)

    return render(request, 'deviations/resolution_detail.html', {
        'report': report,
        'detail': DeviationReportSerializer(report).data,
        'errors': errors,
    })


# ============================================================================
# API
# ============================================================================

@api_view(['GET', 'POST'])
@permission_classes([HasRole.of('Staff', 'Researcher')])
def deviation_collection_api(request):
    """
    API endpoint for the deviation report collection.

    GET (Staff): one filtered page of the deviation list.
        Inputs (query parameters): search, severity, type, status, page
        Outputs: {results, count, page, page_count, page_size,
                  type_options, cursor, epoch}
        On a read failure: empty results plus a message.

    POST (Researcher): submit a new report.
        Inputs: report fields (JSON or multipart), files under
                ``supporting_documents``
        Outputs: 201 with the stored report

    Usage: GET /api/v1/deviations/?severity=-&page=2
    """
    role = user_role(request)

    if request.method == 'POST':
        if role != 'Researcher':
            return Response({'error': 'Access denied'}, status=status.HTTP_403_FORBIDDEN)
        try:
            report = lifecycle.submit_report(
                request.data,
                request.FILES.getlist('supporting_documents'),
                reporter=request.user,
            )
        except (LifecycleError, PersistenceError) as e:
            return _error_response(e)
        return Response(DeviationReportSerializer(report).data, status=status.HTTP_201_CREATED)

    if role != 'Staff':
        return Response({'error': 'Access denied'}, status=status.HTTP_403_FORBIDDEN)

    params = clean_params(request.query_params)
    cursor = feed.last_seq
    try:
        reports, total, page, page_count = deviation_page(params, request.query_params.get('page', 1))
    except PersistenceError:
        return Response({
            'results': [],
            'count': 0,
            'page': 1,
            'page_count': 1,
            'cursor': cursor,
            'epoch': feed.epoch,
            'message': 'Could not load deviations.',
        })

    return Response({
        'results': DeviationRowSerializer(reports, many=True).data,
        'count': total,
        'page': page,
        'page_count': page_count,
        'page_size': settings.RECHECK_DEVIATION_PAGE_SIZE,
        'type_options': type_options(),
        'cursor': cursor,
        'epoch': feed.epoch,
    })


@api_view(['GET'])
@permission_classes([HasRole.of('Researcher')])
def my_submissions_api(request):
    """
    The caller's own deviation reports, newest first.

    Matching goes through the reporter identity resolver, so legacy rows
    recorded under a name or email local part are included.
    """
    try:
        reports = reports_for_user(request.user)
    except PersistenceError:
        return Response({'results': [], 'message': 'Could not load submissions.'})
    params = clean_params(request.query_params)
    rows = [row for row in SubmissionRowSerializer(reports, many=True).data if row_matches(row, params)]
    return Response({'results': rows, 'count': len(rows)})


@api_view(['GET'])
@permission_classes([HasRole.of('Staff', 'Researcher')])
def deviation_detail_api(request, report_id):
    if user_role(request) == 'Staff':
        report = _load_or_404(report_id)
    else:
        report = _own_report_or_404(request, report_id)
    return Response(DeviationReportSerializer(report).data)


@api_view(['POST'])
@permission_classes([HasRole.of('Staff')])
def assess_api(request, report_id):
    """
    Record the severity assessment in a single write.

    Inputs (JSON body):
        - severity: 'Minor' | 'Major'
        - review: required for Minor
        - corrective_action: object with the corrective_action_* fields,
          required for Major
        - version: optional, rejects the write if the report changed

    Outputs: the updated report, or {error, ...} with 400/404/409
    """
    body = AssessmentInputSerializer(data=request.data)
    if not body.is_valid():
        return _invalid_body(body)
    try:
        report = lifecycle.assess_severity(
            report_id,
            body.validated_data['severity'],
            review=body.validated_data['review'],
            corrective_action=body.validated_data['corrective_action'],
            expected_version=body.validated_data['version'],
        )
    except (LifecycleError, PersistenceError) as e:
        return _error_response(e)
    return Response(DeviationReportSerializer(report).data)


@api_view(['POST'])
@permission_classes([HasRole.of('Staff')])
def corrective_action_api(request, report_id):
    body = CorrectiveActionInputSerializer(data=request.data)
    if not body.is_valid():
        return _invalid_body(body)
    try:
        report = lifecycle.issue_corrective_action(
            report_id,
            body.corrective_action(),
            expected_version=body.validated_data['version'],
        )
    except (LifecycleError, PersistenceError) as e:
        return _error_response(e)
    return Response(DeviationReportSerializer(report).data)


@api_view(['POST'])
@permission_classes([HasRole.of('Researcher')])
def resolution_api(request, report_id):
    """
    Submit the researcher's resolution.

    Inputs (multipart or JSON): researcher_response, resolution_actions_taken,
        resolution_notes, version, files under resolution_supporting_documents

    Outputs: the updated report (resolution_status 'in_progress')
    """
    _own_report_or_404(request, report_id)
    body = ResolutionInputSerializer(data=request.data)
    if not body.is_valid():
        return _invalid_body(body)
    try:
        report = lifecycle.submit_resolution(
            report_id,
            body.validated_data['researcher_response'],
            body.validated_data['resolution_actions_taken'],
            notes=body.validated_data['resolution_notes'],
            files=request.FILES.getlist('resolution_supporting_documents'),
            expected_version=body.validated_data['version'],
        )
    except (LifecycleError, PersistenceError) as e:
        return _error_response(e)
    return Response(DeviationReportSerializer(report).data)


@api_view(['POST'])
@permission_classes([HasRole.of('Staff')])
def acknowledge_api(request, report_id):
    """
    Approve a resolution or request a revision.

    Inputs (JSON body): acknowledgment, decision ('approve' | 'revise'), version
    """
    body = AcknowledgmentInputSerializer(data=request.data)
    if not body.is_valid():
        return _invalid_body(body)
    try:
        report = lifecycle.acknowledge_resolution(
            report_id,
            body.validated_data['acknowledgment'],
            approve=body.validated_data['decision'] == 'approve',
            expected_version=body.validated_data['version'],
        )
    except (LifecycleError, PersistenceError) as e:
        return _error_response(e)
    return Response(DeviationReportSerializer(report).data)


@api_view(['GET'])
@permission_classes([HasRole.of('Staff')])
def resolutions_api(request):
    params = {key: value for key, value in clean_params(request.query_params).items()
              if key in ('search', 'status')}
    try:
        reports, total, page, page_count = resolution_page(params, request.query_params.get('page', 1))
    except PersistenceError:
        return Response({'results': [], 'count': 0, 'message': 'Could not load resolutions.'})
    return Response({
        'results': ResolutionRowSerializer(reports, many=True).data,
        'count': total,
        'page': page,
        'page_count': page_count,
    })


@api_view(['GET'])
@permission_classes([HasRole.of('Staff')])
def changes_api(request):
    """
    Deviation change events after a cursor.

    Inputs (query parameters):
        - after: last sequence number the client has applied (default 0)
        - epoch: the epoch the cursor came with, if the client has one

    Outputs: {events: [{seq, event, record, at}], cursor, epoch, reset}
        ``reset`` means the cursor cannot be replayed; re-query the page.

    Usage: GET /api/v1/deviations/changes/?after=42
    """
    after = _optional_int(request.query_params.get('after')) or 0
    events, reset = feed.since(after, epoch=request.query_params.get('epoch') or None)
    return Response({
        'events': [event.to_dict() for event in events],
        'cursor': feed.last_seq,
        'epoch': feed.epoch,
        'reset': reset,
    })
