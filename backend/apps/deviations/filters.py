"""
List filters for deviation reports.

Query parameters (``All`` or empty means "no filter"):
    search    - case-insensitive match on the protocol title
    severity  - '-' (not yet assessed), 'Minor' or 'Major'
    type      - deviation type
    status    - 'Reviewed' or 'Pending / View'

The same rules are available for already-serialized rows through
row_matches, which the realtime window uses to decide whether an updated
row still belongs on the current page.
"""

import django_filters
from django.conf import settings
from django.core.paginator import Paginator
from django.db.models import Q

from apps.core.gateway import PersistenceError, gateway, read_errors

from .models import DeviationReport
from .status import PENDING_VIEW, REVIEWED

UNSET_SEVERITY = ('-', 'Not Assigned')

FILTER_KEYS = ('search', 'severity', 'type', 'status')


def clean_params(params):
    """Drop 'All' and empty values; keep only known filter keys."""
    cleaned = {}
    for key in FILTER_KEYS:
        value = params.get(key)
        if value is None:
            continue
        value = str(value).strip()
        if value and value != 'All':
            cleaned[key] = value
    return cleaned


class DeviationFilter(django_filters.FilterSet):
    search = django_filters.CharFilter(field_name='protocol_title', lookup_expr='icontains')
    severity = django_filters.CharFilter(method='filter_severity')
    type = django_filters.CharFilter(field_name='type')
    status = django_filters.ChoiceFilter(
        method='filter_status',
        choices=[(REVIEWED, REVIEWED), (PENDING_VIEW, PENDING_VIEW)],
    )

    class Meta:
        model = DeviationReport
        fields = ['search', 'severity', 'type', 'status']

    def filter_severity(self, queryset, name, value):
        if value in UNSET_SEVERITY:
            return queryset.filter(Q(severity='') | Q(severity__isnull=True))
        return queryset.filter(severity=value)

    def filter_status(self, queryset, name, value):
        unset = Q(severity='') | Q(severity__isnull=True)
        if value == REVIEWED:
            return queryset.exclude(unset)
        return queryset.filter(unset)


class ResolutionFilter(django_filters.FilterSet):
    """Resolution reviews: search title or reporter, filter In Progress / Resolved."""

    STATUS_MAP = {'In Progress': 'in_progress', 'Resolved': 'resolved'}

    search = django_filters.CharFilter(method='filter_search')
    status = django_filters.ChoiceFilter(
        method='filter_status',
        choices=[('In Progress', 'In Progress'), ('Resolved', 'Resolved')],
    )

    class Meta:
        model = DeviationReport
        fields = ['search', 'status']

    def filter_search(self, queryset, name, value):
        return queryset.filter(Q(protocol_title__icontains=value) | Q(reported_by__icontains=value))

    def filter_status(self, queryset, name, value):
        return queryset.filter(resolution_status=self.STATUS_MAP[value])


def row_matches(row, params):
    """Apply the list filters to a serialized row (see DeviationRowSerializer)."""
    params = clean_params(params)
    if 'search' in params and params['search'].lower() not in (row.get('title') or '').lower():
        return False
    if 'severity' in params:
        wanted = '-' if params['severity'] in UNSET_SEVERITY else params['severity']
        if row.get('severity') != wanted:
            return False
    if 'type' in params and row.get('type') != params['type']:
        return False
    if 'status' in params and row.get('status') != params['status']:
        return False
    return True


def paginate(queryset, page, page_size, collection='deviation_reports'):
    """
    Slice a queryset into one page.

    An out-of-range or invalid page number falls back to page 1.

    Returns:
        (rows, total, page_number, page_count)
    """
    with read_errors(collection):
        paginator = Paginator(queryset, page_size)
        try:
            number = int(page)
        except (TypeError, ValueError):
            number = 1
        if number < 1 or number > paginator.num_pages:
            number = 1
        page_obj = paginator.page(number)
        return list(page_obj.object_list), paginator.count, number, paginator.num_pages


def deviation_page(params, page=1, page_size=None):
    """One page of the staff deviation list, newest first."""
    page_size = page_size or settings.RECHECK_DEVIATION_PAGE_SIZE
    queryset = gateway.queryset('deviation_reports').order_by('-created_at', '-pk')
    filterset = DeviationFilter(clean_params(params), queryset=queryset)
    return paginate(filterset.qs, page, page_size)


def resolution_page(params, page=1, page_size=10):
    """One page of submitted or approved resolutions, newest submission first."""
    queryset = gateway.queryset('deviation_reports').filter(
        resolution_status__in=['in_progress', 'resolved']
    ).order_by('-resolution_submission_date', '-pk')
    cleaned = {key: value for key, value in clean_params(params).items() if key in ('search', 'status')}
    filterset = ResolutionFilter(cleaned, queryset=queryset)
    return paginate(filterset.qs, page, page_size)


def type_options():
    """'All' plus the deviation types present in stored reports."""
    try:
        present = gateway.aggregate_counts('deviation_reports', 'type')
    except PersistenceError:
        return ['All']
    return ['All'] + sorted(t for t in present if t)


def serialized_deviation_page(params, page=1, page_size=None):
    """deviation_page with rows as DeviationRowSerializer dicts (DeviationWindow loader)."""
    from .serializers import DeviationRowSerializer

    rows, total, number, page_count = deviation_page(params, page, page_size)
    return [dict(row) for row in DeviationRowSerializer(rows, many=True).data], total, number, page_count
