"""
Views for the ethics forms catalog.

Pages:
    - forms_page: /researcher/forms (catalog, active form via ?form=<id>)

API:
    - forms_catalog_api: GET  /api/v1/forms/
    - form_detail_api:   GET  /api/v1/forms/<form_id>/
    - form_preview_api:  POST /api/v1/forms/<form_id>/preview/
    - form_submit_api:   POST /api/v1/forms/<form_id>/submit/
"""

import logging

from django.contrib import messages
from django.http import Http404
from django.shortcuts import redirect, render
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from apps.core.auth_helpers import HasRole, require_roles
from apps.core.gateway import PersistenceError

from .catalog import FORMS_CATALOG, form_categories, forms_by_category, get_form, submission_counts
from .renderer import FormSession, SubmissionInvalid, build_form_class, completion, visible_fields

logger = logging.getLogger(__name__)


def _form_values(data, definition):
    """Pick the catalog field values out of request data (QueryDict or dict)."""
    values = {}
    for field in definition.fields:
        if field.name in data:
            value = data.get(field.name)
            values[field.name] = value
    return values


@require_roles(['Researcher'])
def forms_page(request):
    """
    Forms catalog page with an optional active form.

    GET  ?form=<id>  renders the form with its completion indicator
    POST ?form=<id>  validates through the generated Django form and stores
                     the submission; the captured payload is shown back
    """
    form_id = request.GET.get('form')
    definition = get_form(form_id) if form_id else None
    django_form = None
    payload = None
    values = {}

    if definition is not None:
        if request.method == 'POST' and 'reset' in request.POST:
            return redirect(f'{request.path}?form={definition.id}')

        values = _form_values(request.POST, definition) if request.method == 'POST' else {}
        form_class = build_form_class(definition, values)

        if request.method == 'POST':
            django_form = form_class(request.POST, request.FILES)
            if django_form.is_valid():
                session = FormSession(definition, {**values, **django_form.cleaned_data})
                try:
                    payload = session.submit(submitted_by=request.user)
                    messages.success(request, f'{definition.title} submitted.')
                    django_form = form_class()
                    values = {}
                except (SubmissionInvalid, PersistenceError) as e:
                    logger.error('Submission of %s failed: %s', definition.id, e)
                    messages.error(request, 'Could not submit the form. Please try again.')
        else:
            django_form = form_class()

    counts = submission_counts()
    return render(request, 'submissions/forms.html', {
        'categories': {
            category: [(form, counts.get(form.id, 0)) for form in forms]
            for category, forms in forms_by_category().items()
        },
        'counts': counts,
        'definition': definition,
        'form': django_form,
        'completion': completion(definition, values) if definition else None,
        'payload': payload,
    })


@api_view(['GET'])
@permission_classes([HasRole.of('Researcher', 'Staff')])
def forms_catalog_api(request):
    """
    API endpoint for the forms catalog.

    Outputs: JSON object containing:
        - forms: every catalog definition (fields included)
        - categories: distinct categories in catalog order
        - counts: form_id -> stored submission count

    Usage: GET /api/v1/forms/?mine=1
    """
    mine = request.query_params.get('mine') in ('1', 'true')
    return Response({
        'forms': [definition.to_dict() for definition in FORMS_CATALOG],
        'categories': form_categories(),
        'counts': submission_counts(request.user if mine else None),
    })


@api_view(['GET'])
@permission_classes([HasRole.of('Researcher', 'Staff')])
def form_detail_api(request, form_id):
    definition = get_form(form_id)
    if definition is None:
        raise Http404(f'Unknown form {form_id}')
    return Response(definition.to_dict())


@api_view(['POST'])
@permission_classes([HasRole.of('Researcher')])
def form_preview_api(request, form_id):
    """
    Evaluate visibility and completion for a partial value map.

    Purpose: lets a client render the form incrementally without owning the
             conditional-display and completion rules.

    Inputs (JSON body): {field_name: value, ...}

    Outputs: {visible_fields: [names], completion: {filled, total, percent}}

    Side effects: None
    """
    definition = get_form(form_id)
    if definition is None:
        raise Http404(f'Unknown form {form_id}')
    values = _form_values(request.data, definition)
    return Response({
        'visible_fields': [f.name for f in visible_fields(definition, values)],
        'completion': completion(definition, values).to_dict(),
    })


@api_view(['POST'])
@permission_classes([HasRole.of('Researcher')])
def form_submit_api(request, form_id):
    """
    Submit a catalog form.

    Inputs: form field values as JSON or multipart data

    Outputs:
        201 {payload, count} on success
        400 {error, errors} when visible required fields are missing or invalid
        503 {error} when the submission could not be stored

    Side effects: inserts one form_submissions row
    """
    definition = get_form(form_id)
    if definition is None:
        raise Http404(f'Unknown form {form_id}')

    values = _form_values(request.data, definition)
    form_class = build_form_class(definition, values)
    django_form = form_class(data=request.data, files=request.FILES)
    if not django_form.is_valid():
        return Response(
            {'error': 'Validation failed', 'errors': django_form.errors},
            status=status.HTTP_400_BAD_REQUEST
        )

    session = FormSession(definition, {**values, **django_form.cleaned_data})
    try:
        payload = session.submit(submitted_by=request.user)
    except SubmissionInvalid as e:
        return Response(
            {'error': str(e), 'errors': {name: ['This field is required.'] for name in e.missing}},
            status=status.HTTP_400_BAD_REQUEST
        )
    except PersistenceError as e:
        logger.error('Submission of %s failed: %s', form_id, e)
        return Response({'error': 'Could not store the submission'},
                        status=status.HTTP_503_SERVICE_UNAVAILABLE)

    return Response({
        'payload': payload,
        'count': submission_counts()[definition.id],
    }, status=status.HTTP_201_CREATED)
