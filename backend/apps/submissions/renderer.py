"""
Dynamic Form Renderer.

Turns a catalog FormDefinition plus a mutable value map into:
    - the set of currently visible fields (conditional display)
    - an advisory completion indicator over required fields
    - a Django form class whose required-field validation gates submission
    - the submission payload ``{form_id, ...values, submitted_at}``

Values of fields hidden by a conditional rule are kept in the map; they are
not cleared when the controlling field changes.
"""

import datetime
import logging
import math
from dataclasses import dataclass

from django import forms
from django.utils import timezone

from apps.core.gateway import gateway

from .catalog import Date, File, Number, Select, Textarea

logger = logging.getLogger(__name__)


class SubmissionInvalid(Exception):
    """Visible required fields are missing; nothing was submitted."""

    def __init__(self, missing):
        super().__init__(f'Missing required fields: {", ".join(missing)}')
        self.missing = missing


def is_visible(field, values):
    """
    Apply the field's conditional-display rule against the current values.

    Fields without ``depends_on`` are always visible.
    """
    if not field.depends_on:
        return True
    current = values.get(field.depends_on)
    if field.has_equals_rule and current != field.show_if_equals:
        return False
    if field.show_if_in is not None and current not in field.show_if_in:
        return False
    return True


def visible_fields(definition, values):
    return [f for f in definition.fields if is_visible(f, values)]


def is_filled(value):
    """A value counts as filled when it is present, not None and not ''."""
    return value is not None and value != ''


@dataclass(frozen=True)
class Completion:
    filled: int
    total: int

    @property
    def percent(self):
        if not self.total:
            return 0
        # half-up rounding
        return int(math.floor(self.filled * 100 / self.total + 0.5))

    def to_dict(self):
        return {'filled': self.filled, 'total': self.total, 'percent': self.percent}


def completion(definition, values):
    """
    Count filled required fields.

    Every required field in the definition is counted, visible or not. The
    result is advisory only and never blocks a submission.
    """
    required = definition.required_fields
    filled = sum(1 for f in required if is_filled(values.get(f.name)))
    return Completion(filled=filled, total=len(required))


# ============================================================================
# Django form construction
# ============================================================================

def _form_field(field):
    common = {
        'label': field.label,
        'required': field.required,
        'help_text': field.help,
    }
    if isinstance(field, Textarea):
        return forms.CharField(
            widget=forms.Textarea(attrs={'rows': field.rows, 'placeholder': field.placeholder}),
            **common
        )
    if isinstance(field, Date):
        return forms.DateField(widget=forms.DateInput(attrs={'type': 'date'}), **common)
    if isinstance(field, Number):
        return forms.FloatField(min_value=field.min_value, max_value=field.max_value, **common)
    if isinstance(field, Select):
        choices = [('', '-- Select --')] + [(option, option) for option in field.options]
        return forms.ChoiceField(choices=choices, **common)
    if isinstance(field, File):
        attrs = {'accept': ','.join(field.accept)} if field.accept else {}
        return forms.FileField(widget=forms.ClearableFileInput(attrs=attrs), **common)
    return forms.CharField(
        widget=forms.TextInput(attrs={'placeholder': field.placeholder}),
        **common
    )


def build_form_class(definition, values=None):
    """
    Build a ``forms.Form`` subclass holding the fields visible for ``values``.

    Pass the submitted data as ``values`` so conditional fields appear in the
    form exactly when the user could see them.
    """
    values = values or {}
    attrs = {f.name: _form_field(f) for f in visible_fields(definition, values)}
    class_name = ''.join(part.capitalize() for part in definition.id.replace('-', '_').split('_')) + 'Form'
    return type(class_name, (forms.Form,), attrs)


# ============================================================================
# Payload
# ============================================================================

def _json_value(value):
    if isinstance(value, (datetime.date, datetime.datetime)):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if hasattr(value, 'read') and hasattr(value, 'name'):
        return value.name
    return value


def assemble_payload(definition, values, submitted_at=None):
    """Build ``{form_id, ...values, submitted_at}`` with JSON-safe values."""
    submitted_at = submitted_at or timezone.now()
    payload = {'form_id': definition.id}
    payload.update({name: _json_value(value) for name, value in values.items()})
    payload['submitted_at'] = submitted_at.isoformat()
    return payload


def persist_submission(payload, submitted_by=None):
    """Default sink: store the payload as a ``form_submissions`` row."""
    return gateway.insert('form_submissions', {
        'form_id': payload['form_id'],
        'payload': payload,
        'submitted_by': submitted_by,
    })


class FormSession:
    """
    Mutable fill-in state for one form.

    Usage:
        session = FormSession(get_form('progress-report'))
        session.set_value('protocol_title', 'Study X')
        session.completion().percent
        payload = session.submit(submitted_by=request.user)
    """

    def __init__(self, definition, values=None):
        self.definition = definition
        self.values = dict(values or {})
        self.last_payload = None

    def set_value(self, name, value):
        if self.definition.get_field(name) is None:
            raise KeyError(f'{self.definition.id} has no field {name!r}')
        self.values[name] = value

    def reset(self):
        """Clear values and the last payload. Stored submission counts are untouched."""
        self.values = {}
        self.last_payload = None

    def visible_fields(self):
        return visible_fields(self.definition, self.values)

    def completion(self):
        return completion(self.definition, self.values)

    def missing_required(self):
        return [
            f.name for f in self.visible_fields()
            if f.required and not is_filled(self.values.get(f.name))
        ]

    def submit(self, sink=persist_submission, submitted_by=None):
        """
        Assemble the payload and hand it to ``sink``.

        Raises:
            SubmissionInvalid: a visible required field is empty
        """
        missing = self.missing_required()
        if missing:
            raise SubmissionInvalid(missing)

        payload = assemble_payload(self.definition, self.values)
        if sink is not None:
            sink(payload, submitted_by=submitted_by)
        self.last_payload = payload
        logger.info('Form %s submitted by %s', self.definition.id, submitted_by or 'anonymous')
        return payload
