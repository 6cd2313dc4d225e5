"""
Form Schema Catalog for ethics submissions.

Each form is a static FormDefinition: an ordered list of fields plus display
metadata. A field is one of a closed set of variants (Text, Textarea, Date,
Number, Select, File), each carrying only the constraints that apply to it.

Conditional display:
    A field with ``depends_on`` is shown only when the controlling field's
    current value equals ``show_if_equals`` and/or is contained in
    ``show_if_in``. See renderer.is_visible.

Submission counts are not kept here; they are aggregated from the
``form_submissions`` collection on demand (see submission_counts).
"""

import logging
from dataclasses import dataclass
from typing import ClassVar, Optional

from apps.core.gateway import PersistenceError, gateway

logger = logging.getLogger(__name__)


_UNSET = object()


@dataclass(frozen=True, kw_only=True)
class FormField:
    """Common attributes shared by every field variant."""

    type: ClassVar[str] = 'text'

    name: str
    label: str
    required: bool = False
    placeholder: str = ''
    help: str = ''
    depends_on: Optional[str] = None
    show_if_equals: object = _UNSET
    show_if_in: Optional[tuple] = None

    @property
    def has_equals_rule(self):
        return self.show_if_equals is not _UNSET

    def to_dict(self):
        data = {
            'name': self.name,
            'label': self.label,
            'type': self.type,
            'required': self.required,
        }
        if self.placeholder:
            data['placeholder'] = self.placeholder
        if self.help:
            data['help'] = self.help
        if self.depends_on:
            data['depends_on'] = self.depends_on
            if self.has_equals_rule:
                data['show_if_equals'] = self.show_if_equals
            if self.show_if_in is not None:
                data['show_if_in'] = list(self.show_if_in)
        return data


@dataclass(frozen=True, kw_only=True)
class Text(FormField):
    type: ClassVar[str] = 'text'


@dataclass(frozen=True, kw_only=True)
class Textarea(FormField):
    type: ClassVar[str] = 'textarea'

    rows: int = 3

    def to_dict(self):
        return {**super().to_dict(), 'rows': self.rows}


@dataclass(frozen=True, kw_only=True)
class Date(FormField):
    type: ClassVar[str] = 'date'


@dataclass(frozen=True, kw_only=True)
class Number(FormField):
    type: ClassVar[str] = 'number'

    min_value: Optional[float] = None
    max_value: Optional[float] = None

    def to_dict(self):
        data = super().to_dict()
        if self.min_value is not None:
            data['min_value'] = self.min_value
        if self.max_value is not None:
            data['max_value'] = self.max_value
        return data


@dataclass(frozen=True, kw_only=True)
class Select(FormField):
    type: ClassVar[str] = 'select'

    options: tuple = ()

    def to_dict(self):
        return {**super().to_dict(), 'options': list(self.options)}


@dataclass(frozen=True, kw_only=True)
class File(FormField):
    type: ClassVar[str] = 'file'

    accept: tuple = ()
    max_size: Optional[int] = None

    def to_dict(self):
        data = {**super().to_dict(), 'accept': list(self.accept)}
        if self.max_size is not None:
            data['max_size'] = self.max_size
        return data


FIELD_TYPES = {cls.type: cls for cls in (Text, Textarea, Date, Number, Select, File)}


def field_from_dict(data):
    """
    Build a field variant from a loose definition (e.g. JSON).

    Camel-case keys (dependsOn, showIfEquals, showIfIn) are accepted. An
    absent or unknown ``type`` falls back to single-line Text.
    """
    cls = FIELD_TYPES.get(data.get('type'), Text)
    kwargs = {
        'name': data['name'],
        'label': data.get('label', data['name']),
        'required': bool(data.get('required', False)),
        'placeholder': data.get('placeholder', ''),
        'help': data.get('help', ''),
        'depends_on': data.get('depends_on', data.get('dependsOn')),
    }
    for key in ('show_if_equals', 'showIfEquals'):
        if key in data:
            kwargs['show_if_equals'] = data[key]
    show_if_in = data.get('show_if_in', data.get('showIfIn'))
    if show_if_in is not None:
        kwargs['show_if_in'] = tuple(show_if_in)

    if cls is Textarea and data.get('rows'):
        kwargs['rows'] = int(data['rows'])
    elif cls is Number:
        kwargs['min_value'] = data.get('min_value')
        kwargs['max_value'] = data.get('max_value')
    elif cls is Select:
        kwargs['options'] = tuple(data.get('options') or ())
    elif cls is File:
        kwargs['accept'] = tuple(data.get('accept') or ())
        kwargs['max_size'] = data.get('max_size')
    return cls(**kwargs)


@dataclass(frozen=True)
class FormDefinition:
    id: str
    title: str
    fields: tuple
    description: str = ''
    category: str = ''
    submit_label: str = 'Submit'

    @property
    def required_fields(self):
        return [f for f in self.fields if f.required]

    def get_field(self, name):
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'category': self.category or 'General',
            'submit_label': self.submit_label,
            'fields': [f.to_dict() for f in self.fields],
        }


def _signature_fields():
    return (
        Text(name='pi_signature_name', label='PI Name (Signature)', required=True),
        Date(name='pi_signature_date', label='Signature Date', required=True),
    )


# ============================================================================
# Catalog
# ============================================================================

PROTOCOL_FINAL_REPORT = FormDefinition(
    id='protocol-final-report',
    title='Protocol Final Report',
    description='Comprehensive summary of the completed research protocol.',
    category='Study Closure',
    submit_label='Submit Final Report',
    fields=(
        Text(name='protocol_title', label='Protocol / Study Title', required=True,
             placeholder='Enter full protocol title'),
        Text(name='protocol_number', label='Protocol / REC Reference Number', required=True),
        Text(name='principal_investigator', label='Principal Investigator (PI)', required=True),
        Text(name='pi_email', label='PI Email', required=True),
        Text(name='sponsor_name', label='Sponsor / Funding Agency'),
        Textarea(name='study_site', label='Study Site(s)', rows=2, placeholder='List sites'),
        Date(name='date_first_enrollment', label='Date of First Enrollment'),
        Date(name='date_last_enrollment', label='Date of Last Enrollment'),
        Date(name='date_study_completion', label='Date Study Completed', required=True),
        Text(name='registered_clinical_trial', label='Registered Clinical Trial ID',
             placeholder='e.g., ClinicalTrials.gov ID'),

        Textarea(name='study_objectives', label='Primary & Secondary Objectives', rows=4, required=True),
        Textarea(name='study_design', label='Study Design Summary', rows=3, required=True),
        Textarea(name='population_description', label='Population Description', rows=3, required=True),

        Number(name='target_sample_size', label='Target Sample Size', required=True, min_value=0),
        Number(name='actual_enrolled', label='Actual Number Enrolled', required=True, min_value=0),
        Number(name='completed_participants', label='Number Completed Study', min_value=0),
        Number(name='withdrawn_participants', label='Number Withdrawn / Lost to Follow-up', min_value=0),
        Textarea(name='reasons_withdrawal', label='Reasons for Withdrawal', rows=3),

        Textarea(name='protocol_amendments', label='Summary of Protocol Amendments', rows=4),
        Textarea(name='serious_adverse_events', label='Serious Adverse Events (Summary)', rows=4),
        Textarea(name='adverse_events', label='Other Adverse Events (Summary)', rows=4),
        Textarea(name='unanticipated_problems', label='Unanticipated Problems / Deviations', rows=4),
        Textarea(name='study_limitations', label='Study Limitations', rows=3),

        Textarea(name='primary_outcomes', label='Primary Outcomes (Results)', rows=5, required=True),
        Textarea(name='secondary_outcomes', label='Secondary Outcomes (Results)', rows=5),
        Textarea(name='statistical_analysis_summary', label='Statistical Analysis Summary', rows=4),
        Textarea(name='conclusions', label='Conclusions / Interpretation', rows=4, required=True),
        Textarea(name='dissemination_plan', label='Publication / Dissemination Plan', rows=3),

        Textarea(name='data_storage_location', label='Data Storage / Archival Location', rows=2),
        Textarea(name='documents_submitted', label='Documents Submitted (Attach if required)', rows=2,
                 help='List documents like final dataset, statistical report, '
                      'participant list (anonymized), etc.'),
    ) + _signature_fields(),
)

REPORT_NEW_EVENT = FormDefinition(
    id='rec-fo-0021-rne',
    title='Report of New Event (RNE)',
    description='Report unexpected events: adverse events, deviations, early termination, safety info.',
    category='Safety Reporting',
    submit_label='Submit Event Report',
    fields=(
        Text(name='protocol_title', label='Protocol Title', required=True),
        Text(name='rec_reference_number', label='REC Reference Number', required=True),
        Text(name='site', label='Study Site', required=True),
        Select(name='event_type', label='Event Type', required=True, options=(
            'Serious Adverse Event',
            'Adverse Event',
            'Protocol Deviation',
            'Unanticipated Problem',
            'Early Study Termination',
            'Safety Information Update',
            'Other',
        )),
        Text(name='other_event_type', label='If Other, Specify', placeholder='Specify event type',
             depends_on='event_type', show_if_equals='Other'),
        Date(name='date_of_event', label='Date of Event', required=True),
        Date(name='date_reported_to_rec', label='Date Reported to REC', required=True),
        Text(name='subject_id', label='Subject / Participant ID (if applicable)'),
        Number(name='age', label='Age (if subject specific)', min_value=0, max_value=130),
        Select(name='gender', label='Gender (if subject specific)',
               options=('Male', 'Female', 'Other', 'Prefer not to say')),
        Textarea(name='event_description', label='Detailed Description of Event', rows=5, required=True),
        Textarea(name='immediate_actions', label='Immediate Actions Taken', rows=4, required=True),
        Textarea(name='medical_management', label='Medical Management / Treatment Provided', rows=4),
        Textarea(name='relatedness_assessment', label='Assessment of Relatedness to Study Intervention',
                 rows=3, help='Describe investigator assessment (e.g., Not related, Possibly related, '
                              'Definitely related).'),
        Textarea(name='risk_assessment', label='Assessment of Risk / Impact on Participants', rows=4),
        Textarea(name='corrective_actions', label='Proposed Corrective / Preventive Actions (CAPA)',
                 rows=4, required=True),
        Textarea(name='need_for_amendment', label='Need for Protocol / ICF Amendment? (Yes/No + Rationale)',
                 rows=3),
        Textarea(name='regulatory_notified', label='Regulatory Authorities Notified (Names / Dates)', rows=3),
        Textarea(name='other_sites_affected', label='Other Sites Affected / Notified', rows=3),
        Textarea(name='documents_attached', label='Documents Attached', rows=2,
                 help='List: medical reports, lab results, narrative, DSMB notice, etc.'),
        Text(name='reporting_person', label='Reporting Person (Name & Role)', required=True),
        Text(name='reporting_person_email', label='Reporting Person Email', required=True),
        Textarea(name='pi_confirmation', label='PI Confirmation / Remarks', rows=3),
    ) + _signature_fields(),
)

PROGRESS_REPORT = FormDefinition(
    id='progress-report',
    title='Progress Report',
    description='Interim progress update on ongoing approved protocol.',
    category='Ongoing Study Reports',
    submit_label='Submit Progress Report',
    fields=(
        Text(name='protocol_title', label='Protocol Title', required=True),
        Text(name='rec_reference_number', label='REC Reference Number', required=True),
        Text(name='principal_investigator', label='Principal Investigator', required=True),
        Date(name='reporting_period_start', label='Reporting Period Start Date', required=True),
        Date(name='reporting_period_end', label='Reporting Period End Date', required=True),
        Date(name='date_submitted', label='Date Submitted', required=True),
        Textarea(name='overall_progress_summary', label='Overall Progress Summary', rows=5, required=True),
        Number(name='enrollment_target', label='Target Enrollment (Cumulative)', required=True, min_value=0),
        Number(name='enrollment_actual', label='Actual Enrollment to Date', required=True, min_value=0),
        Textarea(name='reasons_enrollment_variance', label='Reasons for Enrollment Variance', rows=3),
        Number(name='withdrawals_count', label='Participant Withdrawals (Count)', min_value=0),
        Textarea(name='withdrawals_reasons', label='Reasons for Withdrawal', rows=3),
        Textarea(name='protocol_deviations', label='Protocol Deviations During Period', rows=4),
        Textarea(name='serious_adverse_events', label='Serious Adverse Events Since Last Report', rows=4),
        Textarea(name='other_adverse_events', label='Other Adverse Events', rows=3),
        Textarea(name='amendments_submitted', label='Amendments Submitted/Approved', rows=3),
        Textarea(name='interim_findings', label='Interim Findings / Preliminary Results', rows=4),
        Textarea(name='data_safety_monitoring', label='Data / Safety Monitoring Activities', rows=3),
        Textarea(name='challenges', label='Challenges / Obstacles', rows=3),
        Textarea(name='mitigation_actions', label='Mitigation / Corrective Actions', rows=3),
        Textarea(name='anticipated_changes', label='Anticipated Changes Before Next Report', rows=3),
        Textarea(name='continuing_need_justification', label='Justification for Continuing the Study',
                 rows=4, required=True),
    ) + _signature_fields(),
)

PROTOCOL_AMENDMENT = FormDefinition(
    id='protocol-amendment',
    title='Protocol Amendment',
    description='Submission of proposed changes to an approved protocol.',
    category='Amendments',
    submit_label='Submit Amendment',
    fields=(
        Text(name='protocol_title', label='Protocol Title', required=True),
        Text(name='rec_reference_number', label='REC Reference Number', required=True),
        Text(name='principal_investigator', label='Principal Investigator', required=True),
        Text(name='amendment_number', label='Amendment Number / Identifier', required=True),
        Date(name='date_submitted', label='Date Submitted', required=True),
        Textarea(name='reason_for_amendment', label='Reason for Amendment', rows=4, required=True),
        Textarea(name='summary_of_changes', label='Summary of Proposed Changes', rows=6, required=True),
        Textarea(name='affected_sections', label='Affected Sections / Documents', rows=4,
                 help='List protocol sections, ICF, CRFs, recruitment materials, etc.'),
        Textarea(name='impact_assessment', label='Impact on Study Design / Participants', rows=5,
                 required=True),
        Textarea(name='changes_to_risk', label='Changes to Risk-Benefit Assessment', rows=4),
        Textarea(name='changes_to_informed_consent', label='Changes to Informed Consent Process', rows=4),
        Textarea(name='changes_to_sample_size', label='Changes to Sample Size / Statistical Plan', rows=4),
        Textarea(name='ongoing_participants_management', label='Management of Already Enrolled Participants',
                 rows=4),
        Textarea(name='supporting_documents', label='Supporting Documents List', rows=3,
                 help='List tracked-change protocol, clean copy, revised ICF, recruitment materials, etc.'),
        Textarea(name='urgent_implementation', label='Implemented Prior to Approval? (If Yes, Justification)',
                 rows=3),
        Textarea(name='capa_if_applicable', label='CAPA Related (If deviation-triggered)', rows=3),
    ) + _signature_fields(),
)

CONTINUING_REVIEW = FormDefinition(
    id='continuing-review',
    title='Continuing Review Application',
    description='Periodic ethics continuing review submission for an approved ongoing study.',
    category='Continuing Review',
    submit_label='Submit Continuing Review',
    fields=(
        Text(name='protocol_title', label='Protocol Title', required=True),
        Text(name='rec_reference_number', label='REC Reference Number', required=True),
        Text(name='principal_investigator', label='Principal Investigator', required=True),
        Date(name='date_initial_approval', label='Initial REC Approval Date', required=True),
        Date(name='current_approval_expiry', label='Current Approval Expiry Date', required=True),
        Date(name='period_start', label='Reporting Period Start', required=True),
        Date(name='period_end', label='Reporting Period End', required=True),
        Number(name='enrollment_target_to_date', label='Target Enrollment to Date', required=True, min_value=0),
        Number(name='enrollment_actual_to_date', label='Actual Enrollment to Date', required=True, min_value=0),
        Textarea(name='enrollment_explanation', label='Explanation for Enrollment Variance', rows=3),
        Number(name='participants_completed', label='Participants Completed', min_value=0),
        Number(name='participants_withdrawn', label='Participants Withdrawn', min_value=0),
        Textarea(name='withdrawal_reasons', label='Reasons for Withdrawal', rows=3),
        Textarea(name='summary_progress', label='Summary of Study Progress Since Last Approval', rows=5,
                 required=True),
        Textarea(name='amendments_since_last', label='Amendments Since Last Approval (List / Dates)', rows=4),
        Textarea(name='protocol_deviations_since_last', label='Protocol Deviations Since Last Approval',
                 rows=4),
        Textarea(name='serious_adverse_events_since_last', label='Serious Adverse Events Since Last Approval',
                 rows=4),
        Textarea(name='other_adverse_events_since_last', label='Other Adverse Events Since Last Approval',
                 rows=3),
        Textarea(name='unanticipated_problems', label='Unanticipated Problems / New Information', rows=4),
        Textarea(name='new_risks', label='New Risks or Risk Changes Identified', rows=3),
        Textarea(name='confidentiality_issues', label='Confidentiality / Data Security Issues', rows=3),
        Textarea(name='monitoring_summary', label='Monitoring / DSMB Reports Summary', rows=4),
        Textarea(name='publications_or_presentations', label='Publications / Presentations to Date', rows=3),
        Textarea(name='materials_to_renew', label='Materials Submitted for Renewal', rows=3,
                 help='List updated protocol, ICF, recruitment materials, investigator brochure, '
                      'safety reports, etc.'),
        Textarea(name='continuing_need_justification', label='Justification for Continuing the Study',
                 rows=5, required=True),
        Date(name='anticipated_completion_date', label='Anticipated Study Completion Date'),
    ) + _signature_fields(),
)

EARLY_TERMINATION = FormDefinition(
    id='early-study-termination',
    title='Early Study Termination',
    description='Application for early termination of an approved study prior to planned completion.',
    category='Study Closure',
    submit_label='Submit Termination Application',
    fields=(
        Text(name='protocol_title', label='Protocol Title', required=True),
        Text(name='rec_reference_number', label='REC Reference Number', required=True),
        Text(name='principal_investigator', label='Principal Investigator', required=True),
        Date(name='termination_request_date', label='Date of Termination Request', required=True),
        Date(name='original_anticipated_completion', label='Original Anticipated Completion Date'),
        Date(name='date_last_participant_activity', label='Date of Last Participant Activity'),
        Number(name='enrolled_participants_total', label='Total Participants Enrolled', required=True,
               min_value=0),
        Number(name='participants_completed', label='Participants Completed Study', min_value=0),
        Number(name='participants_in_followup', label='Participants in Follow-up', min_value=0),
        Number(name='participants_withdrawn', label='Participants Withdrawn / Lost', min_value=0),
        Select(name='reason_for_termination', label='Primary Reason for Early Termination', required=True,
               options=(
                   'Safety Concerns',
                   'Lack of Efficacy',
                   'Regulatory Directive',
                   'Funding / Resource Constraints',
                   'Poor Enrollment',
                   'Protocol Feasibility Issues',
                   'Sponsor Decision',
                   'Other',
               )),
        Text(name='other_reason_detail', label='If Other, Specify',
             depends_on='reason_for_termination', show_if_equals='Other'),
        Textarea(name='detailed_rationale', label='Detailed Rationale / Background', rows=5, required=True),
        Textarea(name='safety_findings_summary', label='Summary of Any Safety Findings', rows=4),
        Textarea(name='efficacy_findings_summary', label='Summary of Any Efficacy / Outcome Findings', rows=4),
        Textarea(name='data_collected_status', label='Status of Data Collected / Integrity', rows=4),
        Textarea(name='disposition_of_participants', label='Disposition / Management of Current Participants',
                 rows=4, required=True),
        Textarea(name='followup_plan', label='Plan for Participant Follow-up / Safety Monitoring', rows=4),
        Textarea(name='study_materials_storage', label='Storage / Archiving of Study Materials & Data', rows=3),
        Textarea(name='investigational_products_accountability',
                 label='Investigational Products Accountability / Disposal', rows=3),
        Textarea(name='notifications_done', label='Notifications (Sponsor, Regulatory, DSMB, etc.)', rows=3),
        Textarea(name='publications_plan', label='Publication / Dissemination Plan (If Applicable)', rows=3),
        Textarea(name='documents_submitted', label='Documents Submitted With Application', rows=3,
                 help='List: final data listings, safety reports, inventory logs, communication letters, etc.'),
    ) + _signature_fields(),
)


FORMS_CATALOG = (
    PROTOCOL_FINAL_REPORT,
    REPORT_NEW_EVENT,
    PROGRESS_REPORT,
    PROTOCOL_AMENDMENT,
    CONTINUING_REVIEW,
    EARLY_TERMINATION,
)

FORMS_BY_ID = {form.id: form for form in FORMS_CATALOG}


def get_form(form_id):
    """Look up a catalog form by id; None when the id is unknown."""
    return FORMS_BY_ID.get(form_id)


def form_categories(catalog=FORMS_CATALOG):
    """Distinct categories in catalog order; forms without one count as 'General'."""
    categories = []
    for form in catalog:
        category = form.category or 'General'
        if category not in categories:
            categories.append(category)
    return categories


def forms_by_category(catalog=FORMS_CATALOG):
    grouped = {category: [] for category in form_categories(catalog)}
    for form in catalog:
        grouped[form.category or 'General'].append(form)
    return grouped


def submission_counts(submitted_by=None):
    """
    Count stored submissions per form id.

    Args:
        submitted_by: Optional auth user; counts only that user's submissions

    Returns:
        dict form_id -> count, with every catalog form present (0 when none).
        On a persistence failure the counts are all 0.
    """
    counts = {form.id: 0 for form in FORMS_CATALOG}
    try:
        if submitted_by is None:
            counts.update(gateway.aggregate_counts('form_submissions', 'form_id'))
        else:
            for row in gateway.select('form_submissions', filters={'submitted_by': submitted_by}):
                counts[row.form_id] = counts.get(row.form_id, 0) + 1
    except PersistenceError as e:
        logger.error('Could not load submission counts: %s', e)
    return counts
