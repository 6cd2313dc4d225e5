"""
Serializers for the deviation report API.

Output serializers compute the derived labels (display status, action
status, lifecycle state) from the stored fields; they are never written back.
Input serializers only check the shape of request bodies. Required fields and
lifecycle rules are enforced by apps.deviations.lifecycle, so their messages
stay the same for pages and API.
"""

from rest_framework import serializers

from .lifecycle import CORRECTIVE_ACTION_FIELDS, can_resolve, lifecycle_state, resolution_documents_required
from .models import DeviationReport
from .status import action_status, display_status, feedback_text, resolution_label, severity_label


class DeviationRowSerializer(serializers.ModelSerializer):
    """
    Compact row used by the staff deviation list and the change feed.

    Output fields: id, title, researcher, date_reported, type, severity,
    status, version
    """

    title = serializers.CharField(source='protocol_title')
    researcher = serializers.CharField(source='reported_by')
    date_reported = serializers.DateField(source='report_submission_date')
    type = serializers.SerializerMethodField()
    severity = serializers.SerializerMethodField()
    status = serializers.SerializerMethodField()

    class Meta:
        model = DeviationReport
        fields = ['id', 'title', 'researcher', 'date_reported', 'type', 'severity', 'status', 'version']

    def get_type(self, obj):
        return obj.type or '-'

    def get_severity(self, obj):
        return severity_label(obj)

    def get_status(self, obj):
        return display_status(obj)


class SubmissionRowSerializer(DeviationRowSerializer):
    """Researcher's own submissions: adds feedback and the next action."""

    feedback = serializers.SerializerMethodField()
    action_status = serializers.SerializerMethodField()
    resolution_status = serializers.SerializerMethodField()

    class Meta(DeviationRowSerializer.Meta):
        fields = DeviationRowSerializer.Meta.fields + ['feedback', 'action_status', 'resolution_status']

    def get_feedback(self, obj):
        return feedback_text(obj)

    def get_action_status(self, obj):
        return action_status(obj)

    def get_resolution_status(self, obj):
        return resolution_label(obj)


class ResolutionRowSerializer(serializers.ModelSerializer):
    title = serializers.CharField(source='protocol_title')
    researcher = serializers.CharField(source='reported_by')
    status = serializers.SerializerMethodField()

    class Meta:
        model = DeviationReport
        fields = ['id', 'title', 'researcher', 'severity', 'resolution_status', 'status',
                  'resolution_submission_date', 'version']

    def get_status(self, obj):
        return resolution_label(obj)


class DeviationReportSerializer(serializers.ModelSerializer):
    """Full report with derived lifecycle information."""

    display_status = serializers.SerializerMethodField()
    action_status = serializers.SerializerMethodField()
    lifecycle_state = serializers.SerializerMethodField()
    can_resolve = serializers.SerializerMethodField()
    documents_required = serializers.SerializerMethodField()

    class Meta:
        model = DeviationReport
        exclude = ['reporter']

    def get_display_status(self, obj):
        return display_status(obj)

    def get_action_status(self, obj):
        return action_status(obj)

    def get_lifecycle_state(self, obj):
        return lifecycle_state(obj)

    def get_can_resolve(self, obj):
        return can_resolve(obj)

    def get_documents_required(self, obj):
        return resolution_documents_required(obj)


# ============================================================================
# Request bodies
# ============================================================================

def _text(**kwargs):
    return serializers.CharField(required=False, allow_blank=True, default='', **kwargs)


class VersionedInputSerializer(serializers.Serializer):
    version = serializers.IntegerField(required=False, allow_null=True, default=None)


class CorrectiveActionInputSerializer(VersionedInputSerializer):
    corrective_action_feedback = _text()
    corrective_action_required = _text()
    corrective_action_details = _text()
    corrective_action_docs = _text()
    corrective_action_docs_details = _text()
    corrective_action_deadline = _text()

    def corrective_action(self):
        return {name: self.validated_data[name] for name in CORRECTIVE_ACTION_FIELDS}


class AssessmentInputSerializer(VersionedInputSerializer):
    severity = _text()
    review = _text()
    corrective_action = serializers.DictField(required=False, allow_null=True, default=None)

    def validate_corrective_action(self, value):
        if value is None:
            return None
        nested = CorrectiveActionInputSerializer(data=value)
        if not nested.is_valid():
            raise serializers.ValidationError(
                {name: messages[0] for name, messages in nested.errors.items()}
            )
        return nested.corrective_action()


class ResolutionInputSerializer(VersionedInputSerializer):
    researcher_response = _text()
    resolution_actions_taken = _text()
    resolution_notes = _text()


class AcknowledgmentInputSerializer(VersionedInputSerializer):
    decision = serializers.ChoiceField(
        choices=['approve', 'revise'],
        error_messages={
            'required': "Choose 'approve' or 'revise'.",
            'invalid_choice': "Choose 'approve' or 'revise'.",
            'null': "Choose 'approve' or 'revise'.",
        },
    )
    acknowledgment = _text()
