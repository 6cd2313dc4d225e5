from rest_framework import serializers

from .models import Proposal, Review


class ProposalSerializer(serializers.ModelSerializer):
    display_title = serializers.CharField(read_only=True)

    class Meta:
        model = Proposal
        fields = ['id', 'title', 'protocol_title', 'display_title', 'researcher_name',
                  'status', 'submitted_at', 'created_at']


class ReviewSerializer(serializers.ModelSerializer):
    """Review with its proposal nested."""

    proposal = ProposalSerializer(read_only=True)

    class Meta:
        model = Review
        fields = ['id', 'proposal', 'status', 'due_date', 'comments', 'recommendation',
                  'submitted_at', 'created_at']


class AssignmentRowSerializer(serializers.Serializer):
    """Row shape produced by services.assigned_reviews_for."""

    id = serializers.IntegerField()
    proposal_id = serializers.IntegerField()
    title = serializers.CharField()
    date_assigned = serializers.DateTimeField()
    due_date = serializers.DateField(allow_null=True)
    researcher = serializers.CharField()
    status = serializers.CharField()
    status_key = serializers.CharField()
