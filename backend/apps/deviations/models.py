"""
Deviation report model.

A DeviationReport records one departure from an approved research protocol
and carries it through staff assessment, corrective action, the researcher's
resolution and staff acknowledgment.

Unset severity and resolution status are stored as '' so that "unset" has a
single representation. ``version`` is bumped by the persistence gateway on
every update and backs conditional (stale-write rejecting) updates.
"""

from django.conf import settings
from django.db import models


class DeviationReport(models.Model):
    """A reported protocol deviation and its review history."""

    TYPE_CHOICES = [
        ('Informed Consent', 'Informed Consent'),
        ('Adverse Events', 'Adverse Events'),
        ('Sample Collection', 'Sample Collection'),
        ('Confidentiality Breach', 'Confidentiality Breach'),
        ('Regulatory Compliance', 'Regulatory Compliance'),
        ('Other', 'Other'),
    ]

    SEVERITY_CHOICES = [
        ('Minor', 'Minor'),
        ('Major', 'Major'),
    ]

    CHANGES_CHOICES = [
        ('changes', 'Changes required'),
        ('none', 'No changes required'),
    ]

    DOCS_CHOICES = [
        ('docs', 'Documents required'),
        ('none', 'No documents required'),
    ]

    RESOLUTION_STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('in_progress', 'In Progress'),
        ('resolved', 'Resolved'),
        ('rejected', 'Rejected'),
    ]

    # Report
    protocol_title = models.CharField(max_length=300)
    protocol_code = models.CharField(max_length=100)
    type = models.CharField(max_length=100, choices=TYPE_CHOICES)
    deviation_date = models.DateField()
    deviation_description = models.TextField()
    rationale = models.TextField()
    impact = models.TextField()
    corrective_action = models.TextField(help_text='Corrective action proposed by the reporter')
    supporting_documents = models.JSONField(default=list, blank=True)

    # Provenance
    reported_by = models.CharField(
        max_length=255,
        db_index=True,
        help_text='Free-text reporter identifier (email, name or email local part)'
    )
    reporter = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='deviation_reports'
    )
    report_submission_date = models.DateField()

    # Staff assessment
    severity = models.CharField(max_length=20, choices=SEVERITY_CHOICES, blank=True, default='')
    review = models.TextField(blank=True, default='', help_text='Minor-path feedback')
    corrective_action_feedback = models.TextField(blank=True, default='')
    corrective_action_required = models.CharField(max_length=20, choices=CHANGES_CHOICES, blank=True, default='')
    corrective_action_details = models.TextField(blank=True, default='')
    corrective_action_docs = models.CharField(max_length=20, choices=DOCS_CHOICES, blank=True, default='')
    corrective_action_docs_details = models.TextField(blank=True, default='')
    corrective_action_deadline = models.DateField(null=True, blank=True)
    status = models.CharField(max_length=50, blank=True, default='')
    reviewed_at = models.DateTimeField(null=True, blank=True)

    # Researcher resolution
    resolution_status = models.CharField(
        max_length=20,
        choices=RESOLUTION_STATUS_CHOICES,
        blank=True,
        default='',
        db_index=True
    )
    researcher_response = models.TextField(blank=True, default='')
    resolution_actions_taken = models.TextField(blank=True, default='')
    resolution_notes = models.TextField(blank=True, default='')
    resolution_supporting_documents = models.JSONField(default=list, blank=True)
    resolution_submission_date = models.DateTimeField(null=True, blank=True)

    # Staff closure
    staff_acknowledgment = models.TextField(blank=True, default='')
    staff_acknowledgment_date = models.DateTimeField(null=True, blank=True)

    version = models.PositiveIntegerField(default=1)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'deviation_reports'
        verbose_name = 'Deviation Report'
        verbose_name_plural = 'Deviation Reports'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['report_submission_date'], name='deviation_r_report__4b9e1f_idx'),
            models.Index(fields=['severity', 'type'], name='deviation_r_severit_a2c7d3_idx'),
        ]

    def __str__(self):
        return f'{self.protocol_code} - {self.protocol_title}'
