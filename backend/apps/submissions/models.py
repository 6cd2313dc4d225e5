"""
Stored ethics form submissions.

One row per submitted catalog form. Per-form counts are aggregated from this
table (``count by form_id``) rather than tracked separately.
"""

from django.conf import settings
from django.db import models


class FormSubmission(models.Model):
    """A submitted catalog form with its full payload."""

    form_id = models.CharField(max_length=100, db_index=True)
    payload = models.JSONField(default=dict)
    submitted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='form_submissions'
    )
    submitted_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'form_submissions'
        ordering = ['-submitted_at']
        indexes = [
            models.Index(fields=['form_id', 'submitted_at'], name='form_submis_form_id_6d1c2a_idx'),
        ]

    def __str__(self):
        return f'{self.form_id} @ {self.submitted_at:%Y-%m-%d %H:%M}'
