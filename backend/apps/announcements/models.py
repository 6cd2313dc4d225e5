"""
Announcement and notification models.

Announcements are published by staff to an audience and are immutable once
created. Notifications are addressed to one or more recipients by email, or
broadcast to everyone; they are read-only for the portal.
"""

from django.conf import settings
from django.db import models


class Announcement(models.Model):
    """A staff announcement addressed to an audience."""

    AUDIENCE_CHOICES = [
        ('all', 'All Users'),
        ('students', 'Students'),
        ('committee', 'Committee'),
    ]

    title = models.CharField(max_length=300)
    description = models.TextField()
    audience = models.CharField(max_length=20, choices=AUDIENCE_CHOICES, db_index=True)
    attachments = models.JSONField(
        default=list,
        blank=True,
        help_text="Public URLs of uploaded attachment files"
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='announcements'
    )
    created_by_email = models.EmailField(blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'announcements'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.title} ({self.audience})"


class Notification(models.Model):
    """
    A message for specific recipients or for everyone.

    ``recipient`` holds either a single email string or a list of emails.
    """

    title = models.CharField(max_length=300)
    description = models.TextField(blank=True, default='')
    type = models.CharField(
        max_length=50,
        blank=True,
        default='',
        help_text="e.g. decision, clearance"
    )
    recipient = models.JSONField(null=True, blank=True)
    broadcast = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'notifications'
        ordering = ['-created_at']

    def __str__(self):
        return self.title
