"""
Proposal and review models.

Proposals are ethics applications submitted by researchers. Committee
reviewers are linked to proposals twice over, mirroring the hosted tables
the portal reads:

- AssignedReview (assigned_reviews): the assignment itself, with its own
  status and due date. Drives the reviewer's "Assigned Reviews" page.
- Review (reviews): the review being written, carrying comments and a
  recommendation. Drives reviewer stats, activity and deadlines.

These collections are read-mostly; the only write path is a reviewer
submitting a Review.
"""

from django.conf import settings
from django.db import models


class Proposal(models.Model):
    """An ethics application under committee review."""

    STATUS_CHOICES = [
        ('Submitted', 'Submitted'),
        ('Under Review', 'Under Review'),
        ('Approved', 'Approved'),
        ('Rejected', 'Rejected'),
    ]

    title = models.CharField(max_length=300, blank=True, default='')
    protocol_title = models.CharField(max_length=300, blank=True, default='')
    researcher_name = models.CharField(
        max_length=200,
        blank=True,
        default='',
        help_text="Name of the submitting researcher as shown to reviewers"
    )
    submitted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='proposals'
    )
    status = models.CharField(max_length=50, choices=STATUS_CHOICES, default='Submitted', db_index=True)
    submitted_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'proposals'
        ordering = ['-created_at']

    def __str__(self):
        return self.display_title

    @property
    def display_title(self):
        return self.title or self.protocol_title or 'Untitled'


class Review(models.Model):
    """A reviewer's review of one proposal."""

    STATUS_CHOICES = [
        ('Pending', 'Pending'),
        ('In Progress', 'In Progress'),
        ('Completed', 'Completed'),
    ]

    RECOMMENDATION_CHOICES = [
        ('approve', 'Approve'),
        ('minor_revisions', 'Minor revisions'),
        ('major_revisions', 'Major revisions'),
        ('reject', 'Reject'),
    ]

    proposal = models.ForeignKey(Proposal, on_delete=models.CASCADE, related_name='reviews')
    reviewer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='reviews'
    )
    status = models.CharField(max_length=50, choices=STATUS_CHOICES, default='Pending')
    due_date = models.DateField(null=True, blank=True)
    comments = models.TextField(blank=True, default='')
    recommendation = models.CharField(max_length=50, choices=RECOMMENDATION_CHOICES, blank=True, default='')
    submitted_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'reviews'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', 'due_date'], name='reviews_status_3f81c0_idx'),
        ]

    def __str__(self):
        return f"Review of {self.proposal.display_title} ({self.status})"


class AssignedReview(models.Model):
    """Assignment of a reviewer to a proposal."""

    reviewer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='assigned_reviews'
    )
    proposal = models.ForeignKey(Proposal, on_delete=models.CASCADE, related_name='assignments')
    status = models.CharField(max_length=50, blank=True, default='pending')
    assigned_at = models.DateTimeField(auto_now_add=True)
    due_date = models.DateField(null=True, blank=True)

    class Meta:
        db_table = 'assigned_reviews'
        ordering = ['-assigned_at']

    def __str__(self):
        return f"{self.proposal.display_title} -> {self.reviewer}"
