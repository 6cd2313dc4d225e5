"""
User account and role models for RECheck.

The ``users`` table is the role lookup keyed by email. Authentication itself is
handled by ``django.contrib.auth``; this table only says which portal role an
authenticated identity plays. The client never mutates a role.

Models:
- UserAccount (users)
"""

from django.conf import settings
from django.db import models


class UserAccount(models.Model):
    """
    Role lookup row for an authenticated identity.

    Business Rules:
    - email is the lookup key (one row expected per email)
    - role is stored as entered by administrators; readers normalize it
      with ``apps.core.auth_helpers.normalize_role``
    - full_name is one of the candidate identifiers used to match
      historical deviation reports
    """

    ROLE_CHOICES = [
        ('Staff', 'Staff'),
        ('Reviewer', 'Reviewer'),
        ('Researcher', 'Researcher'),
    ]

    email = models.EmailField(
        unique=True,
        help_text="Login email, used as the role lookup key"
    )

    full_name = models.CharField(
        max_length=200,
        blank=True,
        default='',
        help_text="Display name, also used to match legacy reported_by values"
    )

    role = models.CharField(
        max_length=50,
        choices=ROLE_CHOICES,
        help_text="Portal role: Staff, Reviewer or Researcher"
    )

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='account',
        help_text="Linked Django auth user, when one exists"
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'users'
        verbose_name = 'User Account'
        verbose_name_plural = 'User Accounts'
        ordering = ['email']

    def __str__(self):
        return f"{self.email} ({self.role})"
