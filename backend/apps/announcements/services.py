"""
Announcement publishing and audience / recipient filtering.

Audience visibility by role:
    Researcher         -> all, students
    Reviewer, Staff    -> all, committee
    unknown role       -> all

Notifications are visible to a user when they are broadcast, or when the
recipient (a single email or a list of emails) matches the user's email
case-insensitively.
"""

import logging

from django.conf import settings

from apps.core.gateway import gateway
from apps.core.storage import UPLOAD_CONFIGS, FileUploadService, upload_errors

logger = logging.getLogger(__name__)


AUDIENCES = ('all', 'students', 'committee')

ROLE_AUDIENCES = {
    'Researcher': ('all', 'students'),
    'Reviewer': ('all', 'committee'),
    'Staff': ('all', 'committee'),
}


class AnnouncementError(Exception):
    """Base class for announcement publishing failures."""


class AnnouncementInvalid(AnnouncementError):
    def __init__(self, errors):
        super().__init__('; '.join(errors.values()))
        self.errors = errors


class AttachmentUploadFailed(AnnouncementError):
    def __init__(self, errors):
        super().__init__('; '.join(errors))
        self.errors = errors


def audiences_for_role(role):
    return ROLE_AUDIENCES.get(role, ('all',))


def validate_announcement(title, description, audience):
    """Return {field: message} for missing or invalid input."""
    errors = {}
    if not (title or '').strip():
        errors['title'] = 'Title required'
    if not (description or '').strip():
        errors['description'] = 'Description required'
    if audience not in AUDIENCES:
        errors['audience'] = 'Select audience'
    return errors


def create_announcement(title, description, audience, files=(), created_by=None, uploader=None):
    """
    Publish an announcement.

    Attachments are uploaded one by one before the insert; if any upload
    fails nothing is inserted (files already stored are left in place).

    Raises:
        AnnouncementInvalid: missing title, description or audience
        AttachmentUploadFailed: one or more attachments were rejected or failed
        PersistenceError: the insert failed
    """
    errors = validate_announcement(title, description, audience)
    if errors:
        raise AnnouncementInvalid(errors)

    files = list(files)
    urls = []
    if files:
        uploader = uploader or FileUploadService()
        results = uploader.upload_files(files, UPLOAD_CONFIGS['ANNOUNCEMENTS'])
        failed = upload_errors(results, files)
        if failed:
            logger.warning('Announcement upload failed: %s', failed)
            raise AttachmentUploadFailed(failed)
        urls = [result.url for result in results]

    is_authenticated = getattr(created_by, 'is_authenticated', False)
    announcement = gateway.insert('announcements', {
        'title': title.strip(),
        'description': description.strip(),
        'audience': audience,
        'attachments': urls,
        'created_by': created_by if is_authenticated else None,
        'created_by_email': (created_by.email or '') if is_authenticated else '',
    })
    logger.info('Announcement %s published to %s', announcement.pk, audience)
    return announcement


def announcements_for_role(role, limit=None):
    """
    Newest announcements (``RECHECK_ANNOUNCEMENT_LIMIT`` by default) the
    role's audience may see. Raises PersistenceError when the read fails.
    """
    limit = limit or settings.RECHECK_ANNOUNCEMENT_LIMIT
    audiences = audiences_for_role(role)
    rows = gateway.select('announcements', order_by=['-created_at'], limit=limit)
    return [row for row in rows if row.audience in audiences]


def is_recipient(notification, email):
    """True for broadcasts and for notifications addressed to ``email``."""
    if notification.broadcast:
        return True
    if not email:
        return False
    wanted = email.lower()
    recipient = notification.recipient
    if isinstance(recipient, str):
        return recipient.lower() == wanted
    if isinstance(recipient, list):
        return wanted in [str(r).lower() for r in recipient]
    return False


def notifications_for(email):
    """
    Notifications visible to ``email``, newest first.

    An anonymous caller (no email) sees nothing. Raises PersistenceError
    when the read fails.
    """
    if not email:
        return []
    rows = gateway.select('notifications', order_by=['-created_at'])
    return [row for row in rows if is_recipient(row, email)]
