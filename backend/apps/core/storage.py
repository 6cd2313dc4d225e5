"""
File object store for RECheck attachments.

Wraps Django's default storage with the bucket/path model the portal uses:
objects live at ``<bucket>/<path>`` and ``path`` is what gets recorded on the
owning row. Paths are generated here as
``<ms-timestamp>_<random>_<sanitized-filename>``, optionally under a folder.

Uploads in a batch are issued one after another. A failed upload is reported
in its UploadResult; the caller decides whether to abort. Files that already
made it into storage are not rolled back.
"""

import logging
import re
import string
import time
from dataclasses import dataclass

from django.conf import settings
from django.core.files.storage import default_storage
from django.utils.crypto import get_random_string

logger = logging.getLogger(__name__)


DEFAULT_MAX_SIZE = getattr(settings, 'MAX_UPLOAD_SIZE', 10 * 1024 * 1024)

DEFAULT_ALLOWED_TYPES = (
    'image/jpeg',
    'image/png',
    'image/gif',
    'image/webp',
    'application/pdf',
    'application/msword',
    'application/vnd.openxmlformats-officedocument.wordprocessingml.document',
    'application/vnd.ms-excel',
    'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
    'text/plain',
    'text/csv',
)


@dataclass(frozen=True)
class UploadOptions:
    bucket: str
    folder: str = ''
    allowed_types: tuple = DEFAULT_ALLOWED_TYPES
    max_size: int = DEFAULT_MAX_SIZE
    upsert: bool = True

    def in_folder(self, folder):
        """Same options, different folder (e.g. per-report resolution uploads)."""
        return UploadOptions(self.bucket, folder, self.allowed_types, self.max_size, self.upsert)


@dataclass
class UploadResult:
    url: str = ''
    path: str = ''
    error: str = None

    @property
    def ok(self):
        return self.error is None


# Predefined upload configurations
UPLOAD_CONFIGS = {
    'ANNOUNCEMENTS': UploadOptions(
        bucket=getattr(settings, 'FILE_STORE_BUCKET', 'storage'),
        folder='announcements',
        max_size=DEFAULT_MAX_SIZE,
    ),
    'DEVIATIONS': UploadOptions(
        bucket=getattr(settings, 'FILE_STORE_BUCKET', 'storage'),
        folder='deviations',
        max_size=20 * 1024 * 1024,
    ),
}


class FileUploadService:
    """
    Upload, locate and remove attachment objects.

    ``storage`` defaults to Django's default storage; tests and alternative
    deployments can pass any Storage instance.
    """

    def __init__(self, storage=None):
        self.storage = storage or default_storage

    @staticmethod
    def validate_file(file, options):
        """
        Check size and content type before any network call.

        Returns:
            str error message, or None when the file is acceptable
        """
        max_size = options.max_size or DEFAULT_MAX_SIZE
        allowed_types = options.allowed_types or DEFAULT_ALLOWED_TYPES

        if file.size > max_size:
            return f'File size exceeds {max_size / 1024 / 1024:.1f}MB limit'

        content_type = getattr(file, 'content_type', None) or ''
        if content_type not in allowed_types:
            return f'File type {content_type} is not allowed'

        return None

    @staticmethod
    def generate_file_path(file_name, folder=''):
        """Build ``[folder/]<ms-timestamp>_<random>_<sanitized-name>``."""
        timestamp = int(time.time() * 1000)
        random_str = get_random_string(13, allowed_chars=string.ascii_lowercase + string.digits)
        sanitized_name = re.sub(r'[^a-zA-Z0-9.-]', '_', file_name)

        name = f'{timestamp}_{random_str}_{sanitized_name}'
        if folder:
            return f'{folder}/{name}'
        return name

    def _object_name(self, bucket, path):
        return f'{bucket}/{path}'

    def upload(self, bucket, path, file, upsert=True):
        """Store ``file`` at ``bucket/path`` and return the stored path."""
        name = self._object_name(bucket, path)
        if upsert and self.storage.exists(name):
            self.storage.delete(name)
        stored = self.storage.save(name, file)
        return stored[len(bucket) + 1:]

    def get_public_url(self, bucket, path):
        return self.storage.url(self._object_name(bucket, path))

    def upload_file(self, file, options):
        """
        Validate and upload a single file.

        Returns:
            UploadResult with url/path on success, error message on failure
        """
        validation_error = self.validate_file(file, options)
        if validation_error:
            return UploadResult(error=validation_error)

        path = self.generate_file_path(file.name, options.folder)
        try:
            stored_path = self.upload(options.bucket, path, file, upsert=options.upsert)
        except OSError as e:
            logger.error('Upload of %s to %s failed: %s', file.name, options.bucket, e)
            return UploadResult(error=f'Upload failed: {e}')

        return UploadResult(
            url=self.get_public_url(options.bucket, stored_path),
            path=stored_path,
        )

    def upload_files(self, files, options, stop_on_error=False):
        """
        Upload files one by one, collecting a result per file.

        With ``stop_on_error`` the batch ends at the first failure; the
        returned list is then shorter than ``files``.
        """
        results = []
        for file in files:
            result = self.upload_file(file, options)
            results.append(result)
            if stop_on_error and not result.ok:
                break
        return results

    def delete_file(self, bucket, path):
        """Remove one object. Returns an error message or None."""
        return self.remove(bucket, [path])

    def remove(self, bucket, paths):
        """Remove several objects from a bucket. Returns an error message or None."""
        try:
            for path in paths:
                self.storage.delete(self._object_name(bucket, path))
        except OSError as e:
            logger.error('Delete from %s failed: %s', bucket, e)
            return f'Delete failed: {e}'
        return None


def upload_errors(results, files=None):
    """
    Collect error messages from a batch of UploadResults.

    When the uploaded files are passed in, messages are prefixed with the file name.
    """
    errors = []
    for index, result in enumerate(results):
        if result.ok:
            continue
        if files is not None:
            errors.append(f'{files[index].name}: {result.error}')
        else:
            errors.append(result.error)
    return errors
