"""
Tests for the attachment file store.
"""
import re
from unittest import mock

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile

from apps.core.storage import (
    UPLOAD_CONFIGS,
    FileUploadService,
    UploadOptions,
    UploadResult,
    upload_errors,
)


OPTIONS = UploadOptions(bucket='storage', folder='tests', max_size=1024)


class TestValidateFile:
    def test_accepts_allowed_type_within_size(self, pdf_file):
        assert FileUploadService.validate_file(pdf_file(size=100), OPTIONS) is None

    def test_rejects_oversized_file(self, pdf_file):
        error = FileUploadService.validate_file(pdf_file(size=2048), OPTIONS)
        assert error == 'File size exceeds 0.0MB limit'

    def test_rejects_disallowed_type(self):
        file = SimpleUploadedFile('run.exe', b'MZ', content_type='application/x-msdownload')
        assert FileUploadService.validate_file(file, OPTIONS) == 'File type application/x-msdownload is not allowed'


class TestGenerateFilePath:
    def test_path_shape(self):
        path = FileUploadService.generate_file_path('my report (v2).pdf', 'deviations')
        assert re.fullmatch(r'deviations/\d{13}_[a-z0-9]{13}_my_report__v2_\.pdf', path)

    def test_without_folder(self):
        path = FileUploadService.generate_file_path('a.pdf')
        assert '/' not in path
        assert path.endswith('_a.pdf')

    def test_paths_are_unique(self):
        assert FileUploadService.generate_file_path('a.pdf') != FileUploadService.generate_file_path('a.pdf')


class TestUploadOptions:
    def test_in_folder_keeps_limits(self):
        options = UPLOAD_CONFIGS['DEVIATIONS'].in_folder('deviations/resolutions/7')
        assert options.folder == 'deviations/resolutions/7'
        assert options.max_size == 20 * 1024 * 1024
        assert options.bucket == UPLOAD_CONFIGS['DEVIATIONS'].bucket


class TestUploads:
    def test_upload_file_stores_and_returns_public_url(self, pdf_file, media_root):
        service = FileUploadService()
        result = service.upload_file(pdf_file('evidence.pdf'), OPTIONS)

        assert result.ok
        assert result.path.startswith('tests/')
        assert result.path.endswith('_evidence.pdf')
        assert result.url == f'/media/storage/{result.path}'
        assert service.storage.exists(f'storage/{result.path}')

    def test_invalid_file_is_not_stored(self, media_root):
        service = FileUploadService()
        file = SimpleUploadedFile('x.exe', b'MZ', content_type='application/x-msdownload')
        result = service.upload_file(file, OPTIONS)

        assert not result.ok
        assert result.url == ''

    def test_store_failure_is_reported(self, pdf_file):
        storage = mock.Mock()
        storage.exists.return_value = False
        storage.save.side_effect = OSError('bucket unavailable')
        result = FileUploadService(storage=storage).upload_file(pdf_file(), OPTIONS)

        assert result.error == 'Upload failed: bucket unavailable'

    def test_batch_stops_at_first_failure(self, pdf_file):
        bad = SimpleUploadedFile('x.exe', b'MZ', content_type='application/x-msdownload')
        service = FileUploadService()

        results = service.upload_files([pdf_file('a.pdf'), bad, pdf_file('c.pdf')], OPTIONS, stop_on_error=True)
        assert [r.ok for r in results] == [True, False]

    def test_batch_without_stop_collects_every_result(self, pdf_file):
        bad = SimpleUploadedFile('x.exe', b'MZ', content_type='application/x-msdownload')
        results = FileUploadService().upload_files([bad, pdf_file('b.pdf')], OPTIONS)
        assert [r.ok for r in results] == [False, True]

    def test_remove(self, pdf_file):
        service = FileUploadService()
        result = service.upload_file(pdf_file(), OPTIONS)

        assert service.delete_file('storage', result.path) is None
        assert not service.storage.exists(f'storage/{result.path}')


class TestUploadErrors:
    def test_prefixes_file_names(self, pdf_file):
        files = [pdf_file('a.pdf'), pdf_file('b.pdf')]
        results = [UploadResult(url='/x'), UploadResult(error='File type  is not allowed')]
        assert upload_errors(results, files) == ['b.pdf: File type  is not allowed']

    def test_without_files(self):
        assert upload_errors([UploadResult(error='boom')]) == ['boom']
