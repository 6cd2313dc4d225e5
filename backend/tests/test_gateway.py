"""
Tests for the persistence gateway.
"""
from unittest import mock

import pytest
from django.db import DatabaseError
from django.db.models import Q

from apps.core.gateway import (
    PersistenceError,
    RecordNotFound,
    StaleWriteError,
    gateway,
    read_errors,
)


@pytest.mark.django_db
class TestSelect:
    def test_filters_order_and_limit(self, make_report):
        make_report(protocol_title='A', severity='Minor')
        make_report(protocol_title='B', severity='Major')
        make_report(protocol_title='C', severity='Major')

        rows = gateway.select('deviation_reports', filters={'severity': 'Major'},
                              order_by=['-protocol_title'], limit=1)
        assert [r.protocol_title for r in rows] == ['C']

    def test_q_and_exclude(self, make_report):
        make_report(protocol_title='A', reported_by='a@uni.edu')
        make_report(protocol_title='B', reported_by='b@uni.edu')
        make_report(protocol_title='C', reported_by='c@uni.edu')

        rows = gateway.select(
            'deviation_reports',
            q=Q(reported_by='a@uni.edu') | Q(reported_by='b@uni.edu'),
            exclude={'protocol_title': 'B'},
        )
        assert [r.protocol_title for r in rows] == ['A']

    def test_unknown_collection(self):
        with pytest.raises(PersistenceError):
            gateway.select('nothing_here')

    def test_bad_lookup_becomes_persistence_error(self):
        with pytest.raises(PersistenceError) as excinfo:
            gateway.select('deviation_reports', filters={'no_such_field': 1})
        assert excinfo.value.collection == 'deviation_reports'

    def test_database_failure_becomes_persistence_error(self):
        with mock.patch('django.db.models.query.QuerySet.__iter__', side_effect=DatabaseError('gone')):
            with pytest.raises(PersistenceError):
                gateway.select('deviation_reports')


@pytest.mark.django_db
class TestGetAndInsert:
    def test_get_missing_row(self):
        with pytest.raises(RecordNotFound):
            gateway.get('deviation_reports', pk=999)

    def test_insert_then_get(self, staff):
        row = gateway.insert('proposals', {'title': 'Sleep study', 'submitted_by': staff})
        fetched = gateway.get('proposals', pk=row.pk)
        assert fetched.title == 'Sleep study'
        assert fetched.status == 'Submitted'


@pytest.mark.django_db
class TestUpdate:
    def test_update_bumps_version(self, make_report):
        report = make_report()
        assert report.version == 1

        updated = gateway.update('deviation_reports', report.pk, {'severity': 'Minor'})
        assert updated.severity == 'Minor'
        assert updated.version == 2

    def test_stale_write_is_rejected(self, make_report):
        """A conditional write against an outdated version changes nothing."""
        report = make_report()
        gateway.update('deviation_reports', report.pk, {'severity': 'Minor'})

        with pytest.raises(StaleWriteError) as excinfo:
            gateway.update('deviation_reports', report.pk, {'severity': 'Major'}, expected_version=1)
        assert excinfo.value.expected == 1
        assert excinfo.value.actual == 2

        report.refresh_from_db()
        assert report.severity == 'Minor'

    def test_matching_version_is_written(self, make_report):
        report = make_report()
        updated = gateway.update('deviation_reports', report.pk, {'severity': 'Major'}, expected_version=1)
        assert updated.severity == 'Major'

    def test_update_missing_row(self):
        with pytest.raises(RecordNotFound):
            gateway.update('deviation_reports', 12345, {'severity': 'Minor'})

    def test_update_without_id(self):
        with pytest.raises(RecordNotFound):
            gateway.update('deviation_reports', None, {'severity': 'Minor'})

    def test_unversioned_collection_ignores_expected_version(self):
        proposal = gateway.insert('proposals', {'title': 'P'})
        updated = gateway.update('proposals', proposal.pk, {'status': 'Approved'}, expected_version=7)
        assert updated.status == 'Approved'


@pytest.mark.django_db
class TestCounts:
    def test_count_with_filters_and_exclude(self, make_report):
        make_report(severity='Minor')
        make_report(severity='Major')
        make_report()

        assert gateway.count('deviation_reports') == 3
        assert gateway.count('deviation_reports', filters={'severity': 'Major'}) == 1
        assert gateway.count('deviation_reports', exclude={'severity': 'Major'}) == 2

    def test_aggregate_counts(self, make_report):
        make_report(type='Informed Consent')
        make_report(type='Informed Consent')
        make_report(type='Protocol Deviation')

        counts = gateway.aggregate_counts('deviation_reports', 'type')
        assert counts == {'Informed Consent': 2, 'Protocol Deviation': 1}


class TestReadErrors:
    def test_database_error_is_converted(self):
        with pytest.raises(PersistenceError):
            with read_errors('deviation_reports'):
                raise DatabaseError('lost connection')

    def test_other_errors_pass_through(self):
        with pytest.raises(KeyError):
            with read_errors('deviation_reports'):
                raise KeyError('x')
