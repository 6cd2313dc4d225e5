"""
Persistence Gateway for RECheck.

Thin CRUD facade over the Django ORM, addressed by collection name the same
way the browser client addresses its hosted tables. Every page and service
reads and writes through this class, so database failures are converted to
``PersistenceError`` in exactly one place.

Usage:
    from apps.core.gateway import gateway

    rows = gateway.select('deviation_reports', filters={'reported_by__in': ids},
                          order_by=['-report_submission_date'])
    gateway.update('deviation_reports', report.pk, {'severity': 'Minor'})
"""

import logging
from contextlib import contextmanager

from django.apps import apps
from django.core.exceptions import FieldError, ObjectDoesNotExist, ValidationError
from django.db import DatabaseError, transaction
from django.db.models import Count

logger = logging.getLogger(__name__)


# Collection name -> "app_label.ModelName"
COLLECTIONS = {
    'users': 'core.UserAccount',
    'deviation_reports': 'deviations.DeviationReport',
    'proposals': 'reviews.Proposal',
    'reviews': 'reviews.Review',
    'assigned_reviews': 'reviews.AssignedReview',
    'announcements': 'announcements.Announcement',
    'notifications': 'announcements.Notification',
    'form_submissions': 'submissions.FormSubmission',
}


class PersistenceError(Exception):
    """A read or write against the backing store failed."""

    def __init__(self, message, collection=None):
        super().__init__(message)
        self.collection = collection


class RecordNotFound(PersistenceError):
    """A single-row lookup matched nothing."""


class StaleWriteError(PersistenceError):
    """A conditional update was rejected because the row changed underneath it."""

    def __init__(self, message, collection=None, expected=None, actual=None):
        super().__init__(message, collection)
        self.expected = expected
        self.actual = actual


class PersistenceGateway:
    """
    Named-collection access to the relational store.

    Each call is a single round trip; there is no client-side transaction
    spanning calls. ``update`` is the only method that locks, and only for the
    duration of its own write.
    """

    def model(self, collection):
        """Resolve a collection name to its model class."""
        try:
            return apps.get_model(COLLECTIONS[collection])
        except KeyError:
            raise PersistenceError(f'Unknown collection: {collection}', collection)

    def queryset(self, collection):
        """
        Lazy queryset for callers that compose their own filtering
        (django-filter FilterSets, paginators). Evaluate it inside
        ``read_errors`` so failures still surface as PersistenceError.
        """
        return self.model(collection).objects.all()

    def select(self, collection, filters=None, q=None, exclude=None,
               order_by=None, limit=None, related=None):
        """
        Read rows from a collection.

        Args:
            collection: Collection name (see COLLECTIONS)
            filters: Dict of ORM lookups, e.g. {'resolution_status__in': [...]}
            q: Optional Q object for OR-conditions
            exclude: Dict of ORM lookups to exclude
            order_by: List of ordering expressions
            limit: Maximum number of rows
            related: List of relations to select_related

        Returns:
            list of model instances
        """
        model = self.model(collection)
        try:
            queryset = model.objects.all()
            if related:
                queryset = queryset.select_related(*related)
            if q is not None:
                queryset = queryset.filter(q)
            if filters:
                queryset = queryset.filter(**filters)
            if exclude:
                queryset = queryset.exclude(**exclude)
            if order_by:
                queryset = queryset.order_by(*order_by)
            if limit is not None:
                queryset = queryset[:limit]
            return list(queryset)
        except (DatabaseError, FieldError, ValueError) as e:
            logger.error('select on %s failed: %s', collection, e)
            raise PersistenceError(f'Failed to read {collection}: {e}', collection)

    def get(self, collection, related=None, **lookup):
        """Fetch exactly one row; raises RecordNotFound when nothing matches."""
        model = self.model(collection)
        try:
            queryset = model.objects.all()
            if related:
                queryset = queryset.select_related(*related)
            return queryset.get(**lookup)
        except ObjectDoesNotExist:
            raise RecordNotFound(f'No {collection} row matches {lookup}', collection)
        except (DatabaseError, FieldError, ValueError, ValidationError) as e:
            logger.error('get on %s failed: %s', collection, e)
            raise PersistenceError(f'Failed to read {collection}: {e}', collection)

    def insert(self, collection, values):
        """Insert one row and return the stored instance."""
        model = self.model(collection)
        try:
            return model.objects.create(**values)
        except (DatabaseError, TypeError, ValueError) as e:
            logger.error('insert into %s failed: %s', collection, e)
            raise PersistenceError(f'Failed to insert into {collection}: {e}', collection)

    def update(self, collection, pk, values, expected_version=None):
        """
        Update one row by primary key.

        When the model has a ``version`` column it is bumped on every write.
        If ``expected_version`` is given and no longer matches, nothing is
        written and StaleWriteError is raised (last-write-wins is opt-out).

        Returns:
            The updated model instance
        """
        if pk is None:
            raise RecordNotFound(f'No {collection} id given', collection)

        model = self.model(collection)
        versioned = any(f.name == 'version' for f in model._meta.fields)
        try:
            with transaction.atomic():
                instance = model.objects.select_for_update().get(pk=pk)
                if expected_version is not None and versioned and instance.version != expected_version:
                    raise StaleWriteError(
                        f'{collection} {pk} changed since it was read',
                        collection,
                        expected=expected_version,
                        actual=instance.version,
                    )
                for field, value in values.items():
                    setattr(instance, field, value)
                if versioned:
                    instance.version += 1
                instance.save()
                return instance
        except ObjectDoesNotExist:
            raise RecordNotFound(f'No {collection} row with id {pk}', collection)
        except (DatabaseError, ValueError, ValidationError) as e:
            logger.error('update of %s %s failed: %s', collection, pk, e)
            raise PersistenceError(f'Failed to update {collection}: {e}', collection)

    def count(self, collection, filters=None, exclude=None):
        """Count-only query, used for dashboard stats."""
        model = self.model(collection)
        try:
            queryset = model.objects.all()
            if filters:
                queryset = queryset.filter(**filters)
            if exclude:
                queryset = queryset.exclude(**exclude)
            return queryset.count()
        except (DatabaseError, FieldError, ValueError) as e:
            logger.error('count on %s failed: %s', collection, e)
            raise PersistenceError(f'Failed to count {collection}: {e}', collection)

    def aggregate_counts(self, collection, field):
        """Return {value: row count} grouped by one column."""
        model = self.model(collection)
        try:
            rows = model.objects.values(field).annotate(total=Count('pk')).order_by(field)
            return {row[field]: row['total'] for row in rows}
        except (DatabaseError, FieldError) as e:
            logger.error('aggregate on %s.%s failed: %s', collection, field, e)
            raise PersistenceError(f'Failed to aggregate {collection}: {e}', collection)


@contextmanager
def read_errors(collection):
    """Convert database failures raised inside the block to PersistenceError."""
    try:
        yield
    except (DatabaseError, FieldError, ValueError) as e:
        logger.error('read on %s failed: %s', collection, e)
        raise PersistenceError(f'Failed to read {collection}: {e}', collection)


# Shared instance used by services and views
gateway = PersistenceGateway()
