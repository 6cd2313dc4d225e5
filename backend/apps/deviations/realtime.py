"""
Realtime change feed for deviation reports.

Model signals publish INSERT / UPDATE / DELETE events into an in-process,
sequence-numbered ChangeFeed. Clients poll
``GET /api/v1/deviations/changes/?after=<seq>`` and fold the events into
their current page with DeviationWindow:

    UPDATE of a row on the page      -> patched in place (re-query if it
                                        no longer matches the filters)
    UPDATE of a row off the page     -> ignored, unless filters are active
                                        and the row now matches them
    INSERT / DELETE                  -> re-query the page
    page or filter change            -> re-query the page

The feed keeps the most recent RECHECK_CHANGE_FEED_SIZE events. A client
whose cursor is older than the oldest retained event gets ``reset=True`` and
must re-query instead of replaying. The same happens when the cursor is
ahead of the feed or was issued under another ``epoch``: sequence numbers
restart with the process, so such a cursor cannot be trusted.
"""

import logging
import threading
import uuid
from collections import deque
from dataclasses import asdict, dataclass, field

from django.conf import settings
from django.utils import timezone

from .filters import clean_params, row_matches

logger = logging.getLogger(__name__)


INSERT = 'INSERT'
UPDATE = 'UPDATE'
DELETE = 'DELETE'


@dataclass
class ChangeEvent:
    seq: int
    event: str
    record: dict
    at: str = field(default_factory=lambda: timezone.now().isoformat())

    def to_dict(self):
        return asdict(self)


class ChangeFeed:
    """Bounded, thread-safe event log with monotonically increasing sequence numbers."""

    def __init__(self, maxlen=None):
        self._events = deque(maxlen=maxlen or getattr(settings, 'RECHECK_CHANGE_FEED_SIZE', 500))
        self._seq = 0
        self._lock = threading.Lock()
        # Identifies this process's numbering; cursors from another epoch are stale
        self.epoch = uuid.uuid4().hex[:12]

    @property
    def last_seq(self):
        return self._seq

    def publish(self, event, record):
        with self._lock:
            self._seq += 1
            change = ChangeEvent(seq=self._seq, event=event, record=record)
            self._events.append(change)
        logger.debug('Change %s: %s %s', change.seq, event, record.get('id'))
        return change

    def since(self, after=0, epoch=None):
        """
        Events with ``seq > after``.

        Args:
            after: last sequence number the caller has applied
            epoch: the epoch the cursor was issued under, when known

        Returns:
            (events, reset) where ``reset`` is True when the cursor cannot
            be replayed: events after it were discarded, it is ahead of the
            feed, or it belongs to another epoch
        """
        with self._lock:
            events = [e for e in self._events if e.seq > after]
            last = self._seq
            oldest = self._events[0].seq if self._events else last + 1
        if (epoch is not None and epoch != self.epoch) or after > last:
            return [], True
        reset = after < oldest - 1 and after < last
        return events, reset

    def clear(self):
        with self._lock:
            self._events.clear()


# Process-wide feed fed by the model signals
feed = ChangeFeed()


def _row(instance):
    from .serializers import DeviationRowSerializer
    return dict(DeviationRowSerializer(instance).data)


def on_report_saved(sender, instance, created, **kwargs):
    feed.publish(INSERT if created else UPDATE, _row(instance))


def on_report_deleted(sender, instance, **kwargs):
    feed.publish(DELETE, {'id': instance.pk})


def connect_signals():
    from django.db.models.signals import post_delete, post_save

    from .models import DeviationReport

    post_save.connect(on_report_saved, sender=DeviationReport, dispatch_uid='deviation-report-saved')
    post_delete.connect(on_report_deleted, sender=DeviationReport, dispatch_uid='deviation-report-deleted')


class DeviationWindow:
    """
    The client-side view of one page of the deviation list.

    Args:
        loader: callable(params, page, page_size) -> (rows, total, page, page_count),
                rows being serialized dicts
        params: filter parameters (see filters.clean_params)
    """

    def __init__(self, loader, params=None, page=1, page_size=None):
        self.loader = loader
        self.params = clean_params(params or {})
        self.page = page
        self.page_size = page_size or settings.RECHECK_DEVIATION_PAGE_SIZE
        self.rows = []
        self.total = 0
        self.page_count = 1
        self.cursor = feed.last_seq
        self.epoch = None
        self.requery_count = 0

    def refresh(self):
        self.cursor = feed.last_seq
        self.rows, self.total, self.page, self.page_count = self.loader(
            self.params, self.page, self.page_size
        )
        self.requery_count += 1
        return self.rows

    def set_page(self, page):
        self.page = page
        return self.refresh()

    def set_filters(self, **params):
        self.params = clean_params(params)
        self.page = 1
        return self.refresh()

    def _index_of(self, row_id):
        for index, row in enumerate(self.rows):
            if row.get('id') == row_id:
                return index
        return None

    def apply(self, change):
        """
        Fold one ChangeEvent into the window.

        Returns:
            True when the visible rows changed
        """
        self.cursor = max(self.cursor, change.seq)
        if change.event in (INSERT, DELETE):
            self.refresh()
            return True

        record = change.record
        index = self._index_of(record.get('id'))
        if index is None:
            if self.params and row_matches(record, self.params):
                self.refresh()
                return True
            return False

        if not row_matches(record, self.params):
            self.refresh()
            return True
        self.rows[index] = {**self.rows[index], **record}
        return True

    def sync(self, source=None):
        """Pull and apply every event after the cursor. Returns True if rows changed."""
        source = source or feed
        events, reset = source.since(self.cursor, epoch=self.epoch)
        self.epoch = source.epoch
        if reset:
            self.refresh()
            return True
        changed = False
        for change in events:
            requeries = self.requery_count
            changed = self.apply(change) or changed
            if self.requery_count != requeries:
                # the re-query already reflects every later event
                break
        return changed
