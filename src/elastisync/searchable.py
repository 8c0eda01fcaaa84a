"""
Elastisync Searchable — Lifecycle Events to Index Updates
=========================================================

`SearchableListener` subscribes to a record store's lifecycle events and
keeps the index current:

    after_write            reindex the live version, then its dependents
    before_delete          remove from the index, then its dependents (always inline)
    after_relation_add     re-sync dependents
    after_relation_remove  re-sync dependents

With a job queue, the work after writes and relation changes is deferred
as a `ReindexAfterWriteJob` instead of running inline.
"""

import logging
from typing import Optional

from .dependencies import DependencyPropagator
from .events import (
    AFTER_RELATION_ADD,
    AFTER_RELATION_REMOVE,
    AFTER_WRITE,
    BEFORE_DELETE,
    RecordEvents,
)
from .jobs import JobQueue, ReindexAfterWriteJob
from .records import Record, RecordStore

logger = logging.getLogger(__name__)


class SearchableListener:
    """
    Example:
        store = MemoryStore()
        SearchableListener(service, store).attach(store.events)
        store.save(Record("Article", fields={"title": "Hello"}))  # indexed
    """

    def __init__(self, service, store: RecordStore, queue: Optional[JobQueue] = None):
        self.service = service
        self.store = store
        self.queue = queue
        self.propagator = DependencyPropagator(service, store)

    @property
    def queued(self) -> bool:
        return self.queue is not None

    def attach(self, events: RecordEvents) -> "SearchableListener":
        events.subscribe(AFTER_WRITE, self.on_after_write)
        events.subscribe(BEFORE_DELETE, self.on_before_delete)
        events.subscribe(AFTER_RELATION_ADD, self.on_relation_change)
        events.subscribe(AFTER_RELATION_REMOVE, self.on_relation_change)
        return self

    def _searchable(self, record: Record) -> bool:
        return record.type_name in self.service.registry

    def on_after_write(self, record: Record) -> None:
        if not self._searchable(record):
            return
        if self.queued:
            self.queue_reindex(record)
        else:
            self.reindex(record)

    def on_before_delete(self, record: Record) -> None:
        if not self._searchable(record):
            return
        self.service.remove(record)
        # A queued job would find the record gone, so dependents run inline
        self.propagator.on_change(record)

    def on_relation_change(self, record: Record) -> None:
        if not self._searchable(record):
            return
        if self.queued:
            self.queue_reindex(record)
        else:
            self.propagator.on_change(record)

    def reindex(self, record: Record) -> None:
        """Sync the live version of `record`, then its dependents."""
        live = self.store.get_by_id(record.type_name, record.id, live=True)
        if live is None:
            logger.debug("%s #%s has no live version", record.type_name, record.id)
            return
        self.service.sync(live)
        self.propagator.on_change(live)

    def queue_reindex(self, record: Record) -> ReindexAfterWriteJob:
        if self.queue is None:
            raise RuntimeError("No job queue configured")
        job = ReindexAfterWriteJob.for_record(record)
        self.queue.enqueue(job)
        return job
