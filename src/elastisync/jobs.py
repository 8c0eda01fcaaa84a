"""
Elastisync Jobs — Deferred Reindexing
=====================================

Reindexing after a write can be deferred to a job queue. A job carries
only the record's type and id; the record is looked up fresh from the
live stage when the job runs, and the job does nothing if it is gone.
"""

import logging
from collections import deque
from dataclasses import dataclass
from typing import Deque, Protocol

from .dependencies import DependencyPropagator
from .exceptions import UnsavedRecordError
from .records import Record, RecordStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReindexAfterWriteJob:
    type_name: str
    record_id: int

    @classmethod
    def for_record(cls, record: Record) -> "ReindexAfterWriteJob":
        if not record.id:
            raise UnsavedRecordError(f"Cannot queue a reindex of an unsaved {record.type_name}")
        return cls(record.type_name, record.id)

    @property
    def title(self) -> str:
        return f"Reindexing {self.type_name} ID {self.record_id}"

    def process(self, service, store: RecordStore) -> bool:
        """
        Sync the record and its dependents.

        Returns:
            False when the record no longer exists on the live stage
        """
        record = store.get_by_id(self.type_name, self.record_id, live=True)
        if record is None:
            logger.info("%s: record is gone, nothing to do", self.title)
            return False

        service.sync(record)
        DependencyPropagator(service, store).on_change(record)
        return True


class JobQueue(Protocol):
    def enqueue(self, job: ReindexAfterWriteJob) -> None:
        ...


class MemoryJobQueue:
    """
    In-process FIFO job queue.

    Example:
        queue = MemoryJobQueue()
        queue.enqueue(ReindexAfterWriteJob("Article", 4))
        queue.run_pending(service, store)
    """

    def __init__(self):
        self._jobs: Deque[ReindexAfterWriteJob] = deque()

    def enqueue(self, job: ReindexAfterWriteJob) -> None:
        logger.debug("Queued: %s", job.title)
        self._jobs.append(job)

    def __len__(self) -> int:
        return len(self._jobs)

    def run_pending(self, service, store: RecordStore) -> int:
        """Run every queued job in order; returns how many ran."""
        ran = 0
        while self._jobs:
            self._jobs.popleft().process(service, store)
            ran += 1
        return ran
