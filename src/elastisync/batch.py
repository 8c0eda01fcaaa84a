"""
Elastisync Batch — Buffered Index Writes
========================================

While a batch scope is open, index and remove calls are queued into the
innermost frame instead of hitting Elasticsearch. Each frame is flushed
when its own scope exits:

    frame = {
        "Article": {"deletes": [Document, ...], "updates": [Document, ...]},
        "Comment": {...},
    }

For each type, deletes are sent before updates so a queued delete never
clobbers a later update of the same document. One refresh is issued per
flush when anything was written.

The frame stack lives in a ContextVar, so concurrent threads or tasks
using the same service each see their own stack.
"""

import logging
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Dict, List, Tuple

from elasticsearch import NotFoundError

from .exceptions import InvalidBatchActionError, SearchEngineError
from .index import IndexManager
from .mapper import Document

logger = logging.getLogger(__name__)

UPDATES = "updates"
DELETES = "deletes"

Frame = Dict[str, Dict[str, List[Document]]]


@dataclass
class BatchReport:
    """Filled in when a batch scope exits."""

    documents_processed: int = 0


class BatchStack:
    """Call-context-local stack of pending operation frames."""

    def __init__(self):
        self._frames: ContextVar[Tuple[Frame, ...]] = ContextVar(
            f"elastisync_batches_{id(self)}", default=()
        )

    @property
    def active(self) -> bool:
        return bool(self._frames.get())

    @property
    def depth(self) -> int:
        return len(self._frames.get())

    def push(self) -> Frame:
        frame: Frame = {}
        self._frames.set(self._frames.get() + (frame,))
        return frame

    def pop(self) -> Frame:
        frames = self._frames.get()
        if not frames:
            raise IndexError("No batch frame to pop")
        self._frames.set(frames[:-1])
        return frames[-1]

    def enqueue(self, type_name: str, action: str, document: Document) -> None:
        if action not in (DELETES, UPDATES):
            raise InvalidBatchActionError(f"Invalid batch action {action}")
        frames = self._frames.get()
        if not frames:
            raise IndexError("No batch frame is open")
        # Deletes key first so iteration order matches flush order
        changes = frames[-1].setdefault(type_name, {DELETES: [], UPDATES: []})
        changes[action].append(document)


def _flush_order(item):
    return item[0] != DELETES


def flush_frame(frame: Frame, index: IndexManager) -> int:
    """
    Send one frame to Elasticsearch.

    Args:
        frame: Pending operations grouped by type
        index: Target index

    Returns:
        Number of documents processed (updates + deletes)
    """
    processed = 0

    for type_name, changes in frame.items():
        for action, documents in sorted(changes.items(), key=_flush_order):
            if not documents:
                continue
            processed += len(documents)

            if action == DELETES:
                try:
                    _, errors = index.delete_documents(documents)
                except NotFoundError:
                    # no-op if not found
                    continue
            elif action == UPDATES:
                _, errors = index.add_documents(documents)
            else:
                raise InvalidBatchActionError(f"Invalid batch action {action}")

            if errors:
                raise SearchEngineError(
                    f"Bulk {action} of {type_name} failed for {len(errors)} document(s): {errors[0]}"
                )
            logger.debug("Flushed %d %s for %s", len(documents), action, type_name)

    if processed:
        index.refresh()

    return processed
