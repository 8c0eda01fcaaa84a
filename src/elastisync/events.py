"""
Elastisync Events — Record Lifecycle Hooks
==========================================

A small observer bus a record store emits on. Listeners subscribe to an
event name and are called with the affected record.
"""

import logging
from collections import defaultdict
from typing import Callable, Dict, List

logger = logging.getLogger(__name__)

AFTER_WRITE = "after_write"
BEFORE_DELETE = "before_delete"
AFTER_RELATION_ADD = "after_relation_add"
AFTER_RELATION_REMOVE = "after_relation_remove"

EVENTS = (AFTER_WRITE, BEFORE_DELETE, AFTER_RELATION_ADD, AFTER_RELATION_REMOVE)

Listener = Callable[..., None]


class RecordEvents:
    """Registry of lifecycle listeners."""

    def __init__(self):
        self._listeners: Dict[str, List[Listener]] = defaultdict(list)

    def subscribe(self, event: str, listener: Listener) -> None:
        if event not in EVENTS:
            raise ValueError(f"Unknown record event: {event}")
        self._listeners[event].append(listener)

    def unsubscribe(self, event: str, listener: Listener) -> None:
        self._listeners[event].remove(listener)

    def emit(self, event: str, record) -> None:
        for listener in list(self._listeners[event]):
            logger.debug("Dispatching %s for %s #%s", event, record.type_name, record.id)
            listener(record)
