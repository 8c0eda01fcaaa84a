"""
Elastisync Records — Domain Records and the Record Store Seam
=============================================================

The sync core never owns data. It observes records that live in an
application's store and reads them through the small `RecordStore`
protocol below.

`MemoryStore` is a complete in-process implementation of that protocol.
It keeps a live stage (records whose `published` flag is not False) and
emits lifecycle events on every write, delete and relation change.
"""

import itertools
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Protocol

from .events import (
    AFTER_RELATION_ADD,
    AFTER_RELATION_REMOVE,
    AFTER_WRITE,
    BEFORE_DELETE,
    RecordEvents,
)


@dataclass
class Attachment:
    """A file-like object whose binary content can be indexed."""

    name: str
    content: bytes = b""
    mime_type: str = "application/octet-stream"
    present: bool = True

    def exists(self) -> bool:
        return self.present

    def read(self) -> bytes:
        return self.content


@dataclass(eq=False)
class Record:
    """
    A domain entity instance eligible for indexing.

    Attributes:
        type_name: Fully-qualified type identifier (e.g. "Article", "app.Page")
        id: Numeric identity, None while the record has never been saved
        fields: Attribute values
        relations: Relation name -> Record, list of Records, Attachment or None
        published: Live status for versioned types, None when not versioned
    """

    type_name: str
    id: Optional[int] = None
    fields: Dict[str, Any] = field(default_factory=dict)
    relations: Dict[str, Any] = field(default_factory=dict)
    published: Optional[bool] = None
    highlights: Dict[str, str] = field(default_factory=dict)

    def exists(self) -> bool:
        return bool(self.id)

    def has_field(self, path: str) -> bool:
        head = path.split(".", 1)[0]
        return head in self.fields or head in self.relations

    def rel_field(self, path: str) -> Any:
        """Resolve a dotted path through relations and fields."""
        current: Any = self
        for part in path.split("."):
            if current is None:
                return None
            if isinstance(current, list):
                current = [item.rel_field(part) for item in current]
                continue
            if part in current.relations:
                current = current.relations[part]
            else:
                current = current.fields.get(part)
        return current

    @property
    def show_in_search(self) -> bool:
        return bool(self.fields.get("show_in_search", True))

    @property
    def title(self) -> str:
        for name in ("title", "name"):
            if self.fields.get(name):
                return str(self.fields[name])
        return f"#{self.id}"

    def __getattr__(self, name: str) -> Any:
        # Only reached for names that are not real attributes
        fields = self.__dict__.get("fields", {})
        if name in fields:
            return fields[name]
        raise AttributeError(name)


class RecordStore(Protocol):
    """What the sync core needs from an application's data store."""

    def all(self, type_name: str, live: bool = False) -> List[Record]:
        ...

    def get_by_id(self, type_name: str, record_id: int, live: bool = False) -> Optional[Record]:
        ...

    def get_by_ids(self, type_name: str, ids: Iterable[int]) -> List[Record]:
        ...


class MemoryStore:
    """
    In-memory record store with a live stage and lifecycle events.

    Example:
        store = MemoryStore()
        article = store.save(Record("Article", fields={"title": "Hello"}))
        store.all("Article", live=True)
    """

    def __init__(self, events: Optional[RecordEvents] = None):
        self.events = events or RecordEvents()
        self._records: Dict[str, Dict[int, Record]] = {}
        self._ids = itertools.count(1)

    def save(self, record: Record) -> Record:
        if not record.id:
            record.id = next(self._ids)
        self._records.setdefault(record.type_name, {})[record.id] = record
        self.events.emit(AFTER_WRITE, record)
        return record

    def delete(self, record: Record) -> None:
        self.events.emit(BEFORE_DELETE, record)
        self._records.get(record.type_name, {}).pop(record.id, None)

    def add_relation(self, record: Record, name: str, item: Record) -> None:
        """Add `item` to the to-many relation `name` of `record`."""
        record.relations.setdefault(name, []).append(item)
        self.events.emit(AFTER_RELATION_ADD, item)

    def remove_relation(self, record: Record, name: str, item: Record) -> None:
        items = record.relations.get(name) or []
        if item in items:
            items.remove(item)
        self.events.emit(AFTER_RELATION_REMOVE, item)

    def all(self, type_name: str, live: bool = False) -> List[Record]:
        records = list(self._records.get(type_name, {}).values())
        if live:
            records = [r for r in records if r.published is not False]
        return records

    def get_by_id(self, type_name: str, record_id: int, live: bool = False) -> Optional[Record]:
        record = self._records.get(type_name, {}).get(record_id)
        if record is not None and live and record.published is False:
            return None
        return record

    def get_by_ids(self, type_name: str, ids: Iterable[int]) -> List[Record]:
        table = self._records.get(type_name, {})
        return [table[i] for i in ids if i in table]
