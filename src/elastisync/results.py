"""
Elastisync Results — Projecting Search Hits onto Records
========================================================

A read-only, lazily evaluated list of the records matching a query.

The query is narrowed to return only the document id, the stored type
discriminator and highlights. Hits are grouped by type, each type is
loaded from the record store in one bulk lookup, and the records are
returned in hit order. Hits whose record no longer exists are skipped.

Example:
    results = service.search({"query": {"match": {"title": "quantum"}}}, live=True)
    for record in results.limit(10, offset=20):
        print(record.title, record.highlights.get("title"))
    print(results.total_items)
"""

import copy
import logging
from typing import Any, Callable, Dict, Iterator, List, Optional, Union

from elasticsearch import ApiError, TransportError

from .exceptions import PostFilterError, ReadOnlyResultError, SearchEngineError
from .index import IndexManager
from .mapper import PUBLISHED_FIELD, TYPE_FIELD
from .records import Record, RecordStore

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10

Query = Union[str, Dict[str, Any]]


def build_query(query: Query) -> Dict[str, Any]:
    """Turn a query string or DSL body into a fresh request body."""
    if isinstance(query, str):
        return {"query": {"query_string": {"query": query}}}
    return copy.deepcopy(query) if query else {"query": {"match_all": {}}}


def add_published_filter(body: Dict[str, Any]) -> None:
    """Conjoin a must-match on the published field into the post_filter."""
    post_filter = body.get("post_filter")
    if post_filter is None:
        post_filter = {"bool": {}}
    elif not (isinstance(post_filter, dict) and list(post_filter) == ["bool"]):
        raise PostFilterError("Please use a bool query for your post_filter")

    clauses = post_filter["bool"]
    must = clauses.get("must", [])
    if isinstance(must, dict):
        must = [must]
    clauses["must"] = list(must) + [{"term": {PUBLISHED_FIELD: True}}]
    body["post_filter"] = post_filter


def record_id_of(document_id: str) -> int:
    return int(document_id.rsplit("_", 1)[-1])


class ResultList:
    """
    Read-only view of the records behind a search response.

    Supports iteration, len(), indexing and slicing. Every operation
    materialises the full projected page first.
    """

    def __init__(
        self,
        index: IndexManager,
        query: Query,
        store: RecordStore,
        live: bool = False,
        logger: Optional[logging.Logger] = None
    ):
        body = build_query(query)
        # Only fetch ids, the type discriminator and highlights
        body["_source"] = False
        body["stored_fields"] = [TYPE_FIELD]
        if live:
            add_published_filter(body)

        self.index = index
        self.query = body
        self.store = store
        self.live = live
        self.logger = logger
        self._response: Optional[Dict[str, Any]] = None
        self._records: Optional[List[Record]] = None

    def _clone(self) -> "ResultList":
        clone = copy.copy(self)
        clone.query = copy.deepcopy(self.query)
        clone._response = None
        clone._records = None
        return clone

    # ------------------------------------------------------------------
    # Query refinement
    # ------------------------------------------------------------------

    def limit(self, limit: int, offset: int = 0) -> "ResultList":
        clone = self._clone()
        clone.query["size"] = limit
        clone.query["from"] = offset
        return clone

    def sort(self, sort_args) -> "ResultList":
        clone = self._clone()
        clone.query["sort"] = sort_args
        return clone

    def page(self, number: int, per_page: int = DEFAULT_PAGE_SIZE) -> "ResultList":
        """1-based page of results."""
        return self.limit(per_page, (max(number, 1) - 1) * per_page)

    # ------------------------------------------------------------------
    # Engine response
    # ------------------------------------------------------------------

    def get_results(self) -> Dict[str, Any]:
        """Raw search response, fetched once."""
        if self._response is None:
            try:
                self._response = self.index.search(self.query)
            except (ApiError, TransportError) as exc:
                if self.logger is None:
                    raise SearchEngineError(f"{type(exc).__name__}: {exc}") from exc
                self.logger.warning("Search failed: %s", exc)
                self._response = {"hits": {"total": {"value": 0}, "hits": []}}
        return self._response

    def _hits(self) -> List[Dict[str, Any]]:
        return list(self.get_results().get("hits", {}).get("hits", []))

    @staticmethod
    def _type_of(hit: Dict[str, Any]) -> Optional[str]:
        values = hit.get("fields", {}).get(TYPE_FIELD) or []
        return values[0] if values else None

    def ids(self) -> List[str]:
        """Document ids of the hits, in hit order."""
        return [hit["_id"] for hit in self._hits()]

    @property
    def total_items(self) -> int:
        total = self.get_results().get("hits", {}).get("total", 0)
        if isinstance(total, dict):
            return int(total.get("value", 0))
        return int(total or 0)

    @property
    def first_item(self) -> int:
        """1-based position of the first result on this page (0 when empty)."""
        if not self.total_items:
            return 0
        return int(self.query.get("from", 0)) + 1

    @property
    def last_item(self) -> int:
        start = int(self.query.get("from", 0))
        size = int(self.query.get("size", DEFAULT_PAGE_SIZE))
        return min(start + size, self.total_items)

    # ------------------------------------------------------------------
    # Projection
    # ------------------------------------------------------------------

    def to_list(self) -> List[Record]:
        if self._records is not None:
            return list(self._records)

        hits = self._hits()
        needed: Dict[str, List[int]] = {}
        for hit in hits:
            type_name = self._type_of(hit)
            if not type_name:
                logger.warning("no type field found on result: %s", hit.get("_id"))
                continue
            needed.setdefault(type_name, []).append(record_id_of(hit["_id"]))

        retrieved: Dict[str, Dict[int, Record]] = {
            type_name: {r.id: r for r in self.store.get_by_ids(type_name, ids)}
            for type_name, ids in needed.items()
        }

        records = []
        for hit in hits:
            type_name = self._type_of(hit)
            if not type_name:
                continue
            record = retrieved[type_name].get(record_id_of(hit["_id"]))
            # Indexed items might no longer be in the store
            if record is None:
                continue
            # Store records are shared, highlights belong to this result only
            record = copy.copy(record)
            record.highlights = {
                field: "".join(fragments)
                for field, fragments in (hit.get("highlight") or {}).items()
            }
            records.append(record)

        self._records = records
        return list(records)

    def __iter__(self) -> Iterator[Record]:
        return iter(self.to_list())

    def __len__(self) -> int:
        return len(self.to_list())

    def __getitem__(self, item):
        return self.to_list()[item]

    def __contains__(self, record) -> bool:
        key = (getattr(record, "type_name", None), getattr(record, "id", None))
        return any((r.type_name, r.id) == key for r in self.to_list())

    def first(self) -> Optional[Record]:
        records = self.to_list()
        return records[0] if records else None

    def last(self) -> Optional[Record]:
        records = self.to_list()
        return records[-1] if records else None

    def map(self, key: str = "id", title: str = "title") -> Dict[Any, Any]:
        return {getattr(r, key): getattr(r, title) for r in self.to_list()}

    def column(self, col: str = "id") -> List[Any]:
        return [getattr(r, col) for r in self.to_list()]

    def each(self, callback: Callable[[Record], Any]) -> "ResultList":
        for record in self.to_list():
            callback(record)
        return self

    def find(self, key: str, value: Any) -> Optional[Record]:
        for record in self.to_list():
            if getattr(record, key, None) == value:
                return record
        return None

    # ------------------------------------------------------------------
    # Read-only
    # ------------------------------------------------------------------

    def _read_only(self, *args, **kwargs):
        raise ReadOnlyResultError("ResultList cannot be modified in memory")

    __setitem__ = _read_only
    __delitem__ = _read_only
    add = _read_only
    remove = _read_only
    append = _read_only
    insert = _read_only
