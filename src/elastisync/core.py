"""
Elastisync Core — Keeping a Search Index in Sync with Records
=============================================================

`SyncService` is the gateway between application records and one
Elasticsearch index:

    record write/delete → DocumentMapper → SyncService → Elasticsearch
                                              ↑
                                        batch frames (optional)

Error policy:
    Every call to Elasticsearch goes through one reporting path. With a
    logger configured the failure is logged and the operation returns None,
    so loops such as `refresh()` keep going. Without a logger the failure
    is raised as SearchEngineError.

Usage:
    from elastisync import SyncService, SyncConfig

    service = SyncService.from_config(config, store)
    service.define(recreate=True)
    service.refresh()

    with service.batch() as report:
        for record in records:
            service.index(record)
    print(report.documents_processed)
"""

import logging
import traceback
from contextlib import contextmanager
from enum import Enum
from typing import Any, Callable, Iterator, Optional, Tuple

from elasticsearch import ApiError, NotFoundError, TransportError
from elasticsearch.helpers import BulkIndexError

from .batch import DELETES, UPDATES, BatchReport, BatchStack, flush_frame
from .config import SyncConfig
from .exceptions import SearchEngineError
from .index import IndexManager, create_client
from .mapper import Document, DocumentMapper
from .memory import increase_memory_limit_to
from .records import Record, RecordStore
from .registry import TypeRegistry
from .results import ResultList

logger = logging.getLogger(__name__)

ENGINE_ERRORS = (ApiError, TransportError, BulkIndexError, SearchEngineError)


class Outcome(Enum):
    """Non-response results of index/remove."""

    SKIPPED = "skipped"
    QUEUED = "queued"
    NOT_FOUND = "not_found"


class SyncService:
    """
    Index, remove, define and refresh records in one Elasticsearch index.

    Example:
        service = SyncService(IndexManager(client, "website"), registry, store=store)
        service.index(article)
        service.remove(comment)
    """

    def __init__(
        self,
        index: IndexManager,
        registry: TypeRegistry,
        store: Optional[RecordStore] = None,
        config: Optional[SyncConfig] = None,
        logger: Optional[logging.Logger] = None,
        mapper: Optional[DocumentMapper] = None
    ):
        """
        Args:
            index: Target index
            registry: Searchable types
            store: Record store, needed by refresh() and search()
            config: Sync configuration (defaults to SyncConfig())
            logger: When set, engine errors are logged instead of raised
            mapper: Document mapper (built from the registry if omitted)
        """
        self.index_manager = index
        self.registry = registry
        self.store = store
        self.config = config or SyncConfig()
        self.logger = logger
        self.mapper = mapper or DocumentMapper(registry)
        self.batches = BatchStack()
        self._memory_limit_set = False

    @classmethod
    def from_config(
        cls,
        config: SyncConfig,
        store: Optional[RecordStore] = None,
        logger: Optional[logging.Logger] = None
    ) -> "SyncService":
        """Build a client, registry and service from one SyncConfig."""
        client = create_client(
            hosts=config.hosts,
            api_key=config.api_key,
            verify_certs=config.verify_certs
        )
        return cls(
            IndexManager(client, config.index_name),
            TypeRegistry.from_config(config),
            store=store,
            config=config,
            logger=logger
        )

    # ------------------------------------------------------------------
    # Index lifecycle
    # ------------------------------------------------------------------

    def create_index(self):
        """Create the index, sending `index_schema_config` when configured."""
        return self._run_query(lambda: self.index_manager.create(self.config.index_schema_config or None))

    def delete_index(self):
        """Delete the index. Use with caution!"""
        return self._run_query(self.index_manager.delete)

    def define(self, recreate: bool = False) -> None:
        """
        Create the index if needed and push the mapping of every indexed type.

        Args:
            recreate: Delete an existing index first (e.g. after a mapping change)
        """
        exists = bool(self._run_query(self.index_manager.exists))

        if exists and recreate:
            self.delete_index()
            exists = False

        if not exists:
            self.create_index()

        for type_name in self.registry.indexed_types():
            schema = self.mapper.schema_for(type_name)
            if schema is None:
                logger.debug("No mapping for %s", type_name)
                continue
            self._run_query(lambda schema=schema: self.index_manager.put_mapping(schema))

    def refresh(self, echo: Callable[[str], None] = print) -> None:
        """
        Re-index every live record of every indexed type.

        Args:
            echo: Receives one progress line per record processed
        """
        if self.store is None:
            raise ValueError("refresh() needs a record store")

        for type_name in self.registry.indexed_types():
            for record in self.store.all(type_name, live=True):
                if record.show_in_search:
                    if self._succeeded(self.index(record)):
                        self._print_action_message(record, "INDEXED", echo)
                elif self._succeeded(self.remove(record)):
                    self._print_action_message(record, "REMOVED", echo)

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def index(self, record: Record) -> Any:
        """
        Create or update a record in the index.

        Returns:
            Engine response, Outcome.QUEUED when batching, Outcome.SKIPPED when
            indexing is disabled or the type is a supporting type, or None
            after a logged failure
        """
        if self._skip(record):
            return Outcome.SKIPPED

        self._ensure_memory_limit()
        document = self.mapper.document_for(record)

        if self.batches.active:
            self.batches.enqueue(record.type_name, UPDATES, document)
            return Outcome.QUEUED

        def send():
            response = self.index_manager.add_document(document)
            self.index_manager.refresh()
            return response

        return self._run_query(send)

    def remove(self, record: Record) -> Any:
        """
        Delete a record from the index.

        Returns:
            Engine response, Outcome.QUEUED, Outcome.SKIPPED, Outcome.NOT_FOUND
            when the document was already absent, or None after a logged failure
        """
        if self._skip(record):
            return Outcome.SKIPPED

        document = Document(self.mapper.document_id(record), record.type_name)

        if self.batches.active:
            self.batches.enqueue(record.type_name, DELETES, document)
            return Outcome.QUEUED

        try:
            response = self.index_manager.delete_document(document.id)
        except NotFoundError:
            # Already deleted records are not an error
            return Outcome.NOT_FOUND
        except ENGINE_ERRORS as exc:
            return self._exception(exc)

        self._log_response(response)
        return response

    def sync(self, record: Record) -> Any:
        """Index a search-visible record, remove any other."""
        if record.show_in_search:
            return self.index(record)
        return self.remove(record)

    # ------------------------------------------------------------------
    # Batching
    # ------------------------------------------------------------------

    @contextmanager
    def batch(self) -> Iterator[BatchReport]:
        """
        Buffer index/remove calls until the block exits, then bulk-send them.

        The frame is flushed even when the block raises. In that case the
        block's own exception propagates and a failing flush is only logged.
        """
        report = BatchReport()
        self.batches.push()
        try:
            yield report
        except BaseException:
            self._end_batch(report, block_failed=True)
            raise
        self._end_batch(report)

    def _end_batch(self, report: BatchReport, block_failed: bool = False) -> None:
        frame = self.batches.pop()
        try:
            report.documents_processed = flush_frame(frame, self.index_manager)
        except ENGINE_ERRORS as exc:
            if block_failed and self.logger is None:
                logger.error("Batch flush failed after an error in the batch scope: %s", exc)
                return
            self._exception(exc)

    def run_batched(self, work: Callable[[], Any]) -> Tuple[Any, int]:
        """
        Run `work` inside a batch scope.

        Returns:
            Tuple of (work result, documents processed by the flush)
        """
        with self.batch() as report:
            result = work()
        return result, report.documents_processed

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def search(self, query, live: bool = False) -> ResultList:
        """
        Search the index and project hits back onto records.

        Args:
            query: Query DSL body (dict) or a query string
            live: Only return published documents
        """
        if self.store is None:
            raise ValueError("search() needs a record store")
        return ResultList(self.index_manager, query, self.store, live=live, logger=self.logger)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _skip(self, record: Record) -> bool:
        if self.config.disable_indexing or record.type_name not in self.registry:
            return True
        return self.registry.is_supporting(record.type_name)

    @staticmethod
    def _succeeded(result: Any) -> bool:
        return result is not None and result is not Outcome.SKIPPED and result is not Outcome.NOT_FOUND

    def _ensure_memory_limit(self) -> None:
        if self._memory_limit_set or not self.config.indexing_memory_limit:
            return
        increase_memory_limit_to(self.config.indexing_memory_limit)
        self._memory_limit_set = True

    def _print_action_message(self, record: Record, action: str, echo: Callable[[str], None]) -> None:
        echo(f'{action}: Document Type "{record.type_name}" - {record.title} - ID {record.id}')

    def _run_query(self, callback: Callable[[], Any]) -> Any:
        try:
            response = callback()
        except ENGINE_ERRORS as exc:
            return self._exception(exc)
        self._log_response(response)
        return response

    def _exception(self, exc: Exception) -> None:
        """Log an engine failure, or raise it when no logger is configured."""
        if self.logger is None:
            if isinstance(exc, SearchEngineError):
                raise exc
            raise SearchEngineError(f"{type(exc).__name__}: {exc}", _status_of(exc)) from exc

        origin = "unknown"
        if exc.__traceback__ is not None:
            frame = traceback.extract_tb(exc.__traceback__)[-1]
            origin = f"{frame.filename} line {frame.lineno}"
        self.logger.error('Uncaught Exception %s: "%s" at %s', type(exc).__name__, exc, origin)
        return None

    def _log_response(self, response: Any) -> None:
        """Treat a non-2xx response that did not raise as an error."""
        status = getattr(getattr(response, "meta", None), "status", None)
        if not isinstance(status, int) or 200 <= status < 300:
            return

        body = getattr(response, "body", None)
        detail = body.get("message") if isinstance(body, dict) else None
        message = f"Elasticsearch server error: {detail or f'HTTP {status} error'}"

        if self.logger is None:
            raise SearchEngineError(message, status)
        self.logger.error(message)


def _status_of(exc: Exception) -> int:
    status = getattr(exc, "status_code", 0)
    return status if isinstance(status, int) else 0
