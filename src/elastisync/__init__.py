"""
Elastisync — Keep an Elasticsearch Index in Sync with Application Records
=========================================================================

Elastisync mirrors records from an application's data store into an
Elasticsearch index and projects search hits back onto those records.

Key Features:
- Declarative per-type field lists, schema types inferred from attributes
- Related records as nested documents or flattened `relation_field` keys
- File attachments indexed as base64 content
- Batched writes with deletes ordered before updates
- Dependent types re-synced when a related record changes
- Optional deferral of reindexing to a job queue
- Published-only search view

Usage:
    from elastisync import MemoryStore, Record, SearchableListener, SyncService, load_config

    config = load_config("sync.yaml")
    store = MemoryStore()
    service = SyncService.from_config(config, store=store)
    service.define()
    SearchableListener(service, store).attach(store.events)

    store.save(Record("Article", fields={"title": "Hello"}))
    results = service.search("hello", live=True)

License: MIT
"""

__version__ = "0.1.0"

from .config import SyncConfig, TypeConfig, load_config
from .core import Outcome, SyncService
from .dependencies import DependencyPropagator
from .index import IndexManager, create_client
from .jobs import MemoryJobQueue, ReindexAfterWriteJob
from .mapper import Document, DocumentMapper
from .percolate import PercolateSyncService
from .records import Attachment, MemoryStore, Record
from .registry import TypeDescriptor, TypeRegistry
from .results import ResultList
from .searchable import SearchableListener

__all__ = [
    "Attachment",
    "DependencyPropagator",
    "Document",
    "DocumentMapper",
    "IndexManager",
    "MemoryJobQueue",
    "MemoryStore",
    "Outcome",
    "PercolateSyncService",
    "Record",
    "ReindexAfterWriteJob",
    "ResultList",
    "SearchableListener",
    "SyncConfig",
    "SyncService",
    "TypeConfig",
    "TypeDescriptor",
    "TypeRegistry",
    "create_client",
    "load_config",
]
