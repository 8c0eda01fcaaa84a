"""
Elastisync Index — Elasticsearch Index Operations
=================================================

The single seam between the sync core and the Elasticsearch client.
Everything the core needs from the engine goes through `IndexManager`:
index lifecycle, mappings, single and bulk document writes, refresh and
search.

Example:
    client = create_client(hosts=["http://localhost:9200"])
    index = IndexManager(client, "website")
    if not index.exists():
        index.create()
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from elasticsearch import Elasticsearch
from elasticsearch.helpers import bulk

from .mapper import Document

logger = logging.getLogger(__name__)


def create_client(
    hosts: Optional[List[str]] = None,
    api_key: Optional[str] = None,
    basic_auth: Optional[tuple] = None,
    verify_certs: bool = True
) -> Elasticsearch:
    """
    Build an Elasticsearch client.

    Args:
        hosts: List of ES node URLs (default: ["http://localhost:9200"])
        api_key: API key for authentication
        basic_auth: Tuple of (username, password)
        verify_certs: Verify SSL certificates

    Returns:
        Configured client
    """
    conn_kwargs: Dict[str, Any] = {
        "hosts": hosts or ["http://localhost:9200"],
        "verify_certs": verify_certs
    }

    if api_key:
        conn_kwargs["api_key"] = api_key
    elif basic_auth:
        conn_kwargs["basic_auth"] = basic_auth

    return Elasticsearch(**conn_kwargs)


class IndexManager:
    """
    Operations on one Elasticsearch index.

    Bulk helpers never raise on per-item errors; they return the failed
    items so the caller can decide what counts as an error. A delete of a
    document that is already gone is not reported as a failure.
    """

    def __init__(self, client: Elasticsearch, index_name: str):
        self.client = client
        self.index_name = index_name

    def exists(self) -> bool:
        return bool(self.client.indices.exists(index=self.index_name))

    def create(self, body: Optional[dict] = None):
        """
        Create the index.

        Args:
            body: Optional settings/mappings body
        """
        if body:
            return self.client.indices.create(index=self.index_name, body=body)
        return self.client.indices.create(index=self.index_name)

    def delete(self):
        """Delete the entire index."""
        return self.client.indices.delete(index=self.index_name)

    def put_mapping(self, schema: dict):
        return self.client.indices.put_mapping(index=self.index_name, body=schema)

    def refresh(self):
        """Force index refresh (makes recent changes searchable)."""
        return self.client.indices.refresh(index=self.index_name)

    def add_document(self, document: Document):
        return self.client.index(index=self.index_name, id=document.id, document=document.data)

    def delete_document(self, document_id: str):
        return self.client.delete(index=self.index_name, id=document_id)

    def add_documents(self, documents: Iterable[Document]) -> Tuple[int, List[dict]]:
        """
        Index documents with the bulk API.

        Returns:
            Tuple of (successful count, failed items)
        """
        actions = (
            {"_index": self.index_name, "_id": doc.id, "_source": doc.data}
            for doc in documents
        )
        return self._bulk(actions)

    def delete_documents(self, documents: Iterable[Document]) -> Tuple[int, List[dict]]:
        """
        Delete documents with the bulk API, ignoring ones already absent.

        Returns:
            Tuple of (successful count, failed items)
        """
        actions = (
            {"_op_type": "delete", "_index": self.index_name, "_id": doc.id}
            for doc in documents
        )
        success, errors = self._bulk(actions)
        failed = [e for e in errors if e.get("delete", {}).get("status") != 404]
        if len(failed) != len(errors):
            logger.debug("Ignored %d bulk deletes of absent documents", len(errors) - len(failed))
        return success, failed

    def _bulk(self, actions) -> Tuple[int, List[dict]]:
        success, errors = bulk(self.client, actions, raise_on_error=False)
        return success, list(errors)

    def search(self, body: dict):
        return self.client.search(index=self.index_name, body=body)

    def version(self) -> str:
        return self.client.info()["version"]["number"]

    def close(self):
        """Close the Elasticsearch client connection."""
        self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
