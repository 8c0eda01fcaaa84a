"""
Elastisync Percolate — Sync Service That Skips One Type
=======================================================

An index that stores percolator queries for one document type must not
receive documents of that type. This service behaves like SyncService
but skips records of the excluded type.
"""

from typing import Any, Optional

from .core import Outcome, SyncService
from .records import Record


class PercolateSyncService(SyncService):
    def __init__(self, *args, doctype_to_percolate: Optional[str] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.doctype_to_percolate = doctype_to_percolate

    def index(self, record: Record) -> Any:
        if record.type_name == self.doctype_to_percolate:
            return Outcome.SKIPPED
        return super().index(record)

    def remove(self, record: Record) -> Any:
        if record.type_name == self.doctype_to_percolate:
            return Outcome.SKIPPED
        return super().remove(record)
