"""
Elastisync Exceptions
=====================

Errors raised by the sync core. Engine failures are recoverable when a
logger is configured; everything else signals a programming error and
always propagates.
"""


class ElastisyncError(Exception):
    """Base class for all elastisync errors."""


class SearchEngineError(ElastisyncError):
    """A call to Elasticsearch failed or returned a non-ok response."""

    def __init__(self, message: str, status: int = 0):
        super().__init__(message)
        self.status = status


class ReadOnlyResultError(ElastisyncError, TypeError):
    """Raised when a result list is mutated in memory."""


class PostFilterError(ElastisyncError, ValueError):
    """Raised when a query carries a post_filter that is not a bool query."""


class UnsavedRecordError(ElastisyncError, ValueError):
    """Raised when a reindex job is requested for a record with no id."""


class InvalidBatchActionError(ElastisyncError, LookupError):
    """Raised when a batch frame holds an unknown action."""
