"""Error taxonomy for the document lifecycle engine.

ValidationError, NotFoundError and ConflictError are raised before either
store is touched and are never retried. StorageError wraps blob or metadata
store failures (timeouts included) and may be transient. TransactionError
describes a failed compensation; it is logged, never raised over the error
that triggered the compensation.
"""

from typing import Any, Dict, Optional


class DocumentServiceError(Exception):
    """Base exception for lifecycle engine errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(DocumentServiceError):
    """Malformed input detected before any I/O (client-correctable)."""
    pass


class NotFoundError(DocumentServiceError):
    """Referenced tenant, document type or document does not exist."""
    pass


class ConflictError(DocumentServiceError):
    """Operation violates a lifecycle precondition."""
    pass


class VersionConflictError(ConflictError):
    """Another writer claimed the same (chain, version) slot.

    Raised by the metadata transaction on a unique-constraint violation;
    create_version retries with a freshly computed version number.
    """
    pass


class StorageError(DocumentServiceError):
    """Blob store or metadata store failure, including timeouts."""
    pass


class TransactionError(DocumentServiceError):
    """A rollback or compensating action itself failed."""

    def __init__(
        self,
        message: str,
        original_error: Optional[BaseException] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.original_error = original_error
