"""Explicit dependencies for one DocumentLifecycleManager.

Everything the engine touches (stores, validators, logger, cancellation
signal, tunables) travels in this object; there is no module-level state.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from .ports.collaborators import DocumentTypeValidator, TenantValidator
from .ports.object_storage_port import ContentStorePort


class ContextAdapter(logging.LoggerAdapter):
    """LoggerAdapter that merges call-site extras over the bound context."""

    def process(self, msg, kwargs):
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs


@dataclass
class LifecycleContext:
    """Dependencies and settings for lifecycle operations.

    Attributes:
        session_factory: Returns a new metadata store Session
        content_store: Blob store adapter
        container: Container (bucket) that holds document content
        tenants: Resolves tenant ids
        document_types: Resolves document type ids
        logger: Base logger; operations derive adapters with tenant/document extras
        cancel_event: Engine-wide shutdown switch. When set, every in-flight
            operation aborts at its next checkpoint and compensates; operations
            that need individual cancellation take their own cancel_event
        spool_max_memory_bytes: In-memory part of the upload spool
        max_upload_bytes: Largest accepted content
        version_conflict_max_retries: Attempts when concurrent writers race
        default_uri_ttl: Lifetime of temporary access URIs when none is given
    """
    session_factory: Callable[[], Session]
    content_store: ContentStorePort
    container: str
    tenants: TenantValidator
    document_types: DocumentTypeValidator
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("domain.documents.lifecycle"))
    cancel_event: Optional[asyncio.Event] = None
    spool_max_memory_bytes: int = 8 * 1024 * 1024
    max_upload_bytes: int = 100 * 1024 * 1024
    version_conflict_max_retries: int = 3
    default_uri_ttl: timedelta = timedelta(hours=1)

    def raise_if_cancelled(self, cancel_event: Optional[asyncio.Event] = None) -> None:
        """Checkpoint between saga steps.

        Args:
            cancel_event: Signal owned by the current call only
        """
        if cancel_event is not None and cancel_event.is_set():
            raise asyncio.CancelledError("Lifecycle operation cancelled by caller")
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise asyncio.CancelledError("Lifecycle engine is shutting down")

    def bind(self, **extra: Any) -> logging.LoggerAdapter:
        """Logger adapter carrying operation context (tenant_id, document_id, operation)."""
        return ContextAdapter(self.logger, _clean(extra))


def _clean(extra: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in extra.items() if value is not None}
