"""Document lifecycle and versioning engine.

DocumentLifecycleManager is the public entry point for creating documents,
appending versions, soft-deleting/restoring, archiving and permanently
deleting them. It keeps metadata rows and blob content consistent across the
two stores using the TransactionCoordinator's ordering discipline (blob
first, metadata second, commit last, compensate on failure).

Version chains are one level deep: version 1 is the root
(parent_document_id = NULL) and every later version points at the root.
"""

import asyncio
import functools
import logging
import time
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Any, AsyncIterator, BinaryIO, Dict, List, Optional

from models.base import utcnow
from models.document import Document
from models.document_extension import DocumentExtension
from models.document_type import DocumentType
from models.tenant import Tenant
from observability.correlation import ensure_correlation_id
from observability.metrics import (
    bytes_uploaded_total,
    dedup_short_circuits_total,
    lifecycle_operation_duration_seconds,
    lifecycle_operations_total,
    version_conflict_retries_total,
)

from .content_addresser import SpooledContent, build_blob_path, spool_and_hash
from .context import LifecycleContext
from .errors import ConflictError, NotFoundError, ValidationError, VersionConflictError
from .lifecycle_state import LifecycleAction, can_apply, state_of
from .schemas import DocumentMetadataUpdate, IndexStats
from .transaction import Saga, TransactionCoordinator
from .validation import (
    ensure_actor,
    ensure_file_size,
    ensure_filename,
    ensure_identifier,
    ensure_mime_type,
    ensure_reason,
    ensure_title,
)


def _close_quietly(stream: Optional[BinaryIO], log: logging.LoggerAdapter) -> None:
    if stream is None:
        return
    try:
        stream.close()
    except Exception as e:
        log.warning(f"Failed to close content stream: {e}")


class DocumentLifecycleManager:
    """Creates, versions and transitions documents.

    All operations are coroutines. Caller-supplied content streams are
    closed on every exit path.

    Example:
        manager = DocumentLifecycleManager(context)

        doc = await manager.create_document(
            tenant_id=1,
            document_type_id=1,
            title="Invoice-001",
            description=None,
            content_stream=open("invoice.pdf", "rb"),
            file_name="invoice.pdf",
            mime_type="application/pdf",
            actor="alice",
        )
        v2 = await manager.create_version(doc.id, open("invoice-v2.pdf", "rb"),
                                          "invoice.pdf", "application/pdf", actor="alice")
    """

    def __init__(self, context: LifecycleContext):
        self.ctx = context
        self.coordinator = TransactionCoordinator(context.session_factory, context.logger)

    # ------------------------------------------------------------------
    # Creation and versioning
    # ------------------------------------------------------------------

    async def create_document(
        self,
        tenant_id: int,
        document_type_id: int,
        title: str,
        description: Optional[str],
        content_stream: BinaryIO,
        file_name: str,
        mime_type: str,
        metadata: Optional[Dict[str, Any]] = None,
        tags: Optional[List[str]] = None,
        actor: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Document:
        """Upload content and insert version 1 of a new document.

        cancel_event is private to this call: setting it aborts this upload
        only, compensating whatever was already stored.

        Raises:
            ValidationError: Blank title/file name, missing or empty content
            NotFoundError: Unknown tenant or document type
            ConflictError: Inactive tenant or document type
            StorageError: Blob or metadata store failure (blob compensated)
        """
        log = self.ctx.bind(operation="create_document", tenant_id=tenant_id, actor=actor)
        try:
            async with self._observe("create_document"):
                ensure_identifier(tenant_id, "tenant_id")
                ensure_actor(actor)
                ensure_identifier(document_type_id, "document_type_id")
                ensure_title(title)
                ensure_filename(file_name)
                ensure_mime_type(mime_type)
                self._ensure_stream(content_stream)
                self._ensure_metadata(metadata, tags)

                self._resolve_tenant(tenant_id)
                self._resolve_document_type(document_type_id)
                self.ctx.raise_if_cancelled(cancel_event)

                spooled = self._fingerprint(content_stream)
                try:
                    async with self.coordinator.saga("create_document") as saga:
                        blob_path = await self._upload(
                            saga, log, spooled, tenant_id, document_type_id, file_name, mime_type
                        )
                        self.ctx.raise_if_cancelled(cancel_event)

                        with self.coordinator.metadata_transaction() as repo:
                            document = repo.add(Document(
                                tenant_id=tenant_id,
                                document_type_id=document_type_id,
                                title=title,
                                description=description,
                                original_file_name=file_name,
                                mime_type=mime_type,
                                file_size_bytes=spooled.size_bytes,
                                content_hash=spooled.content_hash,
                                blob_path=blob_path,
                                metadata_json=metadata,
                                tags=tags,
                                version=1,
                                parent_document_id=None,
                                is_current_version=True,
                                is_deleted=False,
                                is_archived=False,
                                created_at=utcnow(),
                                created_by=actor,
                            ))
                finally:
                    spooled.close()

                log.info(
                    f"Created document {document.id} (v1, hash={spooled.content_hash}, "
                    f"size={spooled.size_bytes})",
                    extra={"document_id": document.id},
                )
                return document
        finally:
            _close_quietly(content_stream, log)

    async def create_version(
        self,
        document_id: int,
        content_stream: BinaryIO,
        file_name: str,
        mime_type: str,
        actor: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Document:
        """Append a new current version to the chain containing document_id.

        If the content hashes to the chain's current version, nothing is
        written and the current version is returned unchanged. Only the
        current version is compared, not older ones.

        Version numbers are computed inside the metadata transaction while the
        chain root is row-locked; a unique (parent_document_id, version)
        violation from a concurrent writer triggers a bounded retry.

        Raises:
            ValidationError: Bad id, blank file name, missing or empty content
            NotFoundError: Document does not exist
            ConflictError: Document is soft-deleted, or retries exhausted
            StorageError: Blob or metadata store failure (blob compensated)
        """
        log = self.ctx.bind(operation="create_version", document_id=document_id, actor=actor)
        try:
            async with self._observe("create_version"):
                ensure_identifier(document_id, "document_id")
                ensure_actor(actor)
                ensure_filename(file_name)
                ensure_mime_type(mime_type)
                self._ensure_stream(content_stream)

                with self.coordinator.read_session() as repo:
                    target = repo.get_by_id(document_id)
                    if target is None:
                        raise NotFoundError(f"Document {document_id} not found")
                    self._ensure_allowed(target, LifecycleAction.CREATE_VERSION)
                    root_id = target.root_id
                    current = repo.get_current_version(root_id) or repo.get_latest_version(root_id)

                self.ctx.raise_if_cancelled(cancel_event)
                spooled = self._fingerprint(content_stream)
                try:
                    if current is not None and current.content_hash == spooled.content_hash:
                        dedup_short_circuits_total.inc()
                        log.info(
                            f"Content matches current version {current.id} (v{current.version}); "
                            f"no new version created",
                            extra={"content_hash": spooled.content_hash},
                        )
                        return current

                    async with self.coordinator.saga("create_version") as saga:
                        blob_path = await self._upload(
                            saga, log, spooled, target.tenant_id, target.document_type_id,
                            file_name, mime_type,
                        )
                        self.ctx.raise_if_cancelled(cancel_event)

                        document, deduplicated = self._append_version(
                            log, document_id, root_id, spooled, blob_path, file_name, mime_type, actor
                        )
                        if deduplicated:
                            # A concurrent writer committed identical content first
                            dedup_short_circuits_total.inc()
                            await self.coordinator.compensate(saga)
                finally:
                    spooled.close()

                log.info(
                    f"Document chain {root_id} now at v{document.version} (id={document.id})",
                    extra={"content_hash": document.content_hash},
                )
                return document
        finally:
            _close_quietly(content_stream, log)

    def _append_version(
        self,
        log: logging.LoggerAdapter,
        document_id: int,
        root_id: int,
        spooled: SpooledContent,
        blob_path: str,
        file_name: str,
        mime_type: str,
        actor: Optional[str],
    ) -> tuple:
        """Demote the current version and insert the next one, retrying on races.

        Returns:
            (document, deduplicated) where deduplicated means the chain's
            current version already had this content when the lock was taken
        """
        attempts = max(1, self.ctx.version_conflict_max_retries)
        for attempt in range(1, attempts + 1):
            try:
                with self.coordinator.metadata_transaction() as repo:
                    root = repo.get_for_update(root_id)
                    if root is None:
                        raise NotFoundError(f"Document chain {root_id} no longer exists")
                    target = repo.get_by_id(document_id)
                    if target is None:
                        raise NotFoundError(f"Document {document_id} not found")
                    self._ensure_allowed(target, LifecycleAction.CREATE_VERSION)

                    current = repo.get_current_version(root_id)
                    if current is not None and current.content_hash == spooled.content_hash:
                        return current, True

                    template = current or target
                    next_version = repo.get_max_version(root_id) + 1
                    now = utcnow()
                    repo.demote_current_versions(root_id, actor)
                    document = repo.add(Document(
                        tenant_id=root.tenant_id,
                        document_type_id=root.document_type_id,
                        title=template.title,
                        description=template.description,
                        original_file_name=file_name,
                        mime_type=mime_type,
                        file_size_bytes=spooled.size_bytes,
                        content_hash=spooled.content_hash,
                        blob_path=blob_path,
                        metadata_json=template.metadata_json,
                        tags=template.tags,
                        version=next_version,
                        parent_document_id=root_id,
                        is_current_version=True,
                        is_deleted=False,
                        is_archived=template.is_archived,
                        archived_at=template.archived_at,
                        created_at=now,
                        created_by=actor,
                    ))
                return document, False
            except VersionConflictError:
                if attempt == attempts:
                    log.error(f"Version conflict on chain {root_id} persisted after {attempts} attempts")
                    raise
                version_conflict_retries_total.inc()
                log.warning(f"Version conflict on chain {root_id}; retrying ({attempt}/{attempts})")
        raise AssertionError("unreachable")

    # ------------------------------------------------------------------
    # Lifecycle transitions
    # ------------------------------------------------------------------

    async def soft_delete(self, document_id: int, actor: Optional[str] = None, reason: Optional[str] = None) -> None:
        """Mark a document deleted. Deleting an already-deleted document is a no-op.

        Blob content and current-version status are left untouched.
        """
        log = self.ctx.bind(operation="soft_delete", document_id=document_id, actor=actor)
        async with self._observe("soft_delete"):
            ensure_identifier(document_id, "document_id")
            ensure_actor(actor)
            ensure_reason(reason)

            with self.coordinator.metadata_transaction() as repo:
                document = self._get_locked(repo, document_id)
                if document.is_deleted:
                    log.info(f"Document {document_id} already deleted; nothing to do")
                    return
                self._ensure_allowed(document, LifecycleAction.SOFT_DELETE)

                now = utcnow()
                document.is_deleted = True
                document.deleted_at = now
                document.deleted_by = actor
                document.deleted_reason = reason
                document.updated_at = now
                document.updated_by = actor

            log.info(f"Soft-deleted document {document_id}")

    async def restore(self, document_id: int, actor: Optional[str] = None) -> None:
        """Clear the soft-delete flags.

        Raises:
            ConflictError: The document is not deleted
        """
        log = self.ctx.bind(operation="restore", document_id=document_id, actor=actor)
        async with self._observe("restore"):
            ensure_identifier(document_id, "document_id")
            ensure_actor(actor)

            with self.coordinator.metadata_transaction() as repo:
                document = self._get_locked(repo, document_id)
                self._ensure_allowed(document, LifecycleAction.RESTORE)

                document.is_deleted = False
                document.deleted_at = None
                document.deleted_by = None
                document.deleted_reason = None
                document.updated_at = utcnow()
                document.updated_by = actor

            log.info(f"Restored document {document_id}")

    async def archive(self, document_id: int, actor: Optional[str] = None) -> None:
        """Set the archive flag. Archiving an archived document is a no-op.

        Raises:
            ConflictError: The document is soft-deleted
        """
        log = self.ctx.bind(operation="archive", document_id=document_id, actor=actor)
        async with self._observe("archive"):
            ensure_identifier(document_id, "document_id")
            ensure_actor(actor)

            with self.coordinator.metadata_transaction() as repo:
                document = self._get_locked(repo, document_id)
                if document.is_archived and not document.is_deleted:
                    log.info(f"Document {document_id} already archived; nothing to do")
                    return
                self._ensure_allowed(document, LifecycleAction.ARCHIVE)

                now = utcnow()
                document.is_archived = True
                document.archived_at = now
                document.updated_at = now
                document.updated_by = actor

            log.info(f"Archived document {document_id}")

    async def unarchive(self, document_id: int, actor: Optional[str] = None) -> None:
        """Clear the archive flag.

        Raises:
            ConflictError: The document is not archived, or is soft-deleted
        """
        log = self.ctx.bind(operation="unarchive", document_id=document_id, actor=actor)
        async with self._observe("unarchive"):
            ensure_identifier(document_id, "document_id")
            ensure_actor(actor)

            with self.coordinator.metadata_transaction() as repo:
                document = self._get_locked(repo, document_id)
                self._ensure_allowed(document, LifecycleAction.UNARCHIVE)

                document.is_archived = False
                document.archived_at = None
                document.updated_at = utcnow()
                document.updated_by = actor

            log.info(f"Unarchived document {document_id}")

    async def permanently_delete(self, document_id: int, cancel_event: Optional[asyncio.Event] = None) -> None:
        """Physically remove a row and its blob. Irreversible.

        The row delete and the blob delete share one metadata transaction
        that commits only after the blob is gone; if the blob delete fails
        the row survives. The is_deleted flag is NOT required: callers decide,
        and deleting a live document is logged as a bypass.

        Only the latest version of a chain can be removed while other versions
        exist, which keeps version numbers contiguous and parent ids valid.
        When the removed row was current, the next highest version becomes
        current. A blob still referenced by another row is kept.

        Raises:
            NotFoundError: Document does not exist
            ConflictError: A later version of the chain exists
            StorageError: Blob delete or metadata commit failed (nothing removed)
        """
        log = self.ctx.bind(operation="permanently_delete", document_id=document_id)
        async with self._observe("permanently_delete"):
            ensure_identifier(document_id, "document_id")

            with self.coordinator.metadata_transaction() as repo:
                document = self._get_locked(repo, document_id)
                if not document.is_deleted:
                    log.warning(
                        f"Permanently deleting document {document_id} that was never soft-deleted",
                        extra={"tenant_id": document.tenant_id},
                    )

                root_id = document.root_id
                latest = repo.get_latest_version(root_id)
                if latest is not None and latest.id != document.id:
                    raise ConflictError(
                        f"Document {document_id} is v{document.version} of chain {root_id}; "
                        f"v{latest.version} must be removed first",
                        details={"document_id": document_id, "latest_version_id": latest.id},
                    )

                blob_path = document.blob_path
                was_current = document.is_current_version
                shared = repo.count_blob_references(blob_path, exclude_document_id=document.id) > 0

                repo.delete(document)

                if was_current:
                    successor = repo.get_latest_version(root_id)
                    if successor is not None:
                        successor.is_current_version = True
                        successor.updated_at = utcnow()
                        log.info(f"Promoted document {successor.id} (v{successor.version}) to current")

                self.ctx.raise_if_cancelled(cancel_event)
                if shared:
                    log.info(f"Blob {blob_path} is shared with other documents; keeping it")
                else:
                    existed = await self.ctx.content_store.delete(self.ctx.container, blob_path)
                    if not existed:
                        log.warning(f"Blob {blob_path} was already missing", extra={"blob_path": blob_path})

            log.info(f"Permanently deleted document {document_id}", extra={"blob_path": blob_path})

    async def update_metadata(
        self,
        document_id: int,
        update: DocumentMetadataUpdate,
        actor: Optional[str] = None,
    ) -> Document:
        """Apply a partial update to title, description, metadata and tags.

        Stamps updated_at, which marks the document stale for the search indexer.

        Raises:
            ConflictError: The document is soft-deleted
        """
        log = self.ctx.bind(operation="update_metadata", document_id=document_id, actor=actor)
        async with self._observe("update_metadata"):
            ensure_identifier(document_id, "document_id")
            ensure_actor(actor)
            changes = update.model_dump(exclude_none=True)

            with self.coordinator.metadata_transaction() as repo:
                document = self._get_locked(repo, document_id)
                self._ensure_allowed(document, LifecycleAction.UPDATE_METADATA)

                if "title" in changes:
                    document.title = changes["title"]
                if "description" in changes:
                    document.description = changes["description"]
                if "metadata" in changes:
                    document.metadata_json = changes["metadata"]
                if "tags" in changes:
                    document.tags = changes["tags"]
                document.updated_at = utcnow()
                document.updated_by = actor

            log.info(f"Updated metadata of document {document_id}: {sorted(changes)}")
            return document

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def find_duplicates(self, content_hash: str) -> List[Document]:
        """Every row with this content hash, across tenants, deleted rows included.

        Tenant filtering is the caller's job.
        """
        if not content_hash or not content_hash.strip():
            raise ValidationError("Content hash cannot be empty", details={"field": "content_hash"})
        with self.coordinator.read_session() as repo:
            return repo.find_by_content_hash(content_hash.strip().lower())

    async def get_document(self, document_id: int, include_deleted: bool = False) -> Document:
        ensure_identifier(document_id, "document_id")
        with self.coordinator.read_session() as repo:
            document = repo.get_by_id(document_id, include_deleted=include_deleted)
        if document is None:
            raise NotFoundError(f"Document {document_id} not found")
        return document

    async def list_documents(
        self,
        tenant_id: int,
        skip: int = 0,
        take: int = 50,
        include_deleted: bool = False,
        document_type_id: Optional[int] = None,
        include_archived: bool = True,
    ) -> List[Document]:
        """Current versions of a tenant's documents, newest first."""
        ensure_identifier(tenant_id, "tenant_id")
        if skip < 0 or take <= 0:
            raise ValidationError(f"Invalid page (skip={skip}, take={take})")
        with self.coordinator.read_session() as repo:
            return repo.list_by_tenant(
                tenant_id,
                skip=skip,
                take=take,
                include_deleted=include_deleted,
                document_type_id=document_type_id,
                include_archived=include_archived,
            )

    async def count_documents(self, tenant_id: int, include_deleted: bool = False) -> int:
        ensure_identifier(tenant_id, "tenant_id")
        with self.coordinator.read_session() as repo:
            return repo.count_by_tenant(tenant_id, include_deleted=include_deleted)

    async def get_versions(self, document_id: int) -> List[Document]:
        """The whole chain containing document_id, ordered by version."""
        document = await self.get_document(document_id, include_deleted=True)
        with self.coordinator.read_session() as repo:
            return repo.get_chain(document.root_id)

    async def get_current_version(self, document_id: int) -> Document:
        document = await self.get_document(document_id, include_deleted=True)
        with self.coordinator.read_session() as repo:
            current = repo.get_current_version(document.root_id)
        if current is None:
            raise NotFoundError(f"Document chain {document.root_id} has no current version")
        return current

    async def open_content(self, document_id: int, include_deleted: bool = False) -> BinaryIO:
        """Stream a document's content from the blob store (caller closes)."""
        document = await self.get_document(document_id, include_deleted=include_deleted)
        return await self.ctx.content_store.get(self.ctx.container, document.blob_path)

    async def get_download_uri(self, document_id: int, ttl: Optional[timedelta] = None) -> str:
        """Pre-signed temporary access URI for a live document's content."""
        document = await self.get_document(document_id)
        return await self.ctx.content_store.get_temporary_access_uri(
            self.ctx.container,
            document.blob_path,
            ttl or self.ctx.default_uri_ttl,
        )

    # ------------------------------------------------------------------
    # Extension payloads
    # ------------------------------------------------------------------

    async def set_extension_payload(
        self,
        document_id: int,
        payload: Dict[str, Any],
        actor: Optional[str] = None,
    ) -> DocumentExtension:
        """Store the type-specific payload of a document.

        Raises:
            ConflictError: The document's type declares no extension payload
        """
        ensure_identifier(document_id, "document_id")
        ensure_actor(actor)
        if not isinstance(payload, dict):
            raise ValidationError("Extension payload must be a mapping", details={"field": "payload"})

        current = await self.get_document(document_id)
        document_type = self._resolve_document_type(current.document_type_id, require_active=False)
        if not document_type.has_extension_table:
            raise ConflictError(
                f"Document type '{document_type.name}' has no extension payload",
                details={"document_type_id": document_type.id},
            )

        with self.coordinator.metadata_transaction() as repo:
            document = self._get_locked(repo, document_id)
            self._ensure_allowed(document, LifecycleAction.UPDATE_METADATA)
            extension = repo.upsert_extension(document.id, document_type.id, document_type.name, payload)
            document.updated_at = utcnow()
            document.updated_by = actor
        return extension

    async def get_extension_payload(self, document_id: int) -> Optional[Dict[str, Any]]:
        document = await self.get_document(document_id, include_deleted=True)
        with self.coordinator.read_session() as repo:
            extension = repo.get_extension(document.id, document.document_type_id)
        return extension.payload_json if extension is not None else None

    # ------------------------------------------------------------------
    # Search index staleness (consumed by the external indexer)
    # ------------------------------------------------------------------

    async def list_needing_indexing(self, tenant_id: Optional[int] = None, limit: int = 100) -> List[Document]:
        """Current, live documents where last_indexed_at IS NULL OR updated_at > last_indexed_at."""
        with self.coordinator.read_session() as repo:
            return repo.list_needing_indexing(tenant_id=tenant_id, limit=limit)

    async def get_index_stats(self) -> IndexStats:
        with self.coordinator.read_session() as repo:
            counts = repo.count_index_stats()
        return IndexStats(retrieved_at=utcnow(), **counts)

    async def mark_indexed(self, document_id: int, search_index_id: str) -> None:
        """Record the index linkage after the external indexer pushed a document."""
        ensure_identifier(document_id, "document_id")
        with self.coordinator.metadata_transaction() as repo:
            if not repo.mark_indexed(document_id, search_index_id):
                raise NotFoundError(f"Document {document_id} not found")

    async def clear_index_linkage(self, tenant_id: Optional[int] = None) -> int:
        with self.coordinator.metadata_transaction() as repo:
            cleared = repo.clear_index_linkage(tenant_id=tenant_id)
        self.ctx.logger.warning(f"Cleared search linkage on {cleared} documents")
        return cleared

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _observe(self, operation: str) -> AsyncIterator[None]:
        """Correlation id plus outcome/duration metrics for one operation."""
        ensure_correlation_id()
        started = time.monotonic()
        status = "success"
        try:
            yield
        except asyncio.CancelledError:
            status = "cancelled"
            raise
        except Exception:
            status = "error"
            raise
        finally:
            lifecycle_operations_total.labels(operation=operation, status=status).inc()
            lifecycle_operation_duration_seconds.labels(operation=operation).observe(
                time.monotonic() - started
            )

    @staticmethod
    def _ensure_stream(content_stream: Optional[BinaryIO]) -> None:
        if content_stream is None or not hasattr(content_stream, "read"):
            raise ValidationError("Content stream is required", details={"field": "content_stream"})

    @staticmethod
    def _ensure_metadata(metadata: Optional[Dict[str, Any]], tags: Optional[List[str]]) -> None:
        if metadata is not None and not isinstance(metadata, dict):
            raise ValidationError("Metadata must be a mapping", details={"field": "metadata"})
        if tags is not None and (
            not isinstance(tags, list) or not all(isinstance(tag, str) for tag in tags)
        ):
            raise ValidationError("Tags must be a list of strings", details={"field": "tags"})

    @staticmethod
    def _ensure_allowed(document: Document, action: LifecycleAction) -> None:
        state = state_of(document.is_deleted, document.is_archived)
        if not can_apply(state, action):
            raise ConflictError(
                f"Cannot {action.value.lower().replace('_', ' ')} document {document.id} in state {state.value}",
                details={"document_id": document.id, "state": state.value, "action": action.value},
            )

    @staticmethod
    def _get_locked(repo, document_id: int) -> Document:
        document = repo.get_for_update(document_id)
        if document is None:
            raise NotFoundError(f"Document {document_id} not found")
        return document

    def _resolve_tenant(self, tenant_id: int) -> Tenant:
        tenant = self.ctx.tenants.get_by_id(tenant_id)
        if tenant is None:
            raise NotFoundError(f"Tenant {tenant_id} not found")
        if not tenant.is_active:
            raise ConflictError(f"Tenant {tenant_id} is not active", details={"tenant_id": tenant_id})
        return tenant

    def _resolve_document_type(self, document_type_id: int, require_active: bool = True) -> DocumentType:
        document_type = self.ctx.document_types.get_by_id(document_type_id)
        if document_type is None:
            raise NotFoundError(f"Document type {document_type_id} not found")
        if require_active and not document_type.is_active:
            raise ConflictError(
                f"Document type {document_type_id} is not active",
                details={"document_type_id": document_type_id},
            )
        return document_type

    def _fingerprint(self, content_stream: BinaryIO) -> SpooledContent:
        """Read the caller's stream once into a spool, hashing as it goes."""
        spooled = spool_and_hash(content_stream, max_memory_bytes=self.ctx.spool_max_memory_bytes)
        try:
            ensure_file_size(spooled.size_bytes, self.ctx.max_upload_bytes)
        except ValidationError:
            spooled.close()
            raise
        return spooled

    async def _upload(
        self,
        saga: Saga,
        log: logging.LoggerAdapter,
        spooled: SpooledContent,
        tenant_id: int,
        document_type_id: int,
        file_name: str,
        mime_type: str,
    ) -> str:
        """Stage content in the blob store and register its compensation.

        Identical content already stored under the same key is reused and
        gets no compensation (it belongs to earlier uploads).
        """
        blob_path = build_blob_path(tenant_id, document_type_id, spooled.content_hash, file_name)
        if await self.ctx.content_store.exists(self.ctx.container, blob_path):
            log.info(f"Content already stored at {blob_path}; reusing", extra={"blob_path": blob_path})
            return blob_path

        # Registered before put() so a partial or cancelled upload is cleaned up too
        saga.add_compensation("delete_blob", functools.partial(self._discard_blob, blob_path, log))
        await self.ctx.content_store.put(self.ctx.container, blob_path, spooled.stream, mime_type)
        bytes_uploaded_total.inc(spooled.size_bytes)
        return blob_path

    async def _discard_blob(self, blob_path: str, log: logging.LoggerAdapter) -> None:
        """Delete a staged blob unless a committed row references it."""
        with self.coordinator.read_session() as repo:
            references = repo.count_blob_references(blob_path)
        if references:
            log.info(f"Staged blob {blob_path} is referenced by {references} row(s); keeping it")
            return
        await self.ctx.content_store.delete(self.ctx.container, blob_path)
        log.info(f"Removed staged blob {blob_path}", extra={"blob_path": blob_path})
