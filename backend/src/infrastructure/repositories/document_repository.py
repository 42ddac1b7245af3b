"""Document repository for metadata store operations

All queries are plain SELECTs against the document table; relationships
(tenant, type, chain root) are resolved by id. The repository never commits:
the TransactionCoordinator that owns the session decides when to commit.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.orm import Session

from models.base import utcnow
from models.document import Document
from models.document_extension import DocumentExtension


class DocumentRepository:
    """Repository for document and document_extension rows.

    Handles lookups by tenant, type, content hash, version chain and
    lifecycle flags, plus the staleness queries used by the search indexer.
    """

    def __init__(self, db: Session):
        """Initialize repository with database session.

        Args:
            db: SQLAlchemy database session
        """
        self.db = db

    # ------------------------------------------------------------------
    # Single-row access
    # ------------------------------------------------------------------

    def add(self, document: Document) -> Document:
        """Insert a document row and flush to obtain its id."""
        self.db.add(document)
        self.db.flush()
        return document

    def get_by_id(self, document_id: int, include_deleted: bool = True) -> Optional[Document]:
        query = select(Document).where(Document.id == document_id)
        if not include_deleted:
            query = query.where(Document.is_deleted.is_(False))
        return self.db.execute(query).scalars().first()

    def get_for_update(self, document_id: int) -> Optional[Document]:
        """Load a row with a row-level lock (SELECT ... FOR UPDATE).

        Dialects without row locks (SQLite) ignore the clause.
        """
        query = select(Document).where(Document.id == document_id).with_for_update()
        return self.db.execute(query).scalars().first()

    def delete(self, document: Document) -> None:
        """Physically delete a row and its extension payloads."""
        self.db.execute(
            delete(DocumentExtension).where(DocumentExtension.document_id == document.id)
        )
        self.db.delete(document)
        self.db.flush()

    # ------------------------------------------------------------------
    # Tenant / type listings
    # ------------------------------------------------------------------

    def list_by_tenant(
        self,
        tenant_id: int,
        skip: int = 0,
        take: int = 50,
        include_deleted: bool = False,
        document_type_id: Optional[int] = None,
        include_archived: bool = True,
        current_only: bool = True,
    ) -> List[Document]:
        """Page through a tenant's documents, newest first.

        Args:
            tenant_id: Tenant ID (multi-tenant isolation)
            skip: Number of rows to skip
            take: Maximum rows to return
            include_deleted: Include soft-deleted rows
            document_type_id: Optional type filter
            include_archived: Include archived rows
            current_only: Only current versions (one row per chain)
        """
        query = select(Document).where(Document.tenant_id == tenant_id)

        if not include_deleted:
            query = query.where(Document.is_deleted.is_(False))
        if not include_archived:
            query = query.where(Document.is_archived.is_(False))
        if current_only:
            query = query.where(Document.is_current_version.is_(True))
        if document_type_id is not None:
            query = query.where(Document.document_type_id == document_type_id)

        query = query.order_by(Document.created_at.desc(), Document.id.desc()).offset(skip).limit(take)
        return list(self.db.execute(query).scalars().all())

    def count_by_tenant(self, tenant_id: int, include_deleted: bool = False) -> int:
        """Count current-version documents for a tenant."""
        query = select(func.count(Document.id)).where(
            and_(
                Document.tenant_id == tenant_id,
                Document.is_current_version.is_(True),
            )
        )
        if not include_deleted:
            query = query.where(Document.is_deleted.is_(False))
        return self.db.execute(query).scalar_one()

    # ------------------------------------------------------------------
    # Content hash
    # ------------------------------------------------------------------

    def find_by_content_hash(self, content_hash: str, tenant_id: Optional[int] = None) -> List[Document]:
        """All rows sharing a content hash, soft-deleted rows included.

        Tenant filtering is optional here; callers that face users apply it.
        """
        query = select(Document).where(Document.content_hash == content_hash)
        if tenant_id is not None:
            query = query.where(Document.tenant_id == tenant_id)
        query = query.order_by(Document.tenant_id, Document.id)
        return list(self.db.execute(query).scalars().all())

    def count_blob_references(self, blob_path: str, exclude_document_id: Optional[int] = None) -> int:
        """Number of rows pointing at blob_path (blobs are shared by identical uploads)."""
        query = select(func.count(Document.id)).where(Document.blob_path == blob_path)
        if exclude_document_id is not None:
            query = query.where(Document.id != exclude_document_id)
        return self.db.execute(query).scalar_one()

    # ------------------------------------------------------------------
    # Version chain
    # ------------------------------------------------------------------

    def get_chain(self, root_id: int) -> List[Document]:
        """Every row of a chain (root plus versions), ordered by version."""
        query = select(Document).where(
            or_(Document.id == root_id, Document.parent_document_id == root_id)
        ).order_by(Document.version)
        return list(self.db.execute(query).scalars().all())

    def get_current_version(self, root_id: int) -> Optional[Document]:
        query = select(Document).where(
            and_(
                or_(Document.id == root_id, Document.parent_document_id == root_id),
                Document.is_current_version.is_(True),
            )
        ).order_by(Document.version.desc())
        return self.db.execute(query).scalars().first()

    def get_latest_version(self, root_id: int) -> Optional[Document]:
        """Row with the highest version number in the chain."""
        query = select(Document).where(
            or_(Document.id == root_id, Document.parent_document_id == root_id)
        ).order_by(Document.version.desc())
        return self.db.execute(query).scalars().first()

    def get_max_version(self, root_id: int) -> int:
        query = select(func.max(Document.version)).where(
            or_(Document.id == root_id, Document.parent_document_id == root_id)
        )
        return self.db.execute(query).scalar() or 0

    def demote_current_versions(self, root_id: int, actor: Optional[str] = None) -> int:
        """Clear is_current_version on every row of the chain. Returns rows changed."""
        result = self.db.execute(
            update(Document)
            .where(
                and_(
                    or_(Document.id == root_id, Document.parent_document_id == root_id),
                    Document.is_current_version.is_(True),
                )
            )
            .values(is_current_version=False, updated_at=utcnow(), updated_by=actor)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    # ------------------------------------------------------------------
    # Lifecycle listings
    # ------------------------------------------------------------------

    def list_deleted(
        self,
        tenant_id: int,
        deleted_before: Optional[datetime] = None,
        limit: int = 1000,
    ) -> List[Document]:
        """Soft-deleted rows, highest versions first so chains purge top-down."""
        query = select(Document).where(
            and_(Document.tenant_id == tenant_id, Document.is_deleted.is_(True))
        )
        if deleted_before is not None:
            query = query.where(Document.deleted_at < deleted_before)
        query = query.order_by(Document.version.desc(), Document.id.desc()).limit(limit)
        return list(self.db.execute(query).scalars().all())

    # ------------------------------------------------------------------
    # Search index linkage
    # ------------------------------------------------------------------

    @staticmethod
    def _needs_indexing_clause():
        return or_(
            Document.last_indexed_at.is_(None),
            and_(
                Document.updated_at.is_not(None),
                Document.updated_at > Document.last_indexed_at,
            ),
        )

    def list_needing_indexing(self, tenant_id: Optional[int] = None, limit: int = 100) -> List[Document]:
        """Current, non-deleted rows whose index entry is missing or stale.

        Stale means last_indexed_at IS NULL OR updated_at > last_indexed_at.
        """
        query = select(Document).where(
            and_(
                Document.is_deleted.is_(False),
                Document.is_current_version.is_(True),
                self._needs_indexing_clause(),
            )
        )
        if tenant_id is not None:
            query = query.where(Document.tenant_id == tenant_id)
        query = query.order_by(Document.id).limit(limit)
        return list(self.db.execute(query).scalars().all())

    def count_index_stats(self) -> Dict[str, int]:
        """Counts over current, non-deleted rows: total, indexed, needing indexing."""
        base = and_(Document.is_deleted.is_(False), Document.is_current_version.is_(True))
        total = self.db.execute(select(func.count(Document.id)).where(base)).scalar_one()
        indexed = self.db.execute(
            select(func.count(Document.id)).where(and_(base, Document.last_indexed_at.is_not(None)))
        ).scalar_one()
        needs = self.db.execute(
            select(func.count(Document.id)).where(and_(base, self._needs_indexing_clause()))
        ).scalar_one()
        return {
            "total_documents": total,
            "indexed_documents": indexed,
            "documents_needing_indexing": needs,
        }

    def mark_indexed(self, document_id: int, search_index_id: str, indexed_at: Optional[datetime] = None) -> bool:
        """Record the search linkage written by the external indexer."""
        result = self.db.execute(
            update(Document)
            .where(Document.id == document_id)
            .values(search_index_id=search_index_id, last_indexed_at=indexed_at or utcnow())
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount > 0

    def clear_index_linkage(self, tenant_id: Optional[int] = None) -> int:
        """Forget every search linkage (after the index was cleared)."""
        statement = update(Document).values(search_index_id=None, last_indexed_at=None)
        if tenant_id is not None:
            statement = statement.where(Document.tenant_id == tenant_id)
        result = self.db.execute(statement.execution_options(synchronize_session="fetch"))
        return result.rowcount

    # ------------------------------------------------------------------
    # Extension payloads
    # ------------------------------------------------------------------

    def get_extension(self, document_id: int, document_type_id: int) -> Optional[DocumentExtension]:
        query = select(DocumentExtension).where(
            and_(
                DocumentExtension.document_id == document_id,
                DocumentExtension.document_type_id == document_type_id,
            )
        )
        return self.db.execute(query).scalars().first()

    def upsert_extension(
        self,
        document_id: int,
        document_type_id: int,
        type_key: str,
        payload: Dict[str, Any],
    ) -> DocumentExtension:
        extension = self.get_extension(document_id, document_type_id)
        if extension is None:
            extension = DocumentExtension(
                document_id=document_id,
                document_type_id=document_type_id,
                type_key=type_key,
                payload_json=payload,
            )
            self.db.add(extension)
        else:
            extension.type_key = type_key
            extension.payload_json = payload
            extension.updated_at = utcnow()
        self.db.flush()
        return extension
