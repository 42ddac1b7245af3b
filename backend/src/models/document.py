"""Document SQLAlchemy model

Document represents one version of an uploaded binary file. Versions of the
same logical document form a chain: the root row (version 1) has
parent_document_id = NULL and every later version points at the root id.
Content lives in object storage at blob_path; content_hash is the SHA-256 of
exactly those bytes.
"""

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.types import DateTime

from .base import Base, PortableBigInteger, PortableJSONB, utcnow


class Document(Base):
    """Document model representing one version in a version chain.

    Lifecycle flags (is_deleted, is_archived) are independent columns; see
    domain.documents.lifecycle_state for the derived state machine.
    """
    __tablename__ = "document"
    __table_args__ = (
        # Concurrent create_version calls on one chain cannot both claim a version
        UniqueConstraint("parent_document_id", "version", name="uq_document_parent_version"),
        Index("ix_document_tenant_id", "tenant_id"),
        Index("ix_document_tenant_content_hash", "tenant_id", "content_hash"),
        Index("ix_document_parent_document_id", "parent_document_id"),
        Index("ix_document_is_deleted", "is_deleted"),
    )

    id = Column(PortableBigInteger, primary_key=True, autoincrement=True)
    tenant_id = Column(Integer, ForeignKey("tenant.id", ondelete="RESTRICT"), nullable=False)
    document_type_id = Column(Integer, ForeignKey("document_type.id", ondelete="RESTRICT"), nullable=False)

    # Content descriptors
    original_file_name = Column(Text, nullable=False)
    mime_type = Column(Text, nullable=False)
    file_size_bytes = Column(BigInteger, nullable=False)
    content_hash = Column(Text, nullable=False)  # lowercase hex SHA-256
    blob_path = Column(Text, nullable=False)  # object key in the content store

    # Presentation
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    metadata_json = Column("metadata", PortableJSONB, nullable=True)
    tags = Column(PortableJSONB, nullable=True)

    # Version chain
    version = Column(Integer, nullable=False, default=1)
    parent_document_id = Column(
        PortableBigInteger,
        ForeignKey("document.id", ondelete="RESTRICT"),
        nullable=True,
    )
    is_current_version = Column(Boolean, nullable=False, default=True, server_default=text("true"))

    # Lifecycle
    is_deleted = Column(Boolean, nullable=False, default=False, server_default=text("false"))
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    deleted_by = Column(Text, nullable=True)
    deleted_reason = Column(Text, nullable=True)
    is_archived = Column(Boolean, nullable=False, default=False, server_default=text("false"))
    archived_at = Column(DateTime(timezone=True), nullable=True)

    # Search linkage, written by the external indexer
    search_index_id = Column(Text, nullable=True)
    last_indexed_at = Column(DateTime(timezone=True), nullable=True)

    # Audit
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    created_by = Column(Text, nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=True)
    updated_by = Column(Text, nullable=True)

    @property
    def root_id(self) -> int:
        """Id of the chain root (this row's id for version 1)."""
        return self.parent_document_id if self.parent_document_id is not None else self.id

    def to_dict(self):
        """Convert document to dictionary representation"""
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "document_type_id": self.document_type_id,
            "original_file_name": self.original_file_name,
            "mime_type": self.mime_type,
            "file_size_bytes": self.file_size_bytes,
            "content_hash": self.content_hash,
            "blob_path": self.blob_path,
            "title": self.title,
            "description": self.description,
            "metadata": self.metadata_json,
            "tags": self.tags,
            "version": self.version,
            "parent_document_id": self.parent_document_id,
            "is_current_version": self.is_current_version,
            "is_deleted": self.is_deleted,
            "deleted_at": self.deleted_at.isoformat() if self.deleted_at else None,
            "deleted_by": self.deleted_by,
            "deleted_reason": self.deleted_reason,
            "is_archived": self.is_archived,
            "archived_at": self.archived_at.isoformat() if self.archived_at else None,
            "search_index_id": self.search_index_id,
            "last_indexed_at": self.last_indexed_at.isoformat() if self.last_indexed_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "created_by": self.created_by,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "updated_by": self.updated_by,
        }

    def __repr__(self):
        return (
            f"<Document(id={self.id}, tenant_id={self.tenant_id}, version={self.version}, "
            f"current={self.is_current_version}, deleted={self.is_deleted})>"
        )
