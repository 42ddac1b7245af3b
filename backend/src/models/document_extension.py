"""DocumentExtension model - type-specific payloads.

One row per (document_id, document_type_id). The payload shape is owned by
the document type; the lifecycle engine stores it opaquely.
"""

from sqlalchemy import Column, ForeignKey, Integer, Text, UniqueConstraint
from sqlalchemy.types import DateTime

from .base import Base, PortableBigInteger, PortableJSONB, utcnow


class DocumentExtension(Base):
    __tablename__ = "document_extension"
    __table_args__ = (
        UniqueConstraint("document_id", "document_type_id", name="uq_document_extension_document_type"),
    )

    id = Column(PortableBigInteger, primary_key=True, autoincrement=True)
    document_id = Column(
        PortableBigInteger,
        ForeignKey("document.id", ondelete="CASCADE"),
        nullable=False,
    )
    document_type_id = Column(Integer, ForeignKey("document_type.id", ondelete="RESTRICT"), nullable=False)
    type_key = Column(Text, nullable=False)  # document_type.name at write time
    payload_json = Column(PortableJSONB, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=utcnow)
