"""DocumentType model - configurable document classification.

A document type may declare an extension payload (has_extension_table).
Payloads are stored in document_extension keyed by (document_id,
document_type_id) rather than in per-type tables.
"""

from sqlalchemy import Boolean, Column, Integer, Text, text
from sqlalchemy.types import DateTime

from .base import Base, PortableJSONB, utcnow


class DocumentType(Base):
    """Document type row. Read by the lifecycle engine for existence checks."""
    __tablename__ = "document_type"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(Text, nullable=False, unique=True)
    display_name = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    metadata_schema_json = Column(PortableJSONB, nullable=True)
    default_tags = Column(PortableJSONB, nullable=True)
    icon = Column(Text, nullable=True)
    is_content_indexed = Column(Boolean, nullable=False, default=True, server_default=text("true"))
    has_extension_table = Column(Boolean, nullable=False, default=False, server_default=text("false"))
    extension_table_name = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, server_default=text("true"))
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self):
        return f"<DocumentType(id={self.id}, name='{self.name}')>"
