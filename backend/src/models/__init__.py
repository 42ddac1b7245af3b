"""SQLAlchemy models for the document repository"""

from .base import Base, PortableJSONB, utcnow
from .tenant import Tenant
from .document_type import DocumentType
from .document import Document
from .document_extension import DocumentExtension

__all__ = [
    "Base",
    "PortableJSONB",
    "utcnow",
    "Tenant",
    "DocumentType",
    "Document",
    "DocumentExtension",
]
