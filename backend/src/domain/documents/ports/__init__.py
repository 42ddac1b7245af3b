"""Ports for the documents domain"""

from .collaborators import DocumentTypeValidator, TenantValidator
from .object_storage_port import ContentStorePort

__all__ = [
    "ContentStorePort",
    "DocumentTypeValidator",
    "TenantValidator",
]
