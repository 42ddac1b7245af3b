"""Ports for collaborators owned outside the lifecycle engine.

Tenant and document-type administration are separate concerns; the engine
only needs to resolve an id to a row (or None).
"""

from typing import Optional, Protocol

from models.document_type import DocumentType
from models.tenant import Tenant


class TenantValidator(Protocol):
    """Resolves tenant ids. Callers reject None and inactive tenants."""

    def get_by_id(self, tenant_id: int) -> Optional[Tenant]:
        ...


class DocumentTypeValidator(Protocol):
    """Resolves document type ids (existence check only)."""

    def get_by_id(self, document_type_id: int) -> Optional[DocumentType]:
        ...
