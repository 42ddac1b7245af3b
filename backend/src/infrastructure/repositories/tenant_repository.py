"""Read-only lookups for tenants and document types.

SQL-backed implementations of the TenantValidator and DocumentTypeValidator
ports. Each lookup opens its own short session from the factory.
"""

from typing import Callable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from models.document_type import DocumentType
from models.tenant import Tenant


class SqlTenantValidator:
    """Resolves tenants from the tenant table."""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def get_by_id(self, tenant_id: int) -> Optional[Tenant]:
        with self.session_factory() as session:
            return session.execute(
                select(Tenant).where(Tenant.id == tenant_id)
            ).scalars().first()


class SqlDocumentTypeValidator:
    """Resolves document types from the document_type table."""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def get_by_id(self, document_type_id: int) -> Optional[DocumentType]:
        with self.session_factory() as session:
            return session.execute(
                select(DocumentType).where(DocumentType.id == document_type_id)
            ).scalars().first()
