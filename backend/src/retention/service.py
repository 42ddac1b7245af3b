"""Retention service for purging soft-deleted documents.

Soft-deleted documents stay restorable for the tenant's grace period. Once it
has elapsed they are removed permanently through
DocumentLifecycleManager.permanently_delete, so every purge gets the same
row/blob consistency guarantees as a manual permanent delete.

A purge run is idempotent and can be safely retried: failed documents remain
soft-deleted and are picked up again by the next run.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable, Optional
from sqlalchemy.orm import Session

from domain.documents.errors import ConflictError, DocumentServiceError, NotFoundError
from domain.documents.lifecycle_manager import DocumentLifecycleManager
from infrastructure.repositories.document_repository import DocumentRepository
from models.base import utcnow
from models.tenant import Tenant
from .schemas import RetentionSettings, PurgeReport

logger = logging.getLogger(__name__)

# Batch size for purge runs to avoid long listings
DELETION_BATCH_SIZE = 1000


class RetentionService:
    """Service for executing retention purges.

    Args:
        manager: Lifecycle manager used for each permanent delete
        session_factory: Returns a new Session for tenant and listing reads
    """

    def __init__(
        self,
        manager: DocumentLifecycleManager,
        session_factory: Callable[[], Session],
    ):
        self.manager = manager
        self.session_factory = session_factory

    def get_retention_settings(self, tenant_id: int) -> RetentionSettings:
        """Parse the tenant's retention settings.

        Raises:
            NotFoundError: Tenant does not exist
        """
        with self.session_factory() as session:
            tenant = session.get(Tenant, tenant_id)
            if tenant is None:
                raise NotFoundError(f"Tenant {tenant_id} not found")
            policies = dict(tenant.retention_policies_json or {})
        return RetentionSettings(**policies)

    def calculate_grace_cutoff(self, tenant_id: int, now: Optional[datetime] = None) -> datetime:
        """Documents soft-deleted before the returned instant are eligible for purge."""
        settings = self.get_retention_settings(tenant_id)
        return (now or utcnow()) - timedelta(days=settings.soft_delete_grace_period_days)

    async def purge_soft_deleted(
        self,
        tenant_id: int,
        grace_cutoff: Optional[datetime] = None,
        batch_size: int = DELETION_BATCH_SIZE,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> PurgeReport:
        """Permanently delete a tenant's documents soft-deleted before grace_cutoff.

        Candidates are processed highest version first so a fully deleted chain
        is removed top-down. A deleted version under a live later version
        cannot be removed and is counted as skipped.

        Args:
            tenant_id: Tenant to purge
            grace_cutoff: Eligibility cutoff; derived from the tenant's
                retention settings when omitted
            batch_size: Maximum documents handled in this run
            cancel_event: Aborts the run with CancelledError; the document in
                progress is left untouched and earlier purges stay done

        Returns:
            PurgeReport with purged/skipped/failed counts
        """
        if grace_cutoff is None:
            grace_cutoff = self.calculate_grace_cutoff(tenant_id)

        with self.session_factory() as session:
            candidates = [
                document.id
                for document in DocumentRepository(session).list_deleted(
                    tenant_id, deleted_before=grace_cutoff, limit=batch_size
                )
            ]

        report = PurgeReport(tenant_id=tenant_id, grace_cutoff=grace_cutoff)
        for document_id in candidates:
            try:
                await self.manager.permanently_delete(document_id, cancel_event=cancel_event)
                report.purged += 1
            except ConflictError as e:
                report.skipped += 1
                logger.info(
                    f"Skipped purge of document {document_id}: {e.message}",
                    extra={"tenant_id": tenant_id, "document_id": document_id}
                )
            except DocumentServiceError as e:
                report.failed += 1
                report.failed_ids.append(document_id)
                logger.error(
                    f"Failed to purge document {document_id}: {e.message}",
                    extra={"tenant_id": tenant_id, "document_id": document_id}
                )

        logger.info(
            f"Purged {report.purged} soft-deleted documents for tenant {tenant_id} "
            f"({report.skipped} skipped, {report.failed} failed)",
            extra={"tenant_id": tenant_id}
        )
        return report
