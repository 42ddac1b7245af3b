"""Pydantic schemas for retention settings and purge reports.

This module defines retention-related schemas:
- RetentionSettings: Parsed from tenant.retention_policies_json
- PurgeReport: Outcome of one purge run over soft-deleted documents
"""

from pydantic import BaseModel, Field
from typing import List
from datetime import datetime


class RetentionSettings(BaseModel):
    """Retention configuration of one tenant.

    Soft-deleted documents stay restorable for the grace period; after that
    the purge job removes them permanently.
    """

    soft_delete_grace_period_days: int = Field(
        default=90,
        ge=1,
        le=365,
        description="Grace period before hard-deleting soft-deleted documents (1-365)"
    )


class PurgeReport(BaseModel):
    """Outcome of a purge run.

    Per-document failures never abort the run; they are counted here and the
    documents stay soft-deleted for the next run.
    """

    tenant_id: int = Field(
        description="Tenant whose documents were purged"
    )

    grace_cutoff: datetime = Field(
        description="Documents soft-deleted before this instant were eligible"
    )

    purged: int = Field(
        default=0,
        ge=0,
        description="Documents permanently deleted"
    )

    skipped: int = Field(
        default=0,
        ge=0,
        description="Eligible documents kept because a later live version exists"
    )

    failed: int = Field(
        default=0,
        ge=0,
        description="Documents whose permanent delete failed"
    )

    failed_ids: List[int] = Field(
        default_factory=list,
        description="Ids of documents whose permanent delete failed"
    )

    @property
    def has_errors(self) -> bool:
        """Whether any permanent delete failed."""
        return self.failed > 0
