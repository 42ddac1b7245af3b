"""Data retention module.

Purges soft-deleted documents once the tenant's grace period has elapsed.

Use: from retention.service import RetentionService
"""

from .schemas import (
    RetentionSettings,
    PurgeReport,
)

__all__ = [
    "RetentionSettings",
    "PurgeReport",
]
