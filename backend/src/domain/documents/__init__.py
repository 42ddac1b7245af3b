"""Documents domain module - content addressing, version chains, lifecycle transitions"""

from .context import LifecycleContext
from .errors import (
    ConflictError,
    DocumentServiceError,
    NotFoundError,
    StorageError,
    TransactionError,
    ValidationError,
    VersionConflictError,
)
from .lifecycle_manager import DocumentLifecycleManager
from .lifecycle_state import LifecycleAction, LifecycleState, can_apply, state_of

__all__ = [
    "DocumentLifecycleManager",
    "LifecycleContext",
    "LifecycleAction",
    "LifecycleState",
    "can_apply",
    "state_of",
    "DocumentServiceError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "VersionConflictError",
    "StorageError",
    "TransactionError",
]
