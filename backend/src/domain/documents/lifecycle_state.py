"""Lifecycle state machine for documents.

A document row carries two independent flags (is_deleted, is_archived). The
derived state below is what lifecycle operations are checked against.

State flow:
    ACTIVE ⇄ ARCHIVED
    ACTIVE → DELETED → ACTIVE (restore)
    ARCHIVED → ARCHIVED_DELETED → ARCHIVED (restore)
    any state → PURGED (permanent delete, terminal)
"""

from enum import Enum
from typing import Dict, List, Optional


class LifecycleState(str, Enum):
    """Derived lifecycle state of a document row"""
    ACTIVE = "ACTIVE"
    ARCHIVED = "ARCHIVED"
    DELETED = "DELETED"
    ARCHIVED_DELETED = "ARCHIVED_DELETED"
    PURGED = "PURGED"


class LifecycleAction(str, Enum):
    """Operations that move a document between lifecycle states"""
    SOFT_DELETE = "SOFT_DELETE"
    RESTORE = "RESTORE"
    ARCHIVE = "ARCHIVE"
    UNARCHIVE = "UNARCHIVE"
    PERMANENTLY_DELETE = "PERMANENTLY_DELETE"
    CREATE_VERSION = "CREATE_VERSION"
    UPDATE_METADATA = "UPDATE_METADATA"


# Target state per (state, action). Missing entries are rejected.
# SOFT_DELETE on an already-deleted row is an idempotent no-op, handled
# by the manager before consulting this table.
TRANSITIONS: Dict[LifecycleState, Dict[LifecycleAction, LifecycleState]] = {
    LifecycleState.ACTIVE: {
        LifecycleAction.SOFT_DELETE: LifecycleState.DELETED,
        LifecycleAction.ARCHIVE: LifecycleState.ARCHIVED,
        LifecycleAction.CREATE_VERSION: LifecycleState.ACTIVE,
        LifecycleAction.UPDATE_METADATA: LifecycleState.ACTIVE,
        LifecycleAction.PERMANENTLY_DELETE: LifecycleState.PURGED,
    },
    LifecycleState.ARCHIVED: {
        LifecycleAction.SOFT_DELETE: LifecycleState.ARCHIVED_DELETED,
        LifecycleAction.UNARCHIVE: LifecycleState.ACTIVE,
        LifecycleAction.CREATE_VERSION: LifecycleState.ARCHIVED,
        LifecycleAction.UPDATE_METADATA: LifecycleState.ARCHIVED,
        LifecycleAction.PERMANENTLY_DELETE: LifecycleState.PURGED,
    },
    LifecycleState.DELETED: {
        LifecycleAction.RESTORE: LifecycleState.ACTIVE,
        LifecycleAction.PERMANENTLY_DELETE: LifecycleState.PURGED,
    },
    LifecycleState.ARCHIVED_DELETED: {
        LifecycleAction.RESTORE: LifecycleState.ARCHIVED,
        LifecycleAction.PERMANENTLY_DELETE: LifecycleState.PURGED,
    },
    LifecycleState.PURGED: {},  # Terminal
}


def state_of(is_deleted: bool, is_archived: bool) -> LifecycleState:
    """Derive the lifecycle state from a row's flags

    Example:
        >>> state_of(False, False)
        <LifecycleState.ACTIVE: 'ACTIVE'>
        >>> state_of(True, True)
        <LifecycleState.ARCHIVED_DELETED: 'ARCHIVED_DELETED'>
    """
    if is_deleted:
        return LifecycleState.ARCHIVED_DELETED if is_archived else LifecycleState.DELETED
    return LifecycleState.ARCHIVED if is_archived else LifecycleState.ACTIVE


def next_state(state: LifecycleState, action: LifecycleAction) -> Optional[LifecycleState]:
    """Target state for action, or None if the action is not allowed"""
    return TRANSITIONS.get(state, {}).get(action)


def can_apply(state: LifecycleState, action: LifecycleAction) -> bool:
    """Check whether action is allowed from state

    Example:
        >>> can_apply(LifecycleState.DELETED, LifecycleAction.ARCHIVE)
        False
        >>> can_apply(LifecycleState.ARCHIVED, LifecycleAction.SOFT_DELETE)
        True
    """
    return next_state(state, action) is not None


def allowed_actions(state: LifecycleState) -> List[LifecycleAction]:
    """List actions allowed from state"""
    return list(TRANSITIONS.get(state, {}).keys())
