"""Correlation ID management for lifecycle operations.

Each lifecycle call runs under a correlation id so the log lines of one
operation (blob upload, metadata commit, compensation) can be grouped.
"""

import uuid
from contextvars import ContextVar
from typing import Optional

# Context variable for correlation_id (async-safe)
correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)


def generate_correlation_id() -> str:
    """Generate a new unique correlation ID (UUID v4)."""
    return str(uuid.uuid4())


def get_correlation_id() -> str:
    """Current correlation ID, or "no-correlation-id" if not set."""
    return correlation_id_var.get() or "no-correlation-id"


def set_correlation_id(correlation_id: str) -> None:
    correlation_id_var.set(correlation_id)


def ensure_correlation_id() -> str:
    """Return the current correlation ID, creating one if none is set."""
    current = correlation_id_var.get()
    if current:
        return current
    current = generate_correlation_id()
    correlation_id_var.set(current)
    return current
