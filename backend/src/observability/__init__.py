"""Observability: structured logging, correlation ids and metrics."""

from .correlation import (
    correlation_id_var,
    ensure_correlation_id,
    generate_correlation_id,
    get_correlation_id,
    set_correlation_id,
)
from .logging_config import CorrelationIDFilter, JSONFormatter, configure_logging, get_logger
from .metrics import (
    bytes_uploaded_total,
    compensations_total,
    dedup_short_circuits_total,
    lifecycle_operation_duration_seconds,
    lifecycle_operations_total,
    version_conflict_retries_total,
)

__all__ = [
    # Logging
    "configure_logging",
    "get_logger",
    "JSONFormatter",
    "CorrelationIDFilter",
    # Correlation
    "correlation_id_var",
    "ensure_correlation_id",
    "generate_correlation_id",
    "get_correlation_id",
    "set_correlation_id",
    # Metrics
    "lifecycle_operations_total",
    "lifecycle_operation_duration_seconds",
    "dedup_short_circuits_total",
    "version_conflict_retries_total",
    "compensations_total",
    "bytes_uploaded_total",
]
