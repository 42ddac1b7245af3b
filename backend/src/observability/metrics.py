"""Prometheus metrics for the document lifecycle engine.

Counters and histograms are module-level singletons owned by
prometheus_client's default registry; they hold no lifecycle state.
"""

from prometheus_client import Counter, Histogram

lifecycle_operations_total = Counter(
    "docrepo_lifecycle_operations_total",
    "Lifecycle operations by outcome",
    ["operation", "status"]  # status: success|error|cancelled
)

lifecycle_operation_duration_seconds = Histogram(
    "docrepo_lifecycle_operation_duration_seconds",
    "Wall time of lifecycle operations in seconds",
    ["operation"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0]
)

dedup_short_circuits_total = Counter(
    "docrepo_dedup_short_circuits_total",
    "create_version calls answered with the existing current version",
)

version_conflict_retries_total = Counter(
    "docrepo_version_conflict_retries_total",
    "Retries after a concurrent writer claimed the same version number",
)

compensations_total = Counter(
    "docrepo_compensations_total",
    "Compensating actions run after a failed operation",
    ["action", "status"]  # status: success|error
)

bytes_uploaded_total = Counter(
    "docrepo_bytes_uploaded_total",
    "Content bytes written to the blob store",
)
