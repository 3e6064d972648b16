"""Prometheus metrics registration for the versioning engine.

All metric objects are defined at import time and exported through the
``/metrics`` ASGI app mounted in ``contracthub.main``.
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

version_shape_total = Counter(
    "version_shape_total",
    "Response shaping calls per requested API version",
    ["version"],
)

migration_operations_total = Counter(
    "migration_operations_total",
    "Migration operations by outcome",
    ["operation", "status"],
)

migration_jobs_transitions_total = Counter(
    "migration_jobs_transitions_total",
    "Persisted migration job status transitions",
    ["to_status"],
)

migration_validation_issues_total = Counter(
    "migration_validation_issues_total",
    "Compatibility issues found while validating sample data",
    ["severity"],
)

migration_operation_duration_seconds = Histogram(
    "migration_operation_duration_seconds",
    "Migration operation latency",
    ["operation"],
    buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0],
)
