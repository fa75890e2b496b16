"""Prometheus metrics for R2 transfer operations.

All metrics are registered on the package registry from
``r2_transfer.infra.metrics.prometheus`` rather than the global default one.

Usage:
    from r2_transfer.infra.storage.metrics import record_operation_success

    record_operation_success("upload", duration_seconds=1.5, size_bytes=1048576)
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

from r2_transfer.infra.metrics.prometheus import REGISTRY

# Covers latency from 10ms to 2min; multipart uploads of large files are slow.
STORAGE_LATENCY_BUCKETS = (0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0)

# 1KB to 1GB
STORAGE_SIZE_BUCKETS = (1024, 10240, 102400, 1048576, 10485760, 104857600, 1073741824)

BATCH_SIZE_BUCKETS = (1, 5, 10, 25, 50, 100, 250, 500)

storage_operations_total = Counter(
    "r2_operations_total",
    "Total R2 operations",
    ["operation", "status"],
    registry=REGISTRY,
)

storage_operation_duration_seconds = Histogram(
    "r2_operation_duration_seconds",
    "R2 operation duration in seconds, including retries",
    ["operation"],
    buckets=STORAGE_LATENCY_BUCKETS,
    registry=REGISTRY,
)

storage_transfer_size_bytes = Histogram(
    "r2_transfer_size_bytes",
    "Size of objects uploaded/downloaded in bytes",
    ["operation"],
    buckets=STORAGE_SIZE_BUCKETS,
    registry=REGISTRY,
)

storage_errors_total = Counter(
    "r2_errors_total",
    "R2 operation errors by type",
    ["operation", "error_type"],
    registry=REGISTRY,
)

storage_batch_size = Histogram(
    "r2_batch_size",
    "Number of keys in batch operations",
    ["operation"],
    buckets=BATCH_SIZE_BUCKETS,
    registry=REGISTRY,
)

storage_batch_failure_count = Counter(
    "r2_batch_failure_count",
    "Number of keys that failed in batch operations",
    ["operation"],
    registry=REGISTRY,
)


def record_operation_success(
    operation: str,
    duration_seconds: float,
    size_bytes: int | None = None,
) -> None:
    """Record a successful operation.

    Args:
        operation: The operation type (e.g., 'upload', 'download', 'delete')
        duration_seconds: Operation duration in seconds
        size_bytes: Optional object size for upload/download operations
    """
    storage_operations_total.labels(operation=operation, status="success").inc()
    storage_operation_duration_seconds.labels(operation=operation).observe(duration_seconds)
    if size_bytes is not None:
        storage_transfer_size_bytes.labels(operation=operation).observe(size_bytes)


def record_operation_error(
    operation: str,
    error_type: str,
    duration_seconds: float,
) -> None:
    """Record a failed operation.

    Args:
        operation: The operation type (e.g., 'upload', 'download', 'delete')
        error_type: The error class name (e.g., 'TransferFailedError')
        duration_seconds: Operation duration in seconds before failure
    """
    storage_operations_total.labels(operation=operation, status="error").inc()
    storage_operation_duration_seconds.labels(operation=operation).observe(duration_seconds)
    storage_errors_total.labels(operation=operation, error_type=error_type).inc()


def record_batch_operation(operation: str, total_count: int, failure_count: int) -> None:
    storage_batch_size.labels(operation=operation).observe(total_count)
    if failure_count:
        storage_batch_failure_count.labels(operation=operation).inc(failure_count)
