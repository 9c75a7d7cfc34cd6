"""Prometheus metrics for the idempotency gate.

This module provides Prometheus metrics to monitor gate behavior. Metrics
include:

- Request counters by outcome (new, replay, conflict, mismatch, ...)
- Handler execution time for new executions
- Locks currently held by this process
- Purge operation tracking

Examples:
    Recording a replayed request::

        from idempotency_gate.observability.metrics import record_request

        record_request(result="replay", status_code=201)

    Recording execution time::

        from idempotency_gate.observability.metrics import record_execution_time

        record_execution_time(0.15)
"""

from prometheus_client import Counter, Gauge, Histogram

# Labels: result (new, replay, conflict, mismatch, rejected, failed, bypass), status_code
requests_total = Counter(
    "idempotency_requests_total",
    "Total number of requests processed by the idempotency gate",
    ["result", "status_code"],
)

# Only tracks new executions, not replays
execution_seconds = Histogram(
    "idempotency_execution_seconds",
    "Handler execution time in seconds (new executions only)",
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

active_locks = Gauge(
    "idempotency_active_locks",
    "Number of idempotency locks currently held by this process",
)

purge_operations = Counter(
    "idempotency_purge_operations_total",
    "Total number of purge operations performed",
)

purged_records = Counter(
    "idempotency_purged_records_total",
    "Total number of expired records removed by purge",
)


def record_request(result: str, status_code: int) -> None:
    """Record a processed request.

    Args:
        result: The outcome (new, replay, conflict, mismatch, rejected, failed, bypass)
        status_code: HTTP status code of the response

    Examples:
        >>> record_request("replay", 200)
        >>> record_request("conflict", 409)
    """
    requests_total.labels(result=result, status_code=str(status_code)).inc()


def record_execution_time(seconds: float) -> None:
    """Record handler execution time for a new execution.

    Examples:
        >>> record_execution_time(0.15)
    """
    execution_seconds.observe(seconds)


def increment_active_locks() -> None:
    """Called when this process acquires a lock."""
    active_locks.inc()


def decrement_active_locks() -> None:
    """Called when a held lock is completed or released."""
    active_locks.dec()


def record_purge(records_removed: int) -> None:
    """Record a purge operation.

    Args:
        records_removed: Number of expired records removed

    Examples:
        >>> record_purge(42)
    """
    purge_operations.inc()
    purged_records.inc(records_removed)
