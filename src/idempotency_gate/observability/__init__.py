"""Observability utilities for the idempotency gate.

This package provides monitoring and debugging capabilities:
- Prometheus metrics for request outcomes and purge activity
- Structured logging with contextual information
"""

from idempotency_gate.observability.logging import configure_logging, get_logger, request_context
from idempotency_gate.observability.metrics import (
    record_execution_time,
    record_purge,
    record_request,
)

__all__ = [
    "configure_logging",
    "get_logger",
    "request_context",
    "record_request",
    "record_execution_time",
    "record_purge",
]
