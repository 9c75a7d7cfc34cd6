"""
Idempotency-Key gate for Python web applications.

This package provides middleware that deduplicates retried HTTP requests
carrying an idempotency key: the first request runs, later requests with the
same key and payload get the stored response back, and concurrent duplicates
are rejected with 409 Conflict. Records live in a pluggable storage backend.
"""

from idempotency_gate.config import IdempotencyConfig
from idempotency_gate.core.middleware import IdempotencyMiddleware, Request
from idempotency_gate.core.problem import problem_response
from idempotency_gate.core.replay import ReplayedResponse
from idempotency_gate.exceptions import (
    BodyTooLargeError,
    ConflictError,
    FingerprintMismatchError,
    IdempotencyError,
    KeyTooLongError,
    MissingKeyError,
    ProblemDetail,
)
from idempotency_gate.fingerprint import compute_fingerprint
from idempotency_gate.models import IdempotencyRecord, RecordStatus, StoredResponse
from idempotency_gate.storage import MemoryStorageAdapter, StorageAdapter

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "IdempotencyConfig",
    "IdempotencyMiddleware",
    "Request",
    "ReplayedResponse",
    "problem_response",
    "compute_fingerprint",
    "IdempotencyRecord",
    "RecordStatus",
    "StoredResponse",
    "StorageAdapter",
    "MemoryStorageAdapter",
    "IdempotencyError",
    "MissingKeyError",
    "KeyTooLongError",
    "BodyTooLargeError",
    "FingerprintMismatchError",
    "ConflictError",
    "ProblemDetail",
]
