"""Core type definitions for the idempotency gate.

This module provides the data structures shared by the controller and every
storage backend: the record status enum, the captured response snapshot, and
the idempotency record itself.

Examples:
    Creating a fresh record::

        from idempotency_gate.models import IdempotencyRecord, RecordStatus, now_ms

        record = IdempotencyRecord(
            key="payment-123",
            fingerprint="a" * 64,
            status=RecordStatus.PROCESSING,
            created_at=now_ms(),
        )

    Capturing a response::

        response = StoredResponse(
            status=201,
            headers={"content-type": "application/json"},
            body='{"id": "pay_1"}',
        )
"""

import time
from enum import Enum

from pydantic import BaseModel, Field


def now_ms() -> int:
    """Return the current wall-clock time in milliseconds since the epoch."""
    return int(time.time() * 1000)


class RecordStatus(str, Enum):
    """Lifecycle state of an idempotency record.

    Attributes:
        PROCESSING: A request holds the lock and its handler is running.
        COMPLETED: The handler succeeded and its response was captured.
    """

    PROCESSING = "processing"
    COMPLETED = "completed"


class StoredResponse(BaseModel):
    """Immutable snapshot of a successful response.

    Headers carry a single value per name. The body is kept as text so that
    every backend can persist it as plain JSON.

    Attributes:
        status: HTTP status code of the original response.
        headers: Response headers safe to replay.
        body: Full response body as text.

    Examples:
        >>> response = StoredResponse(status=200, headers={}, body="ok")
        >>> response.status
        200
    """

    status: int = Field(
        ...,
        description="HTTP status code",
        ge=100,
        le=599,
        examples=[200, 201],
    )
    headers: dict[str, str] = Field(
        default_factory=dict,
        description="HTTP response headers",
        examples=[{"content-type": "application/json"}],
    )
    body: str = Field(
        default="",
        description="Response body as text",
        examples=['{"ok": true}'],
    )

    model_config = {"frozen": True}


class IdempotencyRecord(BaseModel):
    """Deduplication state for one store key.

    A record is created in ``PROCESSING`` state by a store's ``lock`` and moves
    to ``COMPLETED`` exactly once. ``created_at`` is never touched after
    creation, so the elapsed time since creation is always measurable.

    Attributes:
        key: The raw idempotency key supplied by the client.
        fingerprint: Opaque digest of the request that first used the key.
        status: Current lifecycle state.
        response: Captured response; present once completed.
        created_at: Creation time in milliseconds since the epoch.
    """

    key: str = Field(
        ...,
        description="Idempotency key provided by the client",
        examples=["payment-user123-20231215"],
    )
    fingerprint: str = Field(
        ...,
        description="Digest of the request content",
        examples=["a" * 64],
    )
    status: RecordStatus = Field(
        default=RecordStatus.PROCESSING,
        description="Current processing state of the request",
    )
    response: StoredResponse | None = Field(
        default=None,
        description="Captured response (set when completed)",
    )
    created_at: int = Field(
        ...,
        description="Creation time in milliseconds since the epoch",
        ge=0,
    )

    def is_expired(self, ttl_ms: int, now: int) -> bool:
        """Return True once ``ttl_ms`` or more has elapsed since creation.

        Examples:
            >>> record = IdempotencyRecord(key="k", fingerprint="f", created_at=1000)
            >>> record.is_expired(1000, now=1999)
            False
            >>> record.is_expired(1000, now=2000)
            True
        """
        return now - self.created_at >= ttl_ms

    def completed_with(self, response: StoredResponse) -> "IdempotencyRecord":
        """Return a copy of this record marked completed with ``response``."""
        return self.model_copy(update={"status": RecordStatus.COMPLETED, "response": response})
