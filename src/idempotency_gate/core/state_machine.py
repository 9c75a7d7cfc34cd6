"""State machine for idempotent request processing.

Once a request has passed validation and its store key and fingerprint are
known, this module decides what happens to it:

    lookup -> replay | conflict | mismatch | corrupt-recover -> lock
    lock   -> conflict | execute
    execute -> finalize (2xx) | release (non-2xx or exception)

Guarantees:
- The handler runs only after this call won ``StorageAdapter.lock``
- A processing record never outlives a failed execution: on a handler
  exception or a non-2xx response the record is deleted before the outcome
  reaches the caller, so the client can retry with the same key
- A completed record whose fingerprint differs is never modified
- Only 2xx responses are stored

Examples:
    Processing a validated request::

        from idempotency_gate.core.state_machine import process_request

        result = await process_request(
            storage=storage,
            key="payment-123",
            store_key="POST:/payments:payment-123",
            fingerprint=fingerprint,
            handler=handler,
            request=request,
            config=config,
        )
        if result.was_replayed:
            ...
"""

import time
from collections.abc import Awaitable, Callable
from typing import Any

from idempotency_gate.config import IdempotencyConfig
from idempotency_gate.core.replay import ReplayedResponse, capture_response, replay_response
from idempotency_gate.exceptions import ConflictError, FingerprintMismatchError
from idempotency_gate.models import IdempotencyRecord, RecordStatus, now_ms
from idempotency_gate.observability.logging import get_logger
from idempotency_gate.observability.metrics import (
    decrement_active_locks,
    increment_active_locks,
    record_execution_time,
)
from idempotency_gate.storage.base import StorageAdapter
from idempotency_gate.utils.hooks import safe_hook

logger = get_logger(__name__)

# Request state slot holding the validated key while the handler runs
KEY_STATE_FIELD = "idempotency_key"


class StateResult:
    """Result of state machine processing.

    Attributes:
        response: The response to return (new or replayed)
        outcome: ``"new"``, ``"replay"`` or ``"failed"`` (non-2xx response)
        execution_time_ms: Handler execution time (None for replays)
    """

    def __init__(
        self,
        response: ReplayedResponse,
        outcome: str,
        execution_time_ms: int | None = None,
    ) -> None:
        self.response = response
        self.outcome = outcome
        self.execution_time_ms = execution_time_ms

    @property
    def was_replayed(self) -> bool:
        return self.outcome == "replay"


async def process_request(
    storage: StorageAdapter,
    key: str,
    store_key: str,
    fingerprint: str,
    handler: Callable[[Any], Awaitable[ReplayedResponse]],
    request: Any,
    config: IdempotencyConfig,
    clock: Callable[[], int] = now_ms,
) -> StateResult:
    """Process a validated request through the state machine.

    Args:
        storage: Storage adapter for idempotency records
        key: Raw idempotency key from the request header
        store_key: Composite key the record lives under
        fingerprint: Request fingerprint
        handler: Async function that executes the actual request
        request: The request object (passed to handler and hooks)
        config: Configuration object
        clock: Returns the current time in epoch milliseconds; should match
            the storage adapter's clock

    Returns:
        StateResult with the response and outcome

    Raises:
        ConflictError: If another request holds the lock for the key
        FingerprintMismatchError: If the key was used with a different request
        Exception: Whatever the handler raised, after the record was deleted
    """
    existing = await storage.get(store_key)

    if existing is not None:
        if existing.status == RecordStatus.PROCESSING:
            logger.info("lock.conflict", store_key=store_key)
            raise ConflictError()

        if existing.fingerprint != fingerprint:
            logger.info("request.fingerprint_mismatch", store_key=store_key)
            raise FingerprintMismatchError()

        if existing.response is not None:
            await safe_hook("on_cache_hit", config.on_cache_hit, key, request)
            logger.info("request.replayed", store_key=store_key, status=existing.response.status)
            return StateResult(response=replay_response(existing.response), outcome="replay")

        # Completed without a response cannot be replayed; run it again
        logger.warning("record.corrupt", store_key=store_key)
        await storage.delete(store_key)

    record = IdempotencyRecord(
        key=key,
        fingerprint=fingerprint,
        status=RecordStatus.PROCESSING,
        created_at=clock(),
    )
    if not await storage.lock(store_key, record):
        logger.info("lock.lost_race", store_key=store_key)
        raise ConflictError()

    increment_active_locks()
    try:
        return await _execute(storage, key, store_key, handler, request, config)
    finally:
        decrement_active_locks()


async def _execute(
    storage: StorageAdapter,
    key: str,
    store_key: str,
    handler: Callable[[Any], Awaitable[ReplayedResponse]],
    request: Any,
    config: IdempotencyConfig,
) -> StateResult:
    request.state[KEY_STATE_FIELD] = key
    await safe_hook("on_cache_miss", config.on_cache_miss, key, request)

    start_time = time.perf_counter()
    try:
        response = await handler(request)
    except BaseException as e:
        # Cancellation frees the key too
        logger.warning(
            "request.handler_failed",
            store_key=store_key,
            error_type=type(e).__name__,
        )
        await release(storage, store_key)
        raise

    elapsed = time.perf_counter() - start_time
    record_execution_time(elapsed)
    execution_time_ms = int(elapsed * 1000)

    if not response.ok:
        logger.info("request.not_stored", store_key=store_key, status=response.status)
        await release(storage, store_key)
        return StateResult(response=response, outcome="failed", execution_time_ms=execution_time_ms)

    await storage.complete(store_key, capture_response(response))
    logger.info(
        "request.completed",
        store_key=store_key,
        status=response.status,
        execution_time_ms=execution_time_ms,
    )
    return StateResult(response=response, outcome="new", execution_time_ms=execution_time_ms)


async def release(storage: StorageAdapter, store_key: str) -> None:
    """Delete the record after a failed execution.

    A failing delete is logged and not raised, so the caller still sees the
    handler's own outcome. The record then lingers until its TTL.
    """
    try:
        await storage.delete(store_key)
    except Exception as e:
        logger.error(
            "store.delete_failed",
            store_key=store_key,
            error=str(e),
            error_type=type(e).__name__,
        )
