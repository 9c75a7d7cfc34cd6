"""Periodic purge of expired idempotency records.

Expired records are already invisible to ``get`` and replaceable by
``lock``; purging only reclaims space. Backends with native expiry (Redis,
KV) return 0 from ``purge``, so the task is mainly useful for the memory,
SQL and durable storage adapters.

The cleanup task:
1. Calls ``storage.purge()`` at a fixed interval (default 5 minutes)
2. Reports metrics and logs the number of removed records
3. Keeps running when a purge fails

Examples:
    Integrate with FastAPI lifespan::

        from contextlib import asynccontextmanager

        from fastapi import FastAPI

        from idempotency_gate.core.cleanup import start_cleanup_task, stop_cleanup_task

        @asynccontextmanager
        async def lifespan(app: FastAPI):
            task = await start_cleanup_task(storage, interval_seconds=60)
            yield
            await stop_cleanup_task(task)

        app = FastAPI(lifespan=lifespan)
"""

import asyncio

from idempotency_gate.observability.logging import get_logger
from idempotency_gate.observability.metrics import record_purge
from idempotency_gate.storage.base import StorageAdapter

logger = get_logger(__name__)

STOP_TIMEOUT_SECONDS = 5.0


async def cleanup_loop(
    storage: StorageAdapter,
    interval_seconds: float = 300,
    stop_event: asyncio.Event | None = None,
) -> None:
    """Purge expired records until ``stop_event`` is set.

    Args:
        storage: Storage adapter to purge
        interval_seconds: Time between purges
        stop_event: Event to signal the loop to stop (optional)
    """
    if stop_event is None:
        stop_event = asyncio.Event()

    logger.info("cleanup.started", interval_seconds=interval_seconds)

    while not stop_event.is_set():
        try:
            count = await storage.purge()
            record_purge(count)

            if count > 0:
                logger.info("cleanup.completed", records_removed=count)
            else:
                logger.debug("cleanup.completed", records_removed=0)

        except Exception as e:
            logger.error(
                "cleanup.failed",
                error=str(e),
                error_type=type(e).__name__,
            )

        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval_seconds)
        except asyncio.TimeoutError:
            continue

    logger.info("cleanup.stopped")


async def start_cleanup_task(
    storage: StorageAdapter,
    interval_seconds: float = 300,
) -> asyncio.Task[None]:
    """Start the cleanup loop as a background task.

    Returns:
        The task; pass it to :func:`stop_cleanup_task` on shutdown.
    """
    stop_event = asyncio.Event()

    task = asyncio.create_task(
        cleanup_loop(
            storage=storage,
            interval_seconds=interval_seconds,
            stop_event=stop_event,
        )
    )
    task._stop_event = stop_event  # type: ignore[attr-defined]

    return task


async def stop_cleanup_task(task: asyncio.Task[None]) -> None:
    """Signal the cleanup task to stop and wait for it.

    The task is cancelled if it does not finish within a few seconds.
    """
    stop_event: asyncio.Event | None = getattr(task, "_stop_event", None)
    if stop_event:
        stop_event.set()

    try:
        await asyncio.wait_for(task, timeout=STOP_TIMEOUT_SECONDS)
    except asyncio.TimeoutError:
        logger.warning("cleanup.stop_timeout")
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            logger.debug("cleanup.cancelled")
