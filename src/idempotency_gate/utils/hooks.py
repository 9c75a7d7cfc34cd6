"""Helpers for calling user-supplied callables.

Every callable in :class:`~idempotency_gate.config.IdempotencyConfig` may be
a plain function or a coroutine function.
"""

import inspect
from collections.abc import Callable
from typing import Any

from idempotency_gate.observability.logging import get_logger

logger = get_logger(__name__)


async def resolve(value: Any) -> Any:
    """Await ``value`` if it is awaitable, otherwise return it as is."""
    if inspect.isawaitable(value):
        return await value
    return value


async def call_user(fn: Callable[..., Any], *args: Any) -> Any:
    """Call a sync or async callable and return its result."""
    return await resolve(fn(*args))


async def safe_hook(name: str, hook: Callable[..., Any] | None, *args: Any) -> None:
    """Call an observability hook, logging and discarding any error.

    Args:
        name: Hook name used in the log event.
        hook: The hook, or None.
        *args: Arguments passed to the hook.
    """
    if hook is None:
        return
    try:
        await call_user(hook, *args)
    except Exception as e:
        logger.warning(
            "hook.failed",
            hook=name,
            error=str(e),
            error_type=type(e).__name__,
        )
