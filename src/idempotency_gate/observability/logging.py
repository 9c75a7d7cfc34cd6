"""Structured logging for the idempotency gate.

Every module logs through a structlog logger obtained with
:func:`get_logger`. Events are dotted identifiers (``request.replayed``,
``lock.conflict``, ``store.delete_failed``, ``hook.failed``) and carry the
store key, never request or response bodies.

While a keyed request is processed the middleware binds ``store_key`` and
``method`` with :func:`request_context`, so events emitted by storage
adapters and hooks deeper in the call carry them too.

Examples:
    Application startup::

        from idempotency_gate.observability.logging import configure_logging

        configure_logging(level="INFO", json_output=True)

    Emitting an event::

        logger = get_logger(__name__)
        logger.warning("store.delete_failed", error_type="ConnectionError")

    JSON output inside a request context::

        {
            "event": "store.delete_failed",
            "error_type": "ConnectionError",
            "store_key": "POST:/payments:abc-123",
            "method": "POST",
            "level": "warning",
            "timestamp": "2024-01-01T00:00:00.000000Z"
        }
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, TextIO

import structlog


def configure_logging(
    level: str = "INFO",
    json_output: bool = True,
    stream: TextIO | None = None,
) -> None:
    """Install the structlog processor chain.

    Call once at application startup.

    Args:
        level: Minimum level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: Render JSON lines; otherwise a colored console format
        stream: Output stream (defaults to stdout)
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level!r}")

    output = stream or sys.stdout
    logging.basicConfig(format="%(message)s", stream=output, level=numeric_level)

    renderer: Any
    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=output),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> Any:
    """Return a structlog logger named after the calling module."""
    return structlog.get_logger(name)


@contextmanager
def request_context(**fields: Any) -> Iterator[None]:
    """Bind ``fields`` to every event logged inside the block.

    Bindings live in context variables, so concurrent requests on the same
    event loop do not see each other's fields.
    """
    with structlog.contextvars.bound_contextvars(**fields):
        yield
