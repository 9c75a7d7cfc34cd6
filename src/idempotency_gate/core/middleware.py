"""Framework-agnostic core middleware for idempotency handling.

This module provides the main middleware logic that orchestrates the
entire idempotency flow. It is framework-agnostic and can be wrapped
by adapters for different web frameworks.

The middleware:
1. Bypasses methods outside ``config.methods`` and requests matched by
   ``skip_request``
2. Extracts and validates the idempotency key
3. Enforces the body size limit (declared Content-Length, then actual size)
4. Computes the request fingerprint and the store key
5. Delegates to the state machine
6. Turns gate errors into problem responses (or ``on_error`` responses)

Examples:
    Using the middleware directly::

        from idempotency_gate.config import IdempotencyConfig
        from idempotency_gate.core.middleware import IdempotencyMiddleware, Request
        from idempotency_gate.core.replay import ReplayedResponse
        from idempotency_gate.storage.memory import MemoryStorageAdapter

        middleware = IdempotencyMiddleware(MemoryStorageAdapter(), IdempotencyConfig())

        async def handler(request):
            return ReplayedResponse(status=201, headers={}, body=b"created")

        request = Request(
            method="POST",
            path="/payments",
            headers={"Idempotency-Key": "abc-123"},
            body=b'{"amount": 1000}',
        )
        response = await middleware.process(request, handler)
"""

from collections.abc import Awaitable, Callable
from typing import Any

from idempotency_gate.config import IdempotencyConfig
from idempotency_gate.core.problem import problem_response
from idempotency_gate.core.replay import ReplayedResponse
from idempotency_gate.core.state_machine import process_request
from idempotency_gate.exceptions import (
    BodyTooLargeError,
    ConflictError,
    FingerprintMismatchError,
    IdempotencyError,
    KeyTooLongError,
    MissingKeyError,
)
from idempotency_gate.fingerprint import compute_fingerprint
from idempotency_gate.models import now_ms
from idempotency_gate.observability.logging import get_logger, request_context
from idempotency_gate.observability.metrics import record_request
from idempotency_gate.storage.base import StorageAdapter
from idempotency_gate.utils.headers import RETRY_AFTER_HEADER, get_header_value
from idempotency_gate.utils.hooks import call_user
from idempotency_gate.utils.keys import build_store_key

logger = get_logger(__name__)

Handler = Callable[["Request"], Awaitable[ReplayedResponse]]


class _HandlerError(Exception):
    """Carries a gate error raised by the handler past gate error rendering."""

    def __init__(self, error: IdempotencyError) -> None:
        super().__init__(str(error))
        self.error = error


def _guard_handler(handler: Handler) -> Handler:
    async def guarded(request: "Request") -> ReplayedResponse:
        try:
            return await handler(request)
        except IdempotencyError as e:
            raise _HandlerError(e) from e

    return guarded


class Request:
    """Abstract request representation.

    Framework adapters convert their own request objects into this format.
    The body is read lazily through ``read_body()`` and cached, so the
    handler can read it again.

    Attributes:
        method: HTTP method (GET, POST, etc.)
        path: URL path without the query string
        headers: Request headers as dict
        state: Per-request values shared with the handler; holds
            ``"idempotency_key"`` once a lock is acquired
        native: The framework request this one was built from, if any
    """

    def __init__(
        self,
        method: str,
        path: str,
        headers: dict[str, str],
        body: bytes | None = None,
        body_reader: Callable[[], Awaitable[bytes]] | None = None,
        state: dict[str, Any] | None = None,
        native: Any = None,
    ) -> None:
        """Initialize a request.

        Args:
            method: HTTP method
            path: URL path
            headers: Request headers
            body: Request body, if already read
            body_reader: Async callable returning the body, used when
                ``body`` is None
            state: Initial request state
            native: Framework request object
        """
        self.method = method
        self.path = path
        self.headers = headers
        self.state = state if state is not None else {}
        self.native = native
        self._body = body
        self._body_reader = body_reader

    def header(self, name: str) -> str | None:
        """Case-insensitive header lookup."""
        return get_header_value(self.headers, name)

    async def read_body(self) -> bytes:
        """Return the full request body, reading it on first use."""
        if self._body is None:
            self._body = await self._body_reader() if self._body_reader is not None else b""
        return self._body


class IdempotencyMiddleware:
    """Framework-agnostic idempotency middleware.

    Attributes:
        storage: Storage adapter for idempotency records
        config: Configuration object
    """

    def __init__(
        self,
        storage: StorageAdapter,
        config: IdempotencyConfig | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        """Initialize the middleware.

        Args:
            storage: Storage adapter for idempotency records
            config: Configuration object (uses defaults if not provided)
            clock: Stamps new records, in epoch milliseconds. Pass the same
                clock as the storage adapter when injecting one.
        """
        self.storage = storage
        self.config = config or IdempotencyConfig()
        self._clock = clock

    async def process(self, request: Request, handler: Handler) -> ReplayedResponse:
        """Process a request with idempotency handling.

        Args:
            request: The incoming request
            handler: Async function producing the response when the request
                is executed

        Returns:
            The handler's response, a replayed response, or an error
            response.

        Raises:
            Exception: Whatever the handler raised, after the key was freed.
        """
        config = self.config

        if request.method.upper() not in config.methods:
            return await self._bypass(request, handler)

        if config.skip_request is not None and await call_user(config.skip_request, request):
            return await self._bypass(request, handler)

        key = request.header(config.header_name)
        if not key:
            if config.required:
                return await self._error_response(MissingKeyError(config.header_name), request)
            return await self._bypass(request, handler)

        try:
            self._validate_key(key)
            body = await self._read_body(request)
            fingerprint = await self._fingerprint(request, body)
            prefix = await self._prefix(request)
            store_key = build_store_key(request.method, request.path, key, prefix)

            with request_context(store_key=store_key, method=request.method):
                result = await process_request(
                    storage=self.storage,
                    key=key,
                    store_key=store_key,
                    fingerprint=fingerprint,
                    handler=_guard_handler(handler),
                    request=request,
                    config=config,
                    clock=self._clock,
                )
        except _HandlerError as e:
            # Application errors reuse the gate exception types; re-raise them untouched
            record_request("failed", 500)
            raise e.error from None
        except IdempotencyError as e:
            return await self._error_response(e, request)
        except Exception:
            record_request("failed", 500)
            raise

        record_request(result.outcome, result.response.status)
        return result.response

    async def _bypass(self, request: Request, handler: Handler) -> ReplayedResponse:
        response = await handler(request)
        record_request("bypass", response.status)
        return response

    def _validate_key(self, key: str) -> None:
        """Validate idempotency key length.

        Raises:
            KeyTooLongError: If the key exceeds ``max_key_length``
        """
        if len(key) > self.config.max_key_length:
            raise KeyTooLongError(self.config.max_key_length)

    async def _read_body(self, request: Request) -> bytes:
        """Read the body, enforcing ``max_body_size``.

        The declared Content-Length is checked first so oversized uploads are
        rejected without reading them; the bytes actually read are checked
        too, since the header may be absent or wrong.

        Raises:
            BodyTooLargeError: If the body exceeds ``max_body_size``
        """
        max_size = self.config.max_body_size
        if max_size is not None:
            declared = _parse_content_length(request.header("content-length"))
            if declared is not None and declared > max_size:
                raise BodyTooLargeError(max_size)

        body = await request.read_body()
        if max_size is not None and len(body) > max_size:
            raise BodyTooLargeError(max_size)
        return body

    async def _fingerprint(self, request: Request, body: bytes) -> str:
        if self.config.fingerprint is not None:
            return str(await call_user(self.config.fingerprint, request))
        return compute_fingerprint(request.method, request.path, body)

    async def _prefix(self, request: Request) -> str | None:
        prefix = self.config.cache_key_prefix
        if callable(prefix):
            prefix = await call_user(prefix, request)
        if prefix is None or prefix == "":
            return None
        # Callables may return tenant ids of any type
        return str(prefix)

    async def _error_response(self, error: IdempotencyError, request: Request) -> ReplayedResponse:
        """Render a gate error, through ``on_error`` when configured."""
        if self.config.on_error is not None:
            response = await call_user(self.config.on_error, error, request)
        else:
            extra_headers = None
            if isinstance(error, ConflictError):
                extra_headers = {RETRY_AFTER_HEADER: str(self.config.retry_after_seconds)}
            response = problem_response(error.to_problem(), extra_headers)

        if isinstance(error, ConflictError):
            outcome = "conflict"
        elif isinstance(error, FingerprintMismatchError):
            outcome = "mismatch"
        else:
            outcome = "rejected"
            logger.info("request.rejected", code=error.code, path=request.path)

        record_request(outcome, response.status)
        return response


def _parse_content_length(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None
