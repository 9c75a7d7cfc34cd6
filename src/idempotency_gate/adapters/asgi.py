"""ASGI middleware adapter for FastAPI and Starlette applications.

This module wraps the core idempotency middleware in a Starlette
``BaseHTTPMiddleware``.

The middleware:
1. Converts Starlette requests to the internal Request format; the body is
   read lazily and stays readable by the endpoint
2. Processes through the core middleware
3. Converts internal responses back to Starlette responses

While the endpoint runs, the validated key is available as
``request.state.idempotency_key``.

Examples:
    FastAPI integration::

        from fastapi import FastAPI, Request
        from idempotency_gate.adapters.asgi import ASGIIdempotencyMiddleware
        from idempotency_gate.config import IdempotencyConfig
        from idempotency_gate.storage.memory import MemoryStorageAdapter

        app = FastAPI()

        app.add_middleware(
            ASGIIdempotencyMiddleware,
            storage=MemoryStorageAdapter(ttl_seconds=3600),
            config=IdempotencyConfig(required=True),
        )

        @app.post("/api/payments", status_code=201)
        async def create_payment(request: Request):
            key = request.state.idempotency_key
            return {"status": "success"}

    Starlette integration::

        from starlette.applications import Starlette
        from starlette.middleware import Middleware

        middleware = [
            Middleware(ASGIIdempotencyMiddleware, storage=storage, config=config),
        ]

        app = Starlette(middleware=middleware)
"""

from collections.abc import Awaitable, Callable
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request as StarletteRequest
from starlette.responses import Response

from idempotency_gate.config import IdempotencyConfig
from idempotency_gate.core.middleware import IdempotencyMiddleware, Request
from idempotency_gate.core.replay import ReplayedResponse
from idempotency_gate.core.state_machine import KEY_STATE_FIELD
from idempotency_gate.models import now_ms
from idempotency_gate.storage.base import StorageAdapter


class ASGIIdempotencyMiddleware(BaseHTTPMiddleware):
    """ASGI middleware for idempotency handling.

    Attributes:
        storage: Storage adapter for idempotency records
        config: Configuration object
        middleware: Core middleware instance
    """

    def __init__(
        self,
        app: Any,
        storage: StorageAdapter,
        config: IdempotencyConfig | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        """Initialize the ASGI middleware.

        Args:
            app: The ASGI application
            storage: Storage adapter for idempotency records
            config: Configuration object (uses defaults if not provided)
            clock: Record timestamp source, see IdempotencyMiddleware
        """
        super().__init__(app)
        self.storage = storage
        self.config = config or IdempotencyConfig()
        self.middleware = IdempotencyMiddleware(storage, self.config, clock=clock)

    async def dispatch(
        self,
        request: StarletteRequest,
        call_next: Callable[[StarletteRequest], Awaitable[Response]],
    ) -> Response:
        """Process an ASGI request with idempotency handling.

        Args:
            request: The Starlette request object
            call_next: Function to call the next middleware/handler

        Returns:
            Starlette Response object
        """
        internal_request = self._convert_request(request)

        async def handler(req: Request) -> ReplayedResponse:
            if KEY_STATE_FIELD in req.state:
                setattr(request.state, KEY_STATE_FIELD, req.state[KEY_STATE_FIELD])

            response = await call_next(request)
            body = await self._read_response_body(response)

            return ReplayedResponse(
                status=response.status_code,
                headers=dict(response.headers),
                body=body,
                raw_headers=list(response.raw_headers),
            )

        result = await self.middleware.process(internal_request, handler)
        return self._convert_response(result)

    def _convert_request(self, request: StarletteRequest) -> Request:
        """Convert Starlette request to internal Request format.

        Starlette caches the body it reads, so the endpoint can read it again.
        """
        return Request(
            method=request.method,
            path=request.url.path,
            headers=dict(request.headers),
            body_reader=request.body,
            native=request,
        )

    async def _read_response_body(self, response: Response) -> bytes:
        if hasattr(response, "body_iterator"):
            chunks: list[bytes] = []
            async for chunk in response.body_iterator:
                if isinstance(chunk, str):
                    chunks.append(chunk.encode("utf-8"))
                else:
                    chunks.append(bytes(chunk))
            return b"".join(chunks)

        return bytes(getattr(response, "body", b""))

    def _convert_response(self, response: ReplayedResponse) -> Response:
        """Convert internal ReplayedResponse to Starlette Response.

        Original raw headers, when present, are passed through unchanged so
        repeated headers such as ``set-cookie`` reach the first caller.
        """
        if response.raw_headers is not None:
            result = Response(content=response.body, status_code=response.status)
            result.raw_headers = list(response.raw_headers)
            return result

        return Response(
            content=response.body,
            status_code=response.status,
            headers=response.headers,
        )
