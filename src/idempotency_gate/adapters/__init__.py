"""Framework adapters for the idempotency gate.

- asgi.py: Starlette ``BaseHTTPMiddleware`` for FastAPI and Starlette apps
"""

from idempotency_gate.adapters.asgi import ASGIIdempotencyMiddleware

__all__ = ["ASGIIdempotencyMiddleware"]
