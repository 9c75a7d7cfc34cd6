"""Core middleware logic for idempotency handling.

This package contains the framework-agnostic business logic:
- Middleware: request validation, fingerprinting and error rendering
- State machine: lookup, lock, execute, finalize or release
- Replay: response capture and reconstruction
- Problem: problem-detail error responses
- Cleanup: periodic purge of expired records
"""

from idempotency_gate.core.middleware import IdempotencyMiddleware, Request
from idempotency_gate.core.problem import problem_response
from idempotency_gate.core.replay import ReplayedResponse, capture_response, replay_response

__all__ = [
    "IdempotencyMiddleware",
    "Request",
    "ReplayedResponse",
    "capture_response",
    "replay_response",
    "problem_response",
]
