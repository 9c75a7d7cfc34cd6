"""End-to-end scenario tests for the idempotency gate.

Each scenario drives a FastAPI application wrapped in
ASGIIdempotencyMiddleware and checks one aspect of idempotency handling.
"""
