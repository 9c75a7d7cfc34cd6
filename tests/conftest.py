"""
Pytest configuration and shared fixtures for idempotency_gate tests.
"""

import pytest

from idempotency_gate.models import IdempotencyRecord, RecordStatus, StoredResponse

START_MS = 1_700_000_000_000


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, start: int = START_MS) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def clock() -> FakeClock:
    """Provide a fake clock starting at a fixed instant."""
    return FakeClock()


@pytest.fixture
def sample_idempotency_key() -> str:
    """Provide a sample idempotency key for tests."""
    return "test-key-12345"


@pytest.fixture
def sample_request_body() -> bytes:
    """Provide a sample request body for tests."""
    return b'{"amount": 1000}'


@pytest.fixture
def make_record(clock: FakeClock):
    """Build processing records stamped with the fake clock."""

    def _make(key: str = "k", fingerprint: str = "a" * 64) -> IdempotencyRecord:
        return IdempotencyRecord(
            key=key,
            fingerprint=fingerprint,
            status=RecordStatus.PROCESSING,
            created_at=clock(),
        )

    return _make


@pytest.fixture
def sample_response() -> StoredResponse:
    """Provide a captured 201 response."""
    return StoredResponse(
        status=201,
        headers={"content-type": "application/json"},
        body='{"id": "pay_1"}',
    )
