"""Unit tests for SQLStorageAdapter against SQLite via aiosqlite."""

import asyncio

import pytest
import pytest_asyncio
from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool

from idempotency_gate.models import RecordStatus, StoredResponse
from idempotency_gate.storage.sql import SQLStorageAdapter, validate_table_name

TTL_SECONDS = 60
TTL_MS = TTL_SECONDS * 1000


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'idem.db'}", poolclass=NullPool)
    yield engine
    await engine.dispose()


@pytest.fixture
def adapter(engine, clock):
    return SQLStorageAdapter(engine, ttl_seconds=TTL_SECONDS, clock=clock)


# ============================================================================
# Table name validation
# ============================================================================


class TestTableName:
    @pytest.mark.parametrize("name", ["idempotency_keys", "_t", "T1", "a" * 63])
    def test_valid(self, name: str) -> None:
        assert validate_table_name(name) == name

    @pytest.mark.parametrize(
        "name",
        ["", "1abc", "keys; DROP TABLE users", "a-b", "a b", "a" * 64, 'x"'],
    )
    def test_invalid(self, name: str, engine) -> None:
        with pytest.raises(ValueError):
            SQLStorageAdapter(engine, table_name=name)

    def test_invalid_ttl(self, engine) -> None:
        with pytest.raises(ValueError):
            SQLStorageAdapter(engine, ttl_seconds=0)


# ============================================================================
# Operations
# ============================================================================


@pytest.mark.asyncio
async def test_get_missing(adapter):
    assert await adapter.get("missing") is None


@pytest.mark.asyncio
async def test_lock_and_get(adapter, make_record):
    record = make_record(key="abc")

    assert await adapter.lock("POST:/p:abc", record) is True

    stored = await adapter.get("POST:/p:abc")
    assert stored == record


@pytest.mark.asyncio
async def test_second_lock_fails(adapter, make_record):
    assert await adapter.lock("k", make_record()) is True
    assert await adapter.lock("k", make_record(fingerprint="b" * 64)) is False

    assert (await adapter.get("k")).fingerprint == "a" * 64


@pytest.mark.asyncio
async def test_complete(adapter, make_record, sample_response):
    await adapter.lock("k", make_record())

    await adapter.complete("k", sample_response)

    stored = await adapter.get("k")
    assert stored.status == RecordStatus.COMPLETED
    assert stored.response == sample_response


@pytest.mark.asyncio
async def test_complete_absent_is_noop(adapter, sample_response):
    await adapter.complete("missing", sample_response)

    assert await adapter.get("missing") is None


@pytest.mark.asyncio
async def test_delete(adapter, make_record):
    await adapter.lock("k", make_record())

    await adapter.delete("k")
    await adapter.delete("k")

    assert await adapter.get("k") is None
    assert await adapter.lock("k", make_record()) is True


@pytest.mark.asyncio
async def test_concurrent_lock_single_winner(adapter, make_record):
    results = await asyncio.gather(*(adapter.lock("k", make_record()) for _ in range(10)))

    assert results.count(True) == 1


# ============================================================================
# TTL
# ============================================================================


@pytest.mark.asyncio
async def test_ttl_boundary(adapter, clock, make_record):
    await adapter.lock("k", make_record())

    clock.advance(TTL_MS - 1)
    assert await adapter.get("k") is not None
    assert await adapter.lock("k", make_record()) is False

    clock.advance(1)
    assert await adapter.get("k") is None


@pytest.mark.asyncio
async def test_lock_replaces_expired_row(adapter, clock, make_record):
    await adapter.lock("k", make_record(fingerprint="a" * 64))
    clock.advance(TTL_MS)

    assert await adapter.lock("k", make_record(fingerprint="b" * 64)) is True
    assert (await adapter.get("k")).fingerprint == "b" * 64


@pytest.mark.asyncio
async def test_purge(adapter, clock, make_record):
    await adapter.lock("a", make_record())
    await adapter.lock("b", make_record())
    clock.advance(TTL_MS // 2)
    await adapter.lock("c", make_record())
    clock.advance(TTL_MS // 2)

    assert await adapter.purge() == 2
    assert await adapter.purge() == 0
    assert await adapter.get("c") is not None


# ============================================================================
# Corrupt rows
# ============================================================================


@pytest.mark.asyncio
async def test_corrupt_response_reads_as_missing_response(adapter, engine, make_record):
    await adapter.lock("k", make_record())
    async with engine.begin() as conn:
        await conn.execute(
            text(
                "UPDATE idempotency_keys SET status = 'completed', response = 'not json' "
                "WHERE store_key = 'k'"
            )
        )

    stored = await adapter.get("k")

    assert stored.status == RecordStatus.COMPLETED
    assert stored.response is None


@pytest.mark.asyncio
async def test_unknown_status_reads_as_absent(adapter, engine, make_record):
    await adapter.lock("k", make_record())
    async with engine.begin() as conn:
        await conn.execute(
            text("UPDATE idempotency_keys SET status = 'bogus' WHERE store_key = 'k'")
        )

    assert await adapter.get("k") is None


@pytest.mark.asyncio
async def test_custom_table_name(engine, clock, make_record):
    adapter = SQLStorageAdapter(engine, table_name="tenant_keys", clock=clock)

    assert await adapter.lock("k", make_record()) is True
    await adapter.complete("k", StoredResponse(status=200, body="ok"))

    assert (await adapter.get("k")).response.body == "ok"


@pytest.mark.asyncio
async def test_from_url(tmp_path, clock, make_record):
    adapter = SQLStorageAdapter.from_url(f"sqlite+aiosqlite:///{tmp_path / 'url.db'}", clock=clock)
    try:
        assert await adapter.lock("k", make_record()) is True
    finally:
        await adapter.engine.dispose()
