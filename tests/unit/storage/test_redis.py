"""Unit tests for RedisStorageAdapter using fakeredis."""

import asyncio

import fakeredis
import fakeredis.aioredis
import pytest

from idempotency_gate.models import RecordStatus
from idempotency_gate.storage.redis import RedisStorageAdapter

TTL_SECONDS = 3600


@pytest.fixture
def client():
    return fakeredis.aioredis.FakeRedis(server=fakeredis.FakeServer())


@pytest.fixture
def adapter(client, clock):
    return RedisStorageAdapter(client, ttl_seconds=TTL_SECONDS, clock=clock)


@pytest.mark.asyncio
async def test_get_missing(adapter):
    assert await adapter.get("missing") is None


@pytest.mark.asyncio
async def test_lock_sets_value_with_expiry(adapter, client, make_record):
    record = make_record()

    assert await adapter.lock("k", record) is True

    assert await adapter.get("k") == record
    ttl = await client.ttl("k")
    assert 0 < ttl <= TTL_SECONDS


@pytest.mark.asyncio
async def test_second_lock_fails(adapter, make_record):
    assert await adapter.lock("k", make_record()) is True
    assert await adapter.lock("k", make_record()) is False


@pytest.mark.asyncio
async def test_concurrent_lock_single_winner(adapter, make_record):
    results = await asyncio.gather(*(adapter.lock("k", make_record()) for _ in range(20)))

    assert results.count(True) == 1


@pytest.mark.asyncio
async def test_complete_keeps_remaining_ttl(adapter, client, clock, make_record, sample_response):
    await adapter.lock("k", make_record())
    clock.advance(1000 * 1000)

    await adapter.complete("k", sample_response)

    stored = await adapter.get("k")
    assert stored.status == RecordStatus.COMPLETED
    assert stored.response == sample_response
    ttl = await client.ttl("k")
    assert 0 < ttl <= TTL_SECONDS - 1000


@pytest.mark.asyncio
async def test_complete_remaining_ttl_floor(adapter, client, clock, make_record, sample_response):
    await adapter.lock("k", make_record())
    clock.advance(TTL_SECONDS * 1000 * 2)

    await adapter.complete("k", sample_response)

    assert await client.ttl("k") == 1


@pytest.mark.asyncio
async def test_complete_absent_does_not_create(adapter, client, sample_response):
    await adapter.complete("missing", sample_response)

    assert await client.exists("missing") == 0


@pytest.mark.asyncio
async def test_delete(adapter, make_record):
    await adapter.lock("k", make_record())

    await adapter.delete("k")

    assert await adapter.get("k") is None
    assert await adapter.lock("k", make_record()) is True


@pytest.mark.asyncio
async def test_purge_is_noop(adapter, make_record):
    await adapter.lock("k", make_record())

    assert await adapter.purge() == 0
    assert await adapter.get("k") is not None


@pytest.mark.asyncio
async def test_undecodable_payload(adapter, client, sample_response):
    await client.set("k", b"{not json", ex=60)

    assert await adapter.get("k") is None

    await adapter.complete("k", sample_response)
    assert await client.get("k") == b"{not json"


@pytest.mark.asyncio
async def test_lock_blocked_by_undecodable_payload(adapter, client, make_record):
    """NX still sees the key, so the corrupt value is not overwritten."""
    await client.set("k", b"garbage", ex=60)

    assert await adapter.lock("k", make_record()) is False


def test_invalid_ttl(client):
    with pytest.raises(ValueError):
        RedisStorageAdapter(client, ttl_seconds=0)
