"""Redis storage adapter using ``redis.asyncio``.

Each record is one JSON string value with a native Redis expiry:

- lock() is a single ``SET key value NX EX ttl``; there is no separate
  existence check, so exactly one concurrent caller wins.
- complete() rewrites the value with ``XX`` and the *remaining* lifetime
  computed from ``created_at``, so a slow handler never extends the record.
- purge() is a no-op because Redis expires keys by itself.

Payloads that fail to decode are treated as absent and never raise.

Examples:
    Basic usage::

        from redis.asyncio import Redis
        from idempotency_gate.storage.redis import RedisStorageAdapter

        adapter = RedisStorageAdapter(Redis(), ttl_seconds=3600)

        # Or from a URL
        adapter = RedisStorageAdapter.from_url("redis://localhost:6379/0")
"""

import math
from collections.abc import Callable
from typing import Any

from pydantic import ValidationError
from redis.asyncio import Redis

from idempotency_gate.models import IdempotencyRecord, StoredResponse, now_ms
from idempotency_gate.observability.logging import get_logger
from idempotency_gate.storage.base import DEFAULT_TTL_SECONDS, StorageAdapter

logger = get_logger(__name__)


class RedisStorageAdapter(StorageAdapter):
    """Storage adapter backed by Redis string keys with native expiry.

    Attributes:
        client: The ``redis.asyncio`` client.
        ttl_seconds: Record lifetime in whole seconds.
    """

    def __init__(
        self,
        client: Redis,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        """Initialize the adapter.

        Args:
            client: A ``redis.asyncio.Redis`` client (or compatible).
            ttl_seconds: Record lifetime in seconds, passed as ``EX``.
            clock: Returns the current time in epoch milliseconds.

        Raises:
            ValueError: If ttl_seconds is not a positive integer.
        """
        if ttl_seconds < 1:
            raise ValueError(f"ttl_seconds must be >= 1, got {ttl_seconds}")

        self.client = client
        self.ttl_seconds = int(ttl_seconds)
        self._clock = clock

    @classmethod
    def from_url(cls, url: str, **kwargs: Any) -> "RedisStorageAdapter":
        """Create an adapter with a new client for ``url``.

        Args:
            url: Redis connection URL.
            **kwargs: Forwarded to the constructor.
        """
        return cls(Redis.from_url(url), **kwargs)

    async def get(self, key: str) -> IdempotencyRecord | None:
        """Return the record stored under ``key``."""
        raw = await self.client.get(key)
        if raw is None:
            return None
        return self._decode(key, raw)

    async def lock(self, key: str, record: IdempotencyRecord) -> bool:
        """Create the record with ``SET NX EX``."""
        try:
            payload = record.model_dump_json()
        except ValueError as e:
            logger.error("store.serialize_failed", store_key=key, error=str(e))
            return False

        result = await self.client.set(key, payload, nx=True, ex=self.ttl_seconds)
        return bool(result)

    async def complete(self, key: str, response: StoredResponse) -> None:
        """Attach the response, keeping the remaining time-to-live."""
        raw = await self.client.get(key)
        if raw is None:
            return
        record = self._decode(key, raw)
        if record is None:
            return

        try:
            payload = record.completed_with(response).model_dump_json()
        except ValueError as e:
            logger.error("store.serialize_failed", store_key=key, error=str(e))
            return

        await self.client.set(key, payload, ex=self._remaining_seconds(record), xx=True)

    async def delete(self, key: str) -> None:
        """Delete the key."""
        await self.client.delete(key)

    async def purge(self) -> int:
        """Redis expires keys natively; nothing to purge."""
        return 0

    def _remaining_seconds(self, record: IdempotencyRecord) -> int:
        elapsed = math.floor((self._clock() - record.created_at) / 1000)
        return max(1, self.ttl_seconds - elapsed)

    def _decode(self, key: str, raw: bytes | str) -> IdempotencyRecord | None:
        try:
            return IdempotencyRecord.model_validate_json(raw)
        except ValidationError as e:
            logger.warning("store.decode_failed", store_key=key, error=str(e))
            return None
