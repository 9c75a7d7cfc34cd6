"""Eventually-consistent key-value storage adapter.

Targets namespaces such as Cloudflare Workers KV that offer get/put/delete
with per-key expiry but no compare-and-swap.

Without an atomic primitive, lock() is best effort: it reads, writes a value
carrying a fresh per-attempt ``lock_id``, then reads the key back. Only the
writer whose ``lock_id`` survives the read-back proceeds. Two writers with the
same fingerprint are still told apart because the ``lock_id`` is unique per
attempt. Replicas that have not converged can still let two writers through;
use the SQL, Redis or durable storage adapters when strict at-most-once
execution is required.

Examples:
    Wrapping a namespace binding::

        from idempotency_gate.storage.kv import KVStorageAdapter

        adapter = KVStorageAdapter(env.IDEMPOTENCY_KV, ttl_seconds=86400)
"""

import json
import math
import uuid
from collections.abc import Callable
from typing import Protocol

from pydantic import ValidationError

from idempotency_gate.models import IdempotencyRecord, StoredResponse, now_ms
from idempotency_gate.observability.logging import get_logger
from idempotency_gate.storage.base import DEFAULT_TTL_SECONDS, StorageAdapter

logger = get_logger(__name__)

# Workers KV rejects expiration TTLs below one minute
MIN_KV_TTL_SECONDS = 60

LOCK_ID_FIELD = "lock_id"


class KVNamespace(Protocol):
    """Minimal namespace client required by :class:`KVStorageAdapter`."""

    async def get(self, key: str) -> str | None:
        """Return the stored text value, or None."""
        ...

    async def put(self, key: str, value: str, expiration_ttl: int | None = None) -> None:
        """Store ``value`` with an optional expiry in seconds."""
        ...

    async def delete(self, key: str) -> None:
        """Remove ``key``."""
        ...


class KVStorageAdapter(StorageAdapter):
    """Storage adapter for eventually-consistent key-value namespaces.

    Attributes:
        namespace: The KV namespace client.
        ttl_seconds: Record lifetime in whole seconds.
    """

    def __init__(
        self,
        namespace: KVNamespace,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        """Initialize the adapter.

        Args:
            namespace: Client exposing async ``get``/``put``/``delete``.
            ttl_seconds: Record lifetime in seconds (at least 60).
            clock: Returns the current time in epoch milliseconds.

        Raises:
            ValueError: If ttl_seconds is below the KV minimum.
        """
        if ttl_seconds < MIN_KV_TTL_SECONDS:
            raise ValueError(
                f"ttl_seconds must be >= {MIN_KV_TTL_SECONDS} for KV namespaces, got {ttl_seconds}"
            )

        self.namespace = namespace
        self.ttl_seconds = int(ttl_seconds)
        self._clock = clock

    async def get(self, key: str) -> IdempotencyRecord | None:
        """Return the record stored under ``key``, without its lock id."""
        record, _ = await self._read(key)
        return record

    async def lock(self, key: str, record: IdempotencyRecord) -> bool:
        """Write-then-verify lock using a per-attempt ``lock_id``.

        Any stored value blocks the lock, including one that cannot be
        decoded.
        """
        raw = await self.namespace.get(key)
        if raw is not None:
            if self._decode(key, raw)[0] is None:
                logger.warning("lock.blocked_by_corrupt_value", store_key=key)
            return False

        lock_id = uuid.uuid4().hex
        try:
            payload = json.dumps({**record.model_dump(mode="json"), LOCK_ID_FIELD: lock_id})
        except (TypeError, ValueError) as e:
            logger.error("store.serialize_failed", store_key=key, error=str(e))
            return False

        await self.namespace.put(key, payload, expiration_ttl=self.ttl_seconds)

        # Another writer may have landed after our read; the last write wins
        _, stored_lock_id = await self._read(key)
        if stored_lock_id != lock_id:
            logger.info("lock.lost_race", store_key=key)
            return False
        return True

    async def complete(self, key: str, response: StoredResponse) -> None:
        """Attach the response, keeping the remaining time-to-live."""
        record, lock_id = await self._read(key)
        if record is None:
            return

        data = record.completed_with(response).model_dump(mode="json")
        if lock_id is not None:
            data[LOCK_ID_FIELD] = lock_id
        try:
            payload = json.dumps(data)
        except (TypeError, ValueError) as e:
            logger.error("store.serialize_failed", store_key=key, error=str(e))
            return

        elapsed = math.floor((self._clock() - record.created_at) / 1000)
        remaining = max(MIN_KV_TTL_SECONDS, self.ttl_seconds - elapsed)
        await self.namespace.put(key, payload, expiration_ttl=remaining)

    async def delete(self, key: str) -> None:
        """Delete the key."""
        await self.namespace.delete(key)

    async def purge(self) -> int:
        """KV expires keys natively; nothing to purge."""
        return 0

    async def _read(self, key: str) -> tuple[IdempotencyRecord | None, str | None]:
        raw = await self.namespace.get(key)
        if raw is None:
            return None, None
        return self._decode(key, raw)

    def _decode(self, key: str, raw: str) -> tuple[IdempotencyRecord | None, str | None]:
        try:
            data = json.loads(raw)
            lock_id = data.pop(LOCK_ID_FIELD, None)
            return IdempotencyRecord.model_validate(data), lock_id
        except (ValueError, TypeError, AttributeError, ValidationError) as e:
            logger.warning("store.decode_failed", store_key=key, error=str(e))
            return None, None
