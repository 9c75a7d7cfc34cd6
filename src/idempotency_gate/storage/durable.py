"""Single-writer durable storage adapter.

Targets storage that the runtime serializes per partition, such as the
storage of a Cloudflare Durable Object: every operation against one instance
runs one at a time, so lock() can read, check and write without an atomic
primitive of its own. The adapter adds no locking and must only be used
where that single-writer guarantee holds.

The storage has no native TTL: expired records are hidden by get(), replaced
by lock(), and physically removed by purge(), which enumerates every entry.

Examples:
    Inside a single-writer object::

        from idempotency_gate.storage.durable import DurableStorageAdapter

        adapter = DurableStorageAdapter(self.ctx.storage, ttl_seconds=3600)
"""

from collections.abc import Callable, Mapping
from typing import Any, Protocol

from pydantic import ValidationError

from idempotency_gate.models import IdempotencyRecord, StoredResponse, now_ms
from idempotency_gate.observability.logging import get_logger
from idempotency_gate.storage.base import DEFAULT_TTL_SECONDS, StorageAdapter

logger = get_logger(__name__)


class DurableStorage(Protocol):
    """Minimal storage client required by :class:`DurableStorageAdapter`."""

    async def get(self, key: str) -> Any | None:
        """Return the stored value, or None."""
        ...

    async def put(self, key: str, value: Any) -> None:
        """Store ``value`` under ``key``."""
        ...

    async def delete(self, key: str) -> bool:
        """Remove ``key``; return whether it existed."""
        ...

    async def list(self) -> Mapping[str, Any]:
        """Return every stored entry."""
        ...


class DurableStorageAdapter(StorageAdapter):
    """Storage adapter for single-writer durable storage.

    Attributes:
        storage: The durable storage client.
        ttl_ms: Record lifetime in milliseconds.
    """

    def __init__(
        self,
        storage: DurableStorage,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        """Initialize the adapter.

        Args:
            storage: Client exposing async ``get``/``put``/``delete``/``list``.
            ttl_seconds: Record lifetime in seconds (default 24 hours).
            clock: Returns the current time in epoch milliseconds.

        Raises:
            ValueError: If ttl_seconds is not positive.
        """
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")

        self.storage = storage
        self.ttl_ms = int(ttl_seconds * 1000)
        self._clock = clock

    async def get(self, key: str) -> IdempotencyRecord | None:
        """Return the live record for ``key``."""
        record = self._decode(key, await self.storage.get(key))
        if record is None or record.is_expired(self.ttl_ms, self._clock()):
            return None
        return record

    async def lock(self, key: str, record: IdempotencyRecord) -> bool:
        """Read-check-write; relies on the runtime's single-writer guarantee.

        An expired record is replaced. A value that cannot be decoded blocks
        the lock until it is deleted.
        """
        value = await self.storage.get(key)
        if value is not None:
            existing = self._decode(key, value)
            if existing is None:
                logger.warning("lock.blocked_by_corrupt_value", store_key=key)
                return False
            if not existing.is_expired(self.ttl_ms, self._clock()):
                return False
        await self.storage.put(key, record.model_dump(mode="json"))
        return True

    async def complete(self, key: str, response: StoredResponse) -> None:
        """Attach the response to the stored record."""
        record = self._decode(key, await self.storage.get(key))
        if record is None:
            return
        await self.storage.put(key, record.completed_with(response).model_dump(mode="json"))

    async def delete(self, key: str) -> None:
        """Delete the key."""
        await self.storage.delete(key)

    async def purge(self) -> int:
        """Enumerate all entries and delete expired records.

        Entries that are not idempotency records are left alone.

        Returns:
            The number of records removed.
        """
        now = self._clock()
        entries = await self.storage.list()
        count = 0
        for key, value in entries.items():
            if not isinstance(value, Mapping) or "created_at" not in value:
                continue
            record = self._decode(key, value)
            if record is not None and record.is_expired(self.ttl_ms, now):
                await self.storage.delete(key)
                count += 1
        return count

    def _decode(self, key: str, value: Any) -> IdempotencyRecord | None:
        if value is None:
            return None
        try:
            return IdempotencyRecord.model_validate(value)
        except ValidationError as e:
            logger.warning("store.decode_failed", store_key=key, error=str(e))
            return None
