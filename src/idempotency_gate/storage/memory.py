"""In-memory storage adapter with asyncio concurrency control.

This module provides a process-local implementation of the StorageAdapter
interface backed by a plain dictionary.

The MemoryStorageAdapter is suitable for:
    - Single-process applications
    - Development and testing

For multi-process deployments use one of the shared backends (SQL, Redis,
KV or durable storage) instead.

Concurrency:
    - A single asyncio.Lock serializes sweep, occupancy check and insert in
      lock(), so two tasks can never both observe the key as free
    - Expired entries are swept lazily on lock() and hidden by get()

Bounded size:
    - With max_size set, overflow evicts completed records in insertion
      order
    - Processing records are never evicted; if nothing is evictable the
      store grows past max_size

Examples:
    Basic usage::

        from idempotency_gate.storage.memory import MemoryStorageAdapter

        adapter = MemoryStorageAdapter(ttl_seconds=3600, max_size=10_000)

        if await adapter.lock("POST:/payments:abc", record):
            response = await execute_request()
            await adapter.complete("POST:/payments:abc", response)
"""

import asyncio
from collections.abc import Callable

from idempotency_gate.models import IdempotencyRecord, RecordStatus, StoredResponse, now_ms
from idempotency_gate.storage.base import DEFAULT_TTL_SECONDS, StorageAdapter


class MemoryStorageAdapter(StorageAdapter):
    """In-memory storage adapter with asyncio concurrency control.

    Attributes:
        ttl_ms: Record lifetime in milliseconds.
        max_size: Soft bound on the number of stored records, or None.
        _store: Dictionary mapping store keys to records, in insertion order.
        _lock: Lock serializing every check-and-insert sequence.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_size: int | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        """Initialize a new in-memory storage adapter.

        Args:
            ttl_seconds: Record lifetime in seconds (default 24 hours).
            max_size: Optional soft bound on stored records (must be >= 1).
            clock: Returns the current time in epoch milliseconds.

        Raises:
            ValueError: If ttl_seconds or max_size is not positive.
        """
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")
        if max_size is not None and max_size < 1:
            raise ValueError(f"max_size must be >= 1, got {max_size}")

        self.ttl_ms = int(ttl_seconds * 1000)
        self.max_size = max_size
        self._clock = clock
        self._store: dict[str, IdempotencyRecord] = {}
        self._lock = asyncio.Lock()

    @property
    def size(self) -> int:
        """Number of records physically held, expired ones included."""
        return len(self._store)

    def __len__(self) -> int:
        return len(self._store)

    async def get(self, key: str) -> IdempotencyRecord | None:
        """Retrieve a live record by key.

        Expired records are removed on sight.

        Args:
            key: The store key to look up.

        Returns:
            A copy of the record if found and live, None otherwise.
        """
        record = self._store.get(key)
        if record is None:
            return None
        if record.is_expired(self.ttl_ms, self._clock()):
            del self._store[key]
            return None
        return record.model_copy()

    async def lock(self, key: str, record: IdempotencyRecord) -> bool:
        """Insert ``record`` iff no live record occupies ``key``.

        Args:
            key: The store key.
            record: The processing record to insert.

        Returns:
            True if inserted, False if a live record already exists.
        """
        async with self._lock:
            self._sweep()

            if key in self._store:
                return False

            self._store[key] = record.model_copy()
            self._evict_overflow()
            return True

    async def complete(self, key: str, response: StoredResponse) -> None:
        """Mark the record completed and attach the response.

        Args:
            key: The store key.
            response: The captured response.
        """
        record = self._store.get(key)
        if record is None:
            return
        # Replace in place to keep the insertion position used for eviction
        self._store[key] = record.completed_with(response)

    async def delete(self, key: str) -> None:
        """Remove a record; no-op when absent."""
        self._store.pop(key, None)

    async def purge(self) -> int:
        """Remove expired records from storage.

        Returns:
            The number of records removed.
        """
        async with self._lock:
            return self._sweep()

    def _sweep(self) -> int:
        now = self._clock()
        expired = [key for key, rec in self._store.items() if rec.is_expired(self.ttl_ms, now)]
        for key in expired:
            del self._store[key]
        return len(expired)

    def _evict_overflow(self) -> None:
        if self.max_size is None:
            return

        overflow = len(self._store) - self.max_size
        if overflow <= 0:
            return

        # Oldest first; processing records hold locks and must survive
        evictable = [
            key for key, rec in self._store.items() if rec.status == RecordStatus.COMPLETED
        ]
        for key in evictable[:overflow]:
            del self._store[key]
