"""Storage adapter protocol for the idempotency gate.

This module defines the interface every storage backend implements. The
controller is generic over it and never branches on the concrete backend, so
this protocol is also the extension point for storage technologies not
shipped with the package.

Examples:
    Implementing a custom storage adapter::

        from idempotency_gate.models import IdempotencyRecord, StoredResponse

        class MyStorageAdapter:
            async def get(self, key: str) -> IdempotencyRecord | None:
                ...

            async def lock(self, key: str, record: IdempotencyRecord) -> bool:
                # Atomically insert iff no live record exists
                ...

            async def complete(self, key: str, response: StoredResponse) -> None:
                ...

            async def delete(self, key: str) -> None:
                ...

            async def purge(self) -> int:
                ...

Guarantees required of every implementation:

    1. **Expiry visibility**: records whose TTL has elapsed (inclusive
       boundary: ``now - created_at >= ttl``) are invisible to ``get`` and do
       not block ``lock``, even before they are physically removed.

    2. **Atomic lock**: for a given key and liveness epoch, exactly one
       concurrent ``lock`` call returns True.

    3. **Tolerant writes**: ``complete`` and ``delete`` on an absent key are
       no-ops, never errors.

    4. **Conservative failure**: a record that cannot be serialized makes
       ``lock`` return False; a payload that cannot be decoded makes ``get``
       return None and ``complete`` a no-op.
"""

from typing import Protocol, runtime_checkable

from idempotency_gate.models import IdempotencyRecord, StoredResponse

DEFAULT_TTL_SECONDS = 86400


@runtime_checkable
class StorageAdapter(Protocol):
    """Protocol defining the interface for idempotency storage backends.

    All methods are async and must be safe to call concurrently from many
    asyncio tasks.
    """

    async def get(self, key: str) -> IdempotencyRecord | None:
        """Return the live record stored under ``key``.

        Args:
            key: The store key.

        Returns:
            The record, or None if absent or expired.

        Examples:
            >>> record = await adapter.get("POST:/payments:abc-123")
            >>> if record:
            ...     print(record.status)
        """
        ...

    async def lock(self, key: str, record: IdempotencyRecord) -> bool:
        """Create ``record`` under ``key`` iff no live record occupies it.

        Args:
            key: The store key.
            record: A record in ``processing`` state.

        Returns:
            True if the caller now owns execution, False otherwise.
        """
        ...

    async def complete(self, key: str, response: StoredResponse) -> None:
        """Mark the record completed and attach ``response``.

        Args:
            key: The store key.
            response: The captured response.
        """
        ...

    async def delete(self, key: str) -> None:
        """Remove the record stored under ``key``, if any."""
        ...

    async def purge(self) -> int:
        """Physically remove expired records.

        Returns:
            The number of records removed. Backends with native expiry may
            always return 0.
        """
        ...
