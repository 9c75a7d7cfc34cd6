"""Storage adapters for the idempotency gate.

All adapters implement the StorageAdapter protocol defined in base.py.

Available Adapters:
    - MemoryStorageAdapter: Process-local dictionary with asyncio locking
    - SQLStorageAdapter: Relational table via SQLAlchemy (``sql`` extra)
    - RedisStorageAdapter: Redis ``SET NX EX`` (``redis`` extra)
    - KVStorageAdapter: Eventually-consistent KV namespaces (best effort)
    - DurableStorageAdapter: Single-writer durable storage

The SQL and Redis adapters import their client libraries and are therefore
imported from their own modules rather than re-exported here.
"""

from idempotency_gate.storage.base import StorageAdapter
from idempotency_gate.storage.durable import DurableStorageAdapter
from idempotency_gate.storage.kv import KVStorageAdapter
from idempotency_gate.storage.memory import MemoryStorageAdapter

__all__ = [
    "StorageAdapter",
    "MemoryStorageAdapter",
    "KVStorageAdapter",
    "DurableStorageAdapter",
]
