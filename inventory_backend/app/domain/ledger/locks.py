"""
Per-partition mutual exclusion.

Mutations on one (product, location) partition are serialized; different
partitions proceed in parallel. Transfers also lock their reference so it
stays single use across partitions. In-process this is an asyncio.Lock per key;
on PostgreSQL a transaction-scoped advisory lock extends it across workers.
"""

import asyncio
import hashlib
import weakref
from contextlib import asynccontextmanager, AsyncExitStack
from typing import Hashable, Iterable
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from inventory_backend.app.domain.ledger.types import PartitionKey


class PartitionLocks:
    """Registry of asyncio locks keyed by partition (or source reference)."""

    def __init__(self):
        self._locks: "weakref.WeakValueDictionary[PartitionKey, asyncio.Lock]" = weakref.WeakValueDictionary()

    def get(self, key: Hashable) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    @asynccontextmanager
    async def hold(self, keys: Iterable[Hashable]):
        # Sorted acquisition so multi-partition operations cannot deadlock
        async with AsyncExitStack() as stack:
            for key in sorted(set(keys), key=repr):
                await stack.enter_async_context(self.get(key))
            yield


def advisory_lock_id(key: Hashable) -> int:
    digest = hashlib.blake2b(str(key).encode("utf-8"), digest_size=8).digest()
    return int.from_bytes(digest, "big", signed=True)


async def acquire_advisory_locks(db: AsyncSession, keys: Iterable[Hashable]) -> None:
    """Take pg_advisory_xact_lock for each key; released at commit/rollback."""
    if db.bind.dialect.name != "postgresql":
        return
    for key in sorted(set(keys), key=repr):
        await db.execute(select(func.pg_advisory_xact_lock(advisory_lock_id(key))))
