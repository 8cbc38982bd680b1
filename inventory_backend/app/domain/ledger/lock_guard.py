"""
Lock Guard.

Decides whether a partition may be mutated at a given timestamp. A
checkpoint closes the period up to and including its own timestamp.
"""

from datetime import datetime
from sqlalchemy.ext.asyncio import AsyncSession

from inventory_backend.app.core.exceptions import LockedPeriodError, ProtectedSourceError
from inventory_backend.app.models.ledger_entry import LedgerEntry
from inventory_backend.app.models.ledger_enums import SourceType
from inventory_backend.app.domain.ledger import store
from inventory_backend.app.domain.ledger.types import PartitionKey


async def assert_mutable(db: AsyncSession, key: PartitionKey, timestamp: datetime) -> None:
    """
    Reject a mutation at `timestamp` if a checkpoint exists at or after it.

    Raises:
        LockedPeriodError: With the earliest such checkpoint as the boundary
    """
    checkpoint = await store.first_checkpoint_from(db, key, timestamp)
    if checkpoint is not None:
        raise LockedPeriodError(
            product_id=key.product_id,
            location_code=key.location_code,
            lock_boundary=checkpoint.timestamp,
            lock_source_ref=checkpoint.source_reference,
        )


async def assert_entry_mutable(db: AsyncSession, entry: LedgerEntry) -> None:
    """
    Guard a direct edit/delete of an existing entry.

    Checkpoints and protected sources fail unconditionally, whatever their
    source type; otherwise the entry's current timestamp goes through
    `assert_mutable`.
    """
    if entry.locked or entry.is_protected:
        raise ProtectedSourceError(entry_id=entry.id, source_type=SourceType(entry.source_type).value)

    await assert_mutable(db, PartitionKey(entry.product_id, entry.location_code), entry.timestamp)
