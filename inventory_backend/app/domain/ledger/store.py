"""
Ledger Store.

Query helpers over `ledger_entries`. Every read that feeds balance math is
ordered by (timestamp, id), the total order of a partition.
"""

from datetime import datetime
from typing import Optional, Sequence
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_, or_, func

from inventory_backend.app.models.ledger_entry import LedgerEntry
from inventory_backend.app.models.ledger_enums import SourceType
from inventory_backend.app.domain.ledger.types import PartitionKey


def _in_partition(key: PartitionKey):
    return and_(
        LedgerEntry.product_id == key.product_id,
        LedgerEntry.location_code == key.location_code,
    )


def _ordered(query):
    return query.order_by(LedgerEntry.timestamp.asc(), LedgerEntry.id.asc())


async def get_entry(db: AsyncSession, entry_id: int) -> Optional[LedgerEntry]:
    result = await db.execute(select(LedgerEntry).where(LedgerEntry.id == entry_id))
    return result.scalar_one_or_none()


async def load_partition(
    db: AsyncSession,
    key: PartitionKey,
    from_timestamp: Optional[datetime] = None
) -> Sequence[LedgerEntry]:
    """
    Load a partition's entries in ledger order.

    Args:
        db: Database session
        key: Partition to load
        from_timestamp: If given, only entries with timestamp >= from_timestamp

    Returns:
        Entries ordered by (timestamp, id)
    """
    query = select(LedgerEntry).where(_in_partition(key))
    if from_timestamp is not None:
        query = query.where(LedgerEntry.timestamp >= from_timestamp)

    result = await db.execute(_ordered(query))
    return result.scalars().all()


async def last_checkpoint_before(
    db: AsyncSession,
    key: PartitionKey,
    before: datetime
) -> Optional[LedgerEntry]:
    """Nearest locked entry with timestamp strictly before `before`."""
    result = await db.execute(
        select(LedgerEntry).where(
            _in_partition(key),
            LedgerEntry.locked == True,
            LedgerEntry.timestamp < before,
        ).order_by(LedgerEntry.timestamp.desc(), LedgerEntry.id.desc()).limit(1)
    )
    return result.scalar_one_or_none()


async def load_window(
    db: AsyncSession,
    key: PartitionKey,
    before: datetime,
    after: Optional[LedgerEntry] = None
) -> Sequence[LedgerEntry]:
    """
    Entries with timestamp < `before` that sort after the `after` entry.

    Used to accumulate from the last checkpoint instead of the partition start.
    """
    query = select(LedgerEntry).where(_in_partition(key), LedgerEntry.timestamp < before)
    if after is not None:
        query = query.where(
            or_(
                LedgerEntry.timestamp > after.timestamp,
                and_(LedgerEntry.timestamp == after.timestamp, LedgerEntry.id > after.id),
            )
        )

    result = await db.execute(_ordered(query))
    return result.scalars().all()


async def first_checkpoint_from(
    db: AsyncSession,
    key: PartitionKey,
    timestamp: datetime
) -> Optional[LedgerEntry]:
    """Earliest locked entry with timestamp >= `timestamp`."""
    result = await db.execute(
        _ordered(
            select(LedgerEntry).where(
                _in_partition(key),
                LedgerEntry.locked == True,
                LedgerEntry.timestamp >= timestamp,
            )
        ).limit(1)
    )
    return result.scalar_one_or_none()


async def find_by_source(
    db: AsyncSession,
    source_type: SourceType,
    source_reference: str
) -> Sequence[LedgerEntry]:
    result = await db.execute(
        select(LedgerEntry).where(
            LedgerEntry.source_type == source_type,
            LedgerEntry.source_reference == source_reference,
        ).order_by(LedgerEntry.id.asc())
    )
    return result.scalars().all()


async def list_partitions(db: AsyncSession) -> list[PartitionKey]:
    result = await db.execute(
        select(LedgerEntry.product_id, LedgerEntry.location_code)
        .distinct()
        .order_by(LedgerEntry.product_id, LedgerEntry.location_code)
    )
    return [PartitionKey(product_id, location_code) for product_id, location_code in result.all()]


async def list_entries(
    db: AsyncSession,
    key: PartitionKey,
    limit: int = 50,
    offset: int = 0
) -> tuple[Sequence[LedgerEntry], int]:
    """Page through a partition newest first. Returns (entries, total)."""
    total_result = await db.execute(select(func.count(LedgerEntry.id)).where(_in_partition(key)))
    total = total_result.scalar()

    result = await db.execute(
        select(LedgerEntry).where(_in_partition(key))
        .order_by(LedgerEntry.timestamp.desc(), LedgerEntry.id.desc())
        .offset(offset).limit(limit)
    )
    return result.scalars().all(), total


async def add_entry(db: AsyncSession, entry: LedgerEntry) -> LedgerEntry:
    db.add(entry)
    await db.flush()  # assigns id
    return entry


async def delete_entry(db: AsyncSession, entry: LedgerEntry) -> None:
    await db.delete(entry)
    await db.flush()
