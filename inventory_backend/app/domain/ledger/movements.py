"""
Movement operations (insert / edit / delete / checkpoint).

These run inside a unit of work opened by `LedgerEngine`; they never commit.
Every path is guard -> calculate -> persist -> propagate.
"""

from datetime import datetime, timezone
from typing import Optional, Sequence
from sqlalchemy.ext.asyncio import AsyncSession

from inventory_backend.app.core.exceptions import ValidationError, ResourceNotFoundError
from inventory_backend.app.models.ledger_entry import LedgerEntry
from inventory_backend.app.models.ledger_enums import SourceType
from inventory_backend.app.domain.ledger import store
from inventory_backend.app.domain.ledger.balance import compute_balance
from inventory_backend.app.domain.ledger.lock_guard import assert_mutable, assert_entry_mutable
from inventory_backend.app.domain.ledger.propagator import propagate
from inventory_backend.app.domain.ledger.types import Actor, PartitionKey, quantize


def validate_partition(product_id: Optional[int], location_code: Optional[str]) -> PartitionKey:
    if product_id is None:
        raise ValidationError("product_id is required")
    if not location_code:
        raise ValidationError("location_code is required")
    return PartitionKey(product_id, location_code)


def validate_quantities(qty_in: float, qty_out: float) -> None:
    if qty_in is None or qty_out is None:
        raise ValidationError("qty_in and qty_out are required")
    if qty_in < 0 or qty_out < 0:
        raise ValidationError(
            "Quantities must be non-negative",
            details={"qty_in": qty_in, "qty_out": qty_out},
        )
    if qty_in == 0 and qty_out == 0:
        raise ValidationError(
            "A movement needs a non-zero qty_in or qty_out",
            details={"qty_in": qty_in, "qty_out": qty_out},
        )


async def insert_entry(
    db: AsyncSession,
    key: PartitionKey,
    timestamp: datetime,
    qty_in: float,
    qty_out: float,
    actor: Actor,
    source_type: SourceType = SourceType.MANUAL,
    source_reference: Optional[str] = None,
    notes: Optional[str] = None,
) -> LedgerEntry:
    """Guard, seed, persist and propagate a new unlocked entry."""
    await assert_mutable(db, key, timestamp)

    opening = await compute_balance(db, key.product_id, key.location_code, timestamp)
    entry = LedgerEntry(
        product_id=key.product_id,
        location_code=key.location_code,
        timestamp=timestamp,
        qty_in=quantize(qty_in),
        qty_out=quantize(qty_out),
        running_balance=quantize(opening + qty_in - qty_out),
        locked=False,
        source_type=source_type,
        source_reference=source_reference,
        notes=notes,
        created_by=actor.user_id,
        updated_by=actor.user_id,
    )
    await store.add_entry(db, entry)

    await propagate(db, key, timestamp, opening=opening)
    return entry


async def edit_entry(
    db: AsyncSession,
    entry_id: int,
    qty_in: float,
    qty_out: float,
    actor: Actor,
    timestamp: Optional[datetime] = None,
    notes: Optional[str] = None,
) -> tuple[LedgerEntry, dict]:
    """
    Change an entry's quantities (and optionally its timestamp).

    Returns:
        (entry, previous values) for auditing
    """
    entry = await store.get_entry(db, entry_id)
    if entry is None:
        raise ResourceNotFoundError("Ledger entry", entry_id)

    await assert_entry_mutable(db, entry)

    key = PartitionKey(entry.product_id, entry.location_code)
    previous = {
        "qty_in": entry.qty_in,
        "qty_out": entry.qty_out,
        "timestamp": entry.timestamp.isoformat(),
        "running_balance": entry.running_balance,
    }

    from_timestamp = entry.timestamp
    if timestamp is not None and timestamp != entry.timestamp:
        # Moving an entry must not hop over a checkpoint either
        await assert_mutable(db, key, timestamp)
        from_timestamp = min(entry.timestamp, timestamp)
        entry.timestamp = timestamp

    entry.qty_in = quantize(qty_in)
    entry.qty_out = quantize(qty_out)
    if notes is not None:
        entry.notes = notes
    entry.updated_by = actor.user_id
    await db.flush()

    await propagate(db, key, from_timestamp)
    return entry, previous


async def remove_entry(db: AsyncSession, entry_id: int) -> LedgerEntry:
    entry = await store.get_entry(db, entry_id)
    if entry is None:
        raise ResourceNotFoundError("Ledger entry", entry_id)

    await assert_entry_mutable(db, entry)

    key = PartitionKey(entry.product_id, entry.location_code)
    timestamp = entry.timestamp
    await store.delete_entry(db, entry)

    await propagate(db, key, timestamp)
    return entry


async def create_checkpoint(
    db: AsyncSession,
    key: PartitionKey,
    as_of: datetime,
    balance: float,
    lock_source_ref: str,
    actor: Actor,
    source_type: SourceType = SourceType.STOCK_COUNT_BATCH,
    notes: Optional[str] = None,
) -> LedgerEntry:
    """
    Insert a locked entry whose balance is authoritative from `as_of` on.

    qty_in / qty_out record the adjustment against the computed balance;
    they do not feed balance math since checkpoints reset the running total.
    """
    await assert_mutable(db, key, as_of)

    computed = await compute_balance(db, key.product_id, key.location_code, as_of)
    difference = quantize(balance - computed)
    entry = LedgerEntry(
        product_id=key.product_id,
        location_code=key.location_code,
        timestamp=as_of,
        qty_in=difference if difference > 0 else 0.0,
        qty_out=-difference if difference < 0 else 0.0,
        running_balance=quantize(balance),
        locked=True,
        locked_at=datetime.now(timezone.utc),
        source_type=source_type,
        source_reference=lock_source_ref,
        notes=notes,
        created_by=actor.user_id,
        updated_by=actor.user_id,
    )
    await store.add_entry(db, entry)

    await propagate(db, key, as_of, opening=computed)
    return entry


async def remove_sourced_entries(
    db: AsyncSession,
    source_type: SourceType,
    source_reference: str,
) -> Sequence[LedgerEntry]:
    """
    Compensating removal for an owning workflow (receipt, transfer).

    The protected-source check is bypassed, the Lock Guard is not: every
    entry is checked before any is deleted, then each touched partition is
    propagated from its earliest removed timestamp.
    """
    entries = await store.find_by_source(db, source_type, source_reference)
    if not entries:
        raise ResourceNotFoundError(source_type.value, source_reference)

    for entry in entries:
        await assert_mutable(db, PartitionKey(entry.product_id, entry.location_code), entry.timestamp)

    starts: dict[PartitionKey, datetime] = {}
    for entry in entries:
        key = PartitionKey(entry.product_id, entry.location_code)
        starts[key] = min(starts.get(key, entry.timestamp), entry.timestamp)
        await store.delete_entry(db, entry)

    for key, timestamp in starts.items():
        await propagate(db, key, timestamp)

    return entries
