"""
Transfer Coordinator.

A completed transfer is two protected entries sharing one source reference:
an outbound entry at the source location and an inbound entry at the
destination. Each side is seeded and propagated in its own partition.
"""

from datetime import datetime
from typing import Optional, Sequence
from sqlalchemy.ext.asyncio import AsyncSession

from inventory_backend.app.core.exceptions import ValidationError
from inventory_backend.app.models.ledger_entry import LedgerEntry
from inventory_backend.app.models.ledger_enums import SourceType
from inventory_backend.app.domain.ledger import store
from inventory_backend.app.domain.ledger.movements import insert_entry, remove_sourced_entries
from inventory_backend.app.domain.ledger.types import Actor, PartitionKey


def transfer_partitions(product_id: int, source_location: str, dest_location: str) -> list[PartitionKey]:
    return [PartitionKey(product_id, source_location), PartitionKey(product_id, dest_location)]


def validate_transfer(transfer_ref: str, source_location: str, dest_location: str, qty: float) -> None:
    if not transfer_ref:
        raise ValidationError("transfer_ref is required")
    if not source_location or not dest_location:
        raise ValidationError("source and destination locations are required")
    if source_location == dest_location:
        raise ValidationError(
            "Source and destination locations must differ",
            details={"location_code": source_location},
        )
    if qty is None or qty <= 0:
        raise ValidationError("Transfer quantity must be positive", details={"qty": qty})


async def complete_transfer(
    db: AsyncSession,
    transfer_ref: str,
    product_id: int,
    source_location: str,
    dest_location: str,
    qty: float,
    timestamp: datetime,
    actor: Actor,
    notes: Optional[str] = None,
) -> tuple[LedgerEntry, LedgerEntry]:
    """
    Book both sides of a transfer.

    Returns:
        (outbound entry, inbound entry)

    Raises:
        ValidationError: If the reference was already booked
        LockedPeriodError: If either side falls in a locked period
    """
    existing = await store.find_by_source(db, SourceType.TRANSFER, transfer_ref)
    if existing:
        raise ValidationError(
            f"Transfer {transfer_ref} is already completed",
            details={"transfer_ref": transfer_ref},
        )

    source_key, dest_key = transfer_partitions(product_id, source_location, dest_location)

    outbound = await insert_entry(
        db, source_key, timestamp, qty_in=0.0, qty_out=qty, actor=actor,
        source_type=SourceType.TRANSFER, source_reference=transfer_ref, notes=notes,
    )
    inbound = await insert_entry(
        db, dest_key, timestamp, qty_in=qty, qty_out=0.0, actor=actor,
        source_type=SourceType.TRANSFER, source_reference=transfer_ref, notes=notes,
    )
    return outbound, inbound


async def reverse_transfer(db: AsyncSession, transfer_ref: str) -> Sequence[LedgerEntry]:
    """Delete both sibling entries and re-propagate both partitions."""
    return await remove_sourced_entries(db, SourceType.TRANSFER, transfer_ref)
