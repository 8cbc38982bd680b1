"""
Transfer Coordinator Tests.

Both sides of a transfer commit together, share one reference and are
protected from direct edits.
"""

import pytest
import asyncio
from datetime import datetime

from inventory_backend.app.core.exceptions import (
    LockedPeriodError,
    ProtectedSourceError,
    ResourceNotFoundError,
    ValidationError,
)
from inventory_backend.app.models.ledger_enums import SourceType


@pytest.mark.asyncio
async def test_transfer_books_symmetric_entries(ledger, actor):
    await ledger.record_movement(1, "WH-A", datetime(2024, 1, 1), 50, 0, actor)

    outbound, inbound = await ledger.complete_transfer(
        "TRF-1", 1, "WH-A", "WH-B", 20, datetime(2024, 1, 5), actor, notes="restock",
    )

    assert (outbound.location_code, outbound.qty_out, outbound.qty_in) == ("WH-A", 20, 0)
    assert (inbound.location_code, inbound.qty_in, inbound.qty_out) == ("WH-B", 20, 0)
    assert outbound.timestamp == inbound.timestamp
    assert outbound.source_reference == inbound.source_reference == "TRF-1"
    assert SourceType(outbound.source_type) is SourceType.TRANSFER

    assert outbound.running_balance == 30
    assert inbound.running_balance == 20
    assert await ledger.get_balance(1, "WH-A") == 30
    assert await ledger.get_balance(1, "WH-B") == 20


@pytest.mark.asyncio
async def test_transfer_entries_are_protected(ledger, actor):
    outbound, inbound = await ledger.complete_transfer(
        "TRF-1", 1, "WH-A", "WH-B", 5, datetime(2024, 1, 5), actor,
    )

    with pytest.raises(ProtectedSourceError):
        await ledger.edit_movement(outbound.id, 0, 1, actor)
    with pytest.raises(ProtectedSourceError):
        await ledger.delete_movement(inbound.id, actor)


@pytest.mark.asyncio
async def test_transfer_into_locked_destination_books_nothing(ledger, actor, partition_rows):
    await ledger.lock_period(1, "WH-B", datetime(2024, 1, 10), 0, "SO-1", actor)

    with pytest.raises(LockedPeriodError) as exc_info:
        await ledger.complete_transfer("TRF-1", 1, "WH-A", "WH-B", 5, datetime(2024, 1, 5), actor)
    assert exc_info.value.location_code == "WH-B"

    # Outbound side was rolled back with the rest of the unit
    assert await partition_rows(1, "WH-A") == []
    assert await ledger.entries_by_source(SourceType.TRANSFER, "TRF-1") == []


@pytest.mark.asyncio
async def test_transfer_reference_is_single_use(ledger, actor):
    await ledger.complete_transfer("TRF-1", 1, "WH-A", "WH-B", 5, datetime(2024, 1, 5), actor)

    with pytest.raises(ValidationError):
        await ledger.complete_transfer("TRF-1", 1, "WH-A", "WH-B", 5, datetime(2024, 1, 6), actor)
    assert len(await ledger.entries_by_source(SourceType.TRANSFER, "TRF-1")) == 2


@pytest.mark.asyncio
@pytest.mark.parametrize("ref,src,dst,qty", [
    ("", "WH-A", "WH-B", 5),
    ("TRF-1", "WH-A", "WH-A", 5),
    ("TRF-1", "WH-A", "WH-B", 0),
    ("TRF-1", "WH-A", "", 5),
])
async def test_invalid_transfers_rejected(ledger, actor, ref, src, dst, qty):
    with pytest.raises(ValidationError):
        await ledger.complete_transfer(ref, 1, src, dst, qty, datetime(2024, 1, 5), actor)


@pytest.mark.asyncio
async def test_reverse_transfer_restores_both_partitions(ledger, actor, partition_rows):
    await ledger.record_movement(1, "WH-A", datetime(2024, 1, 1), 50, 0, actor)
    await ledger.complete_transfer("TRF-1", 1, "WH-A", "WH-B", 20, datetime(2024, 1, 5), actor)
    later = await ledger.record_movement(1, "WH-A", datetime(2024, 1, 8), 0, 10, actor)

    removed = await ledger.reverse_transfer("TRF-1", actor)

    assert removed == 2
    assert await ledger.get_balance(1, "WH-A") == 40
    assert await ledger.get_balance(1, "WH-B") == 0
    assert (await ledger.get_entry(later.id)).running_balance == 40
    assert await partition_rows(1, "WH-B") == []


@pytest.mark.asyncio
async def test_reverse_transfer_blocked_by_checkpoint(ledger, actor):
    await ledger.complete_transfer("TRF-1", 1, "WH-A", "WH-B", 20, datetime(2024, 1, 5), actor)
    await ledger.lock_period(1, "WH-B", datetime(2024, 1, 10), 20, "SO-1", actor)

    with pytest.raises(LockedPeriodError):
        await ledger.reverse_transfer("TRF-1", actor)
    assert len(await ledger.entries_by_source(SourceType.TRANSFER, "TRF-1")) == 2


@pytest.mark.asyncio
async def test_reverse_unknown_transfer(ledger, actor):
    with pytest.raises(ResourceNotFoundError):
        await ledger.reverse_transfer("TRF-404", actor)


@pytest.mark.asyncio
async def test_transfer_reference_single_use_across_unrelated_partitions(ledger, actor):
    """Same reference, disjoint products and locations, booked at once."""
    results = await asyncio.gather(
        ledger.complete_transfer("TRF-X", 1, "WH-A", "WH-B", 3, datetime(2024, 1, 5), actor),
        ledger.complete_transfer("TRF-X", 2, "WH-C", "WH-D", 4, datetime(2024, 1, 5), actor),
        return_exceptions=True,
    )

    assert sum(isinstance(r, tuple) for r in results) == 1
    assert sum(isinstance(r, ValidationError) for r in results) == 1

    entries = await ledger.entries_by_source(SourceType.TRANSFER, "TRF-X")
    assert len(entries) == 2
    assert len({e.product_id for e in entries}) == 1
    assert sorted(e.qty_in - e.qty_out for e in entries) in ([-3, 3], [-4, 4])
