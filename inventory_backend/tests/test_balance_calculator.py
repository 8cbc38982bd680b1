"""
Balance Calculator Tests.

Validates the checkpoint-jump rule, both in memory and against the store.
"""

import pytest
from datetime import datetime

from inventory_backend.app.models.ledger_entry import LedgerEntry
from inventory_backend.app.domain.ledger.balance import accumulate, apply_entry, compute_balance


def _entry(qty_in=0.0, qty_out=0.0, running_balance=0.0, locked=False):
    return LedgerEntry(
        product_id=1,
        location_code="WH-A",
        timestamp=datetime(2024, 1, 1),
        qty_in=qty_in,
        qty_out=qty_out,
        running_balance=running_balance,
        locked=locked,
    )


def test_unlocked_entry_advances_total():
    assert apply_entry(10.0, _entry(qty_in=5, qty_out=2)) == 13.0


def test_locked_entry_resets_total():
    # Quantities on a checkpoint never feed the running total
    assert apply_entry(10.0, _entry(qty_in=50, running_balance=100, locked=True)) == 100


def test_accumulate_jumps_at_every_checkpoint():
    entries = [
        _entry(qty_in=20),
        _entry(qty_out=5),
        _entry(running_balance=40, locked=True),
        _entry(qty_in=3),
        _entry(running_balance=7, locked=True),
        _entry(qty_out=2),
    ]
    assert accumulate(entries) == 5
    assert accumulate(entries[:3]) == 40
    assert accumulate(entries[:4]) == 43


def test_accumulate_empty_returns_opening():
    assert accumulate([]) == 0.0
    assert accumulate([], opening=12.5) == 12.5


@pytest.mark.asyncio
async def test_empty_partition_balance_is_zero(db_session):
    assert await compute_balance(db_session, 1, "WH-A", datetime(2024, 6, 1)) == 0.0


@pytest.mark.asyncio
async def test_balance_counts_only_strictly_earlier_entries(ledger, actor, db_session):
    await ledger.record_movement(1, "WH-A", datetime(2024, 1, 1), 10, 0, actor)
    await ledger.record_movement(1, "WH-A", datetime(2024, 1, 2), 4, 0, actor)

    assert await compute_balance(db_session, 1, "WH-A", datetime(2024, 1, 1)) == 0
    assert await compute_balance(db_session, 1, "WH-A", datetime(2024, 1, 2)) == 10
    assert await compute_balance(db_session, 1, "WH-A", datetime(2024, 1, 3)) == 14


@pytest.mark.asyncio
async def test_balance_starts_from_preceding_checkpoint(ledger, actor, db_session):
    await ledger.record_movement(1, "WH-A", datetime(2024, 1, 1), 10, 0, actor)
    await ledger.lock_period(1, "WH-A", datetime(2024, 1, 10), 100, "SO-1", actor)
    await ledger.record_movement(1, "WH-A", datetime(2024, 1, 15), 0, 30, actor)

    assert await compute_balance(db_session, 1, "WH-A", datetime(2024, 1, 10)) == 10
    assert await compute_balance(db_session, 1, "WH-A", datetime(2024, 1, 11)) == 100
    assert await compute_balance(db_session, 1, "WH-A", datetime(2024, 2, 1)) == 70


@pytest.mark.asyncio
async def test_partitions_are_independent(ledger, actor):
    await ledger.record_movement(1, "WH-A", datetime(2024, 1, 1), 10, 0, actor)
    await ledger.record_movement(1, "WH-B", datetime(2024, 1, 1), 3, 0, actor)
    await ledger.record_movement(2, "WH-A", datetime(2024, 1, 1), 7, 0, actor)

    assert await ledger.get_balance(1, "WH-A") == 10
    assert await ledger.get_balance(1, "WH-B") == 3
    assert await ledger.get_balance(2, "WH-A") == 7
    assert await ledger.get_balance(3, "WH-A") == 0


@pytest.mark.asyncio
async def test_balance_matches_stored_running_balance(ledger, actor, partition_rows):
    await ledger.record_movement(1, "WH-A", datetime(2024, 1, 3), 10, 0, actor)
    await ledger.record_movement(1, "WH-A", datetime(2024, 1, 1), 5, 0, actor)
    await ledger.record_movement(1, "WH-A", datetime(2024, 1, 2), 0, 2, actor)

    rows = await partition_rows(1, "WH-A")
    assert [r.running_balance for r in rows] == [5, 3, 13]
    assert await ledger.get_balance(1, "WH-A") == rows[-1].running_balance
