"""
Balance Calculator.

Implements the checkpoint-jump rule: walking a partition in ledger order,
a locked entry resets the running total to its stored balance; an unlocked
entry advances it by qty_in - qty_out.
"""

from datetime import datetime
from typing import Iterable
from sqlalchemy.ext.asyncio import AsyncSession

from inventory_backend.app.models.ledger_entry import LedgerEntry
from inventory_backend.app.domain.ledger import store
from inventory_backend.app.domain.ledger.types import PartitionKey, quantize


def apply_entry(total: float, entry: LedgerEntry) -> float:
    """Running total after `entry`, given the total before it."""
    if entry.locked:
        return entry.running_balance
    return quantize(total + entry.qty_in - entry.qty_out)


def accumulate(entries: Iterable[LedgerEntry], opening: float = 0.0) -> float:
    total = opening
    for entry in entries:
        total = apply_entry(total, entry)
    return total


async def compute_balance(
    db: AsyncSession,
    product_id: int,
    location_code: str,
    as_of: datetime
) -> float:
    """
    Balance into which a new entry at `as_of` is inserted.

    Only entries with timestamp < as_of count. Accumulation starts at the
    nearest preceding checkpoint, which yields the same value as a full scan
    from zero since the jump discards everything before it. No side effects.
    """
    key = PartitionKey(product_id, location_code)
    checkpoint = await store.last_checkpoint_before(db, key, as_of)
    window = await store.load_window(db, key, as_of, after=checkpoint)

    opening = checkpoint.running_balance if checkpoint is not None else 0.0
    return accumulate(window, opening)
