"""
Recalculation Propagator.

Walks a partition forward from a mutation point and repairs the stored
balance of every unlocked entry. Checkpoints are read, never written.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional
from sqlalchemy.ext.asyncio import AsyncSession

from inventory_backend.app.models.ledger_entry import LedgerEntry
from inventory_backend.app.domain.ledger import store
from inventory_backend.app.domain.ledger.balance import apply_entry, compute_balance
from inventory_backend.app.domain.ledger.types import PartitionKey

logger = logging.getLogger("inventory_ledger.propagator")


@dataclass
class BalanceCorrection:
    entry: LedgerEntry
    stored: float
    recomputed: float


def plan_corrections(entries: Iterable[LedgerEntry], opening: float = 0.0) -> list[BalanceCorrection]:
    """
    Recompute balances over ordered `entries` starting from `opening`.

    Only entries whose stored balance differs from the recomputed one are
    returned, so unchanged rows are never written.
    """
    corrections = []
    total = opening
    for entry in entries:
        total = apply_entry(total, entry)
        if not entry.locked and entry.running_balance != total:
            corrections.append(BalanceCorrection(entry, entry.running_balance, total))
    return corrections


async def apply_corrections(db: AsyncSession, corrections: list[BalanceCorrection]) -> int:
    for correction in corrections:
        correction.entry.running_balance = correction.recomputed
    if corrections:
        await db.flush()
    return len(corrections)


async def propagate(
    db: AsyncSession,
    key: PartitionKey,
    from_timestamp: datetime,
    opening: Optional[float] = None
) -> int:
    """
    Repair balances of all entries with timestamp >= from_timestamp.

    Args:
        db: Database session (inside the caller's unit of work)
        key: Partition to repair
        from_timestamp: Earliest timestamp touched by the mutation
        opening: Balance before `from_timestamp`; computed by the Balance
            Calculator when omitted

    Returns:
        Number of entries whose stored balance was rewritten
    """
    if opening is None:
        opening = await compute_balance(db, key.product_id, key.location_code, from_timestamp)

    entries = await store.load_partition(db, key, from_timestamp)
    rewritten = await apply_corrections(db, plan_corrections(entries, opening))

    logger.debug(
        "Propagated partition",
        extra={"partition": str(key), "from": from_timestamp.isoformat(), "scanned": len(entries), "rewritten": rewritten},
    )
    return rewritten
