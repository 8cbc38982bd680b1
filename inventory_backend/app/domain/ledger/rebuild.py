"""
Full Rebuild.

Administrative repair: replays a partition's whole history from zero and
rewrites every unlocked balance that drifted. Drift is logged, never raised.
"""

import logging
from sqlalchemy.ext.asyncio import AsyncSession

from inventory_backend.app.domain.ledger import store
from inventory_backend.app.domain.ledger.propagator import plan_corrections, apply_corrections
from inventory_backend.app.domain.ledger.types import PartitionKey

logger = logging.getLogger("inventory_ledger.rebuild")


async def rebuild_partition(db: AsyncSession, key: PartitionKey) -> int:
    """
    Returns:
        Number of entries whose stored balance was corrected
    """
    entries = await store.load_partition(db, key)
    corrections = plan_corrections(entries, opening=0.0)

    for correction in corrections:
        logger.warning(
            "Ledger drift corrected",
            extra={
                "partition": str(key),
                "entry_id": correction.entry.id,
                "stored_balance": correction.stored,
                "recomputed_balance": correction.recomputed,
            },
        )

    return await apply_corrections(db, corrections)
