"""
Admin Ledger API Endpoints.

Maintenance operations outside the normal write path.
"""

from fastapi import APIRouter, Depends, Query
from typing import Optional

from inventory_backend.app.core.dependencies import get_current_actor, get_ledger_engine
from inventory_backend.app.domain.ledger.engine import LedgerEngine
from inventory_backend.app.domain.ledger.types import Actor
from inventory_backend.app.schemas.ledger import RebuildResponse

router = APIRouter(prefix="/admin/ledger", tags=["Admin - Ledger"])


@router.post("/rebuild", response_model=RebuildResponse)
async def rebuild_ledger(
    concurrency: Optional[int] = Query(None, ge=1, le=32),
    actor: Actor = Depends(get_current_actor),
    engine: LedgerEngine = Depends(get_ledger_engine)
):
    """
    Replay every partition from zero and correct drifted balances.

    Checkpoint balances are never changed.
    """
    report = await engine.rebuild_all(actor=actor, concurrency=concurrency)
    return RebuildResponse(partitions=report.partitions, entries_rewritten=report.entries_rewritten)
