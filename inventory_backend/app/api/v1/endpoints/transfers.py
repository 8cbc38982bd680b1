"""
Transfer API Endpoints.

Books and reverses completed inter-branch transfers. Locations may be given
by code or display name and are resolved through the location resolver.
"""

from datetime import datetime
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from inventory_backend.app.db.session import get_db
from inventory_backend.app.core.dependencies import get_current_actor, get_ledger_engine
from inventory_backend.app.domain.ledger.engine import LedgerEngine
from inventory_backend.app.domain.ledger.types import Actor
from inventory_backend.app.schemas.ledger import (
    TransferComplete, TransferResponse, LedgerEntryResponse, RemovalResponse,
)
from inventory_backend.app.services.locations import resolve_location_code

router = APIRouter(prefix="/transfers", tags=["Transfers"])


@router.post("", response_model=TransferResponse, status_code=201)
async def complete_transfer(
    transfer: TransferComplete,
    actor: Actor = Depends(get_current_actor),
    engine: LedgerEngine = Depends(get_ledger_engine),
    db: AsyncSession = Depends(get_db)
):
    """
    Complete a transfer: outbound entry at the source, inbound at the destination.

    Both entries are protected and can only be removed via the reverse endpoint.
    """
    source_code = await resolve_location_code(db, transfer.source_location)
    dest_code = await resolve_location_code(db, transfer.dest_location)

    outbound, inbound = await engine.complete_transfer(
        transfer_ref=transfer.transfer_ref,
        product_id=transfer.product_id,
        source_location=source_code,
        dest_location=dest_code,
        qty=transfer.qty,
        timestamp=transfer.timestamp or datetime.utcnow(),
        actor=actor,
        notes=transfer.notes,
    )
    return TransferResponse(
        transfer_ref=transfer.transfer_ref,
        outbound=LedgerEntryResponse.model_validate(outbound),
        inbound=LedgerEntryResponse.model_validate(inbound),
    )


@router.post("/{transfer_ref}/reverse", response_model=RemovalResponse)
async def reverse_transfer(
    transfer_ref: str,
    actor: Actor = Depends(get_current_actor),
    engine: LedgerEngine = Depends(get_ledger_engine)
):
    removed = await engine.reverse_transfer(transfer_ref, actor)
    return RemovalResponse(source_reference=transfer_ref, entries_removed=removed)
