"""
Ledger API Endpoints.

Movement, checkpoint, stock count and purchase receipt operations.
All mutations go through the LedgerEngine; domain errors are rendered by the
global AppException handler.
"""

from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, Query, status

from inventory_backend.app.core.dependencies import get_current_actor, get_ledger_engine
from inventory_backend.app.domain.ledger.engine import LedgerEngine
from inventory_backend.app.domain.ledger.types import Actor
from inventory_backend.app.schemas.ledger import (
    MovementCreate, MovementUpdate, BulkDeleteRequest, BulkDeleteResponse,
    CheckpointCreate, StockCountCreate, PurchaseReceiptCreate,
    LedgerEntryResponse, LedgerEntryListResponse, RemovalResponse, BalanceResponse,
)

router = APIRouter(prefix="/ledger", tags=["Ledger"])


@router.post("/movements", response_model=LedgerEntryResponse, status_code=status.HTTP_201_CREATED)
async def record_movement(
    movement: MovementCreate,
    actor: Actor = Depends(get_current_actor),
    engine: LedgerEngine = Depends(get_ledger_engine)
):
    """
    Record a stock movement, possibly back-dated.

    Returns 409 if the timestamp falls in a locked period.
    """
    entry = await engine.record_movement(
        product_id=movement.product_id,
        location_code=movement.location_code,
        timestamp=movement.timestamp,
        qty_in=movement.qty_in,
        qty_out=movement.qty_out,
        actor=actor,
        notes=movement.notes,
        source_reference=movement.source_reference,
    )
    return LedgerEntryResponse.model_validate(entry)


@router.patch("/movements/{entry_id}", response_model=LedgerEntryResponse)
async def edit_movement(
    entry_id: int,
    update: MovementUpdate,
    actor: Actor = Depends(get_current_actor),
    engine: LedgerEngine = Depends(get_ledger_engine)
):
    """
    Edit a manual movement.

    Protected (receipt / transfer / stock count) and locked entries are rejected.
    """
    entry = await engine.edit_movement(
        entry_id,
        qty_in=update.qty_in,
        qty_out=update.qty_out,
        actor=actor,
        timestamp=update.timestamp,
        notes=update.notes,
    )
    return LedgerEntryResponse.model_validate(entry)


@router.delete("/movements/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_movement(
    entry_id: int,
    actor: Actor = Depends(get_current_actor),
    engine: LedgerEngine = Depends(get_ledger_engine)
):
    await engine.delete_movement(entry_id, actor)


@router.post("/movements/bulk-delete", response_model=BulkDeleteResponse)
async def bulk_delete_movements(
    request: BulkDeleteRequest,
    actor: Actor = Depends(get_current_actor),
    engine: LedgerEngine = Depends(get_ledger_engine)
):
    """
    Delete several movements.

    Locked, protected or unknown entries are skipped and reported with their error code.
    """
    result = await engine.delete_movements(request.entry_ids, actor)
    return BulkDeleteResponse(deleted=result.deleted, skipped=result.skipped)


@router.get("/balance", response_model=BalanceResponse)
async def get_balance(
    product_id: int = Query(..., ge=1),
    location_code: str = Query(..., min_length=1),
    as_of: Optional[datetime] = Query(None, description="Balance before this instant; current balance if omitted"),
    actor: Actor = Depends(get_current_actor),
    engine: LedgerEngine = Depends(get_ledger_engine)
):
    balance = await engine.get_balance(product_id, location_code, as_of)
    return BalanceResponse(product_id=product_id, location_code=location_code, as_of=as_of, balance=balance)


@router.get("/entries", response_model=LedgerEntryListResponse)
async def list_entries(
    product_id: int = Query(..., ge=1),
    location_code: str = Query(..., min_length=1),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    actor: Actor = Depends(get_current_actor),
    engine: LedgerEngine = Depends(get_ledger_engine)
):
    """Ledger history of one partition, newest first."""
    entries, total = await engine.list_entries(product_id, location_code, limit=limit, offset=offset)
    return LedgerEntryListResponse(
        entries=[LedgerEntryResponse.model_validate(e) for e in entries],
        total=total,
        limit=limit,
        offset=offset
    )


@router.get("/entries/{entry_id}", response_model=LedgerEntryResponse)
async def get_entry(
    entry_id: int,
    actor: Actor = Depends(get_current_actor),
    engine: LedgerEngine = Depends(get_ledger_engine)
):
    return LedgerEntryResponse.model_validate(await engine.get_entry(entry_id))


@router.post("/checkpoints", response_model=LedgerEntryResponse, status_code=status.HTTP_201_CREATED)
async def lock_period(
    checkpoint: CheckpointCreate,
    actor: Actor = Depends(get_current_actor),
    engine: LedgerEngine = Depends(get_ledger_engine)
):
    """
    Close the period up to `as_of` at a counted balance.

    Returns 409 if a checkpoint already exists at or after `as_of`.
    """
    entry = await engine.lock_period(
        product_id=checkpoint.product_id,
        location_code=checkpoint.location_code,
        as_of=checkpoint.as_of,
        balance=checkpoint.balance,
        lock_source_ref=checkpoint.lock_source_ref,
        actor=actor,
        notes=checkpoint.notes,
    )
    return LedgerEntryResponse.model_validate(entry)


@router.post("/stock-counts", response_model=list[LedgerEntryResponse], status_code=status.HTTP_201_CREATED)
async def apply_stock_count(
    stock_count: StockCountCreate,
    actor: Actor = Depends(get_current_actor),
    engine: LedgerEngine = Depends(get_ledger_engine)
):
    entries = await engine.apply_stock_count(
        batch_ref=stock_count.batch_ref,
        location_code=stock_count.location_code,
        timestamp=stock_count.timestamp,
        counts={line.product_id: line.physical_qty for line in stock_count.lines},
        actor=actor,
        notes=stock_count.notes,
    )
    return [LedgerEntryResponse.model_validate(e) for e in entries]


@router.post("/purchase-receipts", response_model=LedgerEntryResponse, status_code=status.HTTP_201_CREATED)
async def record_purchase_receipt(
    receipt: PurchaseReceiptCreate,
    actor: Actor = Depends(get_current_actor),
    engine: LedgerEngine = Depends(get_ledger_engine)
):
    entry = await engine.record_purchase_receipt(
        receipt_ref=receipt.receipt_ref,
        product_id=receipt.product_id,
        location_code=receipt.location_code,
        timestamp=receipt.timestamp,
        qty=receipt.qty,
        actor=actor,
        notes=receipt.notes,
    )
    return LedgerEntryResponse.model_validate(entry)


@router.delete("/purchase-receipts/{receipt_ref}", response_model=RemovalResponse)
async def remove_purchase_receipt(
    receipt_ref: str,
    actor: Actor = Depends(get_current_actor),
    engine: LedgerEngine = Depends(get_ledger_engine)
):
    removed = await engine.remove_purchase_receipt(receipt_ref, actor)
    return RemovalResponse(source_reference=receipt_ref, entries_removed=removed)
