"""
Ledger Pydantic schemas.

Request and response models for movements, checkpoints, receipts and transfers.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List, Dict
from inventory_backend.app.models.ledger_enums import SourceType


class MovementCreate(BaseModel):
    """Schema for recording a manual movement."""
    product_id: int = Field(..., ge=1)
    location_code: str = Field(..., min_length=1, max_length=50)
    timestamp: datetime
    qty_in: float = Field(0.0, ge=0)
    qty_out: float = Field(0.0, ge=0)
    notes: Optional[str] = Field(None, max_length=255)
    source_reference: Optional[str] = Field(None, max_length=100)


class MovementUpdate(BaseModel):
    """Schema for editing a movement's quantities (and optionally its timestamp)."""
    qty_in: float = Field(..., ge=0)
    qty_out: float = Field(..., ge=0)
    timestamp: Optional[datetime] = None
    notes: Optional[str] = Field(None, max_length=255)


class BulkDeleteRequest(BaseModel):
    entry_ids: List[int] = Field(..., min_length=1)


class BulkDeleteResponse(BaseModel):
    deleted: List[int]
    skipped: Dict[int, str]


class CheckpointCreate(BaseModel):
    """Schema for locking a period at a counted balance."""
    product_id: int = Field(..., ge=1)
    location_code: str = Field(..., min_length=1, max_length=50)
    as_of: datetime
    balance: float
    lock_source_ref: str = Field(..., min_length=1, max_length=100)
    notes: Optional[str] = Field(None, max_length=255)


class StockCountLine(BaseModel):
    product_id: int = Field(..., ge=1)
    physical_qty: float = Field(..., ge=0)


class StockCountCreate(BaseModel):
    """Schema for applying a physical stock count batch at one location."""
    batch_ref: str = Field(..., min_length=1, max_length=100)
    location_code: str = Field(..., min_length=1, max_length=50)
    timestamp: datetime
    lines: List[StockCountLine] = Field(..., min_length=1)
    notes: Optional[str] = Field(None, max_length=255)


class PurchaseReceiptCreate(BaseModel):
    receipt_ref: str = Field(..., min_length=1, max_length=100)
    product_id: int = Field(..., ge=1)
    location_code: str = Field(..., min_length=1, max_length=50)
    timestamp: datetime
    qty: float = Field(..., gt=0)
    notes: Optional[str] = Field(None, max_length=255)


class TransferComplete(BaseModel):
    """Schema for booking a completed transfer between two locations."""
    transfer_ref: str = Field(..., min_length=1, max_length=100)
    product_id: int = Field(..., ge=1)
    source_location: str = Field(..., min_length=1, description="Location code or name")
    dest_location: str = Field(..., min_length=1, description="Location code or name")
    qty: float = Field(..., gt=0)
    timestamp: Optional[datetime] = Field(None, description="Defaults to now")
    notes: Optional[str] = Field(None, max_length=255)


class LedgerEntryResponse(BaseModel):
    """Schema for a ledger entry."""
    id: int
    product_id: int
    location_code: str
    timestamp: datetime
    qty_in: float
    qty_out: float
    running_balance: float
    locked: bool
    locked_at: Optional[datetime]
    source_type: SourceType
    source_reference: Optional[str]
    notes: Optional[str]
    created_by: Optional[int]
    updated_by: Optional[int]

    class Config:
        from_attributes = True


class LedgerEntryListResponse(BaseModel):
    """Schema for paginated ledger history (newest first)."""
    entries: List[LedgerEntryResponse]
    total: int
    limit: int
    offset: int


class TransferResponse(BaseModel):
    transfer_ref: str
    outbound: LedgerEntryResponse
    inbound: LedgerEntryResponse


class RemovalResponse(BaseModel):
    source_reference: str
    entries_removed: int


class BalanceResponse(BaseModel):
    product_id: int
    location_code: str
    as_of: Optional[datetime]
    balance: float


class RebuildResponse(BaseModel):
    partitions: int
    entries_rewritten: int
