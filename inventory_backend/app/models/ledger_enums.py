"""
Ledger enumerations.
"""

import enum


class SourceType(str, enum.Enum):
    """Origin of a ledger entry."""
    MANUAL = "manual"  # Entered through the movement API
    PURCHASE_RECEIPT = "purchase_receipt"  # Goods received against a purchase order
    TRANSFER = "transfer"  # One side of an inter-branch transfer
    STOCK_COUNT_BATCH = "stock_count_batch"  # Physical stock count checkpoint

    @property
    def is_protected(self) -> bool:
        """Protected entries are created and removed only by their owning workflow."""
        return self in PROTECTED_SOURCES


PROTECTED_SOURCES = frozenset({
    SourceType.PURCHASE_RECEIPT,
    SourceType.TRANSFER,
    SourceType.STOCK_COUNT_BATCH,
})
