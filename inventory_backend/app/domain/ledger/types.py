"""
Value types shared by the ledger engine components.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import NamedTuple, Optional

from inventory_backend.app.core.config import settings


class PartitionKey(NamedTuple):
    """(product, location) pair scoping one ledger's ordering and balance."""
    product_id: int
    location_code: str

    def __str__(self) -> str:
        return f"{self.product_id}@{self.location_code}"


class SourceKey(NamedTuple):
    """Owning-workflow reference; locked alongside partitions to keep it single use."""
    source_type: str
    source_reference: str

    def __str__(self) -> str:
        return f"{self.source_type}:{self.source_reference}"


@dataclass(frozen=True)
class Actor:
    """Request-scoped identity recorded on every mutation."""
    user_id: Optional[int] = None
    username: Optional[str] = None

    @classmethod
    def system(cls) -> "Actor":
        return cls(user_id=None, username="system")


def normalize_timestamp(value: datetime) -> datetime:
    """Ledger timestamps are stored as naive UTC."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def quantize(value: float) -> float:
    return round(float(value), settings.ledger_quantity_precision)
