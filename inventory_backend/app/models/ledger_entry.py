"""
Ledger Entry database model.

One row per stock movement, partitioned by (product_id, location_code).
"""

from sqlalchemy import Column, Integer, Float, Boolean, DateTime, Enum, String, Index
from sqlalchemy.sql import func
from inventory_backend.app.db.session import Base
from inventory_backend.app.models.ledger_enums import SourceType


class LedgerEntry(Base):
    """
    Ledger Entry model.

    Entries of one partition are totally ordered by (timestamp, id).
    `running_balance` is the partition balance after this entry is applied.

    Two independent axes restrict mutation:
    - `locked`: checkpoint entry, its balance is authoritative and never recalculated.
    - `source_type`: protected sources are owned by another workflow and
      cannot be edited or deleted through the movement API.
    """
    __tablename__ = "ledger_entries"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Partition key
    product_id = Column(Integer, nullable=False)
    location_code = Column(String(50), nullable=False)

    # Effective date-time of the movement (naive UTC)
    timestamp = Column(DateTime, nullable=False)

    # Quantities
    qty_in = Column(Float, nullable=False, default=0.0)
    qty_out = Column(Float, nullable=False, default=0.0)
    running_balance = Column(Float, nullable=False, default=0.0)

    # Checkpoint flag
    locked = Column(Boolean, nullable=False, default=False, index=True)
    locked_at = Column(DateTime(timezone=True), nullable=True)

    # Provenance
    source_type = Column(
        Enum(SourceType, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=SourceType.MANUAL,
    )
    source_reference = Column(String(100), nullable=True, index=True)
    notes = Column(String(255), nullable=True)

    # Audit attribution
    created_by = Column(Integer, nullable=True)
    updated_by = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        Index('ix_ledger_entries_partition_order', 'product_id', 'location_code', 'timestamp', 'id'),
    )

    @property
    def is_protected(self) -> bool:
        return SourceType(self.source_type).is_protected

    def __repr__(self):
        return (
            f"<LedgerEntry(id={self.id}, product_id={self.product_id}, location='{self.location_code}', "
            f"in={self.qty_in}, out={self.qty_out}, balance={self.running_balance}, locked={self.locked})>"
        )
