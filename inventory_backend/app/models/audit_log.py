"""
Audit Log Database Model.

Tracks every ledger mutation together with the actor who performed it.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from inventory_backend.app.db.session import Base


class AuditLog(Base):
    """
    Audit log model for ledger mutations.

    Events logged:
    - LEDGER_MOVEMENT_RECORDED / EDITED / DELETED
    - LEDGER_PERIOD_LOCKED / STOCK_COUNT_APPLIED
    - PURCHASE_RECEIPT_RECORDED / REMOVED
    - TRANSFER_COMPLETED / TRANSFER_REVERSED
    - LEDGER_REBUILT
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Who performed the action (None for system actions)
    actor_id = Column(Integer, index=True, nullable=True)
    actor_username = Column(String(100), nullable=True)

    # What action was performed
    action = Column(String(100), nullable=False, index=True)

    # Request that caused it (None for scripts)
    correlation_id = Column(String(64), nullable=True, index=True)

    # Ledger partition affected (if any)
    product_id = Column(Integer, index=True, nullable=True)
    location_code = Column(String(50), nullable=True)

    # Additional context (JSON for flexibility)
    meta_data = Column(JSON, nullable=True)

    # Timestamp
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', actor={self.actor_username})>"
