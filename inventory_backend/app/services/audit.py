"""
Audit logging service for ledger mutations.

Audit rows are written inside the caller's transaction so they commit
or roll back together with the mutation they describe.
"""

from typing import Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
from inventory_backend.app.models.audit_log import AuditLog
from inventory_backend.app.core.observability import current_correlation_id


# Audit event constants
class AuditAction:
    """Standardized audit action constants."""
    LEDGER_MOVEMENT_RECORDED = "LEDGER_MOVEMENT_RECORDED"
    LEDGER_MOVEMENT_EDITED = "LEDGER_MOVEMENT_EDITED"
    LEDGER_MOVEMENT_DELETED = "LEDGER_MOVEMENT_DELETED"
    LEDGER_PERIOD_LOCKED = "LEDGER_PERIOD_LOCKED"
    STOCK_COUNT_APPLIED = "STOCK_COUNT_APPLIED"
    PURCHASE_RECEIPT_RECORDED = "PURCHASE_RECEIPT_RECORDED"
    PURCHASE_RECEIPT_REMOVED = "PURCHASE_RECEIPT_REMOVED"
    TRANSFER_COMPLETED = "TRANSFER_COMPLETED"
    TRANSFER_REVERSED = "TRANSFER_REVERSED"
    LEDGER_REBUILT = "LEDGER_REBUILT"
    LOCATION_CREATED = "LOCATION_CREATED"


async def log_event(
    db: AsyncSession,
    action: str,
    actor_id: Optional[int] = None,
    actor_username: Optional[str] = None,
    product_id: Optional[int] = None,
    location_code: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None
) -> AuditLog:
    """
    Log a ledger event to the audit log.

    The current request's correlation id is recorded when there is one.

    Args:
        db: Database session (transaction owned by the caller)
        action: Action being performed (use AuditAction constants)
        actor_id: ID of user performing the action
        actor_username: Username of actor
        product_id: Product of the affected partition
        location_code: Location of the affected partition
        metadata: Additional context as JSON

    Returns:
        Created AuditLog instance
    """
    audit_log = AuditLog(
        actor_id=actor_id,
        actor_username=actor_username,
        action=action,
        product_id=product_id,
        location_code=location_code,
        correlation_id=current_correlation_id(),
        meta_data=metadata
    )

    db.add(audit_log)
    await db.flush()

    return audit_log


async def get_audit_trail(
    db: AsyncSession,
    product_id: Optional[int] = None,
    action: Optional[str] = None,
    limit: int = 100
) -> list[AuditLog]:
    """
    Retrieve audit trail with optional filtering.

    Args:
        db: Database session
        product_id: Filter by product
        action: Filter by action type
        limit: Maximum number of records to return

    Returns:
        List of AuditLog instances, most recent first
    """
    query = select(AuditLog).order_by(desc(AuditLog.timestamp), desc(AuditLog.id))

    if product_id:
        query = query.where(AuditLog.product_id == product_id)

    if action:
        query = query.where(AuditLog.action == action)

    query = query.limit(limit)

    result = await db.execute(query)
    return result.scalars().all()
