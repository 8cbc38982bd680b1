"""
Ledger Engine (Domain Logic).

Entry point for every collaborator that reads or changes warehouse stock.
Each mutation is one unit of work:

1. Acquire the per-partition locks for every partition it touches
2. Open a session and begin a transaction (+ advisory locks on PostgreSQL)
3. Guard -> calculate -> persist -> propagate -> audit
4. Commit, or roll back everything on any error

Transient database failures re-run the whole unit.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, Hashable, Iterable, Optional, Sequence, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from inventory_backend.app.core.config import settings
from inventory_backend.app.core.exceptions import (
    LockedPeriodError,
    ProtectedSourceError,
    ResourceNotFoundError,
    ValidationError,
)
from inventory_backend.app.core.reliability import retry_async
from inventory_backend.app.models.ledger_entry import LedgerEntry
from inventory_backend.app.models.ledger_enums import SourceType
from inventory_backend.app.services.audit import log_event, AuditAction
from inventory_backend.app.domain.ledger import store, movements, transfers, rebuild
from inventory_backend.app.domain.ledger.balance import compute_balance
from inventory_backend.app.domain.ledger.locks import PartitionLocks, acquire_advisory_locks
from inventory_backend.app.domain.ledger.types import Actor, PartitionKey, SourceKey, normalize_timestamp

logger = logging.getLogger("inventory_ledger.engine")

T = TypeVar("T")

# Upper bound used for "balance after everything"
END_OF_TIME = datetime(9999, 12, 31, 23, 59, 59)


@dataclass
class BulkDeleteResult:
    deleted: list[int] = field(default_factory=list)
    skipped: dict[int, str] = field(default_factory=dict)  # entry id -> error code


@dataclass
class RebuildReport:
    partitions: int = 0
    entries_rewritten: int = 0


class LedgerEngine:
    """Transactional facade over the ledger components."""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        max_retries: Optional[int] = None,
        rebuild_concurrency: Optional[int] = None,
    ):
        self.session_factory = session_factory
        self.max_retries = settings.ledger_max_retries if max_retries is None else max_retries
        self.rebuild_concurrency = (
            settings.ledger_rebuild_concurrency if rebuild_concurrency is None else rebuild_concurrency
        )
        self.locks = PartitionLocks()

    # Unit of work

    async def _run(
        self,
        keys: Iterable[Hashable],
        work: Callable[[AsyncSession], Awaitable[T]],
        operation: str,
    ) -> T:
        keys = list(keys)

        async def attempt() -> T:
            async with self.locks.hold(keys):
                async with self.session_factory() as db:
                    async with db.begin():
                        await acquire_advisory_locks(db, keys)
                        return await work(db)

        return await retry_async(attempt, attempts=self.max_retries, operation=operation)

    async def _partition_of(self, entry_id: int) -> PartitionKey:
        async with self.session_factory() as db:
            entry = await store.get_entry(db, entry_id)
            if entry is None:
                raise ResourceNotFoundError("Ledger entry", entry_id)
            return PartitionKey(entry.product_id, entry.location_code)

    async def _partitions_of_source(self, source_type: SourceType, source_reference: str, resource: str) -> list[PartitionKey]:
        async with self.session_factory() as db:
            entries = await store.find_by_source(db, source_type, source_reference)
        if not entries:
            raise ResourceNotFoundError(resource, source_reference)
        return [PartitionKey(e.product_id, e.location_code) for e in entries]

    @staticmethod
    async def _loaded(db: AsyncSession, *entries: LedgerEntry) -> None:
        # Server-generated columns are expired after flush; load them before the session closes
        for entry in entries:
            await db.refresh(entry)

    # Movements

    async def record_movement(
        self,
        product_id: int,
        location_code: str,
        timestamp: datetime,
        qty_in: float,
        qty_out: float,
        actor: Actor,
        notes: Optional[str] = None,
        source_reference: Optional[str] = None,
    ) -> LedgerEntry:
        """
        Insert a manual movement, possibly back-dated.

        Raises:
            ValidationError: Missing identifiers or both quantities zero
            LockedPeriodError: A checkpoint exists at or after `timestamp`
        """
        key = movements.validate_partition(product_id, location_code)
        movements.validate_quantities(qty_in, qty_out)
        timestamp = normalize_timestamp(timestamp)

        async def work(db: AsyncSession) -> LedgerEntry:
            entry = await movements.insert_entry(
                db, key, timestamp, qty_in, qty_out, actor,
                source_reference=source_reference, notes=notes,
            )
            await log_event(
                db,
                action=AuditAction.LEDGER_MOVEMENT_RECORDED,
                actor_id=actor.user_id,
                actor_username=actor.username,
                product_id=key.product_id,
                location_code=key.location_code,
                metadata={"entry_id": entry.id, "qty_in": entry.qty_in, "qty_out": entry.qty_out,
                          "timestamp": timestamp.isoformat()},
            )
            await self._loaded(db, entry)
            return entry

        entry = await self._run([key], work, operation="record_movement")
        logger.info("Movement recorded", extra={"entry_id": entry.id, "partition": str(key)})
        return entry

    async def edit_movement(
        self,
        entry_id: int,
        qty_in: float,
        qty_out: float,
        actor: Actor,
        timestamp: Optional[datetime] = None,
        notes: Optional[str] = None,
    ) -> LedgerEntry:
        """
        Change an unlocked manual entry and repair everything after it.

        Raises:
            ResourceNotFoundError: Unknown entry
            ProtectedSourceError: Entry belongs to a receipt/transfer/stock count
            LockedPeriodError: Entry (or its new timestamp) lies in a locked period
        """
        movements.validate_quantities(qty_in, qty_out)
        if timestamp is not None:
            timestamp = normalize_timestamp(timestamp)
        key = await self._partition_of(entry_id)

        async def work(db: AsyncSession) -> LedgerEntry:
            entry, previous = await movements.edit_entry(
                db, entry_id, qty_in, qty_out, actor, timestamp=timestamp, notes=notes,
            )
            await log_event(
                db,
                action=AuditAction.LEDGER_MOVEMENT_EDITED,
                actor_id=actor.user_id,
                actor_username=actor.username,
                product_id=key.product_id,
                location_code=key.location_code,
                metadata={"entry_id": entry_id, "before": previous,
                          "after": {"qty_in": entry.qty_in, "qty_out": entry.qty_out,
                                    "timestamp": entry.timestamp.isoformat()}},
            )
            await self._loaded(db, entry)
            return entry

        entry = await self._run([key], work, operation="edit_movement")
        logger.info("Movement edited", extra={"entry_id": entry_id, "partition": str(key)})
        return entry

    async def delete_movement(self, entry_id: int, actor: Actor) -> None:
        """Delete an unlocked manual entry; same guard rules as edit."""
        key = await self._partition_of(entry_id)

        async def work(db: AsyncSession) -> None:
            entry = await movements.remove_entry(db, entry_id)
            await log_event(
                db,
                action=AuditAction.LEDGER_MOVEMENT_DELETED,
                actor_id=actor.user_id,
                actor_username=actor.username,
                product_id=key.product_id,
                location_code=key.location_code,
                metadata={"entry_id": entry_id, "qty_in": entry.qty_in, "qty_out": entry.qty_out,
                          "timestamp": entry.timestamp.isoformat()},
            )

        await self._run([key], work, operation="delete_movement")
        logger.info("Movement deleted", extra={"entry_id": entry_id, "partition": str(key)})

    async def delete_movements(self, entry_ids: Sequence[int], actor: Actor) -> BulkDeleteResult:
        """Delete every deletable entry; locked, protected or unknown ones are skipped."""
        result = BulkDeleteResult()
        for entry_id in entry_ids:
            try:
                await self.delete_movement(entry_id, actor)
            except (ResourceNotFoundError, LockedPeriodError, ProtectedSourceError) as e:
                result.skipped[entry_id] = e.error_code
            else:
                result.deleted.append(entry_id)
        return result

    # Checkpoints

    async def lock_period(
        self,
        product_id: int,
        location_code: str,
        as_of: datetime,
        balance: float,
        lock_source_ref: str,
        actor: Actor,
        notes: Optional[str] = None,
    ) -> LedgerEntry:
        """
        Create a checkpoint fixing the partition balance at `as_of`.

        Raises:
            LockedPeriodError: A checkpoint already exists at or after `as_of`
        """
        key = movements.validate_partition(product_id, location_code)
        if not lock_source_ref:
            raise ValidationError("lock_source_ref is required")
        if balance is None:
            raise ValidationError("balance is required")
        as_of = normalize_timestamp(as_of)

        async def work(db: AsyncSession) -> LedgerEntry:
            entry = await movements.create_checkpoint(
                db, key, as_of, balance, lock_source_ref, actor, notes=notes,
            )
            await log_event(
                db,
                action=AuditAction.LEDGER_PERIOD_LOCKED,
                actor_id=actor.user_id,
                actor_username=actor.username,
                product_id=key.product_id,
                location_code=key.location_code,
                metadata={"entry_id": entry.id, "as_of": as_of.isoformat(),
                          "balance": entry.running_balance, "lock_source_ref": lock_source_ref},
            )
            await self._loaded(db, entry)
            return entry

        entry = await self._run([key], work, operation="lock_period")
        logger.info("Period locked", extra={"entry_id": entry.id, "partition": str(key), "as_of": as_of.isoformat()})
        return entry

    async def apply_stock_count(
        self,
        batch_ref: str,
        location_code: str,
        timestamp: datetime,
        counts: dict[int, float],
        actor: Actor,
        notes: Optional[str] = None,
    ) -> list[LedgerEntry]:
        """
        Record a physical count batch: one checkpoint per counted product.

        All partitions commit together or not at all.
        """
        if not batch_ref:
            raise ValidationError("batch_ref is required")
        if not counts:
            raise ValidationError("A stock count needs at least one product")
        negative = {product_id: qty for product_id, qty in counts.items() if qty is None or qty < 0}
        if negative:
            raise ValidationError("Physical counts must be non-negative", details={"counts": negative})
        keys = [movements.validate_partition(product_id, location_code) for product_id in sorted(counts)]
        timestamp = normalize_timestamp(timestamp)

        async def work(db: AsyncSession) -> list[LedgerEntry]:
            entries = []
            for key in keys:
                entries.append(await movements.create_checkpoint(
                    db, key, timestamp, counts[key.product_id], batch_ref, actor, notes=notes,
                ))
            await log_event(
                db,
                action=AuditAction.STOCK_COUNT_APPLIED,
                actor_id=actor.user_id,
                actor_username=actor.username,
                location_code=location_code,
                metadata={"batch_ref": batch_ref, "timestamp": timestamp.isoformat(),
                          "entries": [e.id for e in entries]},
            )
            await self._loaded(db, *entries)
            return entries

        entries = await self._run(keys, work, operation="apply_stock_count")
        logger.info("Stock count applied", extra={"batch_ref": batch_ref, "products": len(entries)})
        return entries

    # Purchase receipts

    async def record_purchase_receipt(
        self,
        receipt_ref: str,
        product_id: int,
        location_code: str,
        timestamp: datetime,
        qty: float,
        actor: Actor,
        notes: Optional[str] = None,
    ) -> LedgerEntry:
        key = movements.validate_partition(product_id, location_code)
        if not receipt_ref:
            raise ValidationError("receipt_ref is required")
        if qty is None or qty <= 0:
            raise ValidationError("Received quantity must be positive", details={"qty": qty})
        timestamp = normalize_timestamp(timestamp)

        async def work(db: AsyncSession) -> LedgerEntry:
            entry = await movements.insert_entry(
                db, key, timestamp, qty, 0.0, actor,
                source_type=SourceType.PURCHASE_RECEIPT, source_reference=receipt_ref, notes=notes,
            )
            await log_event(
                db,
                action=AuditAction.PURCHASE_RECEIPT_RECORDED,
                actor_id=actor.user_id,
                actor_username=actor.username,
                product_id=key.product_id,
                location_code=key.location_code,
                metadata={"entry_id": entry.id, "receipt_ref": receipt_ref, "qty": entry.qty_in},
            )
            await self._loaded(db, entry)
            return entry

        return await self._run([key], work, operation="record_purchase_receipt")

    async def remove_purchase_receipt(self, receipt_ref: str, actor: Actor) -> int:
        """Compensating removal of a receipt's entries. Returns the number removed."""
        keys = await self._partitions_of_source(SourceType.PURCHASE_RECEIPT, receipt_ref, "Purchase receipt")

        async def work(db: AsyncSession) -> int:
            removed = await movements.remove_sourced_entries(db, SourceType.PURCHASE_RECEIPT, receipt_ref)
            await log_event(
                db,
                action=AuditAction.PURCHASE_RECEIPT_REMOVED,
                actor_id=actor.user_id,
                actor_username=actor.username,
                metadata={"receipt_ref": receipt_ref, "entries": [e.id for e in removed]},
            )
            return len(removed)

        return await self._run(keys, work, operation="remove_purchase_receipt")

    # Transfers

    async def complete_transfer(
        self,
        transfer_ref: str,
        product_id: int,
        source_location: str,
        dest_location: str,
        qty: float,
        timestamp: datetime,
        actor: Actor,
        notes: Optional[str] = None,
    ) -> tuple[LedgerEntry, LedgerEntry]:
        """
        Book a completed transfer on both locations.

        Returns:
            (outbound entry, inbound entry)
        """
        transfers.validate_transfer(transfer_ref, source_location, dest_location, qty)
        movements.validate_partition(product_id, source_location)
        # The reference lock keeps it single use even across unrelated partitions
        keys = [*transfers.transfer_partitions(product_id, source_location, dest_location),
                SourceKey(SourceType.TRANSFER.value, transfer_ref)]
        timestamp = normalize_timestamp(timestamp)

        async def work(db: AsyncSession) -> tuple[LedgerEntry, LedgerEntry]:
            outbound, inbound = await transfers.complete_transfer(
                db, transfer_ref, product_id, source_location, dest_location, qty, timestamp, actor, notes=notes,
            )
            await log_event(
                db,
                action=AuditAction.TRANSFER_COMPLETED,
                actor_id=actor.user_id,
                actor_username=actor.username,
                product_id=product_id,
                metadata={"transfer_ref": transfer_ref, "source": source_location,
                          "destination": dest_location, "qty": qty,
                          "entries": [outbound.id, inbound.id]},
            )
            await self._loaded(db, outbound, inbound)
            return outbound, inbound

        result = await self._run(keys, work, operation="complete_transfer")
        logger.info("Transfer completed", extra={"transfer_ref": transfer_ref, "product_id": product_id})
        return result

    async def reverse_transfer(self, transfer_ref: str, actor: Actor) -> int:
        """Remove both sides of a completed transfer. Returns the number of entries removed."""
        keys = await self._partitions_of_source(SourceType.TRANSFER, transfer_ref, "Transfer")
        keys.append(SourceKey(SourceType.TRANSFER.value, transfer_ref))

        async def work(db: AsyncSession) -> int:
            removed = await transfers.reverse_transfer(db, transfer_ref)
            await log_event(
                db,
                action=AuditAction.TRANSFER_REVERSED,
                actor_id=actor.user_id,
                actor_username=actor.username,
                product_id=removed[0].product_id,
                metadata={"transfer_ref": transfer_ref, "entries": [e.id for e in removed]},
            )
            return len(removed)

        removed = await self._run(keys, work, operation="reverse_transfer")
        logger.info("Transfer reversed", extra={"transfer_ref": transfer_ref, "entries": removed})
        return removed

    # Maintenance

    async def rebuild_partition(self, key: PartitionKey, actor: Optional[Actor] = None) -> int:
        actor = actor or Actor.system()

        async def work(db: AsyncSession) -> int:
            rewritten = await rebuild.rebuild_partition(db, key)
            if rewritten:
                await log_event(
                    db,
                    action=AuditAction.LEDGER_REBUILT,
                    actor_id=actor.user_id,
                    actor_username=actor.username,
                    product_id=key.product_id,
                    location_code=key.location_code,
                    metadata={"entries_rewritten": rewritten},
                )
            return rewritten

        return await self._run([key], work, operation="rebuild_partition")

    async def rebuild_all(self, actor: Optional[Actor] = None, concurrency: Optional[int] = None) -> RebuildReport:
        """
        Replay every partition from zero, correcting drifted balances.

        Partitions are rebuilt independently, up to `concurrency` at a time,
        each under its own partition lock. A failing partition does not stop
        the others; the first failure is re-raised once all have finished.
        """
        async with self.session_factory() as db:
            keys = await store.list_partitions(db)

        semaphore = asyncio.Semaphore(self.rebuild_concurrency if concurrency is None else concurrency)

        async def rebuild_one(key: PartitionKey) -> int:
            async with semaphore:
                return await self.rebuild_partition(key, actor)

        results = await asyncio.gather(*(rebuild_one(key) for key in keys), return_exceptions=True)
        failures = [(key, r) for key, r in zip(keys, results) if isinstance(r, BaseException)]
        report = RebuildReport(
            partitions=len(keys),
            entries_rewritten=sum(r for r in results if not isinstance(r, BaseException)),
        )

        for key, error in failures:
            logger.error(
                "Partition rebuild failed",
                extra={"partition": str(key), "error_type": type(error).__name__, "error": str(error)},
            )

        logger.info(
            "Ledger rebuild finished",
            extra={"partitions": report.partitions, "entries_rewritten": report.entries_rewritten, "failed": len(failures)},
        )
        if failures:
            raise failures[0][1]
        return report

    # Reads (no partition lock)

    async def get_balance(self, product_id: int, location_code: str, as_of: Optional[datetime] = None) -> float:
        """Balance before `as_of`; the current balance when omitted."""
        movements.validate_partition(product_id, location_code)
        as_of = normalize_timestamp(as_of) if as_of is not None else END_OF_TIME
        async with self.session_factory() as db:
            return await compute_balance(db, product_id, location_code, as_of)

    async def get_entry(self, entry_id: int) -> LedgerEntry:
        async with self.session_factory() as db:
            entry = await store.get_entry(db, entry_id)
        if entry is None:
            raise ResourceNotFoundError("Ledger entry", entry_id)
        return entry

    async def list_entries(
        self,
        product_id: int,
        location_code: str,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[Sequence[LedgerEntry], int]:
        key = movements.validate_partition(product_id, location_code)
        async with self.session_factory() as db:
            return await store.list_entries(db, key, limit=limit, offset=offset)

    async def entries_by_source(self, source_type: SourceType, source_reference: str) -> Sequence[LedgerEntry]:
        async with self.session_factory() as db:
            return await store.find_by_source(db, source_type, source_reference)
