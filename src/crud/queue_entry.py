"""CRUD operations for QueueEntry model.

Every state change here is a single conditional UPDATE guarded on the
entry's current status, so two callers can never both act on one entry.
"""

import uuid
from collections.abc import Iterable
from datetime import datetime
from typing import Any

from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.crud.base import CRUDBase, retry_reads, store_write
from src.models.queue_config import QueueConfiguration
from src.models.queue_entry import (
    ACTIVE_STATUSES,
    QueueEntry,
    QueueEntryStatus,
    QueuePriority,
    QueueSequence,
)
from src.schemas.queue import QueueEntryCreate, StatusUpdate
from src.services.errors import CapacityExceededError

# Attempts at claiming when a candidate is taken by a concurrent claimant
CLAIM_ATTEMPTS = 3

WORKING_STATUSES = (QueueEntryStatus.ASSIGNED, QueueEntryStatus.PROCESSING)


class CRUDQueueEntry(CRUDBase[QueueEntry, QueueEntryCreate, StatusUpdate]):
    """CRUD operations for QueueEntry."""

    # Reads

    @retry_reads
    async def get_for_tenant(
        self, db: AsyncSession, *, tenant_id: str, entry_id: str
    ) -> QueueEntry | None:
        """Get an entry, reloading it from the database."""
        result = await db.execute(
            select(QueueEntry)
            .where(QueueEntry.id == entry_id, QueueEntry.tenant_id == tenant_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    @retry_reads
    async def count_active(self, db: AsyncSession, *, tenant_id: str) -> int:
        """Count entries occupying queue capacity."""
        result = await db.execute(
            select(func.count(QueueEntry.id)).where(
                QueueEntry.tenant_id == tenant_id,
                QueueEntry.status.in_(tuple(ACTIVE_STATUSES)),
            )
        )
        return result.scalar() or 0

    @retry_reads
    async def count_by_status(
        self, db: AsyncSession, *, tenant_id: str
    ) -> dict[QueueEntryStatus, int]:
        """Count entries per status (every status present, zero if none)."""
        result = await db.execute(
            select(QueueEntry.status, func.count(QueueEntry.id))
            .where(QueueEntry.tenant_id == tenant_id)
            .group_by(QueueEntry.status)
        )
        counts = {status: 0 for status in QueueEntryStatus}
        for status, count in result.all():
            counts[QueueEntryStatus(status)] = count
        return counts

    @retry_reads
    async def priority_distribution(
        self,
        db: AsyncSession,
        *,
        tenant_id: str,
        status: QueueEntryStatus = QueueEntryStatus.PENDING,
    ) -> dict[str, int]:
        """Count entries in ``status`` per priority."""
        result = await db.execute(
            select(QueueEntry.priority, func.count(QueueEntry.id))
            .where(QueueEntry.tenant_id == tenant_id, QueueEntry.status == status)
            .group_by(QueueEntry.priority)
        )
        distribution = {priority.value: 0 for priority in QueuePriority}
        for priority, count in result.all():
            distribution[QueuePriority(priority).value] = count
        return distribution

    @retry_reads
    async def pending_created_at(self, db: AsyncSession, *, tenant_id: str) -> list[datetime]:
        """Creation times of pending entries (bounded by the queue size)."""
        result = await db.execute(
            select(QueueEntry.created_at).where(
                QueueEntry.tenant_id == tenant_id,
                QueueEntry.status == QueueEntryStatus.PENDING,
            )
        )
        return list(result.scalars().all())

    @retry_reads
    async def average_processing_time(self, db: AsyncSession, *, tenant_id: str) -> float:
        """Mean processing time in minutes over completed entries."""
        result = await db.execute(
            select(func.avg(QueueEntry.actual_processing_time)).where(
                QueueEntry.tenant_id == tenant_id,
                QueueEntry.status == QueueEntryStatus.COMPLETED,
                QueueEntry.actual_processing_time.isnot(None),
            )
        )
        average = result.scalar()
        return float(average) if average is not None else 0.0

    @retry_reads
    async def count_active_agents(self, db: AsyncSession, *, tenant_id: str) -> int:
        """Distinct agents holding assigned or processing entries."""
        result = await db.execute(
            select(func.count(func.distinct(QueueEntry.assigned_to))).where(
                QueueEntry.tenant_id == tenant_id,
                QueueEntry.status.in_(WORKING_STATUSES),
                QueueEntry.assigned_to.isnot(None),
            )
        )
        return result.scalar() or 0

    @retry_reads
    async def agent_load(self, db: AsyncSession, *, tenant_id: str, agent_id: str) -> int:
        """Entries an agent currently holds."""
        result = await db.execute(
            select(func.count(QueueEntry.id)).where(
                QueueEntry.tenant_id == tenant_id,
                QueueEntry.assigned_to == agent_id,
                QueueEntry.status.in_(WORKING_STATUSES),
            )
        )
        return result.scalar() or 0

    @retry_reads
    async def list_for_tenant(
        self,
        db: AsyncSession,
        *,
        tenant_id: str,
        status: QueueEntryStatus | None = None,
        priority: QueuePriority | None = None,
        assigned_to: str | None = None,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[list[QueueEntry], int]:
        """List entries in claim order with optional filters.

        Returns:
            Tuple of (entries, total_count).
        """
        filters = [QueueEntry.tenant_id == tenant_id]
        if status is not None:
            filters.append(QueueEntry.status == status)
        if priority is not None:
            filters.append(QueueEntry.priority == priority)
        if assigned_to is not None:
            filters.append(QueueEntry.assigned_to == assigned_to)

        count_result = await db.execute(select(func.count(QueueEntry.id)).where(*filters))
        total = count_result.scalar() or 0

        result = await db.execute(
            select(QueueEntry)
            .where(*filters)
            .order_by(QueueEntry.priority_rank, QueueEntry.created_at, QueueEntry.queue_position)
            .offset(skip)
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all()), total

    @retry_reads
    async def tenant_ids(self, db: AsyncSession) -> list[str]:
        """Tenants that have queue entries or a queue configuration."""
        result = await db.execute(
            select(QueueEntry.tenant_id).union(select(QueueConfiguration.tenant_id))
        )
        return sorted(result.scalars().all())

    # Writes

    async def _reserve_positions(self, db: AsyncSession, tenant_id: str, count: int) -> int:
        """Take ``count`` positions from the tenant's counter; returns the first.

        The counter row stays locked until the transaction ends, which
        serialises enqueues for the tenant.
        """
        result = await db.execute(
            update(QueueSequence)
            .where(QueueSequence.tenant_id == tenant_id)
            .values(last_position=QueueSequence.last_position + count)
            .returning(QueueSequence.last_position)
            .execution_options(synchronize_session=False)
        )
        last = result.scalar_one_or_none()
        if last is None:
            db.add(QueueSequence(tenant_id=tenant_id, last_position=count))
            await db.flush()
            last = count
        return last - count + 1

    async def lock_tenant(self, db: AsyncSession, *, tenant_id: str) -> None:
        """Lock the tenant's counter row for the rest of the transaction.

        A no-op on backends without row locks, where writes are already
        serialised.
        """
        await db.execute(
            select(QueueSequence.tenant_id)
            .where(QueueSequence.tenant_id == tenant_id)
            .with_for_update()
        )

    async def create_many(
        self,
        db: AsyncSession,
        *,
        tenant_id: str,
        entries: list[dict[str, Any]],
        max_size: int,
        now: datetime,
        expires_at: datetime,
    ) -> list[QueueEntry]:
        """Insert entries atomically, all or nothing.

        Args:
            db: Database session.
            tenant_id: Owning tenant.
            entries: Column values per entry (lead_id, priority, score, ...).
            max_size: Capacity limit on active entries.
            now: Creation time.
            expires_at: Expiry time for every new entry.

        Raises:
            CapacityExceededError: the insert would overfill the queue.
        """
        async with store_write(db):
            first_position = await self._reserve_positions(db, tenant_id, len(entries))

            active = await db.execute(
                select(func.count(QueueEntry.id)).where(
                    QueueEntry.tenant_id == tenant_id,
                    QueueEntry.status.in_(tuple(ACTIVE_STATUSES)),
                )
            )
            current_size = active.scalar() or 0
            if current_size + len(entries) > max_size:
                await db.rollback()
                raise CapacityExceededError(
                    f"Queue is at capacity ({current_size}/{max_size}), "
                    f"cannot add {len(entries)} entries"
                )

            db_objs = []
            for offset, values in enumerate(entries):
                priority = QueuePriority(values["priority"])
                db_objs.append(
                    QueueEntry(
                        id=str(uuid.uuid4()),
                        tenant_id=tenant_id,
                        lead_id=values["lead_id"],
                        priority=priority,
                        priority_rank=priority.rank,
                        status=QueueEntryStatus.PENDING,
                        score=values["score"],
                        queue_position=first_position + offset,
                        wait_time_minutes=0,
                        estimated_processing_time=values.get("estimated_processing_time"),
                        assignment_reason=values.get("assignment_reason"),
                        notes=values.get("notes"),
                        tags=list(values.get("tags") or []),
                        extra=values.get("metadata"),
                        created_at=now,
                        updated_at=now,
                        expires_at=expires_at,
                    )
                )
            db.add_all(db_objs)
            await db.commit()
        return db_objs

    async def claim_next(
        self,
        db: AsyncSession,
        *,
        tenant_id: str,
        claimant: str | None,
        now: datetime,
    ) -> QueueEntry | None:
        """Atomically move the next pending entry to ``claimed``.

        Picks the lowest (priority rank, created_at, position) among unexpired
        pending entries. Never retried on store errors.
        """
        candidate = (
            select(QueueEntry.id)
            .where(
                QueueEntry.tenant_id == tenant_id,
                QueueEntry.status == QueueEntryStatus.PENDING,
                QueueEntry.expires_at > now,
            )
            .order_by(QueueEntry.priority_rank, QueueEntry.created_at, QueueEntry.queue_position)
            .limit(1)
            .with_for_update(skip_locked=True)
            .scalar_subquery()
        )
        stmt = (
            update(QueueEntry)
            .where(QueueEntry.id == candidate, QueueEntry.status == QueueEntryStatus.PENDING)
            .values(
                status=QueueEntryStatus.CLAIMED,
                claimed_at=now,
                claimed_by=claimant,
                updated_at=now,
            )
            .returning(QueueEntry.id)
            .execution_options(synchronize_session=False)
        )

        async with store_write(db):
            for _ in range(CLAIM_ATTEMPTS):
                result = await db.execute(stmt)
                claimed_id = result.scalar_one_or_none()
                if claimed_id is not None:
                    break
                await db.commit()
                if not await self._has_claimable(db, tenant_id, now):
                    return None
            else:
                return None

            entry = await db.get(QueueEntry, claimed_id, populate_existing=True)
            entry.wait_time_minutes = int((now - entry.created_at).total_seconds() // 60)
            await db.commit()
        return entry

    async def _has_claimable(self, db: AsyncSession, tenant_id: str, now: datetime) -> bool:
        result = await db.execute(
            select(QueueEntry.id)
            .where(
                QueueEntry.tenant_id == tenant_id,
                QueueEntry.status == QueueEntryStatus.PENDING,
                QueueEntry.expires_at > now,
            )
            .limit(1)
        )
        return result.first() is not None

    async def compare_and_set(
        self,
        db: AsyncSession,
        *,
        tenant_id: str,
        entry_id: str,
        expected: QueueEntryStatus,
        values: dict[str, Any],
        agent_limit: tuple[str, int] | None = None,
    ) -> QueueEntry | None:
        """Apply ``values`` only if the entry is still in ``expected`` status.

        Args:
            agent_limit: Optional (agent_id, max_entries); the update also
                requires the agent to hold fewer than max_entries.

        Returns:
            The updated entry, or None if the guard did not match.
        """
        conditions = [
            QueueEntry.id == entry_id,
            QueueEntry.tenant_id == tenant_id,
            QueueEntry.status == expected,
        ]

        async with store_write(db):
            if agent_limit is not None:
                agent_id, max_entries = agent_limit
                await self.lock_tenant(db, tenant_id=tenant_id)
                held = (
                    select(func.count(QueueEntry.id))
                    .where(
                        QueueEntry.tenant_id == tenant_id,
                        QueueEntry.assigned_to == agent_id,
                        QueueEntry.status.in_(WORKING_STATUSES),
                    )
                    .scalar_subquery()
                )
                conditions.append(held < max_entries)

            result = await db.execute(
                update(QueueEntry)
                .where(*conditions)
                .values(**values)
                .returning(QueueEntry.id)
                .execution_options(synchronize_session=False)
            )
            updated_id = result.scalar_one_or_none()
            await db.commit()

        if updated_id is None:
            return None
        return await self.get_for_tenant(db, tenant_id=tenant_id, entry_id=entry_id)

    async def delete_for_tenant(self, db: AsyncSession, *, tenant_id: str, entry_id: str) -> bool:
        """Hard delete an entry. Returns False if it did not exist."""
        async with store_write(db):
            result = await db.execute(
                delete(QueueEntry)
                .where(QueueEntry.id == entry_id, QueueEntry.tenant_id == tenant_id)
                .execution_options(synchronize_session=False)
            )
            await db.commit()
        return result.rowcount > 0

    async def expire_pending(
        self,
        db: AsyncSession,
        *,
        tenant_id: str,
        now: datetime,
        purge: bool = False,
    ) -> int:
        """Expire (or delete) pending entries whose expiry has passed.

        The status guard is part of the statement, so an entry claimed in
        the meantime is left alone.
        """
        conditions = (
            QueueEntry.tenant_id == tenant_id,
            QueueEntry.status == QueueEntryStatus.PENDING,
            QueueEntry.expires_at < now,
        )
        if purge:
            stmt = delete(QueueEntry).where(*conditions)
        else:
            stmt = (
                update(QueueEntry)
                .where(*conditions)
                .values(status=QueueEntryStatus.EXPIRED, updated_at=now)
            )

        async with store_write(db):
            result = await db.execute(stmt.execution_options(synchronize_session=False))
            await db.commit()
        return result.rowcount

    async def release_stale(
        self,
        db: AsyncSession,
        *,
        tenant_id: str,
        cutoff: datetime,
        now: datetime,
        expire: bool = False,
    ) -> int:
        """Return entries held since before ``cutoff`` to the queue.

        Stale claims always go back to pending. Stale assigned/processing
        entries go back to pending, or to expired when ``expire`` is set.
        """
        cleared = {
            "claimed_by": None,
            "claimed_at": None,
            "assigned_to": None,
            "assigned_by": None,
            "assigned_at": None,
            "updated_at": now,
        }
        stale_claims = and_(
            QueueEntry.status == QueueEntryStatus.CLAIMED,
            QueueEntry.claimed_at < cutoff,
        )
        stale_work = and_(
            QueueEntry.status.in_(WORKING_STATUSES),
            func.coalesce(QueueEntry.assigned_at, QueueEntry.claimed_at) < cutoff,
        )

        statements: Iterable[Any]
        if expire:
            statements = (
                update(QueueEntry)
                .where(QueueEntry.tenant_id == tenant_id, stale_claims)
                .values(status=QueueEntryStatus.PENDING, **cleared),
                update(QueueEntry)
                .where(QueueEntry.tenant_id == tenant_id, stale_work)
                .values(status=QueueEntryStatus.EXPIRED, updated_at=now),
            )
        else:
            statements = (
                update(QueueEntry)
                .where(QueueEntry.tenant_id == tenant_id, or_(stale_claims, stale_work))
                .values(status=QueueEntryStatus.PENDING, **cleared),
            )

        released = 0
        async with store_write(db):
            for stmt in statements:
                result = await db.execute(stmt.execution_options(synchronize_session=False))
                released += result.rowcount
            await db.commit()
        return released


queue_entry = CRUDQueueEntry(QueueEntry)
