"""Queue manager: enqueue, claim, assign and lifecycle of queue entries."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import Settings, get_settings
from src.crud.queue_config import queue_config as queue_config_crud
from src.crud.queue_entry import queue_entry as queue_entry_crud
from src.models.queue_config import QueueConfiguration, StaleEntryAction
from src.models.queue_entry import (
    ACTIVE_STATUSES,
    QueueEntry,
    QueueEntryStatus,
    QueuePriority,
)
from src.schemas.queue import QueueConfigUpdate, QueueEntryCreate
from src.services.clock import Clock, SystemClock
from src.services.errors import (
    CapacityExceededError,
    InvalidTransitionError,
    LeadQueueError,
    NotFoundError,
)
from src.services.queue.priority import PriorityCalculator
from src.services.scoring.config import ScoringThresholds
from src.services.scoring.engine import ScoringEngine

logger = logging.getLogger(__name__)

# Optimistic retries when an entry changes between read and guarded update
TRANSITION_ATTEMPTS = 3

HEALTH_CRITICAL_UTILIZATION = 90
HEALTH_WARNING_UTILIZATION = 75

# Targets reachable only through claim_next / assign
RESERVED_TARGETS = frozenset({QueueEntryStatus.CLAIMED, QueueEntryStatus.ASSIGNED})


@dataclass
class QueueStatus:
    """Snapshot of one tenant's queue."""

    total_leads: int
    total_entries: int
    pending_leads: int
    claimed_leads: int
    assigned_leads: int
    processing_leads: int
    completed_leads: int
    cancelled_leads: int
    expired_leads: int
    average_wait_time: float
    average_processing_time: float
    queue_utilization: float
    health_status: str
    active_agents: int
    priority_distribution: dict[str, int]
    last_updated: datetime


def _minutes_between(start: datetime, end: datetime) -> int:
    return int((end - start).total_seconds() // 60)


class QueueManager:
    """Owns the lifecycle of queue entries.

    Holds no mutable state of its own; every call takes the session it
    works in, so one manager can serve any number of concurrent requests.
    """

    def __init__(
        self,
        scoring_engine: ScoringEngine | None = None,
        clock: Clock | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.clock = clock or SystemClock()
        self.scoring_engine = scoring_engine or ScoringEngine(self.clock, self.settings)
        self.priority_calculator = PriorityCalculator(
            ScoringThresholds(
                hot=self.settings.score_hot_threshold,
                warm=self.settings.score_warm_threshold,
                cold=self.settings.score_cold_threshold,
            )
        )

    # Configuration

    def _config_defaults(self) -> dict[str, Any]:
        return {
            "max_queue_size": self.settings.queue_max_size,
            "max_wait_time_minutes": self.settings.queue_max_wait_time_minutes,
            "assignment_timeout_minutes": self.settings.queue_assignment_timeout_minutes,
            "queue_entry_expiration_hours": self.settings.queue_entry_expiration_hours,
            "max_leads_per_agent": self.settings.queue_max_leads_per_agent,
        }

    async def get_config(self, db: AsyncSession, tenant_id: str) -> QueueConfiguration:
        """Tenant's queue configuration, created with defaults on first access."""
        return await queue_config_crud.get_or_create(
            db, tenant_id=tenant_id, defaults=self._config_defaults(), now=self.clock.now()
        )

    async def update_config(
        self,
        db: AsyncSession,
        tenant_id: str,
        update: QueueConfigUpdate,
        updated_by: str | None = None,
    ) -> QueueConfiguration:
        config = await self.get_config(db, tenant_id)
        config = await queue_config_crud.update_for_tenant(
            db, db_obj=config, obj_in=update, updated_by=updated_by, now=self.clock.now()
        )
        logger.info("Queue configuration updated for tenant %s by %s", tenant_id, updated_by)
        return config

    # Enqueue

    async def _resolve_score(self, db: AsyncSession, tenant_id: str, lead_id: str) -> float:
        """Score a lead for enqueueing, falling back to a neutral score."""
        try:
            result = await self.scoring_engine.score_lead(db, lead_id, tenant_id)
            return result.percentage_score
        except (LeadQueueError, ValidationError) as e:
            logger.warning(
                "Scoring failed for lead %s, using fallback score %s: %s",
                lead_id,
                self.settings.queue_fallback_score,
                e,
            )
            return self.settings.queue_fallback_score

    async def _prepare(
        self, db: AsyncSession, tenant_id: str, request: QueueEntryCreate
    ) -> dict[str, Any]:
        score = request.score
        if score is None:
            score = await self._resolve_score(db, tenant_id, request.lead_id)
        priority = request.priority or self.priority_calculator.priority_for_score(score)
        return {
            "lead_id": request.lead_id,
            "priority": priority,
            "score": score,
            "estimated_processing_time": request.estimated_processing_time,
            "assignment_reason": request.assignment_reason,
            "notes": request.notes,
            "tags": request.tags,
            "metadata": request.metadata,
        }

    async def _check_capacity(
        self, db: AsyncSession, tenant_id: str, config: QueueConfiguration, adding: int
    ) -> None:
        current = await queue_entry_crud.count_active(db, tenant_id=tenant_id)
        if current + adding > config.max_queue_size:
            raise CapacityExceededError(
                f"Queue is at capacity ({current}/{config.max_queue_size}), "
                f"cannot add {adding} entries"
            )

    async def add_to_queue(
        self, db: AsyncSession, tenant_id: str, request: QueueEntryCreate
    ) -> QueueEntry:
        """Add a lead to the tenant's queue.

        Raises:
            CapacityExceededError: queue already holds ``max_queue_size``
                active entries.
        """
        entries = await self.batch_add(db, tenant_id, [request])
        return entries[0]

    async def batch_add(
        self, db: AsyncSession, tenant_id: str, requests: list[QueueEntryCreate]
    ) -> list[QueueEntry]:
        """Add several leads at once; either all are queued or none."""
        if not requests:
            return []

        config = await self.get_config(db, tenant_id)
        # Fail fast before scoring; the insert re-checks under the tenant lock
        await self._check_capacity(db, tenant_id, config, len(requests))

        prepared = [await self._prepare(db, tenant_id, request) for request in requests]

        now = self.clock.now()
        entries = await queue_entry_crud.create_many(
            db,
            tenant_id=tenant_id,
            entries=prepared,
            max_size=config.max_queue_size,
            now=now,
            expires_at=now + timedelta(hours=config.queue_entry_expiration_hours),
        )
        for entry in entries:
            logger.info(
                "Lead %s queued for tenant %s with priority %s (position %s)",
                entry.lead_id,
                tenant_id,
                entry.priority.value,
                entry.queue_position,
            )
        return entries

    # Claim and assignment

    async def claim_next(
        self, db: AsyncSession, tenant_id: str, claimant: str | None = None
    ) -> QueueEntry | None:
        """Claim the highest-priority, oldest pending entry.

        Returns:
            The claimed entry, or None when nothing is claimable.
        """
        entry = await queue_entry_crud.claim_next(
            db, tenant_id=tenant_id, claimant=claimant, now=self.clock.now()
        )
        if entry is not None:
            logger.info(
                "Entry %s claimed by %s for tenant %s after %s minutes",
                entry.id,
                claimant,
                tenant_id,
                entry.wait_time_minutes,
            )
        return entry

    async def _get_entry(self, db: AsyncSession, tenant_id: str, entry_id: str) -> QueueEntry:
        entry = await queue_entry_crud.get_for_tenant(db, tenant_id=tenant_id, entry_id=entry_id)
        if entry is None:
            raise NotFoundError(f"Queue entry not found: {entry_id}")
        return entry

    async def assign(
        self,
        db: AsyncSession,
        tenant_id: str,
        entry_id: str,
        agent_id: str,
        assigned_by: str | None = None,
        assignment_reason: str | None = None,
    ) -> QueueEntry:
        """Assign a pending or claimed entry to an agent.

        Raises:
            NotFoundError: no such entry for this tenant.
            InvalidTransitionError: entry is not pending or claimed.
            CapacityExceededError: agent already holds ``max_leads_per_agent``.
        """
        config = await self.get_config(db, tenant_id)

        for _ in range(TRANSITION_ATTEMPTS):
            entry = await self._get_entry(db, tenant_id, entry_id)
            if not entry.can_transition_to(QueueEntryStatus.ASSIGNED):
                raise InvalidTransitionError(
                    f"Cannot assign entry {entry_id} in status {entry.status.value}"
                )

            load = await queue_entry_crud.agent_load(db, tenant_id=tenant_id, agent_id=agent_id)
            if load >= config.max_leads_per_agent:
                raise CapacityExceededError(
                    f"Agent {agent_id} already holds {load} leads "
                    f"(limit {config.max_leads_per_agent})"
                )

            now = self.clock.now()
            values: dict[str, Any] = {
                "status": QueueEntryStatus.ASSIGNED,
                "assigned_to": agent_id,
                "assigned_by": assigned_by,
                "assigned_at": now,
                "updated_at": now,
            }
            if assignment_reason is not None:
                values["assignment_reason"] = assignment_reason

            updated = await queue_entry_crud.compare_and_set(
                db,
                tenant_id=tenant_id,
                entry_id=entry_id,
                expected=entry.status,
                values=values,
                agent_limit=(agent_id, config.max_leads_per_agent),
            )
            if updated is not None:
                logger.info(
                    "Entry %s assigned to %s by %s for tenant %s",
                    entry_id,
                    agent_id,
                    assigned_by,
                    tenant_id,
                )
                return updated

        raise InvalidTransitionError(f"Entry {entry_id} changed concurrently, assignment aborted")

    # Status changes

    def _transition_values(
        self, entry: QueueEntry, new_status: QueueEntryStatus, now: datetime
    ) -> dict[str, Any]:
        values: dict[str, Any] = {"status": new_status, "updated_at": now}
        if new_status == QueueEntryStatus.COMPLETED:
            values["completed_at"] = now
            if entry.assigned_at is not None:
                values["actual_processing_time"] = _minutes_between(entry.assigned_at, now)
        elif new_status == QueueEntryStatus.PENDING:
            # Back in the queue: drop the previous holder
            values.update(
                claimed_by=None,
                claimed_at=None,
                assigned_to=None,
                assigned_by=None,
                assigned_at=None,
            )
        return values

    async def update_status(
        self,
        db: AsyncSession,
        tenant_id: str,
        entry_id: str,
        new_status: QueueEntryStatus,
        notes: str | None = None,
    ) -> QueueEntry:
        """Move an entry along the state machine.

        Raises:
            NotFoundError: no such entry for this tenant.
            InvalidTransitionError: the move is not allowed from the
                entry's current status.
        """
        if new_status in RESERVED_TARGETS:
            raise InvalidTransitionError(
                f"Status {new_status.value} can only be set by claiming or assigning"
            )

        for _ in range(TRANSITION_ATTEMPTS):
            entry = await self._get_entry(db, tenant_id, entry_id)
            if not entry.can_transition_to(new_status):
                raise InvalidTransitionError(
                    f"Invalid status transition from {entry.status.value} to {new_status.value}"
                )
            previous = entry.status

            values = self._transition_values(entry, new_status, self.clock.now())
            if notes is not None:
                values["notes"] = notes

            updated = await queue_entry_crud.compare_and_set(
                db,
                tenant_id=tenant_id,
                entry_id=entry_id,
                expected=previous,
                values=values,
            )
            if updated is not None:
                logger.info(
                    "Entry %s moved from %s to %s for tenant %s",
                    entry_id,
                    previous.value,
                    new_status.value,
                    tenant_id,
                )
                return updated

        raise InvalidTransitionError(f"Entry {entry_id} changed concurrently, update aborted")

    async def reorder(
        self,
        db: AsyncSession,
        tenant_id: str,
        entry_id: str,
        priority: QueuePriority,
    ) -> QueueEntry:
        """Change the priority of a pending entry.

        Position and creation time are kept, so the entry stays FIFO
        within its new tier.
        """
        entry = await self._get_entry(db, tenant_id, entry_id)
        if entry.status != QueueEntryStatus.PENDING:
            raise InvalidTransitionError(
                f"Only pending entries can be reordered, entry {entry_id} is {entry.status.value}"
            )

        updated = await queue_entry_crud.compare_and_set(
            db,
            tenant_id=tenant_id,
            entry_id=entry_id,
            expected=QueueEntryStatus.PENDING,
            values={
                "priority": priority,
                "priority_rank": priority.rank,
                "updated_at": self.clock.now(),
            },
        )
        if updated is None:
            raise InvalidTransitionError(f"Entry {entry_id} left pending before it was reordered")

        logger.info("Entry %s reprioritised to %s for tenant %s", entry_id, priority.value, tenant_id)
        return updated

    async def remove_from_queue(self, db: AsyncSession, tenant_id: str, entry_id: str) -> None:
        """Delete an entry.

        Raises:
            NotFoundError: no such entry for this tenant.
        """
        deleted = await queue_entry_crud.delete_for_tenant(
            db, tenant_id=tenant_id, entry_id=entry_id
        )
        if not deleted:
            raise NotFoundError(f"Queue entry not found: {entry_id}")
        logger.info("Entry %s removed from queue for tenant %s", entry_id, tenant_id)

    # Maintenance

    async def expire_sweep(self, db: AsyncSession, tenant_id: str) -> int:
        """Expire pending entries past their expiry time.

        Returns:
            Number of entries expired (or deleted, when the tenant purges).
        """
        config = await self.get_config(db, tenant_id)
        count = await queue_entry_crud.expire_pending(
            db,
            tenant_id=tenant_id,
            now=self.clock.now(),
            purge=config.purge_expired_entries,
        )
        if count:
            logger.info("Expired %s queue entries for tenant %s", count, tenant_id)
        return count

    async def release_stale(self, db: AsyncSession, tenant_id: str) -> int:
        """Release entries held longer than the assignment timeout.

        Does nothing unless the tenant enables the stale watchdog.
        """
        config = await self.get_config(db, tenant_id)
        if not config.enable_stale_watchdog:
            return 0

        now = self.clock.now()
        released = await queue_entry_crud.release_stale(
            db,
            tenant_id=tenant_id,
            cutoff=now - timedelta(minutes=config.assignment_timeout_minutes),
            now=now,
            expire=config.stale_entry_action == StaleEntryAction.EXPIRE,
        )
        if released:
            logger.info(
                "Released %s stale entries for tenant %s (%s)",
                released,
                tenant_id,
                config.stale_entry_action.value,
            )
        return released

    # Reporting

    async def get_status(self, db: AsyncSession, tenant_id: str) -> QueueStatus:
        """Counts, averages and health of the tenant's queue."""
        config = await self.get_config(db, tenant_id)
        counts = await queue_entry_crud.count_by_status(db, tenant_id=tenant_id)
        now = self.clock.now()

        pending_since = await queue_entry_crud.pending_created_at(db, tenant_id=tenant_id)
        average_wait = (
            sum((now - created).total_seconds() / 60 for created in pending_since)
            / len(pending_since)
            if pending_since
            else 0.0
        )

        active = sum(counts[status] for status in ACTIVE_STATUSES)
        total = sum(counts.values())
        utilization = total / config.max_queue_size * 100 if config.max_queue_size else 0.0
        if utilization > HEALTH_CRITICAL_UTILIZATION:
            health = "critical"
        elif utilization > HEALTH_WARNING_UTILIZATION:
            health = "warning"
        else:
            health = "healthy"

        return QueueStatus(
            total_leads=active,
            total_entries=total,
            pending_leads=counts[QueueEntryStatus.PENDING],
            claimed_leads=counts[QueueEntryStatus.CLAIMED],
            assigned_leads=counts[QueueEntryStatus.ASSIGNED],
            processing_leads=counts[QueueEntryStatus.PROCESSING],
            completed_leads=counts[QueueEntryStatus.COMPLETED],
            cancelled_leads=counts[QueueEntryStatus.CANCELLED],
            expired_leads=counts[QueueEntryStatus.EXPIRED],
            average_wait_time=round(average_wait, 2),
            average_processing_time=round(
                await queue_entry_crud.average_processing_time(db, tenant_id=tenant_id), 2
            ),
            queue_utilization=round(utilization, 2),
            health_status=health,
            active_agents=await queue_entry_crud.count_active_agents(db, tenant_id=tenant_id),
            priority_distribution=await queue_entry_crud.priority_distribution(
                db, tenant_id=tenant_id
            ),
            last_updated=now,
        )

    async def list_entries(
        self,
        db: AsyncSession,
        tenant_id: str,
        status: QueueEntryStatus | None = None,
        priority: QueuePriority | None = None,
        assigned_to: str | None = None,
        page: int = 1,
        limit: int = 50,
    ) -> tuple[list[QueueEntry], int]:
        return await queue_entry_crud.list_for_tenant(
            db,
            tenant_id=tenant_id,
            status=status,
            priority=priority,
            assigned_to=assigned_to,
            skip=(page - 1) * limit,
            limit=limit,
        )
