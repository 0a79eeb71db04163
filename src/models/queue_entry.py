"""Queue entry model for the per-tenant lead work queue."""

import enum
from datetime import datetime

from sqlalchemy import (
    JSON,
    Enum,
    Float,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from src.database import Base
from src.models.types import UTCDateTime


class QueuePriority(str, enum.Enum):
    """Priority tier of a queue entry."""

    URGENT = "urgent"
    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"

    @property
    def rank(self) -> int:
        """Sort rank, lowest is claimed first."""
        return PRIORITY_RANKS[self]


PRIORITY_RANKS: dict[QueuePriority, int] = {
    QueuePriority.URGENT: 0,
    QueuePriority.HIGH: 1,
    QueuePriority.NORMAL: 2,
    QueuePriority.LOW: 3,
}


class QueueEntryStatus(str, enum.Enum):
    """Lifecycle status of a queue entry."""

    PENDING = "pending"  # Waiting to be claimed
    CLAIMED = "claimed"  # Reserved by a claimant, not yet assigned
    ASSIGNED = "assigned"  # Assigned to an agent
    PROCESSING = "processing"  # Agent is working the lead
    COMPLETED = "completed"  # Terminal
    CANCELLED = "cancelled"  # Terminal
    EXPIRED = "expired"  # Terminal

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {QueueEntryStatus.COMPLETED, QueueEntryStatus.CANCELLED, QueueEntryStatus.EXPIRED}
)

ACTIVE_STATUSES = frozenset(
    {
        QueueEntryStatus.PENDING,
        QueueEntryStatus.CLAIMED,
        QueueEntryStatus.ASSIGNED,
        QueueEntryStatus.PROCESSING,
    }
)

VALID_TRANSITIONS: dict[QueueEntryStatus, frozenset[QueueEntryStatus]] = {
    QueueEntryStatus.PENDING: frozenset(
        {
            QueueEntryStatus.CLAIMED,
            QueueEntryStatus.ASSIGNED,
            QueueEntryStatus.CANCELLED,
            QueueEntryStatus.EXPIRED,
        }
    ),
    QueueEntryStatus.CLAIMED: frozenset(
        {
            QueueEntryStatus.ASSIGNED,
            QueueEntryStatus.PENDING,  # Released by the claimant or the watchdog
            QueueEntryStatus.CANCELLED,
        }
    ),
    QueueEntryStatus.ASSIGNED: frozenset(
        {
            QueueEntryStatus.PROCESSING,
            QueueEntryStatus.PENDING,  # Re-queued
            QueueEntryStatus.CANCELLED,
            QueueEntryStatus.EXPIRED,
        }
    ),
    QueueEntryStatus.PROCESSING: frozenset(
        {
            QueueEntryStatus.COMPLETED,
            QueueEntryStatus.PENDING,  # Re-queued
            QueueEntryStatus.CANCELLED,
            QueueEntryStatus.EXPIRED,
        }
    ),
    QueueEntryStatus.COMPLETED: frozenset(),
    QueueEntryStatus.CANCELLED: frozenset(),
    QueueEntryStatus.EXPIRED: frozenset(),
}


def sources_for(target: QueueEntryStatus) -> frozenset[QueueEntryStatus]:
    """Statuses from which ``target`` can be reached."""
    return frozenset(
        source for source, targets in VALID_TRANSITIONS.items() if target in targets
    )


class QueueEntry(Base):
    """A lead waiting in (or moving through) a tenant's work queue."""

    __tablename__ = "queue_entries"
    __table_args__ = (
        UniqueConstraint("tenant_id", "queue_position", name="uq_queue_entries_tenant_position"),
        Index(
            "ix_queue_entries_claim",
            "tenant_id",
            "status",
            "priority_rank",
            "created_at",
            "queue_position",
        ),
        Index("ix_queue_entries_tenant_lead", "tenant_id", "lead_id"),
        Index("ix_queue_entries_tenant_agent", "tenant_id", "assigned_to", "status"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    lead_id: Mapped[str] = mapped_column(String(36), nullable=False)

    priority: Mapped[QueuePriority] = mapped_column(
        Enum(QueuePriority), nullable=False, default=QueuePriority.NORMAL
    )
    # Denormalised from priority so claims can order by it
    priority_rank: Mapped[int] = mapped_column(Integer, nullable=False, default=2)
    status: Mapped[QueueEntryStatus] = mapped_column(
        Enum(QueueEntryStatus), nullable=False, default=QueueEntryStatus.PENDING
    )

    score: Mapped[float] = mapped_column(Float, nullable=False)
    queue_position: Mapped[int] = mapped_column(Integer, nullable=False)
    wait_time_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    estimated_processing_time: Mapped[int | None] = mapped_column(Integer, nullable=True)
    actual_processing_time: Mapped[int | None] = mapped_column(Integer, nullable=True)

    assignment_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    tags: Mapped[list] = mapped_column(JSON, default=list)
    extra: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True)

    claimed_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    assigned_to: Mapped[str | None] = mapped_column(String(64), nullable=True)
    assigned_by: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    claimed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    assigned_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<QueueEntry(id='{self.id}', tenant_id='{self.tenant_id}', "
            f"priority={self.priority}, status={self.status})>"
        )

    def can_transition_to(self, new_status: QueueEntryStatus) -> bool:
        """Check if status transition is valid."""
        return new_status in VALID_TRANSITIONS.get(self.status, frozenset())


class QueueSequence(Base):
    """Per-tenant counter handing out queue positions.

    Positions are never reused, even after entries are deleted. The row is
    also the lock that serialises concurrent inserts for one tenant.
    """

    __tablename__ = "queue_sequences"

    tenant_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    last_position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<QueueSequence(tenant_id='{self.tenant_id}', last_position={self.last_position})>"
