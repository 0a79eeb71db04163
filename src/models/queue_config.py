"""Per-tenant queue configuration model."""

import enum
from datetime import datetime

from sqlalchemy import Boolean, Enum, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from src.database import Base
from src.models.types import UTCDateTime


class StaleEntryAction(str, enum.Enum):
    """What the watchdog does with entries stuck past the assignment timeout."""

    REQUEUE = "requeue"
    EXPIRE = "expire"


class QueueConfiguration(Base):
    """Tunables for one tenant's queue, created with defaults on first access."""

    __tablename__ = "queue_configurations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)

    # Queue settings
    max_queue_size: Mapped[int] = mapped_column(Integer, default=1000)
    max_wait_time_minutes: Mapped[int] = mapped_column(Integer, default=30)
    assignment_timeout_minutes: Mapped[int] = mapped_column(Integer, default=5)
    queue_entry_expiration_hours: Mapped[int] = mapped_column(Integer, default=24)
    purge_expired_entries: Mapped[bool] = mapped_column(Boolean, default=False)

    # Assignment settings
    max_leads_per_agent: Mapped[int] = mapped_column(Integer, default=10)
    max_workload_percentage: Mapped[int] = mapped_column(Integer, default=80)

    # Priority weights (stored for future weighting schemes)
    urgent_priority_weight: Mapped[int] = mapped_column(Integer, default=1)
    high_priority_weight: Mapped[int] = mapped_column(Integer, default=2)
    normal_priority_weight: Mapped[int] = mapped_column(Integer, default=3)
    low_priority_weight: Mapped[int] = mapped_column(Integer, default=4)

    # Scaling and alerting
    enable_auto_scaling: Mapped[bool] = mapped_column(Boolean, default=False)
    scaling_threshold: Mapped[int] = mapped_column(Integer, default=80)
    scaling_cooldown_minutes: Mapped[int] = mapped_column(Integer, default=20)
    enable_alerts: Mapped[bool] = mapped_column(Boolean, default=True)
    alert_threshold: Mapped[int] = mapped_column(Integer, default=90)
    alert_cooldown_minutes: Mapped[int] = mapped_column(Integer, default=5)

    # Watchdog for entries stuck in claimed/assigned/processing
    enable_stale_watchdog: Mapped[bool] = mapped_column(Boolean, default=False)
    stale_entry_action: Mapped[StaleEntryAction] = mapped_column(
        Enum(StaleEntryAction), default=StaleEntryAction.REQUEUE
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    updated_by: Mapped[str | None] = mapped_column(String(64), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<QueueConfiguration(tenant_id='{self.tenant_id}', "
            f"max_queue_size={self.max_queue_size})>"
        )

    @property
    def priority_weights(self) -> dict[str, int]:
        return {
            "urgent": self.urgent_priority_weight,
            "high": self.high_priority_weight,
            "normal": self.normal_priority_weight,
            "low": self.low_priority_weight,
        }
