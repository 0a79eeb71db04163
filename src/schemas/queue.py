"""Pydantic schemas for the lead queue."""

from datetime import datetime
from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from src.models.queue_config import StaleEntryAction
from src.models.queue_entry import QueueEntryStatus, QueuePriority


class QueueEntryBase(BaseModel):
    """Base schema for QueueEntry."""

    lead_id: str
    estimated_processing_time: int | None = Field(default=None, ge=0)
    assignment_reason: str | None = Field(default=None, max_length=500)
    notes: str | None = None
    tags: list[str] = Field(default_factory=list)


class QueueEntryCreate(QueueEntryBase):
    """Schema for enqueueing a lead.

    Missing ``score`` is computed by the scoring engine; missing
    ``priority`` is derived from the score.
    """

    priority: QueuePriority | None = None
    score: float | None = Field(default=None, ge=0, le=100)
    metadata: dict | None = None


class QueueBatchCreate(BaseModel):
    """Schema for enqueueing several leads at once (all or nothing)."""

    entries: list[QueueEntryCreate] = Field(min_length=1, max_length=500)


class QueueEntryRead(QueueEntryBase):
    """Schema for reading a QueueEntry."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    tenant_id: str
    priority: QueuePriority
    status: QueueEntryStatus
    score: float
    queue_position: int
    wait_time_minutes: int
    actual_processing_time: int | None
    # Mapped as `extra` on the model, `metadata` being reserved there
    metadata: dict | None = Field(default=None, validation_alias=AliasChoices("extra", "metadata"))
    claimed_by: str | None
    assigned_to: str | None
    assigned_by: str | None
    created_at: datetime
    updated_at: datetime | None
    expires_at: datetime
    claimed_at: datetime | None
    assigned_at: datetime | None
    completed_at: datetime | None


class QueueEntryPage(BaseModel):
    """Paginated list of queue entries."""

    entries: list[QueueEntryRead]
    total: int
    page: int
    limit: int


class AssignRequest(BaseModel):
    agent_id: str = Field(min_length=1)
    assignment_reason: str | None = Field(default=None, max_length=500)


class StatusUpdate(BaseModel):
    status: QueueEntryStatus
    notes: str | None = None


class PriorityUpdate(BaseModel):
    priority: QueuePriority


class QueueStatusRead(BaseModel):
    """Queue health and statistics for one tenant."""

    total_leads: int  # Active entries, the ones occupying capacity
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
    health_status: Literal["healthy", "warning", "critical"]
    active_agents: int
    priority_distribution: dict[str, int]
    last_updated: datetime


class SweepResponse(BaseModel):
    expired: int


class ReleaseStaleResponse(BaseModel):
    released: int
    action: StaleEntryAction | None


class QueueConfigRead(BaseModel):
    """Schema for reading a tenant's queue configuration."""

    model_config = ConfigDict(from_attributes=True)

    tenant_id: str
    max_queue_size: int
    max_wait_time_minutes: int
    assignment_timeout_minutes: int
    queue_entry_expiration_hours: int
    purge_expired_entries: bool
    max_leads_per_agent: int
    max_workload_percentage: int
    priority_weights: dict[str, int]
    enable_auto_scaling: bool
    scaling_threshold: int
    scaling_cooldown_minutes: int
    enable_alerts: bool
    alert_threshold: int
    alert_cooldown_minutes: int
    enable_stale_watchdog: bool
    stale_entry_action: StaleEntryAction
    created_at: datetime
    updated_at: datetime | None
    updated_by: str | None


class QueueConfigUpdate(BaseModel):
    """Schema for updating a tenant's queue configuration."""

    max_queue_size: int | None = Field(default=None, gt=0)
    max_wait_time_minutes: int | None = Field(default=None, gt=0)
    assignment_timeout_minutes: int | None = Field(default=None, gt=0)
    queue_entry_expiration_hours: int | None = Field(default=None, gt=0)
    purge_expired_entries: bool | None = None
    max_leads_per_agent: int | None = Field(default=None, gt=0)
    max_workload_percentage: int | None = Field(default=None, ge=0, le=100)
    urgent_priority_weight: int | None = Field(default=None, gt=0)
    high_priority_weight: int | None = Field(default=None, gt=0)
    normal_priority_weight: int | None = Field(default=None, gt=0)
    low_priority_weight: int | None = Field(default=None, gt=0)
    enable_auto_scaling: bool | None = None
    scaling_threshold: int | None = Field(default=None, ge=0, le=100)
    scaling_cooldown_minutes: int | None = Field(default=None, ge=0)
    enable_alerts: bool | None = None
    alert_threshold: int | None = Field(default=None, ge=0, le=100)
    alert_cooldown_minutes: int | None = Field(default=None, ge=0)
    enable_stale_watchdog: bool | None = None
    stale_entry_action: StaleEntryAction | None = None
