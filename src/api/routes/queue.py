"""API routes for the lead queue."""

from dataclasses import asdict

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.deps import get_queue_manager, get_tenant_id, get_user_id
from src.database import get_db
from src.models.queue_entry import QueueEntryStatus, QueuePriority
from src.schemas.queue import (
    AssignRequest,
    PriorityUpdate,
    QueueBatchCreate,
    QueueConfigRead,
    QueueConfigUpdate,
    QueueEntryCreate,
    QueueEntryPage,
    QueueEntryRead,
    QueueStatusRead,
    ReleaseStaleResponse,
    StatusUpdate,
    SweepResponse,
)
from src.services.queue import QueueManager

router = APIRouter(prefix="/queue", tags=["queue"])


@router.post("", response_model=QueueEntryRead, status_code=status.HTTP_201_CREATED)
async def add_to_queue(
    request: QueueEntryCreate,
    db: AsyncSession = Depends(get_db),
    manager: QueueManager = Depends(get_queue_manager),
    tenant_id: str = Depends(get_tenant_id),
) -> QueueEntryRead:
    """Add a lead to the queue.

    Without an explicit score the lead is scored first; without an
    explicit priority one is derived from the score.
    """
    entry = await manager.add_to_queue(db, tenant_id, request)
    return QueueEntryRead.model_validate(entry)


@router.post("/batch", response_model=list[QueueEntryRead], status_code=status.HTTP_201_CREATED)
async def batch_add_to_queue(
    request: QueueBatchCreate,
    db: AsyncSession = Depends(get_db),
    manager: QueueManager = Depends(get_queue_manager),
    tenant_id: str = Depends(get_tenant_id),
) -> list[QueueEntryRead]:
    """Add several leads; either all are queued or none."""
    entries = await manager.batch_add(db, tenant_id, request.entries)
    return [QueueEntryRead.model_validate(entry) for entry in entries]


@router.post(
    "/claim",
    response_model=QueueEntryRead,
    responses={status.HTTP_204_NO_CONTENT: {"description": "Nothing to claim"}},
)
async def claim_next(
    db: AsyncSession = Depends(get_db),
    manager: QueueManager = Depends(get_queue_manager),
    tenant_id: str = Depends(get_tenant_id),
    user_id: str | None = Depends(get_user_id),
) -> QueueEntryRead | Response:
    """Claim the next entry in priority order."""
    entry = await manager.claim_next(db, tenant_id, claimant=user_id)
    if entry is None:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return QueueEntryRead.model_validate(entry)


@router.get("/status", response_model=QueueStatusRead)
async def get_queue_status(
    db: AsyncSession = Depends(get_db),
    manager: QueueManager = Depends(get_queue_manager),
    tenant_id: str = Depends(get_tenant_id),
) -> QueueStatusRead:
    """Queue counts, averages and health."""
    queue_status = await manager.get_status(db, tenant_id)
    return QueueStatusRead(**asdict(queue_status))


@router.get("/entries", response_model=QueueEntryPage)
async def list_queue_entries(
    status_filter: QueueEntryStatus | None = Query(default=None, alias="status"),
    priority: QueuePriority | None = None,
    assigned_to: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    manager: QueueManager = Depends(get_queue_manager),
    tenant_id: str = Depends(get_tenant_id),
) -> QueueEntryPage:
    """List entries in claim order, with optional filters."""
    entries, total = await manager.list_entries(
        db,
        tenant_id,
        status=status_filter,
        priority=priority,
        assigned_to=assigned_to,
        page=page,
        limit=limit,
    )
    return QueueEntryPage(
        entries=[QueueEntryRead.model_validate(entry) for entry in entries],
        total=total,
        page=page,
        limit=limit,
    )


@router.post("/sweep", response_model=SweepResponse)
async def sweep_expired(
    db: AsyncSession = Depends(get_db),
    manager: QueueManager = Depends(get_queue_manager),
    tenant_id: str = Depends(get_tenant_id),
) -> SweepResponse:
    """Expire pending entries past their expiry time."""
    return SweepResponse(expired=await manager.expire_sweep(db, tenant_id))


@router.post("/release-stale", response_model=ReleaseStaleResponse)
async def release_stale_entries(
    db: AsyncSession = Depends(get_db),
    manager: QueueManager = Depends(get_queue_manager),
    tenant_id: str = Depends(get_tenant_id),
) -> ReleaseStaleResponse:
    """Release entries held past the assignment timeout."""
    released = await manager.release_stale(db, tenant_id)
    config = await manager.get_config(db, tenant_id)
    return ReleaseStaleResponse(
        released=released,
        action=config.stale_entry_action if config.enable_stale_watchdog else None,
    )


@router.get("/config", response_model=QueueConfigRead)
async def get_queue_config(
    db: AsyncSession = Depends(get_db),
    manager: QueueManager = Depends(get_queue_manager),
    tenant_id: str = Depends(get_tenant_id),
) -> QueueConfigRead:
    """Get the tenant's queue configuration."""
    return QueueConfigRead.model_validate(await manager.get_config(db, tenant_id))


@router.put("/config", response_model=QueueConfigRead)
async def update_queue_config(
    update: QueueConfigUpdate,
    db: AsyncSession = Depends(get_db),
    manager: QueueManager = Depends(get_queue_manager),
    tenant_id: str = Depends(get_tenant_id),
    user_id: str | None = Depends(get_user_id),
) -> QueueConfigRead:
    """Update the tenant's queue configuration."""
    config = await manager.update_config(db, tenant_id, update, updated_by=user_id)
    return QueueConfigRead.model_validate(config)


@router.post("/{entry_id}/assign", response_model=QueueEntryRead)
async def assign_entry(
    entry_id: str,
    request: AssignRequest,
    db: AsyncSession = Depends(get_db),
    manager: QueueManager = Depends(get_queue_manager),
    tenant_id: str = Depends(get_tenant_id),
    user_id: str | None = Depends(get_user_id),
) -> QueueEntryRead:
    """Assign a pending or claimed entry to an agent."""
    entry = await manager.assign(
        db,
        tenant_id,
        entry_id,
        request.agent_id,
        assigned_by=user_id,
        assignment_reason=request.assignment_reason,
    )
    return QueueEntryRead.model_validate(entry)


@router.put("/{entry_id}/status", response_model=QueueEntryRead)
async def update_entry_status(
    entry_id: str,
    update: StatusUpdate,
    db: AsyncSession = Depends(get_db),
    manager: QueueManager = Depends(get_queue_manager),
    tenant_id: str = Depends(get_tenant_id),
) -> QueueEntryRead:
    """Move an entry to a new status."""
    entry = await manager.update_status(db, tenant_id, entry_id, update.status, notes=update.notes)
    return QueueEntryRead.model_validate(entry)


@router.put("/{entry_id}/priority", response_model=QueueEntryRead)
async def update_entry_priority(
    entry_id: str,
    update: PriorityUpdate,
    db: AsyncSession = Depends(get_db),
    manager: QueueManager = Depends(get_queue_manager),
    tenant_id: str = Depends(get_tenant_id),
) -> QueueEntryRead:
    """Change the priority of a pending entry."""
    entry = await manager.reorder(db, tenant_id, entry_id, update.priority)
    return QueueEntryRead.model_validate(entry)


@router.delete("/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_from_queue(
    entry_id: str,
    db: AsyncSession = Depends(get_db),
    manager: QueueManager = Depends(get_queue_manager),
    tenant_id: str = Depends(get_tenant_id),
) -> None:
    """Remove an entry from the queue."""
    await manager.remove_from_queue(db, tenant_id, entry_id)
