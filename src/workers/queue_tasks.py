"""Celery tasks for queue maintenance."""

import asyncio
import logging
from typing import Any

from celery import shared_task
from sqlalchemy.exc import SQLAlchemyError

from src.crud.queue_entry import queue_entry as queue_entry_crud
from src.services.errors import LeadQueueError
from src.services.queue import QueueManager
from src.workers.session import task_session_factory

logger = logging.getLogger(__name__)


@shared_task(bind=True)
def sweep_queues(self: Any) -> dict[str, Any]:
    """Expire overdue entries and release stale ones for every tenant.

    A failing tenant is logged and skipped so the others are still swept.

    Returns:
        Dictionary with per-tenant counts.
    """
    async def _run() -> dict[str, Any]:
        manager = QueueManager()
        expired: dict[str, int] = {}
        released: dict[str, int] = {}
        failed: list[str] = []

        async with task_session_factory() as session_factory:
            async with session_factory() as session:
                tenant_ids = await queue_entry_crud.tenant_ids(session)

            for tenant_id in tenant_ids:
                async with session_factory() as session:
                    try:
                        expired[tenant_id] = await manager.expire_sweep(session, tenant_id)
                        released[tenant_id] = await manager.release_stale(session, tenant_id)
                    except (LeadQueueError, SQLAlchemyError) as e:
                        logger.error("Queue sweep failed for tenant %s: %s", tenant_id, e)
                        failed.append(tenant_id)

        return {
            "success": not failed,
            "tenants": len(tenant_ids),
            "expired": sum(expired.values()),
            "released": sum(released.values()),
            "failed_tenants": failed,
        }

    return asyncio.run(_run())
