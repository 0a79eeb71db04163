"""Celery tasks for lead scoring."""

import asyncio
import logging
from datetime import datetime
from typing import Any

from celery import shared_task

from src.crud.lead import lead as lead_crud
from src.services.scoring import ScoringEngine
from src.workers.session import task_session_factory

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=3, default_retry_delay=60)
def recalculate_scores_task(
    self: Any,
    lead_ids: list[str] | None = None,
    tenant_id: str | None = None,
    limit: int = 500,
) -> dict[str, Any]:
    """Re-score leads and save the new scores.

    Args:
        self: Celery task instance.
        lead_ids: Specific leads to re-score (optional).
        tenant_id: Restrict to one tenant; also selects its scoring
            configuration.
        limit: Maximum leads to process when ``lead_ids`` is not given.

    Returns:
        Dictionary with batch results.
    """
    async def _run() -> dict[str, Any]:
        start_time = datetime.now()

        async with task_session_factory() as session_factory:
            async with session_factory() as session:
                if lead_ids:
                    targets = list(lead_ids)
                elif tenant_id:
                    targets = await lead_crud.get_ids_by_tenant(
                        session, tenant_id=tenant_id, limit=limit
                    )
                else:
                    leads = await lead_crud.get_multi(session, limit=limit)
                    targets = [lead.lead_id for lead in leads]

                if not targets:
                    return {
                        "success": True,
                        "leads_processed": 0,
                        "message": "No leads to score",
                    }

                engine = ScoringEngine()
                results = await engine.batch_calculate(session, targets, tenant_id)
                for lead_id, result in results.items():
                    await lead_crud.update_score(
                        session,
                        lead_id=lead_id,
                        score=result.percentage_score,
                        scored_at=result.last_updated,
                    )

        by_category: dict[str, int] = {}
        for result in results.values():
            by_category[result.category.value] = by_category.get(result.category.value, 0) + 1

        average = (
            sum(r.percentage_score for r in results.values()) / len(results) if results else 0
        )
        duration = (datetime.now() - start_time).total_seconds()
        logger.info(
            "Recalculated %s of %s lead scores in %.1fs", len(results), len(targets), duration
        )

        return {
            "success": True,
            "leads_processed": len(results),
            "failed": [lead_id for lead_id in targets if lead_id not in results],
            "average_score": round(average, 1),
            "by_category": by_category,
            "duration_seconds": duration,
        }

    return asyncio.run(_run())
