"""CRUD operations for Lead model."""

from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.crud.base import CRUDBase, retry_reads, store_write
from src.models.lead import Lead
from src.schemas.lead import LeadCreate, LeadScoreUpdate

# Nested documents that must be stored JSON-safe
JSON_FIELDS = {"property_preferences", "financial_info", "communication_history", "properties_viewed", "offers"}


class CRUDLead(CRUDBase[Lead, LeadCreate, LeadScoreUpdate]):
    """CRUD operations for Lead."""

    async def create(self, db: AsyncSession, *, obj_in: LeadCreate) -> Lead:
        """Create a lead, serialising nested documents for the JSON columns."""
        data = obj_in.model_dump(exclude=JSON_FIELDS, exclude_none=True)
        data.update(obj_in.model_dump(mode="json", include=JSON_FIELDS))
        db_obj = Lead(**data)
        async with store_write(db):
            db.add(db_obj)
            await db.commit()
            await db.refresh(db_obj)
        return db_obj

    @retry_reads
    async def get_by_lead_id(self, db: AsyncSession, *, lead_id: str) -> Lead | None:
        """Get lead by its external lead id."""
        result = await db.execute(select(Lead).where(Lead.lead_id == lead_id))
        return result.scalar_one_or_none()

    @retry_reads
    async def get_ids_by_tenant(
        self,
        db: AsyncSession,
        *,
        tenant_id: str,
        skip: int = 0,
        limit: int = 500,
    ) -> list[str]:
        """Get lead ids for a tenant, oldest first."""
        result = await db.execute(
            select(Lead.lead_id)
            .where(Lead.tenant_id == tenant_id)
            .order_by(Lead.created_at, Lead.id)
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def update_score(
        self,
        db: AsyncSession,
        *,
        lead_id: str,
        score: float,
        scored_at: datetime,
    ) -> bool:
        """Write the percentage score back onto the lead.

        Only ``score`` and ``scored_at`` are touched.
        """
        async with store_write(db):
            result = await db.execute(
                update(Lead)
                .where(Lead.lead_id == lead_id)
                .values(score=score, scored_at=scored_at)
            )
            await db.commit()
        return result.rowcount > 0


lead = CRUDLead(Lead)
