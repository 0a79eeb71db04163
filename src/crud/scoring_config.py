"""CRUD operations for stored scoring configurations."""

from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.crud.base import CRUDBase, retry_reads, store_write
from src.models.scoring_config import ScoringConfigurationRecord
from src.schemas.scoring import ScoringConfigurationCreate, ScoringConfigurationUpdate


class CRUDScoringConfig(
    CRUDBase[ScoringConfigurationRecord, ScoringConfigurationCreate, ScoringConfigurationUpdate]
):
    """CRUD operations for ScoringConfigurationRecord."""

    @retry_reads
    async def get_by_scope(
        self, db: AsyncSession, *, scope: str
    ) -> ScoringConfigurationRecord | None:
        """Get the configuration stored for a scope."""
        result = await db.execute(
            select(ScoringConfigurationRecord).where(ScoringConfigurationRecord.scope == scope)
        )
        return result.scalar_one_or_none()

    async def get_or_create(
        self,
        db: AsyncSession,
        *,
        scope: str,
        defaults: dict[str, Any],
        now: datetime,
    ) -> ScoringConfigurationRecord:
        """Get the configuration for a scope, creating it from ``defaults``."""
        existing = await self.get_by_scope(db, scope=scope)
        if existing is not None:
            return existing

        db_obj = ScoringConfigurationRecord(scope=scope, version=1, created_at=now, **defaults)
        async with store_write(db):
            try:
                db.add(db_obj)
                await db.commit()
            except IntegrityError:
                # Another request created it first
                await db.rollback()
                return await self.get_by_scope(db, scope=scope)
        return db_obj

    async def replace(
        self,
        db: AsyncSession,
        *,
        scope: str,
        data: dict[str, Any],
        updated_by: str | None,
        now: datetime,
    ) -> ScoringConfigurationRecord:
        """Replace the whole configuration for a scope and bump its version."""
        async with store_write(db):
            result = await db.execute(
                select(ScoringConfigurationRecord)
                .where(ScoringConfigurationRecord.scope == scope)
                .with_for_update()
            )
            db_obj = result.scalar_one_or_none()
            if db_obj is None:
                db_obj = ScoringConfigurationRecord(scope=scope, version=1, created_at=now)
                db.add(db_obj)
            else:
                db_obj.version += 1

            for field, value in data.items():
                setattr(db_obj, field, value)
            db_obj.updated_at = now
            db_obj.updated_by = updated_by

            await db.commit()
            await db.refresh(db_obj)
        return db_obj


scoring_config = CRUDScoringConfig(ScoringConfigurationRecord)
