"""CRUD operations for QueueConfiguration model."""

from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.crud.base import CRUDBase, retry_reads, store_write
from src.models.queue_config import QueueConfiguration
from src.models.queue_entry import QueueSequence
from src.schemas.queue import QueueConfigRead, QueueConfigUpdate


class CRUDQueueConfig(CRUDBase[QueueConfiguration, QueueConfigRead, QueueConfigUpdate]):
    """CRUD operations for QueueConfiguration."""

    @retry_reads
    async def get_by_tenant(self, db: AsyncSession, *, tenant_id: str) -> QueueConfiguration | None:
        """Get a tenant's queue configuration."""
        result = await db.execute(
            select(QueueConfiguration).where(QueueConfiguration.tenant_id == tenant_id)
        )
        return result.scalar_one_or_none()

    async def get_or_create(
        self,
        db: AsyncSession,
        *,
        tenant_id: str,
        defaults: dict[str, Any],
        now: datetime,
    ) -> QueueConfiguration:
        """Get a tenant's configuration, creating it with ``defaults``.

        The tenant's position counter is created alongside, so later
        enqueues only ever update it.
        """
        existing = await self.get_by_tenant(db, tenant_id=tenant_id)
        if existing is not None:
            return existing

        db_obj = QueueConfiguration(tenant_id=tenant_id, created_at=now, **defaults)
        async with store_write(db):
            try:
                db.add(db_obj)
                if await db.get(QueueSequence, tenant_id) is None:
                    db.add(QueueSequence(tenant_id=tenant_id, last_position=0))
                await db.commit()
            except IntegrityError:
                # Created concurrently by another request
                await db.rollback()
                return await self.get_by_tenant(db, tenant_id=tenant_id)
        return db_obj

    async def update_for_tenant(
        self,
        db: AsyncSession,
        *,
        db_obj: QueueConfiguration,
        obj_in: QueueConfigUpdate,
        updated_by: str | None,
        now: datetime,
    ) -> QueueConfiguration:
        """Apply the fields set on ``obj_in``."""
        update_data = obj_in.model_dump(exclude_unset=True, exclude_none=True)
        update_data["updated_at"] = now
        update_data["updated_by"] = updated_by
        return await self.update(db, db_obj=db_obj, obj_in=update_data)


queue_config = CRUDQueueConfig(QueueConfiguration)
