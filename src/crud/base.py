"""Generic CRUD base class and store error handling."""

import functools
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, Generic, ParamSpec, TypeVar

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.config import get_settings
from src.database import Base
from src.services.errors import TransientStoreError

ModelType = TypeVar("ModelType", bound=Base)
CreateSchemaType = TypeVar("CreateSchemaType", bound=BaseModel)
UpdateSchemaType = TypeVar("UpdateSchemaType", bound=BaseModel)

P = ParamSpec("P")
R = TypeVar("R")

TRANSIENT_ERRORS = (OperationalError, InterfaceError)


def retry_reads(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
    """Retry an idempotent read on connection errors.

    The wrapped method must take the session as its first argument after
    ``self``. The session is rolled back between attempts.
    """

    @functools.wraps(func)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        settings = get_settings()
        db: AsyncSession = args[1] if len(args) > 1 else kwargs["db"]  # type: ignore[assignment]

        async def attempt() -> R:
            try:
                return await func(*args, **kwargs)
            except TRANSIENT_ERRORS:
                await db.rollback()
                raise

        retrying = AsyncRetrying(
            stop=stop_after_attempt(settings.store_read_attempts),
            wait=wait_exponential(
                min=settings.store_retry_min_seconds,
                max=settings.store_retry_max_seconds,
            ),
            retry=retry_if_exception_type(TRANSIENT_ERRORS),
            reraise=True,
        )
        try:
            return await retrying(attempt)
        except TRANSIENT_ERRORS as e:
            raise TransientStoreError(
                f"Store read failed after {settings.store_read_attempts} attempts: {e}"
            ) from e

    return wrapper


@asynccontextmanager
async def store_write(db: AsyncSession) -> AsyncIterator[None]:
    """Surface connection errors during a write without retrying it."""
    try:
        yield
    except TRANSIENT_ERRORS as e:
        await db.rollback()
        raise TransientStoreError(f"Store write failed: {e}") from e


class CRUDBase(Generic[ModelType, CreateSchemaType, UpdateSchemaType]):
    """Base class with default create/read/update/delete operations."""

    def __init__(self, model: type[ModelType]) -> None:
        self.model = model

    @retry_reads
    async def get(self, db: AsyncSession, id: Any) -> ModelType | None:
        """Get a record by primary key."""
        return await db.get(self.model, id)

    @retry_reads
    async def get_multi(
        self, db: AsyncSession, *, skip: int = 0, limit: int = 100
    ) -> list[ModelType]:
        """Get multiple records."""
        result = await db.execute(select(self.model).offset(skip).limit(limit))
        return list(result.scalars().all())

    async def create(self, db: AsyncSession, *, obj_in: CreateSchemaType) -> ModelType:
        """Create a record from a schema."""
        db_obj = self.model(**obj_in.model_dump())
        async with store_write(db):
            db.add(db_obj)
            await db.commit()
            await db.refresh(db_obj)
        return db_obj

    async def update(
        self,
        db: AsyncSession,
        *,
        db_obj: ModelType,
        obj_in: UpdateSchemaType | dict[str, Any],
    ) -> ModelType:
        """Update a record with the fields set on ``obj_in``."""
        update_data = (
            obj_in if isinstance(obj_in, dict) else obj_in.model_dump(exclude_unset=True)
        )
        for field, value in update_data.items():
            setattr(db_obj, field, value)
        async with store_write(db):
            db.add(db_obj)
            await db.commit()
            await db.refresh(db_obj)
        return db_obj

    async def delete(self, db: AsyncSession, *, id: Any) -> ModelType | None:
        """Delete a record by primary key."""
        db_obj = await db.get(self.model, id)
        if db_obj is not None:
            async with store_write(db):
                await db.delete(db_obj)
                await db.commit()
        return db_obj
