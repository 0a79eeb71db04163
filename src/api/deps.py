"""Shared FastAPI dependencies."""

from typing import Annotated

from fastapi import Depends, Header

from src.config import Settings, get_settings
from src.services.clock import Clock, SystemClock
from src.services.queue import QueueManager
from src.services.scoring import ScoringEngine


def get_tenant_id(
    tenant_id: Annotated[str, Header(alias="X-Tenant-ID", min_length=1, max_length=64)],
) -> str:
    """Tenant the request acts for, set by the authentication layer."""
    return tenant_id


def get_user_id(
    user_id: Annotated[str | None, Header(alias="X-User-ID", max_length=64)] = None,
) -> str | None:
    """Calling user, if the authentication layer identified one."""
    return user_id


def get_clock() -> Clock:
    return SystemClock()


def get_scoring_engine(
    clock: Clock = Depends(get_clock),
    settings: Settings = Depends(get_settings),
) -> ScoringEngine:
    return ScoringEngine(clock=clock, settings=settings)


def get_queue_manager(
    engine: ScoringEngine = Depends(get_scoring_engine),
    clock: Clock = Depends(get_clock),
    settings: Settings = Depends(get_settings),
) -> QueueManager:
    return QueueManager(scoring_engine=engine, clock=clock, settings=settings)


def get_optional_tenant_id(
    tenant_id: Annotated[str | None, Header(alias="X-Tenant-ID", max_length=64)] = None,
) -> str | None:
    """Tenant scope for endpoints that fall back to the global configuration."""
    return tenant_id or None
