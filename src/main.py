from contextlib import asynccontextmanager
from typing import Any

import redis.asyncio as redis
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from src.api.routes import queue_router, score_router
from src.config import get_settings
from src.database import async_session_maker, close_db
from src.logging_conf import setup_logging
from src.services.errors import (
    CapacityExceededError,
    ConfigurationValidationError,
    InvalidTransitionError,
    LeadQueueError,
    NotFoundError,
    TransientStoreError,
)

settings = get_settings()
setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):  # type: ignore[no-untyped-def]
    """Application lifespan handler for startup and shutdown events."""
    # Startup
    yield
    # Shutdown
    await close_db()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Lead scoring and per-tenant lead queue assignment",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

ERROR_STATUS_CODES: dict[type[LeadQueueError], int] = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    CapacityExceededError: status.HTTP_409_CONFLICT,
    InvalidTransitionError: status.HTTP_409_CONFLICT,
    TransientStoreError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


@app.exception_handler(ConfigurationValidationError)
async def configuration_error_handler(
    request: Request, exc: ConfigurationValidationError
) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": exc.reason, "errors": exc.errors, "warnings": exc.warnings},
    )


@app.exception_handler(LeadQueueError)
async def lead_queue_error_handler(request: Request, exc: LeadQueueError) -> JSONResponse:
    status_code = ERROR_STATUS_CODES.get(type(exc), status.HTTP_400_BAD_REQUEST)
    return JSONResponse(status_code=status_code, content={"detail": exc.reason})


@app.get("/health", status_code=status.HTTP_200_OK, tags=["Health"])
async def health_check() -> dict[str, str]:
    """Basic health check endpoint."""
    return {"status": "healthy", "version": settings.app_version}


@app.get("/health/ready", status_code=status.HTTP_200_OK, tags=["Health"])
async def readiness_check() -> dict[str, Any]:
    """
    Readiness check - verifies the database and the task broker are available.
    """
    checks: dict[str, Any] = {
        "database": False,
        "redis": False,
    }

    # Check database
    try:
        async with async_session_maker() as session:
            await session.execute(text("SELECT 1"))
            checks["database"] = True
    except Exception as e:
        checks["database"] = str(e)

    # Check Redis (Celery broker)
    try:
        redis_client = redis.from_url(settings.redis_url)
        await redis_client.ping()
        await redis_client.aclose()
        checks["redis"] = True
    except Exception as e:
        checks["redis"] = str(e)

    all_ready = all(v is True for v in checks.values())

    return {
        "status": "ready" if all_ready else "not_ready",
        "checks": checks,
    }


@app.get("/health/live", status_code=status.HTTP_200_OK, tags=["Health"])
async def liveness_check() -> dict[str, str]:
    """Liveness check - verifies the application is running."""
    return {"status": "alive"}


app.include_router(score_router, prefix="/api")
app.include_router(queue_router, prefix="/api")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("src.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
