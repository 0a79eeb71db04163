"""API routes for lead scoring."""

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.deps import get_optional_tenant_id, get_scoring_engine, get_user_id
from src.crud.lead import lead as lead_crud
from src.database import get_db
from src.schemas.scoring import (
    BatchScoreRequest,
    BatchScoreResponse,
    CategoryResponse,
    ConfigValidationResponse,
    RecalculateJobResponse,
    RecalculateRequest,
    ScoringConfigurationCreate,
    ScoringConfigurationRead,
    ScoringConfigurationUpdate,
    ScoringFactorSchema,
    ScoringResultRead,
)
from src.services.errors import ConfigurationValidationError
from src.services.scoring import ScoringConfig, ScoringEngine
from src.workers.celery_app import celery_app  # noqa: F401  current app for .delay
from src.workers.score_tasks import recalculate_scores_task

router = APIRouter(prefix="/score", tags=["scoring"])


def _config_response(config: ScoringConfig) -> ScoringConfigurationRead:
    return ScoringConfigurationRead(**config.to_dict(), total_weight=config.total_weight)


@router.post("/calculate/{lead_id}", response_model=ScoringResultRead)
async def calculate_score(
    lead_id: str,
    save: bool = Query(default=False, description="Write the score back onto the lead"),
    config: ScoringConfigurationCreate | None = Body(default=None),
    db: AsyncSession = Depends(get_db),
    engine: ScoringEngine = Depends(get_scoring_engine),
    tenant_id: str | None = Depends(get_optional_tenant_id),
) -> ScoringResultRead:
    """Calculate the score of a single lead.

    An optional configuration in the body overrides the active one for
    this call only.
    """
    override = None
    if config is not None:
        override = ScoringConfig.from_dict(config.model_dump(mode="json"))
        report = override.validate()
        if not report.valid:
            raise ConfigurationValidationError(report.errors, report.warnings)

    result = await engine.score_lead(db, lead_id, tenant_id, config=override)
    if save:
        await lead_crud.update_score(
            db, lead_id=lead_id, score=result.percentage_score, scored_at=result.last_updated
        )
    return ScoringResultRead.model_validate(result)


@router.post("/batch", response_model=BatchScoreResponse)
async def score_batch(
    request: BatchScoreRequest,
    db: AsyncSession = Depends(get_db),
    engine: ScoringEngine = Depends(get_scoring_engine),
    tenant_id: str | None = Depends(get_optional_tenant_id),
) -> BatchScoreResponse:
    """Score several leads synchronously.

    Leads that cannot be scored are reported in ``failed``.
    """
    results = await engine.batch_calculate(db, request.lead_ids, tenant_id)
    if request.save:
        for lead_id, result in results.items():
            await lead_crud.update_score(
                db, lead_id=lead_id, score=result.percentage_score, scored_at=result.last_updated
            )
    return BatchScoreResponse(
        results={
            lead_id: ScoringResultRead.model_validate(result) for lead_id, result in results.items()
        },
        failed=[lead_id for lead_id in request.lead_ids if lead_id not in results],
    )


@router.post("/recalculate", response_model=RecalculateJobResponse)
async def recalculate_scores(
    request: RecalculateRequest,
    tenant_id: str | None = Depends(get_optional_tenant_id),
) -> RecalculateJobResponse:
    """Start a background job re-scoring leads and saving their scores."""
    task = recalculate_scores_task.delay(
        lead_ids=request.lead_ids,
        tenant_id=tenant_id,
        limit=request.limit,
    )
    target = f"{len(request.lead_ids)} leads" if request.lead_ids else f"up to {request.limit} leads"
    return RecalculateJobResponse(
        job_id=task.id,
        status="started",
        message=f"Recalculation started for {target}",
    )


@router.get("/config", response_model=ScoringConfigurationRead)
async def get_scoring_config(
    db: AsyncSession = Depends(get_db),
    engine: ScoringEngine = Depends(get_scoring_engine),
    tenant_id: str | None = Depends(get_optional_tenant_id),
) -> ScoringConfigurationRead:
    """Get the active scoring configuration."""
    return _config_response(await engine.get_config(db, tenant_id))


@router.put("/config", response_model=ScoringConfigurationRead)
async def update_scoring_config(
    update: ScoringConfigurationUpdate,
    db: AsyncSession = Depends(get_db),
    engine: ScoringEngine = Depends(get_scoring_engine),
    tenant_id: str | None = Depends(get_optional_tenant_id),
    user_id: str | None = Depends(get_user_id),
) -> ScoringConfigurationRead:
    """Update the scoring configuration.

    The update is merged into the active configuration and validated as
    a whole; invalid results are rejected with 422 and nothing changes.
    """
    partial = update.model_dump(mode="json", exclude_none=True)
    config = await engine.update_config(db, partial, tenant_id, updated_by=user_id)
    return _config_response(config)


@router.post("/config/validate", response_model=ConfigValidationResponse)
async def validate_scoring_config(
    config: ScoringConfigurationCreate,
    engine: ScoringEngine = Depends(get_scoring_engine),
) -> ConfigValidationResponse:
    """Validate a configuration without saving it."""
    report = engine.validate_config(ScoringConfig.from_dict(config.model_dump(mode="json")))
    return ConfigValidationResponse(**report.to_dict())


@router.get("/factors", response_model=list[ScoringFactorSchema])
async def get_scoring_factors(
    db: AsyncSession = Depends(get_db),
    engine: ScoringEngine = Depends(get_scoring_engine),
    tenant_id: str | None = Depends(get_optional_tenant_id),
) -> list[ScoringFactorSchema]:
    """List the factors of the active configuration."""
    config = await engine.get_config(db, tenant_id)
    return [ScoringFactorSchema(**factor.to_dict()) for factor in config.factors]


@router.get("/category", response_model=CategoryResponse)
async def get_score_category(
    percentage_score: float = Query(ge=0, le=100),
    db: AsyncSession = Depends(get_db),
    engine: ScoringEngine = Depends(get_scoring_engine),
    tenant_id: str | None = Depends(get_optional_tenant_id),
) -> CategoryResponse:
    """Map a percentage score to hot / warm / cold."""
    category = await engine.get_category(db, percentage_score, tenant_id)
    return CategoryResponse(percentage_score=percentage_score, category=category)
