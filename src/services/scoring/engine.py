"""Weighted lead scoring engine."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import Settings, get_settings
from src.crud.lead import lead as lead_crud
from src.crud.scoring_config import scoring_config as scoring_config_crud
from src.models.scoring_config import GLOBAL_SCOPE
from src.schemas.lead import LeadSnapshot
from src.services.clock import Clock, SystemClock
from src.services.errors import ConfigurationValidationError, LeadQueueError, NotFoundError
from src.services.scoring.config import (
    FactorKind,
    ScoreCategory,
    ScoringCategory,
    ScoringConfig,
    ScoringThresholds,
    ValidationReport,
)
from src.services.scoring.factors import FACTOR_FUNCTIONS

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400


@dataclass
class FactorScore:
    """Score of one factor for one lead."""

    factor: str
    score: float
    weight: float
    weighted_score: float
    explanation: str
    category: ScoringCategory

    def to_dict(self) -> dict[str, Any]:
        return {
            "factor": self.factor,
            "score": self.score,
            "weight": self.weight,
            "weighted_score": self.weighted_score,
            "explanation": self.explanation,
            "category": self.category.value,
        }


@dataclass
class ScoringResult:
    """Result of scoring a lead."""

    lead_id: str
    total_score: float
    max_possible_score: float
    percentage_score: float
    category: ScoreCategory
    explanation: str
    confidence: float
    last_updated: datetime
    factor_scores: list[FactorScore] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "lead_id": self.lead_id,
            "total_score": self.total_score,
            "max_possible_score": self.max_possible_score,
            "percentage_score": self.percentage_score,
            "category": self.category.value,
            "factor_scores": [f.to_dict() for f in self.factor_scores],
            "explanation": self.explanation,
            "confidence": self.confidence,
            "last_updated": self.last_updated.isoformat(),
        }


class ScoringEngine:
    """Computes weighted scores for leads.

    ``calculate_score`` is pure: it reads a lead snapshot and a
    configuration and never touches the database. The async methods load
    leads and configurations through the CRUD layer; configurations are
    read on every call, never cached on the engine.
    """

    def __init__(self, clock: Clock | None = None, settings: Settings | None = None) -> None:
        """Initialize scoring engine.

        Args:
            clock: Source of the current time. Wall clock if not provided.
            settings: Application settings (default thresholds).
        """
        self.clock = clock or SystemClock()
        self.settings = settings or get_settings()

    def default_config(self) -> ScoringConfig:
        """Default nine-factor configuration with thresholds from settings."""
        return ScoringConfig(
            thresholds=ScoringThresholds(
                hot=self.settings.score_hot_threshold,
                warm=self.settings.score_warm_threshold,
                cold=self.settings.score_cold_threshold,
            )
        )

    def calculate_score(
        self,
        lead: LeadSnapshot,
        config: ScoringConfig,
        now: datetime | None = None,
    ) -> ScoringResult:
        """Calculate the weighted score of a lead.

        Args:
            lead: Lead to score.
            config: Scoring configuration to apply.
            now: Reference time. Taken from the clock if not provided.

        Returns:
            ScoringResult. Identical inputs give identical results apart
            from ``last_updated``.
        """
        now = now or self.clock.now()
        factor_scores: list[FactorScore] = []
        total = 0.0
        max_possible = 0.0

        for factor in config.factors:
            raw, reason = self._factor_score(lead, factor.kind, factor.name, now)
            score = max(0.0, min(float(raw), factor.max_value))
            weighted = (score / factor.max_value) * factor.weight if factor.max_value > 0 else 0.0

            factor_scores.append(
                FactorScore(
                    factor=factor.name,
                    score=score,
                    weight=factor.weight,
                    weighted_score=weighted,
                    explanation=reason,
                    category=factor.category,
                )
            )
            total += weighted
            max_possible += factor.weight

        percentage = (total / max_possible) * 100 if max_possible > 0 else 0.0
        percentage = round(max(0.0, min(percentage, 100.0)), 2)
        category = config.get_category(percentage)

        return ScoringResult(
            lead_id=lead.lead_id,
            total_score=round(total, 2),
            max_possible_score=max_possible,
            percentage_score=percentage,
            category=category,
            factor_scores=factor_scores,
            explanation=self._explain(factor_scores, percentage, category),
            confidence=round(self._confidence(factor_scores, lead, now), 2),
            last_updated=now,
        )

    def _factor_score(
        self, lead: LeadSnapshot, kind: FactorKind | None, name: str, now: datetime
    ) -> tuple[float, str]:
        if kind is None:
            return 0, f"Factor {name} is not implemented"
        try:
            return FACTOR_FUNCTIONS[kind](lead, now)
        except (ArithmeticError, TypeError, ValueError) as e:
            # One bad factor must not sink the whole score
            logger.warning("Factor %s failed for lead %s: %s", name, lead.lead_id, e)
            return 0, f"Factor {name} could not be calculated"

    @staticmethod
    def _confidence(factor_scores: list[FactorScore], lead: LeadSnapshot, now: datetime) -> float:
        confidence = 100.0

        if factor_scores:
            missing = sum(1 for f in factor_scores if f.score == 0)
            confidence -= (missing / len(factor_scores)) * 100 * 0.5

        # Leads without a creation date are treated as brand new
        age_days = (
            (now - lead.created_at).total_seconds() / SECONDS_PER_DAY
            if lead.created_at is not None
            else 0
        )
        if age_days < 7:
            confidence -= 20
        elif age_days < 30:
            confidence -= 10

        return max(confidence, 0.0)

    @staticmethod
    def _explain(
        factor_scores: list[FactorScore],
        percentage: float,
        category: ScoreCategory,
    ) -> str:
        top = sorted(factor_scores, key=lambda f: f.weighted_score, reverse=True)[:3]
        parts = [f"{f.factor.replace('_', ' ')} ({f.weighted_score:.1f} points)" for f in top]
        return (
            f"Lead scored as {category.value} ({percentage:.1f}%) "
            f"based primarily on: {', '.join(parts)}"
        )

    # Configuration

    async def get_config(self, db: AsyncSession, tenant_id: str | None = None) -> ScoringConfig:
        """Active configuration for a tenant, falling back to the global one."""
        if tenant_id:
            record = await scoring_config_crud.get_by_scope(db, scope=tenant_id)
            if record is not None:
                return ScoringConfig.from_dict(record.to_dict())

        record = await scoring_config_crud.get_or_create(
            db,
            scope=GLOBAL_SCOPE,
            defaults=self.default_config().to_dict(),
            now=self.clock.now(),
        )
        return ScoringConfig.from_dict(record.to_dict())

    def validate_config(self, config: ScoringConfig) -> ValidationReport:
        return config.validate()

    async def update_config(
        self,
        db: AsyncSession,
        partial: dict[str, Any],
        tenant_id: str | None = None,
        updated_by: str | None = None,
    ) -> ScoringConfig:
        """Merge ``partial`` into the active configuration and persist it.

        Raises:
            ConfigurationValidationError: merged configuration is invalid.
                Nothing is written in that case.
        """
        current = await self.get_config(db, tenant_id)
        try:
            merged = current.merge(partial)
        except (KeyError, TypeError, ValueError) as e:
            raise ConfigurationValidationError([f"Malformed configuration: {e}"]) from e

        report = merged.validate()
        if not report.valid:
            logger.info("Rejected scoring configuration update: %s", "; ".join(report.errors))
            raise ConfigurationValidationError(report.errors, report.warnings)

        scope = tenant_id or GLOBAL_SCOPE
        record = await scoring_config_crud.replace(
            db,
            scope=scope,
            data=merged.to_dict(),
            updated_by=updated_by,
            now=self.clock.now(),
        )
        logger.info(
            "Scoring configuration for scope %s updated to version %s", scope, record.version
        )
        return merged

    async def get_category(
        self, db: AsyncSession, percentage_score: float, tenant_id: str | None = None
    ) -> ScoreCategory:
        config = await self.get_config(db, tenant_id)
        return config.get_category(percentage_score)

    # Lead scoring

    async def load_lead(
        self, db: AsyncSession, lead_id: str, tenant_id: str | None = None
    ) -> LeadSnapshot:
        """Read a lead as a snapshot.

        Raises:
            NotFoundError: no such lead, or it belongs to another tenant.
        """
        db_lead = await lead_crud.get_by_lead_id(db, lead_id=lead_id)
        if db_lead is None or (tenant_id and db_lead.tenant_id != tenant_id):
            raise NotFoundError(f"Lead not found: {lead_id}")
        return LeadSnapshot.model_validate(db_lead)

    async def score_lead(
        self,
        db: AsyncSession,
        lead_id: str,
        tenant_id: str | None = None,
        config: ScoringConfig | None = None,
    ) -> ScoringResult:
        """Score a lead.

        The lead is only read. Callers that keep the score write it back
        themselves.

        Args:
            db: Database session.
            lead_id: Lead to score.
            tenant_id: Restrict the lookup to this tenant.
            config: Configuration override. Active configuration if not provided.

        Returns:
            ScoringResult.
        """
        snapshot = await self.load_lead(db, lead_id, tenant_id)
        config = config or await self.get_config(db, tenant_id or snapshot.tenant_id)
        return self.calculate_score(snapshot, config)

    async def batch_calculate(
        self,
        db: AsyncSession,
        lead_ids: list[str],
        tenant_id: str | None = None,
    ) -> dict[str, ScoringResult]:
        """Score several leads.

        Leads that cannot be scored are logged and left out of the result.
        """
        results: dict[str, ScoringResult] = {}
        configs: dict[str | None, ScoringConfig] = {}

        for lead_id in lead_ids:
            try:
                snapshot = await self.load_lead(db, lead_id, tenant_id)
                scope = tenant_id or snapshot.tenant_id
                if scope not in configs:
                    configs[scope] = await self.get_config(db, scope)
                results[lead_id] = self.calculate_score(snapshot, configs[scope])
            except (LeadQueueError, ValidationError) as e:
                logger.error("Failed to calculate score for lead %s: %s", lead_id, e)

        return results
