"""Scoring configuration for weighted lead scoring."""

import enum
from dataclasses import dataclass, field, replace
from typing import Any

from src.models.scoring_config import (
    ScoreCategory,
    ScoringAlgorithm,
    ScoringCategory,
    UpdateFrequency,
)


class FactorKind(str, enum.Enum):
    """Factors the engine knows how to compute."""

    PROPERTY_PREFERENCES_MATCH = "property_preferences_match"
    LOCATION_PREFERENCE = "location_preference"
    BUDGET_ALIGNMENT = "budget_alignment"
    FINANCIAL_QUALIFICATION = "financial_qualification"
    ENGAGEMENT_LEVEL = "engagement_level"
    SOURCE_QUALITY = "source_quality"
    URGENCY_INDICATOR = "urgency_indicator"
    COMMUNICATION_RESPONSIVENESS = "communication_responsiveness"
    MARKET_KNOWLEDGE = "market_knowledge"


@dataclass(frozen=True)
class ScoringFactor:
    """One weighted input to the score."""

    name: str
    weight: float
    category: ScoringCategory
    min_value: float = 0
    max_value: float = 100
    description: str = ""

    @property
    def kind(self) -> FactorKind | None:
        """Factor kind for ``name``, or None if the engine has no such factor."""
        try:
            return FactorKind(self.name)
        except ValueError:
            return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "weight": self.weight,
            "min_value": self.min_value,
            "max_value": self.max_value,
            "description": self.description,
            "category": self.category.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ScoringFactor":
        return cls(
            name=data["name"],
            weight=data["weight"],
            category=ScoringCategory(data["category"]),
            min_value=data.get("min_value", 0),
            max_value=data.get("max_value", 100),
            description=data.get("description", ""),
        )


@dataclass(frozen=True)
class ScoringThresholds:
    """Tier thresholds on the percentage scale."""

    hot: float = 80  # Score >= 80 = HOT
    warm: float = 60  # Score >= 60 = WARM
    cold: float = 40
    # Below warm = COLD

    def to_dict(self) -> dict[str, float]:
        return {"hot": self.hot, "warm": self.warm, "cold": self.cold}


def default_factors() -> list[ScoringFactor]:
    """Default nine-factor set, weights totalling 100."""
    return [
        # Demographic factors
        ScoringFactor(
            name=FactorKind.PROPERTY_PREFERENCES_MATCH.value,
            weight=15,
            category=ScoringCategory.DEMOGRAPHIC,
            description="Match between lead preferences and available properties",
        ),
        ScoringFactor(
            name=FactorKind.LOCATION_PREFERENCE.value,
            weight=10,
            category=ScoringCategory.DEMOGRAPHIC,
            description="Location preference strength and specificity",
        ),
        # Financial factors
        ScoringFactor(
            name=FactorKind.BUDGET_ALIGNMENT.value,
            weight=20,
            category=ScoringCategory.FINANCIAL,
            description="Alignment between budget and property prices",
        ),
        ScoringFactor(
            name=FactorKind.FINANCIAL_QUALIFICATION.value,
            weight=20,
            category=ScoringCategory.FINANCIAL,
            description="Financial qualification strength",
        ),
        # Engagement and source
        ScoringFactor(
            name=FactorKind.ENGAGEMENT_LEVEL.value,
            weight=10,
            category=ScoringCategory.ENGAGEMENT,
            description="Level of engagement with communications",
        ),
        ScoringFactor(
            name=FactorKind.SOURCE_QUALITY.value,
            weight=8,
            category=ScoringCategory.SOURCE,
            description="Quality of lead source",
        ),
        # Behavioral factors
        ScoringFactor(
            name=FactorKind.URGENCY_INDICATOR.value,
            weight=7,
            category=ScoringCategory.BEHAVIORAL,
            description="Indicators of urgency to buy/sell",
        ),
        ScoringFactor(
            name=FactorKind.COMMUNICATION_RESPONSIVENESS.value,
            weight=5,
            category=ScoringCategory.ENGAGEMENT,
            description="Response time and quality to communications",
        ),
        ScoringFactor(
            name=FactorKind.MARKET_KNOWLEDGE.value,
            weight=5,
            category=ScoringCategory.BEHAVIORAL,
            description="Knowledge of real estate market",
        ),
    ]


@dataclass
class ValidationReport:
    """Outcome of validating a scoring configuration."""

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict[str, Any]:
        return {"valid": self.valid, "errors": self.errors, "warnings": self.warnings}


@dataclass(frozen=True)
class ScoringConfig:
    """Complete scoring configuration.

    Instances are never mutated; ``merge`` returns a new configuration.
    """

    factors: tuple[ScoringFactor, ...] = field(default_factory=lambda: tuple(default_factors()))
    algorithm: ScoringAlgorithm = ScoringAlgorithm.WEIGHTED
    update_frequency: UpdateFrequency = UpdateFrequency.REALTIME
    min_score: float = 0
    max_score: float = 100
    thresholds: ScoringThresholds = field(default_factory=ScoringThresholds)

    @property
    def total_weight(self) -> float:
        return sum(f.weight for f in self.factors)

    def get_category(self, percentage_score: float) -> ScoreCategory:
        """Map a percentage score to hot / warm / cold."""
        if percentage_score >= self.thresholds.hot:
            return ScoreCategory.HOT
        elif percentage_score >= self.thresholds.warm:
            return ScoreCategory.WARM
        return ScoreCategory.COLD

    def validate(self) -> ValidationReport:
        """Check the configuration without raising.

        Returns:
            ValidationReport with errors (config unusable) and warnings.
        """
        report = ValidationReport()

        total = self.total_weight
        if abs(total - 100) > 1e-9:
            report.errors.append(f"Total factor weights must equal 100, got {total:g}")

        if self.thresholds.hot <= self.thresholds.warm:
            report.errors.append("Hot threshold must be greater than warm threshold")
        if self.thresholds.warm <= self.thresholds.cold:
            report.errors.append("Warm threshold must be greater than cold threshold")

        names = [f.name for f in self.factors]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            report.errors.append(f"Duplicate factor names: {', '.join(duplicates)}")

        for factor in self.factors:
            if factor.kind is None:
                report.errors.append(f"Unknown scoring factor: {factor.name}")
            if not 0 <= factor.weight <= 100:
                report.errors.append(
                    f"Factor {factor.name} weight must be between 0 and 100, got {factor.weight:g}"
                )
            if factor.min_value < 0:
                report.errors.append(f"Factor {factor.name} min value must not be negative")
            if factor.max_value <= factor.min_value:
                report.errors.append(
                    f"Factor {factor.name} max value must be greater than min value"
                )
            if factor.weight == 0:
                report.warnings.append(f"Factor {factor.name} has zero weight")

        if self.algorithm != ScoringAlgorithm.WEIGHTED:
            report.errors.append(
                f"Scoring algorithm '{self.algorithm.value}' is not supported, use 'weighted'"
            )

        if self.max_score <= self.min_score:
            report.errors.append("Max score must be greater than min score")

        return report

    def merge(self, partial: dict[str, Any]) -> "ScoringConfig":
        """Return a copy with ``partial`` applied.

        ``factors`` is replaced as a whole, ``thresholds`` is merged
        key by key, everything else is replaced.
        """
        changes: dict[str, Any] = {}

        if partial.get("factors") is not None:
            changes["factors"] = tuple(
                f if isinstance(f, ScoringFactor) else ScoringFactor.from_dict(f)
                for f in partial["factors"]
            )
        if partial.get("thresholds") is not None:
            merged = {**self.thresholds.to_dict(), **partial["thresholds"]}
            changes["thresholds"] = ScoringThresholds(**merged)
        if partial.get("algorithm") is not None:
            changes["algorithm"] = ScoringAlgorithm(partial["algorithm"])
        if partial.get("update_frequency") is not None:
            changes["update_frequency"] = UpdateFrequency(partial["update_frequency"])
        for key in ("min_score", "max_score"):
            if partial.get(key) is not None:
                changes[key] = partial[key]

        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary for storage/API."""
        return {
            "factors": [f.to_dict() for f in self.factors],
            "algorithm": self.algorithm.value,
            "update_frequency": self.update_frequency.value,
            "min_score": self.min_score,
            "max_score": self.max_score,
            "thresholds": self.thresholds.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ScoringConfig":
        """Create config from dictionary."""
        defaults = cls()
        thresholds = data.get("thresholds") or {}
        return cls(
            factors=tuple(ScoringFactor.from_dict(f) for f in data["factors"])
            if "factors" in data
            else defaults.factors,
            algorithm=ScoringAlgorithm(data.get("algorithm", ScoringAlgorithm.WEIGHTED.value)),
            update_frequency=UpdateFrequency(
                data.get("update_frequency", UpdateFrequency.REALTIME.value)
            ),
            min_score=data.get("min_score", 0),
            max_score=data.get("max_score", 100),
            thresholds=ScoringThresholds(**{**defaults.thresholds.to_dict(), **thresholds}),
        )
