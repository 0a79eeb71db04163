"""Pydantic schemas for scoring configuration and results."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from src.models.scoring_config import (
    ScoreCategory,
    ScoringAlgorithm,
    ScoringCategory,
    UpdateFrequency,
)


class ScoringFactorSchema(BaseModel):
    """One weighted scoring factor."""

    model_config = ConfigDict(from_attributes=True)

    name: str
    weight: float
    category: ScoringCategory
    min_value: float = 0
    max_value: float = 100
    description: str = ""


class ScoringThresholdsSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    hot: float = 80
    warm: float = 60
    cold: float = 40


class ScoringThresholdsUpdate(BaseModel):
    hot: float | None = None
    warm: float | None = None
    cold: float | None = None


class ScoringConfigurationBase(BaseModel):
    """Base schema for a scoring configuration."""

    model_config = ConfigDict(from_attributes=True)

    factors: list[ScoringFactorSchema]
    algorithm: ScoringAlgorithm = ScoringAlgorithm.WEIGHTED
    update_frequency: UpdateFrequency = UpdateFrequency.REALTIME
    min_score: float = 0
    max_score: float = 100
    thresholds: ScoringThresholdsSchema = Field(default_factory=ScoringThresholdsSchema)


class ScoringConfigurationCreate(ScoringConfigurationBase):
    """Complete configuration, as submitted for validation."""

    pass


class ScoringConfigurationUpdate(BaseModel):
    """Partial configuration update.

    ``factors`` replaces the factor list as a whole; ``thresholds`` is
    merged key by key.
    """

    factors: list[ScoringFactorSchema] | None = None
    algorithm: ScoringAlgorithm | None = None
    update_frequency: UpdateFrequency | None = None
    min_score: float | None = None
    max_score: float | None = None
    thresholds: ScoringThresholdsUpdate | None = None


class ScoringConfigurationRead(ScoringConfigurationBase):
    """Active configuration with its total weight."""

    total_weight: float


class ConfigValidationResponse(BaseModel):
    valid: bool
    errors: list[str]
    warnings: list[str]


class FactorScoreRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    factor: str
    score: float
    weight: float
    weighted_score: float
    explanation: str
    category: ScoringCategory


class ScoringResultRead(BaseModel):
    """Scoring result for one lead."""

    model_config = ConfigDict(from_attributes=True)

    lead_id: str
    total_score: float
    max_possible_score: float
    percentage_score: float
    category: ScoreCategory
    factor_scores: list[FactorScoreRead]
    explanation: str
    confidence: float
    last_updated: datetime


class BatchScoreRequest(BaseModel):
    """Request to score multiple leads."""

    lead_ids: list[str] = Field(min_length=1, max_length=500)
    save: bool = False


class BatchScoreResponse(BaseModel):
    """Scores per lead; leads that could not be scored are listed in ``failed``."""

    results: dict[str, ScoringResultRead]
    failed: list[str]


class RecalculateRequest(BaseModel):
    """Request to re-score leads in the background."""

    lead_ids: list[str] | None = None
    limit: int = Field(default=500, ge=1, le=5000)


class RecalculateJobResponse(BaseModel):
    job_id: str
    status: str
    message: str


class CategoryResponse(BaseModel):
    percentage_score: float
    category: ScoreCategory
