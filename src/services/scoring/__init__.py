"""Scoring services package."""

from src.services.scoring.config import (
    FactorKind,
    ScoreCategory,
    ScoringAlgorithm,
    ScoringCategory,
    ScoringConfig,
    ScoringFactor,
    ScoringThresholds,
    UpdateFrequency,
    ValidationReport,
    default_factors,
)
from src.services.scoring.engine import FactorScore, ScoringEngine, ScoringResult

__all__ = [
    "FactorKind",
    "FactorScore",
    "ScoreCategory",
    "ScoringAlgorithm",
    "ScoringCategory",
    "ScoringConfig",
    "ScoringEngine",
    "ScoringFactor",
    "ScoringResult",
    "ScoringThresholds",
    "UpdateFrequency",
    "ValidationReport",
    "default_factors",
]
