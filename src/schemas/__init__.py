"""Pydantic schemas for LeadQueue."""

from src.schemas.lead import (
    Communication,
    FinancialInfo,
    LeadBase,
    LeadCreate,
    LeadScoreUpdate,
    LeadSnapshot,
    Offer,
    PropertyPreferences,
    PropertyViewing,
)
from src.schemas.queue import (
    AssignRequest,
    PriorityUpdate,
    QueueBatchCreate,
    QueueConfigRead,
    QueueConfigUpdate,
    QueueEntryCreate,
    QueueEntryPage,
    QueueEntryRead,
    QueueStatusRead,
    ReleaseStaleResponse,
    StatusUpdate,
    SweepResponse,
)
from src.schemas.scoring import (
    BatchScoreRequest,
    BatchScoreResponse,
    CategoryResponse,
    ConfigValidationResponse,
    FactorScoreRead,
    RecalculateJobResponse,
    RecalculateRequest,
    ScoringConfigurationCreate,
    ScoringConfigurationRead,
    ScoringConfigurationUpdate,
    ScoringFactorSchema,
    ScoringResultRead,
    ScoringThresholdsSchema,
    ScoringThresholdsUpdate,
)

__all__ = [
    # Lead
    "Communication",
    "FinancialInfo",
    "LeadBase",
    "LeadCreate",
    "LeadScoreUpdate",
    "LeadSnapshot",
    "Offer",
    "PropertyPreferences",
    "PropertyViewing",
    # Queue
    "AssignRequest",
    "PriorityUpdate",
    "QueueBatchCreate",
    "QueueConfigRead",
    "QueueConfigUpdate",
    "QueueEntryCreate",
    "QueueEntryPage",
    "QueueEntryRead",
    "QueueStatusRead",
    "ReleaseStaleResponse",
    "StatusUpdate",
    "SweepResponse",
    # Scoring
    "BatchScoreRequest",
    "BatchScoreResponse",
    "CategoryResponse",
    "ConfigValidationResponse",
    "FactorScoreRead",
    "RecalculateJobResponse",
    "RecalculateRequest",
    "ScoringConfigurationCreate",
    "ScoringConfigurationRead",
    "ScoringConfigurationUpdate",
    "ScoringFactorSchema",
    "ScoringResultRead",
    "ScoringThresholdsSchema",
    "ScoringThresholdsUpdate",
]
