"""Database models for LeadQueue."""

from src.models.lead import Lead, LeadSource, LeadStatus
from src.models.queue_config import QueueConfiguration, StaleEntryAction
from src.models.queue_entry import (
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
    VALID_TRANSITIONS,
    QueueEntry,
    QueueEntryStatus,
    QueuePriority,
    QueueSequence,
)
from src.models.scoring_config import (
    GLOBAL_SCOPE,
    ScoreCategory,
    ScoringAlgorithm,
    ScoringCategory,
    ScoringConfigurationRecord,
    UpdateFrequency,
)

__all__ = [
    # Lead
    "Lead",
    "LeadSource",
    "LeadStatus",
    # Queue
    "QueueEntry",
    "QueueEntryStatus",
    "QueuePriority",
    "QueueSequence",
    "ACTIVE_STATUSES",
    "TERMINAL_STATUSES",
    "VALID_TRANSITIONS",
    "QueueConfiguration",
    "StaleEntryAction",
    # Scoring
    "ScoringConfigurationRecord",
    "GLOBAL_SCOPE",
    "ScoreCategory",
    "ScoringAlgorithm",
    "ScoringCategory",
    "UpdateFrequency",
]
