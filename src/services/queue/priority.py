"""Score to queue priority mapping."""

from src.models.queue_entry import QueuePriority
from src.services.scoring.config import ScoringThresholds


class PriorityCalculator:
    """Derives a queue priority from a percentage score.

    Tiers follow the scoring thresholds: hot leads are urgent, warm
    leads high, anything at or above the cold threshold normal, the
    rest low.
    """

    def __init__(self, thresholds: ScoringThresholds | None = None) -> None:
        self.thresholds = thresholds or ScoringThresholds()

    def priority_for_score(self, score: float) -> QueuePriority:
        if score >= self.thresholds.hot:
            return QueuePriority.URGENT
        elif score >= self.thresholds.warm:
            return QueuePriority.HIGH
        elif score >= self.thresholds.cold:
            return QueuePriority.NORMAL
        return QueuePriority.LOW
