"""Lead queue services package."""

from src.services.queue.manager import QueueManager, QueueStatus
from src.services.queue.priority import PriorityCalculator

__all__ = ["PriorityCalculator", "QueueManager", "QueueStatus"]
