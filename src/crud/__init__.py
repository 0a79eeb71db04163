"""CRUD operations for LeadQueue."""

from src.crud.lead import lead
from src.crud.queue_config import queue_config
from src.crud.queue_entry import queue_entry
from src.crud.scoring_config import scoring_config

__all__ = [
    "lead",
    "queue_config",
    "queue_entry",
    "scoring_config",
]
