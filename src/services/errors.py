"""Domain errors raised by the scoring and queue services."""


class LeadQueueError(Exception):
    """Base class for errors surfaced to callers with a readable reason."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class ConfigurationValidationError(LeadQueueError):
    """A configuration was rejected before anything was persisted."""

    def __init__(self, errors: list[str], warnings: list[str] | None = None) -> None:
        super().__init__("; ".join(errors) or "Invalid configuration")
        self.errors = errors
        self.warnings = warnings or []


class CapacityExceededError(LeadQueueError):
    """Queue (or agent) is already at its configured limit."""


class NotFoundError(LeadQueueError):
    """Entry, lead or tenant does not exist (or belongs to another tenant)."""


class InvalidTransitionError(LeadQueueError):
    """Requested status change is not allowed from the current status."""


class TransientStoreError(LeadQueueError):
    """The backing store failed; reads were retried before raising."""
