# practice_scheduler/errors.py
from datetime import date, datetime
from typing import Iterable, List, Optional


class SchedulerError(Exception):
    pass


class ValidationError(SchedulerError):
    """Rejected input. Carries every violated rule, not just the first."""

    def __init__(self, errors: Iterable[str]):
        self.errors: List[str] = list(errors)
        super().__init__("; ".join(self.errors))


class NotFoundError(SchedulerError):
    def __init__(self, resource: str, resource_id):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} {resource_id} not found")


class SlotNoLongerAvailable(SchedulerError):
    """Another booking took the slot first. Callers should re-fetch availability."""
    retryable = True

    def __init__(self, provider_id: int, start_time: datetime):
        self.provider_id = provider_id
        self.start_time = start_time
        super().__init__(
            f"The {start_time:%Y-%m-%d %H:%M} slot with provider {provider_id} was just taken. "
            "Please pick another time."
        )


class UpstreamStoreError(SchedulerError):
    """The persistent store failed."""

    def __init__(self, message: str, original: Optional[Exception] = None):
        self.original = original
        super().__init__(message)


class InvalidWindowError(ValueError):
    """Programmer error: a window whose end is not after its start reached the slot generator."""


class PartialComputationWarning(UserWarning):
    def __init__(self, skipped_dates: Iterable[date]):
        self.skipped_dates: List[date] = sorted(skipped_dates)
        super().__init__(
            "Availability skipped " + ", ".join(d.isoformat() for d in self.skipped_dates)
        )
