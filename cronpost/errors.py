"""Project-level exception hierarchy."""

from __future__ import annotations


class CronpostError(Exception):
    """Base for all cronpost exceptions."""


class ValidationError(CronpostError):
    """Request data failed validation (missing field, bad URL, bad schedule)."""


class ScheduleError(ValidationError):
    """Cron expression could not be parsed or never fires."""


class NotFoundError(CronpostError):
    """Operation referenced an unknown job id."""


class DeliveryError(CronpostError):
    """Outbound delivery failed or returned a non-2xx status."""

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class PersistenceError(CronpostError):
    """Reading or writing the durable job file failed."""
