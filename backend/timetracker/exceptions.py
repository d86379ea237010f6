"""
Domain exceptions raised by the time entry services.

Each exception carries a machine-readable ``kind``; ``api/main.py`` maps
them to HTTP responses.
"""
from typing import Optional


class TimeTrackerError(Exception):
    """Base class for domain errors surfaced to API callers."""
    kind = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ForbiddenError(TimeTrackerError):
    """Raised when the actor lacks the permission for an operation."""
    kind = "forbidden"

    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(message)


class NotFoundError(TimeTrackerError):
    """Raised when a referenced record does not exist."""
    kind = "not_found"


class ValidationFailedError(TimeTrackerError):
    """Raised for malformed or cross-tenant input.

    ``errors`` maps field names to messages; ``source`` is the request part
    the fields came from (``query`` or ``body``).
    """
    kind = "validation_failed"

    def __init__(self, errors: dict, source: str = "body"):
        super().__init__("; ".join(f"{field}: {msg}" for field, msg in errors.items()))
        self.errors = errors
        self.source = source

    @classmethod
    def for_field(cls, field: str, message: str, source: str = "body") -> "ValidationFailedError":
        return cls({field: message}, source=source)


class DomainConflictError(TimeTrackerError):
    """Raised when an operation would violate a business rule."""
    kind = "domain_conflict"
    key: Optional[str] = None

    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(message)
        if key is not None:
            self.key = key


class TimeEntryStillRunningError(DomainConflictError):
    key = "time_entry_still_running"

    def __init__(self):
        super().__init__("Member already has an active time entry")


class TimeEntryCanNotBeRestartedError(DomainConflictError):
    key = "time_entry_can_not_be_restarted"

    def __init__(self):
        super().__init__("Time entry cannot be restarted")
