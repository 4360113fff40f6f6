"""
Domain-specific exception hierarchy for the therapy scheduler.

Business conflicts (overlaps, breaks, full days) are never raised; they are
returned as ``Conflict`` data. Exceptions are reserved for malformed input and
for collaborator failures.
"""


class SchedulingError(Exception):
    """Base class for all application-level errors."""


class ValidationError(SchedulingError):
    """Raised when a caller hands the engine malformed input."""


class InvalidTimeError(ValidationError):
    """Raised when an "HH:MM" value cannot be parsed."""


class InvalidTimeRangeError(ValidationError):
    """Raised when a candidate range is empty, reversed or off the clock."""


class InvalidDurationError(ValidationError):
    """Raised when a session duration is not a positive number of minutes."""


class InvalidAdjustmentError(ValidationError):
    """Raised when a duration change is out of range or a no-op."""


class InvalidScheduleError(ValidationError):
    """Raised when a day schedule violates its own invariants."""


class StoreError(SchedulingError):
    """Raised when the session store cannot serve or persist a request."""


class SessionNotFoundError(StoreError):
    """Raised when a referenced session does not exist."""


class StaleSnapshotError(StoreError):
    """Raised when a commit is based on a day that changed in the meantime."""
