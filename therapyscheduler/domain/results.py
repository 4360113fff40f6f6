"""
Decision value types returned by the scheduling engine.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import List, Optional, Tuple

from .models import BookedInterval, Session, format_time


class ConflictType(str, Enum):
    SCHEDULE_CONFLICT = "SCHEDULE_CONFLICT"
    BREAK_CONFLICT = "BREAK_CONFLICT"
    OUTSIDE_WORKING_HOURS = "OUTSIDE_WORKING_HOURS"
    EXISTING_SESSION = "EXISTING_SESSION"
    THERAPIST_UNAVAILABLE = "THERAPIST_UNAVAILABLE"


class Severity(str, Enum):
    ERROR = "ERROR"
    WARNING = "WARNING"
    INFO = "INFO"


class Priority(int, Enum):
    """Suggestion priority; higher value ranks first."""
    LOW = 1
    MEDIUM = 2
    HIGH = 3


class OptimizationStrategy(str, Enum):
    EFFICIENCY = "EFFICIENCY"
    PATIENT_COMFORT = "PATIENT_COMFORT"
    THERAPIST_PREFERENCE = "THERAPIST_PREFERENCE"


@dataclass(frozen=True)
class Conflict:
    """A business conflict found while checking a slot."""
    type: ConflictType
    severity: Severity
    message: str
    conflicting_interval: Optional[BookedInterval] = None

    @property
    def is_error(self) -> bool:
        return self.severity is Severity.ERROR


@dataclass(frozen=True)
class Suggestion:
    """An alternative slot offered to the caller."""
    start: int
    duration: int
    priority: Priority
    reason: str
    score: float = 0
    is_optimal: bool = False
    day: Optional[date] = None

    @property
    def end(self) -> int:
        return self.start + self.duration

    def sort_key(self, requested_start: int) -> Tuple[int, int, int]:
        """Order: priority, then distance from the requested start, then earliest."""
        return (-self.priority.value, abs(self.start - requested_start), self.start)

    def format_display(self) -> str:
        return f"{format_time(self.start)} - {format_time(self.end)} ({self.duration} min)"


@dataclass(frozen=True)
class AvailabilityResult:
    """Outcome of checking one candidate slot."""
    available: bool
    conflicts: Tuple[Conflict, ...] = ()
    suggestions: Tuple[Suggestion, ...] = ()
    reason: Optional[str] = None

    @property
    def errors(self) -> List[Conflict]:
        return [c for c in self.conflicts if c.is_error]

    @property
    def warnings(self) -> List[Conflict]:
        return [c for c in self.conflicts if c.severity is Severity.WARNING]


@dataclass(frozen=True)
class ResolutionConstraints:
    """Limits the conflict resolver must respect when picking an alternative."""
    max_time_shift_minutes: int = 60
    allow_different_day: bool = False
    max_days_forward: int = 7


@dataclass(frozen=True)
class ResolutionResult:
    resolved: bool
    suggested_start: Optional[int] = None
    suggested_date: Optional[date] = None
    reason: Optional[str] = None
    suggestion: Optional[Suggestion] = None


@dataclass(frozen=True)
class AdjustmentResult:
    """
    All-or-nothing outcome of a duration change.

    Either ``updated_session`` is set (with every cascaded session in
    ``shifted_sessions``) or ``rejected`` explains why nothing changes.
    """
    updated_session: Optional[Session] = None
    shifted_sessions: Tuple[Session, ...] = ()
    rejected: Tuple[Conflict, ...] = ()
    delta: int = 0

    @property
    def accepted(self) -> bool:
        return self.updated_session is not None and not self.rejected


@dataclass(frozen=True)
class TherapistScore:
    therapist_id: str
    score: float
    reasons: Tuple[str, ...]
    available: bool
    current_workload: int
    max_workload: int
    name: Optional[str] = None


@dataclass(frozen=True)
class AssignmentRequest:
    """A consultation request to be matched with a therapist."""
    required_specialties: Tuple[str, ...]
    preferred_time: int
    day: date
    duration: Optional[int] = None
    exclude_therapist_ids: Tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "required_specialties", tuple(self.required_specialties))
        object.__setattr__(self, "exclude_therapist_ids", tuple(self.exclude_therapist_ids))


@dataclass(frozen=True)
class AssignmentResult:
    assigned: Optional[TherapistScore]
    alternatives: Tuple[TherapistScore, ...] = field(default_factory=tuple)
    strategy: str = ""
    total_candidates: int = 0
