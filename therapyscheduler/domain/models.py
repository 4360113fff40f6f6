"""
Calendar model: time-of-day arithmetic, day schedules and booked sessions.

All times inside the engine are minutes since midnight. "HH:MM" strings are
converted with ``parse_time`` / ``format_time`` at the boundary only.
"""

import re
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import FrozenSet, Iterable, Optional, Tuple

import pendulum

from .exceptions import (
    InvalidDurationError,
    InvalidScheduleError,
    InvalidTimeError,
    InvalidTimeRangeError,
)

MINUTES_PER_DAY = 24 * 60

_TIME_PATTERN = re.compile(r"^([01]?[0-9]|2[0-3]):([0-5][0-9])$")


def parse_time(value: str) -> int:
    """Convert an "HH:MM" 24-hour string to minutes since midnight."""
    match = _TIME_PATTERN.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise InvalidTimeError(f"Time must be in HH:MM format, got {value!r}")
    return int(match.group(1)) * 60 + int(match.group(2))


def format_time(minutes: int) -> str:
    """Convert minutes since midnight back to "HH:MM"."""
    if not 0 <= minutes <= MINUTES_PER_DAY:
        raise InvalidTimeError(f"Minutes must be between 0 and {MINUTES_PER_DAY}, got {minutes}")
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def to_date(value) -> pendulum.Date:
    """Normalise a "YYYY-MM-DD" string, date or datetime to a pendulum Date."""
    if isinstance(value, str):
        try:
            return pendulum.from_format(value.strip(), "YYYY-MM-DD").date()
        except ValueError as exc:
            raise InvalidTimeError(f"Date must be in YYYY-MM-DD format, got {value!r}") from exc
    if isinstance(value, datetime):
        value = value.date()
    if isinstance(value, date):
        return pendulum.date(value.year, value.month, value.day)
    raise InvalidTimeError(f"Unsupported date value: {value!r}")


def ensure_range(start: int, end: int) -> None:
    """Fail fast on an empty, reversed or off-the-clock range."""
    if end <= start:
        raise InvalidTimeRangeError(f"Start minute {start} must be before end minute {end}")
    if start < 0 or end > MINUTES_PER_DAY:
        raise InvalidTimeRangeError(f"Range {start}-{end} falls outside a single day")


@dataclass(frozen=True)
class DaySchedule:
    """
    Recurring availability of one therapist on one weekday.

    Invariants: work_start < work_end; a break lies inside working hours.
    """
    work_start: int
    work_end: int
    break_start: Optional[int] = None
    break_end: Optional[int] = None
    max_sessions_per_day: int = 8
    default_duration: int = 60
    buffer_minutes: int = 0

    def __post_init__(self):
        if not 0 <= self.work_start < self.work_end <= MINUTES_PER_DAY:
            raise InvalidScheduleError(
                f"Working hours {self.work_start}-{self.work_end} must start before they end"
            )
        if (self.break_start is None) != (self.break_end is None):
            raise InvalidScheduleError("Break start and break end must be set together")
        if self.has_break and not (
            self.work_start <= self.break_start < self.break_end <= self.work_end
        ):
            raise InvalidScheduleError(
                f"Break {format_time(self.break_start)}-{format_time(self.break_end)} "
                f"must lie within working hours"
            )
        if self.max_sessions_per_day < 1:
            raise InvalidScheduleError("max_sessions_per_day must be at least 1")
        if self.default_duration <= 0:
            raise InvalidScheduleError("default_duration must be greater than zero")
        if self.buffer_minutes < 0:
            raise InvalidScheduleError("buffer_minutes cannot be negative")

    @classmethod
    def from_strings(
        cls,
        work_start: str,
        work_end: str,
        break_start: Optional[str] = None,
        break_end: Optional[str] = None,
        **kwargs,
    ) -> "DaySchedule":
        """Build a schedule from "HH:MM" strings."""
        return cls(
            work_start=parse_time(work_start),
            work_end=parse_time(work_end),
            break_start=parse_time(break_start) if break_start else None,
            break_end=parse_time(break_end) if break_end else None,
            **kwargs,
        )

    @property
    def has_break(self) -> bool:
        return self.break_start is not None and self.break_end is not None

    def __str__(self) -> str:
        text = f"{format_time(self.work_start)} - {format_time(self.work_end)}"
        if self.has_break:
            text += f" (break {format_time(self.break_start)} - {format_time(self.break_end)})"
        return text


@dataclass(frozen=True)
class ScheduleConfiguration:
    """
    A date-ranged weekly schedule row as stored for a therapist.

    day_of_week follows ``date.weekday()``: 0=Monday, 6=Sunday.
    """
    therapist_id: str
    day_of_week: int
    schedule: Optional[DaySchedule]
    effective_date: date
    end_date: Optional[date] = None
    is_working_day: bool = True

    def covers(self, day: date) -> bool:
        """Check whether this row applies to the given calendar day."""
        if day.weekday() != self.day_of_week:
            return False
        if day < self.effective_date:
            return False
        return self.end_date is None or day <= self.end_date


@dataclass(frozen=True)
class BookedInterval:
    """A booked session reduced to its time range on one day."""
    session_id: str
    start: int
    end: int

    def __post_init__(self):
        ensure_range(self.start, self.end)

    def duration_minutes(self) -> int:
        return self.end - self.start

    def extended(self, buffer_minutes: int) -> Tuple[int, int]:
        """Bounds widened by the buffer on both sides; may leave the day."""
        return self.start - buffer_minutes, self.end + buffer_minutes

    def overlaps(self, start: int, end: int, buffer_minutes: int = 0) -> bool:
        """Check overlap with [start, end), widening this interval by the buffer."""
        low, high = self.extended(buffer_minutes)
        return start < high and end > low

    def __str__(self) -> str:
        return f"{format_time(self.start)} - {format_time(self.end)}"


@dataclass(frozen=True)
class Session:
    """A scheduled therapy session."""
    session_id: str
    therapist_id: str
    day: date
    start: int
    duration: int
    patient_name: Optional[str] = None
    notes: str = ""

    def __post_init__(self):
        if self.duration <= 0:
            raise InvalidDurationError(f"Session duration must be positive, got {self.duration}")
        ensure_range(self.start, self.start + self.duration)

    @property
    def end(self) -> int:
        return self.start + self.duration

    def to_interval(self) -> BookedInterval:
        return BookedInterval(session_id=self.session_id, start=self.start, end=self.end)

    def with_note(self, note: str) -> "Session":
        notes = f"{self.notes}\n{note}".strip() if self.notes else note
        return replace(self, notes=notes)


@dataclass(frozen=True)
class Therapist:
    """
    A therapist as returned by the directory, optionally with the day's
    schedule and bookings attached for scoring.
    """
    therapist_id: str
    name: str
    specialties: FrozenSet[str] = field(default_factory=frozenset)
    current_workload: int = 0
    max_workload: int = 8
    rating: Optional[float] = None
    experience_years: int = 0
    is_active: bool = True
    can_take_consultations: bool = True
    schedule: Optional[DaySchedule] = None
    booked: Tuple[BookedInterval, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "specialties", frozenset(self.specialties))
        object.__setattr__(self, "booked", tuple(self.booked))

    def has_specialty(self, specialty: str) -> bool:
        wanted = specialty.lower()
        return any(own.lower() == wanted for own in self.specialties)


@dataclass(frozen=True)
class DaySnapshot:
    """Schedule and bookings of one therapist on one day."""
    day: date
    schedule: Optional[DaySchedule]
    booked: Tuple[BookedInterval, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "booked", tuple(self.booked))


def intervals_from_sessions(sessions: Iterable[Session]) -> Tuple[BookedInterval, ...]:
    """Reduce sessions to booked intervals, ordered by start."""
    return tuple(sorted((s.to_interval() for s in sessions), key=lambda i: (i.start, i.session_id)))


@dataclass(frozen=True)
class SchedulingRules:
    """
    Tunable constants shared by the engine components.
    """
    slot_step_minutes: int = 15
    suggestion_limit: int = 5
    min_duration: int = 15
    max_duration: int = 480
    near_shift_minutes: int = 60
    comfort_gap_minutes: int = 0
    far_shift_minutes: int = 120
    acceptance_threshold: float = 60
    specialty_weight: float = 0.4
    availability_weight: float = 0.3
    workload_weight: float = 0.2
    rating_weight: float = 0.1
    max_rating: float = 5.0
