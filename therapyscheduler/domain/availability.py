"""
Checks a candidate slot against working hours, breaks and bookings.

This is the single place where overlap, break and buffer rules are
evaluated; the optimizer, resolver, adjuster and scorer all defer to it.
"""

import logging
from typing import List, Optional, Sequence

from .exceptions import InvalidTimeRangeError
from .models import MINUTES_PER_DAY, BookedInterval, DaySchedule, SchedulingRules, format_time
from .results import (
    AvailabilityResult,
    Conflict,
    ConflictType,
    Priority,
    Severity,
    Suggestion,
)
from .slot_optimizer import TimeSlotOptimizer

logger = logging.getLogger(__name__)


class AvailabilityChecker:
    """
    Decides whether a (start, end) slot is free for one therapist on one day.

    Every rule that fails is reported as a ``Conflict``; the slot is
    available when none of them is an error. Unavailable slots come back
    with ranked same-day alternatives.
    """

    def __init__(
        self,
        rules: Optional[SchedulingRules] = None,
        optimizer: Optional[TimeSlotOptimizer] = None,
    ):
        self.rules = rules or SchedulingRules()
        self.optimizer = optimizer or TimeSlotOptimizer(self.rules)

    def check(
        self,
        schedule: Optional[DaySchedule],
        booked: Sequence[BookedInterval],
        start: int,
        end: int,
        exclude_session_id: Optional[str] = None,
        enforce_capacity: bool = True,
    ) -> AvailabilityResult:
        """
        Check a candidate slot.

        Args:
            schedule: Day schedule, or None when the therapist is off that day
            booked: Existing bookings on that day
            start: Candidate start, minutes since midnight
            end: Candidate end, minutes since midnight
            exclude_session_id: Booking to ignore (the session being moved)
            enforce_capacity: Whether max_sessions_per_day applies

        Returns:
            AvailabilityResult with conflicts and, if unavailable, suggestions

        Raises:
            InvalidTimeRangeError: If the candidate is empty, reversed or off the clock
        """
        if end <= start or start < 0 or end > MINUTES_PER_DAY:
            raise InvalidTimeRangeError(
                f"Candidate {start}-{end} must be a non-empty range within one day"
            )

        if schedule is None:
            conflict = Conflict(
                type=ConflictType.THERAPIST_UNAVAILABLE,
                severity=Severity.ERROR,
                message="Therapist is not scheduled to work on this day",
            )
            return AvailabilityResult(
                available=False,
                conflicts=(conflict,),
                reason="Therapist is not scheduled to work on this day",
            )

        others = [b for b in booked if b.session_id != exclude_session_id]
        conflicts: List[Conflict] = []

        if start < schedule.work_start or end > schedule.work_end:
            conflicts.append(Conflict(
                type=ConflictType.OUTSIDE_WORKING_HOURS,
                severity=Severity.ERROR,
                message=(
                    f"Time slot is outside working hours "
                    f"({format_time(schedule.work_start)} - {format_time(schedule.work_end)})"
                ),
            ))

        if schedule.has_break and start < schedule.break_end and end > schedule.break_start:
            conflicts.append(Conflict(
                type=ConflictType.BREAK_CONFLICT,
                severity=Severity.ERROR,
                message=(
                    f"Time slot conflicts with the therapist's break "
                    f"({format_time(schedule.break_start)} - {format_time(schedule.break_end)})"
                ),
            ))

        conflicts.extend(self._session_conflicts(schedule, others, start, end))

        if enforce_capacity:
            capacity_conflict = self._capacity_conflict(schedule, others)
            if capacity_conflict:
                conflicts.append(capacity_conflict)

        has_errors = any(c.is_error for c in conflicts)
        has_warnings = any(c.severity is Severity.WARNING for c in conflicts)

        suggestions: tuple = ()
        if has_errors:
            suggestions = tuple(self.suggest_alternatives(
                schedule,
                others,
                start,
                end - start,
                enforce_capacity=enforce_capacity,
            ))

        if has_errors:
            reason = "Conflicts prevent scheduling"
        elif has_warnings:
            reason = "Scheduling possible with warnings"
        else:
            reason = None

        logger.debug(
            "Checked %s-%s: %d conflict(s), %d suggestion(s)",
            start, end, len(conflicts), len(suggestions),
        )

        return AvailabilityResult(
            available=not has_errors,
            conflicts=tuple(conflicts),
            suggestions=suggestions,
            reason=reason,
        )

    def is_available(
        self,
        schedule: Optional[DaySchedule],
        booked: Sequence[BookedInterval],
        start: int,
        end: int,
        exclude_session_id: Optional[str] = None,
    ) -> bool:
        return self.check(schedule, booked, start, end, exclude_session_id).available

    def suggest_alternatives(
        self,
        schedule: DaySchedule,
        booked: Sequence[BookedInterval],
        requested_start: int,
        duration: int,
        exclude_session_id: Optional[str] = None,
        enforce_capacity: bool = True,
        limit: Optional[int] = None,
        skip_requested: bool = True,
    ) -> List[Suggestion]:
        """
        Rank every free same-day window of the requested duration.

        Closest to the requested start first; equal distances prefer the
        earlier window. ``limit=None`` uses the configured suggestion limit,
        ``limit=0`` returns all of them.
        """
        starts = self.optimizer.free_windows(
            schedule,
            booked,
            duration,
            exclude_session_id=exclude_session_id,
            enforce_capacity=enforce_capacity,
        )

        suggestions = [
            self._build_suggestion(candidate, duration, requested_start)
            for candidate in starts
            if not (skip_requested and candidate == requested_start)
        ]
        suggestions.sort(key=lambda s: s.sort_key(requested_start))

        if limit is None:
            limit = self.rules.suggestion_limit
        return suggestions[:limit] if limit else suggestions

    def _build_suggestion(self, start: int, duration: int, requested_start: int) -> Suggestion:
        shift = abs(start - requested_start)
        if shift <= self.rules.near_shift_minutes:
            priority = Priority.HIGH
        elif shift <= self.rules.far_shift_minutes:
            priority = Priority.MEDIUM
        else:
            priority = Priority.LOW

        if shift == 0:
            reason = "Requested time slot available"
        else:
            direction = "Earlier" if start < requested_start else "Later"
            reason = f"{direction} time slot available ({shift} minutes away)"
        return Suggestion(start=start, duration=duration, priority=priority, reason=reason)

    @staticmethod
    def _session_conflicts(
        schedule: DaySchedule,
        others: Sequence[BookedInterval],
        start: int,
        end: int,
    ) -> List[Conflict]:
        conflicts: List[Conflict] = []
        buffer = schedule.buffer_minutes

        for interval in sorted(others, key=lambda i: (i.start, i.session_id)):
            if interval.overlaps(start, end):
                message = f"Time slot overlaps session {interval.session_id} ({interval})"
            elif buffer and interval.overlaps(start, end, buffer_minutes=buffer):
                message = (
                    f"Time slot violates the {buffer}-minute buffer around "
                    f"session {interval.session_id} ({interval})"
                )
            else:
                continue

            conflicts.append(Conflict(
                type=ConflictType.EXISTING_SESSION,
                severity=Severity.ERROR,
                message=message,
                conflicting_interval=interval,
            ))

        return conflicts

    @staticmethod
    def _capacity_conflict(
        schedule: DaySchedule,
        others: Sequence[BookedInterval],
    ) -> Optional[Conflict]:
        limit = schedule.max_sessions_per_day
        if len(others) >= limit:
            return Conflict(
                type=ConflictType.SCHEDULE_CONFLICT,
                severity=Severity.ERROR,
                message=f"Daily limit of {limit} sessions already reached",
            )
        if len(others) + 1 == limit:
            return Conflict(
                type=ConflictType.SCHEDULE_CONFLICT,
                severity=Severity.WARNING,
                message=f"Booking fills the last of {limit} daily sessions",
            )
        return None
