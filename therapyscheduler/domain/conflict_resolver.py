"""
Automatic conflict resolution: confirm a slot or pick the best alternative.
"""

import logging
from dataclasses import replace
from typing import Callable, Optional

from .availability import AvailabilityChecker
from .exceptions import ValidationError
from .models import DaySnapshot, SchedulingRules, format_time, to_date
from .results import ResolutionConstraints, ResolutionResult, Suggestion

logger = logging.getLogger(__name__)

DayLookup = Callable[[object], Optional[DaySnapshot]]


class ConflictResolver:
    """
    Resolves a requested slot into a concrete, conflict-free booking time.

    The resolver is deterministic: the same snapshot, request and
    constraints always produce the same answer.
    """

    def __init__(
        self,
        rules: Optional[SchedulingRules] = None,
        checker: Optional[AvailabilityChecker] = None,
    ):
        self.rules = rules or SchedulingRules()
        self.checker = checker or AvailabilityChecker(self.rules)

    def resolve(
        self,
        snapshot: DaySnapshot,
        start: int,
        duration: int,
        constraints: Optional[ResolutionConstraints] = None,
        day_lookup: Optional[DayLookup] = None,
        exclude_session_id: Optional[str] = None,
    ) -> ResolutionResult:
        """
        Confirm the requested slot or find the nearest acceptable one.

        Args:
            snapshot: Schedule and bookings for the requested day
            start: Requested start, minutes since midnight
            duration: Session length in minutes
            constraints: Time-shift and day-change limits
            day_lookup: Returns the snapshot of another day; needed for
                ``allow_different_day``
            exclude_session_id: Session being moved, ignored as a booking

        Returns:
            ResolutionResult; ``resolved=False`` when nothing fits
        """
        constraints = constraints or ResolutionConstraints()
        if constraints.max_time_shift_minutes < 0:
            raise ValidationError("max_time_shift_minutes cannot be negative")
        if constraints.max_days_forward < 0:
            raise ValidationError("max_days_forward cannot be negative")

        result = self.checker.check(
            snapshot.schedule,
            snapshot.booked,
            start,
            start + duration,
            exclude_session_id=exclude_session_id,
        )
        if result.available:
            return ResolutionResult(
                resolved=True,
                suggested_start=start,
                suggested_date=snapshot.day,
                reason="Requested slot is available",
            )

        if snapshot.schedule is not None:
            same_day = self._best_within_shift(snapshot, start, duration, constraints, exclude_session_id)
            if same_day is not None:
                shift = same_day.start - start
                direction = "earlier" if shift < 0 else "later"
                return ResolutionResult(
                    resolved=True,
                    suggested_start=same_day.start,
                    suggested_date=snapshot.day,
                    reason=f"Found available slot {abs(shift)} minutes {direction}",
                    suggestion=same_day,
                )

        if constraints.allow_different_day and day_lookup is not None:
            found = self._search_following_days(snapshot, start, duration, constraints, day_lookup)
            if found is not None:
                return found

        reason = self._failure_reason(snapshot, start, constraints, day_lookup)
        logger.debug("Could not resolve %s on %s: %s", format_time(start), snapshot.day, reason)
        return ResolutionResult(resolved=False, reason=reason)

    def _best_within_shift(
        self,
        snapshot: DaySnapshot,
        start: int,
        duration: int,
        constraints: ResolutionConstraints,
        exclude_session_id: Optional[str],
    ) -> Optional[Suggestion]:
        candidates = self.checker.suggest_alternatives(
            snapshot.schedule,
            snapshot.booked,
            start,
            duration,
            exclude_session_id=exclude_session_id,
            limit=0,
        )
        for candidate in candidates:
            if abs(candidate.start - start) <= constraints.max_time_shift_minutes:
                return replace(candidate, day=snapshot.day)
        return None

    def _search_following_days(
        self,
        snapshot: DaySnapshot,
        start: int,
        duration: int,
        constraints: ResolutionConstraints,
        day_lookup: DayLookup,
    ) -> Optional[ResolutionResult]:
        origin = to_date(snapshot.day)

        for offset in range(1, constraints.max_days_forward + 1):
            day = origin.add(days=offset)
            other = day_lookup(day)
            if other is None or other.schedule is None:
                continue

            candidates = self.checker.suggest_alternatives(
                other.schedule,
                other.booked,
                start,
                duration,
                limit=0,
                skip_requested=False,
            )
            if not candidates:
                continue

            best = replace(candidates[0], day=day)
            logger.debug("Resolved onto %s at %s", day, format_time(best.start))
            return ResolutionResult(
                resolved=True,
                suggested_start=best.start,
                suggested_date=day,
                reason=f"Found available slot {offset} day(s) later",
                suggestion=best,
            )

        return None

    @staticmethod
    def _failure_reason(
        snapshot: DaySnapshot,
        start: int,
        constraints: ResolutionConstraints,
        day_lookup: Optional[DayLookup],
    ) -> str:
        if snapshot.schedule is None:
            reason = "Therapist not available on this day"
        else:
            reason = (
                f"No available slot within {constraints.max_time_shift_minutes} minutes "
                f"of {format_time(start)}"
            )
        if constraints.allow_different_day and day_lookup is not None:
            reason += f" or in the next {constraints.max_days_forward} day(s)"
        return reason
