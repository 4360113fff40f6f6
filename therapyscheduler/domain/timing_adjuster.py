"""
Applies a duration change to a session and optionally cascades the shift to
every later session of the same therapist on the same day.
"""

import logging
from dataclasses import replace
from typing import Dict, List, Optional, Sequence

from .availability import AvailabilityChecker
from .exceptions import InvalidAdjustmentError
from .models import (
    MINUTES_PER_DAY,
    BookedInterval,
    DaySchedule,
    SchedulingRules,
    Session,
    format_time,
)
from .results import AdjustmentResult, Conflict, ConflictType, Severity

logger = logging.getLogger(__name__)

SHIFT_NOTE = "Time adjusted due to previous session duration change"


def _describe(minutes: int) -> str:
    if 0 <= minutes <= MINUTES_PER_DAY:
        return format_time(minutes)
    return f"{minutes} min"


class SessionTimingAdjuster:
    """
    Changes the length of one session, all-or-nothing.

    With ``cascade=True`` every same-day session starting after the adjusted
    one moves by the same delta, preserving order and individual lengths. If
    any moved session would break a rule, nothing is changed and the full
    conflict list is returned.
    """

    def __init__(
        self,
        rules: Optional[SchedulingRules] = None,
        checker: Optional[AvailabilityChecker] = None,
    ):
        self.rules = rules or SchedulingRules()
        self.checker = checker or AvailabilityChecker(self.rules)

    def adjust_duration(
        self,
        session: Session,
        new_duration: int,
        reason: Optional[str],
        cascade: bool,
        schedule: Optional[DaySchedule],
        day_sessions: Sequence[Session],
    ) -> AdjustmentResult:
        """
        Compute the effect of changing ``session`` to ``new_duration`` minutes.

        Args:
            session: The session to adjust
            new_duration: Requested length in minutes
            reason: Free-text reason, recorded in the session notes
            cascade: Whether later sessions move along
            schedule: The therapist's schedule for that day
            day_sessions: All sessions of the therapist on that day

        Returns:
            AdjustmentResult with the updated and shifted sessions, or the
            conflicts that reject the change

        Raises:
            InvalidAdjustmentError: If the duration is out of range or unchanged
        """
        self._validate(session, new_duration)

        others = [s for s in day_sessions if s.session_id != session.session_id]
        later = sorted(
            (s for s in others if s.start > session.start),
            key=lambda s: (s.start, s.session_id),
        ) if cascade else []
        later_ids = {s.session_id for s in later}
        fixed = [s for s in others if s.session_id not in later_ids]

        new_end = session.start + new_duration
        delta = new_duration - session.duration

        if new_end > MINUTES_PER_DAY:
            conflict = Conflict(
                type=ConflictType.OUTSIDE_WORKING_HOURS,
                severity=Severity.ERROR,
                message=f"Session {session.session_id} would run past midnight",
                conflicting_interval=session.to_interval(),
            )
            return AdjustmentResult(rejected=(conflict,), delta=delta)

        target_check = self.checker.check(
            schedule,
            [s.to_interval() for s in fixed],
            session.start,
            new_end,
            exclude_session_id=session.session_id,
            enforce_capacity=False,
        )
        if not target_check.available:
            logger.info(
                "Rejected duration change of session %s to %d minutes",
                session.session_id, new_duration,
            )
            return AdjustmentResult(rejected=tuple(target_check.errors), delta=delta)

        note = f"Duration adjusted from {session.duration} to {new_duration} minutes"
        if reason:
            note += f": {reason}"
        updated = replace(session, duration=new_duration).with_note(note)

        if not cascade or not later:
            return AdjustmentResult(updated_session=updated, delta=delta)

        conflicts = self._cascade_conflicts(schedule, fixed, updated, later, delta)
        if conflicts:
            logger.warning(
                "Rejected cascade of %d session(s) after %s: %d conflict(s)",
                len(later), session.session_id, len(conflicts),
            )
            return AdjustmentResult(rejected=tuple(conflicts), delta=delta)

        shifted = tuple(
            replace(s, start=s.start + delta).with_note(SHIFT_NOTE) for s in later
        )
        logger.debug(
            "Adjusted session %s by %+d minutes, shifted %d later session(s)",
            session.session_id, delta, len(shifted),
        )
        return AdjustmentResult(updated_session=updated, shifted_sessions=shifted, delta=delta)

    def _validate(self, session: Session, new_duration: int) -> None:
        low, high = self.rules.min_duration, self.rules.max_duration
        if not low <= new_duration <= high:
            raise InvalidAdjustmentError(
                f"Duration must be between {low} and {high} minutes, got {new_duration}"
            )
        if new_duration == session.duration:
            raise InvalidAdjustmentError(
                f"Session {session.session_id} already lasts {new_duration} minutes"
            )

    def _cascade_conflicts(
        self,
        schedule: DaySchedule,
        fixed: Sequence[Session],
        updated: Session,
        later: Sequence[Session],
        delta: int,
    ) -> List[Conflict]:
        conflicts: List[Conflict] = []
        positions: Dict[str, int] = {}

        for moved in later:
            new_start = moved.start + delta
            new_end = new_start + moved.duration
            if new_start < 0 or new_start < schedule.work_start or new_end > schedule.work_end:
                conflicts.append(Conflict(
                    type=ConflictType.OUTSIDE_WORKING_HOURS,
                    severity=Severity.ERROR,
                    message=(
                        f"Session {moved.session_id} would move to "
                        f"{_describe(new_start)} - {_describe(new_end)}, outside working hours "
                        f"({format_time(schedule.work_start)} - {format_time(schedule.work_end)})"
                    ),
                    conflicting_interval=moved.to_interval(),
                ))
            else:
                positions[moved.session_id] = new_start

        context: List[BookedInterval] = [s.to_interval() for s in fixed]
        context.append(updated.to_interval())
        context.extend(
            BookedInterval(session_id=s.session_id, start=positions[s.session_id],
                           end=positions[s.session_id] + s.duration)
            for s in later if s.session_id in positions
        )

        for moved in later:
            if moved.session_id not in positions:
                continue
            new_start = positions[moved.session_id]
            result = self.checker.check(
                schedule,
                context,
                new_start,
                new_start + moved.duration,
                exclude_session_id=moved.session_id,
                enforce_capacity=False,
            )
            for error in result.errors:
                conflicts.append(replace(
                    error,
                    message=f"Session {moved.session_id} at {format_time(new_start)}: {error.message}",
                ))

        return conflicts
