"""
Enumerates the free slots of a therapist's day and ranks them.

Pure domain logic: no storage access, no I/O.
"""

import logging
from typing import Iterable, List, Optional, Sequence, Tuple

from .exceptions import InvalidDurationError
from .models import BookedInterval, DaySchedule, SchedulingRules
from .results import OptimizationStrategy, Priority, Suggestion

logger = logging.getLogger(__name__)

Block = Tuple[int, int]


class TimeSlotOptimizer:
    """
    Finds free windows in a day schedule and scores them per strategy.

    Algorithm:
    1. Start from the working block of the day
    2. Subtract the break and every booking widened by the buffer
    3. Slide each candidate duration across the day on a fixed step grid
    4. Keep windows that fit entirely inside a free block
    5. Score, flag and sort the survivors
    """

    def __init__(self, rules: Optional[SchedulingRules] = None):
        self.rules = rules or SchedulingRules()

    def optimize(
        self,
        schedule: DaySchedule,
        booked: Sequence[BookedInterval],
        candidate_durations: Iterable[int],
        strategy: OptimizationStrategy = OptimizationStrategy.EFFICIENCY,
    ) -> List[Suggestion]:
        """
        Score every free window for every candidate duration.

        Args:
            schedule: The therapist's schedule for the day
            booked: Bookings already on that day
            candidate_durations: Session lengths to try, in minutes
            strategy: Scoring strategy

        Returns:
            Suggestions sorted by score (desc), then start time
        """
        strategy = OptimizationStrategy(strategy)
        durations = self._normalize_durations(candidate_durations)

        suggestions: List[Suggestion] = []
        for duration in durations:
            for start in self.free_windows(schedule, booked, duration):
                score, reason = self._score(strategy, schedule, booked, start, duration)
                is_optimal = score >= 80
                suggestions.append(
                    Suggestion(
                        start=start,
                        duration=duration,
                        priority=Priority.HIGH if is_optimal else Priority.MEDIUM,
                        reason=reason,
                        score=score,
                        is_optimal=is_optimal,
                    )
                )

        suggestions.sort(key=lambda s: (-s.score, s.start, s.duration))
        logger.debug(
            "Optimized %d slot(s) for durations %s using %s",
            len(suggestions), durations, strategy.value,
        )
        return suggestions

    def free_windows(
        self,
        schedule: DaySchedule,
        booked: Sequence[BookedInterval],
        duration: int,
        exclude_session_id: Optional[str] = None,
        enforce_capacity: bool = True,
    ) -> List[int]:
        """
        Return the start minute of every free window of the given duration.

        A window is free when it lies inside working hours, misses the break
        and keeps the buffer to every booking.
        """
        if duration <= 0:
            raise InvalidDurationError(f"Duration must be greater than zero, got {duration}")

        others = [b for b in booked if b.session_id != exclude_session_id]
        if enforce_capacity and len(others) >= schedule.max_sessions_per_day:
            return []

        blocks = self.free_blocks(schedule, others)
        step = self.rules.slot_step_minutes
        starts: List[int] = []

        start = schedule.work_start
        while start + duration <= schedule.work_end:
            end = start + duration
            if any(block_start <= start and end <= block_end for block_start, block_end in blocks):
                starts.append(start)
            start += step

        return starts

    def free_blocks(
        self,
        schedule: DaySchedule,
        booked: Sequence[BookedInterval],
    ) -> List[Block]:
        """
        Subtract the break and buffered bookings from the working block.

        Example (buffer 0):
        Working: 09:00 - 17:00
        Break: 12:00 - 13:00, Booked: 10:00 - 11:00
        Result: [09:00-10:00, 11:00-12:00, 13:00-17:00]
        """
        buffer = schedule.buffer_minutes
        busy: List[Block] = [b.extended(buffer) for b in booked]
        if schedule.has_break:
            busy.append((schedule.break_start, schedule.break_end))

        free: List[Block] = []
        current_start = schedule.work_start

        for busy_start, busy_end in sorted(busy):
            clipped_start = max(busy_start, schedule.work_start)
            clipped_end = min(busy_end, schedule.work_end)
            if clipped_end <= clipped_start:
                continue

            if current_start < clipped_start:
                free.append((current_start, clipped_start))

            current_start = max(current_start, clipped_end)

        if current_start < schedule.work_end:
            free.append((current_start, schedule.work_end))

        return free

    def _score(
        self,
        strategy: OptimizationStrategy,
        schedule: DaySchedule,
        booked: Sequence[BookedInterval],
        start: int,
        duration: int,
    ) -> Tuple[float, str]:
        if strategy is OptimizationStrategy.EFFICIENCY:
            return float(duration), f"Uses {duration} minutes of free time"

        if strategy is OptimizationStrategy.PATIENT_COMFORT:
            gap = max(schedule.buffer_minutes, self.rules.comfort_gap_minutes)
            end = start + duration
            cramped = any(b.overlaps(start, end, buffer_minutes=gap) for b in booked)
            if cramped:
                return 50.0, "Close to a neighbouring session"
            return 100.0, "Comfortable gap to neighbouring sessions"

        if duration == schedule.default_duration:
            return 100.0, "Matches the therapist's default session length"
        return 80.0, "Differs from the therapist's default session length"

    @staticmethod
    def _normalize_durations(candidate_durations: Iterable[int]) -> List[int]:
        durations: List[int] = []
        for duration in candidate_durations:
            if duration <= 0:
                raise InvalidDurationError(f"Duration must be greater than zero, got {duration}")
            if duration not in durations:
                durations.append(duration)
        return sorted(durations)
