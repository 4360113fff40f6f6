"""
Ranks candidate therapists for a consultation request.

Each candidate gets a weighted sum of four terms, each normalised to 0-100:

    specialty match     x 0.4
    availability        x 0.3
    workload headroom   x 0.2
    rating              x 0.1

The weights and the acceptance threshold come from ``SchedulingRules``.
"""

import logging
from typing import List, Optional, Sequence, Tuple

from .availability import AvailabilityChecker
from .models import MINUTES_PER_DAY, SchedulingRules, Therapist, format_time
from .results import AssignmentRequest, AssignmentResult, TherapistScore

logger = logging.getLogger(__name__)

NO_MATCH_STRATEGY = "No suitable therapist found"


def _clamp(value: float) -> float:
    return max(0.0, min(100.0, value))


class TherapistAssignmentScorer:
    """Scores therapists and picks the best available one."""

    def __init__(
        self,
        rules: Optional[SchedulingRules] = None,
        checker: Optional[AvailabilityChecker] = None,
    ):
        self.rules = rules or SchedulingRules()
        self.checker = checker or AvailabilityChecker(self.rules)

    def score_candidates(
        self,
        candidates: Sequence[Therapist],
        request: AssignmentRequest,
    ) -> AssignmentResult:
        """
        Score every candidate and select an assignment.

        Unavailable candidates are still scored so they can be offered as
        alternatives, but never assigned.
        """
        excluded = set(request.exclude_therapist_ids)
        eligible = [c for c in candidates if c.therapist_id not in excluded]

        scores = [self.score_therapist(therapist, request) for therapist in eligible]
        ranked = sorted(scores, key=lambda s: (-s.score, s.therapist_id))

        assigned = next(
            (
                s for s in ranked
                if s.available and s.score >= self.rules.acceptance_threshold
            ),
            None,
        )
        alternatives = tuple(s for s in ranked if s is not assigned)
        strategy = self.describe_strategy(assigned)

        logger.debug(
            "Scored %d candidate(s) for %s on %s: %s",
            len(scores), ", ".join(request.required_specialties) or "any specialty",
            request.day, strategy,
        )

        return AssignmentResult(
            assigned=assigned,
            alternatives=alternatives,
            strategy=strategy,
            total_candidates=len(eligible),
        )

    def score_therapist(self, therapist: Therapist, request: AssignmentRequest) -> TherapistScore:
        rules = self.rules
        reasons: List[str] = []

        specialty, specialty_reason = self._specialty_term(therapist, request)
        reasons.append(specialty_reason)

        available, availability_reason = self._availability_term(therapist, request)
        reasons.append(availability_reason)

        workload, workload_reason = self._workload_term(therapist)
        reasons.append(workload_reason)

        rating, rating_reason = self._rating_term(therapist)
        reasons.append(rating_reason)
        reasons.append(self._experience_note(therapist))

        total = (
            specialty * rules.specialty_weight
            + (100.0 if available else 0.0) * rules.availability_weight
            + workload * rules.workload_weight
            + rating * rules.rating_weight
        )

        return TherapistScore(
            therapist_id=therapist.therapist_id,
            name=therapist.name,
            score=round(_clamp(total), 2),
            reasons=tuple(reasons),
            available=available,
            current_workload=therapist.current_workload,
            max_workload=therapist.max_workload,
        )

    @staticmethod
    def describe_strategy(assigned: Optional[TherapistScore]) -> str:
        if assigned is None:
            return NO_MATCH_STRATEGY
        if assigned.score >= 90:
            return "Optimal match"
        if assigned.score >= 75:
            return "Good match"
        if assigned.score >= 60:
            return "Acceptable match"
        return "Suboptimal — limited availability"

    @staticmethod
    def _specialty_term(therapist: Therapist, request: AssignmentRequest) -> Tuple[float, str]:
        required = request.required_specialties
        if not required:
            return 100.0, "No specialty required"

        matched = [s for s in required if therapist.has_specialty(s)]
        fraction = len(matched) / len(required)
        if not matched:
            return 0.0, f"No specialty match ({', '.join(required)})"
        if len(matched) == len(required):
            return 100.0, f"Full specialty match ({', '.join(matched)})"
        return fraction * 100, f"Partial specialty match ({len(matched)}/{len(required)})"

    def _availability_term(self, therapist: Therapist, request: AssignmentRequest) -> Tuple[bool, str]:
        if not therapist.is_active:
            return False, "Therapist is not active"
        if not therapist.can_take_consultations:
            return False, "Therapist is not accepting new consultations"
        if therapist.schedule is None:
            return False, "No schedule for this day"

        duration = request.duration or therapist.schedule.default_duration
        if request.preferred_time + duration > MINUTES_PER_DAY:
            return False, (
                f"A {duration}-minute session at {format_time(request.preferred_time)} "
                f"would run past midnight"
            )
        result = self.checker.check(
            therapist.schedule,
            therapist.booked,
            request.preferred_time,
            request.preferred_time + duration,
        )
        if result.available:
            return True, f"Available at {format_time(request.preferred_time)}"
        return False, result.errors[0].message

    @staticmethod
    def _workload_term(therapist: Therapist) -> Tuple[float, str]:
        if therapist.max_workload <= 0:
            return 0.0, "No workload capacity configured"
        headroom = _clamp(100 * (1 - therapist.current_workload / therapist.max_workload))
        return headroom, f"{therapist.current_workload}/{therapist.max_workload} appointments today"

    @staticmethod
    def _experience_note(therapist: Therapist) -> str:
        """Describe experience; informational only, it carries no weight."""
        years = therapist.experience_years
        if years >= 10:
            return "Highly experienced (10+ years)"
        if years >= 5:
            return "Experienced (5-10 years)"
        if years >= 2:
            return "Moderately experienced (2-5 years)"
        return "New therapist (0-2 years)"

    def _rating_term(self, therapist: Therapist) -> Tuple[float, str]:
        if therapist.rating is None:
            return 50.0, "No rating yet"
        value = _clamp(therapist.rating / self.rules.max_rating * 100)
        return value, f"Rated {therapist.rating:.1f}/{self.rules.max_rating:g}"
