"""
Domain layer - Pure scheduling logic without external dependencies.
"""

from .assignment import TherapistAssignmentScorer
from .availability import AvailabilityChecker
from .conflict_resolver import ConflictResolver
from .models import (
    BookedInterval,
    DaySchedule,
    DaySnapshot,
    ScheduleConfiguration,
    SchedulingRules,
    Session,
    Therapist,
    format_time,
    parse_time,
)
from .results import (
    AdjustmentResult,
    AssignmentRequest,
    AssignmentResult,
    AvailabilityResult,
    Conflict,
    ConflictType,
    OptimizationStrategy,
    Priority,
    ResolutionConstraints,
    ResolutionResult,
    Severity,
    Suggestion,
    TherapistScore,
)
from .slot_optimizer import TimeSlotOptimizer
from .timing_adjuster import SessionTimingAdjuster

__all__ = [
    "AdjustmentResult",
    "AssignmentRequest",
    "AssignmentResult",
    "AvailabilityChecker",
    "AvailabilityResult",
    "BookedInterval",
    "Conflict",
    "ConflictResolver",
    "ConflictType",
    "DaySchedule",
    "DaySnapshot",
    "OptimizationStrategy",
    "Priority",
    "ResolutionConstraints",
    "ResolutionResult",
    "ScheduleConfiguration",
    "SchedulingRules",
    "Session",
    "SessionTimingAdjuster",
    "Severity",
    "Suggestion",
    "Therapist",
    "TherapistAssignmentScorer",
    "TherapistScore",
    "TimeSlotOptimizer",
    "format_time",
    "parse_time",
]
