"""
Application service wiring storage collaborators to the scheduling engine.

The service pulls schedule and session snapshots through narrow protocols,
hands them to the pure domain components and persists only the returned
decisions. "HH:MM" strings are converted here, at the boundary.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from typing import Dict, List, Optional, Protocol, Sequence, Tuple

from ..domain.assignment import TherapistAssignmentScorer
from ..domain.availability import AvailabilityChecker
from ..domain.conflict_resolver import ConflictResolver
from ..domain.models import (
    BookedInterval,
    DaySchedule,
    DaySnapshot,
    SchedulingRules,
    Session,
    Therapist,
    intervals_from_sessions,
    parse_time,
    to_date,
)
from ..domain.results import (
    AdjustmentResult,
    AssignmentRequest,
    AssignmentResult,
    AvailabilityResult,
    OptimizationStrategy,
    ResolutionConstraints,
    ResolutionResult,
    Suggestion,
)
from ..domain.slot_optimizer import TimeSlotOptimizer
from ..domain.timing_adjuster import SessionTimingAdjuster

logger = logging.getLogger(__name__)


class ScheduleProvider(Protocol):
    """Resolves the effective weekly schedule of a therapist for a date."""

    async def get_day_schedule(self, therapist_id: str, day: date) -> Optional[DaySchedule]:
        """Return the schedule in effect, or None when the therapist is off."""


class SessionStore(Protocol):
    """Reads booked sessions and commits changes atomically."""

    async def get_session(self, session_id: str) -> Session:
        """Return one session or raise SessionNotFoundError."""

    async def get_day_sessions(self, therapist_id: str, day: date) -> Tuple[List[Session], int]:
        """Return the day's sessions and the day's revision number."""

    async def get_booked_intervals(self, therapist_id: str, day: date) -> List[BookedInterval]:
        """Return the day's bookings as intervals."""

    async def commit_session_changes(
        self,
        therapist_id: str,
        day: date,
        updated_session: Session,
        shifted_sessions: Sequence[Session],
        expected_revision: int,
    ) -> int:
        """Persist all changes as one batch; raise StaleSnapshotError on a stale revision."""


class TherapistDirectory(Protocol):
    """Lists therapists that may take a consultation."""

    async def get_candidates(self, specialty_filter: Sequence[str]) -> List[Therapist]:
        """Return candidate therapists with workload and rating populated."""


class SchedulingService:
    """
    Orchestrates snapshot retrieval, engine calls and commits.

    Depending on protocols keeps the engine testable with in-memory stores
    and lets a real database adapter be plugged in unchanged.
    """

    def __init__(
        self,
        schedule_provider: ScheduleProvider,
        session_store: SessionStore,
        therapist_directory: TherapistDirectory,
        rules: Optional[SchedulingRules] = None,
    ) -> None:
        self._schedules = schedule_provider
        self._sessions = session_store
        self._directory = therapist_directory
        self.rules = rules or SchedulingRules()

        self.optimizer = TimeSlotOptimizer(self.rules)
        self.checker = AvailabilityChecker(self.rules, optimizer=self.optimizer)
        self.resolver = ConflictResolver(self.rules, checker=self.checker)
        self.adjuster = SessionTimingAdjuster(self.rules, checker=self.checker)
        self.scorer = TherapistAssignmentScorer(self.rules, checker=self.checker)

    async def snapshot(self, therapist_id: str, day) -> DaySnapshot:
        """Load the schedule and bookings of one therapist on one day."""
        day = to_date(day)
        schedule = await self._schedules.get_day_schedule(therapist_id, day)
        booked = await self._sessions.get_booked_intervals(therapist_id, day)
        return DaySnapshot(day=day, schedule=schedule, booked=tuple(booked))

    async def check_slot(
        self,
        *,
        therapist_id: str,
        day,
        start: str,
        duration: int,
        exclude_session_id: Optional[str] = None,
    ) -> AvailabilityResult:
        snapshot = await self.snapshot(therapist_id, day)
        start_minutes = parse_time(start)
        return self.checker.check(
            snapshot.schedule,
            snapshot.booked,
            start_minutes,
            start_minutes + duration,
            exclude_session_id=exclude_session_id,
        )

    async def optimize_day(
        self,
        *,
        therapist_id: str,
        day,
        durations: Sequence[int],
        strategy: OptimizationStrategy = OptimizationStrategy.EFFICIENCY,
    ) -> List[Suggestion]:
        snapshot = await self.snapshot(therapist_id, day)
        if snapshot.schedule is None:
            logger.debug("Therapist %s does not work on %s", therapist_id, snapshot.day)
            return []
        return self.optimizer.optimize(snapshot.schedule, snapshot.booked, durations, strategy)

    async def resolve_conflict(
        self,
        *,
        therapist_id: str,
        day,
        start: str,
        duration: int,
        constraints: Optional[ResolutionConstraints] = None,
        exclude_session_id: Optional[str] = None,
    ) -> ResolutionResult:
        constraints = constraints or ResolutionConstraints()
        snapshot = await self.snapshot(therapist_id, day)

        following: Dict[date, DaySnapshot] = {}
        if constraints.allow_different_day:
            for offset in range(1, constraints.max_days_forward + 1):
                other = await self.snapshot(therapist_id, snapshot.day.add(days=offset))
                following[other.day] = other

        return self.resolver.resolve(
            snapshot,
            parse_time(start),
            duration,
            constraints,
            day_lookup=lambda d: following.get(to_date(d)),
            exclude_session_id=exclude_session_id,
        )

    async def adjust_session_duration(
        self,
        *,
        session_id: str,
        new_duration: int,
        reason: Optional[str] = None,
        cascade: bool = False,
    ) -> AdjustmentResult:
        """
        Adjust a session and commit the whole change set when accepted.

        Raises:
            SessionNotFoundError: If the session does not exist
            StaleSnapshotError: If the day changed while the change was computed
            InvalidAdjustmentError: If the new duration is invalid
        """
        session = await self._sessions.get_session(session_id)
        day_sessions, revision = await self._sessions.get_day_sessions(
            session.therapist_id, session.day
        )
        schedule = await self._schedules.get_day_schedule(session.therapist_id, session.day)

        result = self.adjuster.adjust_duration(
            session,
            new_duration,
            reason,
            cascade,
            schedule,
            day_sessions,
        )
        if result.accepted:
            await self._sessions.commit_session_changes(
                session.therapist_id,
                session.day,
                result.updated_session,
                result.shifted_sessions,
                revision,
            )
        return result

    async def book_session(self, session: Session) -> AvailabilityResult:
        """
        Validate a new booking against a fresh snapshot and commit it.

        The commit carries the snapshot revision, so a concurrent booking
        on the same therapist and day makes it fail instead of overlapping.
        """
        day_sessions, revision = await self._sessions.get_day_sessions(
            session.therapist_id, session.day
        )
        schedule = await self._schedules.get_day_schedule(session.therapist_id, session.day)
        result = self.checker.check(
            schedule,
            intervals_from_sessions(day_sessions),
            session.start,
            session.end,
            exclude_session_id=session.session_id,
        )
        if result.available:
            await self._sessions.commit_session_changes(
                session.therapist_id, session.day, session, (), revision
            )
        return result

    async def assign_therapist(
        self,
        *,
        required_specialties: Sequence[str],
        day,
        preferred_time: str,
        duration: Optional[int] = None,
        exclude_therapist_ids: Sequence[str] = (),
    ) -> AssignmentResult:
        day = to_date(day)
        request = AssignmentRequest(
            required_specialties=tuple(required_specialties),
            preferred_time=parse_time(preferred_time),
            day=day,
            duration=duration,
            exclude_therapist_ids=tuple(exclude_therapist_ids),
        )

        candidates = await self._directory.get_candidates(request.required_specialties)
        prepared: List[Therapist] = []
        for therapist in candidates:
            snapshot = await self.snapshot(therapist.therapist_id, day)
            prepared.append(replace(therapist, schedule=snapshot.schedule, booked=snapshot.booked))

        return self.scorer.score_candidates(prepared, request)
