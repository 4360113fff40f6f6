"""
In-memory collaborators for the scheduling service.

These back the CLI (loaded from the YAML roster) and the tests. A database
adapter would implement the same protocols.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ..domain.exceptions import SessionNotFoundError, StaleSnapshotError
from ..domain.models import (
    BookedInterval,
    DaySchedule,
    ScheduleConfiguration,
    Session,
    Therapist,
    intervals_from_sessions,
    to_date,
)

logger = logging.getLogger(__name__)

DayKey = Tuple[str, date]


class InMemoryScheduleProvider:
    """
    Resolves date-ranged weekly schedule rows.

    When several rows cover the same date, the one that became effective
    most recently wins.
    """

    def __init__(self, configurations: Iterable[ScheduleConfiguration] = ()):
        self._configurations: List[ScheduleConfiguration] = list(configurations)

    def add(self, configuration: ScheduleConfiguration) -> None:
        self._configurations.append(configuration)

    def resolve(self, therapist_id: str, day: date) -> Optional[ScheduleConfiguration]:
        covering = [
            c for c in self._configurations
            if c.therapist_id == therapist_id and c.covers(day)
        ]
        if not covering:
            return None
        return max(covering, key=lambda c: c.effective_date)

    async def get_day_schedule(self, therapist_id: str, day: date) -> Optional[DaySchedule]:
        configuration = self.resolve(therapist_id, to_date(day))
        if configuration is None or not configuration.is_working_day:
            return None
        return configuration.schedule


class InMemorySessionStore:
    """
    Session storage with an optimistic revision per therapist and day.

    Every commit bumps the revision of the day it touches; a commit carrying
    an older revision is refused, so two writers that reasoned about the
    same snapshot cannot both succeed.
    """

    def __init__(self, sessions: Iterable[Session] = ()):
        self._lock = threading.Lock()
        self._sessions: Dict[str, Session] = {}
        self._revisions: Dict[DayKey, int] = {}
        for session in sessions:
            session = replace(session, day=to_date(session.day))
            self._sessions[session.session_id] = session

    async def get_session(self, session_id: str) -> Session:
        with self._lock:
            try:
                return self._sessions[session_id]
            except KeyError:
                raise SessionNotFoundError(f"Session not found: {session_id}") from None

    async def get_day_sessions(self, therapist_id: str, day: date) -> Tuple[List[Session], int]:
        day = to_date(day)
        with self._lock:
            sessions = self._day_sessions(therapist_id, day)
            return sessions, self._revisions.get((therapist_id, day), 0)

    async def get_booked_intervals(self, therapist_id: str, day: date) -> List[BookedInterval]:
        sessions, _ = await self.get_day_sessions(therapist_id, day)
        return list(intervals_from_sessions(sessions))

    async def commit_session_changes(
        self,
        therapist_id: str,
        day: date,
        updated_session: Session,
        shifted_sessions: Sequence[Session],
        expected_revision: int,
    ) -> int:
        day = to_date(day)
        key = (therapist_id, day)
        batch = [updated_session, *shifted_sessions]

        with self._lock:
            current = self._revisions.get(key, 0)
            if current != expected_revision:
                logger.warning(
                    "Refused commit for %s on %s: revision %d, expected %d",
                    therapist_id, day, current, expected_revision,
                )
                raise StaleSnapshotError(
                    f"Schedule of {therapist_id} on {day} changed since it was read "
                    f"(revision {current}, expected {expected_revision})"
                )

            for session in batch:
                self._sessions[session.session_id] = replace(session, day=to_date(session.day))

            self._revisions[key] = current + 1
            logger.debug("Committed %d session(s) for %s on %s", len(batch), therapist_id, day)
            return current + 1

    def all_sessions(self) -> List[Session]:
        with self._lock:
            return sorted(self._sessions.values(), key=lambda s: (s.day, s.therapist_id, s.start))

    def _day_sessions(self, therapist_id: str, day: date) -> List[Session]:
        return sorted(
            (s for s in self._sessions.values() if s.therapist_id == therapist_id and s.day == day),
            key=lambda s: (s.start, s.session_id),
        )


class InMemoryTherapistDirectory:
    """Holds the therapist roster."""

    def __init__(self, therapists: Iterable[Therapist] = ()):
        self._therapists: List[Therapist] = list(therapists)

    def all(self) -> List[Therapist]:
        return list(self._therapists)

    def find(self, identifier: str) -> Optional[Therapist]:
        """Find a therapist by id or (case-insensitive) name."""
        for therapist in self._therapists:
            if therapist.therapist_id == identifier or therapist.name.lower() == identifier.lower():
                return therapist
        return None

    async def get_candidates(self, specialty_filter: Sequence[str]) -> List[Therapist]:
        """Therapists holding any of the requested specialties (all when empty)."""
        if not specialty_filter:
            return self.all()
        return [
            t for t in self._therapists
            if any(t.has_specialty(specialty) for specialty in specialty_filter)
        ]
