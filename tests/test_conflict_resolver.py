"""
Tests for the conflict resolver.
"""

from datetime import date

import pytest

from therapyscheduler.domain.conflict_resolver import ConflictResolver
from therapyscheduler.domain.exceptions import ValidationError
from therapyscheduler.domain.models import BookedInterval, DaySchedule, DaySnapshot, parse_time
from therapyscheduler.domain.results import ResolutionConstraints

MONDAY = date(2024, 11, 25)


def _snapshot(booked=(), day=MONDAY, **kwargs) -> DaySnapshot:
    schedule = DaySchedule.from_strings("09:00", "17:00", "12:00", "13:00", **kwargs)
    return DaySnapshot(day=day, schedule=schedule, booked=booked)


def _booked(session_id: str, start: str, end: str) -> BookedInterval:
    return BookedInterval(session_id=session_id, start=parse_time(start), end=parse_time(end))


class TestConflictResolver:
    """Tests for ConflictResolver.resolve."""

    def test_free_slot_resolves_to_itself(self):
        resolver = ConflictResolver()

        result = resolver.resolve(_snapshot(), parse_time("10:00"), 60)

        assert result.resolved
        assert result.suggested_start == parse_time("10:00")
        assert result.suggested_date == MONDAY
        assert result.reason == "Requested slot is available"
        assert result.suggestion is None

    def test_picks_closest_slot_within_shift(self):
        """Test that the nearest free slot inside the allowed shift wins."""
        resolver = ConflictResolver()
        snapshot = _snapshot(booked=[_booked("s1", "10:00", "11:00")])

        result = resolver.resolve(snapshot, parse_time("10:30"), 60)

        assert result.resolved
        assert result.suggested_start == parse_time("11:00")
        assert result.suggested_date == MONDAY
        assert result.reason == "Found available slot 30 minutes later"
        assert result.suggestion.day == MONDAY

    def test_earlier_slot_reason(self):
        resolver = ConflictResolver()
        snapshot = _snapshot(booked=[_booked("s1", "10:00", "12:00")])

        result = resolver.resolve(
            snapshot, parse_time("10:00"), 60, ResolutionConstraints(max_time_shift_minutes=60)
        )

        assert result.suggested_start == parse_time("09:00")
        assert result.reason == "Found available slot 60 minutes earlier"

    def test_shift_limit_is_respected(self):
        """Test that nothing outside the shift window is picked."""
        resolver = ConflictResolver()
        snapshot = _snapshot(booked=[_booked("s1", "10:00", "11:00")])

        result = resolver.resolve(
            snapshot, parse_time("10:30"), 60, ResolutionConstraints(max_time_shift_minutes=15)
        )

        assert not result.resolved
        assert result.suggested_start is None
        assert result.reason == "No available slot within 15 minutes of 10:30"

    def test_resolve_is_idempotent(self):
        """Test that identical inputs give identical answers."""
        resolver = ConflictResolver()
        snapshot = _snapshot(
            booked=[_booked("s1", "10:00", "11:00"), _booked("s2", "13:00", "14:00")],
            buffer_minutes=10,
        )
        constraints = ResolutionConstraints(max_time_shift_minutes=120)

        first = resolver.resolve(snapshot, parse_time("10:30"), 45, constraints)
        second = resolver.resolve(snapshot, parse_time("10:30"), 45, constraints)

        assert first == second
        assert first.resolved

    def test_moves_to_following_day(self):
        """Test the bounded search on later days."""
        resolver = ConflictResolver()
        full_monday = _snapshot(booked=[_booked("s1", "09:00", "10:00")], max_sessions_per_day=1)
        snapshots = {
            "2024-11-26": DaySnapshot(day=date(2024, 11, 26), schedule=None),
            "2024-11-27": _snapshot(day=date(2024, 11, 27)),
        }

        result = resolver.resolve(
            full_monday,
            parse_time("10:30"),
            60,
            ResolutionConstraints(allow_different_day=True, max_days_forward=3),
            day_lookup=lambda day: snapshots.get(day.isoformat()),
        )

        assert result.resolved
        assert result.suggested_date == date(2024, 11, 27)
        assert result.suggested_start == parse_time("10:30")
        assert result.reason == "Found available slot 2 day(s) later"

    def test_following_days_exhausted(self):
        resolver = ConflictResolver()
        full_monday = _snapshot(booked=[_booked("s1", "09:00", "10:00")], max_sessions_per_day=1)

        result = resolver.resolve(
            full_monday,
            parse_time("10:30"),
            60,
            ResolutionConstraints(allow_different_day=True, max_days_forward=2),
            day_lookup=lambda day: None,
        )

        assert not result.resolved
        assert result.reason == "No available slot within 60 minutes of 10:30 or in the next 2 day(s)"

    def test_day_off(self):
        resolver = ConflictResolver()

        result = resolver.resolve(DaySnapshot(day=MONDAY, schedule=None), parse_time("10:00"), 60)

        assert not result.resolved
        assert result.reason == "Therapist not available on this day"

    def test_excluded_session_can_stay_in_place(self):
        resolver = ConflictResolver()
        snapshot = _snapshot(booked=[_booked("s1", "10:00", "11:00")])

        result = resolver.resolve(snapshot, parse_time("10:15"), 60, exclude_session_id="s1")

        assert result.suggested_start == parse_time("10:15")

    def test_negative_constraints_raise_error(self):
        resolver = ConflictResolver()

        with pytest.raises(ValidationError):
            resolver.resolve(
                _snapshot(), parse_time("10:00"), 60,
                ResolutionConstraints(max_time_shift_minutes=-1),
            )
