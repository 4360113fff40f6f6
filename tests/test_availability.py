"""
Tests for the availability checker.
"""

import pytest

from therapyscheduler.domain.availability import AvailabilityChecker
from therapyscheduler.domain.exceptions import InvalidTimeRangeError
from therapyscheduler.domain.models import BookedInterval, DaySchedule, SchedulingRules, parse_time
from therapyscheduler.domain.results import ConflictType, Priority, Severity


def _schedule(**kwargs) -> DaySchedule:
    return DaySchedule.from_strings("09:00", "17:00", "12:00", "13:00", **kwargs)


def _booked(session_id: str, start: str, end: str) -> BookedInterval:
    return BookedInterval(session_id=session_id, start=parse_time(start), end=parse_time(end))


class TestAvailabilityChecker:
    """Tests for AvailabilityChecker.check."""

    def test_free_slot_is_available(self):
        """Test a slot with no conflicts at all."""
        checker = AvailabilityChecker()

        result = checker.check(_schedule(), [], parse_time("09:00"), parse_time("10:00"))

        assert result.available
        assert result.conflicts == ()
        assert result.suggestions == ()
        assert result.reason is None

    def test_overlapping_session_suggests_alternatives(self):
        """Test the 10:30 request against a 10:00-11:00 booking."""
        checker = AvailabilityChecker()
        booked = [_booked("s1", "10:00", "11:00")]

        result = checker.check(_schedule(), booked, parse_time("10:30"), parse_time("11:30"))

        assert not result.available
        assert result.reason == "Conflicts prevent scheduling"
        assert [c.type for c in result.errors] == [ConflictType.EXISTING_SESSION]
        assert result.errors[0].conflicting_interval == booked[0]

        starts = [s.start for s in result.suggestions]
        assert starts[0] == parse_time("11:00")
        assert parse_time("09:00") in starts
        assert parse_time("12:00") not in starts
        assert result.suggestions[0].priority is Priority.HIGH
        assert result.suggestions[0].reason == "Later time slot available (30 minutes away)"

    def test_suggestions_ordered_by_priority_then_distance(self):
        checker = AvailabilityChecker()
        booked = [_booked("s1", "10:00", "11:00")]

        result = checker.check(_schedule(), booked, parse_time("10:30"), parse_time("11:30"))

        assert [s.start for s in result.suggestions] == [
            parse_time("11:00"),
            parse_time("09:00"),
            parse_time("13:00"),
            parse_time("13:15"),
            parse_time("13:30"),
        ]
        assert [s.priority for s in result.suggestions[:3]] == [
            Priority.HIGH, Priority.MEDIUM, Priority.LOW,
        ]

    def test_buffer_violation_is_reported(self):
        """Test that a slot touching the buffer is rejected with its own message."""
        checker = AvailabilityChecker()
        booked = [_booked("s1", "10:00", "11:00")]

        result = checker.check(
            _schedule(buffer_minutes=15), booked, parse_time("11:05"), parse_time("12:00")
        )

        assert not result.available
        assert "violates the 15-minute buffer around session s1" in result.errors[0].message

    def test_break_conflict(self):
        checker = AvailabilityChecker()

        result = checker.check(_schedule(), [], parse_time("11:30"), parse_time("12:30"))

        assert [c.type for c in result.errors] == [ConflictType.BREAK_CONFLICT]

    def test_outside_working_hours(self):
        checker = AvailabilityChecker()

        result = checker.check(_schedule(), [], parse_time("16:30"), parse_time("17:30"))

        assert [c.type for c in result.errors] == [ConflictType.OUTSIDE_WORKING_HOURS]

    def test_no_schedule_means_unavailable(self):
        """Test a day the therapist does not work."""
        checker = AvailabilityChecker()

        result = checker.check(None, [], parse_time("10:00"), parse_time("11:00"))

        assert not result.available
        assert result.conflicts[0].type is ConflictType.THERAPIST_UNAVAILABLE

    def test_excluded_session_is_ignored(self):
        """Test moving a session onto its own old slot."""
        checker = AvailabilityChecker()
        booked = [_booked("s1", "10:00", "11:00")]

        result = checker.check(
            _schedule(), booked, parse_time("10:30"), parse_time("11:30"), exclude_session_id="s1"
        )

        assert result.available

    def test_last_free_session_is_a_warning(self):
        """Test that filling the day is allowed but flagged."""
        checker = AvailabilityChecker()
        booked = [_booked("s1", "09:00", "10:00")]

        result = checker.check(
            _schedule(max_sessions_per_day=2), booked, parse_time("14:00"), parse_time("15:00")
        )

        assert result.available
        assert result.reason == "Scheduling possible with warnings"
        assert result.warnings[0].type is ConflictType.SCHEDULE_CONFLICT
        assert result.warnings[0].severity is Severity.WARNING

    def test_full_day_is_an_error(self):
        checker = AvailabilityChecker()
        booked = [_booked("s1", "09:00", "10:00"), _booked("s2", "10:00", "11:00")]

        result = checker.check(
            _schedule(max_sessions_per_day=2), booked, parse_time("14:00"), parse_time("15:00")
        )

        assert not result.available
        assert result.errors[0].type is ConflictType.SCHEDULE_CONFLICT
        assert result.suggestions == ()

    def test_reversed_range_raises_error(self):
        checker = AvailabilityChecker()

        with pytest.raises(InvalidTimeRangeError):
            checker.check(_schedule(), [], parse_time("11:00"), parse_time("10:00"))


class TestSuggestAlternatives:
    """Tests for AvailabilityChecker.suggest_alternatives."""

    def test_limit_follows_rules(self):
        checker = AvailabilityChecker(SchedulingRules(suggestion_limit=2))

        suggestions = checker.suggest_alternatives(_schedule(), [], parse_time("09:00"), 60)

        assert len(suggestions) == 2

    def test_limit_zero_returns_everything(self):
        """Test that every free window comes back without a limit."""
        checker = AvailabilityChecker()

        suggestions = checker.suggest_alternatives(_schedule(), [], parse_time("09:00"), 60, limit=0)

        # 09:00-11:00 in the morning, 13:00-16:00 in the afternoon, 15-minute grid
        assert len(suggestions) == 9 + 13 - 1

    def test_requested_start_included_when_not_skipped(self):
        checker = AvailabilityChecker()

        suggestions = checker.suggest_alternatives(
            _schedule(), [], parse_time("09:00"), 60, skip_requested=False
        )

        assert suggestions[0].start == parse_time("09:00")
        assert suggestions[0].reason == "Requested time slot available"
