"""
Tests for domain models.
"""

from datetime import date

import pendulum
import pytest

from therapyscheduler.domain.exceptions import (
    InvalidDurationError,
    InvalidScheduleError,
    InvalidTimeError,
    InvalidTimeRangeError,
)
from therapyscheduler.domain.models import (
    BookedInterval,
    DaySchedule,
    ScheduleConfiguration,
    Session,
    Therapist,
    format_time,
    intervals_from_sessions,
    parse_time,
    to_date,
)


class TestTimeOfDay:
    """Tests for HH:MM conversion."""

    def test_parse_and_format(self):
        """Test converting between HH:MM and minutes."""
        assert parse_time("09:30") == 570
        assert parse_time("0:05") == 5
        assert format_time(570) == "09:30"
        assert format_time(1440) == "24:00"

    @pytest.mark.parametrize("value", ["24:00", "9.30", "12:60", "", "noon"])
    def test_malformed_time_raises_error(self, value):
        """Test that malformed strings are rejected."""
        with pytest.raises(InvalidTimeError):
            parse_time(value)

    def test_to_date_accepts_strings_and_dates(self):
        """Test date normalisation."""
        assert to_date("2024-11-25") == date(2024, 11, 25)
        assert to_date(date(2024, 11, 25)) == pendulum.date(2024, 11, 25)
        assert to_date(pendulum.datetime(2024, 11, 25, 15, 0)) == date(2024, 11, 25)

    def test_to_date_rejects_garbage(self):
        with pytest.raises(InvalidTimeError):
            to_date("25.11.2024")


class TestDaySchedule:
    """Tests for DaySchedule."""

    def test_create_valid_schedule(self):
        """Test creating a schedule from strings."""
        schedule = DaySchedule.from_strings("09:00", "17:00", "12:00", "13:00", buffer_minutes=15)

        assert schedule.work_start == 540
        assert schedule.work_end == 1020
        assert schedule.has_break
        assert str(schedule) == "09:00 - 17:00 (break 12:00 - 13:00)"

    def test_reversed_hours_raise_error(self):
        with pytest.raises(InvalidScheduleError):
            DaySchedule.from_strings("17:00", "09:00")

    def test_break_outside_hours_raises_error(self):
        with pytest.raises(InvalidScheduleError):
            DaySchedule.from_strings("09:00", "17:00", "16:30", "17:30")

    def test_half_configured_break_raises_error(self):
        with pytest.raises(InvalidScheduleError):
            DaySchedule(work_start=540, work_end=1020, break_start=720)

    def test_negative_buffer_raises_error(self):
        with pytest.raises(InvalidScheduleError):
            DaySchedule(work_start=540, work_end=1020, buffer_minutes=-5)


class TestScheduleConfiguration:
    """Tests for date-ranged schedule rows."""

    def test_covers_matching_weekday_in_range(self):
        """Test that a row only covers its weekday inside its date range."""
        row = ScheduleConfiguration(
            therapist_id="t1",
            day_of_week=0,
            schedule=DaySchedule(work_start=540, work_end=1020),
            effective_date=date(2024, 11, 1),
            end_date=date(2024, 11, 30),
        )

        assert row.covers(date(2024, 11, 25))  # Monday
        assert not row.covers(date(2024, 11, 26))  # Tuesday
        assert not row.covers(date(2024, 10, 28))  # before effective date
        assert not row.covers(date(2024, 12, 2))  # after end date


class TestBookedInterval:
    """Tests for BookedInterval."""

    def test_invalid_interval_raises_error(self):
        with pytest.raises(InvalidTimeRangeError):
            BookedInterval(session_id="s1", start=600, end=600)

    def test_overlaps(self):
        """Test half-open overlap with and without buffer."""
        interval = BookedInterval(session_id="s1", start=600, end=660)

        assert interval.overlaps(630, 690)
        assert not interval.overlaps(660, 720)  # touching is fine
        assert interval.overlaps(660, 720, buffer_minutes=15)
        assert not interval.overlaps(675, 720, buffer_minutes=15)
        assert str(interval) == "10:00 - 11:00"


class TestSession:
    """Tests for Session."""

    def test_end_and_interval(self):
        session = Session("s1", "t1", date(2024, 11, 25), start=600, duration=45)

        assert session.end == 645
        assert session.to_interval() == BookedInterval("s1", 600, 645)

    def test_non_positive_duration_raises_error(self):
        with pytest.raises(InvalidDurationError):
            Session("s1", "t1", date(2024, 11, 25), start=600, duration=0)

    def test_session_past_midnight_raises_error(self):
        with pytest.raises(InvalidTimeRangeError):
            Session("s1", "t1", date(2024, 11, 25), start=1410, duration=60)

    def test_with_note_appends(self):
        """Test that notes accumulate line by line."""
        session = Session("s1", "t1", date(2024, 11, 25), start=600, duration=45)
        noted = session.with_note("first").with_note("second")

        assert noted.notes == "first\nsecond"
        assert session.notes == ""

    def test_intervals_from_sessions_sorted(self):
        sessions = [
            Session("b", "t1", date(2024, 11, 25), start=720, duration=30),
            Session("a", "t1", date(2024, 11, 25), start=540, duration=30),
        ]

        assert [i.session_id for i in intervals_from_sessions(sessions)] == ["a", "b"]


class TestTherapist:
    """Tests for Therapist."""

    def test_has_specialty_is_case_insensitive(self):
        therapist = Therapist("t1", "Anna", specialties=["Anxiety"])

        assert therapist.has_specialty("anxiety")
        assert not therapist.has_specialty("trauma")
