"""
Unit tests for the swim session domain models.

These tests verify the core business logic without touching
storage or HTTP.

Testing philosophy:
- Test behavior, not implementation
- Each test should have a clear "given/when/then" structure
- Use descriptive names that explain what we're testing
- Prefer real objects over mocks where practical
"""

from datetime import datetime, timezone

import pytest

from swimdash.core.sessions.models import (
    NewSession,
    SessionValidationError,
    StorageUsage,
    SwimSession,
    calculate_pace,
    format_duration,
    format_pace,
    parse_duration,
    parse_iso,
    to_iso,
    validate_record,
)


# ---------------------------------------------------------------------------
# Duration and Pace Tests
# ---------------------------------------------------------------------------

class TestParseDuration:
    """Tests for turning form input into seconds."""

    def test_parses_minutes_and_seconds(self):
        """MM:SS is the usual way a swim time is typed."""
        assert parse_duration("30:15") == 1815

    def test_parses_hours_minutes_seconds(self):
        """Long swims use HH:MM:SS."""
        assert parse_duration("1:05:30") == 3930

    def test_minutes_may_exceed_an_hour_in_mm_ss(self):
        """75:00 is a valid way to write an hour and a quarter."""
        assert parse_duration("75:00") == 4500

    def test_bare_number_is_minutes(self):
        """A plain number is read as whole minutes, as the quick form does."""
        assert parse_duration("30") == 1800

    def test_surrounding_whitespace_is_ignored(self):
        """Stray spaces from the form don't matter."""
        assert parse_duration("  25:00 ") == 1500

    @pytest.mark.parametrize("text", ["", "abc", "12:", ":30", "1:2:3:4", "-5:00", "10.5"])
    def test_rejects_malformed_text(self, text):
        """Anything that isn't a time is a validation error."""
        with pytest.raises(SessionValidationError):
            parse_duration(text)

    def test_rejects_seconds_over_59(self):
        """Seconds roll over into minutes, so 75 seconds is a typo."""
        with pytest.raises(SessionValidationError, match="seconds"):
            parse_duration("10:75")

    def test_rejects_minutes_over_59_with_hours(self):
        """Once hours are given, minutes must stay below 60."""
        with pytest.raises(SessionValidationError, match="minutes"):
            parse_duration("1:60:00")

    def test_rejects_zero_duration(self):
        """A swim has to take some time."""
        with pytest.raises(SessionValidationError, match="greater than zero"):
            parse_duration("00:00")


class TestPace:
    """Tests for pace calculation and display."""

    def test_pace_is_seconds_per_hundred_meters(self):
        """1500m in 30 minutes is two minutes per 100m."""
        assert calculate_pace(1500, 1800) == 120.0

    def test_pace_is_zero_without_distance(self):
        """No distance means no pace, not a division by zero."""
        assert calculate_pace(0, 1800) == 0.0

    def test_pace_is_zero_without_duration(self):
        """A missing duration also gives zero."""
        assert calculate_pace(1500, None) == 0.0

    def test_format_pace(self):
        """Pace displays as M:SS per 100m, rounded to the second."""
        assert format_pace(95.4) == "1:35/100m"

    def test_format_pace_placeholder_for_zero(self):
        """An unknown pace shows a placeholder."""
        assert format_pace(0) == "--:--/100m"

    def test_format_duration_under_an_hour(self):
        """Short swims show M:SS."""
        assert format_duration(1815) == "30:15"

    def test_format_duration_over_an_hour(self):
        """Long swims show H:MM:SS."""
        assert format_duration(3930) == "1:05:30"


class TestTimestamps:
    """Tests for the ISO-8601 helpers."""

    def test_to_iso_uses_milliseconds_and_z(self):
        """Dates are written the way the dashboard has always stored them."""
        moment = datetime(2024, 5, 1, 7, 30, tzinfo=timezone.utc)
        assert to_iso(moment) == "2024-05-01T07:30:00.000Z"

    def test_parse_iso_accepts_z_suffix(self):
        """A trailing Z means UTC."""
        parsed = parse_iso("2024-05-01T07:30:00.000Z")
        assert parsed == datetime(2024, 5, 1, 7, 30, tzinfo=timezone.utc)

    def test_parse_iso_treats_naive_as_utc(self):
        """Timestamps without an offset are taken as UTC."""
        parsed = parse_iso("2024-05-01T07:30:00")
        assert parsed.tzinfo is not None

    def test_parse_iso_rejects_garbage(self):
        """Free text is not a timestamp."""
        with pytest.raises(ValueError):
            parse_iso("yesterday")


# ---------------------------------------------------------------------------
# Entity Tests
# ---------------------------------------------------------------------------

class TestNewSession:
    """Tests for validation of sessions about to be logged."""

    def test_pace_is_derived_when_missing(self):
        """The swimmer never types a pace; it comes from distance and time."""
        new_session = NewSession(distance=1500, duration=1800, date="2024-05-01T07:30:00.000Z")
        assert new_session.pace == 120.0

    def test_given_pace_is_kept(self):
        """An explicit pace is not recomputed."""
        new_session = NewSession(distance=1500, duration=1800, pace=119.5)
        assert new_session.pace == 119.5

    def test_date_defaults_to_now(self):
        """Logging without a date stamps the current UTC time."""
        new_session = NewSession(distance=1000, duration=1200)
        assert new_session.date.endswith("Z")

    @pytest.mark.parametrize("distance", [0, -100, 12.5])
    def test_rejects_bad_distance(self, distance):
        """Distance must be a positive whole number of meters."""
        with pytest.raises(SessionValidationError, match="Distance"):
            NewSession(distance=distance, duration=1800)

    @pytest.mark.parametrize("duration", [0, -1, 90.5])
    def test_rejects_bad_duration(self, duration):
        """Duration must be a positive whole number of seconds."""
        with pytest.raises(SessionValidationError, match="Duration"):
            NewSession(distance=1500, duration=duration)

    def test_rejects_non_numeric_distance(self):
        """Numbers as text are not accepted."""
        with pytest.raises(SessionValidationError, match="number"):
            NewSession(distance="1500", duration=1800)

    def test_rejects_bad_date(self):
        """The date has to be a real ISO timestamp."""
        with pytest.raises(SessionValidationError, match="date"):
            NewSession(distance=1500, duration=1800, date="not a date")

    def test_blank_notes_become_none(self):
        """Whitespace-only notes are treated as no notes."""
        new_session = NewSession(distance=1500, duration=1800, notes="   ")
        assert new_session.notes is None

    def test_with_id_builds_a_session(self):
        """Assigning an id yields the stored session with every field carried over."""
        new_session = NewSession(distance=1500, duration=1800, date="2024-05-01T07:30:00.000Z", notes="easy")
        session = new_session.with_id("session-1")

        assert session == SwimSession(
            id="session-1",
            distance=1500,
            duration=1800,
            pace=120.0,
            date="2024-05-01T07:30:00.000Z",
            notes="easy",
        )


class TestSwimSession:
    """Tests for the serialized form of a session."""

    def test_sessions_are_immutable(self):
        """A logged swim is never edited in place."""
        session = SwimSession(id="a", distance=1000, duration=1200, pace=120.0, date="2024-05-01T07:30:00.000Z")
        with pytest.raises(AttributeError):
            session.distance = 2000

    def test_to_dict_omits_missing_notes(self):
        """Sessions without notes serialize without the key."""
        session = SwimSession(id="a", distance=1000, duration=1200, pace=120.0, date="2024-05-01T07:30:00.000Z")
        assert "notes" not in session.to_dict()

    def test_to_dict_keeps_notes(self):
        """Notes are written when present."""
        session = SwimSession(
            id="a", distance=1000, duration=1200, pace=120.0,
            date="2024-05-01T07:30:00.000Z", notes="felt strong",
        )
        assert session.to_dict()["notes"] == "felt strong"

    def test_from_dict_keeps_values_verbatim(self):
        """No re-formatting, so exports import back unchanged."""
        data = {
            "id": "a",
            "distance": 1000.0,
            "duration": 1200,
            "pace": 120.0,
            "date": "2024-05-01T09:30:00+02:00",
        }
        session = SwimSession.from_dict(data)

        assert session.to_dict() == data

    def test_from_dict_requires_fields(self):
        """Missing fields are named in the error."""
        with pytest.raises(SessionValidationError, match="pace"):
            SwimSession.from_dict({"id": "a", "distance": 1, "duration": 1, "date": "x"})

    def test_display_helpers(self):
        """Pace and duration come with display strings for the list view."""
        session = SwimSession(id="a", distance=1500, duration=1800, pace=120.0, date="2024-05-01T07:30:00.000Z")
        assert session.pace_display == "2:00/100m"
        assert session.duration_display == "30:00"


class TestValidateRecord:
    """Tests for checking records that come from outside the store."""

    @pytest.fixture
    def record(self) -> dict:
        return {
            "id": "session-1",
            "distance": 1500,
            "duration": 1800,
            "pace": 120.0,
            "date": "2024-05-01T07:30:00.000Z",
        }

    def test_complete_record_passes(self, record):
        """A record with every required field is accepted."""
        validate_record(record)

    @pytest.mark.parametrize("field", ["id", "distance", "duration", "pace", "date"])
    def test_missing_field_fails(self, record, field):
        """Each required field is checked by name."""
        del record[field]
        with pytest.raises(SessionValidationError, match=field):
            validate_record(record)

    def test_zero_value_counts_as_missing(self, record):
        """Falsy values are treated the same as absent ones."""
        record["distance"] = 0
        with pytest.raises(SessionValidationError, match="distance"):
            validate_record(record)

    def test_string_number_fails(self, record):
        """Numeric fields must be JSON numbers."""
        record["duration"] = "1800"
        with pytest.raises(SessionValidationError, match="duration"):
            validate_record(record)

    def test_numeric_id_fails(self, record):
        """Ids are strings; a number could never be looked up or deleted by id."""
        record["id"] = 7
        with pytest.raises(SessionValidationError, match="id must be a string"):
            validate_record(record)

    def test_non_string_date_fails(self, record):
        """Dates are ISO strings, not epoch numbers."""
        record["date"] = 1714548600000
        with pytest.raises(SessionValidationError, match="date must be a string"):
            validate_record(record)

    def test_non_string_notes_fail(self, record):
        """Notes that aren't text would break the list view and CSV export."""
        record["notes"] = 5
        with pytest.raises(SessionValidationError, match="notes must be a string"):
            validate_record(record)

    @pytest.mark.parametrize("notes", [None, "", "easy swim"])
    def test_absent_or_text_notes_pass(self, record, notes):
        """Null, empty and text notes are all fine."""
        record["notes"] = notes
        validate_record(record)

    def test_non_object_fails(self):
        """A record must be a JSON object."""
        with pytest.raises(SessionValidationError, match="object"):
            validate_record(["session-1"])


class TestStorageUsage:
    """Tests for the advisory storage report."""

    def test_ratio(self):
        """A quiet store reports its ratio and no recommendation."""
        usage = StorageUsage(
            used_bytes=400, quota_bytes=1000, session_count=3,
            near_capacity=False, too_many_sessions=False,
        )
        assert usage.usage_ratio == 0.4
        assert usage.recommendation is None
        assert not usage.should_archive

    def test_near_capacity_recommends_export(self):
        """A nearly full store suggests exporting and pruning."""
        usage = StorageUsage(
            used_bytes=900, quota_bytes=1000, session_count=3,
            near_capacity=True, too_many_sessions=False,
        )
        assert "90% full" in usage.recommendation
        assert usage.should_archive

    def test_many_sessions_recommends_archive(self):
        """A long history suggests archiving even when bytes are fine."""
        usage = StorageUsage(
            used_bytes=10, quota_bytes=1000, session_count=1500,
            near_capacity=False, too_many_sessions=True,
        )
        assert "1500 sessions" in usage.recommendation
