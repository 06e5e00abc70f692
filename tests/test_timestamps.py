"""Tests for timestamp parsing and local calendar helpers."""

from datetime import UTC, date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from still_fresh import timestamps
from still_fresh.timestamps import (
    elapsed,
    ensure_aware,
    format_instant,
    local_day_start,
    local_now,
    local_zone,
    next_local_midnight,
    normalize_timestamp,
    parse_instant,
    recorded_day,
    start_of_local_day,
    week_start,
)

LA = ZoneInfo("America/Los_Angeles")


class TestParseInstant:
    """Tests for parse_instant."""

    def test_bare_date_anchored_at_noon_utc(self):
        """Bare dates become midday UTC."""
        assert parse_instant("2025-01-05") == datetime(2025, 1, 5, 12, tzinfo=UTC)

    def test_zulu_with_fraction(self):
        """Fractional seconds are kept."""
        parsed = parse_instant("2025-01-05T08:30:00.250Z")
        assert parsed == datetime(2025, 1, 5, 8, 30, 0, 250000, tzinfo=UTC)

    def test_without_fraction(self):
        """Whole-second instants parse too."""
        assert parse_instant("2025-01-05T08:30:00Z") == datetime(2025, 1, 5, 8, 30, tzinfo=UTC)

    def test_offset_converted_to_utc(self):
        """Non-UTC offsets are converted."""
        parsed = parse_instant("2025-01-05T10:00:00+02:00")
        assert parsed == datetime(2025, 1, 5, 8, tzinfo=UTC)
        assert parsed.tzinfo == UTC

    def test_surrounding_whitespace(self):
        """Whitespace around the value is ignored."""
        assert parse_instant(" 2025-01-05 ") == datetime(2025, 1, 5, 12, tzinfo=UTC)

    def test_naive_instant_rejected(self):
        """Instants without an offset are ambiguous."""
        with pytest.raises(ValueError, match="no UTC offset"):
            parse_instant("2025-01-05T08:30:00")

    def test_garbage_rejected(self):
        """Non-dates raise ValueError."""
        with pytest.raises(ValueError):
            parse_instant("next tuesday")


class TestFormatInstant:
    """Tests for the internal instant string form."""

    def test_millisecond_zulu_form(self):
        """Always three fractional digits and a Z suffix."""
        assert format_instant(datetime(2025, 1, 5, 12, tzinfo=UTC)) == "2025-01-05T12:00:00.000Z"

    def test_microseconds_truncated(self):
        """Microseconds are cut to milliseconds."""
        value = datetime(2025, 1, 5, 12, 0, 1, 123456, tzinfo=UTC)
        assert format_instant(value) == "2025-01-05T12:00:01.123Z"

    def test_aware_local_converted(self):
        """Local times are rendered in UTC."""
        value = datetime(2025, 1, 5, 4, tzinfo=LA)
        assert format_instant(value) == "2025-01-05T12:00:00.000Z"

    def test_naive_taken_as_utc(self):
        """Naive datetimes are treated as UTC."""
        assert format_instant(datetime(2025, 1, 5, 12)) == "2025-01-05T12:00:00.000Z"

    def test_normalize_bare_date(self):
        """Bare dates normalize to the midday instant."""
        assert normalize_timestamp("2025-01-05") == "2025-01-05T12:00:00.000Z"

    def test_normalize_is_stable(self):
        """Normalizing an already normalized value changes nothing."""
        value = "2025-01-05T08:30:00.250Z"
        assert normalize_timestamp(normalize_timestamp(value)) == value


class TestCalendarHelpers:
    """Tests for day anchoring and week helpers."""

    def test_recorded_day_uses_utc_date(self):
        """A midnight UTC estimate belongs to its UTC date."""
        assert recorded_day(datetime(2025, 1, 10, tzinfo=UTC)) == date(2025, 1, 10)

    def test_local_day_start_is_midnight(self):
        """Local day start is local midnight."""
        start = local_day_start(date(2025, 1, 10), LA)
        assert start == datetime(2025, 1, 10, tzinfo=LA)
        assert start.utcoffset() == timedelta(hours=-8)

    def test_local_day_start_on_midnight_dst_switch(self):
        """A DST switch at midnight keeps the same calendar day."""
        sao_paulo = ZoneInfo("America/Sao_Paulo")
        assert local_day_start(date(2018, 11, 4), sao_paulo).date() == date(2018, 11, 4)

    def test_start_of_local_day(self):
        """Start of the day containing now."""
        now = datetime(2025, 1, 10, 23, 0, tzinfo=LA)
        assert start_of_local_day(now) == datetime(2025, 1, 10, tzinfo=LA)

    def test_next_local_midnight(self):
        """Rollover happens at the next local midnight."""
        now = datetime(2025, 1, 10, 23, 0, tzinfo=LA)
        assert next_local_midnight(now) == datetime(2025, 1, 11, tzinfo=LA)

    def test_next_local_midnight_after_spring_forward(self):
        """The day of a spring-forward switch is 23 hours long."""
        now = datetime(2025, 3, 9, 0, 30, tzinfo=LA)
        midnight = next_local_midnight(now)
        assert midnight == datetime(2025, 3, 10, tzinfo=LA)
        assert elapsed(start_of_local_day(now), midnight) == timedelta(hours=23)

    @pytest.mark.parametrize(
        "day,expected",
        [
            (date(2025, 1, 6), date(2025, 1, 6)),
            (date(2025, 1, 8), date(2025, 1, 6)),
            (date(2025, 1, 12), date(2025, 1, 6)),
            (date(2025, 1, 13), date(2025, 1, 13)),
            (date(2025, 1, 1), date(2024, 12, 30)),
        ],
    )
    def test_week_start_is_monday(self, day, expected):
        """ISO weeks start on Monday."""
        assert week_start(day) == expected

    def test_ensure_aware_keeps_aware(self):
        """Aware values pass through."""
        now = datetime(2025, 1, 10, tzinfo=LA)
        assert ensure_aware(now) is now

    def test_ensure_aware_attaches_zone(self):
        """Naive values get the system zone."""
        assert ensure_aware(datetime(2025, 1, 10, 12)).tzinfo is not None


class TestLocalZone:
    """Tests for resolving the system timezone."""

    @pytest.mark.parametrize("value", ["America/New_York", ":America/New_York"])
    def test_tz_variable(self, monkeypatch, value):
        monkeypatch.setenv("TZ", value)
        assert local_zone() == ZoneInfo("America/New_York")

    def test_zone_keeps_dst_rules(self, monkeypatch):
        """Winter and summer offsets differ, unlike a fixed offset."""
        monkeypatch.setenv("TZ", "America/New_York")
        zone = local_zone()
        assert zone.utcoffset(datetime(2025, 1, 10, 12)) == timedelta(hours=-5)
        assert zone.utcoffset(datetime(2025, 7, 10, 12)) == timedelta(hours=-4)

    def test_unknown_zone_without_localtime(self, monkeypatch, tmp_path):
        """With nothing to go on, the current offset is used."""
        monkeypatch.setenv("TZ", "Nowhere/Special")
        monkeypatch.setattr(timestamps, "LOCALTIME", str(tmp_path / "missing"))
        assert isinstance(local_zone(), timezone)

    def test_naive_values_use_local_zone(self, monkeypatch):
        monkeypatch.setenv("TZ", "America/New_York")
        assert ensure_aware(datetime(2025, 1, 10, 12)).tzinfo == ZoneInfo("America/New_York")
        assert local_now().tzinfo == ZoneInfo("America/New_York")
