"""Tests for expiry arithmetic and duration formatting."""

from datetime import datetime, timedelta, timezone

import pytest

from shortener.expiry import expiry_from, format_remaining, format_timestamp


class TestFormatRemaining:
    """Test human-readable durations."""

    @pytest.mark.parametrize(
        "duration, expected",
        [
            (timedelta(seconds=90000), "1 days 1 hours"),
            (timedelta(days=365), "365 days 0 hours"),
            (timedelta(hours=3), "3 hours 0 minutes"),
            (timedelta(hours=23, minutes=59, seconds=59), "23 hours 59 minutes"),
            (timedelta(minutes=5, seconds=7), "5 minutes 7 seconds"),
            (timedelta(seconds=42), "42 seconds"),
            (timedelta(0), "0 seconds"),
        ],
    )
    def test_units(self, duration, expected):
        assert format_remaining(duration) == expected

    def test_truncates_fractions(self):
        assert format_remaining(timedelta(seconds=59.9)) == "59 seconds"
        assert format_remaining(timedelta(days=1, seconds=-1)) == "23 hours 59 minutes"

    def test_negative_is_zero(self):
        assert format_remaining(timedelta(seconds=-30)) == "0 seconds"
        assert format_remaining(timedelta(days=-2)) == "0 seconds"


class TestTimestamps:
    def test_expiry_from_adds_days(self):
        now = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

        assert expiry_from(now, 365) == datetime(2027, 1, 1, 12, 0, tzinfo=timezone.utc)
        assert expiry_from(now, 1) - now == timedelta(days=1)

    def test_format_timestamp_utc(self):
        value = datetime(2026, 3, 4, 5, 6, 7, 891000, tzinfo=timezone.utc)
        assert format_timestamp(value) == "2026-03-04T05:06:07Z"

    def test_format_timestamp_converts_offsets(self):
        value = datetime(2026, 3, 4, 7, 6, 7, tzinfo=timezone(timedelta(hours=2)))
        assert format_timestamp(value) == "2026-03-04T05:06:07Z"

    def test_format_timestamp_naive_is_utc(self):
        assert format_timestamp(datetime(2026, 3, 4, 5, 6, 7)) == "2026-03-04T05:06:07Z"
