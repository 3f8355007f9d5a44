"""Tests for utility functions."""

from datetime import timezone

from backupwarden.utils import format_timestamp, timestamp_to_utc


class TestTimestamps:
    """Tests for timestamp helpers."""

    def test_timestamp_to_utc(self):
        dt = timestamp_to_utc(86400.0)

        assert dt.tzinfo == timezone.utc
        assert (dt.year, dt.month, dt.day) == (1970, 1, 2)

    def test_timestamp_to_utc_none(self):
        assert timestamp_to_utc(None) is None

    def test_format_timestamp(self):
        assert format_timestamp(1_600_000_000) == "2020-09-13 12:26:40 UTC"

    def test_format_timestamp_none(self):
        assert format_timestamp(None) == "unknown"
