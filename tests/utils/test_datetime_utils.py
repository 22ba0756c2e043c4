"""
Tests for datetime utilities module.

Tests UTC normalization of stored timestamps and their sort values.
"""
from datetime import datetime, timezone, timedelta
import pytest

from chat_cache.utils.datetime_utils import EPOCH, ensure_utc, parse_iso_utc, sort_value, to_iso_utc, utc_now


class TestUtcNow:
    """Tests for utc_now() function."""

    def test_returns_timezone_aware_datetime(self):
        """Test that utc_now returns timezone-aware datetime."""
        result = utc_now()
        assert result.tzinfo == timezone.utc


class TestEnsureUtc:
    """Tests for ensure_utc() function."""

    def test_naive_datetime_is_assumed_utc(self):
        """Test that naive datetime keeps its wall time and gains UTC."""
        result = ensure_utc(datetime(2024, 1, 2, 11, 30))

        assert result.tzinfo == timezone.utc
        assert result.hour == 11

    def test_converts_aware_datetime_to_utc(self):
        """Test that timezone-aware datetime is converted to UTC."""
        utc_plus_8 = timezone(timedelta(hours=8))
        result = ensure_utc(datetime(2024, 1, 2, 19, 30, tzinfo=utc_plus_8))

        assert result.tzinfo == timezone.utc
        assert result.hour == 11

    def test_handles_none_input(self):
        assert ensure_utc(None) is None


class TestToIsoUtc:
    """Tests for to_iso_utc() function."""

    def test_uses_z_suffix(self):
        """Test that '+00:00' is replaced with 'Z'."""
        result = to_iso_utc(datetime(2024, 1, 2, 11, 30, 0, 123456, tzinfo=timezone.utc))

        assert result == '2024-01-02T11:30:00.123456Z'
        assert '+00:00' not in result

    def test_converts_non_utc_aware_datetime(self):
        utc_plus_8 = timezone(timedelta(hours=8))
        result = to_iso_utc(datetime(2024, 1, 2, 19, 30, tzinfo=utc_plus_8))

        assert result == '2024-01-02T11:30:00Z'

    def test_handles_none_input(self):
        assert to_iso_utc(None) is None


class TestParseIsoUtc:
    """Tests for parse_iso_utc() function."""

    def test_parses_z_suffix(self):
        result = parse_iso_utc('2024-01-02T00:00:00Z')

        assert result == datetime(2024, 1, 2, tzinfo=timezone.utc)

    def test_parses_offset(self):
        result = parse_iso_utc('2024-01-02T08:00:00+08:00')

        assert result == datetime(2024, 1, 2, tzinfo=timezone.utc)
        assert result.tzinfo == timezone.utc

    def test_passes_datetimes_through(self):
        naive = datetime(2024, 1, 2)
        assert parse_iso_utc(naive) == datetime(2024, 1, 2, tzinfo=timezone.utc)

    @pytest.mark.parametrize("value", [None, ""])
    def test_empty_values(self, value):
        assert parse_iso_utc(value) is None

    def test_rejects_malformed_strings(self):
        with pytest.raises(ValueError):
            parse_iso_utc('yesterday')

    def test_round_trip_with_to_iso_utc(self):
        """Test that a stored timestamp reads back unchanged."""
        now = utc_now()
        assert parse_iso_utc(to_iso_utc(now)) == now


class TestSortValue:
    """Tests for sort_value() function."""

    def test_missing_timestamp_sorts_oldest(self):
        assert sort_value(None) == EPOCH
        assert sort_value(None) < sort_value('2000-01-01T00:00:00Z')

    def test_orders_mixed_precision_strings(self):
        """Test ordering is by instant, not by string comparison."""
        earlier = '2024-01-02T00:00:00.500000Z'
        later = '2024-01-02T00:00:01Z'

        assert sort_value(earlier) < sort_value(later)
