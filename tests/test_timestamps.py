from datetime import datetime, timedelta, timezone

import pytest

from src.Core.exceptions import TimestampNormalizationError
from src.Services.timestamps import (
    ensure_utc,
    format_for_provider,
    normalize_provider_timestamp,
    to_display_time,
)

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


class TestNormalizeProviderTimestamp:

    def test_provider_string_is_gmt8(self):
        result = normalize_provider_timestamp("2024-05-01 14:00:00", now=NOW)
        assert result == datetime(2024, 5, 1, 6, 0, tzinfo=timezone.utc)

    def test_lagos_round_trip_is_seven_hours_behind_provider(self):
        result = normalize_provider_timestamp("2024-05-01 14:00:00", now=NOW)
        assert to_display_time(result).hour == 14 - 7

    def test_epoch_seconds_and_milliseconds_agree(self):
        seconds = normalize_provider_timestamp(1714543200, now=NOW)
        millis = normalize_provider_timestamp(1714543200000, now=NOW)
        assert seconds == millis == datetime(2024, 5, 1, 6, 0, tzinfo=timezone.utc)

    def test_numeric_string_is_epoch(self):
        assert normalize_provider_timestamp("1714543200000", now=NOW).hour == 6

    def test_explicit_offset_wins(self):
        result = normalize_provider_timestamp("2024-05-01T14:00:00+00:00", now=NOW)
        assert result.hour == 14

    @pytest.mark.parametrize("value", [None, "", "   ", "yesterday", True, [1, 2]])
    def test_unusable_values_raise(self, value):
        with pytest.raises(TimestampNormalizationError):
            normalize_provider_timestamp(value, now=NOW)

    def test_before_2000_rejected(self):
        with pytest.raises(TimestampNormalizationError):
            normalize_provider_timestamp("1999-12-31 23:00:00", now=NOW)

    def test_far_future_rejected(self):
        future = NOW + timedelta(hours=1)
        with pytest.raises(TimestampNormalizationError):
            normalize_provider_timestamp(future, now=NOW)

    def test_error_is_also_value_error(self):
        with pytest.raises(ValueError):
            normalize_provider_timestamp("garbage", now=NOW)


def test_format_for_provider_renders_gmt8_wall_clock():
    assert format_for_provider(datetime(2024, 5, 1, 6, 0, tzinfo=timezone.utc)) == "2024-05-01 14:00:00"


def test_ensure_utc_tags_naive_values():
    assert ensure_utc(datetime(2024, 5, 1, 6, 0)).tzinfo == timezone.utc
    assert ensure_utc(None) is None
