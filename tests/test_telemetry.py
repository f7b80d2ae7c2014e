from datetime import timezone

import pytest

from src.Core.exceptions import TimestampNormalizationError
from src.Services.telemetry import (
    detect_ignition,
    normalize_battery,
    normalize_position_record,
    normalize_speed,
)


class TestNormalizeSpeed:

    def test_meters_per_hour_converted(self):
        assert normalize_speed(45000) == 45.0

    def test_small_values_already_kmh(self):
        assert normalize_speed(60) == 60.0

    def test_drift_suppressed(self):
        assert normalize_speed(2500) == 0.0

    def test_clamped(self):
        assert normalize_speed(900000) == 300.0

    @pytest.mark.parametrize("raw", [None, "abc", -5])
    def test_garbage_is_zero(self, raw):
        assert normalize_speed(raw) == 0.0


class TestIgnition:

    def test_status_bit(self):
        assert detect_ignition({"status": 3}, 0.0) is True
        assert detect_ignition({"status": 2}, 50.0) is False

    def test_status_text(self):
        assert detect_ignition({"strstatusen": "ACC ON, GPS fixed"}, 0.0) is True
        assert detect_ignition({"strstatus": "acc off"}, 40.0) is False

    def test_inferred_from_speed(self):
        assert detect_ignition({}, 12.0) is True
        assert detect_ignition({}, 4.0) is False


def test_battery_clamped_and_zero_ignored():
    assert normalize_battery({"voltagepercent": 130}) == 100
    assert normalize_battery({"voltagepercent": 0}) is None


class TestNormalizePositionRecord:

    RECORD = {
        "deviceid": "DEV-1",
        "callat": 6.5244,
        "callon": 3.3792,
        "lat": 6.0,
        "lon": 3.0,
        "speed": 36000,
        "course": 90,
        "voltagepercent": 80,
        "validpoistiontime": "2024-05-01 14:00:00",
    }

    def test_full_record(self):
        sample = normalize_position_record(self.RECORD)
        assert sample.device_id == "DEV-1"
        assert (sample.latitude, sample.longitude) == (6.5244, 3.3792)
        assert sample.speed == 36.0
        assert sample.heading == 90
        assert sample.ignition_on is True
        assert sample.battery_percent == 80
        assert sample.gps_time.tzinfo == timezone.utc
        assert sample.gps_time.hour == 6

    def test_raw_coordinates_fallback(self):
        record = dict(self.RECORD, callat=0, callon=0)
        sample = normalize_position_record(record)
        assert (sample.latitude, sample.longitude) == (6.0, 3.0)

    def test_missing_coordinates(self):
        record = {k: v for k, v in self.RECORD.items() if k not in ("callat", "callon", "lat", "lon")}
        with pytest.raises(ValueError):
            normalize_position_record(record)

    def test_bad_timestamp(self):
        record = dict(self.RECORD, validpoistiontime="not a time", updatetime=None)
        with pytest.raises(TimestampNormalizationError):
            normalize_position_record(record)
