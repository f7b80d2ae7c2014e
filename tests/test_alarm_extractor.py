import pytest

from src.Services.alarm_extractor import classify_severity, extract_alarm

RECORD = {
    "deviceid": "DEV-1",
    "alarm": 1,
    "stralarm": "紧急报警",
    "stralarmsen": "SOS alarm",
    "callat": 6.5244,
    "callon": 3.3792,
    "speed": 45000,
    "course": 180,
    "validpoistiontime": "2024-05-01 14:00:00",
}


class TestClassifySeverity:

    @pytest.mark.parametrize("text, severity", [
        ("SOS alarm", "critical"),
        ("Vehicle collision", "critical"),
        ("Main power cut", "error"),
        ("GPS antenna disconnected", "error"),
        ("Overspeed alarm", "warning"),
        ("Fatigue driving", "warning"),
        ("Door opened", "info"),
        (None, "info"),
    ])
    def test_keywords(self, text, severity):
        assert classify_severity(text) == severity

    def test_first_class_wins(self):
        assert classify_severity("SOS after harsh braking") == "critical"


class TestExtractAlarm:

    def test_active_alarm(self):
        alarm = extract_alarm(RECORD)

        assert alarm.device_id == "DEV-1"
        assert alarm.alarm_code == 1
        assert alarm.severity == "critical"
        assert alarm.alarm_description_en == "SOS alarm"
        assert alarm.speed_kmh == 45.0
        assert alarm.alarm_time.hour == 6
        assert alarm.raw_data["alarm"] == 1

    def test_no_alarm(self):
        assert extract_alarm(dict(RECORD, alarm=0)) is None
        assert extract_alarm({k: v for k, v in RECORD.items() if k != "alarm"}) is None

    def test_bad_time_dropped(self):
        assert extract_alarm(dict(RECORD, validpoistiontime="??", updatetime=None)) is None

    def test_localized_description_used_for_severity_fallback(self):
        record = dict(RECORD, stralarmsen=None, stralarm="Overspeed")
        assert extract_alarm(record).severity == "warning"

    def test_explicit_device_id(self):
        record = {k: v for k, v in RECORD.items() if k != "deviceid"}
        assert extract_alarm(record, device_id="DEV-9").device_id == "DEV-9"
