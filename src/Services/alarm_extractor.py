"""
Alarm Extractor
===============
Pulls the active alarm out of a lastposition record (JT808 fields as exposed
by GPS51) and classifies its severity from the description text.

Record fields:
    alarm                     alarm code (0 = no active alarm)
    stralarmsen / stralarm    English / localized description
    videoalarm, strvideoalarm video alarm code and description
    callat/callon, lat/lon    position (calibrated first)
    speed                     meters per hour
    validpoistiontime, updatetime  GMT+8 time of the fix

Severity keywords (case-insensitive, first matching class wins, English
description preferred):
    critical  sos, emergency, crash, collision, rollover, fuel theft, steal
    error     power off, power cut, power loss, tamper, antenna, removal
    warning   overspeed, fatigue, geofence, idle, harsh
    info      anything else
"""

from typing import Any, Dict, Optional

from src.Core.exceptions import TimestampNormalizationError
from src.Core.logging_config import get_logger
from src.Schemas.alarm import AlarmCandidate
from src.Services.telemetry import coerce_number
from src.Services.timestamps import normalize_provider_timestamp

logger = get_logger(__name__)

SEVERITY_KEYWORDS = (
    ("critical", ("sos", "emergency", "crash", "collision", "rollover", "fuel theft", "steal")),
    ("error", ("power off", "power cut", "power loss", "tamper", "antenna", "removal")),
    ("warning", ("overspeed", "fatigue", "geofence", "idle", "harsh")),
)


def classify_severity(description: Optional[str]) -> str:
    text = (description or "").lower()
    for severity, keywords in SEVERITY_KEYWORDS:
        if any(keyword in text for keyword in keywords):
            return severity
    return "info"


def _first_text(record: Dict[str, Any], *keys: str) -> Optional[str]:
    for key in keys:
        value = record.get(key)
        if value not in (None, ""):
            return str(value)
    return None


def extract_alarm(record: Dict[str, Any], device_id: Optional[str] = None) -> Optional[AlarmCandidate]:
    """
    Build an AlarmCandidate from one position record.

    Returns None when the record carries no active alarm, has no device id,
    or its timestamp cannot be normalized (logged).
    """
    code = coerce_number(record.get("alarm"))
    if not code:
        return None

    device = device_id or record.get("deviceid")
    if not device:
        logger.warning("[ALARMS] Alarm %s without device id, skipping", int(code))
        return None

    raw_time = record.get("validpoistiontime") or record.get("updatetime")
    try:
        alarm_time = normalize_provider_timestamp(raw_time)
    except TimestampNormalizationError as exc:
        logger.warning("[ALARMS] %s: dropping alarm %s: %s", device, int(code), exc)
        return None

    description = _first_text(record, "stralarm", "alarmdesc")
    description_en = _first_text(record, "stralarmsen", "alarmdescen")

    speed = coerce_number(record.get("speed"))
    video_code = coerce_number(record.get("videoalarm"))

    return AlarmCandidate(
        device_id=str(device),
        alarm_code=int(code),
        alarm_description=description,
        alarm_description_en=description_en,
        video_alarm_code=int(video_code) if video_code else None,
        video_alarm_description=_first_text(record, "strvideoalarmen", "strvideoalarm", "videoalarmdesc"),
        severity=classify_severity(description_en or description),
        latitude=coerce_number(record.get("callat")) or coerce_number(record.get("lat")),
        longitude=coerce_number(record.get("callon")) or coerce_number(record.get("lon")),
        speed_kmh=round(speed / 1000, 2) if speed else None,
        altitude=coerce_number(record.get("altitude")),
        heading=coerce_number(record.get("course")),
        alarm_time=alarm_time,
        raw_data=dict(record),
    )
