"""
Telemetry Normalization
=======================
Turns one raw provider position record (lastposition / querytrack) into a
PositionSample ready for storage.

Unit rules observed on the provider:
- speed: usually meters/hour; values above 200 are divided by 1000,
  values below 3 km/h are GPS drift and become 0, results are clamped to
  300 km/h and rounded to one decimal
- coordinates: calibrated callat/callon preferred over raw lat/lon
- ignition: JT808 status bit 0 (ACC), else "ACC ON"/"ACC OFF" in the
  status text, else inferred from speed above 5 km/h
- battery: voltagepercent when positive, clamped to 0..100
- time: validpoistiontime (sic), then updatetime, then gpstime

normalize_position_record() raises TimestampNormalizationError for unusable
times and ValueError for missing coordinates; callers drop such records.
"""

import re
from typing import Any, Dict, Optional

from src.Schemas.position import PositionSample
from src.Services.timestamps import normalize_provider_timestamp

_ACC_PATTERN = re.compile(r"ACC\s*[:_=]?\s*(ON|OFF)", re.IGNORECASE)

SPEED_DRIFT_KMH = 3.0
SPEED_MAX_KMH = 300.0
IGNITION_SPEED_KMH = 5.0


def coerce_number(value: Any) -> Optional[float]:
    """Return a float for numeric-looking values, None otherwise."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def normalize_speed(raw_speed: Any) -> float:
    """Provider speed (m/h or km/h) to km/h with drift suppression."""
    speed = coerce_number(raw_speed)
    if speed is None:
        return 0.0

    speed = max(0.0, speed)
    speed_kmh = speed / 1000 if speed > 200 else speed

    if speed_kmh < SPEED_DRIFT_KMH:
        return 0.0

    return round(min(speed_kmh, SPEED_MAX_KMH), 1)


def detect_ignition(record: Dict[str, Any], speed_kmh: float) -> bool:
    status = coerce_number(record.get("status"))
    if status is not None:
        return bool(int(status) & 0x1)

    text = record.get("strstatusen") or record.get("strstatus") or ""
    match = _ACC_PATTERN.search(str(text))
    if match:
        return match.group(1).upper() == "ON"

    return speed_kmh > IGNITION_SPEED_KMH


def normalize_battery(record: Dict[str, Any]) -> Optional[int]:
    percent = coerce_number(record.get("voltagepercent"))
    if percent is None or percent <= 0:
        return None
    return int(max(0, min(100, round(percent))))


def pick_coordinates(record: Dict[str, Any]) -> tuple:
    """Calibrated coordinates first, raw second. Both missing/zero -> ValueError."""
    lat = coerce_number(record.get("callat"))
    lon = coerce_number(record.get("callon"))
    if not lat or not lon:
        lat = coerce_number(record.get("lat"))
        lon = coerce_number(record.get("lon"))
    if not lat or not lon:
        raise ValueError(f"record for device {record.get('deviceid')!r} has no coordinates")
    return lat, lon


def pick_timestamp(record: Dict[str, Any]) -> Any:
    for key in ("validpoistiontime", "updatetime", "gpstime", "time"):
        value = record.get(key)
        if value not in (None, "", 0):
            return value
    return None


def normalize_position_record(record: Dict[str, Any], device_id: Optional[str] = None) -> PositionSample:
    """
    Build a PositionSample from a raw provider record.

    Raises:
        TimestampNormalizationError: No usable timestamp
        ValueError: No coordinates or device id
    """
    device = device_id or record.get("deviceid")
    if not device:
        raise ValueError("record has no device id")

    latitude, longitude = pick_coordinates(record)
    speed_kmh = normalize_speed(record.get("speed"))
    heading = coerce_number(record.get("course"))
    if heading is None:
        heading = coerce_number(record.get("direction"))

    return PositionSample(
        device_id=str(device),
        latitude=latitude,
        longitude=longitude,
        speed=speed_kmh,
        heading=heading,
        altitude=coerce_number(record.get("altitude")),
        ignition_on=detect_ignition(record, speed_kmh),
        battery_percent=normalize_battery(record),
        gps_time=normalize_provider_timestamp(pick_timestamp(record)),
    )
