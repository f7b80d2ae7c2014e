"""
Anomaly Detector
================
Rules over recent position history that produce user-facing warnings.

- Night movement: a sample faster than ANOMALY_NIGHT_SPEED_KMH whose
  display-time hour is in [ANOMALY_NIGHT_START_HOUR, ANOMALY_NIGHT_END_HOUR)
- Battery drain: battery percent lost per hour over the last 24 h exceeds
  ANOMALY_BATTERY_DRAIN_FACTOR x the 7-day average rate
- Offline: the latest position is older than ANOMALY_OFFLINE_AFTER_H;
  severity becomes "error" past a day of silence

Drain rate = sum of battery drops between consecutive readings / hours
covered by those readings. Charging (rises) is ignored.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence

from src.Core.config import settings
from src.Schemas.position import PositionSample
from src.Services.timestamps import to_display_time

UNUSUAL_MOVEMENT = "unusual_movement"
BATTERY_DRAIN = "battery_drain"
OFFLINE = "offline"


@dataclass(frozen=True)
class Anomaly:
    event_type: str
    title: str
    message: str
    metadata: Dict[str, Any]
    severity: str = "warning"


def find_night_movement(samples: Sequence[PositionSample]) -> Optional[PositionSample]:
    """Most recent sample moving during night hours, if any."""
    for sample in sorted(samples, key=lambda s: s.gps_time, reverse=True):
        if sample.speed <= settings.ANOMALY_NIGHT_SPEED_KMH:
            continue
        hour = to_display_time(sample.gps_time).hour
        if settings.ANOMALY_NIGHT_START_HOUR <= hour < settings.ANOMALY_NIGHT_END_HOUR:
            return sample
    return None


def battery_drain_rate(samples: Sequence[PositionSample]) -> Optional[float]:
    """Percent per hour; None when fewer than two battery readings span time."""
    readings = [s for s in sorted(samples, key=lambda s: s.gps_time) if s.battery_percent is not None]
    if len(readings) < 2:
        return None

    hours = (readings[-1].gps_time - readings[0].gps_time).total_seconds() / 3600.0
    if hours <= 0:
        return None

    dropped = sum(
        max(0, previous.battery_percent - current.battery_percent)
        for previous, current in zip(readings, readings[1:])
    )
    return dropped / hours


def detect_battery_drain(
    recent: Sequence[PositionSample],
    baseline: Sequence[PositionSample],
) -> Optional[Anomaly]:
    recent_rate = battery_drain_rate(recent)
    average_rate = battery_drain_rate(baseline)
    if recent_rate is None or not average_rate:
        return None
    if recent_rate <= average_rate * settings.ANOMALY_BATTERY_DRAIN_FACTOR:
        return None

    current = next((s.battery_percent for s in sorted(recent, key=lambda s: s.gps_time, reverse=True)
                    if s.battery_percent is not None), None)
    faster = (recent_rate / average_rate - 1) * 100
    return Anomaly(
        event_type=BATTERY_DRAIN,
        title="Unusual Battery Drain Detected",
        message=f"Battery is draining {faster:.0f}% faster than usual. Current: {current}%",
        metadata={
            "current_battery": current,
            "avg_drain_per_hour": round(average_rate, 3),
            "today_drain_per_hour": round(recent_rate, 3),
        },
    )


def detect_night_movement(samples: Sequence[PositionSample]) -> Optional[Anomaly]:
    movement = find_night_movement(samples)
    if movement is None:
        return None
    local = to_display_time(movement.gps_time)
    return Anomaly(
        event_type=UNUSUAL_MOVEMENT,
        title="Unusual Movement Detected",
        message=f"Vehicle movement detected at {local.strftime('%H:%M')} (unusual time)",
        metadata={
            "movement_time": movement.gps_time.isoformat(),
            "speed": movement.speed,
            "lat": movement.latitude,
            "lon": movement.longitude,
        },
    )


def detect_offline(
    last_seen: datetime,
    now: datetime,
    vehicle_name: str,
    battery_percent: Optional[int] = None,
) -> Optional[Anomaly]:
    silent = now - last_seen
    if silent <= timedelta(hours=settings.ANOMALY_OFFLINE_AFTER_H):
        return None

    hours = round(silent.total_seconds() / 3600)
    return Anomaly(
        event_type=OFFLINE,
        title="Vehicle Offline",
        message=f"{vehicle_name} has been offline for {hours} hour{'' if hours == 1 else 's'}",
        metadata={
            "last_seen": last_seen.isoformat(),
            "hours_offline": hours,
            "vehicle_name": vehicle_name,
            "battery_at_disconnect": battery_percent,
        },
        severity="error" if hours > 24 else "warning",
    )


def evaluate_device(samples_7d: Sequence[PositionSample], now: datetime) -> List[Anomaly]:
    """Both rules over one device's last seven days of samples."""
    day_ago = now - timedelta(hours=24)
    recent = [s for s in samples_7d if s.gps_time >= day_ago]

    found = []
    for anomaly in (detect_battery_drain(recent, samples_7d), detect_night_movement(recent)):
        if anomaly is not None:
            found.append(anomaly)
    return found
