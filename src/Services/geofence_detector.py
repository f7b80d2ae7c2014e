# src/Services/geofence_detector.py
"""
Geofence Detector - evaluation rules for one monitor against one position.

Pure decision logic; persistence lives in Services/pipelines/geofence_check.py.

Decision matrix:
    is_inside = haversine(position, center) <= radius
    entered   = not was_inside and is_inside
    exited    = was_inside and not is_inside
    fire      = edge matches trigger_on AND not in cooldown

Active window:
    Evaluated on display-time wall clock (GMT+1). active_days uses
    0 = Sunday. Bounds are inclusive; from > until wraps midnight
    (22:00-06:00 covers 23:30 and 05:59).
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Sequence

from src.Core.config import settings
from src.Models.geofence import GeofenceMonitor
from src.Services.geo_utils import calculate_haversine_distance
from src.Services.timestamps import ensure_utc, to_display_time

ENTER = "enter"
EXIT = "exit"
BOTH = "both"


@dataclass(frozen=True)
class ResolvedZone:
    name: str
    latitude: float
    longitude: float
    radius_meters: float


@dataclass(frozen=True)
class GeofenceDecision:
    is_inside: bool
    distance_meters: float
    edge: Optional[str] = None
    fire: bool = False
    in_cooldown: bool = False


# ==========================================================
# HELPERS
# ==========================================================

def resolve_zone(monitor: GeofenceMonitor, default_radius: Optional[float] = None) -> Optional[ResolvedZone]:
    """Linked zone first, then the inline location. None when neither is usable."""
    if monitor.zone is not None:
        return ResolvedZone(
            name=monitor.zone.name,
            latitude=monitor.zone.center_latitude,
            longitude=monitor.zone.center_longitude,
            radius_meters=monitor.zone.radius_meters,
        )
    if monitor.latitude is None or monitor.longitude is None:
        return None
    radius = monitor.radius_meters or default_radius or settings.GEOFENCE_DEFAULT_RADIUS_M
    return ResolvedZone(
        name=monitor.location_name or f"monitor {monitor.id}",
        latitude=monitor.latitude,
        longitude=monitor.longitude,
        radius_meters=radius,
    )


def is_within_active_window(
    now: datetime,
    active_days: Optional[Sequence[int]] = None,
    active_from: Optional[str] = None,
    active_until: Optional[str] = None,
) -> bool:
    """
    Day/hour gate on the display-time wall clock.

    Examples:
        window 22:00-06:00, local 23:30 -> True
        window 22:00-06:00, local 12:00 -> False
        active_days [1..5] on a Sunday   -> False
    """
    local = to_display_time(now)
    # Python: Monday = 0; stored days: Sunday = 0
    weekday = (local.weekday() + 1) % 7
    if active_days and weekday not in active_days:
        return False

    if active_from and active_until:
        current = local.strftime("%H:%M")
        start, end = active_from[:5], active_until[:5]
        if start > end:
            return current >= start or current <= end
        return start <= current <= end

    return True


# ==========================================================
# CLASE: GEOFENCE DETECTOR
# ==========================================================

class GeofenceDetector:

    def __init__(self, cooldown_s: Optional[int] = None):
        self.cooldown = timedelta(
            seconds=cooldown_s if cooldown_s is not None else settings.GEOFENCE_COOLDOWN_S
        )

    def in_cooldown(self, last_triggered_at: Optional[datetime], now: datetime) -> bool:
        last = ensure_utc(last_triggered_at)
        return last is not None and now - last < self.cooldown

    def evaluate(
        self,
        monitor: GeofenceMonitor,
        zone: ResolvedZone,
        latitude: float,
        longitude: float,
        now: datetime,
    ) -> GeofenceDecision:
        distance = calculate_haversine_distance(latitude, longitude, zone.latitude, zone.longitude)
        is_inside = distance <= zone.radius_meters
        was_inside = bool(monitor.vehicle_inside)

        edge = None
        if is_inside and not was_inside:
            edge = ENTER
        elif was_inside and not is_inside:
            edge = EXIT

        wanted = edge is not None and monitor.trigger_on in (edge, BOTH)
        cooling = wanted and self.in_cooldown(monitor.last_triggered_at, now)

        return GeofenceDecision(
            is_inside=is_inside,
            distance_meters=distance,
            edge=edge,
            fire=wanted and not cooling,
            in_cooldown=cooling,
        )


# --------------------------------------------------------
# INSTANCIA GLOBAL (Singleton)
# --------------------------------------------------------
geofence_detector = GeofenceDetector()
