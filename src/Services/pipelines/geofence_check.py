"""
Geofence Check
==============
Evaluates every active, unexpired monitor against its device's latest
position and records enter/exit transitions.

Only one checker runs at a time: the pass holds the "geofence_check" lease in
pipeline_locks and reports skipped=True when another holder owns it.
Long passes renew the lease at half its TTL. A failure that escapes the
loop rolls back the unsaved monitor updates before the lease is released.

Per monitor:
    1. Outside its active window      -> untouched
    2. No position / unresolvable zone -> counted, no state change
    3. Evaluate; on fire write GeofenceEvent + ProactiveVehicleEvent, bump
       trigger_count/last_triggered_at, deactivate one_time monitors
    4. Always persist vehicle_inside and last_checked_at
"""

import time
import uuid
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.Core.config import settings
from src.Core.logging_config import get_logger
from src.Models.geofence import GeofenceMonitor
from src.Models.position import VehiclePosition
from src.Repositories.device import get_device_names
from src.Repositories.geofence import create_event, get_active_monitors
from src.Repositories.pipeline_lock import acquire_lock, release_lock, renew_lock
from src.Repositories.position import get_latest_positions
from src.Repositories.proactive_event import create_proactive_event
from src.Schemas.sync import GeofenceCheckSummary
from src.Services.geofence_detector import (
    ENTER,
    GeofenceDecision,
    GeofenceDetector,
    ResolvedZone,
    geofence_detector,
    is_within_active_window,
    resolve_zone,
)
from src.Services.pipelines.base import timed
from src.Services.timestamps import utc_now

logger = get_logger(__name__)

LOCK_NAME = "geofence_check"


def _notify(
    db: Session,
    monitor: GeofenceMonitor,
    zone: ResolvedZone,
    decision: GeofenceDecision,
    position: VehiclePosition,
    vehicle_name: str,
    now: datetime,
) -> None:
    create_event(
        db,
        monitor,
        event_type=decision.edge,
        latitude=position.latitude,
        longitude=position.longitude,
        occurred_at=now,
        metadata={
            "distance_meters": round(decision.distance_meters, 1),
            "radius_meters": round(zone.radius_meters, 1),
            "vehicle_name": vehicle_name,
            "speed": position.speed,
        },
    )

    if decision.edge == ENTER:
        title = f"Arrived at {zone.name}"
        message = f"{vehicle_name} has arrived at {zone.name}"
    else:
        title = f"Left {zone.name}"
        message = f"{vehicle_name} has left {zone.name}"

    create_proactive_event(
        db,
        device_id=monitor.device_id,
        event_type=f"geofence_{decision.edge}",
        title=title,
        message=message,
        severity="info",
        metadata={"monitor_id": monitor.id, "zone_id": monitor.zone_id},
        created_at=now,
    )

    monitor.trigger_count = (monitor.trigger_count or 0) + 1
    monitor.last_triggered_at = now
    if monitor.one_time:
        monitor.is_active = False


def check_geofences(
    db: Session,
    now: Optional[datetime] = None,
    holder: Optional[str] = None,
    detector: Optional[GeofenceDetector] = None,
    monotonic: Callable[[], float] = time.monotonic,
) -> GeofenceCheckSummary:
    summary = GeofenceCheckSummary()
    now = now or utc_now()
    holder = holder or f"geofence-{uuid.uuid4().hex[:12]}"
    detector = detector or geofence_detector
    ttl = settings.GEOFENCE_LOCK_TTL_S

    if not acquire_lock(db, LOCK_NAME, holder, ttl, now):
        logger.info("[GEOFENCE] Another checker holds the lease, skipping this pass")
        summary.skipped = True
        return summary

    started = last_renewal = monotonic()
    try:
        with timed(summary):
            monitors = get_active_monitors(db, now)
            device_ids = sorted({m.device_id for m in monitors})
            positions = get_latest_positions(db, device_ids)
            names = get_device_names(db, device_ids)

            for monitor in monitors:
                # renew at half the lease; the renewal commits monitors already evaluated
                if monotonic() - last_renewal >= ttl / 2:
                    elapsed = monotonic() - started
                    if not renew_lock(db, LOCK_NAME, holder, ttl, now + timedelta(seconds=elapsed)):
                        logger.warning("[GEOFENCE] Lease lost mid-pass, stopping")
                        db.rollback()
                        summary.record_error("geofence lease lost before the pass finished")
                        break
                    last_renewal = monotonic()

                if not is_within_active_window(now, monitor.active_days,
                                               monitor.active_from, monitor.active_until):
                    continue

                summary.monitors_checked += 1
                position = positions.get(monitor.device_id)
                if position is None:
                    logger.debug("[GEOFENCE] monitor %s: no position for %s", monitor.id, monitor.device_id)
                    continue

                zone = resolve_zone(monitor)
                if zone is None:
                    summary.record_error(f"monitor {monitor.id}: no zone or inline location")
                    continue

                decision = detector.evaluate(monitor, zone, position.latitude, position.longitude, now)
                try:
                    with db.begin_nested():
                        if decision.fire:
                            _notify(db, monitor, zone, decision, position,
                                    names.get(monitor.device_id, monitor.device_id), now)
                            summary.events_triggered += 1
                            logger.info("[GEOFENCE] %s %s %s (%.0f m)", monitor.device_id,
                                        decision.edge, zone.name, decision.distance_meters)
                        elif decision.in_cooldown:
                            logger.debug("[GEOFENCE] monitor %s: %s suppressed by cooldown",
                                         monitor.id, decision.edge)
                        monitor.vehicle_inside = decision.is_inside
                        monitor.last_checked_at = now
                except SQLAlchemyError as exc:
                    summary.record_error(f"monitor {monitor.id}: {str(getattr(exc, 'orig', exc)).splitlines()[0]}")

            db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        release_lock(db, LOCK_NAME, holder)

    logger.info("[GEOFENCE] checked=%d triggered=%d errors=%d",
                summary.monitors_checked, summary.events_triggered, summary.errors)
    return summary
