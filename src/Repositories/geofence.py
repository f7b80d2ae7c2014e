# src/Repositories/geofence.py
"""
Geofence Repository - zones, monitors and fired events.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from src.Models.geofence import GeofenceZone, GeofenceMonitor, GeofenceEvent
from src.Schemas.geofence import GeofenceZone_create, GeofenceZone_update, GeofenceMonitor_create


# ==========================================================
# ZONES
# ==========================================================

def get_all_zones(db: Session, only_active: bool = True) -> List[GeofenceZone]:
    query = db.query(GeofenceZone)
    if only_active:
        query = query.filter(GeofenceZone.is_active.is_(True))
    return query.order_by(GeofenceZone.name).all()


def get_zone_by_id(db: Session, zone_id: int) -> Optional[GeofenceZone]:
    return db.query(GeofenceZone).filter(GeofenceZone.id == zone_id).first()


def create_zone(db: Session, zone_data: GeofenceZone_create) -> GeofenceZone:
    zone = GeofenceZone(**zone_data.model_dump())
    db.add(zone)
    db.commit()
    db.refresh(zone)
    return zone


def update_zone(db: Session, zone_id: int, update_data: GeofenceZone_update) -> Optional[GeofenceZone]:
    zone = get_zone_by_id(db, zone_id)
    if zone is None:
        return None
    for key, value in update_data.model_dump(exclude_unset=True).items():
        setattr(zone, key, value)
    db.commit()
    db.refresh(zone)
    return zone


def deactivate_zone(db: Session, zone_id: int) -> bool:
    zone = get_zone_by_id(db, zone_id)
    if zone is None:
        return False
    zone.is_active = False
    db.commit()
    return True


# ==========================================================
# MONITORS
# ==========================================================

def create_monitor(db: Session, monitor_data: GeofenceMonitor_create) -> GeofenceMonitor:
    monitor = GeofenceMonitor(**monitor_data.model_dump())
    db.add(monitor)
    db.commit()
    db.refresh(monitor)
    return monitor


def get_monitor_by_id(db: Session, monitor_id: int) -> Optional[GeofenceMonitor]:
    return db.query(GeofenceMonitor).filter(GeofenceMonitor.id == monitor_id).first()


def get_active_monitors(db: Session, now: datetime) -> List[GeofenceMonitor]:
    """Active monitors that have not expired, in id order. Monitors on a removed zone are skipped."""
    return (
        db.query(GeofenceMonitor)
        .outerjoin(GeofenceZone, GeofenceMonitor.zone_id == GeofenceZone.id)
        .filter(
            GeofenceMonitor.is_active.is_(True),
            or_(GeofenceMonitor.zone_id.is_(None), GeofenceZone.is_active.is_(True)),
            or_(GeofenceMonitor.expires_at.is_(None), GeofenceMonitor.expires_at > now),
        )
        .order_by(GeofenceMonitor.id)
        .all()
    )


# ==========================================================
# EVENTS
# ==========================================================

def create_event(
    db: Session,
    monitor: GeofenceMonitor,
    event_type: str,
    latitude: float,
    longitude: float,
    occurred_at: datetime,
    metadata: Optional[dict] = None,
) -> GeofenceEvent:
    event = GeofenceEvent(
        monitor_id=monitor.id,
        device_id=monitor.device_id,
        zone_id=monitor.zone_id,
        event_type=event_type,
        latitude=latitude,
        longitude=longitude,
        occurred_at=occurred_at,
        extra_metadata=metadata,
    )
    db.add(event)
    db.flush()
    return event


def get_events_by_monitor(db: Session, monitor_id: int) -> List[GeofenceEvent]:
    return (
        db.query(GeofenceEvent)
        .filter(GeofenceEvent.monitor_id == monitor_id)
        .order_by(GeofenceEvent.occurred_at.asc())
        .all()
    )
