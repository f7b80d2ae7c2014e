# src/Repositories/proactive_event.py
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from src.Models.proactive_event import ProactiveVehicleEvent


def create_proactive_event(
    db: Session,
    device_id: str,
    event_type: str,
    title: str,
    message: str,
    severity: str = "info",
    metadata: Optional[dict] = None,
    created_at: Optional[datetime] = None,
) -> ProactiveVehicleEvent:
    event = ProactiveVehicleEvent(
        device_id=device_id,
        event_type=event_type,
        severity=severity,
        title=title,
        message=message,
        extra_metadata=metadata,
    )
    if created_at is not None:
        event.created_at = created_at
    db.add(event)
    db.flush()
    return event


def recent_event_exists(db: Session, device_id: str, event_type: str, since: datetime) -> bool:
    return (
        db.query(ProactiveVehicleEvent.id)
        .filter(
            ProactiveVehicleEvent.device_id == device_id,
            ProactiveVehicleEvent.event_type == event_type,
            ProactiveVehicleEvent.created_at >= since,
        )
        .first()
        is not None
    )


def get_events_by_device(db: Session, device_id: str, limit: int = 50) -> List[ProactiveVehicleEvent]:
    return (
        db.query(ProactiveVehicleEvent)
        .filter(ProactiveVehicleEvent.device_id == device_id)
        .order_by(ProactiveVehicleEvent.id.desc())
        .limit(limit)
        .all()
    )
