# src/Repositories/sync_status.py
"""
Sync Status Repository - per-device cursor and liveness row.

Stages call mark_syncing() before touching a device and exactly one of
mark_completed() / mark_error() afterwards. Watermarks only move forward.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from src.Models.sync_status import ProviderSyncStatus
from src.Services.timestamps import ensure_utc, utc_now

_WATERMARKS = {
    "positions": "last_position_synced_at",
    "trips": "last_trip_synced_at",
    "alarms": "last_alarm_synced_at",
    "mileage": "last_mileage_synced_at",
}


def get_status(db: Session, device_id: str) -> Optional[ProviderSyncStatus]:
    return db.get(ProviderSyncStatus, device_id)


def _get_or_create(db: Session, device_id: str) -> ProviderSyncStatus:
    status = get_status(db, device_id)
    if status is None:
        status = ProviderSyncStatus(device_id=device_id, sync_status="idle",
                                    trips_synced_count=0, alarms_synced_count=0)
        db.add(status)
        db.flush()
    return status


def get_watermark(db: Session, device_id: str, stage: str) -> Optional[datetime]:
    status = get_status(db, device_id)
    if status is None:
        return None
    return ensure_utc(getattr(status, _WATERMARKS[stage]))


def mark_syncing(db: Session, device_id: str, stage: str) -> ProviderSyncStatus:
    status = _get_or_create(db, device_id)
    status.sync_status = "syncing"
    status.current_stage = stage
    status.last_run_at = utc_now()
    db.commit()
    return status


def mark_completed(
    db: Session,
    device_id: str,
    stage: str,
    watermark: Optional[datetime] = None,
    synced_count: int = 0,
) -> ProviderSyncStatus:
    status = _get_or_create(db, device_id)
    status.sync_status = "completed"
    status.current_stage = stage
    status.last_error = None

    column = _WATERMARKS.get(stage)
    if column is not None and watermark is not None:
        current = ensure_utc(getattr(status, column))
        if current is None or watermark > current:
            setattr(status, column, watermark)

    if stage == "trips":
        status.trips_synced_count = (status.trips_synced_count or 0) + synced_count
    elif stage == "alarms":
        status.alarms_synced_count = (status.alarms_synced_count or 0) + synced_count

    db.commit()
    return status


def mark_error(db: Session, device_id: str, stage: str, error: str) -> ProviderSyncStatus:
    status = _get_or_create(db, device_id)
    status.sync_status = "error"
    status.current_stage = stage
    status.last_error = error[:2000]
    db.commit()
    return status
