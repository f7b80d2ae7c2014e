# src/Repositories/position.py
"""
Position Repository - append-only position log and latest-position cache.

Responsibilities:
- Append PositionSamples, ignoring samples already stored for the same
  (device_id, gps_time)
- Overwrite the latest position per device when a newer sample arrives
- Load ordered samples for a device and time window
"""

from datetime import datetime
from typing import Dict, Iterable, List

from sqlalchemy import func
from sqlalchemy.orm import Session

from src.Models.position import PositionHistory, VehiclePosition
from src.Repositories.upsert import dialect_insert
from src.Schemas.position import PositionSample
from src.Services.timestamps import ensure_utc


# ==========================================================
# WRITE OPERATIONS
# ==========================================================

def append_position(db: Session, sample: PositionSample) -> bool:
    """
    Insert one sample into position_history.

    Returns:
        bool: True if inserted, False if (device_id, gps_time) already existed
    """
    table = PositionHistory.__table__
    stmt = (
        dialect_insert(db, table)
        .values(**sample.model_dump())
        .on_conflict_do_nothing(index_elements=[table.c.device_id, table.c.gps_time])
    )
    result = db.execute(stmt)
    return result.rowcount == 1


def upsert_latest_position(db: Session, sample: PositionSample, is_online: bool = True) -> None:
    """Keep vehicle_positions at the newest gps_time seen for the device."""
    current = db.get(VehiclePosition, sample.device_id)
    if current is not None and ensure_utc(current.gps_time) > sample.gps_time:
        return

    values = sample.model_dump()
    values["is_online"] = is_online
    table = VehiclePosition.__table__
    stmt = dialect_insert(db, table).values(**values)
    stmt = stmt.on_conflict_do_update(
        index_elements=[table.c.device_id],
        set_={key: stmt.excluded[key] for key in values if key != "device_id"} | {"cached_at": func.now()},
    )
    db.execute(stmt)
    if current is not None:
        db.expire(current)


# ==========================================================
# READ OPERATIONS
# ==========================================================

def get_samples_in_range(
    db: Session,
    device_id: str,
    begin: datetime,
    end: datetime
) -> List[PositionSample]:
    """Ordered samples with begin <= gps_time <= end."""
    rows = (
        db.query(PositionHistory)
        .filter(
            PositionHistory.device_id == device_id,
            PositionHistory.gps_time >= begin,
            PositionHistory.gps_time <= end,
        )
        .order_by(PositionHistory.gps_time.asc())
        .all()
    )
    return [_to_sample(row) for row in rows]


def get_latest_positions(db: Session, device_ids: Iterable[str]) -> Dict[str, VehiclePosition]:
    ids = list(device_ids)
    if not ids:
        return {}
    rows = db.query(VehiclePosition).filter(VehiclePosition.device_id.in_(ids)).all()
    return {row.device_id: row for row in rows}


def _to_sample(row: PositionHistory) -> PositionSample:
    return PositionSample(
        device_id=row.device_id,
        latitude=row.latitude,
        longitude=row.longitude,
        speed=row.speed or 0.0,
        heading=row.heading,
        altitude=row.altitude,
        ignition_on=bool(row.ignition_on),
        battery_percent=row.battery_percent,
        gps_time=ensure_utc(row.gps_time),
    )
