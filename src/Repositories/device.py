# src/Repositories/device.py
"""
Device Repository - registry lookups used by every pipeline stage.

Usage:
    from src.Repositories.device import resolve_device_ids

    device_ids = resolve_device_ids(db, request.device_ids)
"""

from datetime import datetime
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from src.Core.exceptions import ValidationError
from src.Models.device import Device
from src.Services.timestamps import ensure_utc


def get_all_devices(db: Session, only_active: bool = False) -> List[Device]:
    query = db.query(Device)
    if only_active:
        query = query.filter(Device.is_active.is_(True))
    return query.order_by(Device.device_id).all()


def get_device_by_id(db: Session, device_id: str) -> Optional[Device]:
    return db.query(Device).filter(Device.device_id == device_id).first()


def create_device(db: Session, device_id: str, device_name: Optional[str] = None) -> Device:
    device = Device(device_id=device_id, device_name=device_name, is_active=True)
    db.add(device)
    db.flush()
    return device


def resolve_device_ids(db: Session, device_ids: Optional[Iterable[str]]) -> List[str]:
    """
    Validate an explicit device list, or fall back to every active device.

    Raises:
        ValidationError: Blank id in the explicit list, or nothing to process
    """
    if device_ids is None:
        resolved = [device.device_id for device in get_all_devices(db, only_active=True)]
    else:
        resolved = []
        for device_id in device_ids:
            if device_id is None or not str(device_id).strip():
                raise ValidationError("device_id must not be empty")
            if str(device_id).strip() not in resolved:
                resolved.append(str(device_id).strip())

    if not resolved:
        raise ValidationError("No devices to process")
    return resolved


def get_device_names(db: Session, device_ids: Iterable[str]) -> Dict[str, str]:
    """Map device_id -> display name (falls back to the id)."""
    ids = list(device_ids)
    if not ids:
        return {}
    rows = db.query(Device.device_id, Device.device_name).filter(Device.device_id.in_(ids)).all()
    names = {device_id: device_name or device_id for device_id, device_name in rows}
    return {device_id: names.get(device_id, device_id) for device_id in ids}


def update_last_seen(db: Session, device_id: str, seen_at: datetime) -> None:
    device = get_device_by_id(db, device_id)
    if device is None:
        return
    if device.last_seen is None or ensure_utc(device.last_seen) < seen_at:
        device.last_seen = seen_at
