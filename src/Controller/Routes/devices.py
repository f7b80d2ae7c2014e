# src/Controller/Routes/devices.py

"""
Device Registry and Read-Side REST API

Registers the provider devices the pipeline works on and exposes what the
stages have stored for each of them.

Endpoints:
- GET    /devices/                          List devices (with counts)
- POST   /devices/                          Register device
- GET    /devices/{device_id}               Device details
- GET    /devices/{device_id}/position      Latest known position
- GET    /devices/{device_id}/alarms        Provider alarms (newest first)
- GET    /devices/{device_id}/events        Proactive notifications (newest first)
- GET    /devices/{device_id}/sync-status   Per-device sync cursor and last error

Usage:
    # In main.py
    from src.Controller.Routes import devices
    app.include_router(devices.router, prefix="/devices", tags=["devices"])
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from src.Controller.deps import get_DB
from src.Repositories import alarm as alarm_repo
from src.Repositories import device as device_repo
from src.Repositories.position import get_latest_positions
from src.Repositories.proactive_event import get_events_by_device
from src.Repositories.sync_status import get_status
from src.Schemas import device as device_schema
from src.Schemas.alarm import ProviderAlarm_get
from src.Schemas.position import VehiclePosition_get
from src.Schemas.proactive_event import ProactiveEvent_get
from src.Schemas.sync import SyncStatus_get

router = APIRouter()


def _device_or_404(db: Session, device_id: str):
    device = device_repo.get_device_by_id(db, device_id)
    if device is None:
        raise HTTPException(
            status_code=404,
            detail=f"Device '{device_id}' not found"
        )
    return device


# ==========================================================
# 📌 Registry
# ==========================================================

@router.get("/", response_model=device_schema.Device_list_response)
def list_devices(
    only_active: bool = Query(False, description="Filter only active devices"),
    db: Session = Depends(get_DB)
):
    devices = device_repo.get_all_devices(db, only_active=only_active)

    total = len(devices)
    active = sum(1 for d in devices if d.is_active)

    return {
        "devices": [device_schema.Device_get.model_validate(d) for d in devices],
        "total": total,
        "active": active,
        "inactive": total - active
    }


@router.post("/", response_model=device_schema.Device_get, status_code=201)
def register_device(device: device_schema.Device_create, db: Session = Depends(get_DB)):
    if device_repo.get_device_by_id(db, device.device_id) is not None:
        raise HTTPException(
            status_code=409,
            detail=f"Device '{device.device_id}' already exists"
        )
    created = device_repo.create_device(db, device.device_id, device.device_name)
    db.commit()
    db.refresh(created)
    return created


@router.get("/{device_id}", response_model=device_schema.Device_get)
def get_device(device_id: str, db: Session = Depends(get_DB)):
    return _device_or_404(db, device_id)


# ==========================================================
# 📌 Stored Telemetry
# ==========================================================

@router.get("/{device_id}/position", response_model=VehiclePosition_get)
def latest_position(device_id: str, db: Session = Depends(get_DB)):
    _device_or_404(db, device_id)
    position = get_latest_positions(db, [device_id]).get(device_id)
    if position is None:
        raise HTTPException(
            status_code=404,
            detail=f"No position stored for '{device_id}'"
        )
    return position


@router.get("/{device_id}/alarms", response_model=List[ProviderAlarm_get])
def list_alarms(
    device_id: str,
    severity: Optional[str] = Query(None, pattern='^(critical|error|warning|info)$'),
    limit: int = Query(100, gt=0, le=1000),
    db: Session = Depends(get_DB)
):
    _device_or_404(db, device_id)
    return alarm_repo.get_alarms(db, device_id=device_id, severity=severity, limit=limit)


@router.get("/{device_id}/events", response_model=List[ProactiveEvent_get])
def list_events(
    device_id: str,
    limit: int = Query(50, gt=0, le=500),
    db: Session = Depends(get_DB)
):
    _device_or_404(db, device_id)
    return get_events_by_device(db, device_id, limit=limit)


@router.get("/{device_id}/sync-status", response_model=SyncStatus_get)
def sync_status(device_id: str, db: Session = Depends(get_DB)):
    _device_or_404(db, device_id)
    status = get_status(db, device_id)
    if status is None:
        raise HTTPException(
            status_code=404,
            detail=f"'{device_id}' has not been synced yet"
        )
    return status
