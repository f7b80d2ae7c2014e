# src/Repositories/command_log.py
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from src.Models.command_log import VehicleCommandLog


def create_command_log(
    db: Session,
    device_id: str,
    command_type: str,
    payload: Optional[Dict[str, Any]] = None,
) -> VehicleCommandLog:
    log = VehicleCommandLog(
        device_id=device_id,
        command_type=command_type,
        payload=payload,
        status="pending",
    )
    db.add(log)
    db.commit()
    db.refresh(log)
    return log


def update_command_log(
    db: Session,
    log: VehicleCommandLog,
    status: str,
    executed_at: Optional[datetime] = None,
    provider_command_id: Optional[str] = None,
    result: Optional[Dict[str, Any]] = None,
    error_message: Optional[str] = None,
) -> VehicleCommandLog:
    log.status = status
    if executed_at is not None:
        log.executed_at = executed_at
    if provider_command_id is not None:
        log.provider_command_id = provider_command_id
    if result is not None:
        log.result = result
    if error_message is not None:
        log.error_message = error_message
    db.commit()
    return log


def get_command_logs(db: Session, device_id: str, limit: int = 50) -> List[VehicleCommandLog]:
    return (
        db.query(VehicleCommandLog)
        .filter(VehicleCommandLog.device_id == device_id)
        .order_by(VehicleCommandLog.id.desc())
        .limit(limit)
        .all()
    )
