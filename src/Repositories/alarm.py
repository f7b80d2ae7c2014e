# src/Repositories/alarm.py
"""
Alarm Repository - read access to deduplicated provider alarms.

Writes go through the Reconciler keyed on (device_id, alarm_time, alarm_code).
"""

from typing import List, Optional

from sqlalchemy.orm import Session

from src.Models.alarm import ProviderAlarm


def get_alarms(
    db: Session,
    device_id: Optional[str] = None,
    severity: Optional[str] = None,
    limit: int = 100,
) -> List[ProviderAlarm]:
    query = db.query(ProviderAlarm)
    if device_id:
        query = query.filter(ProviderAlarm.device_id == device_id)
    if severity:
        query = query.filter(ProviderAlarm.severity == severity)
    return query.order_by(ProviderAlarm.alarm_time.desc()).limit(limit).all()
