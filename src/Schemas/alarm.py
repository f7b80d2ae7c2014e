# src/Schemas/alarm.py
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Any, Dict, Optional


class AlarmCandidate(BaseModel):
    """Alarm extracted from a provider position record, ready for upsert."""
    model_config = ConfigDict(from_attributes=True)

    device_id: str = Field(..., min_length=1)
    alarm_code: int = Field(..., description="Nonzero provider alarm code")
    alarm_description: Optional[str] = None
    alarm_description_en: Optional[str] = None
    video_alarm_code: Optional[int] = None
    video_alarm_description: Optional[str] = None
    severity: str = Field(..., pattern='^(critical|error|warning|info)$')
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    speed_kmh: Optional[float] = None
    altitude: Optional[float] = None
    heading: Optional[float] = None
    alarm_time: datetime
    raw_data: Dict[str, Any] = Field(default_factory=dict)


class ProviderAlarm_get(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    device_id: str
    alarm_code: int
    alarm_description: Optional[str] = None
    alarm_description_en: Optional[str] = None
    severity: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    speed_kmh: Optional[float] = None
    alarm_time: datetime
