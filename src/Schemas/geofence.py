# src/Schemas/geofence.py

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from datetime import datetime
from typing import Any, Dict, List, Optional

_HHMM = r'^([01]\d|2[0-3]):[0-5]\d$'


class GeofenceZone_base(BaseModel):
    """Circular zone owned by an operator."""
    model_config = ConfigDict(from_attributes=True)

    name: str = Field(..., min_length=1, max_length=200)
    zone_type: str = Field(default='custom', max_length=50)
    center_latitude: float = Field(..., ge=-90, le=90)
    center_longitude: float = Field(..., ge=-180, le=180)
    radius_meters: float = Field(..., gt=0)
    is_active: bool = True


class GeofenceZone_create(GeofenceZone_base):
    pass


class GeofenceZone_update(BaseModel):
    """All fields optional to support partial updates."""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    zone_type: Optional[str] = Field(None, max_length=50)
    center_latitude: Optional[float] = Field(None, ge=-90, le=90)
    center_longitude: Optional[float] = Field(None, ge=-180, le=180)
    radius_meters: Optional[float] = Field(None, gt=0)
    is_active: Optional[bool] = None


class GeofenceZone_get(GeofenceZone_base):
    id: int
    provider_record_id: Optional[str] = None
    provider_category_id: Optional[str] = None
    created_at: Optional[datetime] = None


class GeofenceMonitor_create(BaseModel):
    """
    Binds one device to a zone.

    Either zone_id or an inline latitude/longitude must be given. Inline
    monitors without a radius use the configured default.
    """
    model_config = ConfigDict(from_attributes=True)

    device_id: str = Field(..., min_length=1, max_length=64)
    zone_id: Optional[int] = None
    location_name: Optional[str] = Field(None, max_length=200)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    radius_meters: Optional[float] = Field(None, gt=0)
    trigger_on: str = Field('both', pattern='^(enter|exit|both)$')
    active_days: Optional[List[int]] = Field(None, description="0 = Sunday ... 6 = Saturday")
    active_from: Optional[str] = Field(None, pattern=_HHMM)
    active_until: Optional[str] = Field(None, pattern=_HHMM)
    one_time: bool = False
    expires_at: Optional[datetime] = None

    @field_validator('active_days')
    @classmethod
    def _days_in_range(cls, value: Optional[List[int]]) -> Optional[List[int]]:
        if value is not None and any(day < 0 or day > 6 for day in value):
            raise ValueError("active_days entries must be between 0 (Sunday) and 6 (Saturday)")
        return value

    @model_validator(mode='after')
    def _has_location(self) -> 'GeofenceMonitor_create':
        if self.zone_id is None and (self.latitude is None or self.longitude is None):
            raise ValueError("either zone_id or latitude/longitude is required")
        return self


class GeofenceMonitor_get(GeofenceMonitor_create):
    id: int
    is_active: bool
    vehicle_inside: bool
    last_checked_at: Optional[datetime] = None
    last_triggered_at: Optional[datetime] = None
    trigger_count: int = 0


class GeofenceEvent_get(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int
    monitor_id: int
    device_id: str
    zone_id: Optional[int] = None
    event_type: str
    latitude: float
    longitude: float
    occurred_at: datetime
    extra_metadata: Optional[Dict[str, Any]] = Field(
        default=None,
        serialization_alias='metadata'
    )
