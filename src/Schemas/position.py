# src/Schemas/position.py
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Optional


class PositionSample(BaseModel):
    """
    Normalized position sample.

    Built by the telemetry normalizer from a provider record, or loaded from
    position_history. Immutable once built.
    """
    model_config = ConfigDict(from_attributes=True, frozen=True)

    device_id: str = Field(..., min_length=1, max_length=64)
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    speed: float = Field(0.0, ge=0, description="km/h")
    heading: Optional[float] = Field(None, description="Degrees clockwise from north")
    altitude: Optional[float] = None
    ignition_on: bool = False
    battery_percent: Optional[int] = Field(None, ge=0, le=100)
    gps_time: datetime = Field(..., description="UTC instant")


class VehiclePosition_get(PositionSample):
    is_online: bool = True
