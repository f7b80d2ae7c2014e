# src/Schemas/trip.py
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Any, Dict, Optional


# ============================================
# SEGMENTATION OUTPUT
# ============================================
class TripCandidate(BaseModel):
    """
    Trip emitted by the segmentation engine.

    end_time is the last moving sample. duration_seconds is derived and
    cannot be supplied.
    """
    model_config = ConfigDict(frozen=True)

    device_id: str
    start_time: datetime
    end_time: datetime
    start_latitude: float
    start_longitude: float
    end_latitude: float
    end_longitude: float
    distance_km: float = Field(..., ge=0)
    avg_speed_kmh: float = Field(..., ge=0)
    max_speed_kmh: float = Field(..., ge=0)

    @property
    def duration_seconds(self) -> int:
        return int((self.end_time - self.start_time).total_seconds())

    def to_row(self) -> Dict[str, Any]:
        """Values for a vehicle_trips write (source: position_history)."""
        row = self.model_dump()
        row["duration_seconds"] = self.duration_seconds
        row["source"] = "position_history"
        return row


# ============================================
# PROVIDER TRIP (querytrips row, converted)
# ============================================
class ProviderTrip_create(BaseModel):
    """
    One querytrips row after unit and timezone conversion.

    Everything except the natural key is optional; the mirror stores what the
    provider sent, the normalized table demands a complete trip.
    """
    device_id: str = Field(..., min_length=1)
    start_time: datetime
    end_time: Optional[datetime] = None
    start_latitude: Optional[float] = None
    start_longitude: Optional[float] = None
    end_latitude: Optional[float] = None
    end_longitude: Optional[float] = None
    distance_km: Optional[float] = None
    avg_speed_kmh: Optional[float] = None
    max_speed_kmh: Optional[float] = None
    raw_data: Optional[Dict[str, Any]] = None

    @property
    def duration_seconds(self) -> Optional[int]:
        if self.end_time is None:
            return None
        return int((self.end_time - self.start_time).total_seconds())

    def to_mirror_row(self) -> Dict[str, Any]:
        row = self.model_dump()
        row["duration_seconds"] = self.duration_seconds
        return row

    def to_vehicle_trip_row(self) -> Dict[str, Any]:
        row = self.model_dump(exclude={"raw_data"})
        row["distance_km"] = self.distance_km or 0.0
        row["duration_seconds"] = self.duration_seconds
        row["source"] = "provider"
        return row


# ============================================
# READ SCHEMA
# ============================================
class VehicleTrip_get(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    device_id: str
    source: str
    start_time: datetime
    end_time: datetime
    start_latitude: float
    start_longitude: float
    end_latitude: float
    end_longitude: float
    distance_km: float
    avg_speed_kmh: Optional[float] = None
    max_speed_kmh: Optional[float] = None
    duration_seconds: int
