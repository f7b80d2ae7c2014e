# src/Schemas/mileage.py
from pydantic import BaseModel, Field
from datetime import date, datetime
from typing import Any, Dict, Optional


class MileageDetail_create(BaseModel):
    """One reportmileagedetail row after conversion."""
    device_id: str = Field(..., min_length=1)
    statistics_day: date
    provider_record_id: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    begin_distance: Optional[float] = None
    end_distance: Optional[float] = None
    total_distance: Optional[float] = Field(None, description="Meters")
    avg_speed_kmh: Optional[float] = None
    over_speed: Optional[int] = None
    total_acc_seconds: Optional[int] = None
    begin_oil: Optional[float] = None
    end_oil: Optional[float] = None
    add_oil: Optional[float] = None
    leak_oil: Optional[float] = None
    oil_per_100km: Optional[float] = None
    raw_data: Optional[Dict[str, Any]] = None
