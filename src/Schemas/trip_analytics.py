# src/Schemas/trip_analytics.py
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from enum import Enum
from typing import List, Optional


class HarshEventType(str, Enum):
    BRAKING = "harsh_braking"
    ACCELERATION = "harsh_acceleration"
    CORNERING = "harsh_cornering"


class HarshEvent_create(BaseModel):
    model_config = ConfigDict(frozen=True, use_enum_values=True)

    event_type: HarshEventType
    occurred_at: datetime
    magnitude: float = Field(..., description="km/h/s for speed events, deg/s for cornering")
    latitude: float
    longitude: float


class HarshEventCounts(BaseModel):
    harsh_braking: int = 0
    harsh_acceleration: int = 0
    harsh_cornering: int = 0

    @property
    def total(self) -> int:
        return self.harsh_braking + self.harsh_acceleration + self.harsh_cornering


class TripAnalysisResult(BaseModel):
    """Output of one analyzer pass over a trip's samples."""
    events: List[HarshEvent_create] = Field(default_factory=list)
    counts: HarshEventCounts = Field(default_factory=HarshEventCounts)
    driver_score: int = Field(..., ge=0, le=100)
    summary_text: str


class TripAnalytics_get(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    trip_id: int
    device_id: str
    driver_score: int
    harsh_braking_count: int
    harsh_acceleration_count: int
    harsh_cornering_count: int
    summary_text: str
    analyzed_at: Optional[datetime] = None
