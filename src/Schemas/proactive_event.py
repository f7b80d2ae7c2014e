# src/Schemas/proactive_event.py
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Any, Dict, Optional


class ProactiveEvent_get(BaseModel):
    """Notification written by the geofence checker or the anomaly rules."""
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int
    device_id: str
    event_type: str
    severity: str
    title: str
    message: str
    extra_metadata: Optional[Dict[str, Any]] = Field(
        default=None,
        serialization_alias='metadata'
    )
    created_at: datetime
