# src/Schemas/device.py
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import List, Optional


class Device_create(BaseModel):
    """Register a provider device so that scheduled passes pick it up."""
    device_id: str = Field(..., min_length=1, max_length=64, description="Provider device id / IMEI")
    device_name: Optional[str] = Field(None, max_length=200, description="Name used in notifications")


class Device_get(Device_create):
    model_config = ConfigDict(from_attributes=True)

    is_active: bool
    created_at: Optional[datetime] = None
    last_seen: Optional[datetime] = None


class Device_list_response(BaseModel):
    devices: List[Device_get]
    total: int
    active: int
    inactive: int
