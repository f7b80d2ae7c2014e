# src/Schemas/command.py
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Any, Dict, Optional


class CommandRequest(BaseModel):
    device_id: str = Field(..., min_length=1, max_length=64)
    command_type: str = Field(..., min_length=1, description="VehicleCommand value, e.g. 'lock'")
    confirmed: bool = Field(False, description="Required for engine/relay and speed-limit commands")
    payload: Optional[Dict[str, Any]] = None


class CommandResult(BaseModel):
    success: bool
    command_id: Optional[int] = Field(None, description="vehicle_command_logs row id")
    command_type: str
    status: str
    provider_command_id: Optional[str] = None
    message: str
    data: Optional[Dict[str, Any]] = None


class CommandLog_get(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    device_id: str
    command_type: str
    status: str
    payload: Optional[Dict[str, Any]] = None
    provider_command_id: Optional[str] = None
    result: Optional[Dict[str, Any]] = None
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    executed_at: Optional[datetime] = None
