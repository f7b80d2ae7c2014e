# src/Controller/Routes/commands.py

"""
Vehicle Command REST API

Endpoints:
- POST /commands/                      Execute (or queue for confirmation)
- POST /commands/{command_log_id}/confirm  Run a pending dangerous command
- GET  /commands/device/{device_id}    Command history for a device

Engine/relay and speed-limit commands are logged as "pending" until they are
sent with confirmed=true or confirmed through the confirm endpoint.

Usage:
    # In main.py
    from src.Controller.Routes import commands
    app.include_router(commands.router, prefix="/commands", tags=["commands"])
"""

from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from src.Controller.deps import get_DB, get_gateway, http_errors
from src.Repositories.command_log import get_command_logs
from src.Schemas.command import CommandLog_get, CommandRequest, CommandResult
from src.Services.provider.gateway import ProviderGateway
from src.Services.vehicle_commands import confirm_pending_command, execute_command

router = APIRouter()


@router.post("/", response_model=CommandResult)
def execute(
    request: CommandRequest,
    db: Session = Depends(get_DB),
    gateway: ProviderGateway = Depends(get_gateway),
):
    with http_errors():
        return execute_command(
            db, gateway,
            device_id=request.device_id,
            command=request.command_type,
            confirmed=request.confirmed,
            payload=request.payload,
        )


@router.post("/{command_log_id}/confirm", response_model=CommandResult)
def confirm(
    command_log_id: int,
    db: Session = Depends(get_DB),
    gateway: ProviderGateway = Depends(get_gateway),
):
    with http_errors():
        return confirm_pending_command(db, gateway, command_log_id)


@router.get("/device/{device_id}", response_model=List[CommandLog_get])
def list_logs(
    device_id: str,
    limit: int = Query(50, gt=0, le=500),
    db: Session = Depends(get_DB)
):
    return get_command_logs(db, device_id, limit=limit)
