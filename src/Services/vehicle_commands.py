"""
Vehicle Commands
================
Closed catalogue of supported commands and the dispatcher that executes them.

Each VehicleCommand member carries:
    provider_payload       command string for "sendcommand" (None = local only)
    requires_confirmation  must be explicitly confirmed before it runs

Remote flow:
    sendcommand {deviceid, command}      -> commandid
    querycommand {commandid}             polled until commandstatus == 1
    no confirmation after the poll budget -> "sent_unconfirmed" (still a
    success: the device may execute the command later)

Unconfirmed dangerous commands are logged as "pending" and not sent;
confirm_pending_command() runs them once approved.

Every execution writes one vehicle_command_logs row.
"""

from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from src.Core.config import settings
from src.Core.exceptions import PipelineError, ValidationError
from src.Core.logging_config import get_logger
from src.Models.command_log import VehicleCommandLog
from src.Repositories.command_log import create_command_log, update_command_log
from src.Repositories.position import get_latest_positions
from src.Schemas.command import CommandResult
from src.Services.provider.gateway import ProviderGateway
from src.Services.timestamps import ensure_utc, utc_now

logger = get_logger(__name__)

UNCONFIRMED_MESSAGE = "Command sent but device response timed out. It may still execute."
DEFAULT_SPEED_LIMIT_KMH = 100


class VehicleCommand(str, Enum):

    def __new__(cls, value: str, provider_payload: Optional[str], requires_confirmation: bool):
        member = str.__new__(cls, value)
        member._value_ = value
        member.provider_payload = provider_payload
        member.requires_confirmation = requires_confirmation
        return member

    # Remote
    LOCK = ("lock", "LOCKDOOR", False)
    UNLOCK = ("unlock", "UNLOCKDOOR", False)
    IMMOBILIZE = ("immobilize", "RELAY,1", True)
    STOP_ENGINE = ("stop_engine", "RELAY,1", True)
    RESTORE = ("restore", "RELAY,0", True)
    START_ENGINE = ("start_engine", "RELAY,0", True)
    SOUND_ALARM = ("sound_alarm", "FINDCAR", False)
    SILENCE_ALARM = ("silence_alarm", "FINDCAROFF", False)
    RESET = ("reset", "RESET", False)

    # Local only
    REQUEST_LOCATION = ("request_location", None, False)
    REQUEST_STATUS = ("request_status", None, False)
    SET_SPEED_LIMIT = ("set_speed_limit", None, True)
    CLEAR_SPEED_LIMIT = ("clear_speed_limit", None, True)
    ENABLE_GEOFENCE = ("enable_geofence", None, False)
    DISABLE_GEOFENCE = ("disable_geofence", None, False)

    @property
    def remote(self) -> bool:
        return self.provider_payload is not None

    @classmethod
    def parse(cls, name: str) -> "VehicleCommand":
        try:
            return cls((name or "").strip().lower())
        except ValueError:
            raise ValidationError(f"Unsupported command type: {name!r}") from None


# ==========================================================
# LOCAL HANDLERS
# ==========================================================

def _run_local(db: Session, device_id: str, command: VehicleCommand, payload: Dict[str, Any]) -> Dict[str, Any]:
    if command in (VehicleCommand.REQUEST_LOCATION, VehicleCommand.REQUEST_STATUS):
        position = get_latest_positions(db, [device_id]).get(device_id)
        if position is None:
            raise ValidationError(f"No known position for device {device_id}")
        gps_time = ensure_utc(position.gps_time)
        return {
            "latitude": position.latitude,
            "longitude": position.longitude,
            "speed": position.speed,
            "battery": position.battery_percent,
            "ignition": position.ignition_on,
            "is_online": position.is_online,
            "last_update": gps_time.isoformat() if gps_time else None,
        }
    if command is VehicleCommand.SET_SPEED_LIMIT:
        return {"speed_limit_set": payload.get("speed_limit") or DEFAULT_SPEED_LIMIT_KMH}
    if command is VehicleCommand.CLEAR_SPEED_LIMIT:
        return {"speed_limit": None}
    # enable_geofence / disable_geofence
    return {"geofence_status": "enabled" if command is VehicleCommand.ENABLE_GEOFENCE else "disabled"}


# ==========================================================
# REMOTE DISPATCH
# ==========================================================

def _command_confirmed(payload: Dict[str, Any]) -> bool:
    record = payload.get("record") if isinstance(payload.get("record"), dict) else {}
    return _as_int(payload.get("commandstatus")) == 1 or _as_int(record.get("commandstatus")) == 1


def _as_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def poll_command(
    gateway: ProviderGateway,
    provider_command_id: str,
    attempts: Optional[int] = None,
    interval_s: Optional[float] = None,
) -> Optional[Dict[str, Any]]:
    """
    Poll querycommand until the device confirms.

    Returns:
        The confirming payload, or None when the poll budget runs out
    """
    attempts = attempts if attempts is not None else settings.COMMAND_POLL_ATTEMPTS
    interval_s = interval_s if interval_s is not None else settings.COMMAND_POLL_INTERVAL_S

    for attempt in range(attempts):
        if attempt > 0:
            gateway.sleep(interval_s)
        try:
            result = gateway.call("querycommand", {"commandid": provider_command_id})
        except PipelineError as exc:
            logger.warning("[COMMANDS] Poll %d/%d for %s failed: %s",
                           attempt + 1, attempts, provider_command_id, exc)
            continue
        if _command_confirmed(result.payload):
            return result.payload
        logger.debug("[COMMANDS] Command %s pending, attempt %d/%d",
                     provider_command_id, attempt + 1, attempts)
    return None


def _run_remote(gateway: ProviderGateway, device_id: str, command: VehicleCommand) -> Dict[str, Any]:
    sent = gateway.call("sendcommand", {"deviceid": device_id, "command": command.provider_payload})
    record = sent.get("record") if isinstance(sent.get("record"), dict) else {}
    provider_command_id = sent.get("commandid") or record.get("commandid")

    if not provider_command_id:
        return {"status": "success", "provider_command_id": None,
                "message": "Command sent to device", "data": {}}

    provider_command_id = str(provider_command_id)
    confirmation = poll_command(gateway, provider_command_id)
    if confirmation is None:
        return {"status": "sent_unconfirmed", "provider_command_id": provider_command_id,
                "message": UNCONFIRMED_MESSAGE, "data": {"command_id": provider_command_id}}

    confirmed_record = confirmation.get("record") if isinstance(confirmation.get("record"), dict) else {}
    device_response = confirmed_record.get("response") or confirmation.get("response") or "Command executed successfully"
    return {"status": "success", "provider_command_id": provider_command_id,
            "message": str(device_response),
            "data": {"command_id": provider_command_id, "device_response": device_response}}


# ==========================================================
# PUBLIC API
# ==========================================================

def _execute_logged(
    db: Session,
    gateway: Optional[ProviderGateway],
    log: VehicleCommandLog,
    command: VehicleCommand,
    payload: Dict[str, Any],
) -> CommandResult:
    update_command_log(db, log, status="executing")
    try:
        if command.remote:
            if gateway is None:
                raise ValidationError(f"Command '{command.value}' needs a provider gateway")
            outcome = _run_remote(gateway, log.device_id, command)
        else:
            outcome = {"status": "success", "provider_command_id": None,
                       "message": f"Command '{command.value}' executed", "data": _run_local(db, log.device_id, command, payload)}
    except PipelineError as exc:
        logger.error("[COMMANDS] %s on %s failed: %s", command.value, log.device_id, exc)
        update_command_log(db, log, status="failed", executed_at=utc_now(), error_message=str(exc))
        return CommandResult(
            success=False,
            command_id=log.id,
            command_type=command.value,
            status="failed",
            message=str(exc),
        )

    update_command_log(
        db, log,
        status=outcome["status"],
        executed_at=utc_now(),
        provider_command_id=outcome["provider_command_id"],
        result=outcome["data"],
    )
    logger.info("[COMMANDS] %s on %s -> %s", command.value, log.device_id, outcome["status"])
    return CommandResult(
        success=True,
        command_id=log.id,
        command_type=command.value,
        status=outcome["status"],
        provider_command_id=outcome["provider_command_id"],
        message=outcome["message"],
        data=outcome["data"],
    )


def execute_command(
    db: Session,
    gateway: Optional[ProviderGateway],
    device_id: str,
    command: str,
    confirmed: bool = False,
    payload: Optional[Dict[str, Any]] = None,
) -> CommandResult:
    """
    Validate, log and run one command.

    Raises:
        ValidationError: Blank device id or unknown command name
    """
    if not device_id or not device_id.strip():
        raise ValidationError("device_id is required")
    parsed = command if isinstance(command, VehicleCommand) else VehicleCommand.parse(command)
    payload = payload or {}

    log = create_command_log(db, device_id, parsed.value, payload)

    if parsed.requires_confirmation and not confirmed:
        logger.info("[COMMANDS] %s on %s awaiting confirmation (log %s)", parsed.value, device_id, log.id)
        return CommandResult(
            success=True,
            command_id=log.id,
            command_type=parsed.value,
            status="pending",
            message=f"Command '{parsed.value}' requires confirmation.",
        )

    return _execute_logged(db, gateway, log, parsed, payload)


def confirm_pending_command(db: Session, gateway: Optional[ProviderGateway], command_log_id: int) -> CommandResult:
    """Run a command previously logged as pending."""
    log = db.get(VehicleCommandLog, command_log_id)
    if log is None:
        raise ValidationError(f"Command log {command_log_id} not found")
    if log.status != "pending":
        raise ValidationError(f"Command log {command_log_id} is {log.status}, not pending")
    return _execute_logged(db, gateway, log, VehicleCommand.parse(log.command_type), log.payload or {})
