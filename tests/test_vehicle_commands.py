import pytest
from sqlalchemy import select

from conftest import sample

from src.Core.exceptions import ValidationError
from src.Models.command_log import VehicleCommandLog
from src.Repositories.position import upsert_latest_position
from src.Services.vehicle_commands import (
    UNCONFIRMED_MESSAGE,
    VehicleCommand,
    confirm_pending_command,
    execute_command,
)


def _log(db, command_id):
    db.expire_all()
    return db.get(VehicleCommandLog, command_id)


class TestCatalogue:

    def test_parse(self):
        assert VehicleCommand.parse(" Lock ") is VehicleCommand.LOCK
        assert VehicleCommand.IMMOBILIZE.provider_payload == "RELAY,1"
        assert VehicleCommand.IMMOBILIZE.requires_confirmation is True
        assert VehicleCommand.REQUEST_LOCATION.remote is False

    def test_unknown_command(self):
        with pytest.raises(ValidationError, match="Unsupported command type"):
            VehicleCommand.parse("self_destruct")

    def test_blank_device(self, db):
        with pytest.raises(ValidationError):
            execute_command(db, None, "  ", "lock")


class TestRemote:

    def test_confirmed_by_device(self, db, devices, make_gateway, fake_http):
        fake_http.script("sendcommand", {"status": 0, "commandid": "C1"})
        fake_http.script("querycommand",
                         {"status": 0, "commandstatus": 0},
                         {"status": 0, "commandstatus": 1, "record": {"response": "LOCK OK"}})

        result = execute_command(db, make_gateway(), "DEV-1", "lock")

        assert result.success is True
        assert (result.status, result.provider_command_id, result.message) == ("success", "C1", "LOCK OK")
        assert fake_http.calls[0]["body"] == {"deviceid": "DEV-1", "command": "LOCKDOOR"}
        assert fake_http.actions().count("querycommand") == 2
        assert _log(db, result.command_id).status == "success"

    def test_no_confirmation_within_budget(self, db, devices, make_gateway, fake_http):
        fake_http.script("sendcommand", {"status": 0, "record": {"commandid": "C2"}})
        fake_http.script("querycommand", {"status": 0, "commandstatus": 0})

        result = execute_command(db, make_gateway(), "DEV-1", "sound_alarm")

        assert result.success is True
        assert result.status == "sent_unconfirmed"
        assert result.message == UNCONFIRMED_MESSAGE
        assert fake_http.actions().count("querycommand") == 10
        assert _log(db, result.command_id).provider_command_id == "C2"

    def test_without_command_id(self, db, devices, make_gateway, fake_http):
        fake_http.script("sendcommand", {"status": 0})

        result = execute_command(db, make_gateway(), "DEV-1", "reset")

        assert result.status == "success"
        assert "querycommand" not in fake_http.actions()

    def test_provider_rejection_is_a_failed_result(self, db, devices, make_gateway, fake_http):
        fake_http.script("sendcommand", {"status": 1, "cause": "device offline"})

        result = execute_command(db, make_gateway(), "DEV-1", "unlock")

        assert (result.success, result.status) == (False, "failed")
        log = _log(db, result.command_id)
        assert log.status == "failed"
        assert "device offline" in log.error_message

    def test_remote_without_gateway(self, db, devices):
        result = execute_command(db, None, "DEV-1", "lock")
        assert (result.success, result.status) == (False, "failed")


class TestConfirmation:

    def test_dangerous_command_waits(self, db, devices, make_gateway, fake_http):
        result = execute_command(db, make_gateway(), "DEV-1", "immobilize")

        assert (result.success, result.status) == (True, "pending")
        assert fake_http.calls == []
        assert _log(db, result.command_id).status == "pending"

    def test_confirm_runs_pending_command(self, db, devices, make_gateway, fake_http):
        fake_http.script("sendcommand", {"status": 0})
        gateway = make_gateway()
        pending = execute_command(db, gateway, "DEV-1", "stop_engine")

        result = confirm_pending_command(db, gateway, pending.command_id)

        assert result.status == "success"
        assert fake_http.calls[0]["body"]["command"] == "RELAY,1"
        with pytest.raises(ValidationError, match="not pending"):
            confirm_pending_command(db, gateway, pending.command_id)

    def test_confirm_unknown_log(self, db):
        with pytest.raises(ValidationError, match="not found"):
            confirm_pending_command(db, None, 999)

    def test_confirmed_flag_skips_pending(self, db, devices):
        result = execute_command(db, None, "DEV-1", "set_speed_limit", confirmed=True, payload={"speed_limit": 80})
        assert result.data == {"speed_limit_set": 80}


class TestLocal:

    def test_request_location(self, db, devices):
        upsert_latest_position(db, sample(0, 6.5, 3.35, speed=12.0))
        db.commit()

        result = execute_command(db, None, "DEV-1", "request_location")

        assert result.success is True
        assert (result.data["latitude"], result.data["longitude"], result.data["speed"]) == (6.5, 3.35, 12.0)
        assert result.data["last_update"].startswith("2024-05-01T06:00:00")

    def test_request_location_without_position(self, db, devices):
        result = execute_command(db, None, "DEV-2", "request_location")
        assert (result.success, result.status) == (False, "failed")

    def test_geofence_toggle_and_default_speed_limit(self, db, devices):
        assert execute_command(db, None, "DEV-1", "disable_geofence").data == {"geofence_status": "disabled"}
        limit = execute_command(db, None, "DEV-1", "set_speed_limit", confirmed=True)
        assert limit.data == {"speed_limit_set": 100}

    def test_history(self, db, devices):
        execute_command(db, None, "DEV-1", "enable_geofence")
        execute_command(db, None, "DEV-1", "clear_speed_limit")

        logs = db.execute(
            select(VehicleCommandLog).order_by(VehicleCommandLog.id)
        ).scalars().all()
        assert [(l.command_type, l.status) for l in logs] == [
            ("enable_geofence", "success"),
            ("clear_speed_limit", "pending"),
        ]
