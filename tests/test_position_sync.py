import pytest
from sqlalchemy import func, select

from conftest import at

from src.Core.exceptions import ProviderError, ValidationError
from src.Models.device import Device
from src.Models.position import PositionHistory, VehiclePosition
from src.Repositories.sync_status import get_status, get_watermark
from src.Services.pipelines import backfill_track, sync_positions
from src.Services.timestamps import ensure_utc, format_for_provider


def _record(device, minutes, lat=6.5, lon=3.35, speed=36000, **extra):
    record = {
        "deviceid": device,
        "callat": lat,
        "callon": lon,
        "speed": speed,
        "course": 90,
        "validpoistiontime": format_for_provider(at(minutes)),
    }
    record.update(extra)
    return record


BATCH = {
    "status": 0,
    "lastquerypositiontime": 1714543500000,
    "records": [
        _record("DEV-1", 0),
        _record("DEV-1", 1, lat=6.51),
        _record("DEV-2", 2),
        _record("DEV-2", 3, validpoistiontime="garbage"),
        _record("DEV-X", 3),
    ],
}


def _count(db, model):
    return db.execute(select(func.count()).select_from(model)).scalar_one()


class TestSyncPositions:

    def test_stores_history_latest_and_status(self, db, devices, make_gateway, fake_http):
        fake_http.script("lastposition", BATCH)

        summary = sync_positions(db, make_gateway(), now=at(5))

        assert fake_http.calls[0]["body"] == {"deviceids": ["DEV-1", "DEV-2"], "lastquerypositiontime": 0}
        assert summary.records_received == 5
        assert summary.positions_inserted == 3
        assert summary.dropped == 2
        assert summary.errors == 0
        assert summary.devices_synced == 2
        assert summary.lastquerypositiontime == 1714543500000

        latest = db.get(VehiclePosition, "DEV-1")
        assert ensure_utc(latest.gps_time) == at(1)
        assert latest.latitude == 6.51
        assert latest.is_online is True
        assert get_status(db, "DEV-1").sync_status == "completed"
        assert get_watermark(db, "DEV-1", "positions") == at(1)
        assert ensure_utc(db.get(Device, "DEV-2").last_seen) == at(2)

    def test_replay_only_counts_duplicates(self, db, devices, make_gateway, fake_http):
        fake_http.script("lastposition", BATCH)
        gateway = make_gateway()

        sync_positions(db, gateway, now=at(5))
        again = sync_positions(db, gateway, now=at(5))

        assert again.positions_inserted == 0
        assert again.duplicates == 3
        assert _count(db, PositionHistory) == 3

    def test_stale_position_marked_offline(self, db, devices, make_gateway, fake_http):
        fake_http.script("lastposition", BATCH)
        sync_positions(db, make_gateway(), now=at(30))
        assert db.get(VehiclePosition, "DEV-1").is_online is False

    def test_older_sample_does_not_replace_latest(self, db, devices, make_gateway, fake_http):
        fake_http.script(
            "lastposition",
            {"status": 0, "records": [_record("DEV-1", 10)]},
            {"status": 0, "records": [_record("DEV-1", 4)]},
        )
        gateway = make_gateway()
        sync_positions(db, gateway, device_ids=["DEV-1"], now=at(10))
        sync_positions(db, gateway, device_ids=["DEV-1"], now=at(10))

        assert ensure_utc(db.get(VehiclePosition, "DEV-1").gps_time) == at(10)
        assert _count(db, PositionHistory) == 2

    def test_provider_failure_marks_every_device(self, db, devices, make_gateway, fake_http):
        fake_http.script("lastposition", {"status": 1, "cause": "account disabled"})

        with pytest.raises(ProviderError):
            sync_positions(db, make_gateway())

        for device in devices:
            status = get_status(db, device)
            assert status.sync_status == "error"
            assert "account disabled" in status.last_error

    def test_blank_device_id_rejected(self, db, devices, make_gateway, fake_http):
        with pytest.raises(ValidationError):
            sync_positions(db, make_gateway(), device_ids=["DEV-1", " "])
        assert fake_http.calls == []

    def test_no_devices(self, db, make_gateway):
        with pytest.raises(ValidationError, match="No devices"):
            sync_positions(db, make_gateway())


class TestBackfill:

    def test_failed_device_does_not_stop_the_pass(self, db, devices, make_gateway, fake_http):
        fake_http.script(
            "querytrack",
            {"status": 1, "cause": "no track"},
            {"status": 0, "records": [_record(None, 0), _record(None, 1), _record(None, 2, callat=None, callon=None)]},
        )

        summary = backfill_track(db, make_gateway(), device_ids=["DEV-1", "DEV-2"],
                                 begin=at(-60), end=at(60))

        assert summary.errors == 1
        assert summary.first_error.startswith("DEV-1:")
        assert summary.positions_inserted == 2
        assert summary.dropped == 1
        assert summary.devices_synced == 1
        assert get_status(db, "DEV-1").sync_status == "error"
        assert _count(db, VehiclePosition) == 0

        body = fake_http.calls[1]["body"]
        assert body["deviceid"] == "DEV-2"
        assert body["begintime"] == "2024-05-01 13:00:00"
        assert body["endtime"] == "2024-05-01 15:00:00"
