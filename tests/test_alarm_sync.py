from sqlalchemy import func, select

from conftest import at

from src.Models.alarm import ProviderAlarm
from src.Repositories.sync_status import get_status, get_watermark
from src.Services.pipelines import sync_alarms
from src.Services.timestamps import format_for_provider


def _record(device, minutes, alarm=0, text=None, **extra):
    record = {
        "deviceid": device,
        "alarm": alarm,
        "stralarmsen": text,
        "callat": 6.5,
        "callon": 3.35,
        "speed": 20000,
        "validpoistiontime": format_for_provider(at(minutes)),
    }
    record.update(extra)
    return record


PAYLOAD = {
    "status": 0,
    "lastquerypositiontime": 1714543560000,
    "records": [
        _record("DEV-1", 0, alarm=1, text="SOS alarm"),
        _record("DEV-1", 1),
        _record("DEV-2", 2, alarm=128, text="Overspeed alarm"),
        _record("DEV-2", 3, alarm=4, text="Power cut", validpoistiontime="unknown"),
        _record("DEV-X", 3, alarm=1, text="SOS alarm"),
    ],
}


def _count(db):
    return db.execute(select(func.count()).select_from(ProviderAlarm)).scalar_one()


def test_alarms_are_extracted_and_classified(db, devices, make_gateway, fake_http):
    fake_http.script("lastposition", PAYLOAD)

    summary = sync_alarms(db, make_gateway(), lastquerypositiontime=1714543000000)

    assert fake_http.calls[0]["body"]["lastquerypositiontime"] == 1714543000000
    assert summary.positions_checked == 5
    assert summary.alarms_found == 2
    assert summary.alarms_inserted == 2
    assert summary.dropped == 1
    assert summary.severity_breakdown == {"critical": 1, "error": 0, "warning": 1, "info": 0}
    assert summary.lastquerypositiontime == 1714543560000
    assert summary.devices_synced == 2

    sos = db.execute(select(ProviderAlarm).where(ProviderAlarm.device_id == "DEV-1")).scalar_one()
    assert sos.severity == "critical"
    assert sos.speed_kmh == 20.0
    assert get_watermark(db, "DEV-1", "alarms") == at(0)


def test_redelivered_alarms_update_in_place(db, devices, make_gateway, fake_http):
    fake_http.script("lastposition", PAYLOAD)
    gateway = make_gateway()

    sync_alarms(db, gateway)
    again = sync_alarms(db, gateway)

    assert (again.alarms_inserted, again.alarms_updated) == (0, 2)
    assert _count(db) == 2
    assert get_status(db, "DEV-2").alarms_synced_count == 2


def test_no_alarms(db, devices, make_gateway, fake_http):
    fake_http.script("lastposition", {"status": 0, "records": [_record("DEV-1", 0)]})

    summary = sync_alarms(db, make_gateway(), device_ids=["DEV-1"])

    assert (summary.positions_checked, summary.alarms_found, summary.dropped) == (1, 0, 0)
    assert get_status(db, "DEV-1").sync_status == "completed"
