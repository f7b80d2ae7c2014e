from sqlalchemy import func, select

from conftest import at, sample

from src.Models.trip import VehicleTrip
from src.Repositories.position import append_position
from src.Services.pipelines import process_position_history
from src.Services.timestamps import ensure_utc


def _store(db, samples):
    for item in samples:
        append_position(db, item)
    db.commit()


DRIVE = [
    sample(0, 6.5000, 3.3500, speed=30.0),
    sample(1, 6.5030, 3.3500, speed=40.0),
    sample(70 / 60, 6.5030, 3.3500),
    sample(200 / 60, 6.5030, 3.3500),
    sample(370 / 60, 6.5030, 3.3500),
    sample(500 / 60, 6.5030, 3.3500),
]


def test_history_is_segmented_into_trips(db, devices):
    _store(db, DRIVE)

    summary = process_position_history(db, device_ids=["DEV-1"], begin=at(-10), end=at(20))

    assert summary.samples_read == 6
    assert summary.trips_detected == 1
    assert summary.trips_inserted == 1
    assert summary.devices_synced == 1

    trip = db.execute(select(VehicleTrip)).scalar_one()
    assert trip.source == "position_history"
    assert ensure_utc(trip.end_time) == at(1)
    assert trip.duration_seconds == 60


def test_reprocessing_updates_in_place(db, devices):
    _store(db, DRIVE)

    process_position_history(db, device_ids=["DEV-1"], begin=at(-10), end=at(20))
    again = process_position_history(db, device_ids=["DEV-1"], begin=at(-10), end=at(20))

    assert (again.trips_inserted, again.trips_updated) == (0, 1)
    assert db.execute(select(func.count()).select_from(VehicleTrip)).scalar_one() == 1


def test_device_without_history(db, devices):
    summary = process_position_history(db, device_ids=["DEV-2"], begin=at(-10), end=at(20))
    assert (summary.samples_read, summary.trips_detected, summary.errors) == (0, 0, 0)
