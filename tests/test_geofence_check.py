from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select, update

from conftest import sample

from src.Models.geofence import GeofenceEvent
from src.Models.pipeline_lock import PipelineLock
from src.Models.proactive_event import ProactiveVehicleEvent
from src.Repositories.geofence import create_monitor, create_zone, deactivate_zone
from src.Repositories.pipeline_lock import acquire_lock
from src.Repositories.position import upsert_latest_position
from src.Schemas.geofence import GeofenceMonitor_create, GeofenceZone_create
from src.Services.geo_utils import calculate_haversine_distance
from src.Services.geofence_detector import GeofenceDetector
from src.Services.pipelines import check_geofences
from src.Services.pipelines.geofence_check import LOCK_NAME
from src.Services.timestamps import ensure_utc

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
CENTER = (10.0, -74.0)
EDGE = (10.001, -74.0)
FAR = (10.01, -74.0)


def _move(db, point, when):
    upsert_latest_position(db, sample(0, point[0], point[1], gps_time=when))
    db.commit()


@pytest.fixture
def depot(db, devices):
    radius = calculate_haversine_distance(EDGE[0], EDGE[1], CENTER[0], CENTER[1])
    return create_zone(db, GeofenceZone_create(
        name="Depot", center_latitude=CENTER[0], center_longitude=CENTER[1], radius_meters=radius,
    ))


@pytest.fixture
def monitor(db, depot):
    def _make(**overrides):
        return create_monitor(db, GeofenceMonitor_create(device_id="DEV-1", zone_id=depot.id, **overrides))
    return _make


class SteppingClock:
    """Monotonic stand-in; returns the scripted readings, then repeats the last one."""

    def __init__(self, *readings):
        self.readings = list(readings)

    def __call__(self):
        return self.readings.pop(0) if len(self.readings) > 1 else self.readings[0]


class HookedDetector(GeofenceDetector):
    """Runs hook(call_number) before each evaluation."""

    def __init__(self, hook):
        super().__init__()
        self.hook = hook
        self.calls = 0

    def evaluate(self, *args, **kwargs):
        self.calls += 1
        self.hook(self.calls)
        return super().evaluate(*args, **kwargs)


def _events(db):
    return db.execute(select(GeofenceEvent).order_by(GeofenceEvent.id)).scalars().all()


def _notifications(db):
    return db.execute(select(ProactiveVehicleEvent).order_by(ProactiveVehicleEvent.id)).scalars().all()


class TestTransitions:

    def test_boundary_point_enters(self, db, monitor):
        watched = monitor()
        _move(db, EDGE, NOW)

        summary = check_geofences(db, now=NOW)

        assert (summary.monitors_checked, summary.events_triggered) == (1, 1)
        event = _events(db)[0]
        assert event.event_type == "enter"
        assert event.extra_metadata["vehicle_name"] == "Truck One"
        assert event.extra_metadata["distance_meters"] <= event.extra_metadata["radius_meters"]

        note = _notifications(db)[0]
        assert note.event_type == "geofence_enter"
        assert note.title == "Arrived at Depot"
        assert note.message == "Truck One has arrived at Depot"
        assert note.extra_metadata == {"monitor_id": watched.id, "zone_id": watched.zone_id}

        db.refresh(watched)
        assert watched.vehicle_inside is True
        assert watched.trigger_count == 1

    def test_staying_inside_fires_once(self, db, monitor):
        monitor()
        _move(db, CENTER, NOW)

        check_geofences(db, now=NOW)
        second = check_geofences(db, now=NOW + timedelta(minutes=10))

        assert second.events_triggered == 0
        assert len(_events(db)) == 1

    def test_exit_notification(self, db, monitor):
        monitor(trigger_on="exit")
        _move(db, CENTER, NOW)
        check_geofences(db, now=NOW)

        _move(db, FAR, NOW + timedelta(minutes=10))
        summary = check_geofences(db, now=NOW + timedelta(minutes=10))

        assert summary.events_triggered == 1
        assert [e.event_type for e in _events(db)] == ["exit"]
        assert _notifications(db)[0].message == "Truck One has left Depot"

    def test_cooldown_suppresses_but_tracks_state(self, db, monitor):
        watched = monitor()
        _move(db, CENTER, NOW)
        check_geofences(db, now=NOW)

        later = NOW + timedelta(seconds=60)
        _move(db, FAR, later)
        suppressed = check_geofences(db, now=later)

        db.refresh(watched)
        assert suppressed.events_triggered == 0
        assert watched.vehicle_inside is False

        much_later = NOW + timedelta(minutes=10)
        _move(db, CENTER, much_later)
        fired = check_geofences(db, now=much_later)

        assert fired.events_triggered == 1
        assert [e.event_type for e in _events(db)] == ["enter", "enter"]

    def test_one_time_monitor_deactivates(self, db, monitor):
        watched = monitor(one_time=True)
        _move(db, CENTER, NOW)

        check_geofences(db, now=NOW)
        after = check_geofences(db, now=NOW + timedelta(minutes=10))

        db.refresh(watched)
        assert watched.is_active is False
        assert after.monitors_checked == 0


class TestGating:

    def test_outside_active_window_untouched(self, db, monitor):
        # 12:00 UTC is 13:00 display time
        watched = monitor(active_from="22:00", active_until="06:00")
        _move(db, CENTER, NOW)

        summary = check_geofences(db, now=NOW)

        db.refresh(watched)
        assert summary.monitors_checked == 0
        assert watched.vehicle_inside is False
        assert watched.last_checked_at is None

    def test_expired_monitor_ignored(self, db, monitor):
        monitor(expires_at=NOW - timedelta(hours=1))
        _move(db, CENTER, NOW)
        assert check_geofences(db, now=NOW).monitors_checked == 0

    def test_no_position_yet(self, db, monitor):
        monitor()
        summary = check_geofences(db, now=NOW)
        assert (summary.monitors_checked, summary.events_triggered, summary.errors) == (1, 0, 0)

    def test_inline_monitor(self, db, devices):
        create_monitor(db, GeofenceMonitor_create(
            device_id="DEV-2", location_name="Client site", latitude=CENTER[0], longitude=CENTER[1],
            radius_meters=200, trigger_on="enter",
        ))
        upsert_latest_position(db, sample(0, CENTER[0], CENTER[1], device_id="DEV-2", gps_time=NOW))
        db.commit()

        check_geofences(db, now=NOW)

        assert _notifications(db)[0].message == "Van Two has arrived at Client site"


class TestLease:

    def test_pass_skipped_while_lease_held(self, db, monitor):
        monitor()
        _move(db, CENTER, NOW)
        assert acquire_lock(db, LOCK_NAME, "other-worker", 120, NOW)

        skipped = check_geofences(db, now=NOW + timedelta(seconds=30))
        resumed = check_geofences(db, now=NOW + timedelta(seconds=121))

        assert skipped.skipped is True
        assert skipped.monitors_checked == 0
        assert resumed.skipped is False
        assert resumed.events_triggered == 1

    def test_lease_released_after_pass(self, db, monitor):
        monitor()
        first = check_geofences(db, now=NOW)
        second = check_geofences(db, now=NOW + timedelta(seconds=1))
        assert (first.skipped, second.skipped) == (False, False)

    def test_long_pass_renews_lease(self, db, monitor):
        monitor()
        monitor()
        _move(db, CENTER, NOW)
        seen = []

        def record(_):
            seen.append(ensure_utc(db.execute(select(PipelineLock.expires_at)).scalar_one()))

        summary = check_geofences(db, now=NOW, detector=HookedDetector(record),
                                  monotonic=SteppingClock(0, 70, 140, 210, 280, 350, 420))

        assert summary.errors == 0
        assert seen[0] == NOW + timedelta(seconds=140 + 120)
        assert seen[1] > seen[0]

    def test_lost_lease_stops_pass(self, db, monitor):
        first = monitor()
        monitor()
        _move(db, CENTER, NOW)

        def steal(call):
            if call == 1:
                db.execute(update(PipelineLock).values(holder="other-worker"))
                db.commit()

        summary = check_geofences(db, now=NOW, detector=HookedDetector(steal),
                                  monotonic=SteppingClock(0, 10, 100, 110))

        assert summary.errors == 1
        assert _events(db) == []
        db.refresh(first)
        assert first.vehicle_inside is False
        assert db.execute(select(PipelineLock.holder)).scalar_one() == "other-worker"

    def test_failure_rolls_back_and_releases(self, db, monitor):
        first = monitor()
        monitor()
        _move(db, CENTER, NOW)

        def explode(call):
            if call == 2:
                raise RuntimeError("detector crashed")

        with pytest.raises(RuntimeError, match="detector crashed"):
            check_geofences(db, now=NOW, detector=HookedDetector(explode))

        assert _events(db) == []
        assert _notifications(db) == []
        db.refresh(first)
        assert first.vehicle_inside is False
        assert acquire_lock(db, LOCK_NAME, "other-worker", 120, NOW)


class TestRemovedZone:

    def test_monitor_on_removed_zone_is_ignored(self, db, depot, monitor):
        monitor()
        deactivate_zone(db, depot.id)
        _move(db, CENTER, NOW)

        summary = check_geofences(db, now=NOW)

        assert (summary.monitors_checked, summary.events_triggered) == (0, 0)
        assert _events(db) == []
        assert _notifications(db) == []
