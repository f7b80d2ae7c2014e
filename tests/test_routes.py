import pytest
from fastapi.testclient import TestClient

from conftest import at
from src.Controller.deps import get_DB, get_gateway
from src.Models.alarm import ProviderAlarm
from src.main import StripPrefixMiddleware, _normalize_root_path, app
from src.Services.timestamps import format_for_provider


@pytest.fixture
def client(db, devices, make_gateway):
    gateway = make_gateway()

    def _db():
        yield db

    app.dependency_overrides[get_DB] = _db
    app.dependency_overrides[get_gateway] = lambda: gateway
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


class TestGeofenceRoutes:

    def test_zone_lifecycle(self, client):
        created = client.post("/geofences/zones", json={
            "name": "Depot", "center_latitude": 6.5, "center_longitude": 3.35, "radius_meters": 150,
        })
        assert created.status_code == 201
        zone_id = created.json()["id"]

        patched = client.patch(f"/geofences/zones/{zone_id}", json={"radius_meters": 300})
        assert patched.json()["radius_meters"] == 300

        deleted = client.delete(f"/geofences/zones/{zone_id}")
        assert deleted.json() == {"id": zone_id, "is_active": False}
        assert client.get("/geofences/zones").json() == []
        assert client.get(f"/geofences/zones/{zone_id}").json()["is_active"] is False

    def test_invalid_zone_rejected(self, client):
        response = client.post("/geofences/zones", json={
            "name": "Bad", "center_latitude": 95, "center_longitude": 3.35, "radius_meters": 150,
        })
        assert response.status_code == 422

    def test_monitor_needs_existing_zone(self, client):
        response = client.post("/geofences/monitors", json={"device_id": "DEV-1", "zone_id": 123})
        assert response.status_code == 404

    def test_inline_monitor_and_check(self, client):
        created = client.post("/geofences/monitors", json={
            "device_id": "DEV-1", "latitude": 6.5, "longitude": 3.35, "radius_meters": 200,
        })
        assert created.status_code == 201
        monitor_id = created.json()["id"]

        check = client.post("/geofences/check")
        assert check.json()["monitors_checked"] == 1
        assert client.get(f"/geofences/monitors/{monitor_id}/events").json() == []

    def test_provider_failure_is_bad_gateway(self, client, fake_http):
        zone_id = client.post("/geofences/zones", json={
            "name": "Depot", "center_latitude": 6.5, "center_longitude": 3.35, "radius_meters": 150,
        }).json()["id"]
        fake_http.script("querygeosystemrecords", {"status": 1, "cause": "denied"})

        assert client.post(f"/geofences/zones/{zone_id}/provider").status_code == 502


class TestSyncRoutes:

    def test_positions(self, client, fake_http):
        fake_http.script("lastposition", {"status": 0, "records": [{
            "deviceid": "DEV-1", "callat": 6.5, "callon": 3.35, "speed": 30000,
            "validpoistiontime": format_for_provider(at(0)),
        }]})

        response = client.post("/sync/positions", json={"device_ids": ["DEV-1"]})

        assert response.status_code == 200
        assert response.json()["positions_inserted"] == 1

    def test_blank_device_is_bad_request(self, client):
        assert client.post("/sync/positions", json={"device_ids": [" "]}).status_code == 400

    def test_provider_failure_is_bad_gateway(self, client, fake_http):
        fake_http.script("lastposition", {"status": 1, "cause": "server busy"})
        assert client.post("/sync/positions", json={}).status_code == 502

    def test_missing_session_is_unavailable(self, db, devices, make_gateway):
        gateway = make_gateway(with_token=False)

        def _db():
            yield db

        app.dependency_overrides[get_DB] = _db
        app.dependency_overrides[get_gateway] = lambda: gateway
        try:
            response = TestClient(app).post("/sync/positions", json={})
        finally:
            app.dependency_overrides.clear()
        assert response.status_code == 503


class TestTripAndCommandRoutes:

    def test_unknown_trip_analytics(self, client):
        assert client.get("/trips/999/analytics").status_code == 404

    def test_pending_command_flow(self, client, fake_http):
        fake_http.script("sendcommand", {"status": 0})

        pending = client.post("/commands/", json={"device_id": "DEV-1", "command_type": "immobilize"})
        assert pending.json()["status"] == "pending"

        confirmed = client.post(f"/commands/{pending.json()['command_id']}/confirm")
        assert confirmed.json()["status"] == "success"

        history = client.get("/commands/device/DEV-1").json()
        assert [entry["status"] for entry in history] == ["success"]

    def test_unknown_command_is_bad_request(self, client):
        response = client.post("/commands/", json={"device_id": "DEV-1", "command_type": "warp"})
        assert response.status_code == 400


class TestDeviceRoutes:

    def test_registry(self, client):
        listing = client.get("/devices/").json()
        assert (listing["total"], listing["active"], listing["inactive"]) == (3, 2, 1)

        created = client.post("/devices/", json={"device_id": "DEV-3", "device_name": "Bus Three"})
        assert created.status_code == 201
        assert created.json()["is_active"] is True
        assert client.post("/devices/", json={"device_id": "DEV-3"}).status_code == 409
        assert client.get("/devices/NOPE").status_code == 404

    def test_stored_telemetry(self, client, db, fake_http):
        fake_http.script("lastposition", {"status": 0, "records": [{
            "deviceid": "DEV-1", "callat": 6.5, "callon": 3.35, "speed": 30000,
            "validpoistiontime": format_for_provider(at(0)),
        }]})
        client.post("/sync/positions", json={"device_ids": ["DEV-1"]})
        db.add(ProviderAlarm(device_id="DEV-1", alarm_code=1, severity="critical",
                             alarm_description_en="SOS alarm", alarm_time=at(0)))
        db.add(ProviderAlarm(device_id="DEV-1", alarm_code=128, severity="warning",
                             alarm_description_en="Overspeed alarm", alarm_time=at(5)))
        db.commit()

        position = client.get("/devices/DEV-1/position").json()
        assert (position["latitude"], position["speed"]) == (6.5, 30.0)

        alarms = client.get("/devices/DEV-1/alarms").json()
        assert [a["alarm_code"] for a in alarms] == [128, 1]
        critical = client.get("/devices/DEV-1/alarms", params={"severity": "critical"}).json()
        assert [a["alarm_code"] for a in critical] == [1]

        status = client.get("/devices/DEV-1/sync-status").json()
        assert status["sync_status"] == "completed"
        assert client.get("/devices/DEV-2/sync-status").status_code == 404
        assert client.get("/devices/DEV-2/position").status_code == 404
        assert client.get("/devices/DEV-1/events").json() == []


def test_served_under_root_path(client):
    prefixed = TestClient(StripPrefixMiddleware(app, "/telemetry"))

    assert prefixed.get("/telemetry/health").json() == {"status": "ok"}
    assert prefixed.get("/telemetry", follow_redirects=False).status_code == 307
    assert _normalize_root_path("telemetry/") == "/telemetry"
