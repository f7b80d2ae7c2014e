import pytest

from src.Core.exceptions import ProviderError, ValidationError
from src.Repositories.geofence import create_zone, get_zone_by_id
from src.Schemas.geofence import GeofenceZone_create
from src.Services.pipelines import remove_zone_from_provider, sync_zone_to_provider


@pytest.fixture
def zone(db):
    return create_zone(db, GeofenceZone_create(
        name="Depot", center_latitude=6.5, center_longitude=3.35, radius_meters=250,
    ))


class TestMirror:

    def test_uses_existing_category(self, db, zone, make_gateway, fake_http):
        fake_http.script("querygeosystemrecords", {"status": 0, "groups": [{"groupid": 42}]})
        fake_http.script("addgeosystemrecord", {"status": 0, "recordid": 777})

        mirrored = sync_zone_to_provider(db, make_gateway(), zone.id)

        assert (mirrored.provider_record_id, mirrored.provider_category_id) == ("777", "42")
        assert fake_http.actions() == ["querygeosystemrecords", "addgeosystemrecord"]
        body = fake_http.calls[-1]["body"]
        assert body["categoryid"] == "42"
        assert (body["lat1"], body["lon1"], body["radius1"]) == (6.5, 3.35, 250)
        assert body["type"] == 1

    def test_creates_category_when_none_exist(self, db, zone, make_gateway, fake_http):
        fake_http.script("querygeosystemrecords", {"status": 0, "groups": []})
        fake_http.script("addgeosystemcategory", {"status": 0, "recordid": 5})
        fake_http.script("addgeosystemrecord", {"status": 0, "recordid": 900})

        mirrored = sync_zone_to_provider(db, make_gateway(), zone.id)

        assert mirrored.provider_category_id == "5"
        assert fake_http.calls[1]["body"] == {"name": "Default"}

    def test_already_mirrored_is_untouched(self, db, zone, make_gateway, fake_http):
        zone.provider_record_id = "777"
        zone.provider_category_id = "42"
        db.commit()

        sync_zone_to_provider(db, make_gateway(), zone.id)

        assert fake_http.calls == []

    def test_missing_record_id(self, db, zone, make_gateway, fake_http):
        fake_http.script("querygeosystemrecords", {"status": 0, "groups": [{"groupid": 42}]})
        fake_http.script("addgeosystemrecord", {"status": 0})

        with pytest.raises(ProviderError):
            sync_zone_to_provider(db, make_gateway(), zone.id)
        assert get_zone_by_id(db, zone.id).provider_record_id is None

    def test_unknown_zone(self, db, make_gateway):
        with pytest.raises(ValidationError):
            sync_zone_to_provider(db, make_gateway(), 404)


class TestRemove:

    def test_removes_and_clears_ids(self, db, zone, make_gateway, fake_http):
        zone.provider_record_id = "777"
        zone.provider_category_id = "42"
        db.commit()

        removed = remove_zone_from_provider(db, make_gateway(), zone.id)

        assert removed == "777"
        assert fake_http.calls[0]["body"] == {"categoryid": "42", "geosystemrecordid": "777"}
        refreshed = get_zone_by_id(db, zone.id)
        assert (refreshed.provider_record_id, refreshed.provider_category_id) == (None, None)

    def test_never_mirrored(self, db, zone, make_gateway, fake_http):
        assert remove_zone_from_provider(db, make_gateway(), zone.id) is None
        assert fake_http.calls == []
