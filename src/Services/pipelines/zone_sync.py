"""
Zone Sync
=========
Mirrors operator zones to provider geofence records (circle, enter/exit
detection, platform notification). The provider needs both the category id
and the record id to delete, so both are stored on the zone.
"""

from typing import Optional

from sqlalchemy.orm import Session

from src.Core.exceptions import ProviderError, ValidationError
from src.Core.logging_config import get_logger
from src.Models.geofence import GeofenceZone
from src.Repositories.geofence import get_zone_by_id
from src.Services.provider.gateway import ProviderGateway

logger = get_logger(__name__)

DEFAULT_CATEGORY = "Default"


def _load_zone(db: Session, zone_id: int) -> GeofenceZone:
    zone = get_zone_by_id(db, zone_id)
    if zone is None:
        raise ValidationError(f"Geofence zone {zone_id} not found")
    return zone


def ensure_category(gateway: ProviderGateway) -> str:
    """First existing geofence category, or a freshly created one."""
    groups = gateway.call("querygeosystemrecords", {}).get("groups") or []
    if groups and groups[0].get("groupid") is not None:
        return str(groups[0]["groupid"])

    created = gateway.call("addgeosystemcategory", {"name": DEFAULT_CATEGORY})
    category_id = created.get("recordid")
    if category_id is None:
        raise ProviderError(created.status, "category creation returned no id", "addgeosystemcategory")
    logger.info("[ZONES] Created provider geofence category %s", category_id)
    return str(category_id)


def sync_zone_to_provider(db: Session, gateway: ProviderGateway, zone_id: int) -> GeofenceZone:
    """
    Create the provider record for a zone and store its ids.

    A zone that already carries a provider_record_id is returned unchanged.
    """
    zone = _load_zone(db, zone_id)
    if zone.provider_record_id:
        return zone

    category_id = zone.provider_category_id or ensure_category(gateway)
    result = gateway.call("addgeosystemrecord", {
        "name": zone.name,
        "categoryid": category_id,
        "type": 1,
        "useas": 0,
        "triggerevent": 0,
        "lat1": zone.center_latitude,
        "lon1": zone.center_longitude,
        "radius1": zone.radius_meters,
    })
    record_id = result.get("recordid")
    if record_id is None:
        raise ProviderError(result.status, "geofence creation returned no id", "addgeosystemrecord")

    zone.provider_record_id = str(record_id)
    zone.provider_category_id = category_id
    db.commit()
    db.refresh(zone)
    logger.info("[ZONES] Zone %s mirrored as provider record %s", zone.id, record_id)
    return zone


def remove_zone_from_provider(db: Session, gateway: ProviderGateway, zone_id: int) -> Optional[str]:
    """Delete the provider record; returns the removed record id (None if never mirrored)."""
    zone = _load_zone(db, zone_id)
    if not zone.provider_record_id:
        logger.info("[ZONES] Zone %s has no provider record, nothing to remove", zone.id)
        return None

    record_id = zone.provider_record_id
    gateway.call("delgeosystemrecord", {
        "categoryid": zone.provider_category_id,
        "geosystemrecordid": record_id,
    })

    zone.provider_record_id = None
    zone.provider_category_id = None
    db.commit()
    logger.info("[ZONES] Provider record %s removed for zone %s", record_id, zone.id)
    return record_id
