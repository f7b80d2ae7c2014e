# src/Controller/Routes/geofences.py

"""
Geofence Management REST API

This module provides REST endpoints for circular geofence zones, the
monitors that bind devices to them, and the fired enter/exit events.

Endpoints:
- GET    /geofences/zones                       List zones
- POST   /geofences/zones                       Create zone
- GET    /geofences/zones/{zone_id}             Zone details
- PATCH  /geofences/zones/{zone_id}             Update zone
- DELETE /geofences/zones/{zone_id}             Deactivate zone (soft delete)
- POST   /geofences/zones/{zone_id}/provider    Mirror zone to the provider
- DELETE /geofences/zones/{zone_id}/provider    Remove the provider mirror
- POST   /geofences/monitors                    Create monitor
- GET    /geofences/monitors/{monitor_id}       Monitor state
- GET    /geofences/monitors/{monitor_id}/events  Fired events (oldest first)
- POST   /geofences/check                       Run one checker pass

Zone Semantics:
- Inside means haversine distance to the center <= radius_meters
- Monitors use either a linked zone (zone_id) or an inline lat/lon/radius

Usage:
    # In main.py
    from src.Controller.Routes import geofences
    app.include_router(geofences.router, prefix="/geofences", tags=["geofences"])
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from src.Controller.deps import get_DB, get_gateway, http_errors
from src.Repositories import geofence as geofence_repo
from src.Schemas import geofence as geofence_schema
from src.Schemas.sync import GeofenceCheckSummary
from src.Services.pipelines import check_geofences, remove_zone_from_provider, sync_zone_to_provider
from src.Services.provider.gateway import ProviderGateway

router = APIRouter()


def _zone_or_404(db: Session, zone_id: int):
    zone = geofence_repo.get_zone_by_id(db, zone_id)
    if zone is None:
        raise HTTPException(
            status_code=404,
            detail=f"Geofence zone {zone_id} not found"
        )
    return zone


def _monitor_or_404(db: Session, monitor_id: int):
    monitor = geofence_repo.get_monitor_by_id(db, monitor_id)
    if monitor is None:
        raise HTTPException(
            status_code=404,
            detail=f"Geofence monitor {monitor_id} not found"
        )
    return monitor


# ==========================================================
# 📌 Zones
# ==========================================================

@router.get("/zones", response_model=List[geofence_schema.GeofenceZone_get])
def list_zones(
    only_active: bool = Query(True, description="Filter only active zones"),
    db: Session = Depends(get_DB)
):
    return geofence_repo.get_all_zones(db, only_active=only_active)


@router.post("/zones", response_model=geofence_schema.GeofenceZone_get, status_code=201)
def create_zone(zone: geofence_schema.GeofenceZone_create, db: Session = Depends(get_DB)):
    return geofence_repo.create_zone(db, zone)


@router.get("/zones/{zone_id}", response_model=geofence_schema.GeofenceZone_get)
def get_zone(zone_id: int, db: Session = Depends(get_DB)):
    return _zone_or_404(db, zone_id)


@router.patch("/zones/{zone_id}", response_model=geofence_schema.GeofenceZone_get)
def update_zone(
    zone_id: int,
    update: geofence_schema.GeofenceZone_update,
    db: Session = Depends(get_DB)
):
    zone = geofence_repo.update_zone(db, zone_id, update)
    if zone is None:
        raise HTTPException(
            status_code=404,
            detail=f"Geofence zone {zone_id} not found"
        )
    return zone


@router.delete("/zones/{zone_id}")
def deactivate_zone(zone_id: int, db: Session = Depends(get_DB)):
    """Soft delete: the zone stays linked to existing monitors and events."""
    if not geofence_repo.deactivate_zone(db, zone_id):
        raise HTTPException(
            status_code=404,
            detail=f"Geofence zone {zone_id} not found"
        )
    return {"id": zone_id, "is_active": False}


@router.post("/zones/{zone_id}/provider", response_model=geofence_schema.GeofenceZone_get)
def mirror_zone(
    zone_id: int,
    db: Session = Depends(get_DB),
    gateway: ProviderGateway = Depends(get_gateway),
):
    _zone_or_404(db, zone_id)
    with http_errors():
        return sync_zone_to_provider(db, gateway, zone_id)


@router.delete("/zones/{zone_id}/provider")
def unmirror_zone(
    zone_id: int,
    db: Session = Depends(get_DB),
    gateway: ProviderGateway = Depends(get_gateway),
):
    _zone_or_404(db, zone_id)
    with http_errors():
        removed = remove_zone_from_provider(db, gateway, zone_id)
    return {"id": zone_id, "removed_provider_record_id": removed}


# ==========================================================
# 📌 Monitors
# ==========================================================

@router.post("/monitors", response_model=geofence_schema.GeofenceMonitor_get, status_code=201)
def create_monitor(monitor: geofence_schema.GeofenceMonitor_create, db: Session = Depends(get_DB)):
    if monitor.zone_id is not None:
        _zone_or_404(db, monitor.zone_id)
    return geofence_repo.create_monitor(db, monitor)


@router.get("/monitors/{monitor_id}", response_model=geofence_schema.GeofenceMonitor_get)
def get_monitor(monitor_id: int, db: Session = Depends(get_DB)):
    return _monitor_or_404(db, monitor_id)


@router.get("/monitors/{monitor_id}/events", response_model=List[geofence_schema.GeofenceEvent_get])
def list_events(monitor_id: int, db: Session = Depends(get_DB)):
    _monitor_or_404(db, monitor_id)
    return geofence_repo.get_events_by_monitor(db, monitor_id)


# ==========================================================
# 📌 Checker
# ==========================================================

@router.post("/check", response_model=GeofenceCheckSummary)
def run_check(db: Session = Depends(get_DB)):
    """One checker pass. Returns skipped=true when another pass holds the lease."""
    return check_geofences(db)
