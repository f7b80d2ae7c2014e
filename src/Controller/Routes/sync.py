# src/Controller/Routes/sync.py

"""
Sync Trigger REST API

Manual and scheduler-facing triggers for the ingestion stages. Each endpoint
runs one stage synchronously and returns its summary.

Endpoints:
- POST /sync/positions       lastposition pass (latest + history)
- POST /sync/backfill        querytrack backfill for a window
- POST /sync/trips           querytrips reconciliation
- POST /sync/process-trips   segment stored position history into trips
- POST /sync/alarms          extract alarms from lastposition
- POST /sync/mileage         daily mileage report
- POST /sync/anomalies       night movement / battery drain / offline checks

Per-record failures are reported in the summary (errors, first_error). A
failing shared provider call is surfaced as 502, a missing session as 503.

Usage:
    # In main.py
    from src.Controller.Routes import sync
    app.include_router(sync.router, prefix="/sync", tags=["sync"])
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from src.Controller.deps import get_DB, get_gateway, http_errors
from src.Schemas import sync as sync_schema
from src.Services import pipelines
from src.Services.provider.gateway import ProviderGateway

router = APIRouter()


# ==========================================================
# 📌 Positions
# ==========================================================

@router.post("/positions", response_model=sync_schema.PositionSyncSummary)
def sync_positions(
    request: sync_schema.PositionSyncRequest,
    db: Session = Depends(get_DB),
    gateway: ProviderGateway = Depends(get_gateway),
):
    """
    Pull the latest positions for the given (or all active) devices.

    Pass the previous summary's lastquerypositiontime to only receive
    positions the provider has not delivered yet.
    """
    with http_errors():
        return pipelines.sync_positions(
            db, gateway,
            device_ids=request.device_ids,
            lastquerypositiontime=request.lastquerypositiontime,
        )


@router.post("/backfill", response_model=sync_schema.PositionSyncSummary)
def backfill_track(
    request: sync_schema.SyncRequest,
    db: Session = Depends(get_DB),
    gateway: ProviderGateway = Depends(get_gateway),
):
    """Fill position_history from querytrack (default window: last 24 h)."""
    with http_errors():
        return pipelines.backfill_track(db, gateway, request.device_ids, request.begin, request.end)


# ==========================================================
# 📌 Trips
# ==========================================================

@router.post("/trips", response_model=sync_schema.TripSyncSummary)
def sync_trips(
    request: sync_schema.SyncRequest,
    db: Session = Depends(get_DB),
    gateway: ProviderGateway = Depends(get_gateway),
):
    with http_errors():
        return pipelines.sync_trips(db, gateway, request.device_ids, request.begin, request.end)


@router.post("/process-trips", response_model=sync_schema.TripProcessingSummary)
def process_trips(request: sync_schema.SyncRequest, db: Session = Depends(get_DB)):
    """Segment stored position history into trips. No provider calls."""
    with http_errors():
        return pipelines.process_position_history(db, request.device_ids, request.begin, request.end)


# ==========================================================
# 📌 Alarms / Mileage / Anomalies
# ==========================================================

@router.post("/alarms", response_model=sync_schema.AlarmSyncSummary)
def sync_alarms(
    request: sync_schema.PositionSyncRequest,
    db: Session = Depends(get_DB),
    gateway: ProviderGateway = Depends(get_gateway),
):
    with http_errors():
        return pipelines.sync_alarms(
            db, gateway,
            device_ids=request.device_ids,
            lastquerypositiontime=request.lastquerypositiontime,
        )


@router.post("/mileage", response_model=sync_schema.MileageSyncSummary)
def sync_mileage(
    request: sync_schema.SyncRequest,
    db: Session = Depends(get_DB),
    gateway: ProviderGateway = Depends(get_gateway),
):
    with http_errors():
        return pipelines.sync_mileage(db, gateway, request.device_ids, request.begin, request.end)


@router.post("/anomalies", response_model=sync_schema.AnomalySummary)
def detect_anomalies(request: sync_schema.SyncRequest, db: Session = Depends(get_DB)):
    with http_errors():
        return pipelines.detect_anomalies(db, request.device_ids, now=request.end)
