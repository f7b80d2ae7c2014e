# src/Controller/Routes/trips.py

"""
Trip REST API

Endpoints:
- POST /trips/analyze               Harsh-event analysis (pending or explicit trips)
- GET  /trips/device/{device_id}    Recent trips for a device
- GET  /trips/{trip_id}/analytics   Driver score and harsh-event counts

Usage:
    # In main.py
    from src.Controller.Routes import trips
    app.include_router(trips.router, prefix="/trips", tags=["trips"])
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from src.Controller.deps import get_DB, http_errors
from src.Repositories import trip as trip_repo
from src.Schemas import sync as sync_schema
from src.Schemas.trip import VehicleTrip_get
from src.Schemas.trip_analytics import TripAnalytics_get
from src.Services.pipelines import analyze_trips

router = APIRouter()


# ==========================================================
# 📌 Analysis
# ==========================================================

@router.post("/analyze", response_model=sync_schema.TripAnalysisSummary)
def analyze(request: sync_schema.TripAnalysisRequest, db: Session = Depends(get_DB)):
    """
    Analyze trips without a summary, oldest first (up to `limit`).

    With `trip_ids` only those trips are considered; `force` re-analyzes
    trips that already have one.
    """
    with http_errors():
        return analyze_trips(db, trip_ids=request.trip_ids, force=request.force, limit=request.limit)


# ==========================================================
# 📌 Queries
# ==========================================================

@router.get("/device/{device_id}", response_model=List[VehicleTrip_get])
def list_trips(
    device_id: str,
    limit: int = Query(100, gt=0, le=1000),
    db: Session = Depends(get_DB)
):
    return trip_repo.get_trips_by_device(db, device_id, limit=limit)


@router.get("/{trip_id}/analytics", response_model=TripAnalytics_get)
def get_analytics(trip_id: int, db: Session = Depends(get_DB)):
    if trip_repo.get_trip_by_id(db, trip_id) is None:
        raise HTTPException(
            status_code=404,
            detail=f"Trip {trip_id} not found"
        )
    analytics = trip_repo.get_analytics_for_trip(db, trip_id)
    if analytics is None:
        raise HTTPException(
            status_code=404,
            detail=f"No analytics for trip {trip_id}"
        )
    return analytics
