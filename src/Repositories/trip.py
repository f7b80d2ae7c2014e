# src/Repositories/trip.py
"""
Trip Repository - read access to normalized trips and analysis results.

Trip rows themselves are written through the Reconciler (upsert on
(device_id, start_time)); this module covers lookups and the analysis write.

Usage:
    from src.Repositories.trip import get_trips_pending_analysis

    for trip in get_trips_pending_analysis(db, limit=50):
        ...
"""

from typing import List, Optional, Sequence

from sqlalchemy.orm import Session

from src.Models.trip import VehicleTrip
from src.Models.trip_analytics import HarshEvent, TripAnalytics
from src.Schemas.trip_analytics import TripAnalysisResult


# ==========================================================
# READ OPERATIONS
# ==========================================================

def get_trip_by_id(db: Session, trip_id: int) -> Optional[VehicleTrip]:
    return db.query(VehicleTrip).filter(VehicleTrip.id == trip_id).first()


def get_trips_by_ids(db: Session, trip_ids: Sequence[int]) -> List[VehicleTrip]:
    if not trip_ids:
        return []
    return (
        db.query(VehicleTrip)
        .filter(VehicleTrip.id.in_(list(trip_ids)))
        .order_by(VehicleTrip.start_time.asc())
        .all()
    )


def get_trips_pending_analysis(db: Session, limit: int = 50) -> List[VehicleTrip]:
    """Completed trips without a TripAnalytics row, oldest first."""
    return (
        db.query(VehicleTrip)
        .outerjoin(TripAnalytics, TripAnalytics.trip_id == VehicleTrip.id)
        .filter(TripAnalytics.id.is_(None))
        .order_by(VehicleTrip.start_time.asc())
        .limit(limit)
        .all()
    )


def get_trips_by_device(db: Session, device_id: str, limit: int = 100) -> List[VehicleTrip]:
    return (
        db.query(VehicleTrip)
        .filter(VehicleTrip.device_id == device_id)
        .order_by(VehicleTrip.start_time.desc())
        .limit(limit)
        .all()
    )


def get_analytics_for_trip(db: Session, trip_id: int) -> Optional[TripAnalytics]:
    return db.query(TripAnalytics).filter(TripAnalytics.trip_id == trip_id).first()


# ==========================================================
# WRITE OPERATIONS
# ==========================================================

def save_trip_analysis(db: Session, trip: VehicleTrip, result: TripAnalysisResult) -> TripAnalytics:
    """
    Store harsh events and the score summary for a trip.

    Any earlier analysis of the same trip is replaced, so an explicit
    re-analysis never duplicates events.
    """
    db.query(HarshEvent).filter(HarshEvent.trip_id == trip.id).delete(synchronize_session=False)
    db.query(TripAnalytics).filter(TripAnalytics.trip_id == trip.id).delete(synchronize_session=False)

    for event in result.events:
        db.add(HarshEvent(trip_id=trip.id, device_id=trip.device_id, **event.model_dump()))

    analytics = TripAnalytics(
        trip_id=trip.id,
        device_id=trip.device_id,
        driver_score=result.driver_score,
        harsh_braking_count=result.counts.harsh_braking,
        harsh_acceleration_count=result.counts.harsh_acceleration,
        harsh_cornering_count=result.counts.harsh_cornering,
        summary_text=result.summary_text,
    )
    db.add(analytics)
    db.flush()
    return analytics
