"""
Trip Analysis
=============
Harsh-event detection and scoring for trips that have no trip_analytics row
yet. A trip that already has one is re-analyzed only when its id is passed
with force=True; the previous events are replaced, not appended.
"""

from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.Core.exceptions import ValidationError
from src.Core.logging_config import get_logger
from src.Repositories.position import get_samples_in_range
from src.Repositories.trip import (
    get_analytics_for_trip,
    get_trips_by_ids,
    get_trips_pending_analysis,
    save_trip_analysis,
)
from src.Schemas.sync import TripAnalysisSummary
from src.Services.harsh_event_analyzer import HarshEventAnalyzer
from src.Services.pipelines.base import timed
from src.Services.timestamps import ensure_utc

logger = get_logger(__name__)


def analyze_trips(
    db: Session,
    trip_ids: Optional[List[int]] = None,
    force: bool = False,
    limit: int = 50,
    analyzer: Optional[HarshEventAnalyzer] = None,
) -> TripAnalysisSummary:
    """
    Args:
        trip_ids: Explicit trips; pending trips (oldest first) when omitted
        force: Re-analyze explicit trips that already have a summary
        limit: Cap on pending trips picked up in one pass
    """
    summary = TripAnalysisSummary()
    analyzer = analyzer or HarshEventAnalyzer()

    with timed(summary):
        if trip_ids is not None:
            if not trip_ids:
                raise ValidationError("trip_ids must not be empty")
            trips = get_trips_by_ids(db, trip_ids)
            missing = set(trip_ids) - {trip.id for trip in trips}
            for trip_id in sorted(missing):
                summary.record_error(f"trip {trip_id} not found")
        else:
            trips = get_trips_pending_analysis(db, limit=limit)

        scores = []
        for trip in trips:
            if not force and get_analytics_for_trip(db, trip.id) is not None:
                logger.debug("[TRIP-ANALYSIS] trip %s already analyzed, skipping", trip.id)
                continue

            start, end = ensure_utc(trip.start_time), ensure_utc(trip.end_time)
            samples = get_samples_in_range(db, trip.device_id, start, end)
            result = analyzer.analyze(samples, start_time=start, end_time=end)

            try:
                with db.begin_nested():
                    save_trip_analysis(db, trip, result)
            except SQLAlchemyError as exc:
                summary.record_error(f"trip {trip.id}: {str(getattr(exc, 'orig', exc)).splitlines()[0]}")
                continue

            summary.trips_analyzed += 1
            summary.harsh_events += result.counts.total
            scores.append(result.driver_score)
            logger.info("[TRIP-ANALYSIS] trip %s: score=%d events=%d",
                        trip.id, result.driver_score, result.counts.total)

        if scores:
            summary.average_score = round(sum(scores) / len(scores), 1)
        db.commit()

    return summary
