"""
Trip Processing
===============
position_history -> TripDetector -> vehicle_trips (source "position_history").

Trips are keyed on (device_id, start_time), so re-processing an overlapping
window updates the trips it already produced instead of duplicating them.
"""

from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from src.Core.config import settings
from src.Core.logging_config import get_logger
from src.Models.trip import VehicleTrip
from src.Repositories.device import resolve_device_ids
from src.Repositories.position import get_samples_in_range
from src.Schemas.sync import TripProcessingSummary
from src.Services.pipelines.base import resolve_window, timed
from src.Services.reconciler import FAILED, INSERTED, UPDATED, Reconciler, WriteTarget
from src.Services.trip_detector import TripDetector, trip_detector

logger = get_logger(__name__)

TRIP_KEY = ("device_id", "start_time")


def process_position_history(
    db: Session,
    device_ids: Optional[List[str]] = None,
    begin: Optional[datetime] = None,
    end: Optional[datetime] = None,
    detector: Optional[TripDetector] = None,
) -> TripProcessingSummary:
    summary = TripProcessingSummary()
    detector = detector or trip_detector

    with timed(summary):
        devices = resolve_device_ids(db, device_ids)
        begin_at, end_at = resolve_window(begin, end, timedelta(days=settings.TRIP_SYNC_DEFAULT_DAYS))
        reconciler = Reconciler(db)

        for device in devices:
            samples = get_samples_in_range(db, device, begin_at, end_at)
            summary.samples_read += len(samples)
            trips = detector.segment(samples)
            summary.trips_detected += len(trips)

            device_failed = False
            for trip in trips:
                outcome = reconciler.write(WriteTarget(VehicleTrip, trip.to_row(), TRIP_KEY))
                if outcome.status == FAILED:
                    summary.record_error(f"{device} trip {trip.start_time.isoformat()}: {outcome.error}")
                    device_failed = True
                elif outcome.status == INSERTED:
                    summary.trips_inserted += 1
                elif outcome.status == UPDATED:
                    summary.trips_updated += 1

            if not device_failed:
                summary.devices_synced += 1
            logger.info("[TRIP-PROCESS] %s: %d samples -> %d trips", device, len(samples), len(trips))

        db.commit()

    return summary
