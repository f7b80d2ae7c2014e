"""
Trip Sync
=========
querytrips per device -> provider_trips (raw mirror) + vehicle_trips
(normalized, source "provider").

Conversions:
    starttime/endtime     GMT+8 -> UTC (rows without a usable start are dropped)
    distance/totaldistance meters -> km
    maxspeed/avgspeed     m/h -> km/h
    duration              derived from start/end, never read from the row

A row the normalized table rejects (e.g. no end_time yet) still lands in the
mirror and is counted as a per-row error.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from src.Core.config import settings
from src.Core.exceptions import ProviderError, SessionUnavailable, TimestampNormalizationError
from src.Core.logging_config import get_logger
from src.Models.trip import ProviderTrip, VehicleTrip
from src.Repositories.device import resolve_device_ids
from src.Schemas.sync import TripSyncSummary
from src.Schemas.trip import ProviderTrip_create
from src.Services.pipelines.base import DeviceRun, resolve_window, timed
from src.Services.provider.gateway import ProviderGateway
from src.Services.reconciler import FAILED, INSERTED, UPDATED, Reconciler, WriteTarget
from src.Services.telemetry import coerce_number
from src.Services.timestamps import format_for_provider, normalize_provider_timestamp

logger = get_logger(__name__)

STAGE = "trips"
TRIP_KEY = ("device_id", "start_time")


def _first_number(record: Dict[str, Any], *keys: str) -> Optional[float]:
    for key in keys:
        value = coerce_number(record.get(key))
        if value:
            return value
    return None


def convert_trip_record(record: Dict[str, Any], device_id: str) -> ProviderTrip_create:
    """
    Map one querytrips row to ProviderTrip_create.

    Raises:
        TimestampNormalizationError: starttime missing or unusable
    """
    start_time = normalize_provider_timestamp(record.get("starttime") or record.get("starttime_str"))

    end_raw = record.get("endtime") or record.get("endtime_str")
    end_time = None
    if end_raw:
        try:
            end_time = normalize_provider_timestamp(end_raw)
        except TimestampNormalizationError as exc:
            logger.warning("[TRIP-SYNC] %s: trip %s has unusable end time: %s",
                           device_id, start_time.isoformat(), exc)

    distance_m = _first_number(record, "distance", "totaldistance")
    max_speed = _first_number(record, "maxspeed")
    avg_speed = _first_number(record, "avgspeed", "averagespeed")

    return ProviderTrip_create(
        device_id=device_id,
        start_time=start_time,
        end_time=end_time,
        start_latitude=_first_number(record, "startlat", "startlatitude"),
        start_longitude=_first_number(record, "startlon", "startlongitude"),
        end_latitude=_first_number(record, "endlat", "endlatitude"),
        end_longitude=_first_number(record, "endlon", "endlongitude"),
        distance_km=round(distance_m / 1000, 3) if distance_m is not None else None,
        max_speed_kmh=round(max_speed / 1000, 1) if max_speed is not None else None,
        avg_speed_kmh=round(avg_speed / 1000, 1) if avg_speed is not None else None,
        raw_data=dict(record),
    )


def sync_trips(
    db: Session,
    gateway: ProviderGateway,
    device_ids: Optional[List[str]] = None,
    begin: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> TripSyncSummary:
    """
    Reconcile provider trips for each device over [begin, end] (default 7 days).

    Re-running over the same window updates rows in place; it never adds
    duplicates.
    """
    summary = TripSyncSummary()
    with timed(summary):
        devices = resolve_device_ids(db, device_ids)
        begin_at, end_at = resolve_window(begin, end, timedelta(days=settings.TRIP_SYNC_DEFAULT_DAYS))
        reconciler = Reconciler(db)

        for device in devices:
            run = DeviceRun(db, device, STAGE)
            logger.info("[TRIP-SYNC] %s: %s -> %s", device,
                        format_for_provider(begin_at), format_for_provider(end_at))
            try:
                result = gateway.call("querytrips", {
                    "deviceid": device,
                    "begintime": format_for_provider(begin_at),
                    "endtime": format_for_provider(end_at),
                    "timezone": 8,
                })
            except SessionUnavailable as exc:
                run.fail(str(exc))
                run.finish(summary)
                raise
            except ProviderError as exc:
                summary.record_error(f"{device}: {exc}")
                run.fail(str(exc))
                run.finish(summary)
                continue

            for record in result.records("records"):
                summary.records_received += 1
                try:
                    trip = convert_trip_record(record, device)
                except (TimestampNormalizationError, ValueError) as exc:
                    logger.warning("[TRIP-SYNC] %s: dropping trip record: %s", device, exc)
                    continue

                outcome = reconciler.reconcile(
                    mirror=WriteTarget(ProviderTrip, trip.to_mirror_row(), TRIP_KEY),
                    normalized=WriteTarget(VehicleTrip, trip.to_vehicle_trip_row(), TRIP_KEY),
                )
                if outcome.status == FAILED:
                    message = f"{device} trip {trip.start_time.isoformat()}: {outcome.error}"
                    summary.record_error(message)
                    run.fail(message)
                    continue

                if outcome.status == INSERTED:
                    summary.trips_inserted += 1
                elif outcome.status == UPDATED:
                    summary.trips_updated += 1
                run.count += 1
                summary.total_trips += 1
                summary.total_distance_km += trip.distance_km or 0.0
                run.advance(trip.end_time)
                if trip.end_time and (summary.latest_trip_synced is None
                                      or trip.end_time > summary.latest_trip_synced):
                    summary.latest_trip_synced = trip.end_time

            run.finish(summary)

        summary.total_distance_km = round(summary.total_distance_km, 3)
        if summary.total_trips:
            summary.avg_distance_km = round(summary.total_distance_km / summary.total_trips, 3)

    logger.info("[TRIP-SYNC] received=%d inserted=%d updated=%d errors=%d",
                summary.records_received, summary.trips_inserted,
                summary.trips_updated, summary.errors)
    return summary
