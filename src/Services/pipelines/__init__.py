"""Scheduler entry points. Each stage takes a Session and returns a summary model."""

from src.Services.pipelines.alarm_sync import sync_alarms
from src.Services.pipelines.anomaly_check import detect_anomalies
from src.Services.pipelines.geofence_check import check_geofences
from src.Services.pipelines.mileage_sync import sync_mileage
from src.Services.pipelines.position_sync import backfill_track, sync_positions
from src.Services.pipelines.trip_analysis import analyze_trips
from src.Services.pipelines.trip_processing import process_position_history
from src.Services.pipelines.trip_sync import sync_trips
from src.Services.pipelines.zone_sync import remove_zone_from_provider, sync_zone_to_provider

__all__ = [
    "sync_positions",
    "backfill_track",
    "sync_trips",
    "process_position_history",
    "analyze_trips",
    "sync_alarms",
    "sync_mileage",
    "check_geofences",
    "detect_anomalies",
    "sync_zone_to_provider",
    "remove_zone_from_provider",
]
