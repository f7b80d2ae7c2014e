# src/Schemas/sync.py
"""
Request and summary schemas for the scheduler entry points.

Every summary reports explicit counts plus the first captured error, so that
callers alert on error counts rather than on exceptions.
"""

from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Dict, List, Optional


# ============================================
# REQUESTS
# ============================================
class SyncRequest(BaseModel):
    device_ids: Optional[List[str]] = Field(
        None,
        description="Devices to process; all active devices when omitted"
    )
    begin: Optional[datetime] = Field(None, description="Window start (UTC); trailing default when omitted")
    end: Optional[datetime] = Field(None, description="Window end (UTC); now when omitted")


class PositionSyncRequest(SyncRequest):
    lastquerypositiontime: int = Field(0, ge=0, description="Provider cursor from the previous pass")


class TripAnalysisRequest(BaseModel):
    trip_ids: Optional[List[int]] = None
    force: bool = Field(False, description="Re-analyze trips that already have a summary")
    limit: int = Field(50, gt=0, le=500)


# ============================================
# SUMMARIES
# ============================================
class StageSummary(BaseModel):
    errors: int = 0
    first_error: Optional[str] = None
    devices_synced: int = 0
    duration_ms: int = 0

    def record_error(self, message: str) -> None:
        self.errors += 1
        if self.first_error is None:
            self.first_error = message


class PositionSyncSummary(StageSummary):
    records_received: int = 0
    positions_inserted: int = 0
    duplicates: int = 0
    dropped: int = 0
    lastquerypositiontime: Optional[int] = None


class TripSyncSummary(StageSummary):
    records_received: int = 0
    trips_inserted: int = 0
    trips_updated: int = 0
    latest_trip_synced: Optional[datetime] = None
    total_trips: int = 0
    total_distance_km: float = 0.0
    avg_distance_km: float = 0.0


class TripProcessingSummary(StageSummary):
    samples_read: int = 0
    trips_detected: int = 0
    trips_inserted: int = 0
    trips_updated: int = 0


class TripAnalysisSummary(StageSummary):
    trips_analyzed: int = 0
    harsh_events: int = 0
    average_score: Optional[float] = None


class AlarmSyncSummary(StageSummary):
    positions_checked: int = 0
    alarms_found: int = 0
    alarms_inserted: int = 0
    alarms_updated: int = 0
    dropped: int = 0
    severity_breakdown: Dict[str, int] = Field(
        default_factory=lambda: {"critical": 0, "error": 0, "warning": 0, "info": 0}
    )
    lastquerypositiontime: Optional[int] = None


class MileageSyncSummary(StageSummary):
    records_received: int = 0
    records_inserted: int = 0
    records_updated: int = 0
    total_distance_km: float = 0.0
    theft_alerts: int = 0


class GeofenceCheckSummary(StageSummary):
    monitors_checked: int = 0
    events_triggered: int = 0
    skipped: bool = False


class AnomalySummary(StageSummary):
    vehicles_checked: int = 0
    anomalies_detected: int = 0
    suppressed: int = 0
    by_type: Dict[str, int] = Field(default_factory=dict)


# ============================================
# SYNC STATE
# ============================================
class SyncStatus_get(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    device_id: str
    sync_status: str
    current_stage: Optional[str] = None
    last_position_synced_at: Optional[datetime] = None
    last_trip_synced_at: Optional[datetime] = None
    last_alarm_synced_at: Optional[datetime] = None
    last_mileage_synced_at: Optional[datetime] = None
    trips_synced_count: int = 0
    alarms_synced_count: int = 0
    last_error: Optional[str] = None
    last_run_at: Optional[datetime] = None
