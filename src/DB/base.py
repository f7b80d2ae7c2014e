"""
src/DB/base.py
==========================
SQLAlchemy Model Registry
==========================

Imports every model class so that Base.metadata is complete before Alembic
autogeneration, create_all() in tests, or relationship resolution.

Models Registered:
-----------------
- Device: tracked vehicle registry
- PositionHistory / VehiclePosition: position log and latest position
- ProviderTrip / VehicleTrip: raw trip mirror and normalized trips
- HarshEvent / TripAnalytics: driving-behaviour results
- GeofenceZone / GeofenceMonitor / GeofenceEvent: geofence configuration,
  checker state and fired transitions
- ProviderAlarm: deduplicated provider alarms
- ProactiveVehicleEvent: notification records
- AppSetting: provider token and shared rate-limiter state
- PipelineLock: cross-process leases
- ProviderSyncStatus: per-device sync cursors
- MileageDetail: daily mileage reports
- VehicleCommandLog: command execution audit

Important:
----------
Any new model class MUST be imported here.
"""

from src.DB.base_class import Base

# ============================================================
# MODEL IMPORTS - DO NOT REMOVE
# ============================================================
from src.Models.device import Device
from src.Models.position import PositionHistory, VehiclePosition
from src.Models.trip import ProviderTrip, VehicleTrip
from src.Models.trip_analytics import HarshEvent, TripAnalytics
from src.Models.geofence import GeofenceZone, GeofenceMonitor, GeofenceEvent
from src.Models.alarm import ProviderAlarm
from src.Models.proactive_event import ProactiveVehicleEvent
from src.Models.app_setting import AppSetting
from src.Models.pipeline_lock import PipelineLock
from src.Models.sync_status import ProviderSyncStatus
from src.Models.mileage import MileageDetail
from src.Models.command_log import VehicleCommandLog
