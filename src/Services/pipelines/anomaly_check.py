"""
Anomaly Check
=============
Runs the anomaly rules over each device's last seven days of position
history and records a ProactiveVehicleEvent per finding. A finding is
suppressed when the same event type was already recorded for the device in
the last ANOMALY_DEDUP_HOURS (ANOMALY_OFFLINE_COOLDOWN_MIN for offline).

Devices found offline also get vehicle_positions.is_online cleared.
"""

from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from src.Core.config import settings
from src.Core.logging_config import get_logger
from src.Repositories.device import get_device_names, resolve_device_ids
from src.Repositories.position import get_latest_positions, get_samples_in_range
from src.Repositories.proactive_event import create_proactive_event, recent_event_exists
from src.Schemas.sync import AnomalySummary
from src.Services.anomaly_detector import OFFLINE, detect_offline, evaluate_device
from src.Services.pipelines.base import timed
from src.Services.timestamps import ensure_utc, utc_now

logger = get_logger(__name__)

LOOKBACK = timedelta(days=7)


def detect_anomalies(
    db: Session,
    device_ids: Optional[List[str]] = None,
    now: Optional[datetime] = None,
) -> AnomalySummary:
    summary = AnomalySummary()
    now = ensure_utc(now) or utc_now()
    dedup_since = {
        OFFLINE: now - timedelta(minutes=settings.ANOMALY_OFFLINE_COOLDOWN_MIN),
    }
    default_since = now - timedelta(hours=settings.ANOMALY_DEDUP_HOURS)

    with timed(summary):
        devices = resolve_device_ids(db, device_ids)
        positions = get_latest_positions(db, devices)
        names = get_device_names(db, devices)

        for device in devices:
            summary.vehicles_checked += 1
            samples = get_samples_in_range(db, device, now - LOOKBACK, now)
            findings = evaluate_device(samples, now)

            # devices that never reported a position are not "offline"
            position = positions.get(device)
            if position is not None:
                offline = detect_offline(ensure_utc(position.gps_time), now,
                                         names[device], position.battery_percent)
                if offline is not None:
                    position.is_online = False
                    findings.append(offline)

            for anomaly in findings:
                since = dedup_since.get(anomaly.event_type, default_since)
                if recent_event_exists(db, device, anomaly.event_type, since):
                    summary.suppressed += 1
                    logger.debug("[ANOMALY] %s: %s already reported, suppressed", device, anomaly.event_type)
                    continue

                create_proactive_event(
                    db,
                    device_id=device,
                    event_type=anomaly.event_type,
                    title=anomaly.title,
                    message=anomaly.message,
                    severity=anomaly.severity,
                    metadata=anomaly.metadata,
                    created_at=now,
                )
                summary.anomalies_detected += 1
                summary.by_type[anomaly.event_type] = summary.by_type.get(anomaly.event_type, 0) + 1
                logger.info("[ANOMALY] %s: %s", device, anomaly.message)

            summary.devices_synced += 1

        db.commit()

    return summary
