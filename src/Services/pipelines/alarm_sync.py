"""
Alarm Sync
==========
lastposition -> AlarmExtractor -> provider_alarms, deduplicated on
(device_id, alarm_time, alarm_code). A re-delivered alarm updates its row.
"""

from typing import List, Optional

from sqlalchemy.orm import Session

from src.Core.exceptions import ProviderError, SessionUnavailable
from src.Core.logging_config import get_logger
from src.Models.alarm import ProviderAlarm
from src.Repositories.device import resolve_device_ids
from src.Schemas.sync import AlarmSyncSummary
from src.Services.alarm_extractor import extract_alarm
from src.Services.pipelines.base import DeviceRun, timed
from src.Services.provider.gateway import ProviderGateway
from src.Services.reconciler import FAILED, INSERTED, UPDATED, Reconciler, WriteTarget

logger = get_logger(__name__)

STAGE = "alarms"
ALARM_KEY = ("device_id", "alarm_time", "alarm_code")


def sync_alarms(
    db: Session,
    gateway: ProviderGateway,
    device_ids: Optional[List[str]] = None,
    lastquerypositiontime: int = 0,
) -> AlarmSyncSummary:
    summary = AlarmSyncSummary()
    with timed(summary):
        devices = resolve_device_ids(db, device_ids)
        runs = {device: DeviceRun(db, device, STAGE) for device in devices}

        try:
            result = gateway.call("lastposition", {
                "deviceids": devices,
                "lastquerypositiontime": lastquerypositiontime,
            })
        except (ProviderError, SessionUnavailable) as exc:
            for run in runs.values():
                run.fail(str(exc))
                run.finish(summary)
            raise

        reconciler = Reconciler(db)
        for record in result.records("records"):
            summary.positions_checked += 1
            run = runs.get(str(record.get("deviceid") or ""))
            if run is None:
                continue

            alarm = extract_alarm(record, device_id=run.device_id)
            if alarm is None:
                if record.get("alarm"):
                    summary.dropped += 1
                continue

            summary.alarms_found += 1
            outcome = reconciler.write(WriteTarget(ProviderAlarm, alarm.model_dump(), ALARM_KEY))
            if outcome.status == FAILED:
                message = f"{run.device_id} alarm {alarm.alarm_code}: {outcome.error}"
                summary.record_error(message)
                run.fail(message)
                continue

            if outcome.status == INSERTED:
                summary.alarms_inserted += 1
            elif outcome.status == UPDATED:
                summary.alarms_updated += 1
            summary.severity_breakdown[alarm.severity] = summary.severity_breakdown.get(alarm.severity, 0) + 1
            run.count += 1
            run.advance(alarm.alarm_time)

        summary.lastquerypositiontime = result.get("lastquerypositiontime")
        for run in runs.values():
            run.finish(summary)

    logger.info("[ALARMS] checked=%d found=%d inserted=%d updated=%d errors=%d breakdown=%s",
                summary.positions_checked, summary.alarms_found, summary.alarms_inserted,
                summary.alarms_updated, summary.errors, summary.severity_breakdown)
    return summary

