"""
Position Sync
=============
lastposition -> position_history (append, insert-or-ignore) + vehicle_positions
(latest per device). querytrack backfills position_history for a window.

Records with an unusable timestamp or no coordinates are dropped with a
warning; they never fail the pass.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.Core.exceptions import ProviderError, SessionUnavailable, TimestampNormalizationError
from src.Core.logging_config import get_logger
from src.Repositories.device import resolve_device_ids, update_last_seen
from src.Repositories.position import append_position, upsert_latest_position
from src.Schemas.sync import PositionSyncSummary
from src.Services.pipelines.base import DeviceRun, resolve_window, timed
from src.Services.provider.gateway import ProviderGateway
from src.Services.telemetry import normalize_position_record
from src.Services.timestamps import format_for_provider, utc_now

logger = get_logger(__name__)

STAGE = "positions"
OFFLINE_AFTER = timedelta(minutes=10)
BACKFILL_DEFAULT_SPAN = timedelta(hours=24)


def _store_records(
    db: Session,
    records: Iterable[Dict[str, Any]],
    runs: Dict[str, DeviceRun],
    summary: PositionSyncSummary,
    now: datetime,
    update_latest: bool,
    device_id: Optional[str] = None,
) -> None:
    for record in records:
        summary.records_received += 1
        owner = str(device_id or record.get("deviceid") or "")
        run = runs.get(owner)
        if run is None:
            summary.dropped += 1
            logger.warning("[POSITIONS] Record for unrequested device %r ignored", owner)
            continue

        try:
            sample = normalize_position_record(record, device_id=owner)
        except (TimestampNormalizationError, ValueError) as exc:
            summary.dropped += 1
            logger.warning("[POSITIONS] %s: dropping record: %s", owner, exc)
            continue

        try:
            with db.begin_nested():
                if append_position(db, sample):
                    summary.positions_inserted += 1
                    run.count += 1
                else:
                    summary.duplicates += 1
                if update_latest:
                    upsert_latest_position(db, sample, is_online=now - sample.gps_time <= OFFLINE_AFTER)
                    update_last_seen(db, owner, sample.gps_time)
        except SQLAlchemyError as exc:
            message = f"{owner}: {str(getattr(exc, 'orig', exc)).splitlines()[0]}"
            summary.record_error(message)
            run.fail(message)
            logger.error("[POSITIONS] Write failed for %s", message)
            continue

        run.advance(sample.gps_time)


def sync_positions(
    db: Session,
    gateway: ProviderGateway,
    device_ids: Optional[List[str]] = None,
    lastquerypositiontime: int = 0,
    now: Optional[datetime] = None,
) -> PositionSyncSummary:
    """
    One lastposition pass for the given (or all active) devices.

    Raises:
        ValidationError: Blank device id or nothing to process
        SessionUnavailable / ProviderError: The shared provider call failed
    """
    summary = PositionSyncSummary()
    with timed(summary):
        devices = resolve_device_ids(db, device_ids)
        now = now or utc_now()
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

        _store_records(db, result.records("records"), runs, summary, now, update_latest=True)
        summary.lastquerypositiontime = result.get("lastquerypositiontime")

        for run in runs.values():
            run.finish(summary)

    logger.info(
        "[POSITIONS] received=%d inserted=%d duplicates=%d dropped=%d errors=%d",
        summary.records_received, summary.positions_inserted,
        summary.duplicates, summary.dropped, summary.errors,
    )
    return summary


def backfill_track(
    db: Session,
    gateway: ProviderGateway,
    device_ids: Optional[List[str]] = None,
    begin: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> PositionSyncSummary:
    """
    querytrack per device for a historical window (default: last 24 h).

    A provider failure for one device is recorded and the next device runs.
    """
    summary = PositionSyncSummary()
    with timed(summary):
        devices = resolve_device_ids(db, device_ids)
        begin_at, end_at = resolve_window(begin, end, BACKFILL_DEFAULT_SPAN)
        now = utc_now()

        for device in devices:
            run = DeviceRun(db, device, STAGE)
            try:
                result = gateway.call("querytrack", {
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

            _store_records(db, result.records("records"), {device: run}, summary, now,
                           update_latest=False, device_id=device)
            run.finish(summary)

    logger.info("[BACKFILL] received=%d inserted=%d duplicates=%d dropped=%d errors=%d",
                summary.records_received, summary.positions_inserted,
                summary.duplicates, summary.dropped, summary.errors)
    return summary
