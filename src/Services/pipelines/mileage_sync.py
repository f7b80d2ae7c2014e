"""
Mileage Sync
============
reportmileagedetail per device -> mileage_details, one row per
(device_id, statistics_day). Distances stay in meters as reported; speeds are
converted from m/h to km/h and ACC-on time from ms to seconds.

Days with a positive leakoil reading count as theft alerts. Each device with
such days gets one "fuel_theft" ProactiveVehicleEvent per run, unless one was
already recorded in the last MILEAGE_THEFT_COOLDOWN_H.
"""

from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from src.Core.config import settings
from src.Core.exceptions import ProviderError, SessionUnavailable, TimestampNormalizationError
from src.Core.logging_config import get_logger
from src.Models.mileage import MileageDetail
from src.Repositories.device import get_device_names, resolve_device_ids
from src.Repositories.proactive_event import create_proactive_event, recent_event_exists
from src.Schemas.mileage import MileageDetail_create
from src.Schemas.sync import MileageSyncSummary
from src.Services.pipelines.base import DeviceRun, resolve_window, timed
from src.Services.provider.gateway import ProviderGateway
from src.Services.reconciler import FAILED, INSERTED, UPDATED, Reconciler, WriteTarget
from src.Services.telemetry import coerce_number
from src.Services.timestamps import PROVIDER_TZ, ensure_utc, normalize_provider_timestamp, utc_now

logger = get_logger(__name__)

STAGE = "mileage"
MILEAGE_KEY = ("device_id", "statistics_day")
FUEL_THEFT = "fuel_theft"


def _provider_day(value: datetime) -> str:
    return ensure_utc(value).astimezone(PROVIDER_TZ).strftime("%Y-%m-%d")


def _parse_day(value: Any) -> date:
    text = str(value or "").strip()
    try:
        return datetime.strptime(text[:10], "%Y-%m-%d").date()
    except ValueError:
        raise ValueError(f"unusable statisticsday {value!r}")


def _optional_time(value: Any) -> Optional[datetime]:
    if not value:
        return None
    try:
        return normalize_provider_timestamp(value)
    except TimestampNormalizationError:
        return None


def _as_int(value: Optional[float]) -> Optional[int]:
    return int(value) if value is not None else None


def convert_mileage_record(record: Dict[str, Any], device_id: str) -> MileageDetail_create:
    """
    Raises:
        ValueError: statisticsday missing or unusable
    """
    avg_speed = coerce_number(record.get("avgspeed"))
    total_acc = coerce_number(record.get("totalacc"))
    add_oil = record.get("addoil") if record.get("addoil") is not None else record.get("ddoil")
    record_id = record.get("id")

    return MileageDetail_create(
        device_id=device_id,
        statistics_day=_parse_day(record.get("statisticsday")),
        provider_record_id=str(record_id) if record_id is not None else None,
        start_time=_optional_time(record.get("starttime")),
        end_time=_optional_time(record.get("endtime")),
        begin_distance=coerce_number(record.get("begindis")),
        end_distance=coerce_number(record.get("enddis")),
        total_distance=coerce_number(record.get("totaldistance")),
        avg_speed_kmh=round(avg_speed / 1000, 1) if avg_speed is not None else None,
        over_speed=_as_int(coerce_number(record.get("overspeed"))),
        total_acc_seconds=int(total_acc // 1000) if total_acc is not None else None,
        begin_oil=coerce_number(record.get("beginoil")),
        end_oil=coerce_number(record.get("endoil")),
        add_oil=coerce_number(add_oil),
        leak_oil=coerce_number(record.get("leakoil")),
        oil_per_100km=coerce_number(record.get("oilper100km")),
        raw_data=dict(record),
    )


def _raise_theft_alert(
    db: Session,
    device_id: str,
    vehicle_name: str,
    leaks: List[MileageDetail_create],
    now: datetime,
) -> None:
    since = now - timedelta(hours=settings.MILEAGE_THEFT_COOLDOWN_H)
    if recent_event_exists(db, device_id, FUEL_THEFT, since):
        logger.debug("[MILEAGE] %s: fuel theft already reported, suppressed", device_id)
        return

    days = sorted(row.statistics_day.isoformat() for row in leaks)
    liters = sum(row.leak_oil for row in leaks) / 100
    plural = "" if len(days) == 1 else "s"
    create_proactive_event(
        db,
        device_id=device_id,
        event_type=FUEL_THEFT,
        title="Possible Fuel Theft",
        message=f"{vehicle_name} lost {liters:.1f} L of fuel on {len(days)} day{plural}",
        severity="error",
        metadata={"days": days, "leak_liters": round(liters, 2)},
        created_at=now,
    )
    logger.warning("[MILEAGE] %s: possible fuel theft on %s", device_id, ", ".join(days))


def sync_mileage(
    db: Session,
    gateway: ProviderGateway,
    device_ids: Optional[List[str]] = None,
    begin: Optional[datetime] = None,
    end: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> MileageSyncSummary:
    """Daily mileage for each device over [begin, end] (default 30 days)."""
    summary = MileageSyncSummary()
    with timed(summary):
        devices = resolve_device_ids(db, device_ids)
        begin_at, end_at = resolve_window(begin, end, timedelta(days=settings.MILEAGE_SYNC_DEFAULT_DAYS))
        reconciler = Reconciler(db)
        total_m = 0.0
        now = ensure_utc(now) or utc_now()
        names = get_device_names(db, devices)

        for device in devices:
            run = DeviceRun(db, device, STAGE)
            try:
                result = gateway.call("reportmileagedetail", {
                    "deviceid": device,
                    "startday": _provider_day(begin_at),
                    "endday": _provider_day(end_at),
                    "offset": settings.PROVIDER_UTC_OFFSET_H,
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

            leaks: List[MileageDetail_create] = []
            for record in result.records("records"):
                summary.records_received += 1
                try:
                    row = convert_mileage_record(record, device)
                except ValueError as exc:
                    logger.warning("[MILEAGE] %s: dropping record: %s", device, exc)
                    continue

                outcome = reconciler.write(WriteTarget(MileageDetail, row.model_dump(), MILEAGE_KEY))
                if outcome.status == FAILED:
                    message = f"{device} day {row.statistics_day}: {outcome.error}"
                    summary.record_error(message)
                    run.fail(message)
                    continue

                if outcome.status == INSERTED:
                    summary.records_inserted += 1
                elif outcome.status == UPDATED:
                    summary.records_updated += 1
                total_m += row.total_distance or 0.0
                if row.leak_oil and row.leak_oil > 0:
                    leaks.append(row)
                run.count += 1
                run.advance(row.end_time)

            if leaks:
                summary.theft_alerts += len(leaks)
                _raise_theft_alert(db, device, names[device], leaks, now)

            run.finish(summary)

        summary.total_distance_km = round(total_m / 1000, 3)

    logger.info("[MILEAGE] received=%d inserted=%d updated=%d theft=%d errors=%d",
                summary.records_received, summary.records_inserted,
                summary.records_updated, summary.theft_alerts, summary.errors)
    return summary
