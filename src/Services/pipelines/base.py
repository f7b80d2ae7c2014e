"""
Shared helpers for the pipeline stages.

- resolve_window(): UTC [begin, end] with a trailing default span
- timed(): fills summary.duration_ms around a stage body
- DeviceRun: per-device sync-status bookkeeping (syncing -> completed/error)
"""

import time
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Iterator, Optional, Tuple

from sqlalchemy.orm import Session

from src.Core.exceptions import ValidationError
from src.Repositories.sync_status import mark_completed, mark_error, mark_syncing
from src.Schemas.sync import StageSummary
from src.Services.timestamps import ensure_utc, utc_now


def resolve_window(
    begin: Optional[datetime],
    end: Optional[datetime],
    default_span: timedelta,
    now: Optional[datetime] = None,
) -> Tuple[datetime, datetime]:
    end_at = ensure_utc(end) or ensure_utc(now) or utc_now()
    begin_at = ensure_utc(begin) or end_at - default_span
    if begin_at > end_at:
        raise ValidationError("begin must not be after end")
    return begin_at, end_at


@contextmanager
def timed(summary: StageSummary) -> Iterator[StageSummary]:
    started = time.monotonic()
    try:
        yield summary
    finally:
        summary.duration_ms = int((time.monotonic() - started) * 1000)


class DeviceRun:
    """
    Error/watermark accumulator for one device within a stage.

    Usage:
        run = DeviceRun(db, device_id, "trips")
        ... run.fail(msg) / run.advance(ts) / run.count += 1 ...
        run.finish(summary)
    """

    def __init__(self, db: Session, device_id: str, stage: str):
        self.db = db
        self.device_id = device_id
        self.stage = stage
        self.first_error: Optional[str] = None
        self.watermark: Optional[datetime] = None
        self.count = 0
        mark_syncing(db, device_id, stage)

    def fail(self, message: str) -> None:
        if self.first_error is None:
            self.first_error = message

    def advance(self, instant: Optional[datetime]) -> None:
        if instant is not None and (self.watermark is None or instant > self.watermark):
            self.watermark = instant

    def finish(self, summary: StageSummary) -> None:
        if self.first_error is None:
            mark_completed(self.db, self.device_id, self.stage, self.watermark, self.count)
            summary.devices_synced += 1
        else:
            mark_error(self.db, self.device_id, self.stage, self.first_error)
