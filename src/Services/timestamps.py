"""
Timestamp Normalizer
====================
Converts provider timestamps to canonical UTC instants.

The provider reports time in three shapes:

- "yyyy-MM-dd HH:mm:ss" strings, naive wall-clock time in GMT+8
- epoch seconds
- epoch milliseconds

Storage is always timezone-aware UTC. Operators read times in GMT+1 (Lagos),
and the provider expects query parameters as GMT+8 wall-clock strings.

Policy:
- Numbers smaller than the millisecond value of 2000-01-01 are seconds.
- Strings with a date separator are parsed as naive provider-local time
  unless they carry their own offset.
- Results before 2000-01-01, or more than TIMESTAMP_MAX_FUTURE_S ahead of
  `now`, are rejected.

A failure raises TimestampNormalizationError. Pipeline stages catch it, log a
warning and drop the offending record.
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Union

from src.Core.config import settings
from src.Core.exceptions import TimestampNormalizationError


# ==========================================================
# CONSTANTS
# ==========================================================

MIN_VALID_EPOCH_MS = 946684800000  # 2000-01-01T00:00:00Z
MIN_VALID_INSTANT = datetime(2000, 1, 1, tzinfo=timezone.utc)

PROVIDER_TZ = timezone(timedelta(hours=settings.PROVIDER_UTC_OFFSET_H))
DISPLAY_TZ = timezone(timedelta(hours=settings.DISPLAY_UTC_OFFSET_H))

PROVIDER_FORMAT = "%Y-%m-%d %H:%M:%S"

_DATE_SEPARATOR = re.compile(r"\d{4}[-/]\d{1,2}[-/]\d{1,2}")
_NUMERIC = re.compile(r"^-?\d+(\.\d+)?$")


# ==========================================================
# HELPERS
# ==========================================================

def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Tag naive datetimes (as returned by some backends) as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _from_epoch(number: float, original: Any) -> datetime:
    millis = number * 1000 if number < MIN_VALID_EPOCH_MS else number
    try:
        return datetime.fromtimestamp(millis / 1000.0, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as exc:
        raise TimestampNormalizationError(original, f"epoch out of range ({exc})") from exc


def _from_string(text: str, offset: timezone, original: Any) -> datetime:
    candidate = text.strip().replace("/", "-")
    if candidate.endswith("Z"):
        candidate = candidate[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(candidate)
    except ValueError as exc:
        raise TimestampNormalizationError(original, "unrecognised date format") from exc

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=offset)
    return parsed.astimezone(timezone.utc)


# ==========================================================
# PUBLIC API
# ==========================================================

def normalize_provider_timestamp(
    value: Union[str, int, float, datetime, None],
    source_offset_hours: Optional[int] = None,
    now: Optional[datetime] = None,
) -> datetime:
    """
    Convert a provider timestamp to an aware UTC datetime.

    Args:
        value: String, epoch seconds/milliseconds or datetime
        source_offset_hours: Offset of naive inputs (default: provider GMT+8)
        now: Reference instant for the future-skew check (default: wall clock)

    Returns:
        datetime: Aware UTC instant

    Raises:
        TimestampNormalizationError: Empty, unparseable or out-of-range input

    Examples:
        >>> normalize_provider_timestamp("2024-05-01 14:00:00")
        datetime.datetime(2024, 5, 1, 6, 0, tzinfo=datetime.timezone.utc)
        >>> normalize_provider_timestamp(1714543200)  # seconds
        datetime.datetime(2024, 5, 1, 6, 0, tzinfo=datetime.timezone.utc)
    """
    offset_hours = settings.PROVIDER_UTC_OFFSET_H if source_offset_hours is None else source_offset_hours
    offset = timezone(timedelta(hours=offset_hours))

    if value is None or (isinstance(value, str) and not value.strip()):
        raise TimestampNormalizationError(value, "empty value")

    if isinstance(value, bool):
        raise TimestampNormalizationError(value, "boolean is not a timestamp")

    if isinstance(value, datetime):
        result = value.replace(tzinfo=offset) if value.tzinfo is None else value
        result = result.astimezone(timezone.utc)
    elif isinstance(value, (int, float)):
        result = _from_epoch(float(value), value)
    elif isinstance(value, str):
        text = value.strip()
        if _DATE_SEPARATOR.search(text):
            result = _from_string(text, offset, value)
        elif _NUMERIC.match(text):
            result = _from_epoch(float(text), value)
        else:
            raise TimestampNormalizationError(value, "unrecognised date format")
    else:
        raise TimestampNormalizationError(value, f"unsupported type {type(value).__name__}")

    reference = ensure_utc(now) if now is not None else utc_now()
    if result < MIN_VALID_INSTANT:
        raise TimestampNormalizationError(value, "before 2000-01-01")
    if result > reference + timedelta(seconds=settings.TIMESTAMP_MAX_FUTURE_S):
        raise TimestampNormalizationError(value, "in the future")

    return result


def to_display_time(value: datetime) -> datetime:
    """Render a UTC instant in the operator display timezone (GMT+1)."""
    return ensure_utc(value).astimezone(DISPLAY_TZ)


def format_for_provider(value: datetime) -> str:
    """Format an instant as the GMT+8 wall-clock string the provider expects."""
    return ensure_utc(value).astimezone(PROVIDER_TZ).strftime(PROVIDER_FORMAT)
