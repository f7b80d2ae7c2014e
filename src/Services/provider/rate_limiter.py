"""
Shared Provider Rate Limiter
============================
Fixed-interval + burst-window limiter whose state lives in the database
(app_settings key "provider_rate_limit_state"), so every pipeline stage in
every process draws from the same budget.

State (metadata JSON, epoch seconds):
    {
        "last_call_time": 1714543200.15,
        "window_start": 1714543200.0,
        "window_calls": 3,
        "backoff_until": 0
    }

Rules applied by acquire(), in order:
1. Wait out any persisted backoff (set after a rate-limit rejection)
2. If the burst window is full, wait for it to roll over
3. Keep at least min_interval between two calls
"""

import time
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from src.Core.config import settings
from src.Core.logging_config import get_logger
from src.Repositories.app_setting import get_setting, upsert_setting

logger = get_logger(__name__)

STATE_KEY = "provider_rate_limit_state"


class RateLimiter:
    """DB-backed limiter. clock/sleep are injectable for deterministic tests."""

    def __init__(
        self,
        db: Session,
        min_interval_ms: Optional[int] = None,
        burst_limit: Optional[int] = None,
        burst_window_ms: Optional[int] = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.db = db
        self.min_interval = (min_interval_ms if min_interval_ms is not None else settings.PROVIDER_MIN_INTERVAL_MS) / 1000.0
        self.burst_limit = burst_limit if burst_limit is not None else settings.PROVIDER_BURST_LIMIT
        self.burst_window = (burst_window_ms if burst_window_ms is not None else settings.PROVIDER_BURST_WINDOW_MS) / 1000.0
        self.clock = clock
        self.sleep = sleep

    # ==========================================================
    # STATE
    # ==========================================================

    def _load(self) -> Dict[str, Any]:
        row = get_setting(self.db, STATE_KEY, for_update=True)
        if row is None or not row.extra_metadata:
            return {}
        return dict(row.extra_metadata)

    def _save(self, state: Dict[str, Any]) -> None:
        upsert_setting(self.db, STATE_KEY, metadata=state)
        self.db.commit()

    def state(self) -> Dict[str, Any]:
        """Current persisted state (read-only view)."""
        return self._load()

    # ==========================================================
    # PUBLIC API
    # ==========================================================

    def acquire(self) -> float:
        """
        Block until the next provider call is allowed and record it.

        Returns:
            float: Seconds spent waiting
        """
        state = self._load()
        waited = 0.0
        now = self.clock()

        backoff_until = float(state.get("backoff_until") or 0)
        if backoff_until > now:
            delay = backoff_until - now
            logger.info("[RATE-LIMIT] Backoff active, waiting %.2fs", delay)
            self.sleep(delay)
            waited += delay
            now = self.clock()

        window_start = float(state.get("window_start") or 0)
        window_calls = int(state.get("window_calls") or 0)
        if now - window_start >= self.burst_window:
            window_start, window_calls = now, 0

        if window_calls >= self.burst_limit:
            delay = window_start + self.burst_window - now
            if delay > 0:
                logger.debug("[RATE-LIMIT] Burst limit reached, waiting %.3fs", delay)
                self.sleep(delay)
                waited += delay
                now = self.clock()
            window_start, window_calls = now, 0

        last_call = float(state.get("last_call_time") or 0)
        gap = now - last_call
        if gap < self.min_interval:
            delay = self.min_interval - gap
            self.sleep(delay)
            waited += delay
            now = self.clock()

        state.update(
            last_call_time=now,
            window_start=window_start,
            window_calls=window_calls + 1,
        )
        self._save(state)
        return waited

    def register_backoff(self, delay_seconds: float) -> float:
        """Persist a backoff deadline; never shortens an existing one."""
        state = self._load()
        until = max(float(state.get("backoff_until") or 0), self.clock() + delay_seconds)
        state["backoff_until"] = until
        self._save(state)
        logger.warning("[RATE-LIMIT] Backoff registered for %.1fs", delay_seconds)
        return until

    def clear_backoff(self) -> None:
        state = self._load()
        if state.get("backoff_until"):
            state["backoff_until"] = 0
            self._save(state)
        else:
            # releases the row lock taken by _load
            self.db.commit()
