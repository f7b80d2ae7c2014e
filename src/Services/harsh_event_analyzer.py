"""
Harsh-Event Analyzer
====================
Kinematic outlier detection over one trip's ordered samples plus a 0-100
driver score and a one-line summary.

Rules (pairs of consecutive samples with 0 < dt < HARSH_MAX_SAMPLE_GAP_S):
    speed_rate = (v[i] - v[i-1]) / dt          km/h per second
    harsh_braking       speed_rate < -10
    harsh_acceleration  speed_rate > +10
    harsh_cornering     heading_delta / dt > 45 deg/s AND v[i] > 20 km/h

Score:
    100 - 3*braking - 2*acceleration - 2*cornering
    +5 when the trip lasted more than 30 min without any event
    clamped to [0, 100]

The summary comes from an optional narrator callable; when it is missing,
raises or returns nothing, a templated sentence is used instead.
"""

from datetime import datetime
from typing import Callable, List, Optional, Sequence

from src.Core.config import settings
from src.Core.logging_config import get_logger
from src.Schemas.position import PositionSample
from src.Schemas.trip_analytics import (
    HarshEvent_create,
    HarshEventCounts,
    HarshEventType,
    TripAnalysisResult,
)
from src.Services.geo_utils import heading_delta

logger = get_logger(__name__)

BRAKING_PENALTY = 3
ACCELERATION_PENALTY = 2
CORNERING_PENALTY = 2
CLEAN_TRIP_BONUS = 5

Narrator = Callable[[HarshEventCounts, int], Optional[str]]


def fallback_summary(counts: HarshEventCounts, score: int) -> str:
    total = counts.total
    if total == 0:
        return (f"Excellent driving performance with a score of {score}/100. "
                f"No harsh events detected during this trip.")
    if score >= 80:
        return f"Good driving with minor incidents ({total} harsh events). Score: {score}/100."
    return f"Driving needs improvement with {total} harsh events detected. Score: {score}/100."


class HarshEventAnalyzer:

    def __init__(
        self,
        narrator: Optional[Narrator] = None,
        max_gap_s: Optional[float] = None,
        speed_delta_kmh_s: Optional[float] = None,
        heading_rate_deg_s: Optional[float] = None,
        cornering_min_speed_kmh: Optional[float] = None,
        bonus_min_duration_s: Optional[int] = None,
    ):
        self.narrator = narrator
        self.max_gap_s = max_gap_s if max_gap_s is not None else settings.HARSH_MAX_SAMPLE_GAP_S
        self.speed_delta = speed_delta_kmh_s if speed_delta_kmh_s is not None else settings.HARSH_SPEED_DELTA_KMH_S
        self.heading_rate = heading_rate_deg_s if heading_rate_deg_s is not None else settings.HARSH_HEADING_RATE_DEG_S
        self.cornering_min_speed = (
            cornering_min_speed_kmh if cornering_min_speed_kmh is not None
            else settings.HARSH_CORNERING_MIN_SPEED_KMH
        )
        self.bonus_min_duration_s = (
            bonus_min_duration_s if bonus_min_duration_s is not None
            else settings.HARSH_BONUS_MIN_DURATION_S
        )

    # ==========================================================
    # DETECTION
    # ==========================================================

    def detect_events(self, samples: Sequence[PositionSample]) -> List[HarshEvent_create]:
        events: List[HarshEvent_create] = []

        for previous, current in zip(samples, samples[1:]):
            dt = (current.gps_time - previous.gps_time).total_seconds()
            if dt <= 0 or dt >= self.max_gap_s:
                continue

            speed_rate = (current.speed - previous.speed) / dt
            if speed_rate < -self.speed_delta:
                events.append(_event(HarshEventType.BRAKING, current, abs(speed_rate)))
            elif speed_rate > self.speed_delta:
                events.append(_event(HarshEventType.ACCELERATION, current, speed_rate))

            if previous.heading is not None and current.heading is not None:
                turn_rate = heading_delta(previous.heading, current.heading) / dt
                if turn_rate > self.heading_rate and current.speed > self.cornering_min_speed:
                    events.append(_event(HarshEventType.CORNERING, current, turn_rate))

        return events

    # ==========================================================
    # SCORING
    # ==========================================================

    def score(self, counts: HarshEventCounts, duration_seconds: float) -> int:
        value = (
            100
            - BRAKING_PENALTY * counts.harsh_braking
            - ACCELERATION_PENALTY * counts.harsh_acceleration
            - CORNERING_PENALTY * counts.harsh_cornering
        )
        if counts.total == 0 and duration_seconds > self.bonus_min_duration_s:
            value += CLEAN_TRIP_BONUS
        return max(0, min(100, value))

    def summarize(self, counts: HarshEventCounts, score: int) -> str:
        if self.narrator is not None:
            try:
                text = self.narrator(counts, score)
            except Exception as exc:
                logger.warning("[HARSH] Narrator failed, using template: %s", exc)
            else:
                if text and text.strip():
                    return text.strip()
        return fallback_summary(counts, score)

    def analyze(
        self,
        samples: Sequence[PositionSample],
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
    ) -> TripAnalysisResult:
        """
        Full pass over one trip.

        start_time/end_time are the trip bounds used for the clean-trip
        bonus; they default to the first and last sample.
        """
        ordered = sorted(samples, key=lambda s: s.gps_time)
        events = self.detect_events(ordered)

        counts = HarshEventCounts(
            harsh_braking=sum(1 for e in events if e.event_type == HarshEventType.BRAKING.value),
            harsh_acceleration=sum(1 for e in events if e.event_type == HarshEventType.ACCELERATION.value),
            harsh_cornering=sum(1 for e in events if e.event_type == HarshEventType.CORNERING.value),
        )

        if start_time is None and ordered:
            start_time = ordered[0].gps_time
        if end_time is None and ordered:
            end_time = ordered[-1].gps_time
        duration = (end_time - start_time).total_seconds() if start_time and end_time else 0

        driver_score = self.score(counts, duration)
        return TripAnalysisResult(
            events=events,
            counts=counts,
            driver_score=driver_score,
            summary_text=self.summarize(counts, driver_score),
        )


def _event(event_type: HarshEventType, sample: PositionSample, magnitude: float) -> HarshEvent_create:
    return HarshEvent_create(
        event_type=event_type,
        occurred_at=sample.gps_time,
        magnitude=round(magnitude, 2),
        latitude=sample.latitude,
        longitude=sample.longitude,
    )
