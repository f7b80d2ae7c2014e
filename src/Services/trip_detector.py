# src/Services/trip_detector.py
"""
Trip Detector Service - segmentation of an ordered position stream into trips.

Responsibilities:
- Walk one device's PositionSamples in gps_time order
- Open a trip on the first moving sample (speed above threshold or ignition on)
- Close it after a stationary gap of TRIP_STOP_DURATION_S since the last
  moving sample
- Drop candidates shorter than TRIP_MIN_DISTANCE_KM (GPS noise)
- Flush the open trip when the stream ends (trip cut by the sync window)

Key Concepts:
- Pure: no database, no clock. Same samples + thresholds -> same trips
- The trip ends at the LAST MOVING sample, not at the sample that closed it
- A moving sample arriving after a gap >= the stop threshold (data hole)
  closes the current trip and opens a new one at that sample

Decision Logic:
    Idle:
        moving?           -> InTrip (start = last_moving = sample)
    InTrip:
        moving, gap <  T  -> extend (last_moving = sample)
        moving, gap >= T  -> close, then InTrip at sample
        stopped, gap >= T -> close -> Idle
        stopped, gap <  T -> stay
"""

from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from src.Core.config import settings
from src.Core.logging_config import get_logger
from src.Schemas.position import PositionSample
from src.Schemas.trip import TripCandidate
from src.Services.geo_utils import calculate_haversine_distance

logger = get_logger(__name__)


# ==========================================================
# OPEN TRIP ACCUMULATOR
# ==========================================================

@dataclass
class _OpenTrip:
    start: PositionSample
    last_moving: PositionSample
    max_speed: float = 0.0
    samples: int = field(default=1)

    def extend(self, sample: PositionSample) -> None:
        self.last_moving = sample
        self.samples += 1
        self.max_speed = max(self.max_speed, sample.speed)


# ==========================================================
# CLASE: TRIP DETECTOR
# ==========================================================

class TripDetector:
    """
    Stateless trip segmentation engine.

    Thresholds default to settings and may be overridden per instance.
    """

    def __init__(
        self,
        stop_duration_s: Optional[int] = None,
        min_distance_km: Optional[float] = None,
        moving_speed_kmh: Optional[float] = None,
    ):
        self.stop_duration_s = stop_duration_s if stop_duration_s is not None else settings.TRIP_STOP_DURATION_S
        self.min_distance_km = min_distance_km if min_distance_km is not None else settings.TRIP_MIN_DISTANCE_KM
        self.moving_speed_kmh = moving_speed_kmh if moving_speed_kmh is not None else settings.TRIP_MOVING_SPEED_KMH

    def is_moving(self, sample: PositionSample) -> bool:
        return sample.speed > self.moving_speed_kmh or sample.ignition_on

    # ==========================================================
    # FUNCIÓN PRINCIPAL: SEGMENT
    # ==========================================================

    def segment(self, samples: Iterable[PositionSample]) -> List[TripCandidate]:
        """
        Split an ordered sample stream into trips.

        Args:
            samples: PositionSamples of ONE device, ascending gps_time

        Returns:
            List[TripCandidate]: Trips that passed the distance filter, in order
        """
        trips: List[TripCandidate] = []
        current: Optional[_OpenTrip] = None

        for sample in samples:
            moving = self.is_moving(sample)

            if current is None:
                if moving:
                    current = _OpenTrip(start=sample, last_moving=sample, max_speed=sample.speed)
                continue

            gap = (sample.gps_time - current.last_moving.gps_time).total_seconds()

            if gap >= self.stop_duration_s:
                self._close(current, trips)
                current = (
                    _OpenTrip(start=sample, last_moving=sample, max_speed=sample.speed)
                    if moving else None
                )
            elif moving:
                current.extend(sample)

        # End-of-stream flush
        if current is not None:
            self._close(current, trips)

        return trips

    def _close(self, trip: _OpenTrip, out: List[TripCandidate]) -> None:
        start, end = trip.start, trip.last_moving
        distance_km = calculate_haversine_distance(
            start.latitude, start.longitude, end.latitude, end.longitude
        ) / 1000.0

        if distance_km < self.min_distance_km:
            logger.debug(
                "[TRIP-DETECTOR] %s: discarded %s candidate (%.3f km < %.2f km)",
                start.device_id, start.gps_time.isoformat(), distance_km, self.min_distance_km,
            )
            return

        duration_s = (end.gps_time - start.gps_time).total_seconds()
        avg_speed = distance_km / (duration_s / 3600.0) if duration_s > 0 else 0.0

        out.append(TripCandidate(
            device_id=start.device_id,
            start_time=start.gps_time,
            end_time=end.gps_time,
            start_latitude=start.latitude,
            start_longitude=start.longitude,
            end_latitude=end.latitude,
            end_longitude=end.longitude,
            distance_km=round(distance_km, 3),
            avg_speed_kmh=round(avg_speed, 1),
            max_speed_kmh=round(trip.max_speed, 1),
        ))


# --------------------------------------------------------
# INSTANCIA GLOBAL (Singleton)
# --------------------------------------------------------
trip_detector = TripDetector()
