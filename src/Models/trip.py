# src/Models/trip.py
from sqlalchemy import (
    Column, Integer, String, Float, DateTime, CheckConstraint, Index
)
from sqlalchemy.sql import func
from sqlalchemy.orm import declared_attr
from src.DB.base_class import Base
from src.DB.types import JSONPayload


class ProviderTrip(Base):
    """
    Raw mirror of the provider's querytrips rows.

    Constraints are deliberately loose: the provider occasionally reports
    trips without an end time or coordinates, and the mirror keeps them for
    audit. Unique on (device_id, start_time).
    """

    @declared_attr.directive
    def __tablename__(cls) -> str:
        return "provider_trips"

    id = Column(Integer, primary_key=True, autoincrement=True)
    device_id = Column(String(64), nullable=False)

    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=True)

    start_latitude = Column(Float, nullable=True)
    start_longitude = Column(Float, nullable=True)
    end_latitude = Column(Float, nullable=True)
    end_longitude = Column(Float, nullable=True)

    distance_km = Column(Float, nullable=True)
    avg_speed_kmh = Column(Float, nullable=True)
    max_speed_kmh = Column(Float, nullable=True)
    duration_seconds = Column(Integer, nullable=True)

    raw_data = Column(JSONPayload, nullable=True)

    synced_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index('uq_provider_trips_device_start', device_id, start_time, unique=True),
    )

    def __repr__(self) -> str:
        return (
            f"<ProviderTrip(device_id={self.device_id!r}, start_time={self.start_time}, "
            f"distance_km={self.distance_km})>"
        )


class VehicleTrip(Base):
    """
    Normalized trip segment consumed by the application.

    Responsibilities:
    - One row per (device_id, start_time), whether the trip came from the
      provider or from segmenting position history
    - duration_seconds is derived from start/end by the writer
    - Stricter than the mirror: a complete trip has an end time, start and
      end coordinates, and a non-negative distance

    Related models:
    - TripAnalytics (1:1) - driver score summary
    - HarshEvent (1:N) - detected harsh events
    """

    @declared_attr.directive
    def __tablename__(cls) -> str:
        return "vehicle_trips"

    # ========================================
    # PRIMARY KEY / IDENTITY
    # ========================================
    id = Column(Integer, primary_key=True, autoincrement=True)

    device_id = Column(String(64), nullable=False)

    source = Column(
        String(20),
        nullable=False,
        server_default='provider',
        doc="'provider' (querytrips) or 'position_history' (segmented locally)"
    )

    # ========================================
    # TIMESTAMPS
    # ========================================
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=False)

    # ========================================
    # LOCATIONS
    # ========================================
    start_latitude = Column(Float, nullable=False)
    start_longitude = Column(Float, nullable=False)
    end_latitude = Column(Float, nullable=False)
    end_longitude = Column(Float, nullable=False)

    # ========================================
    # METRICS
    # ========================================
    distance_km = Column(Float, nullable=False, default=0.0)
    avg_speed_kmh = Column(Float, nullable=True)
    max_speed_kmh = Column(Float, nullable=True)
    duration_seconds = Column(Integer, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index('uq_vehicle_trips_device_start', device_id, start_time, unique=True),
        Index('idx_vehicle_trips_device_end', device_id, end_time),

        CheckConstraint('end_time >= start_time', name='chk_vehicle_trip_times'),
        CheckConstraint('distance_km >= 0', name='chk_vehicle_trip_distance'),
        CheckConstraint('duration_seconds >= 0', name='chk_vehicle_trip_duration'),
        CheckConstraint(
            "source IN ('provider', 'position_history')",
            name='chk_vehicle_trip_source'
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<VehicleTrip(id={self.id}, device_id={self.device_id!r}, "
            f"start_time={self.start_time}, end_time={self.end_time}, "
            f"distance_km={self.distance_km})>"
        )
