# src/Models/trip_analytics.py

"""
Driving-behaviour results attached to a VehicleTrip.

- HarshEvent: one detected kinematic outlier. Written once per analysis pass
  and never edited; a forced re-analysis replaces the trip's events.
- TripAnalytics: per-trip score summary, one-to-one with the trip.
"""

from sqlalchemy import (
    Column, Integer, String, Float, Text, DateTime, ForeignKey,
    CheckConstraint, Index, func
)
from sqlalchemy.orm import declared_attr
from src.DB.base_class import Base


class HarshEvent(Base):

    @declared_attr.directive
    def __tablename__(cls) -> str:
        return "trip_harsh_events"

    id = Column(Integer, primary_key=True, autoincrement=True)

    trip_id = Column(
        Integer,
        ForeignKey('vehicle_trips.id', ondelete='CASCADE'),
        nullable=False,
    )
    device_id = Column(String(64), nullable=False)

    event_type = Column(String(30), nullable=False)
    occurred_at = Column(DateTime(timezone=True), nullable=False)
    magnitude = Column(Float, nullable=False, doc="km/h/s for speed events, deg/s for cornering")
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)

    __table_args__ = (
        Index('idx_harsh_events_trip', trip_id),
        CheckConstraint(
            "event_type IN ('harsh_braking', 'harsh_acceleration', 'harsh_cornering')",
            name='chk_harsh_event_type'
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<HarshEvent(trip_id={self.trip_id}, event_type={self.event_type!r}, "
            f"magnitude={self.magnitude})>"
        )


class TripAnalytics(Base):

    @declared_attr.directive
    def __tablename__(cls) -> str:
        return "trip_analytics"

    id = Column(Integer, primary_key=True, autoincrement=True)

    trip_id = Column(
        Integer,
        ForeignKey('vehicle_trips.id', ondelete='CASCADE'),
        nullable=False,
        unique=True,
    )
    device_id = Column(String(64), nullable=False)

    driver_score = Column(Integer, nullable=False)
    harsh_braking_count = Column(Integer, nullable=False, default=0)
    harsh_acceleration_count = Column(Integer, nullable=False, default=0)
    harsh_cornering_count = Column(Integer, nullable=False, default=0)
    summary_text = Column(Text, nullable=False)

    analyzed_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint('driver_score >= 0 AND driver_score <= 100', name='chk_driver_score_range'),
    )

    def __repr__(self) -> str:
        return f"<TripAnalytics(trip_id={self.trip_id}, driver_score={self.driver_score})>"
