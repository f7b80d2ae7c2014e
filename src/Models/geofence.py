# src/Models/geofence.py

"""
Geofence Models

- GeofenceZone: operator-owned circular zone (center + radius). Optionally
  mirrored to a provider geofence record.
- GeofenceMonitor: binds one device to one zone (linked or inline) with
  trigger mode, active window, one-time flag and cooldown state. The only
  long-lived mutable state touched by the geofence checker.
- GeofenceEvent: immutable record of a fired enter/exit transition.
"""

from sqlalchemy import (
    Column, Integer, String, Float, Boolean, DateTime, ForeignKey,
    CheckConstraint, Index, func
)
from sqlalchemy.orm import declared_attr, relationship
from src.DB.base_class import Base
from src.DB.types import JSONPayload


class GeofenceZone(Base):

    @declared_attr.directive
    def __tablename__(cls) -> str:
        return "geofence_zones"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    zone_type = Column(String(50), nullable=False, server_default='custom')

    center_latitude = Column(Float, nullable=False)
    center_longitude = Column(Float, nullable=False)
    radius_meters = Column(Float, nullable=False)

    is_active = Column(Boolean, nullable=False, default=True)

    provider_record_id = Column(String(64), nullable=True)
    provider_category_id = Column(String(64), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        CheckConstraint('radius_meters > 0', name='chk_zone_radius_positive'),
    )

    def __repr__(self) -> str:
        return (
            f"<GeofenceZone(id={self.id}, name={self.name!r}, "
            f"radius_meters={self.radius_meters})>"
        )


class GeofenceMonitor(Base):

    @declared_attr.directive
    def __tablename__(cls) -> str:
        return "geofence_monitors"

    id = Column(Integer, primary_key=True, autoincrement=True)
    device_id = Column(String(64), nullable=False)

    # ========================================
    # ZONE (linked or inline)
    # ========================================
    zone_id = Column(
        Integer,
        ForeignKey('geofence_zones.id', ondelete='CASCADE'),
        nullable=True,
    )
    location_name = Column(String(200), nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    radius_meters = Column(Float, nullable=True)

    # ========================================
    # TRIGGER CONFIGURATION
    # ========================================
    trigger_on = Column(String(10), nullable=False, server_default='both')
    active_days = Column(JSONPayload, nullable=True, doc="Weekdays, 0 = Sunday")
    active_from = Column(String(5), nullable=True, doc="HH:MM, display time")
    active_until = Column(String(5), nullable=True, doc="HH:MM, display time")
    one_time = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)

    # ========================================
    # CHECKER STATE
    # ========================================
    vehicle_inside = Column(Boolean, nullable=False, default=False)
    last_checked_at = Column(DateTime(timezone=True), nullable=True)
    last_triggered_at = Column(DateTime(timezone=True), nullable=True)
    trigger_count = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    zone = relationship("GeofenceZone", lazy="joined")

    __table_args__ = (
        Index('idx_geofence_monitors_active', is_active),
        Index('idx_geofence_monitors_device', device_id),
        CheckConstraint(
            "trigger_on IN ('enter', 'exit', 'both')",
            name='chk_monitor_trigger_on'
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<GeofenceMonitor(id={self.id}, device_id={self.device_id!r}, "
            f"trigger_on={self.trigger_on!r}, vehicle_inside={self.vehicle_inside})>"
        )


class GeofenceEvent(Base):

    @declared_attr.directive
    def __tablename__(cls) -> str:
        return "geofence_events"

    id = Column(Integer, primary_key=True, autoincrement=True)

    monitor_id = Column(
        Integer,
        ForeignKey('geofence_monitors.id', ondelete='CASCADE'),
        nullable=False,
    )
    device_id = Column(String(64), nullable=False)
    zone_id = Column(Integer, nullable=True)

    event_type = Column(String(10), nullable=False)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    occurred_at = Column(DateTime(timezone=True), nullable=False)

    extra_metadata = Column('metadata', JSONPayload, nullable=True)

    __table_args__ = (
        Index('idx_geofence_events_monitor', monitor_id, occurred_at),
        CheckConstraint("event_type IN ('enter', 'exit')", name='chk_geofence_event_type'),
    )

    def __repr__(self) -> str:
        return (
            f"<GeofenceEvent(monitor_id={self.monitor_id}, device_id={self.device_id!r}, "
            f"event_type={self.event_type!r}, occurred_at={self.occurred_at})>"
        )
