# src/Models/position.py

"""
Position Models

- PositionHistory: append-only log of normalized position samples. One row
  per (device_id, gps_time); re-delivered samples are ignored on insert.
- VehiclePosition: newest known position per device, overwritten on every
  position sync. The geofence checker and anomaly detector read from here.
"""

from sqlalchemy import (
    Column, Integer, String, Float, Boolean, DateTime,
    CheckConstraint, Index, func
)
from sqlalchemy.orm import declared_attr
from src.DB.base_class import Base


class PositionHistory(Base):
    """Normalized position sample (UTC gps_time, km/h speed)."""

    @declared_attr.directive
    def __tablename__(cls) -> str:
        return "position_history"

    id = Column(Integer, primary_key=True, autoincrement=True)

    device_id = Column(String(64), nullable=False)

    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    speed = Column(Float, nullable=False, default=0.0, doc="km/h")
    heading = Column(Float, nullable=True, doc="Degrees clockwise from north")
    altitude = Column(Float, nullable=True)
    ignition_on = Column(Boolean, nullable=False, default=False)
    battery_percent = Column(Integer, nullable=True)

    gps_time = Column(DateTime(timezone=True), nullable=False)
    recorded_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index('uq_position_device_gps_time', device_id, gps_time, unique=True),
        CheckConstraint('latitude >= -90 AND latitude <= 90', name='chk_position_latitude'),
        CheckConstraint('longitude >= -180 AND longitude <= 180', name='chk_position_longitude'),
        CheckConstraint('speed >= 0', name='chk_position_speed'),
    )

    def __repr__(self) -> str:
        return (
            f"<PositionHistory(device_id={self.device_id!r}, gps_time={self.gps_time}, "
            f"lat={self.latitude}, lon={self.longitude}, speed={self.speed})>"
        )


class VehiclePosition(Base):
    """Latest position per device."""

    @declared_attr.directive
    def __tablename__(cls) -> str:
        return "vehicle_positions"

    device_id = Column(String(64), primary_key=True)

    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    speed = Column(Float, nullable=False, default=0.0)
    heading = Column(Float, nullable=True)
    altitude = Column(Float, nullable=True)
    ignition_on = Column(Boolean, nullable=False, default=False)
    battery_percent = Column(Integer, nullable=True)
    is_online = Column(Boolean, nullable=False, default=True)

    gps_time = Column(DateTime(timezone=True), nullable=False)
    cached_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self) -> str:
        return (
            f"<VehiclePosition(device_id={self.device_id!r}, gps_time={self.gps_time}, "
            f"speed={self.speed})>"
        )
