# src/Models/proactive_event.py
from sqlalchemy import Column, Integer, String, Text, DateTime, Index, func
from sqlalchemy.orm import declared_attr
from src.DB.base_class import Base
from src.DB.types import JSONPayload


class ProactiveVehicleEvent(Base):
    """
    User-facing notification record (geofence arrivals, anomalies).

    Only the record is produced here; delivery is handled elsewhere.
    """

    @declared_attr.directive
    def __tablename__(cls) -> str:
        return "proactive_vehicle_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    device_id = Column(String(64), nullable=False)

    event_type = Column(String(50), nullable=False)
    severity = Column(String(10), nullable=False, server_default='info')
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    extra_metadata = Column('metadata', JSONPayload, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index('idx_proactive_events_device_type', device_id, event_type, created_at),
    )

    def __repr__(self) -> str:
        return (
            f"<ProactiveVehicleEvent(device_id={self.device_id!r}, "
            f"event_type={self.event_type!r}, title={self.title!r})>"
        )
