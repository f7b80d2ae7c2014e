# src/Models/alarm.py
from sqlalchemy import Column, Integer, String, Float, DateTime, Index, CheckConstraint, func
from sqlalchemy.orm import declared_attr
from src.DB.base_class import Base
from src.DB.types import JSONPayload


class ProviderAlarm(Base):
    """
    Alarm reported by the provider inside a lastposition record.

    Deduplicated on (device_id, alarm_time, alarm_code); a re-delivered alarm
    overwrites the derived fields of the existing row.
    """

    @declared_attr.directive
    def __tablename__(cls) -> str:
        return "provider_alarms"

    id = Column(Integer, primary_key=True, autoincrement=True)
    device_id = Column(String(64), nullable=False)

    alarm_code = Column(Integer, nullable=False)
    alarm_description = Column(String(500), nullable=True)
    alarm_description_en = Column(String(500), nullable=True)
    video_alarm_code = Column(Integer, nullable=True)
    video_alarm_description = Column(String(500), nullable=True)

    severity = Column(String(10), nullable=False, server_default='info')

    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    speed_kmh = Column(Float, nullable=True)
    altitude = Column(Float, nullable=True)
    heading = Column(Float, nullable=True)

    alarm_time = Column(DateTime(timezone=True), nullable=False)
    raw_data = Column(JSONPayload, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index('uq_provider_alarms_natural_key', device_id, alarm_time, alarm_code, unique=True),
        Index('idx_provider_alarms_severity', severity),
        CheckConstraint(
            "severity IN ('critical', 'error', 'warning', 'info')",
            name='chk_alarm_severity'
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<ProviderAlarm(device_id={self.device_id!r}, alarm_code={self.alarm_code}, "
            f"severity={self.severity!r}, alarm_time={self.alarm_time})>"
        )
