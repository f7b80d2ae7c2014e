# src/Models/mileage.py
from sqlalchemy import Column, Integer, String, Float, Date, DateTime, Index, func
from sqlalchemy.orm import declared_attr
from src.DB.base_class import Base
from src.DB.types import JSONPayload


class MileageDetail(Base):
    """Daily mileage/fuel report from reportmileagedetail, one row per device and day."""

    @declared_attr.directive
    def __tablename__(cls) -> str:
        return "mileage_details"

    id = Column(Integer, primary_key=True, autoincrement=True)
    device_id = Column(String(64), nullable=False)
    statistics_day = Column(Date, nullable=False)
    provider_record_id = Column(String(64), nullable=True)

    start_time = Column(DateTime(timezone=True), nullable=True)
    end_time = Column(DateTime(timezone=True), nullable=True)

    begin_distance = Column(Float, nullable=True, doc="Odometer at start (m)")
    end_distance = Column(Float, nullable=True, doc="Odometer at end (m)")
    total_distance = Column(Float, nullable=True, doc="Meters")
    avg_speed_kmh = Column(Float, nullable=True)
    over_speed = Column(Integer, nullable=True)
    total_acc_seconds = Column(Integer, nullable=True)

    begin_oil = Column(Float, nullable=True)
    end_oil = Column(Float, nullable=True)
    add_oil = Column(Float, nullable=True)
    leak_oil = Column(Float, nullable=True)
    oil_per_100km = Column(Float, nullable=True)

    raw_data = Column(JSONPayload, nullable=True)
    synced_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index('uq_mileage_device_day', device_id, statistics_day, unique=True),
    )

    def __repr__(self) -> str:
        return (
            f"<MileageDetail(device_id={self.device_id!r}, day={self.statistics_day}, "
            f"total_distance={self.total_distance})>"
        )
