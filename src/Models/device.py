# src/Models/device.py

"""
Device Model - Tracked Vehicle Registry

The devices table is the registry of provider device ids the pipeline works
on. Stages invoked without an explicit device list iterate over every active
row.

Database Table: devices
Primary Key: device_id (provider device id / IMEI)
"""

from sqlalchemy.orm import declared_attr
from sqlalchemy import Column, String, DateTime, Boolean
from sqlalchemy.sql import func
from src.DB.base_class import Base


class Device(Base):
    """
    SQLAlchemy model representing a tracked vehicle.

    Schema:
    - device_id (PK): Provider device identifier
    - device_name: Display name used in notifications ("{vehicle} has left X")
    - is_active: Inactive devices are skipped by "all devices" invocations
    - created_at / last_seen: Registry bookkeeping
    """

    @declared_attr.directive
    def __tablename__(cls) -> str:
        """Fixed table name for the device registry"""
        return "devices"

    # ============================================================
    # Primary Key
    # ============================================================
    device_id = Column(
        String(64),
        primary_key=True,
        doc="Provider device identifier"
    )

    # ============================================================
    # Device Metadata
    # ============================================================
    device_name = Column(
        String(200),
        nullable=True,
        doc="Human-readable vehicle name for notifications"
    )

    # ============================================================
    # Operational State
    # ============================================================
    is_active = Column(
        Boolean,
        default=True,
        nullable=False,
        doc="Whether the device is included in scheduled pipeline passes"
    )

    # ============================================================
    # Timestamps
    # ============================================================
    created_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    last_seen = Column(
        DateTime(timezone=True),
        nullable=True,
        doc="GPS time of the newest position stored for this device"
    )

    def __repr__(self) -> str:
        return (
            f"<Device(device_id={self.device_id!r}, "
            f"device_name={self.device_name!r}, is_active={self.is_active})>"
        )
