# src/Models/sync_status.py
from sqlalchemy import Column, Integer, String, Text, DateTime, CheckConstraint, func
from sqlalchemy.orm import declared_attr
from src.DB.base_class import Base


class ProviderSyncStatus(Base):
    """
    Per-device sync cursor and liveness signal.

    sync_status moves idle -> syncing -> completed | error on every pass.
    The *_synced_at columns are watermarks: the newest provider timestamp
    stored for that kind of record, used as the next pass's resumption point.
    """

    @declared_attr.directive
    def __tablename__(cls) -> str:
        return "provider_sync_status"

    device_id = Column(String(64), primary_key=True)

    sync_status = Column(String(20), nullable=False, server_default='idle')
    current_stage = Column(String(30), nullable=True)

    last_position_synced_at = Column(DateTime(timezone=True), nullable=True)
    last_trip_synced_at = Column(DateTime(timezone=True), nullable=True)
    last_alarm_synced_at = Column(DateTime(timezone=True), nullable=True)
    last_mileage_synced_at = Column(DateTime(timezone=True), nullable=True)

    trips_synced_count = Column(Integer, nullable=False, default=0)
    alarms_synced_count = Column(Integer, nullable=False, default=0)

    last_error = Column(Text, nullable=True)
    last_run_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint(
            "sync_status IN ('idle', 'syncing', 'completed', 'error')",
            name='chk_sync_status_value'
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<ProviderSyncStatus(device_id={self.device_id!r}, "
            f"sync_status={self.sync_status!r}, stage={self.current_stage!r})>"
        )
