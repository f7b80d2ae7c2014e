# src/Models/command_log.py
from sqlalchemy import Column, Integer, String, Text, DateTime, CheckConstraint, Index, func
from sqlalchemy.orm import declared_attr
from src.DB.base_class import Base
from src.DB.types import JSONPayload


class VehicleCommandLog(Base):
    """One row per command execution attempt, local or remote."""

    @declared_attr.directive
    def __tablename__(cls) -> str:
        return "vehicle_command_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    device_id = Column(String(64), nullable=False)
    command_type = Column(String(40), nullable=False)
    payload = Column(JSONPayload, nullable=True)

    status = Column(String(20), nullable=False, server_default='pending')
    provider_command_id = Column(String(64), nullable=True)
    result = Column(JSONPayload, nullable=True)
    error_message = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    executed_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index('idx_command_logs_device', device_id, created_at),
        CheckConstraint(
            "status IN ('pending', 'executing', 'success', 'sent_unconfirmed', 'failed')",
            name='chk_command_status'
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<VehicleCommandLog(id={self.id}, device_id={self.device_id!r}, "
            f"command_type={self.command_type!r}, status={self.status!r})>"
        )
