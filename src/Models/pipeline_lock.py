# src/Models/pipeline_lock.py
from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import declared_attr
from src.DB.base_class import Base


class PipelineLock(Base):
    """Named lease; a holder owns the lock until expires_at."""

    @declared_attr.directive
    def __tablename__(cls) -> str:
        return "pipeline_locks"

    name = Column(String(100), primary_key=True)
    holder = Column(String(100), nullable=False)
    acquired_at = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return (
            f"<PipelineLock(name={self.name!r}, holder={self.holder!r}, "
            f"expires_at={self.expires_at})>"
        )
