# src/Models/app_setting.py
from sqlalchemy import Column, String, Text, DateTime, func
from sqlalchemy.orm import declared_attr
from src.DB.base_class import Base
from src.DB.types import JSONPayload


class AppSetting(Base):
    """
    Keyed settings row.

    Known keys:
    - provider_token: session token (value), expiry (expires_at) and
      metadata {"serverid", "username", "refreshed_at"}
    - provider_rate_limit_state: shared limiter state in metadata
    """

    @declared_attr.directive
    def __tablename__(cls) -> str:
        return "app_settings"

    key = Column(String(100), primary_key=True)
    value = Column(Text, nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    extra_metadata = Column('metadata', JSONPayload, nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self) -> str:
        return f"<AppSetting(key={self.key!r}, expires_at={self.expires_at})>"
