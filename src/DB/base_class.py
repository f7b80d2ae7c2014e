"""
src/DB/base_class.py
=================================
SQLAlchemy Base Model Definition
=================================

Declarative base for every table in the telemetry pipeline.

- Extends SQLAlchemy's DeclarativeBase (2.0 style)
- Default table name is the lowercased class name; models that mirror an
  existing schema override __tablename__ with their own directive
- All models must inherit from Base to be registered in Base.metadata and
  discovered by Alembic

Usage Example:
-------------
    from src.DB.base_class import Base
    from sqlalchemy import Column, String

    class Device(Base):
        @declared_attr.directive
        def __tablename__(cls) -> str:
            return "devices"

        device_id = Column(String(64), primary_key=True)
"""

from sqlalchemy.orm import DeclarativeBase, declared_attr


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models in the application."""

    @declared_attr.directive
    def __tablename__(cls) -> str:
        """
        Generate table name from class name using lowercase convention.

        Examples:
            PipelineLock -> 'pipelinelock'
        """
        return cls.__name__.lower()
