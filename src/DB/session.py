"""
src/DB/session.py
======================================
Database Session Configuration Module
======================================

This module establishes the SQLAlchemy database connection and session
management for the telemetry pipeline.

Architecture:
------------
- Engine: Manages the database connection pool and dialect
- SessionLocal: Factory for creating database sessions

Usage Example:
-------------
    from src.DB.session import SessionLocal

    db = SessionLocal()
    try:
        summary = sync_trips(db, gateway, device_ids=["358899051234567"])
    finally:
        db.close()

Session Configuration:
---------------------
- autocommit=False: Transactions must be explicitly committed
- autoflush=False: Changes are not automatically flushed before queries
- bind=engine: Sessions are bound to the configured database engine
"""

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from src.Core.config import settings


# ============================================================
# DATABASE ENGINE CONFIGURATION
# ============================================================
_connect_args = {}
if settings.DATABASE_URL.startswith("sqlite"):
    # Route handlers run in a threadpool
    _connect_args["check_same_thread"] = False

engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
    connect_args=_connect_args,
)


def enable_sqlite_savepoints(target: Engine) -> None:
    """
    Let pysqlite honour SAVEPOINT (Session.begin_nested).

    The driver normally issues BEGIN lazily and breaks nested transactions;
    hand transaction control to SQLAlchemy instead.
    """

    @event.listens_for(target, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(target, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")


if engine.dialect.name == "sqlite":
    enable_sqlite_savepoints(engine)


# ============================================================
# SESSION FACTORY CONFIGURATION
# ============================================================
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

