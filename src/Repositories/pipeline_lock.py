# src/Repositories/pipeline_lock.py
"""
Pipeline Lock Repository - named leases in the database.

A lease is held by one holder until it is released or its expires_at passes.
Acquisition is a single conditional write, so two processes racing for the
same name cannot both win:

- no row: INSERT (a concurrent INSERT loses on the primary key)
- expired row, or a row already owned by the caller: UPDATE .. WHERE
  expires_at < now OR holder = caller, then check rowcount
"""

from datetime import datetime, timedelta

from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from src.Models.pipeline_lock import PipelineLock


def acquire_lock(db: Session, name: str, holder: str, ttl_seconds: int, now: datetime) -> bool:
    """Try to take the lease. Commits on success."""
    expires_at = now + timedelta(seconds=ttl_seconds)

    stmt = (
        update(PipelineLock)
        .where(
            PipelineLock.name == name,
            or_(PipelineLock.expires_at < now, PipelineLock.holder == holder),
        )
        .values(holder=holder, acquired_at=now, expires_at=expires_at)
        .execution_options(synchronize_session=False)
    )
    if db.execute(stmt).rowcount == 1:
        db.commit()
        return True

    if db.get(PipelineLock, name) is not None:
        db.rollback()
        return False

    try:
        with db.begin_nested():
            db.add(PipelineLock(name=name, holder=holder, acquired_at=now, expires_at=expires_at))
    except IntegrityError:
        db.rollback()
        return False

    db.commit()
    return True


def release_lock(db: Session, name: str, holder: str) -> None:
    """Drop the lease if the caller still holds it."""
    db.query(PipelineLock).filter(
        PipelineLock.name == name,
        PipelineLock.holder == holder,
    ).delete(synchronize_session=False)
    db.commit()


def renew_lock(db: Session, name: str, holder: str, ttl_seconds: int, now: datetime) -> bool:
    """Push the expiry of a lease the caller still holds. Commits on success."""
    stmt = (
        update(PipelineLock)
        .where(PipelineLock.name == name, PipelineLock.holder == holder)
        .values(expires_at=now + timedelta(seconds=ttl_seconds))
        .execution_options(synchronize_session=False)
    )
    if db.execute(stmt).rowcount != 1:
        return False
    db.commit()
    return True
