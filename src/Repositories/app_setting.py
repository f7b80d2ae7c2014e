# src/Repositories/app_setting.py
"""
App Settings Repository - keyed rows shared by every process.

The provider token and the shared rate-limiter state live here. Reads always
go to the database (populate_existing) so a value refreshed by another
process is never shadowed by the session's identity map.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from src.Models.app_setting import AppSetting
from src.Repositories.upsert import dialect_insert


def get_setting(db: Session, key: str, for_update: bool = False) -> Optional[AppSetting]:
    """
    Fresh read of one settings row.

    for_update locks the row until the next commit on backends that support
    SELECT .. FOR UPDATE (ignored by SQLite).
    """
    stmt = (
        select(AppSetting)
        .where(AppSetting.key == key)
        .execution_options(populate_existing=True)
    )
    if for_update:
        stmt = stmt.with_for_update()
    return db.execute(stmt).scalar_one_or_none()


def upsert_setting(
    db: Session,
    key: str,
    value: Optional[str] = None,
    expires_at: Optional[datetime] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> None:
    """Insert or overwrite a settings row (flushes, does not commit)."""
    table = AppSetting.__table__
    values = {
        "key": key,
        "value": value,
        "expires_at": expires_at,
        "metadata": metadata,
    }
    stmt = dialect_insert(db, table).values(**values)
    stmt = stmt.on_conflict_do_update(
        index_elements=[table.c.key],
        set_={
            "value": stmt.excluded["value"],
            "expires_at": stmt.excluded["expires_at"],
            "metadata": stmt.excluded["metadata"],
            "updated_at": func.now(),
        },
    )
    db.execute(stmt)


def expire_setting(
    db: Session,
    key: str,
    when: datetime,
    only_if_value: Optional[str] = None,
) -> bool:
    """
    Mark a row expired. Returns False if nothing was updated.

    With only_if_value the row is expired only while it still holds that
    value; a value written by another process in the meantime is left alone.
    """
    stmt = (
        update(AppSetting)
        .where(AppSetting.key == key)
        .values(expires_at=when)
        .execution_options(synchronize_session=False)
    )
    if only_if_value is not None:
        stmt = stmt.where(AppSetting.value == only_if_value)
    return db.execute(stmt).rowcount > 0
