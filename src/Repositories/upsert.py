# src/Repositories/upsert.py
"""
Dialect-native INSERT .. ON CONFLICT support.

PostgreSQL (production) and SQLite (tests) both implement ON CONFLICT with
the same SQLAlchemy API; this helper picks the right insert() construct for
the session's bind.
"""

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session


def dialect_insert(db: Session, model):
    """
    Return an Insert construct supporting on_conflict_do_update/do_nothing.

    Raises:
        NotImplementedError: Backend without ON CONFLICT support
    """
    name = db.get_bind().dialect.name
    if name == "postgresql":
        return postgresql.insert(model)
    if name == "sqlite":
        return sqlite.insert(model)
    raise NotImplementedError(f"Upsert is not supported on the '{name}' dialect")
