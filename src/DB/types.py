"""
src/DB/types.py
===============
Column types shared by several models.

JSONPayload stores raw provider payloads and free-form metadata. It maps to
JSONB on PostgreSQL and to the generic JSON type elsewhere (SQLite in tests).
"""

from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB

JSONPayload = JSON().with_variant(JSONB(), "postgresql")
