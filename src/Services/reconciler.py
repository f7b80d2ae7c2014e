"""
Idempotent Reconciler
=====================
Write-through of externally sourced records so that re-processing the same
provider record any number of times yields exactly one logical row.

Strategy:
- Upsert on the record's natural key with the dialect's native
  INSERT .. ON CONFLICT DO UPDATE (PostgreSQL, SQLite)
- A pre-read of the key tells "inserted" from "updated" for the summary
- Every write runs in its own SAVEPOINT, so one rejected row never poisons
  the enclosing transaction

Two schemas:
Provider data lands in a loose raw mirror and in a stricter normalized
table. reconcile() writes the mirror first and the normalized table second.
When the normalized table rejects a row the mirror accepted, the row is
reported as failed (mirror status kept for audit) and the batch continues.

Usage:
    reconciler = Reconciler(db)
    outcome = reconciler.reconcile(
        mirror=WriteTarget(ProviderTrip, trip.to_mirror_row(), TRIP_KEY),
        normalized=WriteTarget(VehicleTrip, trip.to_vehicle_trip_row(), TRIP_KEY),
    )
    summary.add(outcome)
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence

from sqlalchemy import and_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.Core.logging_config import get_logger
from src.Repositories.upsert import dialect_insert

logger = get_logger(__name__)

INSERTED = "inserted"
UPDATED = "updated"
FAILED = "failed"
SKIPPED = "skipped"


# ==========================================================
# VALUE TYPES
# ==========================================================

@dataclass(frozen=True)
class WriteTarget:
    """One table write: model class, column values and natural-key columns."""
    model: Any
    values: Dict[str, Any]
    key_fields: Sequence[str]


@dataclass
class RowOutcome:
    status: str
    mirror_status: Optional[str] = None
    normalized_status: Optional[str] = None
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.status == FAILED


@dataclass
class ReconcileSummary:
    received: int = 0
    inserted: int = 0
    updated: int = 0
    failed: int = 0
    first_error: Optional[str] = None
    outcomes: list = field(default_factory=list)

    def add(self, outcome: RowOutcome) -> None:
        self.received += 1
        self.outcomes.append(outcome)
        if outcome.status == INSERTED:
            self.inserted += 1
        elif outcome.status == UPDATED:
            self.updated += 1
        elif outcome.status == FAILED:
            self.failed += 1
            if self.first_error is None:
                self.first_error = outcome.error


# ==========================================================
# RECONCILER
# ==========================================================

class Reconciler:
    """Per-row idempotent upserts bound to one session."""

    def __init__(self, db: Session):
        self.db = db

    def _exists(self, model, values: Dict[str, Any], key_fields: Sequence[str]) -> bool:
        table = model.__table__
        condition = and_(*[table.c[name] == values[name] for name in key_fields])
        return self.db.execute(select(table.c[key_fields[0]]).where(condition).limit(1)).first() is not None

    def upsert(self, model, values: Dict[str, Any], key_fields: Sequence[str]) -> str:
        """
        Insert or update one row keyed on key_fields.

        Returns:
            str: "inserted" or "updated"

        Raises:
            SQLAlchemyError: The row was rejected; the savepoint is rolled back
        """
        table = model.__table__
        missing = [name for name in key_fields if values.get(name) is None]
        if missing:
            raise ValueError(f"natural key field(s) missing: {', '.join(missing)}")

        with self.db.begin_nested():
            existed = self._exists(model, values, key_fields)

            stmt = dialect_insert(self.db, table).values(**values)
            update_columns = {
                name: stmt.excluded[name]
                for name in values
                if name not in key_fields and name in table.c
            }
            if update_columns:
                stmt = stmt.on_conflict_do_update(
                    index_elements=[table.c[name] for name in key_fields],
                    set_=update_columns,
                )
            else:
                stmt = stmt.on_conflict_do_nothing(
                    index_elements=[table.c[name] for name in key_fields],
                )
            self.db.execute(stmt)

        return UPDATED if existed else INSERTED

    def write(self, target: WriteTarget) -> RowOutcome:
        """Single-table reconciliation with per-row error capture."""
        try:
            status = self.upsert(target.model, target.values, target.key_fields)
        except (SQLAlchemyError, ValueError) as exc:
            message = _describe(exc)
            logger.warning("[RECONCILER] %s rejected row %s: %s",
                           target.model.__tablename__, _key_repr(target), message)
            return RowOutcome(status=FAILED, normalized_status=FAILED, error=message)
        return RowOutcome(status=status, normalized_status=status)

    def reconcile(
        self,
        mirror: Optional[WriteTarget] = None,
        normalized: Optional[WriteTarget] = None,
    ) -> RowOutcome:
        """
        Write one record to the raw mirror and the normalized table.

        The overall status follows the normalized write when there is one,
        so the caller's summary reflects what the application can see.
        """
        outcome = RowOutcome(status=SKIPPED)

        if mirror is not None:
            try:
                outcome.mirror_status = self.upsert(mirror.model, mirror.values, mirror.key_fields)
                outcome.status = outcome.mirror_status
            except (SQLAlchemyError, ValueError) as exc:
                outcome.mirror_status = FAILED
                outcome.status = FAILED
                outcome.error = f"mirror: {_describe(exc)}"
                logger.warning("[RECONCILER] mirror %s rejected row %s: %s",
                               mirror.model.__tablename__, _key_repr(mirror), outcome.error)
                return outcome

        if normalized is not None:
            try:
                outcome.normalized_status = self.upsert(
                    normalized.model, normalized.values, normalized.key_fields
                )
                outcome.status = outcome.normalized_status
            except (SQLAlchemyError, ValueError) as exc:
                outcome.normalized_status = FAILED
                outcome.status = FAILED
                outcome.error = f"normalized: {_describe(exc)}"
                logger.warning("[RECONCILER] %s rejected row %s (mirror=%s): %s",
                               normalized.model.__tablename__, _key_repr(normalized),
                               outcome.mirror_status, outcome.error)

        return outcome


# ==========================================================
# HELPERS
# ==========================================================

def _describe(exc: Exception) -> str:
    original = getattr(exc, "orig", None)
    text = str(original if original is not None else exc) or type(exc).__name__
    return text.splitlines()[0]


def _key_repr(target: WriteTarget) -> str:
    return ", ".join(f"{name}={target.values.get(name)!r}" for name in target.key_fields)
