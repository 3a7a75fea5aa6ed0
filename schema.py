from __future__ import annotations

import logging

from sqlalchemy import inspect, select, text
from sqlalchemy.orm import Session

from models import ACTIVE_CONTRACT_WHERE, PENDING_CHANGE_WHERE, Leave
from services.leave_credits import inclusive_days
from services.school_year import school_year


_log = logging.getLogger("schema")


def _quoted(name: str) -> str:
    return '"' + str(name).replace('"', '""') + '"'


def _ensure_column(engine, *, table: str, column: str, ddl_type: str, default_sql: str = "''") -> None:
    insp = inspect(engine)
    cols = {c.get("name") for c in insp.get_columns(table)}
    if column in cols:
        return
    ddl = f"ALTER TABLE {_quoted(table)} ADD COLUMN {_quoted(column)} {ddl_type} DEFAULT {default_sql}"
    with engine.begin() as conn:
        conn.execute(text(ddl))
    _log.info("added column %s.%s", table, column)


def _ensure_ddl(engine, ddl: str) -> None:
    with engine.begin() as conn:
        conn.execute(text(ddl))


def _ensure_partial_unique_index(engine, *, name: str, table: str, column: str, where: str) -> None:
    _ensure_ddl(
        engine,
        ddl=(
            f"CREATE UNIQUE INDEX IF NOT EXISTS {_quoted(name)} "
            f"ON {_quoted(table)}({_quoted(column)}) WHERE {where}"
        ),
    )


def ensure_schema(engine) -> None:
    """
    Lightweight, idempotent schema evolution (no Alembic).

    Adds columns introduced after the first release, makes sure the partial unique
    indexes exist on databases created before them, and backfills leave metadata.
    """

    # Employees: PDS fields added later
    _ensure_column(engine, table="employees", column="contractNumber", ddl_type="TEXT")
    _ensure_column(engine, table="employees", column="spouseAddress", ddl_type="TEXT")
    _ensure_column(engine, table="employees", column="trainingsJson", ddl_type="TEXT", default_sql="'[]'")
    _ensure_column(engine, table="employees", column="authVersion", ddl_type="INTEGER", default_sql="0")

    # Leaves: fractional day counts and school year tagging
    _ensure_column(engine, table="leaves", column="schoolYear", ddl_type="TEXT", default_sql="NULL")
    _ensure_column(engine, table="leaves", column="daysCount", ddl_type="NUMERIC(10, 2)", default_sql="NULL")

    # Contracts: signed contract file
    _ensure_column(engine, table="contracts", column="storageKey", ddl_type="TEXT")
    _ensure_column(engine, table="contracts", column="fileName", ddl_type="TEXT")
    _ensure_column(engine, table="contracts", column="mimeType", ddl_type="TEXT")

    # Audit log: before/after diffs
    _ensure_column(engine, table="audit_log", column="beforeJson", ddl_type="TEXT")
    _ensure_column(engine, table="audit_log", column="afterJson", ddl_type="TEXT")

    _ensure_partial_unique_index(
        engine,
        name="uq_contracts_one_active_per_employee",
        table="contracts",
        column="employeeId",
        where=ACTIVE_CONTRACT_WHERE,
    )
    _ensure_partial_unique_index(
        engine,
        name="uq_profile_change_one_pending_per_employee",
        table="profile_change_requests",
        column="employeeId",
        where=PENDING_CHANGE_WHERE,
    )

    _backfill_leave_metadata(engine)


def _backfill_leave_metadata(engine) -> None:
    """Leaves created before schoolYear/daysCount existed get both derived from their dates."""
    with Session(engine) as db:
        updated = 0
        rows = db.execute(select(Leave).where((Leave.schoolYear.is_(None)) | (Leave.daysCount.is_(None)))).scalars().all()
        for leave in rows:
            if not leave.startDate or not leave.endDate:
                continue
            if not leave.schoolYear:
                leave.schoolYear = school_year(leave.startDate)
            if leave.daysCount is None:
                leave.daysCount = inclusive_days(leave.startDate, leave.endDate)
            updated += 1

        if updated:
            db.commit()
            _log.info("Leave metadata backfill complete updated=%s", updated)
