"""SQLite persistence for the forecast dashboard.

Holds the live project collection and the per-year revenue targets. The
forecast engine never reads this module; callers load a snapshot with
``load_projects`` and pass it in.
"""

from __future__ import annotations

import os
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Generator

from .normalize import generate_id
from .types import DEFAULT_START_YEAR, ForecastProject

DEFAULT_DB_PATH = Path(os.environ.get("DATABASE_PATH", "data/forecast.db"))

PROJECT_FIELDS = (
    "name",
    "type",
    "segment",
    "client",
    "parent_client",
    "country",
    "probability",
    "monthly_amount",
    "start_year",
    "start_month",
    "duration_months",
    "product",
)

# ---------------------------------------------------------------------------
# Connection
# ---------------------------------------------------------------------------

def get_connection(db_path: str | Path = DEFAULT_DB_PATH) -> sqlite3.Connection:
    conn = sqlite3.connect(str(db_path))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@contextmanager
def transaction(conn: sqlite3.Connection) -> Generator[sqlite3.Connection, None, None]:
    """Context manager that commits on success, rolls back on error."""
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise


# ---------------------------------------------------------------------------
# Schema & init
# ---------------------------------------------------------------------------

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS projects (
    id              TEXT    PRIMARY KEY,
    position        INTEGER NOT NULL,
    name            TEXT    NOT NULL,
    type            TEXT    NOT NULL CHECK (type IN ('backlog', 'pipeline', 'product')),
    segment         TEXT    NOT NULL CHECK (segment IN ('ignis', 'no-ignis')),
    client          TEXT    NOT NULL,
    parent_client   TEXT,
    country         TEXT    NOT NULL DEFAULT 'other',
    probability     REAL    NOT NULL CHECK (probability >= 0 AND probability <= 1),
    monthly_amount  REAL    NOT NULL CHECK (monthly_amount >= 0),
    start_year      INTEGER NOT NULL DEFAULT 2026,
    start_month     TEXT    NOT NULL,
    duration_months INTEGER NOT NULL CHECK (duration_months >= 1),
    product         TEXT,
    tcv             REAL    NOT NULL DEFAULT 0.0,
    updated_at      TEXT    NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS annual_targets (
    year    INTEGER PRIMARY KEY,
    amount  REAL    NOT NULL CHECK (amount >= 0)
);
"""


def init_db(db_path: str | Path = DEFAULT_DB_PATH) -> Path:
    """Create all tables. Idempotent."""
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = get_connection(db_path)
    try:
        conn.executescript(_SCHEMA)
        conn.commit()
    finally:
        conn.close()
    return db_path


# ---------------------------------------------------------------------------
# Projects CRUD
# ---------------------------------------------------------------------------

def _row_to_project(row: sqlite3.Row) -> ForecastProject:
    return ForecastProject.from_mapping(dict(row))


def create_project(conn: sqlite3.Connection, fields: dict[str, Any], project_id: str | None = None) -> str:
    project_id = project_id or generate_id()
    values = {k: fields.get(k) for k in PROJECT_FIELDS}
    if values["start_year"] is None:
        values["start_year"] = DEFAULT_START_YEAR
    if values["country"] is None:
        values["country"] = "other"
    tcv = float(values["monthly_amount"]) * int(values["duration_months"])
    with transaction(conn):
        position = conn.execute("SELECT COALESCE(MAX(position), -1) + 1 FROM projects").fetchone()[0]
        conn.execute(
            f"INSERT INTO projects (id, position, {', '.join(PROJECT_FIELDS)}, tcv) "
            f"VALUES (?, ?, {', '.join('?' for _ in PROJECT_FIELDS)}, ?)",
            (project_id, position, *values.values(), tcv),
        )
    return project_id


_PROJECT_ORDER = {
    "position": "position",
    "weighted": "monthly_amount * duration_months * probability DESC, position",
}


def list_projects(conn: sqlite3.Connection, sort: str = "position") -> list[dict[str, Any]]:
    """Stored rows in insertion order, or by descending weighted total."""
    if sort not in _PROJECT_ORDER:
        raise ValueError(f"Unknown sort '{sort}'. Known: {list(_PROJECT_ORDER)}")
    rows = conn.execute(f"SELECT * FROM projects ORDER BY {_PROJECT_ORDER[sort]}").fetchall()
    return [dict(r) for r in rows]


def load_projects(conn: sqlite3.Connection) -> list[ForecastProject]:
    """Snapshot of the live collection in insertion order."""
    rows = conn.execute("SELECT * FROM projects ORDER BY position").fetchall()
    return [_row_to_project(r) for r in rows]


def get_project(conn: sqlite3.Connection, project_id: str) -> dict[str, Any] | None:
    row = conn.execute("SELECT * FROM projects WHERE id = ?", (project_id,)).fetchone()
    return dict(row) if row else None


def update_project(conn: sqlite3.Connection, project_id: str, **kwargs: Any) -> bool:
    sets = {k: v for k, v in kwargs.items() if k in PROJECT_FIELDS}
    if not sets:
        return get_project(conn, project_id) is not None
    cols = ", ".join(f"{k} = ?" for k in sets)
    with transaction(conn):
        cur = conn.execute(
            f"UPDATE projects SET {cols}, updated_at = datetime('now') WHERE id = ?",
            (*sets.values(), project_id),
        )
        if cur.rowcount == 0:
            return False
        conn.execute(
            "UPDATE projects SET tcv = monthly_amount * duration_months WHERE id = ?",
            (project_id,),
        )
    return True


def delete_project(conn: sqlite3.Connection, project_id: str) -> bool:
    with transaction(conn):
        cur = conn.execute("DELETE FROM projects WHERE id = ?", (project_id,))
        return cur.rowcount > 0


def replace_projects(conn: sqlite3.Connection, projects: list[ForecastProject]) -> int:
    """Swap the whole collection for ``projects`` in one transaction."""
    with transaction(conn):
        conn.execute("DELETE FROM projects")
        for position, p in enumerate(projects):
            values = p.to_dict()
            conn.execute(
                f"INSERT INTO projects (id, position, {', '.join(PROJECT_FIELDS)}, tcv) "
                f"VALUES (?, ?, {', '.join('?' for _ in PROJECT_FIELDS)}, ?)",
                (p.id, position, *(values[k] for k in PROJECT_FIELDS), values["tcv"]),
            )
    return len(projects)


# ---------------------------------------------------------------------------
# Annual targets
# ---------------------------------------------------------------------------

def set_annual_target(conn: sqlite3.Connection, year: int, amount: float) -> None:
    with transaction(conn):
        conn.execute(
            "INSERT INTO annual_targets (year, amount) VALUES (?, ?) "
            "ON CONFLICT(year) DO UPDATE SET amount = excluded.amount",
            (year, amount),
        )


def get_annual_target(conn: sqlite3.Connection, year: int) -> float | None:
    row = conn.execute("SELECT amount FROM annual_targets WHERE year = ?", (year,)).fetchone()
    return float(row["amount"]) if row else None


def list_annual_targets(conn: sqlite3.Connection) -> dict[int, float]:
    rows = conn.execute("SELECT year, amount FROM annual_targets ORDER BY year").fetchall()
    return {int(r["year"]): float(r["amount"]) for r in rows}
