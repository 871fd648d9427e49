from __future__ import annotations

from pathlib import Path
import sqlite3

import pytest

from revforecast.db import (
    create_project,
    delete_project,
    get_annual_target,
    get_connection,
    get_project,
    init_db,
    list_annual_targets,
    list_projects,
    load_projects,
    replace_projects,
    set_annual_target,
    transaction,
    update_project,
)
from revforecast.seed import SEED_RECORDS, clear_projects, seed_projects


@pytest.fixture()
def db(tmp_path: Path):
    db_path = tmp_path / "test.db"
    init_db(db_path)
    conn = get_connection(db_path)
    yield conn
    conn.close()


def _fields(**overrides):
    fields = {
        "name": "Piloto",
        "type": "pipeline",
        "segment": "no-ignis",
        "client": "Acme",
        "country": "usa",
        "probability": 0.5,
        "monthly_amount": 1000.0,
        "start_month": "oct",
        "duration_months": 6,
    }
    fields.update(overrides)
    return fields


def test_init_db_creates_tables(tmp_path: Path) -> None:
    db_path = init_db(tmp_path / "nested" / "test.db")
    assert db_path.exists()
    conn = get_connection(db_path)
    tables = [r[0] for r in conn.execute("SELECT name FROM sqlite_master WHERE type='table'").fetchall()]
    conn.close()
    assert "projects" in tables
    assert "annual_targets" in tables
    # idempotent
    init_db(db_path)


def test_project_lifecycle(db) -> None:
    pid = create_project(db, _fields())
    row = get_project(db, pid)
    assert row["name"] == "Piloto"
    assert row["start_year"] == 2026
    assert row["tcv"] == 6000.0

    assert update_project(db, pid, monthly_amount=2000.0, duration_months=3, bogus="ignored")
    row = get_project(db, pid)
    assert row["tcv"] == 6000.0
    assert row["monthly_amount"] == 2000.0

    assert update_project(db, "missing", name="x") is False
    assert delete_project(db, pid)
    assert get_project(db, pid) is None
    assert delete_project(db, pid) is False


def test_insertion_order_is_preserved(db) -> None:
    ids = [create_project(db, _fields(name=n), project_id=n) for n in ["c", "a", "b"]]
    assert [r["id"] for r in list_projects(db)] == ids
    delete_project(db, "a")
    create_project(db, _fields(name="d"), project_id="d")
    assert [p.id for p in load_projects(db)] == ["c", "b", "d"]


def test_constraints_reject_invalid_rows(db) -> None:
    with pytest.raises(sqlite3.IntegrityError):
        create_project(db, _fields(probability=1.5))
    with pytest.raises(sqlite3.IntegrityError):
        create_project(db, _fields(type="lead"))
    assert list_projects(db) == []


def test_transaction_rolls_back(db) -> None:
    create_project(db, _fields(), project_id="keep")
    with pytest.raises(RuntimeError):
        with transaction(db):
            db.execute("DELETE FROM projects")
            raise RuntimeError("boom")
    assert [r["id"] for r in list_projects(db)] == ["keep"]


def test_load_projects_returns_domain_records(db) -> None:
    create_project(db, _fields(parent_client="Acme Group", start_year=2027), project_id="p1")
    (p,) = load_projects(db)
    assert p.client_key == "Acme Group"
    assert p.start_year == 2027
    assert p.tcv == 6000.0


def test_replace_projects(db) -> None:
    create_project(db, _fields(), project_id="old")
    seed_result = seed_projects(db)
    assert "error" in seed_result
    assert seed_projects(db, replace=True) == {"projects": len(SEED_RECORDS)}
    assert [p.id for p in load_projects(db)][:2] == ["seed-001", "seed-002"]
    assert clear_projects(db) == {"projects": 0}
    assert load_projects(db) == []
    assert replace_projects(db, []) == 0


def test_annual_targets(db) -> None:
    assert get_annual_target(db, 2026) is None
    set_annual_target(db, 2026, 5_000_000)
    set_annual_target(db, 2027, 6_000_000)
    set_annual_target(db, 2026, 5_500_000)
    assert get_annual_target(db, 2026) == 5_500_000.0
    assert list_annual_targets(db) == {2026: 5_500_000.0, 2027: 6_000_000.0}
    with pytest.raises(sqlite3.IntegrityError):
        set_annual_target(db, 2028, -1)


def test_list_projects_by_weighted_total(db) -> None:
    create_project(db, _fields(probability=0.1), project_id="low")
    create_project(db, _fields(probability=0.9), project_id="high")
    create_project(db, _fields(probability=0.1), project_id="tie")
    assert [r["id"] for r in list_projects(db, sort="weighted")] == ["high", "low", "tie"]
    with pytest.raises(ValueError):
        list_projects(db, sort="name")
