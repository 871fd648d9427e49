"""FastAPI APIRouter with CRUD endpoints for forecast projects and annual targets."""

from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from . import db
from .seed import seed_projects_list

router = APIRouter(prefix="/api")

DB_PATH = db.DEFAULT_DB_PATH

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def get_conn():
    return db.get_connection(DB_PATH)


def _404(item: str):
    raise HTTPException(status_code=404, detail=f"{item} not found")


def _clear_blank_labels(fields: dict) -> dict:
    """Store empty optional labels as NULL."""
    for k in ("parent_client", "product"):
        if fields.get(k) == "":
            fields[k] = None
    return fields


# ---------------------------------------------------------------------------
# Pydantic request models
# ---------------------------------------------------------------------------

TypeField = Literal["backlog", "pipeline", "product"]
SegmentField = Literal["ignis", "no-ignis"]
CountryField = Literal["spain", "netherlands", "usa", "colombia", "japan", "other"]
MonthField = Literal["jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec"]


class ProjectCreate(BaseModel):
    name: str = Field(min_length=1)
    type: TypeField
    segment: SegmentField
    client: str = Field(min_length=1)
    parent_client: str | None = None
    country: CountryField = "other"
    probability: float = Field(ge=0.0, le=1.0)
    monthly_amount: float = Field(ge=0.0)
    start_year: int = 2026
    start_month: MonthField
    duration_months: int = Field(ge=1)
    product: str | None = None


class ProjectUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    type: TypeField | None = None
    segment: SegmentField | None = None
    client: str | None = Field(default=None, min_length=1)
    parent_client: str | None = None
    country: CountryField | None = None
    probability: float | None = Field(default=None, ge=0.0, le=1.0)
    monthly_amount: float | None = Field(default=None, ge=0.0)
    start_year: int | None = None
    start_month: MonthField | None = None
    duration_months: int | None = Field(default=None, ge=1)
    product: str | None = None


class TargetUpsert(BaseModel):
    amount: float = Field(ge=0.0)


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------

@router.get("/projects")
def list_projects(sort: Literal["position", "weighted"] = "position"):
    conn = get_conn()
    try:
        return db.list_projects(conn, sort=sort)
    finally:
        conn.close()


@router.post("/projects", status_code=201)
def create_project(body: ProjectCreate):
    conn = get_conn()
    try:
        fields = _clear_blank_labels(body.model_dump())
        project_id = db.create_project(conn, fields)
        return db.get_project(conn, project_id)
    finally:
        conn.close()


@router.post("/projects/reset")
def reset_projects():
    conn = get_conn()
    try:
        count = db.replace_projects(conn, seed_projects_list())
        return {"ok": True, "projects": count}
    finally:
        conn.close()


@router.get("/projects/{project_id}")
def get_project(project_id: str):
    conn = get_conn()
    try:
        project = db.get_project(conn, project_id)
        if not project:
            _404("Project")
        return project
    finally:
        conn.close()


@router.put("/projects/{project_id}")
def update_project(project_id: str, body: ProjectUpdate):
    conn = get_conn()
    try:
        # Only fields present in the request body are changed; only the
        # optional labels may be cleared with null.
        updates = {
            k: v
            for k, v in body.model_dump(exclude_unset=True).items()
            if v is not None or k in ("parent_client", "product")
        }
        updates = _clear_blank_labels(updates)
        if not db.update_project(conn, project_id, **updates):
            _404("Project")
        return db.get_project(conn, project_id)
    finally:
        conn.close()


@router.delete("/projects/{project_id}")
def delete_project(project_id: str):
    conn = get_conn()
    try:
        if not db.delete_project(conn, project_id):
            _404("Project")
        return {"ok": True}
    finally:
        conn.close()


# ---------------------------------------------------------------------------
# Annual targets
# ---------------------------------------------------------------------------

@router.get("/targets")
def list_targets():
    conn = get_conn()
    try:
        return {str(y): v for y, v in db.list_annual_targets(conn).items()}
    finally:
        conn.close()


@router.put("/targets/{year}")
def set_target(year: int, body: TargetUpsert):
    conn = get_conn()
    try:
        db.set_annual_target(conn, year, body.amount)
        return {"year": year, "amount": body.amount}
    finally:
        conn.close()
