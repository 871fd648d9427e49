from __future__ import annotations

import logging
import math
import uuid
from typing import Any

import pandas as pd

from .types import COUNTRIES, DEFAULT_START_YEAR, FORECAST_TYPES, MONTH_KEYS, SEGMENTS, ForecastProject

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ["name", "type", "segment", "client", "probability", "monthly_amount", "start_month", "duration_months"]

# Legacy store blobs and spreadsheets use camelCase field names.
_COLUMN_RENAMES = {
    "parentClient": "parent_client",
    "monthlyAmount": "monthly_amount",
    "startYear": "start_year",
    "startMonth": "start_month",
    "durationMonths": "duration_months",
}


def generate_id() -> str:
    return uuid.uuid4().hex[:12]


def _finite(value: Any) -> bool:
    if value is None:
        return False
    try:
        return math.isfinite(float(value))
    except (TypeError, ValueError):
        return False


def validate_project_fields(raw: dict[str, Any]) -> list[str]:
    """Return a list of problems with a raw record (empty when valid)."""
    problems: list[str] = []
    if not str(raw.get("name") or "").strip():
        problems.append("name is empty")
    if raw.get("type") not in FORECAST_TYPES:
        problems.append(f"type '{raw.get('type')}' not in {list(FORECAST_TYPES)}")
    if raw.get("segment") not in SEGMENTS:
        problems.append(f"segment '{raw.get('segment')}' not in {list(SEGMENTS)}")
    if raw.get("country") not in COUNTRIES:
        problems.append(f"country '{raw.get('country')}' not in {list(COUNTRIES)}")
    if raw.get("start_month") not in MONTH_KEYS:
        problems.append(f"start_month '{raw.get('start_month')}' not a month key")

    prob = raw.get("probability")
    if not _finite(prob) or not 0.0 <= float(prob) <= 1.0:
        problems.append(f"probability {prob!r} outside [0, 1]")
    amount = raw.get("monthly_amount")
    if not _finite(amount) or float(amount) < 0:
        problems.append(f"monthly_amount {amount!r} is negative or missing")
    duration = raw.get("duration_months")
    if not _finite(duration) or int(duration) < 1 or float(duration) != int(duration):
        problems.append(f"duration_months {duration!r} is not a positive whole number")
    return problems


def normalize_project_records(df: pd.DataFrame) -> tuple[list[ForecastProject], list[str]]:
    """Turn a raw project table into validated records.

    Missing required columns raise ``ValueError``. Rows that fail validation
    are skipped and reported in the returned warnings; rows without an id get
    a fresh one, duplicate ids are skipped.
    """
    warnings: list[str] = []
    if df.empty and len(df.columns) == 0:
        return [], warnings
    df = df.rename(columns=_COLUMN_RENAMES).copy()

    for required in REQUIRED_COLUMNS:
        if required not in df.columns:
            raise ValueError(f"Project table missing required column: {required}")

    if "country" not in df.columns:
        df["country"] = "other"
        warnings.append("Project table missing country; defaulting to 'other'.")
    if "start_year" not in df.columns:
        df["start_year"] = DEFAULT_START_YEAR
    start_year = pd.to_numeric(df["start_year"], errors="coerce")
    start_year = start_year.where(start_year.abs() != math.inf)
    df["start_year"] = start_year.fillna(DEFAULT_START_YEAR).astype(int)
    for col in ["probability", "monthly_amount", "duration_months"]:
        df[col] = pd.to_numeric(df[col], errors="coerce")
    df["country"] = df["country"].fillna("other")
    for col in ["type", "segment", "country", "start_month"]:
        df[col] = df[col].astype(str).str.strip().str.lower()
    # Blank cells fall back to "other", same as a missing column.
    df.loc[df["country"] == "", "country"] = "other"

    projects: list[ForecastProject] = []
    seen: set[str] = set()
    for idx, row in df.iterrows():
        raw = {k: (None if (not isinstance(v, str) and pd.isna(v)) else v) for k, v in row.to_dict().items()}
        problems = validate_project_fields(raw)
        if problems:
            warnings.append(f"Row {idx} ({raw.get('name')}): skipped, " + "; ".join(problems))
            continue
        raw["id"] = str(raw.get("id") or generate_id())
        if raw["id"] in seen:
            warnings.append(f"Row {idx} ({raw.get('name')}): skipped, duplicate id {raw['id']}")
            continue
        seen.add(raw["id"])
        projects.append(ForecastProject.from_mapping(raw))

    if warnings:
        logger.warning("Project normalisation produced %d warning(s)", len(warnings))
    return projects, warnings
