from __future__ import annotations

import json
from pathlib import Path

import pandas as pd

from .normalize import normalize_project_records
from .types import ForecastProject


def _read_table(path: Path) -> pd.DataFrame:
    if not path.exists():
        raise FileNotFoundError(f"Missing required input: {path}")
    suffix = path.suffix.lower()
    if suffix == ".csv":
        return pd.read_csv(path, dtype={"id": str, "client": str, "parent_client": str, "parentClient": str})
    if suffix == ".json":
        raw = json.loads(path.read_text(encoding="utf-8"))
        # Either the legacy store blob {"projects": [...], "version": n} or a bare list.
        records = raw.get("projects", []) if isinstance(raw, dict) else raw
        # Ids are kept as given, never coerced through a float column.
        records = [{**r, "id": str(r["id"])} if r.get("id") is not None else r for r in records]
        return pd.DataFrame.from_records(records)
    raise ValueError(f"Unsupported project file type '{suffix}' (expected .csv or .json)")


def load_projects(path: str | Path) -> tuple[list[ForecastProject], list[str]]:
    return normalize_project_records(_read_table(Path(path)))


def write_projects_json(path: str | Path, projects: list[ForecastProject], version: int = 1) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = {"projects": [p.to_dict() for p in projects], "version": version}
    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
    return path


def write_projects_csv(path: str | Path, projects: list[ForecastProject]) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    pd.DataFrame([p.to_dict() for p in projects]).to_csv(path, index=False)
    return path
