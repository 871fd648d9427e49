from __future__ import annotations

import json
from pathlib import Path

import pandas as pd
import pytest

from revforecast.config import DEFAULT_FUNNEL_BANDS, ForecastConfig, default_forecast_config
from revforecast.io import load_projects, write_projects_csv, write_projects_json
from revforecast.normalize import normalize_project_records, validate_project_fields
from revforecast.seed import seed_projects_list


def test_default_config_ships_with_package() -> None:
    cfg = default_forecast_config()
    assert cfg.base_year == 2026
    assert cfg.supported_years == [2026, 2027, 2028]
    assert cfg.target_for(2027) == 7_500_000.0
    assert cfg.target_for(2030) == 0.0
    assert cfg.funnel_bands == DEFAULT_FUNNEL_BANDS
    assert cfg.top_opportunities == 7


def test_config_from_yaml_and_validation(tmp_path: Path) -> None:
    path = tmp_path / "forecast.yaml"
    path.write_text("base_year: 2027\nsupported_years: [2028, 2027]\nannual_targets: {2027: 100}\n", encoding="utf-8")
    cfg = ForecastConfig.from_yaml(path)
    assert cfg.supported_years == [2027, 2028]
    assert cfg.is_supported(2028) and not cfg.is_supported(2026)
    assert cfg.annual_targets == {2027: 100.0}

    with pytest.raises(ValueError):
        ForecastConfig.from_mapping({"base_year": 2025, "supported_years": [2026]})


def test_normalize_accepts_camel_case_and_defaults() -> None:
    df = pd.DataFrame(
        [
            {"id": "x1", "name": "Alpha", "type": "Pipeline", "segment": "ignis", "client": "Acme",
             "parentClient": "Acme Group", "country": "spain", "probability": 0.4,
             "monthlyAmount": 1200, "startMonth": "MAR", "durationMonths": 5},
        ]
    )
    projects, warnings = normalize_project_records(df)
    assert warnings == []
    (p,) = projects
    assert p.type == "pipeline"
    assert p.start_month == "mar"
    assert p.start_year == 2026
    assert p.parent_client == "Acme Group"
    assert p.duration_months == 5


def test_normalize_skips_bad_rows_with_warnings() -> None:
    df = pd.DataFrame(
        [
            {"id": "ok", "name": "Good", "type": "backlog", "segment": "no-ignis", "client": "A", "country": "usa",
             "probability": 1.0, "monthly_amount": 10, "start_month": "jan", "duration_months": 2},
            {"id": "bad", "name": "Bad", "type": "backlog", "segment": "no-ignis", "client": "A", "country": "usa",
             "probability": 1.5, "monthly_amount": 10, "start_month": "jan", "duration_months": 0},
            {"id": "ok", "name": "Dup", "type": "backlog", "segment": "no-ignis", "client": "A", "country": "usa",
             "probability": 1.0, "monthly_amount": 10, "start_month": "jan", "duration_months": 2},
        ]
    )
    projects, warnings = normalize_project_records(df)
    assert [p.id for p in projects] == ["ok"]
    assert len(warnings) == 2
    assert "probability" in warnings[0] and "duration_months" in warnings[0]
    assert "duplicate id ok" in warnings[1]


def test_normalize_requires_columns() -> None:
    with pytest.raises(ValueError, match="monthly_amount"):
        normalize_project_records(pd.DataFrame([{"name": "x", "type": "backlog", "segment": "ignis",
                                                 "client": "c", "probability": 1, "start_month": "jan",
                                                 "duration_months": 1}]))
    assert normalize_project_records(pd.DataFrame()) == ([], [])


def test_validate_project_fields() -> None:
    problems = validate_project_fields({"name": " ", "type": "lead", "segment": "ignis", "country": "mars",
                                        "start_month": "jan", "probability": 0.5, "monthly_amount": -1,
                                        "duration_months": 3})
    assert len(problems) == 4


def test_json_and_csv_round_trip(tmp_path: Path) -> None:
    projects = seed_projects_list()
    j = write_projects_json(tmp_path / "store.json", projects, version=3)
    blob = json.loads(j.read_text(encoding="utf-8"))
    assert blob["version"] == 3
    assert blob["projects"][0]["tcv"] == pytest.approx(85_000 * 12)

    from_json, w1 = load_projects(j)
    from_csv, w2 = load_projects(write_projects_csv(tmp_path / "projects.csv", projects))
    assert w1 == [] and w2 == []
    assert [p.id for p in from_json] == [p.id for p in projects]
    assert [p.id for p in from_csv] == [p.id for p in projects]
    assert from_csv[0].parent_client == "Grupo Ignis"
    assert from_csv[2].parent_client is None
    assert from_csv[3].start_year == 2025


def test_load_projects_errors(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_projects(tmp_path / "missing.csv")
    other = tmp_path / "projects.xlsx"
    other.write_bytes(b"")
    with pytest.raises(ValueError, match="Unsupported"):
        load_projects(other)


def _row(**overrides):
    row = {"id": "r1", "name": "Soporte", "type": "backlog", "segment": "no-ignis", "client": "A",
           "country": "usa", "probability": 1.0, "monthly_amount": 10, "start_month": "jan",
           "duration_months": 2}
    row.update(overrides)
    return row


@pytest.mark.parametrize("field", ["duration_months", "probability", "monthly_amount"])
def test_non_finite_numbers_are_skipped_with_warning(field: str) -> None:
    df = pd.DataFrame([_row(**{field: float("inf")}), _row(id="r2")])
    projects, warnings = normalize_project_records(df)
    assert [p.id for p in projects] == ["r2"]
    assert len(warnings) == 1 and field in warnings[0]


def test_infinite_start_year_falls_back_to_default() -> None:
    projects, warnings = normalize_project_records(pd.DataFrame([_row(start_year=float("inf"))]))
    assert warnings == []
    assert projects[0].start_year == 2026


def test_blank_country_defaults_to_other(tmp_path: Path) -> None:
    df = pd.DataFrame([_row(id="a", country=None), _row(id="b", country=" "), _row(id="c")])
    projects, warnings = normalize_project_records(df)
    assert warnings == []
    assert [p.country for p in projects] == ["other", "other", "usa"]

    csv_path = tmp_path / "projects.csv"
    pd.DataFrame([_row(id="a", country=None)]).to_csv(csv_path, index=False)
    (p,), _ = load_projects(csv_path)
    assert p.country == "other"


def test_json_ids_are_kept_verbatim(tmp_path: Path) -> None:
    path = tmp_path / "store.json"
    path.write_text(json.dumps({"projects": [_row(id=1), _row(id=None, name="Nuevo")], "version": 1}), encoding="utf-8")
    projects, warnings = load_projects(path)
    assert warnings == []
    assert projects[0].id == "1"
    assert projects[1].id not in ("1", "None", "nan")
