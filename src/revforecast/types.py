from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Mapping

import pandas as pd

ForecastType = Literal["backlog", "pipeline", "product"]
Segment = Literal["ignis", "no-ignis"]
Country = Literal["spain", "netherlands", "usa", "colombia", "japan", "other"]
GroupBy = Literal["segment", "type", "flat"]
RowKind = Literal["group-header", "client-header", "project", "grand-total"]

FORECAST_TYPES: tuple[str, ...] = ("backlog", "pipeline", "product")
SEGMENTS: tuple[str, ...] = ("ignis", "no-ignis")
COUNTRIES: tuple[str, ...] = ("spain", "netherlands", "usa", "colombia", "japan", "other")
GROUP_BY_MODES: tuple[str, ...] = ("segment", "type", "flat")

MONTH_KEYS: tuple[str, ...] = (
    "jan", "feb", "mar", "apr", "may", "jun",
    "jul", "aug", "sep", "oct", "nov", "dec",
)

MONTH_LABELS: dict[str, str] = {
    "jan": "Ene", "feb": "Feb", "mar": "Mar", "apr": "Abr",
    "may": "May", "jun": "Jun", "jul": "Jul", "aug": "Ago",
    "sep": "Sep", "oct": "Oct", "nov": "Nov", "dec": "Dic",
}

COUNTRY_LABELS: dict[str, str] = {
    "spain": "España",
    "netherlands": "Países Bajos",
    "usa": "USA",
    "colombia": "Colombia",
    "japan": "Japón",
    "other": "Otro",
}

TYPE_LABELS: dict[str, str] = {
    "backlog": "Backlog",
    "pipeline": "Pipeline",
    "product": "Producto",
}

SEGMENT_LABELS: dict[str, str] = {
    "ignis": "Ignis",
    "no-ignis": "No Ignis",
}

# Records written before multi-year support carry no start year.
DEFAULT_START_YEAR = 2026

MonthlyValues = dict[str, float]


def empty_monthly() -> MonthlyValues:
    return {k: 0.0 for k in MONTH_KEYS}


def add_monthly(target: MonthlyValues, source: Mapping[str, float]) -> MonthlyValues:
    """Element-wise ``target += source``; returns ``target``."""
    for k in MONTH_KEYS:
        target[k] += source[k]
    return target


def sum_monthly(monthly: Mapping[str, float]) -> float:
    total = 0.0
    for k in MONTH_KEYS:
        total += monthly[k]
    return total


# Raw record keys accepted on ingest, camelCase first (legacy store blobs).
_FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "parent_client": ("parentClient", "parent_client"),
    "monthly_amount": ("monthlyAmount", "monthly_amount"),
    "start_year": ("startYear", "start_year"),
    "start_month": ("startMonth", "start_month"),
    "duration_months": ("durationMonths", "duration_months"),
}


def _pick(raw: Mapping[str, Any], name: str, default: Any = None) -> Any:
    for key in _FIELD_ALIASES.get(name, (name,)):
        value = raw.get(key)
        if value is not None and not (isinstance(value, float) and pd.isna(value)) and value != "":
            return value
    return default


@dataclass(frozen=True)
class ForecastProject:
    id: str
    name: str
    type: str
    segment: str
    client: str
    country: str
    probability: float
    monthly_amount: float
    start_month: str
    duration_months: int
    start_year: int = DEFAULT_START_YEAR
    parent_client: str | None = None
    product: str | None = None
    tcv: float | None = None  # cached copy, never read by the engine

    @property
    def client_key(self) -> str:
        return self.parent_client or self.client

    @staticmethod
    def from_mapping(raw: Mapping[str, Any]) -> "ForecastProject":
        tcv = _pick(raw, "tcv")
        return ForecastProject(
            id=str(raw["id"]),
            name=str(raw["name"]),
            type=str(raw["type"]),
            segment=str(raw["segment"]),
            client=str(raw["client"]),
            country=str(raw.get("country") or "other"),
            probability=float(raw["probability"]),
            monthly_amount=float(_pick(raw, "monthly_amount", 0.0)),
            start_month=str(_pick(raw, "start_month")),
            duration_months=int(_pick(raw, "duration_months")),
            start_year=int(_pick(raw, "start_year", DEFAULT_START_YEAR)),
            parent_client=_pick(raw, "parent_client"),
            product=_pick(raw, "product"),
            tcv=float(tcv) if tcv is not None else None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "segment": self.segment,
            "client": self.client,
            "parent_client": self.parent_client,
            "country": self.country,
            "probability": self.probability,
            "monthly_amount": self.monthly_amount,
            "start_year": self.start_year,
            "start_month": self.start_month,
            "duration_months": self.duration_months,
            "product": self.product,
            "tcv": self.monthly_amount * self.duration_months,
        }


@dataclass(frozen=True)
class GroupRow:
    id: str
    kind: str  # RowKind
    label: str
    depth: int
    monthly: MonthlyValues
    year_total: float
    tcv: float
    weighted_total: float
    client: str | None = None
    project_id: str | None = None
    project_type: str | None = None
    probability: float | None = None
    child_count: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind,
            "label": self.label,
            "depth": self.depth,
            "monthly": dict(self.monthly),
            "year_total": self.year_total,
            "tcv": self.tcv,
            "weighted_total": self.weighted_total,
            "client": self.client,
            "project_id": self.project_id,
            "project_type": self.project_type,
            "probability": self.probability,
            "child_count": self.child_count,
        }


@dataclass(frozen=True)
class ForecastStats:
    year: int
    total_backlog: float
    total_pipeline_weighted: float
    total_pipeline_tcv: float
    total_products: float
    total_forecast: float
    ignis_revenue: float
    ignis_percent: float
    monthly_totals: MonthlyValues
    monthly_backlog: MonthlyValues
    monthly_pipeline: MonthlyValues
    monthly_products: MonthlyValues
    by_country: dict[str, float]
    by_client: dict[str, float]
    by_segment: dict[str, float]
    clients: list[str]
    project_count: int


@dataclass(frozen=True)
class ScenarioProjection:
    year: int
    monthly: pd.DataFrame  # month key x {pessimistic, expected, optimistic}
    cumulative: pd.DataFrame

    @property
    def pessimistic(self) -> list[float]:
        return [float(v) for v in self.monthly["pessimistic"]]

    @property
    def expected(self) -> list[float]:
        return [float(v) for v in self.monthly["expected"]]

    @property
    def optimistic(self) -> list[float]:
        return [float(v) for v in self.monthly["optimistic"]]

    def to_dict(self) -> dict[str, Any]:
        return {
            "year": self.year,
            "months": list(MONTH_KEYS),
            "monthly": {c: [float(v) for v in self.monthly[c]] for c in self.monthly.columns},
            "cumulative": {c: [float(v) for v in self.cumulative[c]] for c in self.cumulative.columns},
        }


@dataclass(frozen=True)
class TargetProgress:
    year: int
    target: float
    total_backlog: float
    total_pipeline_weighted: float
    total_products: float
    total_forecast: float
    fulfillment_pct: float
    pct_backlog: float
    pct_pipeline: float
    pct_all: float


@dataclass(frozen=True)
class ForecastResult:
    year: int
    projects: list[ForecastProject]
    stats: ForecastStats
    grid: list[GroupRow]
    scenarios: ScenarioProjection
    target: TargetProgress
    assumptions: dict[str, Any]
    warnings: list[str] = field(default_factory=list)
