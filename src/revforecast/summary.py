"""Category roll-ups over a project collection: KPIs, totals, funnel, target."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .allocation import allocate_to_year
from .config import DEFAULT_FUNNEL_BANDS, FunnelBand
from .metrics import compute_tcv, compute_weighted_total, compute_year_total
from .types import (
    ForecastProject,
    ForecastStats,
    MonthlyValues,
    TargetProgress,
    add_monthly,
    empty_monthly,
)


@dataclass(frozen=True)
class Filters:
    type: str | None = None
    segment: str | None = None
    country: str | None = None
    client: str | None = None
    min_prob: float | None = None
    max_prob: float | None = None


def _active(value: str | None) -> bool:
    return bool(value) and value != "all"


def filter_projects(projects: list[ForecastProject], filters: Filters | None = None) -> list[ForecastProject]:
    f = filters or Filters()
    out: list[ForecastProject] = []
    for p in projects:
        if _active(f.type) and p.type != f.type:
            continue
        if _active(f.segment) and p.segment != f.segment:
            continue
        if _active(f.country) and p.country != f.country:
            continue
        if f.client and p.client != f.client:
            continue
        if f.min_prob is not None and p.probability < f.min_prob:
            continue
        if f.max_prob is not None and p.probability > f.max_prob:
            continue
        out.append(p)
    return out


def _value(p: ForecastProject, year: int | None) -> float:
    """Year-scoped weighted value, or the lifetime weighted total without a year."""
    if year is None:
        return compute_weighted_total(p)
    return compute_year_total(p, year)


def _totals_by(projects: list[ForecastProject], key, year: int | None) -> dict[str, float]:
    out: dict[str, float] = {}
    for p in projects:
        k = key(p)
        out[k] = out.get(k, 0.0) + _value(p, year)
    return out


def totals_by_country(projects: list[ForecastProject], year: int | None = None) -> dict[str, float]:
    return _totals_by(projects, lambda p: p.country, year)


def totals_by_client(projects: list[ForecastProject], year: int | None = None) -> dict[str, float]:
    """Weighted totals keyed by ``parent_client`` when set, else ``client``."""
    return _totals_by(projects, lambda p: p.client_key, year)


def totals_by_segment(projects: list[ForecastProject], year: int | None = None) -> dict[str, float]:
    return _totals_by(projects, lambda p: p.segment, year)


def monthly_by_type(projects: list[ForecastProject], year: int) -> dict[str, MonthlyValues]:
    """Monthly sums per project type plus an overall ``total`` entry."""
    out = {"backlog": empty_monthly(), "pipeline": empty_monthly(), "product": empty_monthly(), "total": empty_monthly()}
    for p in projects:
        m = allocate_to_year(p, year)
        add_monthly(out.setdefault(p.type, empty_monthly()), m)
        add_monthly(out["total"], m)
    return out


def compute_stats(projects: list[ForecastProject], year: int) -> ForecastStats:
    monthly = monthly_by_type(projects, year)

    total_backlog = 0.0
    total_pipeline = 0.0
    total_pipeline_tcv = 0.0
    total_products = 0.0
    ignis = 0.0
    for p in projects:
        v = _value(p, year)
        if p.type == "backlog":
            total_backlog += v
        elif p.type == "pipeline":
            total_pipeline += v
            total_pipeline_tcv += compute_tcv(p)
        elif p.type == "product":
            total_products += v
        if p.segment == "ignis":
            ignis += v

    total = total_backlog + total_pipeline + total_products
    return ForecastStats(
        year=year,
        total_backlog=total_backlog,
        total_pipeline_weighted=total_pipeline,
        total_pipeline_tcv=total_pipeline_tcv,
        total_products=total_products,
        total_forecast=total,
        ignis_revenue=ignis,
        ignis_percent=(ignis / total) * 100 if total > 0 else 0.0,
        monthly_totals=monthly["total"],
        monthly_backlog=monthly["backlog"],
        monthly_pipeline=monthly["pipeline"],
        monthly_products=monthly["product"],
        by_country=totals_by_country(projects, year),
        by_client=totals_by_client(projects, year),
        by_segment=totals_by_segment(projects, year),
        clients=sorted({p.client for p in projects}),
        project_count=len(projects),
    )


def pipeline_funnel(
    projects: list[ForecastProject],
    bands: tuple[FunnelBand, ...] = DEFAULT_FUNNEL_BANDS,
) -> list[dict[str, Any]]:
    """Non-backlog projects per probability band, with count and TCV."""
    open_projects = [p for p in projects if p.type != "backlog"]
    out: list[dict[str, Any]] = []
    for band in bands:
        members = [p for p in open_projects if band.contains(p.probability)]
        out.append({
            "label": band.label,
            "min": band.min,
            "max": band.max,
            "count": len(members),
            "tcv": sum(compute_tcv(p) for p in members),
        })
    return out


def top_opportunities(projects: list[ForecastProject], limit: int = 7) -> list[ForecastProject]:
    open_projects = [p for p in projects if p.type != "backlog"]
    return sorted(open_projects, key=lambda p: -compute_tcv(p))[:limit]


def _pct(num: float, den: float) -> float:
    return (num / den) * 100 if den > 0 else 0.0


def target_progress(stats: ForecastStats, target: float) -> TargetProgress:
    """Forecast layers against the annual target.

    Layer percentages are cumulative (backlog, +pipeline, +products) and
    capped at 100; fulfilment is not capped. A non-positive target yields 0.
    """
    backlog = stats.total_backlog
    pipeline = backlog + stats.total_pipeline_weighted
    everything = pipeline + stats.total_products
    return TargetProgress(
        year=stats.year,
        target=target,
        total_backlog=stats.total_backlog,
        total_pipeline_weighted=stats.total_pipeline_weighted,
        total_products=stats.total_products,
        total_forecast=stats.total_forecast,
        fulfillment_pct=_pct(stats.total_forecast, target),
        pct_backlog=min(_pct(backlog, target), 100.0),
        pct_pipeline=min(_pct(pipeline, target), 100.0),
        pct_all=min(_pct(everything, target), 100.0),
    )
