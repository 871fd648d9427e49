"""Tests for KPI roll-ups, category totals, funnel and target progress."""

from __future__ import annotations

import pytest

from revforecast.config import DEFAULT_FUNNEL_BANDS
from revforecast.seed import seed_projects_list
from revforecast.summary import (
    Filters,
    compute_stats,
    filter_projects,
    monthly_by_type,
    pipeline_funnel,
    target_progress,
    top_opportunities,
    totals_by_client,
    totals_by_country,
    totals_by_segment,
)
from revforecast.types import MONTH_KEYS, ForecastProject, sum_monthly


def _project(pid: str, **overrides) -> ForecastProject:
    fields = dict(
        id=pid,
        name=pid,
        type="pipeline",
        segment="no-ignis",
        client="Acme",
        country="spain",
        probability=0.5,
        monthly_amount=1000.0,
        start_year=2026,
        start_month="jan",
        duration_months=10,
    )
    fields.update(overrides)
    return ForecastProject(**fields)


def _portfolio() -> list[ForecastProject]:
    return [
        _project("b1", type="backlog", probability=1.0, segment="ignis", client="Ignis A", parent_client="Ignis"),
        _project("p1", client="Ignis B", parent_client="Ignis", segment="ignis", country="usa"),
        _project("p2", probability=0.8, monthly_amount=3000.0, country="japan"),
        _project("r1", type="product", probability=0.25, client="Beta", country="japan"),
        _project("late", type="pipeline", probability=0.1, start_year=2027, monthly_amount=9000.0),
    ]


def test_filters() -> None:
    projects = _portfolio()
    assert [p.id for p in filter_projects(projects, Filters(type="pipeline"))] == ["p1", "p2", "late"]
    assert [p.id for p in filter_projects(projects, Filters(segment="ignis"))] == ["b1", "p1"]
    assert [p.id for p in filter_projects(projects, Filters(country="japan"))] == ["p2", "r1"]
    assert [p.id for p in filter_projects(projects, Filters(client="Ignis B"))] == ["p1"]
    assert [p.id for p in filter_projects(projects, Filters(min_prob=0.5, max_prob=0.8))] == ["p1", "p2"]
    assert filter_projects(projects, Filters(type="all", segment="all")) == projects


def test_client_totals_consolidate_parent() -> None:
    totals = totals_by_client(_portfolio(), 2026)
    assert totals["Ignis"] == pytest.approx(10_000.0 + 5_000.0)
    assert "Ignis A" not in totals
    assert totals["Beta"] == pytest.approx(2_500.0)
    assert totals_by_client(_portfolio())["Acme"] == pytest.approx(24_000.0 + 9_000.0)


def test_country_and_segment_totals() -> None:
    by_country = totals_by_country(_portfolio(), 2026)
    assert by_country == pytest.approx({"spain": 10_000.0, "usa": 5_000.0, "japan": 26_500.0})
    by_segment = totals_by_segment(_portfolio(), 2026)
    assert by_segment["ignis"] == pytest.approx(15_000.0)
    assert by_segment["no-ignis"] == pytest.approx(26_500.0)


def test_monthly_by_type_sums_to_total() -> None:
    monthly = monthly_by_type(_portfolio(), 2026)
    for k in MONTH_KEYS:
        parts = monthly["backlog"][k] + monthly["pipeline"][k] + monthly["product"][k]
        assert monthly["total"][k] == pytest.approx(parts)
    assert monthly["backlog"]["jan"] == 1000.0
    assert monthly["backlog"]["nov"] == 0.0


def test_stats_block() -> None:
    stats = compute_stats(_portfolio(), 2026)
    assert stats.total_backlog == pytest.approx(10_000.0)
    assert stats.total_pipeline_weighted == pytest.approx(5_000.0 + 24_000.0)
    assert stats.total_pipeline_tcv == pytest.approx(10_000.0 + 30_000.0 + 90_000.0)
    assert stats.total_products == pytest.approx(2_500.0)
    assert stats.total_forecast == pytest.approx(41_500.0)
    assert stats.ignis_percent == pytest.approx(15_000.0 / 41_500.0 * 100)
    assert sum_monthly(stats.monthly_totals) == pytest.approx(stats.total_forecast)
    assert stats.clients == ["Acme", "Beta", "Ignis A", "Ignis B"]
    assert stats.project_count == 5


def test_stats_on_empty_portfolio() -> None:
    stats = compute_stats([], 2026)
    assert stats.total_forecast == 0.0
    assert stats.ignis_percent == 0.0
    assert stats.by_country == {}


def test_funnel_bands_cover_every_probability() -> None:
    projects = [_project(f"p{i}", probability=pr) for i, pr in enumerate([0.0, 0.245, 0.25, 0.745, 0.75, 1.0])]
    projects.append(_project("bk", type="backlog", probability=1.0))
    funnel = pipeline_funnel(projects, DEFAULT_FUNNEL_BANDS)
    assert [b["count"] for b in funnel] == [2, 1, 1, 2]
    assert sum(b["count"] for b in funnel) == 6
    assert funnel[0]["tcv"] == pytest.approx(20_000.0)


def test_top_opportunities_excludes_backlog() -> None:
    top = top_opportunities(_portfolio(), limit=2)
    assert [p.id for p in top] == ["late", "p2"]


def test_target_progress() -> None:
    stats = compute_stats(_portfolio(), 2026)
    progress = target_progress(stats, 20_000.0)
    assert progress.fulfillment_pct == pytest.approx(207.5)
    assert progress.pct_backlog == pytest.approx(50.0)
    assert progress.pct_pipeline == 100.0
    assert progress.pct_all == 100.0

    zero = target_progress(stats, 0.0)
    assert zero.fulfillment_pct == 0.0
    assert zero.pct_all == 0.0


def test_seed_portfolio_is_consistent() -> None:
    projects = seed_projects_list()
    assert len({p.id for p in projects}) == len(projects)
    stats = compute_stats(projects, 2026)
    assert stats.total_forecast > 0
    assert stats.total_forecast == pytest.approx(
        stats.total_backlog + stats.total_pipeline_weighted + stats.total_products
    )
