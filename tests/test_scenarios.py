"""Tests for pessimistic / expected / optimistic revenue curves."""

from __future__ import annotations

import pytest

from revforecast.allocation import allocate_to_year
from revforecast.scenarios import build_scenarios
from revforecast.synth import SynthSpec, generate_synthetic_portfolio
from revforecast.types import MONTH_KEYS, ForecastProject


def _project(pid: str, **overrides) -> ForecastProject:
    fields = dict(
        id=pid,
        name=pid,
        type="pipeline",
        segment="no-ignis",
        client="Acme",
        country="usa",
        probability=0.4,
        monthly_amount=1000.0,
        start_year=2026,
        start_month="jan",
        duration_months=12,
    )
    fields.update(overrides)
    return ForecastProject(**fields)


def test_curves_for_mixed_portfolio() -> None:
    projects = [
        _project("bk", type="backlog", probability=1.0, monthly_amount=2000.0, duration_months=6),
        _project("pl", probability=0.5, start_month="apr", duration_months=3),
        _project("pr", type="product", probability=0.2, monthly_amount=500.0),
    ]
    sc = build_scenarios(projects, 2026)

    assert sc.pessimistic == [2000.0] * 6 + [0.0] * 6
    assert sc.expected[0] == pytest.approx(2000.0 + 100.0)
    assert sc.expected[3] == pytest.approx(2000.0 + 500.0 + 100.0)
    assert sc.optimistic[3] == pytest.approx(2000.0 + 1000.0 + 500.0)
    assert sc.optimistic[11] == pytest.approx(500.0)


def test_expected_is_pessimistic_plus_open_projects() -> None:
    projects = generate_synthetic_portfolio(SynthSpec(start_year=2026, projects=30, seed=3))
    sc = build_scenarios(projects, 2026)
    for i, k in enumerate(MONTH_KEYS):
        extra = sum(allocate_to_year(p, 2026)[k] for p in projects if p.type != "backlog")
        assert sc.expected[i] == pytest.approx(sc.pessimistic[i] + extra)


@pytest.mark.parametrize("seed", [1, 7, 42, 99])
def test_scenario_ordering_and_monotone_cumulative(seed: int) -> None:
    projects = generate_synthetic_portfolio(SynthSpec(start_year=2026, projects=40, seed=seed))
    for year in (2026, 2027):
        sc = build_scenarios(projects, year)
        for i in range(12):
            assert sc.pessimistic[i] <= sc.expected[i] <= sc.optimistic[i]
        for name in ("pessimistic", "expected", "optimistic"):
            cum = list(sc.cumulative[name])
            assert cum[0] == sc.monthly[name].iloc[0]
            assert all(a <= b for a, b in zip(cum, cum[1:]))
            assert cum[-1] == pytest.approx(sum(sc.monthly[name]))
        c = sc.cumulative
        assert all(c["pessimistic"] <= c["expected"])
        assert all(c["expected"] <= c["optimistic"])


def test_backlog_below_certainty_counts_at_stored_probability() -> None:
    projects = [_project("bk", type="backlog", probability=0.8)]
    sc = build_scenarios(projects, 2026)
    assert sc.pessimistic[0] == pytest.approx(800.0)
    assert sc.expected[0] == pytest.approx(800.0)
    assert sc.optimistic[0] == pytest.approx(1000.0)


def test_empty_portfolio_gives_flat_zero_curves() -> None:
    sc = build_scenarios([], 2026)
    assert sc.optimistic == [0.0] * 12
    payload = sc.to_dict()
    assert payload["months"] == list(MONTH_KEYS)
    assert set(payload["cumulative"]) == {"pessimistic", "expected", "optimistic"}
