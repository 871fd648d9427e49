from __future__ import annotations

import pandas as pd

from .allocation import allocate_to_year
from .types import MONTH_KEYS, ForecastProject, ScenarioProjection

SCENARIO_NAMES: tuple[str, ...] = ("pessimistic", "expected", "optimistic")


def build_scenarios(projects: list[ForecastProject], target_year: int) -> ScenarioProjection:
    """Monthly and cumulative revenue curves under three probability views.

    - pessimistic: backlog only, at its stored probability
    - expected: every project at its stored probability
    - optimistic: every project at probability 1.0

    Each curve is summed in input order so that, month by month,
    pessimistic <= expected <= optimistic holds exactly in floating point.
    """
    pessimistic = [0.0] * 12
    expected = [0.0] * 12
    optimistic = [0.0] * 12

    for p in projects:
        stored = allocate_to_year(p, target_year)
        certain = allocate_to_year(p, target_year, probability_override=1.0)
        for i, k in enumerate(MONTH_KEYS):
            if p.type == "backlog":
                pessimistic[i] += stored[k]
            expected[i] += stored[k]
            optimistic[i] += certain[k]

    monthly = pd.DataFrame(
        {"pessimistic": pessimistic, "expected": expected, "optimistic": optimistic},
        index=pd.Index(MONTH_KEYS, name="month"),
    )
    return ScenarioProjection(year=target_year, monthly=monthly, cumulative=monthly.cumsum())
