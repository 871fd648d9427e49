"""Spread a project's monthly amount over calendar years.

A project is active for ``duration_months`` consecutive months starting at
``(start_year, start_month)``; month index 12 of one year is month index 0 of
the next. Allocation never mutates the project.
"""

from __future__ import annotations

from .types import MONTH_KEYS, ForecastProject, MonthlyValues, empty_monthly


def month_index(month_key: str) -> int:
    return MONTH_KEYS.index(month_key)


def active_months(project: ForecastProject) -> list[tuple[int, int]]:
    """Return ``(year, month_index)`` for every active month, in order."""
    start_idx = month_index(project.start_month)
    out: list[tuple[int, int]] = []
    for i in range(project.duration_months):
        absolute_idx = start_idx + i
        year_offset, month_idx = divmod(absolute_idx, 12)
        out.append((project.start_year + year_offset, month_idx))
    return out


def active_years(project: ForecastProject) -> list[int]:
    return sorted({year for year, _ in active_months(project)})


def allocate_to_year(
    project: ForecastProject,
    target_year: int | None = None,
    probability_override: float | None = None,
) -> MonthlyValues:
    """Return the 12-month revenue contribution of ``project`` in ``target_year``.

    Each active month falling in ``target_year`` receives
    ``monthly_amount * probability``. ``probability_override`` replaces the
    project's probability for this computation only. With no ``target_year``
    the project's own start year is used, which is the single-year view: no
    month past December of the start year can land in it.

    A year outside the project's active span gives an all-zero allocation.
    """
    year = project.start_year if target_year is None else target_year
    prob = project.probability if probability_override is None else probability_override
    amount = project.monthly_amount * prob

    monthly = empty_monthly()
    for active_year, month_idx in active_months(project):
        if active_year == year:
            monthly[MONTH_KEYS[month_idx]] += amount
    return monthly
