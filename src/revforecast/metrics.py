from __future__ import annotations

from .allocation import allocate_to_year
from .types import ForecastProject, sum_monthly


def compute_tcv(project: ForecastProject) -> float:
    """Total contract value, recomputed from the source fields."""
    return project.monthly_amount * project.duration_months


def compute_weighted_total(project: ForecastProject) -> float:
    """Probability-weighted value over the project's whole life."""
    return compute_tcv(project) * project.probability


def compute_year_total(project: ForecastProject, year: int, probability_override: float | None = None) -> float:
    return sum_monthly(allocate_to_year(project, year, probability_override))
