"""Revenue forecast planning: allocation, roll-ups and scenarios over a project portfolio."""

from .allocation import allocate_to_year
from .grouping import build_grouped_view
from .metrics import compute_tcv, compute_weighted_total
from .scenarios import build_scenarios
from .types import ForecastProject

__all__ = [
    "ForecastProject",
    "allocate_to_year",
    "build_grouped_view",
    "build_scenarios",
    "compute_tcv",
    "compute_weighted_total",
]
