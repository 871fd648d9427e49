from __future__ import annotations

from dataclasses import dataclass, field
import importlib.resources
from pathlib import Path
from typing import Any, Mapping

import yaml

from .types import DEFAULT_START_YEAR


@dataclass(frozen=True)
class FunnelBand:
    label: str
    min: float
    max: float

    def contains(self, probability: float) -> bool:
        # Half-open [min, max); a band reaching 1.0 also holds certainty.
        if self.max >= 1.0:
            return self.min <= probability <= self.max
        return self.min <= probability < self.max


DEFAULT_FUNNEL_BANDS: tuple[FunnelBand, ...] = (
    FunnelBand("Muy alta (75-100%)", 0.75, 1.0),
    FunnelBand("Alta (50-74%)", 0.50, 0.75),
    FunnelBand("Media (25-49%)", 0.25, 0.50),
    FunnelBand("Baja (0-24%)", 0.0, 0.25),
)


@dataclass(frozen=True)
class ForecastConfig:
    base_year: int = DEFAULT_START_YEAR
    supported_years: list[int] = field(default_factory=lambda: [DEFAULT_START_YEAR])
    annual_targets: dict[int, float] = field(default_factory=dict)
    funnel_bands: tuple[FunnelBand, ...] = DEFAULT_FUNNEL_BANDS
    top_opportunities: int = 7

    def target_for(self, year: int) -> float:
        return float(self.annual_targets.get(year, 0.0))

    def is_supported(self, year: int) -> bool:
        return year in self.supported_years

    @staticmethod
    def from_mapping(raw: Mapping[str, Any]) -> "ForecastConfig":
        base_year = int(raw.get("base_year", DEFAULT_START_YEAR))
        years = [int(y) for y in (raw.get("supported_years") or [base_year])]
        if base_year not in years:
            raise ValueError(f"base_year {base_year} is not among supported_years {years}")
        targets = {int(y): float(v) for y, v in (raw.get("annual_targets") or {}).items()}
        bands_raw = raw.get("funnel_bands") or []
        bands = (
            tuple(FunnelBand(label=str(b["label"]), min=float(b["min"]), max=float(b["max"])) for b in bands_raw)
            if bands_raw
            else DEFAULT_FUNNEL_BANDS
        )
        return ForecastConfig(
            base_year=base_year,
            supported_years=sorted(years),
            annual_targets=targets,
            funnel_bands=bands,
            top_opportunities=int(raw.get("top_opportunities", 7)),
        )

    @staticmethod
    def from_yaml(path: str | Path) -> "ForecastConfig":
        path = Path(path)
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        return ForecastConfig.from_mapping(raw)


def default_forecast_config() -> ForecastConfig:
    text = importlib.resources.files("revforecast.resources").joinpath("default_forecast.yaml").read_text(encoding="utf-8")
    return ForecastConfig.from_mapping(yaml.safe_load(text))
