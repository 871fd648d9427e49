from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import numpy as np

from .io import write_projects_csv
from .types import COUNTRIES, MONTH_KEYS, ForecastProject


@dataclass(frozen=True)
class SynthSpec:
    start_year: int
    projects: int
    seed: int
    clients: int = 6


_PROJECT_WORDS = ["Plataforma", "Migración", "Analítica", "Soporte", "Piloto", "Modelo", "Portal", "Integración"]
_PRODUCTS = ["Forecast Suite", "Monitor", "Insights"]


def generate_synthetic_portfolio(spec: SynthSpec) -> list[ForecastProject]:
    rng = np.random.default_rng(spec.seed)
    clients = [f"Cliente {chr(ord('A') + i)}" for i in range(spec.clients)]
    # Every third client rolls up into a parent group.
    parents = {c: ("Grupo Norte" if i % 3 == 0 else None) for i, c in enumerate(clients)}

    out: list[ForecastProject] = []
    for idx in range(1, spec.projects + 1):
        ptype = str(rng.choice(["backlog", "pipeline", "product"], p=[0.4, 0.45, 0.15]))
        if ptype == "backlog":
            probability = 1.0
        else:
            probability = round(float(rng.uniform(0.05, 0.95)), 2)
        client = str(rng.choice(clients))
        duration = int(rng.integers(12, 25)) if ptype == "product" else int(rng.integers(1, 19))
        out.append(
            ForecastProject(
                id=f"S{idx:03d}",
                name=f"{_PROJECT_WORDS[idx % len(_PROJECT_WORDS)]} {idx:03d}",
                type=ptype,
                segment="ignis" if rng.random() < 0.35 else "no-ignis",
                client=client,
                parent_client=parents[client],
                country=str(rng.choice(COUNTRIES)),
                probability=probability,
                monthly_amount=max(float(round(rng.normal(40_000, 15_000) / 500) * 500), 2_000.0),
                start_year=spec.start_year + int(rng.integers(0, 2)),
                start_month=str(rng.choice(MONTH_KEYS)),
                duration_months=duration,
                product=str(rng.choice(_PRODUCTS)) if ptype == "product" else None,
            )
        )
    return out


def write_synthetic_portfolio(out_dir: str | Path, spec: SynthSpec) -> Path:
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    return write_projects_csv(out_dir / "projects.csv", generate_synthetic_portfolio(spec))
