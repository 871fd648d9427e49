from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from .allocation import active_years
from .config import ForecastConfig
from .grouping import build_grouped_view, grouped_view_frame
from .reporting import save_forecast_charts, write_assumptions, write_excel_pack, write_narrative
from .scenarios import build_scenarios
from .summary import compute_stats, target_progress
from .types import ForecastProject, ForecastResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ForecastPlan:
    years: list[int]
    group_by: str = "segment"
    filter_type: str | None = None


class PlannerAgent:
    def plan(
        self,
        year: int | None,
        projects: list[ForecastProject],
        config: ForecastConfig,
        group_by: str = "segment",
        filter_type: str | None = None,
    ) -> ForecastPlan:
        years: list[int]
        if year is not None:
            years = [year]
        else:
            touched = {y for p in projects for y in active_years(p)}
            years = [y for y in config.supported_years if y in touched] or [config.base_year]
        return ForecastPlan(years=years, group_by=group_by, filter_type=filter_type)


class AnalystAgent:
    def run(
        self,
        projects: list[ForecastProject],
        config: ForecastConfig,
        plan: ForecastPlan,
        targets: dict[int, float] | None = None,
        warnings: list[str] | None = None,
    ) -> list[ForecastResult]:
        targets = {**config.annual_targets, **(targets or {})}
        results: list[ForecastResult] = []
        for year in plan.years:
            run_warnings = list(warnings or [])
            if not config.is_supported(year):
                run_warnings.append(f"Year {year} is outside the supported range {config.supported_years}.")
            stats = compute_stats(projects, year)
            target = float(targets.get(year, 0.0))
            if target <= 0:
                run_warnings.append(f"No annual target set for {year}; fulfilment reported as 0%.")
            grid = build_grouped_view(projects, group_by=plan.group_by, target_year=year, filter_type=plan.filter_type)
            logger.debug("Computed forecast for %s: %d grid rows", year, len(grid))
            results.append(
                ForecastResult(
                    year=year,
                    projects=list(projects),
                    stats=stats,
                    grid=grid,
                    scenarios=build_scenarios(projects, year),
                    target=target_progress(stats, target),
                    assumptions={
                        "year": year,
                        "base_year": config.base_year,
                        "supported_years": config.supported_years,
                        "group_by": plan.group_by,
                        "filter_type": plan.filter_type or "all",
                        "annual_target": target,
                        "project_count": len(projects),
                        "method": "monthly_amount_x_probability",
                    },
                    warnings=run_warnings,
                )
            )
        return results


class ReporterAgent:
    def package(self, out_dir: Path, results: list[ForecastResult]) -> None:
        out_dir.mkdir(parents=True, exist_ok=True)
        if not results:
            return
        save_forecast_charts(out_dir / "charts", results)
        write_excel_pack(out_dir / "forecast_pack.xlsx", results[0].projects, results)

        for res in results:
            year_dir = out_dir / str(res.year)
            year_dir.mkdir(parents=True, exist_ok=True)
            write_narrative(year_dir / "narrative.md", res)
            write_assumptions(year_dir / "assumptions.json", res.assumptions)
            grouped_view_frame(res.grid).to_csv(year_dir / "grid.csv", index=False)

        first = results[0]
        write_narrative(out_dir / "narrative.md", first)
        write_assumptions(out_dir / "assumptions.json", first.assumptions)
