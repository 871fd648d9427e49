from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import matplotlib.ticker as mtick
import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils.dataframe import dataframe_to_rows

from .allocation import allocate_to_year
from .grouping import grouped_view_frame
from .metrics import compute_tcv
from .scenarios import SCENARIO_NAMES
from .types import (
    COUNTRY_LABELS,
    MONTH_KEYS,
    MONTH_LABELS,
    SEGMENT_LABELS,
    TYPE_LABELS,
    ForecastProject,
    ForecastResult,
    sum_monthly,
)


def write_assumptions(path: str | Path, assumptions: dict[str, Any]) -> None:
    path = Path(path)
    path.write_text(json.dumps(assumptions, indent=2, default=str), encoding="utf-8")


def _fmt(n: float) -> str:
    if n >= 1_000_000:
        return f"{n / 1_000_000:.2f}M"
    if n >= 1_000:
        return f"{n / 1_000:.0f}K"
    return f"{n:.0f}"


def write_narrative(path: str | Path, result: ForecastResult) -> None:
    path = Path(path)
    s = result.stats
    t = result.target
    cum = result.scenarios.cumulative.iloc[-1]

    lines: list[str] = []
    lines.append(f"# Revenue Forecast {result.year}")
    lines.append("")
    lines.append("## Summary")
    lines.append(f"- Projects active: {sum(1 for r in result.grid if r.kind == 'project')} of {s.project_count}")
    lines.append(f"- Backlog: {_fmt(s.total_backlog)} EUR")
    lines.append(f"- Pipeline (weighted): {_fmt(s.total_pipeline_weighted)} EUR (TCV {_fmt(s.total_pipeline_tcv)})")
    lines.append(f"- Products: {_fmt(s.total_products)} EUR")
    lines.append(f"- Total forecast: {_fmt(s.total_forecast)} EUR")
    lines.append(f"- Ignis concentration: {s.ignis_percent:.1f}%")
    lines.append("")
    lines.append("## Target")
    lines.append(f"- Target: {_fmt(t.target)} EUR")
    lines.append(f"- Fulfilment: {t.fulfillment_pct:.1f}%")
    lines.append("")
    lines.append("## Scenarios (year end, cumulative)")
    for name in SCENARIO_NAMES:
        lines.append(f"- {name.capitalize()}: {_fmt(float(cum[name]))} EUR")
    lines.append("")
    if s.by_country:
        lines.append("## By country")
        for k, v in sorted(s.by_country.items(), key=lambda kv: -kv[1]):
            lines.append(f"- {COUNTRY_LABELS.get(k, k)}: {_fmt(v)} EUR")
        lines.append("")
    if result.warnings:
        lines.append("## Data Quality / Warnings")
        for w in result.warnings:
            lines.append(f"- {w}")
        lines.append("")

    path.write_text("\n".join(lines), encoding="utf-8")


def save_forecast_charts(out_dir: str | Path, results: list[ForecastResult]) -> list[Path]:
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    paths: list[Path] = []
    labels = [MONTH_LABELS[k] for k in MONTH_KEYS]

    for res in results:
        s = res.stats
        monthly = pd.DataFrame(
            {
                TYPE_LABELS["backlog"]: [s.monthly_backlog[k] for k in MONTH_KEYS],
                TYPE_LABELS["pipeline"]: [s.monthly_pipeline[k] for k in MONTH_KEYS],
                TYPE_LABELS["product"]: [s.monthly_products[k] for k in MONTH_KEYS],
            },
            index=labels,
        )
        ax = monthly.plot(kind="bar", stacked=True, figsize=(10, 4), color=["#10b981", "#3b82f6", "#8b5cf6"])
        ax.set_title(f"Revenue mensual {res.year}")
        ax.set_ylabel("EUR")
        ax.yaxis.set_major_formatter(mtick.StrMethodFormatter("{x:,.0f}"))
        ax.grid(True, axis="y", alpha=0.25)
        p = out_dir / f"monthly_{res.year}.png"
        plt.tight_layout()
        plt.savefig(p, dpi=160)
        plt.close()
        paths.append(p)

        plt.figure(figsize=(10, 4))
        cum = res.scenarios.cumulative
        x = list(range(len(MONTH_KEYS)))
        styles = {
            "optimistic": ("#10b981", "--"),
            "expected": ("#3b82f6", "-"),
            "pessimistic": ("#ef4444", "--"),
        }
        for name, (color, ls) in styles.items():
            plt.plot(x, cum[name].values, color=color, linestyle=ls, label=name.capitalize())
        plt.fill_between(x, cum["pessimistic"].values, cum["optimistic"].values, color="#3b82f6", alpha=0.08)
        if res.target.target > 0:
            plt.axhline(y=res.target.target, color="gray", linestyle=":", linewidth=1, alpha=0.6, label="Target")
        plt.xticks(x, labels)
        plt.title(f"Escenarios acumulados {res.year}")
        plt.ylabel("EUR")
        plt.gca().yaxis.set_major_formatter(mtick.StrMethodFormatter("{x:,.0f}"))
        plt.grid(True, alpha=0.25)
        plt.legend()
        p = out_dir / f"scenarios_{res.year}.png"
        plt.tight_layout()
        plt.savefig(p, dpi=160)
        plt.close()
        paths.append(p)
    return paths


def projects_frame(projects: list[ForecastProject]) -> pd.DataFrame:
    rows = [
        {
            "Cliente": p.client_key,
            "Oportunidad": p.name,
            "Tipo": TYPE_LABELS.get(p.type, p.type),
            "Segmento": SEGMENT_LABELS.get(p.segment, p.segment),
            "País": COUNTRY_LABELS.get(p.country, p.country),
            "Probabilidad": p.probability,
            "Importe Mensual": p.monthly_amount,
            "Año Inicio": p.start_year,
            "Mes Inicio": MONTH_LABELS[p.start_month],
            "Duración Meses": p.duration_months,
            "TCV": compute_tcv(p),
            "Producto": p.product or "",
        }
        for p in projects
    ]
    return pd.DataFrame(rows)


def year_frame(projects: list[ForecastProject], year: int) -> pd.DataFrame:
    """Projects active in ``year`` with rounded monthly figures and weighted total."""
    rows = []
    for p in projects:
        m = allocate_to_year(p, year)
        if not any(m[k] > 0 for k in MONTH_KEYS):
            continue
        row: dict[str, Any] = {
            "Cliente": p.client_key,
            "Oportunidad": p.name,
            "Tipo": TYPE_LABELS.get(p.type, p.type),
            "Probabilidad": p.probability,
            "TCV": compute_tcv(p),
        }
        for k in MONTH_KEYS:
            row[MONTH_LABELS[k]] = round(m[k])
        row["Total Ponderado"] = round(sum_monthly(m))
        rows.append(row)
    return pd.DataFrame(rows)


def write_excel_pack(path: str | Path, projects: list[ForecastProject], results: list[ForecastResult]) -> None:
    path = Path(path)
    wb = Workbook()
    wb.remove(wb.active)

    _add_df_sheet(wb, "Proyectos", projects_frame(projects))
    for res in results:
        df = year_frame(projects, res.year)
        if len(df.index) > 0:
            _add_df_sheet(wb, f"Forecast {res.year}", df)
        grid = grouped_view_frame(res.grid).drop(columns=["Id", "Kind", "Depth"])
        _add_df_sheet(wb, f"Grid {res.year}", grid)
        _add_df_sheet(wb, f"Escenarios {res.year}", _scenario_frame(res))

    wb.save(path)


def _scenario_frame(res: ForecastResult) -> pd.DataFrame:
    monthly = res.scenarios.monthly.add_prefix("monthly_")
    cumulative = res.scenarios.cumulative.add_prefix("cumulative_")
    out = pd.concat([monthly, cumulative], axis=1)
    out.index = [MONTH_LABELS[k] for k in out.index]
    return out.reset_index(names="Mes")


def _add_df_sheet(wb: Workbook, title: str, df: pd.DataFrame) -> None:
    df = df.astype(object).where(pd.notna(df), None)
    ws = wb.create_sheet(title=title[:31])
    for r in dataframe_to_rows(df, index=False, header=True):
        ws.append(r)
    for cell in ws[1]:
        cell.font = Font(bold=True)
    ws.freeze_panes = "A2"
