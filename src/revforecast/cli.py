from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from .agents import AnalystAgent, PlannerAgent, ReporterAgent
from .config import ForecastConfig, default_forecast_config
from .db import DEFAULT_DB_PATH, get_connection, init_db, list_annual_targets, load_projects as load_db_projects
from .grouping import build_grouped_view
from .io import load_projects
from .seed import seed_projects
from .synth import SynthSpec, write_synthetic_portfolio
from .types import GROUP_BY_MODES, MONTH_KEYS, MONTH_LABELS

app = typer.Typer(add_completion=False, help="Revenue forecast planning: backlog, pipeline and products.")
console = Console()


def _config(path: Optional[Path]) -> ForecastConfig:
    return ForecastConfig.from_yaml(path) if path else default_forecast_config()


def _projects(input: Optional[Path], db: Path):
    if input is not None:
        return load_projects(input)
    conn = get_connection(init_db(db))
    try:
        return load_db_projects(conn), []
    finally:
        conn.close()


@app.command()
def synth(
    out: Path = typer.Option(..., help="Output directory for the synthetic projects.csv."),
    start_year: int = typer.Option(2026, help="Earliest start year."),
    projects: int = typer.Option(25, min=1, help="Number of projects."),
    seed: int = typer.Option(42, help="RNG seed."),
):
    path = write_synthetic_portfolio(out, SynthSpec(start_year=start_year, projects=projects, seed=seed))
    console.print(f"Wrote synthetic portfolio to {path}")


@app.command()
def run(
    out: Path = typer.Option(..., help="Output directory for the forecast pack."),
    input: Optional[Path] = typer.Option(None, exists=True, dir_okay=False, help="Projects CSV/JSON (default: database)."),
    db: Path = typer.Option(str(DEFAULT_DB_PATH), help="SQLite database used when no input file is given."),
    year: Optional[int] = typer.Option(None, help="Year to forecast (omit for every supported year with activity)."),
    group_by: str = typer.Option("segment", help="Grid grouping: segment, type or flat."),
    config: Optional[Path] = typer.Option(None, help="Forecast config YAML (default uses packaged config)."),
):
    if group_by not in GROUP_BY_MODES:
        raise typer.BadParameter(f"group_by must be one of {list(GROUP_BY_MODES)}")
    cfg = _config(config)
    projects, warnings = _projects(input, db)
    targets: dict[int, float] = {}
    if input is None:
        conn = get_connection(db)
        try:
            targets = list_annual_targets(conn)
        finally:
            conn.close()
    plan = PlannerAgent().plan(year, projects, cfg, group_by=group_by)
    results = AnalystAgent().run(projects, cfg, plan, targets=targets, warnings=warnings)
    ReporterAgent().package(out_dir=out, results=results)
    for w in warnings:
        console.print(f"[yellow]warning:[/yellow] {w}")
    console.print(f"Wrote forecast pack for {', '.join(str(y) for y in plan.years)} to {out}")


@app.command()
def grid(
    year: int = typer.Option(..., help="Year to show."),
    input: Optional[Path] = typer.Option(None, exists=True, dir_okay=False, help="Projects CSV/JSON (default: database)."),
    db: Path = typer.Option(str(DEFAULT_DB_PATH), help="SQLite database used when no input file is given."),
    group_by: str = typer.Option("segment", help="Grid grouping: segment, type or flat."),
    filter_type: str = typer.Option("all", help="Project type filter: all, backlog, pipeline or product."),
):
    """Print the monthly grid for one year."""
    if group_by not in GROUP_BY_MODES:
        raise typer.BadParameter(f"group_by must be one of {list(GROUP_BY_MODES)}")
    projects, _ = _projects(input, db)
    rows = build_grouped_view(projects, group_by=group_by, target_year=year, filter_type=filter_type)

    table = Table(title=f"Vista mensual {year}")
    table.add_column("Proyecto")
    table.add_column("Prob", justify="right")
    table.add_column("Total", justify="right")
    for k in MONTH_KEYS:
        table.add_column(MONTH_LABELS[k], justify="right")
    for r in rows:
        style = "bold" if r.kind != "project" else None
        prob = f"{r.probability * 100:.0f}%" if r.probability is not None else ""
        cells = [f"{r.monthly[k]:,.0f}" if r.monthly[k] else "" for k in MONTH_KEYS]
        table.add_row(("  " * r.depth) + r.label, prob, f"{r.year_total:,.0f}", *cells, style=style)
    console.print(table)


@app.command(name="init-db")
def init_db_cmd(
    db: Path = typer.Option(str(DEFAULT_DB_PATH), help="Path to the SQLite database file."),
):
    """Initialize the SQLite database (creates tables if they don't exist)."""
    path = init_db(db)
    console.print(f"Database initialized at {path}")


@app.command()
def seed(
    db: Path = typer.Option(str(DEFAULT_DB_PATH), help="Path to the SQLite database file."),
    replace: bool = typer.Option(False, help="Replace any existing projects."),
):
    """Load the sample portfolio into the database."""
    path = init_db(db)
    conn = get_connection(path)
    try:
        summary = seed_projects(conn, replace=replace)
    finally:
        conn.close()
    if "error" in summary:
        raise typer.BadParameter(summary["error"])
    console.print(f"Seeded {summary['projects']} projects into {path}")


def _find_available_port(host: str, preferred: int) -> int:
    """Return *preferred* if free, otherwise try fallbacks then let the OS pick."""
    import socket

    candidates = [preferred] + [p for p in (8000, 8001, 8080, 8888) if p != preferred]
    for port in candidates:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            try:
                s.bind((host, port))
                return port
            except OSError:
                continue
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind((host, 0))
        return s.getsockname()[1]


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", help="Host to bind (use 0.0.0.0 for LAN)."),
    port: int = typer.Option(8000, help="Port to serve the API on."),
):
    """Start the forecast API server."""
    try:
        import uvicorn
    except ImportError as e:  # pragma: no cover
        raise typer.BadParameter('Missing server deps. Install with: pip install -e ".[server]"') from e

    actual_port = _find_available_port(host, port)
    if actual_port != port:
        console.print(f"Port {port} is in use, using port {actual_port} instead.")
    uvicorn.run("revforecast.server:app", host=host, port=actual_port, reload=False)
