"""Seed portfolio for development and demos.

Loads a representative mix of signed backlog, open pipeline and recurring
product lines into the project store.
"""

from __future__ import annotations

import sqlite3
from typing import Any

from . import db
from .types import ForecastProject

SEED_RECORDS: list[dict[str, Any]] = [
    # Backlog: signed, probability 1.0
    {"id": "seed-001", "name": "Plataforma de datos fase II", "type": "backlog", "segment": "ignis",
     "client": "Ignis Energía", "parent_client": "Grupo Ignis", "country": "spain",
     "probability": 1.0, "monthly_amount": 85_000, "start_year": 2026, "start_month": "jan", "duration_months": 12},
    {"id": "seed-002", "name": "Mantenimiento evolutivo", "type": "backlog", "segment": "ignis",
     "client": "Ignis Renovables", "parent_client": "Grupo Ignis", "country": "spain",
     "probability": 1.0, "monthly_amount": 32_000, "start_year": 2026, "start_month": "mar", "duration_months": 18},
    {"id": "seed-003", "name": "Migración cloud", "type": "backlog", "segment": "no-ignis",
     "client": "Havenlijn Logistics", "country": "netherlands",
     "probability": 1.0, "monthly_amount": 41_000, "start_year": 2026, "start_month": "feb", "duration_months": 6},
    {"id": "seed-004", "name": "Analítica de clientes", "type": "backlog", "segment": "no-ignis",
     "client": "Banco Andino", "country": "colombia",
     "probability": 1.0, "monthly_amount": 27_500, "start_year": 2025, "start_month": "sep", "duration_months": 9},
    {"id": "seed-005", "name": "Soporte operativo", "type": "backlog", "segment": "no-ignis",
     "client": "Northwind Retail", "country": "usa",
     "probability": 1.0, "monthly_amount": 18_000, "start_year": 2026, "start_month": "jan", "duration_months": 12},
    # Pipeline: open opportunities
    {"id": "seed-006", "name": "Gemelo digital de red", "type": "pipeline", "segment": "ignis",
     "client": "Ignis Distribución", "parent_client": "Grupo Ignis", "country": "spain",
     "probability": 0.6, "monthly_amount": 120_000, "start_year": 2026, "start_month": "jun", "duration_months": 10},
    {"id": "seed-007", "name": "Optimización de flota", "type": "pipeline", "segment": "no-ignis",
     "client": "Havenlijn Logistics", "country": "netherlands",
     "probability": 0.4, "monthly_amount": 55_000, "start_year": 2026, "start_month": "sep", "duration_months": 8},
    {"id": "seed-008", "name": "Modelo de riesgo crediticio", "type": "pipeline", "segment": "no-ignis",
     "client": "Banco Andino", "country": "colombia",
     "probability": 0.75, "monthly_amount": 38_000, "start_year": 2026, "start_month": "apr", "duration_months": 6},
    {"id": "seed-009", "name": "Previsión de demanda", "type": "pipeline", "segment": "no-ignis",
     "client": "Sakura Foods", "country": "japan",
     "probability": 0.2, "monthly_amount": 64_000, "start_year": 2026, "start_month": "nov", "duration_months": 12},
    {"id": "seed-010", "name": "Asistente de mantenimiento", "type": "pipeline", "segment": "ignis",
     "client": "Ignis Energía", "parent_client": "Grupo Ignis", "country": "spain",
     "probability": 0.3, "monthly_amount": 47_000, "start_year": 2027, "start_month": "jan", "duration_months": 9},
    {"id": "seed-011", "name": "Piloto visión artificial", "type": "pipeline", "segment": "no-ignis",
     "client": "Northwind Retail", "country": "usa",
     "probability": 0.5, "monthly_amount": 22_000, "start_year": 2026, "start_month": "jul", "duration_months": 4},
    # Products: recurring subscriptions
    {"id": "seed-012", "name": "Licencias Forecast Suite", "type": "product", "segment": "no-ignis",
     "client": "Sakura Foods", "country": "japan", "product": "Forecast Suite",
     "probability": 0.9, "monthly_amount": 9_500, "start_year": 2026, "start_month": "jan", "duration_months": 24},
    {"id": "seed-013", "name": "Suscripción Monitor", "type": "product", "segment": "ignis",
     "client": "Ignis Renovables", "parent_client": "Grupo Ignis", "country": "spain", "product": "Monitor",
     "probability": 0.8, "monthly_amount": 12_000, "start_year": 2026, "start_month": "may", "duration_months": 12},
    {"id": "seed-014", "name": "Suscripción Monitor", "type": "product", "segment": "no-ignis",
     "client": "Atlas Partners", "country": "other", "product": "Monitor",
     "probability": 0.65, "monthly_amount": 6_000, "start_year": 2026, "start_month": "oct", "duration_months": 12},
]


def seed_projects_list() -> list[ForecastProject]:
    return [ForecastProject.from_mapping(r) for r in SEED_RECORDS]


def seed_projects(conn: sqlite3.Connection, replace: bool = False) -> dict[str, Any]:
    """Load the seed portfolio. Refuses to overwrite a non-empty store unless ``replace``."""
    existing = conn.execute("SELECT COUNT(*) FROM projects").fetchone()[0]
    if existing and not replace:
        return {"error": f"Store already holds {existing} project(s). Use replace to reset."}
    count = db.replace_projects(conn, seed_projects_list())
    return {"projects": count}


def clear_projects(conn: sqlite3.Connection) -> dict[str, int]:
    return {"projects": db.replace_projects(conn, [])}
