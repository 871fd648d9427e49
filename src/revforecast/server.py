from __future__ import annotations

import logging
import os
import tempfile
import time
import uuid
from pathlib import Path
from typing import Literal, Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from . import api_crud
from . import db
from .agents import AnalystAgent, PlannerAgent
from .api_crud import router as crud_router
from .config import ForecastConfig, default_forecast_config
from .grouping import build_grouped_view
from .reporting import write_excel_pack
from .scenarios import build_scenarios
from .summary import (
    Filters,
    compute_stats,
    filter_projects,
    monthly_by_type,
    pipeline_funnel,
    target_progress,
    top_opportunities,
    totals_by_client,
    totals_by_country,
    totals_by_segment,
)
from .types import ForecastProject

limiter = Limiter(key_func=get_remote_address)
logger = logging.getLogger("revforecast.api")

app = FastAPI(title="Revenue Forecast API", version="0.1.0")
app.state.limiter = limiter


def _load_config() -> ForecastConfig:
    path = os.environ.get("FORECAST_CONFIG")
    return ForecastConfig.from_yaml(path) if path else default_forecast_config()


CONFIG = _load_config()


def _request_id_from_request(request: Request) -> str:
    return getattr(request.state, "request_id", "") or request.headers.get("X-Request-ID", "")


def _http_error_code(status_code: int) -> str:
    return {
        400: "bad_request",
        404: "not_found",
        409: "conflict",
        422: "validation_error",
        429: "rate_limited",
        500: "internal_error",
        503: "service_unavailable",
    }.get(status_code, "http_error")


def _error_response(
    request: Request,
    *,
    status_code: int,
    code: str,
    message: str,
    detail: object,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "detail": detail,
            "error": {
                "code": code,
                "message": message,
                "request_id": _request_id_from_request(request),
            },
        },
    )


@app.exception_handler(RateLimitExceeded)
async def _rate_limit_exception_handler(request: Request, _: RateLimitExceeded) -> JSONResponse:
    return _error_response(
        request,
        status_code=429,
        code="rate_limited",
        message="Rate limit exceeded",
        detail="Rate limit exceeded",
    )


@app.exception_handler(HTTPException)
async def _http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    detail = exc.detail
    if isinstance(detail, dict):
        message = str(detail.get("message") or detail.get("detail") or "Request failed")
    else:
        message = str(detail)
    return _error_response(
        request,
        status_code=exc.status_code,
        code=_http_error_code(exc.status_code),
        message=message,
        detail=detail,
    )


@app.exception_handler(RequestValidationError)
async def _validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return _error_response(
        request,
        status_code=422,
        code="validation_error",
        message="Request validation failed",
        detail=[{k: v for k, v in e.items() if k != "ctx"} for e in exc.errors()],
    )


@app.exception_handler(Exception)
async def _unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "Unhandled server exception rid=%s method=%s path=%s",
        _request_id_from_request(request),
        request.method,
        request.url.path,
    )
    return _error_response(
        request,
        status_code=500,
        code="internal_error",
        message="Internal server error",
        detail="Internal server error",
    )


@app.middleware("http")
async def _request_context_middleware(request: Request, call_next):
    request.state.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    start = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - start) * 1000.0
    response.headers["X-Request-ID"] = request.state.request_id
    logger.info(
        "%s %s -> %s in %.2fms rid=%s",
        request.method,
        request.url.path,
        response.status_code,
        elapsed_ms,
        request.state.request_id,
    )
    return response


@app.on_event("startup")
def startup():
    """Create database tables on startup."""
    try:
        db.init_db(api_crud.DB_PATH)
    except Exception:
        logger.exception("DB init failed during startup; project endpoints may fail until the database is writable")


_default_origins = "http://localhost:3000,http://127.0.0.1:3000"
_origins_env = os.environ.get("ALLOWED_ORIGINS", _default_origins)
_allowed_origins = [o.strip() for o in _origins_env.split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(crud_router)


@app.get("/")
def root():
    return {"ok": True}


@app.get("/healthz")
def healthz():
    return {"ok": True}


@app.get("/readyz")
def readyz():
    conn = None
    try:
        conn = api_crud.get_conn()
        conn.execute("SELECT 1 FROM projects LIMIT 1")
        return {"ok": True}
    except Exception as exc:
        raise HTTPException(status_code=503, detail=f"Database unavailable: {exc.__class__.__name__}") from exc
    finally:
        if conn is not None:
            conn.close()


# ---------------------------------------------------------------------------
# Forecast reads: every call works on a fresh snapshot of the store
# ---------------------------------------------------------------------------

def _snapshot() -> tuple[list[ForecastProject], dict[int, float]]:
    conn = api_crud.get_conn()
    try:
        # One read transaction so projects and targets agree.
        conn.execute("BEGIN")
        projects = db.load_projects(conn)
        targets = db.list_annual_targets(conn)
        conn.commit()
    finally:
        conn.close()
    return projects, targets


def _check_year(year: int) -> None:
    if not CONFIG.is_supported(year):
        raise HTTPException(status_code=400, detail=f"Year {year} not supported. Supported: {CONFIG.supported_years}")


def _filters(
    type: Optional[str], segment: Optional[str], country: Optional[str], client: Optional[str],
    min_prob: Optional[float], max_prob: Optional[float],
) -> Filters:
    return Filters(type=type, segment=segment, country=country, client=client, min_prob=min_prob, max_prob=max_prob)


@app.get("/api/config")
def get_config():
    return {
        "base_year": CONFIG.base_year,
        "supported_years": CONFIG.supported_years,
        "annual_targets": {str(y): v for y, v in CONFIG.annual_targets.items()},
        "top_opportunities": CONFIG.top_opportunities,
        "funnel_bands": [{"label": b.label, "min": b.min, "max": b.max} for b in CONFIG.funnel_bands],
    }


@app.get("/api/forecast/{year}/stats")
def forecast_stats(
    year: int,
    type: Optional[str] = None,
    segment: Optional[str] = None,
    country: Optional[str] = None,
    client: Optional[str] = None,
    min_prob: Optional[float] = None,
    max_prob: Optional[float] = None,
):
    _check_year(year)
    projects, _ = _snapshot()
    projects = filter_projects(projects, _filters(type, segment, country, client, min_prob, max_prob))
    return compute_stats(projects, year)


@app.get("/api/forecast/{year}/grid")
def forecast_grid(
    year: int,
    group_by: Literal["segment", "type", "flat"] = "segment",
    filter_type: Literal["all", "backlog", "pipeline", "product"] = "all",
):
    _check_year(year)
    projects, _ = _snapshot()
    rows = build_grouped_view(projects, group_by=group_by, target_year=year, filter_type=filter_type)
    return [r.to_dict() for r in rows]


@app.get("/api/forecast/{year}/scenarios")
def forecast_scenarios(year: int):
    _check_year(year)
    projects, _ = _snapshot()
    return build_scenarios(projects, year).to_dict()


@app.get("/api/forecast/{year}/totals")
def forecast_totals(year: int):
    _check_year(year)
    projects, _ = _snapshot()
    return {
        "by_country": totals_by_country(projects, year),
        "by_client": totals_by_client(projects, year),
        "by_segment": totals_by_segment(projects, year),
        "monthly_by_type": monthly_by_type(projects, year),
    }


@app.get("/api/forecast/{year}/target")
def forecast_target(year: int):
    _check_year(year)
    projects, targets = _snapshot()
    target = targets.get(year, CONFIG.target_for(year))
    return target_progress(compute_stats(projects, year), target)


@app.get("/api/forecast/funnel")
def forecast_funnel():
    projects, _ = _snapshot()
    return pipeline_funnel(projects, CONFIG.funnel_bands)


@app.get("/api/forecast/top")
def forecast_top(limit: Optional[int] = Query(default=None, ge=1)):
    projects, _ = _snapshot()
    top = top_opportunities(projects, limit or CONFIG.top_opportunities)
    return [p.to_dict() for p in top]


@app.get("/api/export")
@limiter.limit("10/minute")
def export_xlsx(request: Request, year: Optional[int] = None):
    if year is not None:
        _check_year(year)
    projects, targets = _snapshot()
    plan = PlannerAgent().plan(year, projects, CONFIG)
    results = AnalystAgent().run(projects, CONFIG, plan, targets=targets)
    with tempfile.TemporaryDirectory() as tmp:
        path = Path(tmp) / "forecast.xlsx"
        write_excel_pack(path, projects, results)
        payload = path.read_bytes()
    stamp = time.strftime("%Y-%m-%d")
    return Response(
        content=payload,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f'attachment; filename="Forecast_{stamp}.xlsx"'},
    )
