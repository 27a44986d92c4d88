"""REST API over the portfolio store, simulators and refresh jobs.

``create_app()`` wires the routes to a DuckDB connection held on
``app.state.db``; every request works on its own cursor of that
connection. Errors are returned as ``{"error": message}``:
``ValueError`` and request validation failures map to 400, a bad or
missing API key to 401, ``LookupError`` to 404 and upstream feed
failures (``UpstreamError``) to 502. Unmatched routes and methods keep
the same body shape.
"""

from __future__ import annotations

import logging
import secrets
from collections.abc import Iterator
from datetime import date
from typing import Any

import duckdb
from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from goalfolio.analysis.xirr import interpret_xirr
from goalfolio.config import Settings
from goalfolio.db.connection import init_db
from goalfolio.db.goal_store import get_goal
from goalfolio.db.portfolio_store import get_current_portfolio
from goalfolio.formatting import format_indian_number_with_suffix, format_inr
from goalfolio.jobs.nav_refresh import nav_status, refresh_nps_nav, update_nav_data
from goalfolio.market._http import UpstreamError
from goalfolio.market.amfi import fetch_nav_text
from goalfolio.market.nps import fetch_nps_nav
from goalfolio.market.prices import get_stock_prices, prefetch_stock_prices
from goalfolio.market.yahoo import yahoo_symbol
from goalfolio.portfolio.allocation import allocation_report
from goalfolio.portfolio.goal_tracking import (
    compute_goal_xirr,
    goal_average_monthly_investment,
    goals_with_details,
    portfolio_performance,
)
from goalfolio.portfolio.valuation import summarize_portfolio
from goalfolio.simulation.goal_simulator import project_goal
from goalfolio.simulation.planner import plan_goal

logger = logging.getLogger(__name__)


class SimulateGoalRequest(BaseModel):
    monthly_sip: float | None = None
    xirr: float | None = None
    step_up: float = Field(0.0, ge=0, le=50)
    target_amount: float | None = Field(None, gt=0)
    months: int | None = Field(None, ge=1, le=600)
    existing_corpus: float = Field(0.0, ge=0)
    goal_id: str | None = None


class RequiredSipRequest(BaseModel):
    target_amount: float
    months: int
    xirr: float
    existing_corpus: float = 0.0
    step_up: float = 0.0
    include_scenarios: bool = True


class StockPricesRequest(BaseModel):
    symbols: list[str] = Field(default_factory=list)
    exchanges: list[str] = Field(default_factory=list)


class RefreshNavRequest(BaseModel):
    user_id: str | None = None


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _validation_message(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        location = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))
    return "; ".join(parts) or "Invalid request"


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_db(request: Request) -> Iterator[duckdb.DuckDBPyConnection]:
    cursor = request.app.state.db.cursor()
    try:
        yield cursor
    finally:
        cursor.close()


def require_api_key(
    settings: Settings = Depends(get_settings),
    x_api_key: str | None = Header(None),
) -> None:
    """Reject the request unless ``x-api-key`` matches the configured key.

    With no key configured every request is rejected.
    """
    expected = settings.nav_refresh_api_key
    if not expected or not x_api_key or not secrets.compare_digest(x_api_key, expected):
        raise HTTPException(status_code=401, detail="Invalid or missing API key")


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ValueError)
    async def _value_error(_request: Request, exc: ValueError) -> JSONResponse:
        return _error(400, str(exc))

    @app.exception_handler(LookupError)
    async def _lookup_error(_request: Request, exc: LookupError) -> JSONResponse:
        return _error(404, str(exc))

    @app.exception_handler(UpstreamError)
    async def _upstream_error(_request: Request, exc: UpstreamError) -> JSONResponse:
        logger.warning("Upstream failure: %s", exc)
        return _error(502, str(exc))

    @app.exception_handler(RequestValidationError)
    async def _invalid_request(_request: Request, exc: RequestValidationError) -> JSONResponse:
        return _error(400, _validation_message(exc))

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return _error(exc.status_code, str(exc.detail))


def _register_simulation_routes(app: FastAPI) -> None:
    @app.post("/api/simulate-goal")
    def simulate_goal(
        req: SimulateGoalRequest,
        db: duckdb.DuckDBPyConnection = Depends(get_db),
        settings: Settings = Depends(get_settings),
    ) -> dict[str, Any]:
        monthly_sip = req.monthly_sip
        xirr_pct = req.xirr
        target_amount = req.target_amount

        if req.goal_id:
            goal = get_goal(db, req.goal_id)
            if target_amount is None:
                target_amount = float(goal["target_amount"])
            if xirr_pct is None:
                result = compute_goal_xirr(db, req.goal_id)
                xirr_pct = (
                    round(result.percentage, 2)
                    if result.converged and result.rate >= 0
                    else settings.default_xirr
                )
            if monthly_sip is None:
                monthly_sip = goal_average_monthly_investment(db, req.goal_id) or None

        if monthly_sip is None or monthly_sip <= 0:
            msg = "monthly_sip is required and must be positive"
            raise ValueError(msg)
        if xirr_pct is None or xirr_pct < 0:
            msg = "xirr is required and must not be negative"
            raise ValueError(msg)

        return project_goal(
            monthly_sip,
            xirr_pct,
            step_up_pct=req.step_up,
            target_amount=target_amount,
            months=req.months,
            existing_corpus=req.existing_corpus,
            inflation_pct=settings.inflation_rate,
        )

    @app.post("/api/goals/required-sip")
    def required_sip(req: RequiredSipRequest) -> dict[str, Any]:
        return plan_goal(
            req.target_amount,
            req.months,
            req.xirr,
            existing_corpus=req.existing_corpus,
            step_up_pct=req.step_up,
            include_scenarios=req.include_scenarios,
        )


def _register_market_routes(app: FastAPI) -> None:
    @app.get("/api/stock-prices")
    def stock_price(
        symbol: str | None = None,
        exchange: str | None = None,
        db: duckdb.DuckDBPyConnection = Depends(get_db),
        settings: Settings = Depends(get_settings),
    ) -> dict[str, Any]:
        if not symbol or not symbol.strip() or not exchange or not exchange.strip():
            msg = "Both symbol and exchange query parameters are required"
            raise ValueError(msg)
        code = symbol.strip().upper()
        yahoo_symbol(code, exchange)
        prices = get_stock_prices(
            [(code, exchange)],
            conn=db,
            max_symbols=settings.max_symbols,
            fx_fallback_url=settings.fx_fallback_url,
        )
        result = prices[code]
        if result["price"] is None:
            msg = f"Price not available for {code}: {result['error']}"
            raise LookupError(msg)
        return result

    @app.post("/api/stock-prices")
    def stock_prices(
        req: StockPricesRequest,
        db: duckdb.DuckDBPyConnection = Depends(get_db),
        settings: Settings = Depends(get_settings),
    ) -> dict[str, Any]:
        if not req.symbols:
            return {"prices": {}}
        # A symbol without a matching exchange is treated as blank and dropped.
        pairs = [
            (symbol, req.exchanges[i] if i < len(req.exchanges) else "")
            for i, symbol in enumerate(req.symbols)
        ]
        prices = get_stock_prices(
            pairs,
            conn=db,
            max_symbols=settings.max_symbols,
            fx_fallback_url=settings.fx_fallback_url,
        )
        return {"prices": prices}

    @app.get("/api/nav/status")
    def get_nav_status(db: duckdb.DuckDBPyConnection = Depends(get_db)) -> dict[str, Any]:
        return nav_status(db)


def _register_job_routes(app: FastAPI) -> None:
    @app.post("/api/refresh-nav", dependencies=[Depends(require_api_key)])
    def refresh_nav(
        req: RefreshNavRequest | None = None,
        db: duckdb.DuckDBPyConnection = Depends(get_db),
        settings: Settings = Depends(get_settings),
    ) -> dict[str, Any]:
        user_id = req.user_id if req is not None else None
        return update_nav_data(
            db,
            user_id=user_id,
            fetch=fetch_nav_text,
            url=settings.amfi_nav_url,
            timeout=settings.http_timeout,
        )

    @app.post("/api/refresh-nps-nav", dependencies=[Depends(require_api_key)])
    def refresh_nps(
        db: duckdb.DuckDBPyConnection = Depends(get_db),
        settings: Settings = Depends(get_settings),
    ) -> dict[str, Any]:
        return refresh_nps_nav(
            db,
            fetch=fetch_nps_nav,
            url_template=settings.nps_nav_url,
            timeout=settings.http_timeout,
        )

    @app.post("/api/prefetch-stock-prices", dependencies=[Depends(require_api_key)])
    def prefetch_prices(
        db: duckdb.DuckDBPyConnection = Depends(get_db),
        settings: Settings = Depends(get_settings),
    ) -> dict[str, Any]:
        return prefetch_stock_prices(
            db,
            batch_size=settings.prefetch_batch_size,
            fx_fallback_url=settings.fx_fallback_url,
        )


def _register_portfolio_routes(app: FastAPI) -> None:
    @app.get("/api/portfolio/{user_id}/summary")
    def portfolio_summary(
        user_id: str,
        db: duckdb.DuckDBPyConnection = Depends(get_db),
    ) -> dict[str, Any]:
        summary = summarize_portfolio(get_current_portfolio(db, user_id))
        return {
            **summary.to_dict(),
            "formatted": {
                "total_invested": format_inr(summary.total_invested),
                "total_current_value": format_inr(summary.total_current_value),
                "total_return": format_inr(summary.total_return),
                "total_current_value_short": format_indian_number_with_suffix(
                    summary.total_current_value
                ),
            },
        }

    @app.get("/api/portfolio/{user_id}/xirr")
    def portfolio_xirr_route(
        user_id: str,
        db: duckdb.DuckDBPyConnection = Depends(get_db),
    ) -> dict[str, Any]:
        return portfolio_performance(db, user_id)

    @app.get("/api/portfolio/{user_id}/allocation")
    def portfolio_allocation(
        user_id: str,
        db: duckdb.DuckDBPyConnection = Depends(get_db),
    ) -> dict[str, Any]:
        return allocation_report(get_current_portfolio(db, user_id))

    @app.get("/api/users/{user_id}/goals")
    def user_goals(
        user_id: str,
        db: duckdb.DuckDBPyConnection = Depends(get_db),
    ) -> dict[str, Any]:
        return {"goals": goals_with_details(db, user_id)}

    @app.get("/api/goals/{goal_id}/xirr")
    def goal_xirr_route(
        goal_id: str,
        db: duckdb.DuckDBPyConnection = Depends(get_db),
    ) -> dict[str, Any]:
        result = compute_goal_xirr(db, goal_id)
        return {"goal_id": goal_id, **result.to_dict(), **interpret_xirr(result)}

    @app.get("/api/goals/{goal_id}/average-investment")
    def goal_average_investment(
        goal_id: str,
        lookback_months: int = Query(12, ge=1, le=120),
        db: duckdb.DuckDBPyConnection = Depends(get_db),
    ) -> dict[str, Any]:
        get_goal(db, goal_id)
        average = goal_average_monthly_investment(
            db, goal_id, as_of=date.today(), lookback_months=lookback_months
        )
        return {
            "goal_id": goal_id,
            "average_monthly_investment": average,
            "formatted": format_inr(average),
            "lookback_months": lookback_months,
        }


def create_app(
    settings: Settings | None = None,
    conn: duckdb.DuckDBPyConnection | None = None,
) -> FastAPI:
    """Build the API application.

    Args:
        settings: Runtime settings; read from the environment when None.
        conn: Open DuckDB connection; the database at
            ``settings.db_path`` is opened (and created) when None.

    Returns:
        The configured FastAPI application.

    """
    settings = settings or Settings.from_env()
    app = FastAPI(title="Goalfolio API", version="0.1.0")
    app.state.settings = settings
    app.state.db = conn if conn is not None else init_db(settings.db_path)

    _register_error_handlers(app)

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    _register_simulation_routes(app)
    _register_market_routes(app)
    _register_job_routes(app)
    _register_portfolio_routes(app)
    return app
