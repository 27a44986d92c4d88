"""Goal and portfolio tracking over the store.

Combines the store modules with the valuation and XIRR functions to
answer the dashboard questions: what is each goal worth today, how is
it performing, how much goes into it every month, and how is the
mutual-fund portfolio doing overall and per scheme.

"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import date
from typing import TYPE_CHECKING, Any

from goalfolio.analysis.returns import cagr
from goalfolio.analysis.xirr import (
    XirrResult,
    goal_xirr,
    holding_key,
    interpret_xirr,
    portfolio_xirr,
    scheme_xirr,
)
from goalfolio.db.goal_store import get_goal, get_goal_mappings, get_goals
from goalfolio.db.holdings_store import get_nps_holdings, get_stocks
from goalfolio.db.market_store import get_cached_stock_prices
from goalfolio.db.portfolio_store import get_current_portfolio, get_transactions
from goalfolio.market.yahoo import yahoo_symbol
from goalfolio.portfolio.valuation import (
    average_monthly_investment,
    goal_progress,
    mapping_share,
    mf_value_for_mappings,
    nps_value,
    stock_value,
    summarize_portfolio,
)

if TYPE_CHECKING:
    import duckdb

logger = logging.getLogger(__name__)


def _key(scheme_name: Any, folio: Any) -> tuple[str, str]:
    return (str(scheme_name or "").strip().lower(), str(folio or "").strip().lower())


def _mf_shares(mappings: Iterable[Mapping[str, Any]]) -> dict[tuple[str, str], float]:
    return {
        _key(m["scheme_name"], m["folio"]): mapping_share(m)
        for m in mappings
        if m["source_type"] == "mutual_fund"
    }


def goal_current_value(
    conn: duckdb.DuckDBPyConnection,
    goal_id: str,
) -> dict[str, float]:
    """Current value of everything mapped to a goal.

    Mutual funds are valued from ``current_portfolio``, stocks from the
    cached INR quote, and NPS holdings from the stored NAV. Sources
    whose price is unknown contribute 0.

    Returns:
        Dict with mutual_fund, stock, nps and total.

    Raises:
        LookupError: If the goal does not exist.

    """
    goal = get_goal(conn, goal_id)
    user_id = goal["user_id"]
    mappings = get_goal_mappings(conn, goal_id)

    mf_total = mf_value_for_mappings(
        get_current_portfolio(conn, user_id),
        [m for m in mappings if m["source_type"] == "mutual_fund"],
    )

    stock_mappings = [m for m in mappings if m["source_type"] == "stock"]
    stock_total = 0.0
    if stock_mappings:
        stocks = {s["id"]: s for s in get_stocks(conn, user_id)}
        symbols: dict[str, str] = {}
        for mapping in stock_mappings:
            stock = stocks.get(mapping["source_id"])
            if stock is None:
                logger.warning("Goal %s maps missing stock %s", goal_id, mapping["source_id"])
                continue
            try:
                symbols[stock["id"]] = yahoo_symbol(stock["stock_code"], stock["exchange"])
            except ValueError as exc:
                logger.warning("Cannot price stock %s: %s", stock["stock_code"], exc)
        cached = get_cached_stock_prices(conn, sorted(set(symbols.values())))
        for mapping in stock_mappings:
            symbol = symbols.get(mapping["source_id"])
            if symbol is None:
                continue
            row = cached.get(symbol)
            price = row["price_inr"] if row else None
            quantity = stocks[mapping["source_id"]]["quantity"]
            stock_total += stock_value(quantity, price) * mapping_share(mapping)

    nps_mappings = [m for m in mappings if m["source_type"] == "nps"]
    nps_total = 0.0
    if nps_mappings:
        holdings = {h["id"]: h for h in get_nps_holdings(conn, user_id)}
        for mapping in nps_mappings:
            holding = holdings.get(mapping["source_id"])
            if holding is None:
                logger.warning("Goal %s maps missing NPS holding %s", goal_id, mapping["source_id"])
                continue
            nps_total += nps_value(holding["units"], holding["nav"]) * mapping_share(mapping)

    return {
        "mutual_fund": round(mf_total, 2),
        "stock": round(stock_total, 2),
        "nps": round(nps_total, 2),
        "total": round(mf_total + stock_total + nps_total, 2),
    }


def goal_transactions(
    conn: duckdb.DuckDBPyConnection,
    goal_id: str,
) -> list[dict[str, Any]]:
    """Transactions of the mutual-fund holdings mapped to a goal.

    Amounts are scaled by each mapping's allocation percentage.
    """
    goal = get_goal(conn, goal_id)
    shares = _mf_shares(get_goal_mappings(conn, goal_id, source_type="mutual_fund"))
    if not shares:
        return []

    selected: list[dict[str, Any]] = []
    for tx in get_transactions(conn, user_id=goal["user_id"]):
        share = shares.get(_key(tx["scheme_name"], tx["folio"]))
        if share is None:
            continue
        selected.append({**tx, "amount": float(tx["amount"]) * share})
    return selected


def compute_goal_xirr(
    conn: duckdb.DuckDBPyConnection,
    goal_id: str,
    as_of: date | None = None,
) -> XirrResult:
    """XIRR of the mutual-fund holdings mapped to a goal.

    Raises:
        LookupError: If the goal does not exist.

    """
    goal = get_goal(conn, goal_id)
    shares = _mf_shares(get_goal_mappings(conn, goal_id, source_type="mutual_fund"))

    current_values: dict[str, float] = {}
    for row in get_current_portfolio(conn, goal["user_id"]):
        share = shares.get(_key(row["scheme_name"], row["folio"]))
        if share is not None:
            key = holding_key(row["scheme_name"], row["folio"])
            current_values[key] = float(row["current_value"] or 0.0) * share

    return goal_xirr(goal_transactions(conn, goal_id), current_values, as_of or date.today())


def goal_average_monthly_investment(
    conn: duckdb.DuckDBPyConnection,
    goal_id: str,
    as_of: date | None = None,
    lookback_months: int = 12,
) -> float:
    """Average monthly purchase amount into a goal's mutual funds."""
    return average_monthly_investment(
        goal_transactions(conn, goal_id),
        as_of or date.today(),
        lookback_months=lookback_months,
    )


def goals_with_details(
    conn: duckdb.DuckDBPyConnection,
    user_id: str,
    as_of: date | None = None,
) -> list[dict[str, Any]]:
    """Every goal of a user with its value breakdown, progress and XIRR."""
    as_of = as_of or date.today()
    details: list[dict[str, Any]] = []
    for goal in get_goals(conn, user_id):
        values = goal_current_value(conn, goal["id"])
        result = compute_goal_xirr(conn, goal["id"], as_of)
        details.append(
            {
                **goal,
                "mappings": get_goal_mappings(conn, goal["id"]),
                "values": values,
                "progress": goal_progress(goal, values["total"], as_of),
                "xirr": result.to_dict(),
                "xirr_interpretation": interpret_xirr(result),
            }
        )
    return details


def goals_xirr(
    conn: duckdb.DuckDBPyConnection,
    user_id: str,
    as_of: date | None = None,
) -> dict[str, XirrResult]:
    """XIRR of every goal of a user, keyed by goal ID."""
    as_of = as_of or date.today()
    return {
        goal["id"]: compute_goal_xirr(conn, goal["id"], as_of)
        for goal in get_goals(conn, user_id)
    }


def _holding_cagr(
    row: Mapping[str, Any],
    transactions: Iterable[Mapping[str, Any]],
    as_of: date,
) -> float | None:
    """CAGR from total invested to current value since the first purchase."""
    dates = [
        date.fromisoformat(str(tx["date"])[:10])
        for tx in transactions
        if tx["scheme_name"] == row["scheme_name"] and tx["folio"] == row["folio"]
    ]
    invested = float(row["total_invested"] or 0.0)
    if not dates or invested <= 0:
        return None
    years = (as_of - min(dates)).days / 365.0
    if years <= 0:
        return None
    return cagr(invested, float(row["current_value"] or 0.0), years)


def portfolio_performance(
    conn: duckdb.DuckDBPyConnection,
    user_id: str,
    as_of: date | None = None,
) -> dict[str, Any]:
    """Portfolio totals, overall XIRR, and XIRR per (scheme, folio).

    Returns:
        Dict with summary (see PortfolioSummary.to_dict), xirr (overall)
        and schemes (one entry per current-portfolio row, with its CAGR
        since the first purchase and its XIRR).

    """
    as_of = as_of or date.today()
    rows = get_current_portfolio(conn, user_id)
    transactions = get_transactions(conn, user_id=user_id)
    summary = summarize_portfolio(rows)

    overall = portfolio_xirr(transactions, summary.total_current_value, as_of)
    schemes = []
    for row in rows:
        result = scheme_xirr(
            transactions,
            row["scheme_name"],
            row["folio"],
            float(row["current_value"] or 0.0),
            as_of,
        )
        schemes.append(
            {
                "scheme_name": row["scheme_name"],
                "folio": row["folio"],
                "total_invested": row["total_invested"],
                "current_value": row["current_value"],
                "return_percentage": row["return_percentage"],
                "cagr": _holding_cagr(row, transactions, as_of),
                "xirr": result.to_dict(),
            }
        )

    return {
        "summary": summary.to_dict(),
        "xirr": overall.to_dict(),
        "xirr_interpretation": interpret_xirr(overall),
        "schemes": schemes,
    }
