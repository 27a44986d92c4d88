"""NAV refresh jobs.

Downloads the AMFI NAV feed into ``nav_data`` and revalues every
current-portfolio row from it, and refreshes the stored NAV of each
NPS fund. The jobs are run from the CLI, from the API's key-protected
routes, or from a scheduler calling either of those.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date
from typing import TYPE_CHECKING, Any

from goalfolio.db.holdings_store import get_nps_funds, upsert_nps_nav
from goalfolio.db.market_store import (
    count_nav_records,
    get_latest_nav_by_isin,
    get_latest_nav_by_scheme_name,
    get_latest_nav_date,
    upsert_nav_records,
)
from goalfolio.db.portfolio_store import (
    get_current_portfolio,
    get_portfolio_user_ids,
    get_unit_balance,
    update_portfolio_valuation,
)
from goalfolio.market._http import UpstreamError
from goalfolio.market.amfi import AMFI_NAV_URL, fetch_nav_text, parse_nav_text
from goalfolio.market.nps import NPS_NAV_URL, fetch_nps_nav
from goalfolio.portfolio.valuation import revalue_entry

if TYPE_CHECKING:
    import duckdb

logger = logging.getLogger(__name__)

# NAVs are published for the previous business day
MAX_NAV_AGE_DAYS = 1


def _find_nav(
    conn: duckdb.DuckDBPyConnection,
    entry: dict[str, Any],
) -> dict[str, Any] | None:
    isin = (entry.get("isin") or "").strip()
    if isin:
        nav = get_latest_nav_by_isin(conn, isin)
        if nav is not None:
            return nav
    return get_latest_nav_by_scheme_name(conn, entry["scheme_name"])


def refresh_portfolio_nav(
    conn: duckdb.DuckDBPyConnection,
    user_id: str,
) -> dict[str, Any]:
    """Revalue a user's current-portfolio rows at the latest stored NAV.

    For every row the unit balance is recomputed from the transactions
    of its (folio, scheme), and the NAV is looked up by ISIN first and
    by scheme name second. Rows without a NAV keep their old valuation.

    Returns:
        Dict with success, updated (row count) and missing_nav (list of
        scheme_name/folio dicts that had no NAV).

    """
    updated = 0
    missing: list[dict[str, str]] = []

    for entry in get_current_portfolio(conn, user_id):
        nav = _find_nav(conn, entry)
        if nav is None or not nav.get("nav_value"):
            logger.warning(
                "No NAV found for %s (folio %s)", entry["scheme_name"], entry["folio"]
            )
            missing.append({"scheme_name": entry["scheme_name"], "folio": entry["folio"]})
            continue

        units = get_unit_balance(conn, user_id, entry["scheme_name"], entry["folio"])
        valuation = revalue_entry(entry, float(nav["nav_value"]), units)
        update_portfolio_valuation(
            conn,
            entry["id"],
            nav_date=str(nav["nav_date"]),
            **valuation,
        )
        updated += 1

    logger.info(
        "Refreshed NAV for user %s: %d updated, %d missing", user_id, updated, len(missing)
    )
    return {"success": True, "updated": updated, "missing_nav": missing}


def refresh_all_users(conn: duckdb.DuckDBPyConnection) -> dict[str, Any]:
    """Run :func:`refresh_portfolio_nav` for every user with holdings.

    A failure for one user is recorded and the remaining users are
    still refreshed.
    """
    user_ids = get_portfolio_user_ids(conn)
    successful = 0
    errors: list[dict[str, str]] = []

    for user_id in user_ids:
        try:
            refresh_portfolio_nav(conn, user_id)
        except Exception as exc:  # noqa: BLE001 — keep refreshing the other users
            logger.warning("NAV refresh failed for user %s: %s", user_id, exc)
            errors.append({"user_id": user_id, "error": str(exc)})
            continue
        successful += 1

    return {
        "success": not errors,
        "total_users": len(user_ids),
        "successful_updates": successful,
        "failed_updates": len(errors),
        "errors": errors,
    }


def update_nav_data(  # noqa: PLR0913
    conn: duckdb.DuckDBPyConnection,
    user_id: str | None = None,
    fetch: Callable[..., str] = fetch_nav_text,
    url: str = AMFI_NAV_URL,
    timeout: float = 30.0,
) -> dict[str, Any]:
    """Download the AMFI feed, store it, and revalue portfolios.

    Args:
        conn: Active DuckDB connection.
        user_id: Revalue only this user's portfolio; all users when None.
        fetch: Callable taking (url, timeout) and returning the feed text.
        url: Feed URL.
        timeout: Request timeout in seconds.

    Returns:
        Dict with success, nav_records (schemes stored) and portfolio
        (result of the portfolio refresh).

    Raises:
        UpstreamError: If the download fails or the feed has no NAVs.

    """
    text = fetch(url, timeout=timeout)
    records = parse_nav_text(text)
    if not records:
        msg = f"NAV feed at {url} contained no NAV records"
        raise UpstreamError(msg)

    stored = upsert_nav_records(conn, records)

    if user_id is not None:
        portfolio = refresh_portfolio_nav(conn, user_id)
    else:
        portfolio = refresh_all_users(conn)

    return {
        "success": bool(portfolio["success"]),
        "nav_records": stored,
        "portfolio": portfolio,
    }


def refresh_nps_nav(
    conn: duckdb.DuckDBPyConnection,
    fetch: Callable[..., dict[str, Any]] = fetch_nps_nav,
    url_template: str = NPS_NAV_URL,
    timeout: float = 30.0,
) -> dict[str, Any]:
    """Refresh the stored NAV of every registered NPS fund.

    Returns:
        Dict with updated, failed and errors (one message per failed fund).

    """
    funds = get_nps_funds(conn)
    updated = 0
    errors: list[str] = []

    for fund in funds:
        code = fund["fund_code"]
        try:
            nav = fetch(code, url_template=url_template, timeout=timeout)
        except (UpstreamError, ValueError) as exc:
            logger.warning("NPS NAV refresh failed for %s: %s", code, exc)
            errors.append(f"{code}: {exc}")
            continue
        upsert_nps_nav(conn, code, nav["nav"], nav["nav_date"])
        updated += 1

    logger.info("Refreshed %d of %d NPS NAVs", updated, len(funds))
    return {"updated": updated, "failed": len(errors), "errors": errors}


def nav_status(
    conn: duckdb.DuckDBPyConnection,
    today: date | None = None,
) -> dict[str, Any]:
    """Report how fresh the stored NAV data is.

    Returns:
        Dict with latest_nav_date (ISO string or None), days_old,
        is_up_to_date and nav_records.

    """
    today = today or date.today()
    latest = get_latest_nav_date(conn)
    if latest is None:
        return {
            "latest_nav_date": None,
            "days_old": None,
            "is_up_to_date": False,
            "nav_records": 0,
        }

    days_old = (today - latest).days
    return {
        "latest_nav_date": latest.isoformat(),
        "days_old": days_old,
        "is_up_to_date": 0 <= days_old <= MAX_NAV_AGE_DAYS,
        "nav_records": count_nav_records(conn),
    }
