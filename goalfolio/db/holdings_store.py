"""Holdings data store — DuckDB CRUD for stocks and NPS holdings.

Stocks are keyed by (user, stock code, exchange); NPS holdings by
(user, fund code). Both IDs are deterministic so re-adding a holding
updates it in place.
"""

from __future__ import annotations

import logging
from datetime import date as date_cls
from typing import TYPE_CHECKING, Any

from goalfolio.db._ids import generate_id, rows_to_dicts

if TYPE_CHECKING:
    import duckdb

logger = logging.getLogger(__name__)

_MAX_STOCK_CODE_LENGTH = 20
_MAX_STOCK_QUANTITY = 1_000_000.0
_QUANTITY_DECIMALS = 3


def validate_stock(
    stock_code: str,
    quantity: float,
    purchase_date: str,
    today: date_cls | None = None,
) -> None:
    """Validate stock holding fields before they are written.

    Args:
        stock_code: Ticker, 1-20 characters after trimming.
        quantity: Shares held; greater than 0, at most 1e6, at most 3 decimals.
        purchase_date: Purchase date (YYYY-MM-DD).
        today: When given, the purchase date must not fall after it.

    Raises:
        ValueError: If any field is out of range.

    """
    code = (stock_code or "").strip()
    if not code:
        msg = "Stock code is required"
        raise ValueError(msg)
    if len(code) > _MAX_STOCK_CODE_LENGTH:
        msg = f"Stock code must be at most {_MAX_STOCK_CODE_LENGTH} characters"
        raise ValueError(msg)
    if quantity <= 0:
        msg = f"quantity must be positive, got {quantity}"
        raise ValueError(msg)
    if quantity > _MAX_STOCK_QUANTITY:
        msg = f"quantity must be at most {_MAX_STOCK_QUANTITY:,.0f}"
        raise ValueError(msg)
    scaled = quantity * 10**_QUANTITY_DECIMALS
    if abs(scaled - round(scaled)) > 1e-6:  # noqa: PLR2004
        msg = f"quantity supports at most {_QUANTITY_DECIMALS} decimal places"
        raise ValueError(msg)

    try:
        parsed = date_cls.fromisoformat(purchase_date)
    except (TypeError, ValueError) as exc:
        msg = f"purchase_date must be in YYYY-MM-DD format, got '{purchase_date}'"
        raise ValueError(msg) from exc
    if today is not None and parsed > today:
        msg = f"purchase_date cannot be in the future, got {purchase_date}"
        raise ValueError(msg)


def add_stock(  # noqa: PLR0913
    conn: duckdb.DuckDBPyConnection,
    user_id: str,
    stock_code: str,
    quantity: float,
    purchase_date: str,
    exchange: str = "NSE",
    today: date_cls | None = None,
) -> str:
    """Insert or update a stock holding.

    Args:
        conn: Active DuckDB connection.
        user_id: Owner of the holding.
        stock_code: Ticker without exchange suffix (e.g., "INFY").
        quantity: Shares held.
        purchase_date: Purchase date (YYYY-MM-DD).
        exchange: Listing exchange code (e.g., "NSE", "NASDAQ").
        today: Reference date for the no-future-date check.

    Returns:
        The stock holding ID.

    Raises:
        ValueError: If validation fails.

    """
    validate_stock(stock_code, quantity, purchase_date, today)
    code = stock_code.strip().upper()
    exchange = (exchange or "NSE").strip().upper()

    stock_id = generate_id(user_id, code, exchange)
    conn.execute(
        """
        INSERT OR REPLACE INTO stocks
            (id, user_id, stock_code, quantity, purchase_date, exchange)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        [stock_id, user_id, code, quantity, purchase_date, exchange],
    )
    logger.info("Saved stock %s:%s x %s for user %s", exchange, code, quantity, user_id)
    return stock_id


def get_stocks(
    conn: duckdb.DuckDBPyConnection,
    user_id: str | None = None,
) -> list[dict[str, Any]]:
    """Get stock holdings, optionally filtered by user."""
    if user_id:
        query = "SELECT * FROM stocks WHERE user_id = ? ORDER BY stock_code"
        result = conn.execute(query, [user_id]).fetchall()
    else:
        query = "SELECT * FROM stocks ORDER BY user_id, stock_code"
        result = conn.execute(query).fetchall()
    return rows_to_dicts(conn, result)


def get_stock(conn: duckdb.DuckDBPyConnection, stock_id: str) -> dict[str, Any]:
    """Fetch a single stock holding.

    Raises:
        LookupError: If the holding does not exist.

    """
    result = conn.execute("SELECT * FROM stocks WHERE id = ?", [stock_id]).fetchall()
    rows = rows_to_dicts(conn, result)
    if not rows:
        msg = f"Stock holding not found: {stock_id}"
        raise LookupError(msg)
    return rows[0]


def get_distinct_stock_symbols(
    conn: duckdb.DuckDBPyConnection,
) -> list[tuple[str, str]]:
    """List every distinct (stock_code, exchange) held by any user."""
    result = conn.execute(
        "SELECT DISTINCT stock_code, exchange FROM stocks ORDER BY exchange, stock_code"
    ).fetchall()
    return [(row[0], row[1]) for row in result]


def delete_stock(conn: duckdb.DuckDBPyConnection, stock_id: str) -> None:
    """Delete a stock holding and any goal mappings that reference it."""
    conn.execute(
        "DELETE FROM goal_scheme_mapping WHERE source_type = 'stock' AND source_id = ?",
        [stock_id],
    )
    conn.execute("DELETE FROM stocks WHERE id = ?", [stock_id])


def add_nps_fund(
    conn: duckdb.DuckDBPyConnection,
    fund_code: str,
    fund_name: str,
) -> None:
    """Register an NPS fund (scheme) so its NAV can be refreshed."""
    if not fund_code or not fund_code.strip():
        msg = "fund_code must be a non-empty string"
        raise ValueError(msg)
    conn.execute(
        "INSERT OR REPLACE INTO nps_funds (fund_code, fund_name) VALUES (?, ?)",
        [fund_code.strip(), fund_name.strip()],
    )


def get_nps_funds(conn: duckdb.DuckDBPyConnection) -> list[dict[str, Any]]:
    """List every registered NPS fund ordered by name."""
    result = conn.execute("SELECT * FROM nps_funds ORDER BY fund_name").fetchall()
    return rows_to_dicts(conn, result)


def upsert_nps_holding(
    conn: duckdb.DuckDBPyConnection,
    user_id: str,
    fund_code: str,
    units: float,
    as_of_date: str,
) -> str:
    """Insert or update a user's NPS holding.

    Args:
        conn: Active DuckDB connection.
        user_id: Owner of the holding.
        fund_code: NPS fund (scheme) code, e.g. "SM008001".
        units: Units held.
        as_of_date: Statement date for the unit balance (YYYY-MM-DD).

    Returns:
        The NPS holding ID.

    Raises:
        ValueError: If units is not positive.

    """
    if units <= 0:
        msg = f"units must be positive, got {units}"
        raise ValueError(msg)

    holding_id = generate_id(user_id, fund_code)
    conn.execute(
        """
        INSERT OR REPLACE INTO nps_holdings
            (id, user_id, fund_code, units, as_of_date)
        VALUES (?, ?, ?, ?, ?)
        """,
        [holding_id, user_id, fund_code, units, as_of_date],
    )
    return holding_id


def get_nps_holdings(
    conn: duckdb.DuckDBPyConnection,
    user_id: str,
) -> list[dict[str, Any]]:
    """Get a user's NPS holdings joined with fund name and latest NAV.

    Returns:
        List of holding dicts with extra keys fund_name, nav and nav_date
        (None when the fund or its NAV is unknown).

    """
    result = conn.execute(
        """
        SELECT h.*, f.fund_name, n.nav, n.nav_date
        FROM nps_holdings h
        LEFT JOIN nps_funds f ON f.fund_code = h.fund_code
        LEFT JOIN nps_nav n ON n.fund_code = h.fund_code
        WHERE h.user_id = ?
        ORDER BY h.fund_code
        """,
        [user_id],
    ).fetchall()
    return rows_to_dicts(conn, result)


def upsert_nps_nav(
    conn: duckdb.DuckDBPyConnection,
    fund_code: str,
    nav: float,
    nav_date: str,
) -> None:
    """Store the latest NAV for an NPS fund."""
    conn.execute(
        """
        INSERT OR REPLACE INTO nps_nav (fund_code, nav, nav_date, updated_at)
        VALUES (?, ?, ?, current_timestamp)
        """,
        [fund_code, nav, nav_date],
    )


def get_nps_nav(
    conn: duckdb.DuckDBPyConnection,
    fund_code: str,
) -> dict[str, Any] | None:
    """Get the stored NAV for an NPS fund, or None if never fetched."""
    result = conn.execute(
        "SELECT * FROM nps_nav WHERE fund_code = ?", [fund_code]
    ).fetchall()
    rows = rows_to_dicts(conn, result)
    return rows[0] if rows else None
