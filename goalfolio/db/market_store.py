"""Market data store — AMFI NAVs and the stock quote cache.

Handles bulk NAV ingestion (tens of thousands of schemes per AMFI
download) through a registered pandas frame, the NAV lookups used to
value portfolio rows, and the INR-normalized stock price cache.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import pandas as pd

from goalfolio.db._ids import rows_to_dicts

if TYPE_CHECKING:
    from datetime import date

    import duckdb

logger = logging.getLogger(__name__)

NAV_COLUMNS = [
    "scheme_code",
    "isin_div_payout",
    "isin_div_reinvestment",
    "scheme_name",
    "nav_value",
    "nav_date",
]


def upsert_nav_records(
    conn: duckdb.DuckDBPyConnection,
    records: list[dict[str, Any]],
) -> int:
    """Insert or replace NAV records keyed on scheme code.

    Args:
        conn: Active DuckDB connection.
        records: Dicts with keys scheme_code, isin_div_payout,
            isin_div_reinvestment, scheme_name, nav_value and nav_date
            (YYYY-MM-DD).

    Returns:
        Number of distinct schemes written.

    """
    if not records:
        return 0

    frame = pd.DataFrame.from_records(records, columns=NAV_COLUMNS)
    # A scheme code may appear twice in one feed; the later line wins.
    frame = frame.drop_duplicates(subset="scheme_code", keep="last")

    conn.register("nav_frame", frame)
    try:
        conn.execute(
            """
            INSERT OR REPLACE INTO nav_data
                (scheme_code, isin_div_payout, isin_div_reinvestment,
                 scheme_name, nav_value, nav_date, updated_at)
            SELECT
                CAST(scheme_code AS VARCHAR),
                CAST(isin_div_payout AS VARCHAR),
                CAST(isin_div_reinvestment AS VARCHAR),
                CAST(scheme_name AS VARCHAR),
                CAST(nav_value AS DOUBLE),
                CAST(nav_date AS DATE),
                current_timestamp
            FROM nav_frame
            """
        )
    finally:
        conn.unregister("nav_frame")

    logger.info("Upserted %d NAV records", len(frame))
    return len(frame)


def get_latest_nav_by_isin(
    conn: duckdb.DuckDBPyConnection,
    isin: str,
) -> dict[str, Any] | None:
    """Find the most recent NAV whose payout or reinvestment ISIN matches."""
    result = conn.execute(
        """
        SELECT * FROM nav_data
        WHERE isin_div_payout = ? OR isin_div_reinvestment = ?
        ORDER BY nav_date DESC
        LIMIT 1
        """,
        [isin, isin],
    ).fetchall()
    rows = rows_to_dicts(conn, result)
    return rows[0] if rows else None


def get_latest_nav_by_scheme_name(
    conn: duckdb.DuckDBPyConnection,
    scheme_name: str,
) -> dict[str, Any] | None:
    """Find the most recent NAV whose scheme name contains the given name.

    Matching is case-insensitive. Used when a holding has no ISIN or the
    ISIN is missing from the feed.
    """
    name = scheme_name.strip()
    if not name:
        return None
    result = conn.execute(
        """
        SELECT * FROM nav_data
        WHERE scheme_name ILIKE ?
        ORDER BY nav_date DESC, length(scheme_name) ASC
        LIMIT 1
        """,
        [f"%{name}%"],
    ).fetchall()
    rows = rows_to_dicts(conn, result)
    return rows[0] if rows else None


def get_latest_nav_date(conn: duckdb.DuckDBPyConnection) -> date | None:
    """Return the newest NAV date stored, or None when the table is empty."""
    row = conn.execute("SELECT MAX(nav_date) FROM nav_data").fetchone()
    return row[0] if row else None


def count_nav_records(conn: duckdb.DuckDBPyConnection) -> int:
    """Return the number of schemes with a stored NAV."""
    row = conn.execute("SELECT COUNT(*) FROM nav_data").fetchone()
    return int(row[0]) if row else 0


def upsert_stock_price(  # noqa: PLR0913
    conn: duckdb.DuckDBPyConnection,
    symbol: str,
    price_inr: float,
    price_original: float,
    currency: str,
    exchange_rate_to_inr: float = 1.0,
) -> None:
    """Cache the latest quote for a Yahoo symbol.

    Args:
        conn: Active DuckDB connection.
        symbol: Yahoo symbol including exchange suffix (e.g., "INFY.NS").
        price_inr: Price converted to rupees.
        price_original: Price in the listing currency.
        currency: Listing currency code.
        exchange_rate_to_inr: Rate applied for the conversion.

    """
    conn.execute(
        """
        INSERT OR REPLACE INTO stock_prices_cache
            (symbol, price_inr, price_original, currency,
             exchange_rate_to_inr, updated_at)
        VALUES (?, ?, ?, ?, ?, current_timestamp)
        """,
        [symbol, price_inr, price_original, currency, exchange_rate_to_inr],
    )


def get_cached_stock_prices(
    conn: duckdb.DuckDBPyConnection,
    symbols: list[str] | None = None,
) -> dict[str, dict[str, Any]]:
    """Get cached quotes keyed by Yahoo symbol.

    Args:
        conn: Active DuckDB connection.
        symbols: Optional subset of symbols; all cached symbols when None.

    Returns:
        Dict mapping symbol to its cache row.

    """
    if symbols is not None and not symbols:
        return {}

    if symbols is None:
        result = conn.execute("SELECT * FROM stock_prices_cache").fetchall()
    else:
        placeholders = ", ".join("?" for _ in symbols)
        result = conn.execute(
            f"SELECT * FROM stock_prices_cache WHERE symbol IN ({placeholders})",  # noqa: S608
            symbols,
        ).fetchall()
    return {row["symbol"]: row for row in rows_to_dicts(conn, result)}
