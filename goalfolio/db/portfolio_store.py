"""Portfolio data store — DuckDB CRUD for MF transactions and current portfolio.

Handles mutual-fund data operations: recording transactions, maintaining
one valued ``current_portfolio`` row per (user, folio, scheme), and the
aggregate lookups the NAV refresh job needs.

Amounts follow the statement convention: purchases are positive,
redemptions are negative, and ``units`` carries the same sign.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from goalfolio.db._ids import generate_id, rows_to_dicts

if TYPE_CHECKING:
    import duckdb

logger = logging.getLogger(__name__)


def add_transaction(  # noqa: PLR0913
    conn: duckdb.DuckDBPyConnection,
    user_id: str,
    date: str,
    scheme_name: str,
    folio: str,
    amount: float,
    units: float,
    transaction_type: str = "purchase",
    isin: str | None = None,
    price: float | None = None,
    unit_balance: float | None = None,
) -> str:
    """Record a mutual-fund transaction.

    Re-recording an identical transaction replaces the existing row, so
    repeated imports of the same statement are idempotent.

    Args:
        conn: Active DuckDB connection.
        user_id: Owner of the transaction.
        date: Transaction date (YYYY-MM-DD).
        scheme_name: Scheme name as printed on the statement.
        folio: Folio number.
        amount: Rupee amount; positive for purchases, negative for redemptions.
        units: Units allotted (positive) or redeemed (negative).
        transaction_type: Free-form type label such as "purchase", "sip"
            or "redemption".
        isin: Optional ISIN of the scheme.
        price: Optional NAV at which the transaction was processed.
        unit_balance: Optional running unit balance after the transaction.

    Returns:
        The generated transaction ID.

    Raises:
        ValueError: If scheme_name or folio is blank.

    """
    if not scheme_name or not scheme_name.strip():
        msg = "scheme_name must be a non-empty string"
        raise ValueError(msg)
    if not folio or not folio.strip():
        msg = "folio must be a non-empty string"
        raise ValueError(msg)

    tx_id = generate_id(
        user_id, date, scheme_name, folio, str(amount), str(units), transaction_type
    )

    conn.execute(
        """
        INSERT OR REPLACE INTO transactions
            (id, user_id, date, scheme_name, folio, isin, amount,
             transaction_type, price, units, unit_balance)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        [
            tx_id,
            user_id,
            date,
            scheme_name.strip(),
            folio.strip(),
            isin,
            amount,
            transaction_type,
            price,
            units,
            unit_balance,
        ],
    )

    logger.debug("Added %s transaction: %s %s", transaction_type, amount, scheme_name)
    return tx_id


def get_transactions(  # noqa: PLR0913
    conn: duckdb.DuckDBPyConnection,
    user_id: str | None = None,
    scheme_name: str | None = None,
    folio: str | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
) -> list[dict[str, Any]]:
    """Query transactions with optional filters.

    Args:
        conn: Active DuckDB connection.
        user_id: Optional user filter.
        scheme_name: Optional exact scheme filter.
        folio: Optional folio filter.
        start_date: Optional start date filter (YYYY-MM-DD).
        end_date: Optional end date filter (YYYY-MM-DD).

    Returns:
        List of transaction dicts ordered by date ascending.

    """
    query = "SELECT * FROM transactions WHERE 1=1"
    params: list[Any] = []

    if user_id:
        query += " AND user_id = ?"
        params.append(user_id)
    if scheme_name:
        query += " AND scheme_name = ?"
        params.append(scheme_name)
    if folio:
        query += " AND folio = ?"
        params.append(folio)
    if start_date:
        query += " AND date >= ?"
        params.append(start_date)
    if end_date:
        query += " AND date <= ?"
        params.append(end_date)

    query += " ORDER BY date ASC, created_at ASC"

    result = conn.execute(query, params).fetchall()
    return rows_to_dicts(conn, result)


def get_unit_balance(
    conn: duckdb.DuckDBPyConnection,
    user_id: str,
    scheme_name: str,
    folio: str,
) -> float:
    """Sum the units of every transaction for one (folio, scheme) holding."""
    row = conn.execute(
        """
        SELECT COALESCE(SUM(units), 0)
        FROM transactions
        WHERE user_id = ? AND scheme_name = ? AND folio = ?
        """,
        [user_id, scheme_name, folio],
    ).fetchone()
    return float(row[0]) if row else 0.0


def upsert_portfolio_entry(  # noqa: PLR0913
    conn: duckdb.DuckDBPyConnection,
    user_id: str,
    folio: str,
    scheme_name: str,
    total_invested: float,
    latest_unit_balance: float = 0.0,
    isin: str | None = None,
    current_nav: float | None = None,
    current_value: float = 0.0,
    latest_date: str | None = None,
) -> str:
    """Insert or update a current-portfolio row.

    Args:
        conn: Active DuckDB connection.
        user_id: Owner of the holding.
        folio: Folio number.
        scheme_name: Scheme name.
        total_invested: Net rupees invested in the holding.
        latest_unit_balance: Units currently held.
        isin: Optional ISIN used for NAV lookups.
        current_nav: Optional NAV already known for the holding.
        current_value: Current market value of the holding.
        latest_date: Date of the most recent transaction (YYYY-MM-DD).

    Returns:
        The portfolio entry ID.

    """
    entry_id = generate_id(user_id, folio.strip(), scheme_name.strip())
    return_amount = current_value - total_invested
    return_percentage = (
        return_amount / total_invested * 100.0 if total_invested > 0 else 0.0
    )

    conn.execute(
        """
        INSERT OR REPLACE INTO current_portfolio
            (id, user_id, folio, scheme_name, isin, total_invested, current_nav,
             latest_unit_balance, current_value, return_amount,
             return_percentage, latest_date, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, current_timestamp)
        """,
        [
            entry_id,
            user_id,
            folio.strip(),
            scheme_name.strip(),
            isin,
            total_invested,
            current_nav,
            latest_unit_balance,
            current_value,
            return_amount,
            return_percentage,
            latest_date,
        ],
    )
    return entry_id


def get_current_portfolio(
    conn: duckdb.DuckDBPyConnection,
    user_id: str,
) -> list[dict[str, Any]]:
    """Get every current-portfolio row for a user, ordered by scheme name."""
    result = conn.execute(
        "SELECT * FROM current_portfolio WHERE user_id = ? ORDER BY scheme_name, folio",
        [user_id],
    ).fetchall()
    return rows_to_dicts(conn, result)


def get_portfolio_with_missing_nav(
    conn: duckdb.DuckDBPyConnection,
    user_id: str,
) -> list[dict[str, Any]]:
    """Get current-portfolio rows that have never been valued at a NAV."""
    result = conn.execute(
        """
        SELECT * FROM current_portfolio
        WHERE user_id = ? AND current_nav IS NULL
        ORDER BY scheme_name, folio
        """,
        [user_id],
    ).fetchall()
    return rows_to_dicts(conn, result)


def update_portfolio_valuation(  # noqa: PLR0913
    conn: duckdb.DuckDBPyConnection,
    entry_id: str,
    current_nav: float,
    latest_unit_balance: float,
    current_value: float,
    return_amount: float,
    return_percentage: float,
    nav_date: str,
) -> None:
    """Write a fresh NAV valuation onto an existing portfolio row.

    Args:
        conn: Active DuckDB connection.
        entry_id: current_portfolio row ID.
        current_nav: NAV applied to the holding.
        latest_unit_balance: Recomputed unit balance.
        current_value: Units multiplied by NAV.
        return_amount: current_value minus total_invested.
        return_percentage: Return as a percentage of total_invested.
        nav_date: Date of the NAV (YYYY-MM-DD).

    Raises:
        LookupError: If no row has the given ID.

    """
    exists = conn.execute(
        "SELECT 1 FROM current_portfolio WHERE id = ?", [entry_id]
    ).fetchone()
    if exists is None:
        msg = f"Portfolio entry not found: {entry_id}"
        raise LookupError(msg)

    conn.execute(
        """
        UPDATE current_portfolio
        SET current_nav = ?,
            latest_unit_balance = ?,
            current_value = ?,
            return_amount = ?,
            return_percentage = ?,
            last_nav_update_date = ?,
            updated_at = current_timestamp
        WHERE id = ?
        """,
        [
            current_nav,
            latest_unit_balance,
            current_value,
            return_amount,
            return_percentage,
            nav_date,
            entry_id,
        ],
    )


def get_portfolio_user_ids(conn: duckdb.DuckDBPyConnection) -> list[str]:
    """List every user that owns at least one current-portfolio row."""
    result = conn.execute(
        "SELECT DISTINCT user_id FROM current_portfolio ORDER BY user_id"
    ).fetchall()
    return [row[0] for row in result]


def get_available_schemes(
    conn: duckdb.DuckDBPyConnection,
    user_id: str,
) -> list[dict[str, Any]]:
    """List the distinct (scheme_name, folio) pairs a user holds.

    Used to offer mutual-fund sources when mapping holdings to goals.
    """
    result = conn.execute(
        """
        SELECT DISTINCT scheme_name, folio
        FROM current_portfolio
        WHERE user_id = ?
        ORDER BY scheme_name, folio
        """,
        [user_id],
    ).fetchall()
    return rows_to_dicts(conn, result)
