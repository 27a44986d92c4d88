"""Goal data store — DuckDB CRUD for goals and goal-to-source mappings.

A goal is funded by any mix of mutual-fund holdings (scheme + folio),
stocks and NPS funds. Each funding source is one row in
``goal_scheme_mapping`` tagged with its ``source_type``.
"""

from __future__ import annotations

import logging
from datetime import date as date_cls
from typing import TYPE_CHECKING, Any

from goalfolio.db._ids import generate_id, random_id, rows_to_dicts

if TYPE_CHECKING:
    import duckdb

logger = logging.getLogger(__name__)

SOURCE_TYPES = ("mutual_fund", "stock", "nps")

_MAX_NAME_LENGTH = 100
_MAX_DESCRIPTION_LENGTH = 500
_MAX_TARGET_AMOUNT = 1_000_000_000.0


def _parse_date(value: str, field_name: str) -> date_cls:
    try:
        return date_cls.fromisoformat(value)
    except (TypeError, ValueError) as exc:
        msg = f"{field_name} must be a date in YYYY-MM-DD format, got '{value}'"
        raise ValueError(msg) from exc


def validate_goal(
    name: str,
    target_amount: float,
    target_date: str,
    description: str = "",
    today: date_cls | None = None,
) -> None:
    """Validate goal fields before they are written.

    Args:
        name: Goal name, 1-100 characters after trimming.
        target_amount: Target corpus in rupees, greater than 0 and at most 1e9.
        target_date: Target date (YYYY-MM-DD).
        description: Optional description of at most 500 characters.
        today: When given, the target date must fall after it.

    Raises:
        ValueError: If any field is out of range.

    """
    stripped = (name or "").strip()
    if not stripped:
        msg = "Goal name is required"
        raise ValueError(msg)
    if len(stripped) > _MAX_NAME_LENGTH:
        msg = f"Goal name must be at most {_MAX_NAME_LENGTH} characters"
        raise ValueError(msg)
    if len(description or "") > _MAX_DESCRIPTION_LENGTH:
        msg = f"Description must be at most {_MAX_DESCRIPTION_LENGTH} characters"
        raise ValueError(msg)
    if target_amount <= 0:
        msg = f"target_amount must be positive, got {target_amount}"
        raise ValueError(msg)
    if target_amount > _MAX_TARGET_AMOUNT:
        msg = "target_amount must be at most 100 crore"
        raise ValueError(msg)

    parsed = _parse_date(target_date, "target_date")
    if today is not None and parsed <= today:
        msg = f"target_date must be in the future, got {target_date}"
        raise ValueError(msg)


def add_goal(  # noqa: PLR0913
    conn: duckdb.DuckDBPyConnection,
    user_id: str,
    name: str,
    target_amount: float,
    target_date: str,
    description: str = "",
    current_amount: float = 0.0,
    today: date_cls | None = None,
) -> str:
    """Create a goal after validating it.

    Args:
        conn: Active DuckDB connection.
        user_id: Owner of the goal.
        name: Goal name.
        target_amount: Target corpus in rupees.
        target_date: Target date (YYYY-MM-DD).
        description: Optional description.
        current_amount: Manually tracked amount already saved.
        today: Reference date for the future-date check; skipped when None.

    Returns:
        The new goal ID.

    Raises:
        ValueError: If validation fails.

    """
    validate_goal(name, target_amount, target_date, description, today)

    goal_id = random_id()
    conn.execute(
        """
        INSERT INTO goals
            (id, user_id, name, description, target_amount, target_date,
             current_amount)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
        [
            goal_id,
            user_id,
            name.strip(),
            description or "",
            target_amount,
            target_date,
            current_amount,
        ],
    )
    logger.info("Created goal %s for user %s", goal_id, user_id)
    return goal_id


def get_goal(conn: duckdb.DuckDBPyConnection, goal_id: str) -> dict[str, Any]:
    """Fetch a single goal.

    Raises:
        LookupError: If the goal does not exist.

    """
    result = conn.execute("SELECT * FROM goals WHERE id = ?", [goal_id]).fetchall()
    rows = rows_to_dicts(conn, result)
    if not rows:
        msg = f"Goal not found: {goal_id}"
        raise LookupError(msg)
    return rows[0]


def get_goals(
    conn: duckdb.DuckDBPyConnection,
    user_id: str,
) -> list[dict[str, Any]]:
    """List a user's goals ordered by target date."""
    result = conn.execute(
        "SELECT * FROM goals WHERE user_id = ? ORDER BY target_date, name",
        [user_id],
    ).fetchall()
    return rows_to_dicts(conn, result)


def delete_goal(conn: duckdb.DuckDBPyConnection, goal_id: str) -> None:
    """Delete a goal together with its mappings.

    Raises:
        LookupError: If the goal does not exist.

    """
    get_goal(conn, goal_id)
    conn.execute("DELETE FROM goal_scheme_mapping WHERE goal_id = ?", [goal_id])
    conn.execute("DELETE FROM goals WHERE id = ?", [goal_id])
    logger.info("Deleted goal %s", goal_id)


def add_goal_mapping(  # noqa: PLR0913
    conn: duckdb.DuckDBPyConnection,
    goal_id: str,
    scheme_name: str,
    folio: str = "",
    source_type: str = "mutual_fund",
    source_id: str | None = None,
    allocation_percentage: float = 100.0,
) -> str:
    """Map a funding source to a goal.

    Mapping the same source twice replaces the earlier row.

    Args:
        conn: Active DuckDB connection.
        goal_id: Goal being funded.
        scheme_name: Scheme name for mutual funds, stock code for stocks,
            fund name for NPS.
        folio: Folio number (mutual funds only).
        source_type: One of "mutual_fund", "stock" or "nps".
        source_id: ID of the stock or NPS holding row.
        allocation_percentage: Share of the source earmarked for the goal.

    Returns:
        The mapping ID.

    Raises:
        ValueError: If source_type or allocation_percentage is invalid.
        LookupError: If the goal does not exist.

    """
    if source_type not in SOURCE_TYPES:
        msg = f"source_type must be one of {SOURCE_TYPES}, got '{source_type}'"
        raise ValueError(msg)
    if not 0 < allocation_percentage <= 100:  # noqa: PLR2004
        msg = (
            "allocation_percentage must be in (0, 100], "
            f"got {allocation_percentage}"
        )
        raise ValueError(msg)
    if source_type != "mutual_fund" and not source_id:
        msg = f"source_id is required for {source_type} mappings"
        raise ValueError(msg)
    get_goal(conn, goal_id)

    mapping_id = generate_id(
        goal_id, scheme_name.strip(), folio.strip(), source_type, source_id or ""
    )
    conn.execute(
        """
        INSERT OR REPLACE INTO goal_scheme_mapping
            (id, goal_id, scheme_name, folio, allocation_percentage,
             source_type, source_id)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
        [
            mapping_id,
            goal_id,
            scheme_name.strip(),
            folio.strip(),
            allocation_percentage,
            source_type,
            source_id,
        ],
    )
    return mapping_id


def get_goal_mappings(
    conn: duckdb.DuckDBPyConnection,
    goal_id: str,
    source_type: str | None = None,
) -> list[dict[str, Any]]:
    """List a goal's mappings, optionally restricted to one source type."""
    query = "SELECT * FROM goal_scheme_mapping WHERE goal_id = ?"
    params: list[Any] = [goal_id]
    if source_type:
        query += " AND source_type = ?"
        params.append(source_type)
    query += " ORDER BY source_type, scheme_name, folio"

    result = conn.execute(query, params).fetchall()
    return rows_to_dicts(conn, result)


def remove_goal_mapping(conn: duckdb.DuckDBPyConnection, mapping_id: str) -> None:
    """Remove a single goal mapping; unknown IDs are ignored."""
    conn.execute("DELETE FROM goal_scheme_mapping WHERE id = ?", [mapping_id])
