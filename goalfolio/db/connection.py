"""DuckDB connection management for goalfolio.

Handles database initialization, schema creation, and connection
lifecycle. A single database file holds both user records and the
market data that values them::

    ~/.goalfolio/
      data/
        goalfolio.duckdb

"""

from __future__ import annotations

import logging
from pathlib import Path

import duckdb

from goalfolio.db.schema import ALL_TABLES

logger = logging.getLogger(__name__)

# Default data directory (can be overridden for testing)
DEFAULT_DATA_DIR = Path.home() / ".goalfolio" / "data"
DEFAULT_DB_PATH = DEFAULT_DATA_DIR / "goalfolio.duckdb"


def get_connection(
    db_path: str | Path | None = None,
    read_only: bool = False,
) -> duckdb.DuckDBPyConnection:
    """Open a DuckDB connection.

    Args:
        db_path: Path to the .duckdb file. If None, uses in-memory database.
        read_only: Open in read-only mode.

    Returns:
        Active DuckDB connection.

    """
    if db_path is None:
        return duckdb.connect(":memory:")

    path = Path(db_path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    return duckdb.connect(str(path), read_only=read_only)


def create_schema(conn: duckdb.DuckDBPyConnection) -> None:
    """Create every goalfolio table that does not exist yet."""
    for ddl in ALL_TABLES:
        conn.execute(ddl)


def init_db(
    db_path: str | Path | None = None,
) -> duckdb.DuckDBPyConnection:
    """Initialize the goalfolio database with schema.

    Args:
        db_path: Path to the .duckdb file.
            Defaults to ~/.goalfolio/data/goalfolio.duckdb.

    Returns:
        Initialized DuckDB connection.

    """
    if db_path is None:
        db_path = DEFAULT_DB_PATH

    conn = get_connection(db_path)
    create_schema(conn)
    logger.info("Database initialized at %s", db_path)
    return conn


def init_memory_db() -> duckdb.DuckDBPyConnection:
    """Create an in-memory database with full schema.

    Useful for testing and ephemeral operations.

    Returns:
        In-memory DuckDB connection with all tables created.

    """
    conn = get_connection(None)
    create_schema(conn)
    return conn
