"""Identifier and row helpers shared by the store modules."""

from __future__ import annotations

import hashlib
import uuid
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    import duckdb


def generate_id(*parts: str) -> str:
    """Generate a deterministic ID from parts using SHA-256.

    Args:
        *parts: String components to hash.

    Returns:
        First 16 hex characters of the SHA-256 digest.

    """
    content = "|".join(parts)
    return hashlib.sha256(content.encode()).hexdigest()[:16]


def random_id() -> str:
    """Return a random UUID4 string for user-created records."""
    return str(uuid.uuid4())


def rows_to_dicts(
    conn: duckdb.DuckDBPyConnection,
    rows: list[tuple[Any, ...]],
) -> list[dict[str, Any]]:
    """Zip fetched rows with the column names of the last query."""
    columns = [desc[0] for desc in conn.description]
    return [dict(zip(columns, row, strict=True)) for row in rows]
