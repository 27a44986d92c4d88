"""Shared pytest fixtures for goalfolio tests."""

from __future__ import annotations

from datetime import date

import pytest

from goalfolio.db.connection import init_memory_db
from goalfolio.db.portfolio_store import add_transaction, upsert_portfolio_entry

AS_OF = date(2024, 1, 1)

EQUITY_FUND = "Axis Bluechip Fund - Direct Growth"
DEBT_FUND = "HDFC Liquid Fund - Direct Growth"


@pytest.fixture
def db():
    """Provide an in-memory database with the full schema."""
    conn = init_memory_db()
    yield conn
    conn.close()


@pytest.fixture
def as_of() -> date:
    """Valuation date used by the seeded portfolio."""
    return AS_OF


@pytest.fixture
def seeded_db(db):
    """Database with one user holding an equity and a debt fund.

    user1 bought 1000 of the equity fund on 2023-01-01 (now worth 1100,
    a 10% return over exactly one year) and 2000 of the debt fund on
    2023-07-01 (now worth 2060).
    """
    add_transaction(
        db,
        user_id="user1",
        date="2023-01-01",
        scheme_name=EQUITY_FUND,
        folio="F1",
        amount=1000.0,
        units=100.0,
        isin="INF846K01EW2",
        price=10.0,
    )
    add_transaction(
        db,
        user_id="user1",
        date="2023-07-01",
        scheme_name=DEBT_FUND,
        folio="F2",
        amount=2000.0,
        units=2.0,
        isin="INF179KB1HK0",
        price=1000.0,
    )
    upsert_portfolio_entry(
        db,
        user_id="user1",
        folio="F1",
        scheme_name=EQUITY_FUND,
        total_invested=1000.0,
        latest_unit_balance=100.0,
        isin="INF846K01EW2",
        current_nav=11.0,
        current_value=1100.0,
        latest_date="2023-01-01",
    )
    upsert_portfolio_entry(
        db,
        user_id="user1",
        folio="F2",
        scheme_name=DEBT_FUND,
        total_invested=2000.0,
        latest_unit_balance=2.0,
        isin="INF179KB1HK0",
        current_nav=1030.0,
        current_value=2060.0,
        latest_date="2023-07-01",
    )
    return db
