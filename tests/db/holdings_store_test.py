"""Tests for the stock and NPS holdings store."""

from __future__ import annotations

from datetime import date

import pytest

from goalfolio.db.goal_store import add_goal, add_goal_mapping, get_goal_mappings
from goalfolio.db.holdings_store import (
    add_nps_fund,
    add_stock,
    delete_stock,
    get_distinct_stock_symbols,
    get_nps_funds,
    get_nps_holdings,
    get_nps_nav,
    get_stock,
    get_stocks,
    upsert_nps_holding,
    upsert_nps_nav,
    validate_stock,
)


class TestValidateStock:
    """Tests for stock field validation."""

    def test_valid(self):
        validate_stock("INFY", 10.125, "2024-01-15", today=date(2024, 2, 1))

    def test_blank_code(self):
        with pytest.raises(ValueError, match="Stock code is required"):
            validate_stock(" ", 1, "2024-01-15")

    def test_long_code(self):
        with pytest.raises(ValueError, match="at most 20 characters"):
            validate_stock("X" * 21, 1, "2024-01-15")

    @pytest.mark.parametrize("quantity", [0, -1])
    def test_non_positive_quantity(self, quantity):
        with pytest.raises(ValueError, match="quantity must be positive"):
            validate_stock("INFY", quantity, "2024-01-15")

    def test_quantity_too_large(self):
        with pytest.raises(ValueError, match="quantity must be at most"):
            validate_stock("INFY", 1_000_001, "2024-01-15")

    def test_too_many_decimals(self):
        with pytest.raises(ValueError, match="at most 3 decimal places"):
            validate_stock("INFY", 1.2345, "2024-01-15")

    def test_bad_date(self):
        with pytest.raises(ValueError, match="YYYY-MM-DD"):
            validate_stock("INFY", 1, "15-01-2024")

    def test_future_date(self):
        with pytest.raises(ValueError, match="cannot be in the future"):
            validate_stock("INFY", 1, "2024-03-01", today=date(2024, 2, 1))


class TestStocks:
    """Tests for stock CRUD."""

    def test_add_normalizes_code_and_exchange(self, db):
        stock_id = add_stock(db, "user1", " infy ", 10, "2024-01-15", exchange="nse")
        stock = get_stock(db, stock_id)
        assert stock["stock_code"] == "INFY"
        assert stock["exchange"] == "NSE"
        assert stock["purchase_date"] == date(2024, 1, 15)

    def test_readding_updates_in_place(self, db):
        first = add_stock(db, "user1", "INFY", 10, "2024-01-15")
        second = add_stock(db, "user1", "INFY", 25, "2024-01-20")
        assert first == second
        (stock,) = get_stocks(db, "user1")
        assert stock["quantity"] == 25

    def test_same_code_on_other_exchange_is_separate(self, db):
        add_stock(db, "user1", "INFY", 10, "2024-01-15", exchange="NSE")
        add_stock(db, "user1", "INFY", 5, "2024-01-15", exchange="NYSE")
        assert len(get_stocks(db, "user1")) == 2

    def test_distinct_symbols_across_users(self, db):
        add_stock(db, "user1", "INFY", 10, "2024-01-15")
        add_stock(db, "user2", "INFY", 3, "2024-01-15")
        add_stock(db, "user2", "AAPL", 3, "2024-01-15", exchange="NASDAQ")
        assert get_distinct_stock_symbols(db) == [("AAPL", "NASDAQ"), ("INFY", "NSE")]

    def test_get_unknown(self, db):
        with pytest.raises(LookupError, match="Stock holding not found"):
            get_stock(db, "missing")

    def test_delete_removes_goal_mappings(self, db):
        stock_id = add_stock(db, "user1", "INFY", 10, "2024-01-15")
        goal_id = add_goal(db, "user1", "House", 100000, "2030-01-01")
        add_goal_mapping(db, goal_id, "INFY", source_type="stock", source_id=stock_id)
        delete_stock(db, stock_id)
        assert get_stocks(db, "user1") == []
        assert get_goal_mappings(db, goal_id) == []


class TestNps:
    """Tests for NPS funds, holdings and NAVs."""

    def test_holding_joined_with_fund_and_nav(self, db):
        add_nps_fund(db, "SM008001", "SBI Pension Fund Scheme E - Tier I")
        upsert_nps_holding(db, "user1", "SM008001", 250.5, "2024-01-31")
        upsert_nps_nav(db, "SM008001", 45.1234, "2024-02-02")
        (holding,) = get_nps_holdings(db, "user1")
        assert holding["fund_name"] == "SBI Pension Fund Scheme E - Tier I"
        assert holding["nav"] == pytest.approx(45.1234)
        assert holding["nav_date"] == date(2024, 2, 2)

    def test_holding_without_nav(self, db):
        upsert_nps_holding(db, "user1", "SM001001", 10.0, "2024-01-31")
        (holding,) = get_nps_holdings(db, "user1")
        assert holding["nav"] is None
        assert holding["fund_name"] is None

    def test_holding_update_in_place(self, db):
        first = upsert_nps_holding(db, "user1", "SM001001", 10.0, "2024-01-31")
        second = upsert_nps_holding(db, "user1", "SM001001", 12.0, "2024-02-29")
        assert first == second
        (holding,) = get_nps_holdings(db, "user1")
        assert holding["units"] == 12.0

    def test_non_positive_units(self, db):
        with pytest.raises(ValueError, match="units must be positive"):
            upsert_nps_holding(db, "user1", "SM001001", 0.0, "2024-01-31")

    def test_blank_fund_code(self, db):
        with pytest.raises(ValueError, match="fund_code must be a non-empty string"):
            add_nps_fund(db, "  ", "Unnamed")

    def test_funds_ordered_by_name(self, db):
        add_nps_fund(db, "SM002001", "UTI Retirement Solutions Scheme E")
        add_nps_fund(db, "SM001001", "HDFC Pension Fund Scheme E")
        assert [f["fund_code"] for f in get_nps_funds(db)] == ["SM001001", "SM002001"]

    def test_nav_replaced(self, db):
        upsert_nps_nav(db, "SM001001", 40.0, "2024-01-01")
        upsert_nps_nav(db, "SM001001", 41.0, "2024-01-02")
        assert get_nps_nav(db, "SM001001")["nav"] == 41.0
        assert get_nps_nav(db, "SM999999") is None
