"""Tests for goal and portfolio tracking over the store."""

from __future__ import annotations

import pytest

from goalfolio.db.goal_store import add_goal, add_goal_mapping
from goalfolio.db.holdings_store import (
    add_nps_fund,
    add_stock,
    upsert_nps_holding,
    upsert_nps_nav,
)
from goalfolio.db.market_store import upsert_stock_price
from goalfolio.portfolio.goal_tracking import (
    compute_goal_xirr,
    goal_average_monthly_investment,
    goal_current_value,
    goal_transactions,
    goals_with_details,
    goals_xirr,
    portfolio_performance,
)

EQUITY_FUND = "Axis Bluechip Fund - Direct Growth"
DEBT_FUND = "HDFC Liquid Fund - Direct Growth"


@pytest.fixture
def goal_id(seeded_db):
    """Retirement goal funded by the equity fund."""
    goal = add_goal(
        seeded_db,
        user_id="user1",
        name="Retirement",
        target_amount=11000.0,
        target_date="2030-01-01",
    )
    add_goal_mapping(seeded_db, goal, EQUITY_FUND, "F1")
    return goal


class TestGoalCurrentValue:
    """Tests for valuing everything mapped to a goal."""

    def test_mutual_fund_only(self, seeded_db, goal_id):
        values = goal_current_value(seeded_db, goal_id)
        assert values == {"mutual_fund": 1100.0, "stock": 0.0, "nps": 0.0, "total": 1100.0}

    def test_partial_allocation(self, seeded_db, goal_id):
        add_goal_mapping(seeded_db, goal_id, DEBT_FUND, "F2", allocation_percentage=50.0)
        assert goal_current_value(seeded_db, goal_id)["mutual_fund"] == pytest.approx(2130.0)

    def test_stock_and_nps_sources(self, seeded_db, goal_id):
        stock_id = add_stock(seeded_db, "user1", "INFY", 10, "2023-01-01")
        upsert_stock_price(seeded_db, "INFY.NS", 1500.0, 1500.0, "INR")
        add_goal_mapping(
            seeded_db, goal_id, "INFY", source_type="stock", source_id=stock_id
        )

        add_nps_fund(seeded_db, "SM008001", "SBI Pension Fund Scheme E - Tier I")
        holding_id = upsert_nps_holding(seeded_db, "user1", "SM008001", 100.0, "2023-12-31")
        upsert_nps_nav(seeded_db, "SM008001", 45.0, "2023-12-29")
        add_goal_mapping(
            seeded_db,
            goal_id,
            "SBI Pension Fund Scheme E - Tier I",
            source_type="nps",
            source_id=holding_id,
            allocation_percentage=50.0,
        )

        values = goal_current_value(seeded_db, goal_id)
        assert values["stock"] == pytest.approx(15000.0)
        assert values["nps"] == pytest.approx(2250.0)
        assert values["total"] == pytest.approx(18350.0)

    def test_unpriced_stock_counts_zero(self, seeded_db, goal_id):
        stock_id = add_stock(seeded_db, "user1", "TCS", 5, "2023-01-01")
        add_goal_mapping(seeded_db, goal_id, "TCS", source_type="stock", source_id=stock_id)
        assert goal_current_value(seeded_db, goal_id)["stock"] == 0.0

    def test_unknown_goal(self, seeded_db):
        with pytest.raises(LookupError, match="Goal not found"):
            goal_current_value(seeded_db, "missing")


class TestGoalTransactions:
    """Tests for selecting a goal's transactions."""

    def test_only_mapped_holdings(self, seeded_db, goal_id):
        transactions = goal_transactions(seeded_db, goal_id)
        assert [tx["scheme_name"] for tx in transactions] == [EQUITY_FUND]

    def test_amounts_scaled_by_allocation(self, seeded_db, goal_id):
        add_goal_mapping(seeded_db, goal_id, EQUITY_FUND, "F1", allocation_percentage=25.0)
        assert goal_transactions(seeded_db, goal_id)[0]["amount"] == pytest.approx(250.0)

    def test_goal_without_mappings(self, seeded_db):
        goal = add_goal(seeded_db, "user1", "Car", 500000.0, "2027-06-30")
        assert goal_transactions(seeded_db, goal) == []


class TestGoalXirr:
    """Tests for goal-level XIRR."""

    def test_one_year_ten_percent(self, seeded_db, goal_id, as_of):
        result = compute_goal_xirr(seeded_db, goal_id, as_of)
        assert result.converged
        assert result.rate == pytest.approx(0.10, abs=1e-4)

    def test_allocation_does_not_change_rate(self, seeded_db, goal_id, as_of):
        add_goal_mapping(seeded_db, goal_id, EQUITY_FUND, "F1", allocation_percentage=40.0)
        result = compute_goal_xirr(seeded_db, goal_id, as_of)
        assert result.rate == pytest.approx(0.10, abs=1e-4)

    def test_goal_without_mappings_does_not_converge(self, seeded_db, as_of):
        goal = add_goal(seeded_db, "user1", "Car", 500000.0, "2027-06-30")
        result = compute_goal_xirr(seeded_db, goal, as_of)
        assert not result.converged
        assert result.error is not None

    def test_goals_xirr_keyed_by_goal(self, seeded_db, goal_id, as_of):
        results = goals_xirr(seeded_db, "user1", as_of)
        assert list(results) == [goal_id]


class TestGoalAverageMonthlyInvestment:
    """Tests for the goal's monthly investment estimate."""

    def test_single_purchase_in_window(self, seeded_db, goal_id, as_of):
        assert goal_average_monthly_investment(seeded_db, goal_id, as_of) == 1000.0

    def test_purchase_outside_window(self, seeded_db, goal_id, as_of):
        assert (
            goal_average_monthly_investment(seeded_db, goal_id, as_of, lookback_months=6)
            == 0.0
        )


class TestGoalsWithDetails:
    """Tests for the goal dashboard records."""

    def test_details(self, seeded_db, goal_id, as_of):
        (goal,) = goals_with_details(seeded_db, "user1", as_of)
        assert goal["id"] == goal_id
        assert goal["name"] == "Retirement"
        assert len(goal["mappings"]) == 1
        assert goal["values"]["total"] == 1100.0
        assert goal["progress"]["progress_percentage"] == 10.0
        assert goal["progress"]["months_remaining"] == 72
        assert goal["xirr"]["formatted"] == "+10.00%"
        assert goal["xirr_interpretation"]["category"] == "Medium"

    def test_other_user_has_no_goals(self, seeded_db, goal_id, as_of):
        assert goals_with_details(seeded_db, "user2", as_of) == []


class TestPortfolioPerformance:
    """Tests for portfolio-wide performance."""

    def test_summary(self, seeded_db, as_of):
        performance = portfolio_performance(seeded_db, "user1", as_of)
        summary = performance["summary"]
        assert summary["total_invested"] == 3000.0
        assert summary["total_current_value"] == 3160.0
        assert summary["total_holdings"] == 2
        assert performance["xirr"]["converged"] is True

    def test_per_scheme(self, seeded_db, as_of):
        schemes = portfolio_performance(seeded_db, "user1", as_of)["schemes"]
        assert [s["scheme_name"] for s in schemes] == [EQUITY_FUND, DEBT_FUND]
        equity = schemes[0]
        assert equity["cagr"] == pytest.approx(0.10)
        assert equity["xirr"]["xirr"] == pytest.approx(0.10, abs=1e-4)
        assert equity["return_percentage"] == pytest.approx(10.0)

    def test_empty_portfolio(self, db, as_of):
        performance = portfolio_performance(db, "nobody", as_of)
        assert performance["schemes"] == []
        assert performance["xirr"]["converged"] is False
        assert performance["xirr_interpretation"]["interpretation"] == (
            "Unable to calculate returns"
        )
