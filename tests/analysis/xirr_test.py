"""Tests for the XIRR solver and its portfolio helpers."""

from __future__ import annotations

from datetime import date

import pytest

from goalfolio.analysis.xirr import (
    CashFlow,
    XirrResult,
    format_xirr,
    goal_xirr,
    holding_key,
    interpret_xirr,
    portfolio_xirr,
    scheme_xirr,
    transactions_to_cash_flows,
    xirr,
)


def _npv(rate: float, flows: list[CashFlow]) -> float:
    first = min(cf.date for cf in flows)
    return sum(cf.amount / (1 + rate) ** ((cf.date - first).days / 365.0) for cf in flows)


class TestXirr:
    """Tests for the core solver."""

    def test_one_year_simple_return(self):
        result = xirr(
            [
                CashFlow(date(2023, 1, 1), -1000.0),
                CashFlow(date(2024, 1, 1), 1100.0),
            ]
        )
        assert result.converged
        assert result.rate == pytest.approx(0.10, abs=1e-6)
        assert result.error is None

    def test_negative_return(self):
        result = xirr([(date(2023, 1, 1), -1000.0), (date(2024, 1, 1), 500.0)])
        assert result.converged
        assert result.rate == pytest.approx(-0.5, abs=1e-6)

    def test_irregular_flows_zero_npv(self):
        flows = [
            CashFlow(date(2022, 1, 10), -5000.0),
            CashFlow(date(2022, 4, 2), -3000.0),
            CashFlow(date(2022, 11, 20), -4000.0),
            CashFlow(date(2023, 6, 15), 2000.0),
            CashFlow(date(2024, 1, 1), 12500.0),
        ]
        result = xirr(flows)
        assert result.converged
        assert abs(_npv(result.rate, flows)) < 0.01

    def test_order_does_not_matter(self):
        flows = [
            (date(2023, 1, 1), -1000.0),
            (date(2023, 6, 1), -1000.0),
            (date(2024, 1, 1), 2300.0),
        ]
        forward = xirr(flows)
        backward = xirr(list(reversed(flows)))
        assert forward.rate == pytest.approx(backward.rate)

    def test_accepts_dicts_and_iso_strings(self):
        result = xirr(
            [
                {"date": "2023-01-01", "amount": -1000.0},
                {"date": "2024-01-01", "amount": 1100.0},
            ]
        )
        assert result.rate == pytest.approx(0.10, abs=1e-6)

    def test_high_return_converges(self):
        flows = [
            CashFlow(date(2023, 1, 1), -1000.0),
            CashFlow(date(2023, 3, 15), 1500.0),
        ]
        result = xirr(flows)
        assert result.converged
        assert result.rate > 1.0
        assert abs(_npv(result.rate, flows)) < 0.01

    def test_single_flow_not_converged(self):
        result = xirr([CashFlow(date(2023, 1, 1), -1000.0)])
        assert not result.converged
        assert result.error == "At least 2 cash flows required for XIRR calculation"

    def test_same_sign_flows_not_converged(self):
        result = xirr(
            [
                CashFlow(date(2023, 1, 1), -1000.0),
                CashFlow(date(2024, 1, 1), -500.0),
            ]
        )
        assert not result.converged
        assert result.error == "XIRR requires both positive and negative cash flows"
        assert result.rate == 0.0

    def test_invalid_guess_raises(self):
        with pytest.raises(ValueError, match="guess must be greater than -1"):
            xirr([], guess=-1.0)

    def test_invalid_tolerance_raises(self):
        with pytest.raises(ValueError, match="tolerance must be positive"):
            xirr([], tolerance=0)

    def test_invalid_date_raises(self):
        with pytest.raises(ValueError, match="Invalid cash flow date"):
            xirr([("yesterday", -100.0), ("2024-01-01", 110.0)])


class TestXirrResult:
    """Tests for result serialization."""

    def test_to_dict(self):
        result = XirrResult(rate=0.1234, converged=True, iterations=4)
        data = result.to_dict()
        assert data["xirr"] == 0.1234
        assert data["xirr_percentage"] == 12.34
        assert data["formatted"] == "+12.34%"
        assert data["method"] == "newton"
        assert data["error"] is None


class TestTransactionsToCashFlows:
    """Tests for converting stored transactions."""

    def test_negates_amounts_and_appends_value(self):
        flows = transactions_to_cash_flows(
            [
                {"date": "2023-01-01", "amount": 1000.0},
                {"date": "2023-06-01", "amount": -200.0},
            ],
            current_value=900.0,
            as_of=date(2024, 1, 1),
        )
        assert [cf.amount for cf in flows] == [-1000.0, 200.0, 900.0]
        assert flows[-1].date == date(2024, 1, 1)

    def test_zero_value_not_appended(self):
        flows = transactions_to_cash_flows([{"date": "2023-01-01", "amount": 1000.0}])
        assert len(flows) == 1

    def test_zero_amounts_skipped(self):
        flows = transactions_to_cash_flows(
            [{"date": "2023-01-01", "amount": 0.0}], current_value=10.0, as_of="2024-01-01"
        )
        assert len(flows) == 1


class TestPortfolioHelpers:
    """Tests for portfolio, scheme and goal XIRR helpers."""

    transactions = [
        {"date": "2023-01-01", "amount": 1000.0, "scheme_name": "A", "folio": "1"},
        {"date": "2023-01-01", "amount": 5000.0, "scheme_name": "B", "folio": "2"},
    ]

    def test_portfolio_xirr(self):
        result = portfolio_xirr(self.transactions, 6600.0, date(2024, 1, 1))
        assert result.rate == pytest.approx(0.10, abs=1e-6)

    def test_scheme_xirr_ignores_other_holdings(self):
        result = scheme_xirr(self.transactions, "A", "1", 1200.0, date(2024, 1, 1))
        assert result.rate == pytest.approx(0.20, abs=1e-6)

    def test_goal_xirr_sums_current_values(self):
        values = {holding_key("A", "1"): 1100.0, holding_key("B", "2"): 5500.0}
        result = goal_xirr(self.transactions, values, date(2024, 1, 1))
        assert result.rate == pytest.approx(0.10, abs=1e-6)

    def test_holding_key(self):
        assert holding_key("Axis Bluechip", "123") == "Axis Bluechip-123"


class TestFormatXirr:
    """Tests for XIRR display formatting."""

    def test_positive_result(self):
        assert format_xirr(XirrResult(rate=0.1234, converged=True, iterations=1)) == "+12.34%"

    def test_negative_rate(self):
        assert format_xirr(-0.05) == "-5.00%"

    def test_not_converged(self):
        assert format_xirr(XirrResult(rate=0.0, converged=False, iterations=0)) == "N/A"


class TestInterpretXirr:
    """Tests for plain-language XIRR bands."""

    @pytest.mark.parametrize(
        ("rate", "label", "category"),
        [
            (0.18, "Excellent", "High"),
            (0.125, "Strong", "High"),
            (0.11, "Good", "Medium"),
            (0.08, "Moderate", "Medium"),
            (0.05, "Below average", "Low"),
            (0.02, "Poor", "Low"),
        ],
    )
    def test_bands(self, rate, label, category):
        interpretation = interpret_xirr(XirrResult(rate=rate, converged=True, iterations=1))
        assert interpretation["interpretation"].startswith(label)
        assert interpretation["category"] == category

    def test_strong_wording(self):
        interpretation = interpret_xirr(XirrResult(rate=0.125, converged=True, iterations=1))
        assert interpretation["interpretation"] == "Strong 12.5% annualized return"

    def test_not_converged(self):
        result = XirrResult(rate=0.0, converged=False, iterations=0, error="x")
        assert interpret_xirr(result)["interpretation"] == "Unable to calculate returns"
