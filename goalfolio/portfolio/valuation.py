"""Valuation of holdings and goals from plain records.

Pure functions over the dicts returned by the store modules: NAV
revaluation of mutual-fund rows, portfolio totals, stock and NPS
values, goal progress, and the average monthly investment that
seeds goal simulations.

"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date
from typing import Any

import pandas as pd

from goalfolio.analysis.returns import absolute_return


@dataclass
class PortfolioSummary:
    """Totals across a user's current-portfolio rows.

    Attributes:
        total_holdings: Number of (folio, scheme) rows.
        total_invested: Sum of total_invested.
        total_current_value: Sum of current_value.
        total_return: total_current_value - total_invested.
        total_return_percentage: total_return as a percent of invested.
        entries_with_nav: Rows valued at a known NAV.
        total_nav_value: Current value of the NAV-valued rows.

    """

    total_holdings: int = 0
    total_invested: float = 0.0
    total_current_value: float = 0.0
    total_return: float = 0.0
    total_return_percentage: float = 0.0
    entries_with_nav: int = 0
    total_nav_value: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON responses."""
        return {
            "total_holdings": self.total_holdings,
            "total_invested": round(self.total_invested, 2),
            "total_current_value": round(self.total_current_value, 2),
            "total_return": round(self.total_return, 2),
            "total_return_percentage": round(self.total_return_percentage, 2),
            "entries_with_nav": self.entries_with_nav,
            "total_nav_value": round(self.total_nav_value, 2),
        }


def revalue_entry(
    entry: Mapping[str, Any],
    nav: float,
    unit_balance: float,
) -> dict[str, float]:
    """Value a current-portfolio row at a NAV.

    Args:
        entry: current_portfolio row (needs total_invested).
        nav: NAV per unit.
        unit_balance: Units held.

    Returns:
        Dict with current_nav, latest_unit_balance, current_value,
        return_amount and return_percentage.

    Raises:
        ValueError: If nav is not positive.

    """
    if nav <= 0:
        msg = f"nav must be positive, got {nav}"
        raise ValueError(msg)

    invested = float(entry.get("total_invested") or 0.0)
    current_value = unit_balance * nav
    return_amount, return_percentage = absolute_return(invested, current_value)
    return {
        "current_nav": nav,
        "latest_unit_balance": unit_balance,
        "current_value": current_value,
        "return_amount": return_amount,
        "return_percentage": return_percentage,
    }


def summarize_portfolio(rows: Iterable[Mapping[str, Any]]) -> PortfolioSummary:
    """Aggregate current-portfolio rows into a PortfolioSummary."""
    summary = PortfolioSummary()
    for row in rows:
        invested = float(row.get("total_invested") or 0.0)
        value = float(row.get("current_value") or 0.0)
        summary.total_holdings += 1
        summary.total_invested += invested
        summary.total_current_value += value
        if row.get("current_nav") is not None:
            summary.entries_with_nav += 1
            summary.total_nav_value += value

    summary.total_return, summary.total_return_percentage = absolute_return(
        summary.total_invested, summary.total_current_value
    )
    return summary


def stock_value(quantity: float, price: float | None) -> float:
    """Market value of a stock holding; 0.0 when the price is unknown."""
    if price is None:
        return 0.0
    return float(quantity) * float(price)


def nps_value(units: float, nav: float | None) -> float:
    """Market value of an NPS holding; 0.0 when the NAV is unknown."""
    if nav is None:
        return 0.0
    return float(units) * float(nav)


def _normalize(text: str | None) -> str:
    return (text or "").strip().lower()


def mapping_share(mapping: Mapping[str, Any]) -> float:
    """Fraction of a source earmarked for a goal; a missing percentage means all of it."""
    pct = mapping.get("allocation_percentage")
    return (100.0 if pct is None else float(pct)) / 100.0


def mf_value_for_mappings(
    portfolio_rows: Iterable[Mapping[str, Any]],
    mappings: Iterable[Mapping[str, Any]],
) -> float:
    """Current value of the portfolio rows a goal is mapped to.

    Scheme and folio match case-insensitively with surrounding
    whitespace ignored. A mapping's allocation_percentage scales the
    value attributed to the goal.
    """
    by_key: dict[tuple[str, str], float] = {}
    for row in portfolio_rows:
        key = (_normalize(row.get("scheme_name")), _normalize(row.get("folio")))
        by_key[key] = by_key.get(key, 0.0) + float(row.get("current_value") or 0.0)

    total = 0.0
    for mapping in mappings:
        key = (_normalize(mapping.get("scheme_name")), _normalize(mapping.get("folio")))
        total += by_key.get(key, 0.0) * mapping_share(mapping)
    return total


def goal_progress(
    goal: Mapping[str, Any],
    current_value: float,
    as_of: date,
) -> dict[str, Any]:
    """Progress of a goal towards its target.

    Args:
        goal: Goal row with target_amount and target_date.
        current_value: Value currently attributed to the goal.
        as_of: Reference date for the days-remaining count.

    Returns:
        Dict with current_value, progress_percentage (capped at 100),
        remaining_amount (never negative), days_remaining and
        months_remaining (both 0 once the date has passed).

    """
    target = float(goal["target_amount"])
    target_date = goal["target_date"]
    if isinstance(target_date, str):
        target_date = date.fromisoformat(target_date)

    progress = min(100.0, current_value / target * 100.0) if target > 0 else 0.0
    days_remaining = max(0, (target_date - as_of).days)
    months_remaining = max(
        0,
        (target_date.year - as_of.year) * 12 + (target_date.month - as_of.month),
    )
    return {
        "current_value": round(current_value, 2),
        "progress_percentage": round(progress, 2),
        "remaining_amount": round(max(0.0, target - current_value), 2),
        "days_remaining": days_remaining,
        "months_remaining": months_remaining,
    }


def average_monthly_investment(
    transactions: Iterable[Mapping[str, Any]],
    as_of: date,
    lookback_months: int = 12,
) -> float:
    """Average amount invested per month over a lookback window.

    Only purchases (positive amounts) dated within ``lookback_months``
    before ``as_of`` count. The total is divided by the number of
    calendar months that had at least one purchase, so gaps in a SIP
    do not drag the average down.

    Args:
        transactions: Dicts with date and amount.
        as_of: End of the lookback window.
        lookback_months: Window length in months.

    Returns:
        Average rounded to 2 decimals; 0.0 when there are no purchases.

    Raises:
        ValueError: If lookback_months < 1.

    """
    if lookback_months < 1:
        msg = f"lookback_months must be at least 1, got {lookback_months}"
        raise ValueError(msg)

    frame = pd.DataFrame.from_records(
        [{"date": tx["date"], "amount": tx["amount"]} for tx in transactions],
        columns=["date", "amount"],
    )
    if frame.empty:
        return 0.0

    frame["date"] = pd.to_datetime(frame["date"])
    frame["amount"] = frame["amount"].astype(float)
    end = pd.Timestamp(as_of)
    start = end - pd.DateOffset(months=lookback_months)
    window = frame[
        (frame["amount"] > 0) & (frame["date"] >= start) & (frame["date"] <= end)
    ]
    if window.empty:
        return 0.0

    monthly = window.groupby(window["date"].dt.to_period("M"))["amount"].sum()
    return round(float(monthly.mean()), 2)
