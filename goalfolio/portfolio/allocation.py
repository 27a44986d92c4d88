"""Asset allocation by scheme category.

Mutual-fund schemes are bucketed into Debt, Hybrid and Equity by
keywords in the scheme name. Debt keywords are checked first and
Hybrid second, since hybrid and debt scheme names routinely contain
equity words ("Equity Savings", "Corporate Bond ... Growth"). Names
matching nothing fall into Hybrid.

"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AssetCategory:
    """A scheme category with its chart color and name keywords."""

    name: str
    color: str
    keywords: tuple[str, ...]


DEBT = AssetCategory(
    name="Debt",
    color="#10b981",
    keywords=(
        "liquid",
        "overnight",
        "ultra short",
        "short duration",
        "medium duration",
        "long duration",
        "low duration",
        "short term debt",
        "long term debt",
        "gilt",
        "government securities",
        "treasury",
        "money market",
        "banking & psu",
        "banking and psu",
        "banking psu",
        "psu debt",
        "corporate bond",
        "corporate debt",
        "credit risk",
        "floating rate",
        "income",
        "debt",
        "bond",
        "commercial paper",
        "certificate of deposit",
    ),
)

HYBRID = AssetCategory(
    name="Hybrid",
    color="#f59e0b",
    keywords=(
        "hybrid",
        "balanced",
        "aggressive",
        "conservative",
        "equity savings",
        "dynamic asset allocation",
        "multi asset",
        "arbitrage",
        "equity & debt",
        "equity and debt",
    ),
)

EQUITY = AssetCategory(
    name="Equity",
    color="#3b82f6",
    keywords=(
        "equity",
        "large cap",
        "largecap",
        "mid cap",
        "midcap",
        "small cap",
        "smallcap",
        "multi cap",
        "multicap",
        "flexi cap",
        "flexicap",
        "elss",
        "tax saver",
        "value",
        "momentum",
        "quality",
        "dividend yield",
        "sector",
        "thematic",
        "index",
        "nifty",
        "sensex",
        "growth",
    ),
)

# Match order matters: Debt, then Hybrid, then Equity
CATEGORIES = (DEBT, HYBRID, EQUITY)
DEFAULT_CATEGORY = HYBRID
UNKNOWN_COLOR = "#6b7280"

_DESCRIPTIONS = {
    "Equity": "Growth-oriented investments in stocks with higher volatility",
    "Debt": "Stable fixed-income investments with lower risk",
    "Hybrid": "Balanced mix of equity and debt for moderate risk-return",
}


def categorize_scheme(scheme_name: str) -> AssetCategory:
    """Assign a scheme to Debt, Hybrid or Equity by name keywords."""
    normalized = (scheme_name or "").lower().strip()
    for category in CATEGORIES:
        for keyword in category.keywords:
            if keyword in normalized:
                logger.debug(
                    "Scheme %r categorized as %s (keyword %r)",
                    scheme_name,
                    category.name,
                    keyword,
                )
                return category
    logger.debug("Scheme %r defaulted to %s", scheme_name, DEFAULT_CATEGORY.name)
    return DEFAULT_CATEGORY


def category_color(category: str) -> str:
    """Chart color for a category name; gray for unknown names."""
    for known in CATEGORIES:
        if known.name == category:
            return known.color
    return UNKNOWN_COLOR


def category_description(category: str) -> str:
    """Short plain-language description of a category."""
    return _DESCRIPTIONS.get(category, "Investment allocation category")


def asset_allocation(
    holdings: Iterable[Mapping[str, Any]],
) -> list[dict[str, Any]]:
    """Compute allocation by category.

    Args:
        holdings: Dicts with keys scheme_name and current_value.

    Returns:
        List of dicts with keys category, value, percentage, color and
        count (number of holdings), for categories with value > 0,
        sorted by value descending.

    """
    totals: dict[str, float] = {c.name: 0.0 for c in CATEGORIES}
    counts: dict[str, int] = {c.name: 0 for c in CATEGORIES}

    for holding in holdings:
        category = categorize_scheme(str(holding.get("scheme_name", "")))
        totals[category.name] += float(holding.get("current_value") or 0.0)
        counts[category.name] += 1

    grand_total = sum(totals.values())
    allocation = [
        {
            "category": c.name,
            "value": totals[c.name],
            "percentage": totals[c.name] / grand_total * 100.0 if grand_total > 0 else 0.0,
            "color": c.color,
            "count": counts[c.name],
        }
        for c in CATEGORIES
        if totals[c.name] > 0
    ]
    allocation.sort(key=lambda item: item["value"], reverse=True)
    return allocation


def _percentage_of(allocation: Iterable[Mapping[str, Any]], category: str) -> float:
    for item in allocation:
        if item["category"] == category:
            return float(item["percentage"])
    return 0.0


def determine_risk_profile(allocation: Iterable[Mapping[str, Any]]) -> str:
    """Label the portfolio's risk profile from its equity and debt share.

    Args:
        allocation: Output of :func:`asset_allocation`.

    Returns:
        One of "Aggressive", "Moderately Aggressive", "Conservative",
        "Moderate", "Moderately Conservative" or "Very Conservative".

    """
    items = list(allocation)
    equity = _percentage_of(items, EQUITY.name)
    debt = _percentage_of(items, DEBT.name)

    if equity >= 70:  # noqa: PLR2004
        return "Aggressive"
    if equity >= 50:  # noqa: PLR2004
        return "Moderately Aggressive"
    if equity >= 30 and debt >= 50:  # noqa: PLR2004
        return "Conservative"
    if equity >= 30:  # noqa: PLR2004
        return "Moderate"
    if equity >= 20:  # noqa: PLR2004
        return "Moderately Conservative"
    return "Very Conservative"


def assess_diversification(allocation: Iterable[Mapping[str, Any]]) -> str:
    """Rate diversification by number of categories and funds held."""
    items = list(allocation)
    total_value = sum(float(item["value"]) for item in items)
    if total_value == 0:
        return "No portfolio data"

    category_count = len(items)
    fund_count = sum(int(item["count"]) for item in items)

    if category_count >= 3 and fund_count >= 10:  # noqa: PLR2004
        return "Well diversified"
    if category_count >= 2 and fund_count >= 6:  # noqa: PLR2004
        return "Moderately diversified"
    if category_count >= 2:  # noqa: PLR2004
        return "Basic diversification"
    return "Under-diversified"


def allocation_report(holdings: Iterable[Mapping[str, Any]]) -> dict[str, Any]:
    """Allocation plus risk profile, diversification and descriptions."""
    allocation = asset_allocation(holdings)
    for item in allocation:
        item["description"] = category_description(item["category"])
    return {
        "allocation": allocation,
        "total_value": sum(item["value"] for item in allocation),
        "risk_profile": determine_risk_profile(allocation),
        "diversification": assess_diversification(allocation),
    }
