"""Required-SIP planner with step-up scenario comparison.

Given a target corpus, a horizon and an expected return, works out the
SIP that reaches the target, compares fixed and step-up variants, picks
a recommended variant, and phrases the result as action items.
"""

from __future__ import annotations

import logging
from typing import Any

from goalfolio.formatting import format_duration, format_inr, format_percentage
from goalfolio.simulation.goal_simulator import (
    DEFAULT_STEP_UP_RATES,
    MAX_MONTHS,
    RequiredSip,
    required_monthly_sip,
    step_up_scenarios,
)

logger = logging.getLogger(__name__)

MAX_XIRR_PCT = 50.0
MAX_STEP_UP_PCT = 50.0


def scenario_rating(step_up_pct: float) -> int:
    """Score a step-up rate from 1 (least recommended) to 5.

    Fixed SIPs score lowest; 6-10% yearly is the preferred balance
    between a low starting SIP and increases that stay sustainable.
    """
    if step_up_pct == 0:
        return 1
    if step_up_pct <= 5:  # noqa: PLR2004
        return 2
    if step_up_pct <= 10:  # noqa: PLR2004
        return 5
    if step_up_pct <= 15:  # noqa: PLR2004
        return 4
    return 3


def _sip_label(amount: float) -> str:
    return f"{format_inr(amount)}/month"


def scenario_description(step_up_pct: float, monthly_sip: float) -> str:
    """One-line description of a scenario."""
    if step_up_pct == 0:
        return f"Fixed SIP of {_sip_label(monthly_sip)}"
    return f"Start with {_sip_label(monthly_sip)}, increase by {step_up_pct:g}% yearly"


def validate_plan_inputs(
    target_amount: float,
    months: int,
    xirr_pct: float,
    existing_corpus: float = 0.0,
    step_up_pct: float = 0.0,
) -> None:
    """Validate planner inputs.

    Raises:
        ValueError: If target_amount <= 0, months is not an integer in
            1-600, xirr_pct is outside 0-50, existing_corpus < 0, or
            step_up_pct is outside 0-50.

    """
    if not target_amount > 0:
        msg = f"target_amount must be positive, got {target_amount}"
        raise ValueError(msg)
    if isinstance(months, bool) or not isinstance(months, int):
        msg = f"months must be an integer, got {months!r}"
        raise ValueError(msg)
    if not 1 <= months <= MAX_MONTHS:
        msg = f"months must be between 1 and {MAX_MONTHS}, got {months}"
        raise ValueError(msg)
    if not 0 <= xirr_pct <= MAX_XIRR_PCT:
        msg = f"xirr_pct must be between 0 and {MAX_XIRR_PCT:g}, got {xirr_pct}"
        raise ValueError(msg)
    if existing_corpus < 0:
        msg = f"existing_corpus must be non-negative, got {existing_corpus}"
        raise ValueError(msg)
    if not 0 <= step_up_pct <= MAX_STEP_UP_PCT:
        msg = f"step_up_pct must be between 0 and {MAX_STEP_UP_PCT:g}, got {step_up_pct}"
        raise ValueError(msg)


def _scenario_entry(scenario: RequiredSip, baseline: RequiredSip) -> dict[str, Any]:
    savings = max(0.0, baseline.total_invested - scenario.total_invested)
    entry = scenario.to_dict()
    entry.update(
        {
            "monthly_sip_formatted": _sip_label(scenario.monthly_sip),
            "total_invested_formatted": format_inr(scenario.total_invested),
            "final_corpus_formatted": format_inr(scenario.final_corpus),
            "description": scenario_description(
                scenario.step_up_percent, scenario.monthly_sip
            ),
            "savings_vs_baseline": savings,
            "savings_vs_baseline_formatted": (
                f"Save {format_inr(savings)} vs fixed SIP" if savings > 0 else None
            ),
            "recommendation_score": scenario_rating(scenario.step_up_percent),
        }
    )
    return entry


def plan_goal(  # noqa: PLR0913
    target_amount: float,
    months: int,
    xirr_pct: float,
    existing_corpus: float = 0.0,
    step_up_pct: float = 0.0,
    include_scenarios: bool = True,
    step_up_rates: tuple[float, ...] = DEFAULT_STEP_UP_RATES,
) -> dict[str, Any]:
    """Plan the SIP needed for a goal.

    Args:
        target_amount: Corpus to reach, in rupees.
        months: Horizon in months (1-600).
        xirr_pct: Expected annual return in percent (0-50).
        existing_corpus: Corpus already invested towards the goal.
        step_up_pct: Annual step-up for the base calculation.
        include_scenarios: Also compare the rates in ``step_up_rates``.
        step_up_rates: Step-up rates to compare.

    Returns:
        Dict with keys ``input``, ``base_calculation``, ``scenarios``,
        ``best_scenario``, ``comparison_summary``, ``action_items`` and
        ``summary``.

    Raises:
        ValueError: If inputs fail :func:`validate_plan_inputs`.

    """
    validate_plan_inputs(target_amount, months, xirr_pct, existing_corpus, step_up_pct)

    base = required_monthly_sip(
        target_amount, months, xirr_pct, existing_corpus, step_up_pct
    )
    plan: dict[str, Any] = {
        "input": {
            "target_amount": target_amount,
            "target_amount_formatted": format_inr(target_amount),
            "months": months,
            "months_formatted": format_duration(months),
            "xirr_pct": xirr_pct,
            "existing_corpus": existing_corpus,
            "step_up_pct": step_up_pct,
            "include_scenarios": include_scenarios,
        },
        "base_calculation": {
            **base.to_dict(),
            "monthly_sip_formatted": _sip_label(base.monthly_sip),
            "total_invested_formatted": format_inr(base.total_invested),
            "final_corpus_formatted": format_inr(base.final_corpus),
        },
        "scenarios": [],
        "best_scenario": None,
        "comparison_summary": None,
        "action_items": [],
    }

    if base.monthly_sip == 0:
        plan["base_calculation"]["description"] = (
            "Existing corpus is sufficient to meet target"
        )
        plan["action_items"] = [
            "Review investment strategy",
            "Consider increasing target amount",
        ]
        plan["summary"] = (
            "Existing corpus is already sufficient to meet the target amount. "
            "No additional SIP needed."
        )
        return plan

    plan["base_calculation"]["description"] = (
        f"Invest {_sip_label(base.monthly_sip)} for {format_duration(months)} "
        f"at {format_percentage(xirr_pct, signed=False)} XIRR"
    )
    summary = (
        f"To reach {format_inr(target_amount)} in {format_duration(months)} "
        f"at {format_percentage(xirr_pct, signed=False)}, "
        f"need {_sip_label(base.monthly_sip)}"
    )

    if include_scenarios and step_up_rates:
        raw = step_up_scenarios(
            target_amount, months, xirr_pct, existing_corpus, step_up_rates
        )
        fixed = next((s for s in raw if s.step_up_percent == 0), base)
        scenarios = [_scenario_entry(s, fixed) for s in raw]
        plan["scenarios"] = scenarios

        best = max(scenarios, key=lambda s: s["recommendation_score"])
        best_rate = best["step_up_percent"]
        plan["best_scenario"] = {
            "step_up_percent": best_rate,
            "reasoning": (
                "Fixed SIP is the simplest approach with predictable monthly commitment"
                if best_rate == 0
                else f"{best_rate:g}% yearly step-up balances affordability with "
                "long-term wealth building. Start lower and increase as income grows."
            ),
        }

        if best["monthly_sip"] != fixed.monthly_sip:
            plan["comparison_summary"] = (
                f"Fixed SIP requires {_sip_label(fixed.monthly_sip)}. "
                f"With {best_rate:g}% yearly step-up, start at "
                f"{best['monthly_sip_formatted']} and save "
                f"{format_inr(best['savings_vs_baseline'])} overall."
            )
            summary += (
                f". With {best_rate:g}% yearly step-up, start at "
                f"{best['monthly_sip_formatted']}"
            )

        plan["action_items"] = [
            f"Start with SIP of {best['monthly_sip_formatted']}",
            *([f"Increase by {best_rate:g}% every year"] if best_rate > 0 else []),
            "Review annually and adjust based on goal progress",
        ]
    else:
        plan["action_items"] = [
            f"Start with SIP of {_sip_label(base.monthly_sip)}",
            "Review annually and adjust based on goal progress",
        ]

    plan["summary"] = summary
    logger.debug("Planned goal of %s over %d months", target_amount, months)
    return plan
