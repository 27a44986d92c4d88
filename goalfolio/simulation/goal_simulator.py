"""Goal projection: SIP compounding with annual step-up.

Projects how a monthly SIP (systematic investment plan) grows at an
expected annual return, optionally raising the SIP by a fixed
percentage at the start of every year, and answers the inverse
questions: how long until a target is reached, and what SIP reaches a
target in a given number of months.

Conventions:
    - The annual return is given in percent and compounded monthly
      at ``annual_pct / 100 / 12``.
    - In the month-by-month projection the corpus grows first and the
      SIP is added at month end.
      :func:`sip_future_value` is the closed-form annuity-due variant
      (each SIP earns a full month) kept for quick estimates.
    - Horizons are capped at 600 months (50 years).

"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date
from typing import TYPE_CHECKING, Any

import numpy as np
import pandas as pd

if TYPE_CHECKING:
    from numpy.typing import NDArray

MAX_MONTHS = 600
DEFAULT_PROJECTION_MONTHS = 60
MAX_PROJECTION_POINTS = 60
DEFAULT_INFLATION_PCT = 6.0
DEFAULT_STEP_UP_RATES = (0.0, 5.0, 10.0, 15.0, 20.0)


@dataclass
class StepUpResult:
    """Outcome of a month-by-month step-up simulation.

    Attributes:
        corpus: Corpus at the end of the simulated horizon.
        months: Months simulated.
        months_to_target: First month the corpus reached the target,
            None when no target was given or it was never reached.
        total_invested: Sum of all SIP instalments (excluding any
            existing corpus).
        final_sip: SIP instalment paid in the last simulated month.

    """

    corpus: float
    months: int
    months_to_target: int | None
    total_invested: float
    final_sip: float

    @property
    def target_reached(self) -> bool:
        """Whether the target was reached within the horizon."""
        return self.months_to_target is not None


@dataclass
class RequiredSip:
    """First-year SIP needed to reach a target, with its step-up schedule.

    Attributes:
        step_up_percent: Annual SIP increase used for this plan.
        monthly_sip: First-year monthly SIP, rounded up to whole rupees.
        total_invested: Sum of all SIP instalments over the horizon.
        final_corpus: Projected corpus at the end of the horizon.
        year_columns: SIP amount for each year of the horizon.

    """

    step_up_percent: float
    monthly_sip: float
    total_invested: float
    final_corpus: float
    year_columns: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON responses."""
        return {
            "step_up_percent": self.step_up_percent,
            "monthly_sip": self.monthly_sip,
            "total_invested": self.total_invested,
            "final_corpus": self.final_corpus,
            "year_columns": list(self.year_columns),
        }


def monthly_rate(annual_pct: float) -> float:
    """Convert an annual percentage return into a monthly decimal rate."""
    return annual_pct / 100.0 / 12.0


def _require_non_negative(name: str, value: float) -> None:
    if value is None or not math.isfinite(value) or value < 0:
        msg = f"{name} must be a non-negative number, got {value}"
        raise ValueError(msg)


def _require_months(months: int, minimum: int = 0) -> None:
    if isinstance(months, bool) or not isinstance(months, int | np.integer):
        msg = f"months must be an integer, got {months!r}"
        raise ValueError(msg)
    if not minimum <= months <= MAX_MONTHS:
        msg = f"months must be between {minimum} and {MAX_MONTHS}, got {months}"
        raise ValueError(msg)


def _sip_schedule(
    monthly_sip: float,
    step_up_pct: float,
    months: int,
) -> NDArray[np.float64]:
    """SIP paid in each month 1..months, raised at the start of each year."""
    years_elapsed = (np.arange(1, months + 1) - 1) // 12
    return monthly_sip * (1.0 + step_up_pct / 100.0) ** years_elapsed


def _simulate_path(
    monthly_sip: float,
    annual_pct: float,
    step_up_pct: float,
    months: int,
    existing_corpus: float = 0.0,
) -> tuple[NDArray[np.float64], NDArray[np.float64], NDArray[np.float64]]:
    """Run the month-by-month projection.

    Returns:
        Tuple of (corpus, invested, sips). ``corpus`` and ``invested``
        have ``months + 1`` entries (index 0 is the starting point);
        ``sips`` has one entry per simulated month.

    """
    rate = monthly_rate(annual_pct)
    sips = _sip_schedule(monthly_sip, step_up_pct, months)
    growth = (1.0 + rate) ** np.arange(0, months + 1)
    # c_m = (1+r)^m * (c_0 + sum_{k<=m} sip_k / (1+r)^k)
    discounted = np.concatenate([[0.0], np.cumsum(sips / growth[1:])])
    corpus = growth * (existing_corpus + discounted)
    invested = np.concatenate([[0.0], np.cumsum(sips)])
    return corpus, invested, sips


def corpus_path(
    monthly_sip: float,
    annual_pct: float,
    months: int,
    step_up_pct: float = 0.0,
    existing_corpus: float = 0.0,
) -> NDArray[np.float64]:
    """Corpus at the end of every month of a step-up SIP.

    Args:
        monthly_sip: First-year monthly SIP.
        annual_pct: Expected annual return in percent.
        months: Months to simulate (0-600).
        step_up_pct: Annual SIP increase in percent.
        existing_corpus: Corpus already invested at month 0.

    Returns:
        Array of ``months + 1`` corpus values; index 0 is the start.

    Raises:
        ValueError: If any input is negative or months is out of range.

    """
    _require_non_negative("monthly_sip", monthly_sip)
    _require_non_negative("annual_pct", annual_pct)
    _require_non_negative("step_up_pct", step_up_pct)
    _require_non_negative("existing_corpus", existing_corpus)
    _require_months(months)
    corpus, _invested, _sips = _simulate_path(
        monthly_sip, annual_pct, step_up_pct, months, existing_corpus
    )
    return corpus


def sip_future_value(monthly_sip: float, annual_pct: float, months: int) -> float:
    """Future value of a level SIP paid at the start of each month.

    Computes ``P * ((1 + r)^n - 1) / r * (1 + r)``, or ``P * n`` when the
    return is zero.

    Args:
        monthly_sip: Monthly instalment.
        annual_pct: Expected annual return in percent.
        months: Number of instalments.

    Returns:
        Corpus rounded to 2 decimals.

    Raises:
        ValueError: If any input is negative or months is out of range.

    """
    _require_non_negative("monthly_sip", monthly_sip)
    _require_non_negative("annual_pct", annual_pct)
    _require_months(months)

    rate = monthly_rate(annual_pct)
    if rate == 0:
        return round(monthly_sip * months, 2)
    future_value = monthly_sip * ((1.0 + rate) ** months - 1.0) / rate * (1.0 + rate)
    return round(future_value, 2)


def months_to_target(
    target_amount: float,
    monthly_sip: float,
    annual_pct: float,
    existing_corpus: float = 0.0,
) -> int | None:
    """Months until a level SIP plus existing corpus reaches a target.

    The existing corpus compounds monthly and the SIP grows as an
    annuity due, matching :func:`sip_future_value`.

    Args:
        target_amount: Corpus to reach. Must be positive.
        monthly_sip: Monthly instalment.
        annual_pct: Expected annual return in percent.
        existing_corpus: Corpus already invested.

    Returns:
        The first month the target is met, 0 if the existing corpus
        already meets it, or None if it is not met within 600 months.

    Raises:
        ValueError: If target_amount <= 0 or another input is negative.

    """
    if target_amount is None or not target_amount > 0:
        msg = f"target_amount must be positive, got {target_amount}"
        raise ValueError(msg)
    _require_non_negative("monthly_sip", monthly_sip)
    _require_non_negative("annual_pct", annual_pct)
    _require_non_negative("existing_corpus", existing_corpus)

    if existing_corpus >= target_amount:
        return 0

    rate = monthly_rate(annual_pct)
    month_numbers = np.arange(1, MAX_MONTHS + 1, dtype=np.float64)
    growth = (1.0 + rate) ** month_numbers
    if rate == 0:
        sip_value = monthly_sip * month_numbers
    else:
        sip_value = monthly_sip * (growth - 1.0) / rate * (1.0 + rate)
    totals = existing_corpus * growth + sip_value

    reached = np.nonzero(totals >= target_amount)[0]
    if reached.size == 0:
        return None
    return int(reached[0]) + 1


def simulate_step_up(  # noqa: PLR0913
    monthly_sip: float,
    annual_pct: float,
    step_up_pct: float = 0.0,
    *,
    months: int | None = None,
    target_amount: float | None = None,
    existing_corpus: float = 0.0,
) -> StepUpResult:
    """Simulate a step-up SIP month by month.

    Each month the corpus grows by the monthly rate and then the SIP is
    added. At the start of every year after the first the SIP is raised
    by ``step_up_pct``.

    When ``months`` is given the simulation runs exactly that long.
    Otherwise it stops the month the target is reached, or after 600
    months.

    Args:
        monthly_sip: First-year monthly SIP.
        annual_pct: Expected annual return in percent.
        step_up_pct: Annual SIP increase in percent.
        months: Fixed horizon in months (0-600).
        target_amount: Optional corpus target to track.
        existing_corpus: Corpus already invested at month 0.

    Returns:
        StepUpResult for the simulated horizon.

    Raises:
        ValueError: If inputs are negative, months is out of range, or
            target_amount is not positive.

    """
    _require_non_negative("monthly_sip", monthly_sip)
    _require_non_negative("annual_pct", annual_pct)
    _require_non_negative("step_up_pct", step_up_pct)
    _require_non_negative("existing_corpus", existing_corpus)
    if months is not None:
        _require_months(months)
    if target_amount is not None and not target_amount > 0:
        msg = f"target_amount must be positive, got {target_amount}"
        raise ValueError(msg)

    horizon = MAX_MONTHS if months is None else months
    corpus, invested, sips = _simulate_path(
        monthly_sip, annual_pct, step_up_pct, horizon, existing_corpus
    )

    reached_at: int | None = None
    if target_amount is not None:
        reached = np.nonzero(corpus >= target_amount)[0]
        if reached.size:
            reached_at = int(reached[0])

    if months is not None:
        end = months
    elif reached_at is not None:
        end = reached_at
    else:
        end = MAX_MONTHS

    return StepUpResult(
        corpus=round(float(corpus[end]), 2),
        months=end,
        months_to_target=reached_at,
        total_invested=round(float(invested[end]), 2),
        final_sip=round(float(sips[end - 1]), 2) if end > 0 else float(monthly_sip),
    )


def project_goal(  # noqa: PLR0913
    monthly_sip: float,
    annual_pct: float,
    step_up_pct: float = 0.0,
    target_amount: float | None = None,
    months: int | None = None,
    start_date: date | None = None,
    existing_corpus: float = 0.0,
    max_points: int = MAX_PROJECTION_POINTS,
    inflation_pct: float | None = None,
) -> dict[str, Any]:
    """Build a dated corpus projection for a goal simulation.

    The horizon defaults to 60 months. When a target is given without a
    horizon, the horizon is the number of months needed to reach it (600
    if it is never reached). The path is sampled at most ``max_points``
    times at an even interval, always including month 0 and the final
    month.

    Args:
        monthly_sip: First-year monthly SIP. Must be positive.
        annual_pct: Expected annual return in percent.
        step_up_pct: Annual SIP increase in percent.
        target_amount: Optional corpus target.
        months: Optional horizon in months (1-600).
        start_date: Date of month 0. Defaults to today.
        existing_corpus: Corpus already invested at month 0.
        max_points: Maximum number of sampled intervals.
        inflation_pct: When given, the summary also carries
            ``final_corpus_real``, the final corpus in today's money.

    Returns:
        Dict with ``projection`` (list of {date, corpus, months}) and
        ``summary`` (final_corpus, total_months, monthly_sip, xirr,
        step_up, target_amount, total_invested, target_reached,
        months_to_target, existing_corpus and, with inflation_pct,
        final_corpus_real).

    Raises:
        ValueError: If monthly_sip <= 0, annual_pct < 0, or months is out
            of range.

    """
    if monthly_sip is None or not monthly_sip > 0:
        msg = f"monthly_sip must be positive, got {monthly_sip}"
        raise ValueError(msg)
    if max_points < 1:
        msg = f"max_points must be at least 1, got {max_points}"
        raise ValueError(msg)

    if months is None:
        if target_amount:
            outcome = simulate_step_up(
                monthly_sip,
                annual_pct,
                step_up_pct,
                target_amount=target_amount,
                existing_corpus=existing_corpus,
            )
            if outcome.months_to_target is None:
                months = MAX_MONTHS
            else:
                months = max(1, outcome.months_to_target)
        else:
            months = DEFAULT_PROJECTION_MONTHS
    _require_months(months, minimum=1)

    outcome = simulate_step_up(
        monthly_sip,
        annual_pct,
        step_up_pct,
        months=months,
        target_amount=target_amount,
        existing_corpus=existing_corpus,
    )
    corpus, invested, _sips = _simulate_path(
        monthly_sip, annual_pct, step_up_pct, months, existing_corpus
    )

    intervals = min(months, max_points)
    interval_months = math.ceil(months / intervals)
    sampled = sorted({min(i * interval_months, months) for i in range(intervals + 1)})

    start = pd.Timestamp(start_date or date.today())
    projection = [
        {
            "date": (start + pd.DateOffset(months=m)).date().isoformat(),
            "corpus": round(float(corpus[m]), 2),
            "months": m,
        }
        for m in sampled
    ]

    summary = {
        "final_corpus": outcome.corpus,
        "total_months": months,
        "monthly_sip": monthly_sip,
        "xirr": annual_pct,
        "step_up": step_up_pct,
        "target_amount": target_amount,
        "total_invested": round(float(invested[months])),
        "target_reached": outcome.target_reached,
        "months_to_target": outcome.months_to_target,
        "existing_corpus": existing_corpus,
    }
    if inflation_pct is not None:
        summary["final_corpus_real"] = adjust_for_inflation(
            outcome.corpus, months, inflation_pct
        )
    return {"projection": projection, "summary": summary}


def required_monthly_sip(
    target_amount: float,
    months: int,
    annual_pct: float,
    existing_corpus: float = 0.0,
    step_up_pct: float = 0.0,
) -> RequiredSip:
    """Smallest whole-rupee first-year SIP that reaches a target in time.

    The projected corpus is linear in the first-year SIP, so the answer
    is the shortfall (target minus the grown existing corpus) divided by
    the corpus a 1-rupee step-up SIP would build, rounded up.

    Args:
        target_amount: Corpus to reach. Must be positive.
        months: Horizon in months (1-600).
        annual_pct: Expected annual return in percent.
        existing_corpus: Corpus already invested.
        step_up_pct: Annual SIP increase in percent.

    Returns:
        RequiredSip. The SIP is 0 when the existing corpus alone reaches
        the target.

    Raises:
        ValueError: If target_amount <= 0, months is out of range, or
            another input is negative.

    """
    if target_amount is None or not target_amount > 0:
        msg = f"target_amount must be positive, got {target_amount}"
        raise ValueError(msg)
    _require_months(months, minimum=1)
    _require_non_negative("annual_pct", annual_pct)
    _require_non_negative("existing_corpus", existing_corpus)
    _require_non_negative("step_up_pct", step_up_pct)

    unit_corpus, unit_invested, _sips = _simulate_path(
        1.0, annual_pct, step_up_pct, months
    )
    existing_value = existing_corpus * (1.0 + monthly_rate(annual_pct)) ** months
    shortfall = target_amount - existing_value

    if shortfall <= 0:
        sip = 0.0
    else:
        sip = float(math.ceil(shortfall / unit_corpus[months] - 1e-9))

    years = math.ceil(months / 12)
    year_columns = [
        {"year": year, "sip": round(sip * (1.0 + step_up_pct / 100.0) ** (year - 1))}
        for year in range(1, years + 1)
    ]
    return RequiredSip(
        step_up_percent=step_up_pct,
        monthly_sip=sip,
        total_invested=round(sip * float(unit_invested[months])),
        final_corpus=round(existing_value + sip * float(unit_corpus[months]), 2),
        year_columns=year_columns,
    )


def step_up_scenarios(
    target_amount: float,
    months: int,
    annual_pct: float,
    existing_corpus: float = 0.0,
    step_up_rates: tuple[float, ...] = DEFAULT_STEP_UP_RATES,
) -> list[RequiredSip]:
    """Required SIP for each of several annual step-up rates."""
    return [
        required_monthly_sip(
            target_amount,
            months,
            annual_pct,
            existing_corpus=existing_corpus,
            step_up_pct=rate,
        )
        for rate in step_up_rates
    ]


def _require_inflation(inflation_pct: float, months: float) -> None:
    if months < 0:
        msg = f"months must be non-negative, got {months}"
        raise ValueError(msg)
    if inflation_pct <= -100:  # noqa: PLR2004
        msg = f"inflation_pct must be greater than -100, got {inflation_pct}"
        raise ValueError(msg)


def adjust_for_inflation(
    nominal_value: float,
    months: float,
    inflation_pct: float = DEFAULT_INFLATION_PCT,
) -> float:
    """Express a future amount in today's money.

    Returns:
        ``nominal_value / (1 + inflation)^(months / 12)`` rounded to 2 decimals.

    """
    _require_inflation(inflation_pct, months)
    factor = (1.0 + inflation_pct / 100.0) ** (months / 12.0)
    return round(nominal_value / factor, 2)


def nominal_value(
    real_value: float,
    months: float,
    inflation_pct: float = DEFAULT_INFLATION_PCT,
) -> float:
    """Future amount needed to match today's ``real_value`` after inflation."""
    _require_inflation(inflation_pct, months)
    factor = (1.0 + inflation_pct / 100.0) ** (months / 12.0)
    return round(real_value * factor, 2)
