"""XIRR (extended internal rate of return) for irregular cash flows.

Solves for the annual rate ``r`` that makes the net present value of a
dated cash-flow series zero::

    NPV(r) = sum(amount_i / (1 + r) ** t_i) = 0

where ``t_i`` is the year fraction (days / 365) between flow ``i`` and
the earliest flow. Newton-Raphson is tried first; when it stalls, leaves
the plausible rate range, or runs out of iterations, a bisection search
over a sign-changing bracket takes over.

Sign convention: outflows (money invested) are negative and inflows
(redemptions, current value) are positive. Mutual-fund transactions are
stored the other way round, so :func:`transactions_to_cash_flows`
negates them.

References:
    Microsoft Excel XIRR function (365-day year convention).

"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date, datetime
from typing import TYPE_CHECKING, Any

import numpy as np

if TYPE_CHECKING:
    from numpy.typing import NDArray

logger = logging.getLogger(__name__)

DAYS_PER_YEAR = 365.0

# Newton-Raphson is abandoned outside this range
_MIN_RATE = -0.99
_MAX_RATE = 10.0
_MIN_DERIVATIVE = 1e-10

# Bisection bracket and scan grid
_BRACKET_LOW = -0.9999
_BRACKET_HIGH = 100.0
_BISECTION_MAX_ITERATIONS = 200
_SCAN_GRID = np.concatenate(
    [
        np.linspace(_BRACKET_LOW, 1.0, 200, endpoint=False),
        np.geomspace(1.0, _BRACKET_HIGH, 60),
    ]
)


@dataclass(frozen=True)
class CashFlow:
    """A single dated cash flow.

    Attributes:
        date: Date of the flow.
        amount: Negative for money paid in, positive for money received.

    """

    date: date
    amount: float


@dataclass(frozen=True)
class XirrResult:
    """Outcome of an XIRR solve.

    Attributes:
        rate: Annualized rate as a decimal (0.1234 for 12.34%).
            0.0 when the solve did not converge.
        converged: Whether a root was found.
        iterations: Total iterations across both methods.
        method: "newton" or "bisection".
        error: Reason for non-convergence, None on success.

    """

    rate: float
    converged: bool
    iterations: int
    method: str = "newton"
    error: str | None = None

    @property
    def percentage(self) -> float:
        """Rate expressed in percent."""
        return self.rate * 100.0

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON responses."""
        return {
            "xirr": self.rate,
            "xirr_percentage": round(self.percentage, 2),
            "formatted": format_xirr(self),
            "converged": self.converged,
            "iterations": self.iterations,
            "method": self.method,
            "error": self.error,
        }


def _coerce_date(value: date | datetime | str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError as exc:
        msg = f"Invalid cash flow date: {value!r}"
        raise ValueError(msg) from exc


def _as_cash_flow(item: CashFlow | tuple[Any, float] | Mapping[str, Any]) -> CashFlow:
    if isinstance(item, CashFlow):
        return item
    if isinstance(item, Mapping):
        return CashFlow(_coerce_date(item["date"]), float(item["amount"]))
    flow_date, amount = item
    return CashFlow(_coerce_date(flow_date), float(amount))


def _npv(
    rate: float,
    amounts: NDArray[np.float64],
    years: NDArray[np.float64],
) -> float:
    return float(np.sum(amounts / (1.0 + rate) ** years))


def _npv_derivative(
    rate: float,
    amounts: NDArray[np.float64],
    years: NDArray[np.float64],
) -> float:
    return float(np.sum(-years * amounts / (1.0 + rate) ** (years + 1.0)))


def _newton(  # noqa: PLR0913
    amounts: NDArray[np.float64],
    years: NDArray[np.float64],
    guess: float,
    threshold: float,
    max_iterations: int,
) -> tuple[float | None, int, str | None]:
    rate = guess
    for iteration in range(1, max_iterations + 1):
        npv = _npv(rate, amounts, years)
        if abs(npv) < threshold:
            return rate, iteration, None

        derivative = _npv_derivative(rate, amounts, years)
        if not np.isfinite(derivative) or abs(derivative) < _MIN_DERIVATIVE:
            return None, iteration, "Derivative too small, cannot converge"

        new_rate = rate - npv / derivative
        if not np.isfinite(new_rate) or not _MIN_RATE <= new_rate <= _MAX_RATE:
            return None, iteration, "Rate out of reasonable bounds"
        if abs(new_rate - rate) < 1e-12:  # noqa: PLR2004
            return new_rate, iteration, None
        rate = new_rate

    return None, max_iterations, "Maximum iterations reached without convergence"


def _find_bracket(
    amounts: NDArray[np.float64],
    years: NDArray[np.float64],
) -> tuple[float, float] | None:
    values = np.array([_npv(r, amounts, years) for r in _SCAN_GRID])
    finite = np.isfinite(values)
    for i in range(len(_SCAN_GRID) - 1):
        if not (finite[i] and finite[i + 1]):
            continue
        if values[i] == 0.0:
            return float(_SCAN_GRID[i]), float(_SCAN_GRID[i])
        if np.sign(values[i]) != np.sign(values[i + 1]):
            return float(_SCAN_GRID[i]), float(_SCAN_GRID[i + 1])
    return None


def _bisect(
    amounts: NDArray[np.float64],
    years: NDArray[np.float64],
    threshold: float,
) -> tuple[float | None, int, str | None]:
    bracket = _find_bracket(amounts, years)
    if bracket is None:
        return None, 0, "No rate between -99.99% and 10000% sets NPV to zero"

    low, high = bracket
    if low == high:
        return low, 0, None

    f_low = _npv(low, amounts, years)
    mid = low
    for iteration in range(1, _BISECTION_MAX_ITERATIONS + 1):
        mid = (low + high) / 2.0
        f_mid = _npv(mid, amounts, years)
        if abs(f_mid) < threshold or (high - low) / 2.0 < 1e-12:  # noqa: PLR2004
            return mid, iteration, None
        if np.sign(f_mid) == np.sign(f_low):
            low, f_low = mid, f_mid
        else:
            high = mid
    return mid, _BISECTION_MAX_ITERATIONS, None


def xirr(
    cash_flows: Iterable[CashFlow | tuple[Any, float] | Mapping[str, Any]],
    guess: float = 0.1,
    tolerance: float = 1e-6,
    max_iterations: int = 100,
) -> XirrResult:
    """Compute the XIRR of a dated cash-flow series.

    Args:
        cash_flows: CashFlow objects, ``(date, amount)`` tuples, or dicts
            with ``date`` and ``amount`` keys. Order does not matter.
        guess: Starting rate for Newton-Raphson. Must be greater than -1.
        tolerance: Convergence threshold on |NPV|, scaled by the largest
            absolute flow so that rupee and crore portfolios behave alike.
        max_iterations: Newton-Raphson iteration cap.

    Returns:
        XirrResult. Degenerate inputs and solver failures are reported
        through ``converged=False`` and ``error`` rather than raised.

    Raises:
        ValueError: If guess <= -1, tolerance <= 0, or a date is malformed.

    """
    if guess <= -1.0:
        msg = f"guess must be greater than -1, got {guess}"
        raise ValueError(msg)
    if tolerance <= 0:
        msg = f"tolerance must be positive, got {tolerance}"
        raise ValueError(msg)

    flows = sorted((_as_cash_flow(cf) for cf in cash_flows), key=lambda cf: cf.date)
    if len(flows) < 2:  # noqa: PLR2004
        return XirrResult(
            rate=0.0,
            converged=False,
            iterations=0,
            error="At least 2 cash flows required for XIRR calculation",
        )

    amounts = np.array([cf.amount for cf in flows], dtype=np.float64)
    if not (np.any(amounts > 0) and np.any(amounts < 0)):
        return XirrResult(
            rate=0.0,
            converged=False,
            iterations=0,
            error="XIRR requires both positive and negative cash flows",
        )

    first = flows[0].date
    years = np.array(
        [(cf.date - first).days for cf in flows], dtype=np.float64
    ) / DAYS_PER_YEAR
    threshold = tolerance * max(1.0, float(np.max(np.abs(amounts))))

    with np.errstate(over="ignore", divide="ignore", invalid="ignore"):
        rate, newton_iterations, newton_error = _newton(
            amounts, years, guess, threshold, max_iterations
        )
        if rate is not None:
            return XirrResult(rate=rate, converged=True, iterations=newton_iterations)

        logger.debug("Newton-Raphson failed (%s); trying bisection", newton_error)
        rate, bisect_iterations, bisect_error = _bisect(amounts, years, threshold)

    total_iterations = newton_iterations + bisect_iterations
    if rate is None:
        return XirrResult(
            rate=0.0,
            converged=False,
            iterations=total_iterations,
            method="bisection",
            error=bisect_error or newton_error,
        )
    return XirrResult(
        rate=rate,
        converged=True,
        iterations=total_iterations,
        method="bisection",
    )


def transactions_to_cash_flows(
    transactions: Iterable[Mapping[str, Any]],
    current_value: float = 0.0,
    as_of: date | str | None = None,
) -> list[CashFlow]:
    """Turn stored mutual-fund transactions into XIRR cash flows.

    Stored amounts are positive for purchases and negative for
    redemptions, so each is negated. A positive ``current_value`` is
    appended as a terminal inflow dated ``as_of``.

    Args:
        transactions: Dicts with ``date`` and ``amount`` keys.
        current_value: Market value of the holdings on ``as_of``.
        as_of: Valuation date. Defaults to today.

    Returns:
        List of CashFlow objects (unsorted).

    """
    flows = [
        CashFlow(_coerce_date(tx["date"]), -float(tx["amount"]))
        for tx in transactions
        if tx.get("amount")
    ]
    if current_value > 0:
        flows.append(CashFlow(_coerce_date(as_of or date.today()), float(current_value)))
    return flows


def portfolio_xirr(
    transactions: Iterable[Mapping[str, Any]],
    current_value: float,
    as_of: date | str | None = None,
) -> XirrResult:
    """XIRR of a whole portfolio from its transactions and current value."""
    return xirr(transactions_to_cash_flows(transactions, current_value, as_of))


def scheme_xirr(
    transactions: Iterable[Mapping[str, Any]],
    scheme_name: str,
    folio: str,
    current_value: float,
    as_of: date | str | None = None,
) -> XirrResult:
    """XIRR of a single (scheme, folio) holding.

    Transactions for other holdings are ignored, so the full
    transaction list of a user can be passed in.
    """
    own = [
        tx
        for tx in transactions
        if tx.get("scheme_name") == scheme_name and tx.get("folio") == folio
    ]
    return xirr(transactions_to_cash_flows(own, current_value, as_of))


def holding_key(scheme_name: str, folio: str) -> str:
    """Key identifying one mutual-fund holding across lookups."""
    return f"{scheme_name}-{folio}"


def goal_xirr(
    transactions: Iterable[Mapping[str, Any]],
    current_values: Mapping[str, float],
    as_of: date | str | None = None,
) -> XirrResult:
    """XIRR of every holding mapped to a goal, combined into one series.

    Args:
        transactions: Transactions of the goal's holdings only.
        current_values: Current value per holding key (see :func:`holding_key`).
        as_of: Valuation date. Defaults to today.

    Returns:
        XirrResult for the combined cash flows.

    """
    total_value = float(sum(current_values.values()))
    return xirr(transactions_to_cash_flows(transactions, total_value, as_of))


def format_xirr(value: XirrResult | float) -> str:
    """Format an XIRR as a signed percentage such as "+12.34%".

    Args:
        value: An XirrResult, or a rate as a decimal.

    Returns:
        The formatted string, or "N/A" for a non-converged result.

    """
    if isinstance(value, XirrResult):
        if not value.converged:
            return "N/A"
        value = value.rate
    percentage = value * 100.0
    sign = "+" if percentage >= 0 else ""
    return f"{sign}{percentage:.2f}%"


_INTERPRETATION_BANDS = (
    (15.0, "Excellent", "High", "Well above average mutual fund returns"),
    (12.0, "Strong", "High", "Above average performance"),
    (10.0, "Good", "Medium", "Competitive with market average"),
    (7.0, "Moderate", "Medium", "Below average but acceptable"),
    (4.0, "Below average", "Low", "May consider rebalancing"),
)


def interpret_xirr(result: XirrResult) -> dict[str, str]:
    """Describe an XIRR in plain words.

    Returns:
        Dict with ``interpretation`` (e.g. "Strong 12.5% annualized
        return"), ``category`` ("High", "Medium" or "Low") and ``context``.

    """
    if not result.converged or result.error:
        return {
            "interpretation": "Unable to calculate returns",
            "category": "Low",
            "context": "",
        }

    pct = result.percentage
    for floor, label, category, context in _INTERPRETATION_BANDS:
        if pct >= floor:
            return {
                "interpretation": f"{label} {pct:.1f}% annualized return",
                "category": category,
                "context": context,
            }
    return {
        "interpretation": f"Poor {pct:.1f}% annualized return",
        "category": "Low",
        "context": "Needs immediate attention",
    }
