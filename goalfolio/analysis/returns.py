"""Simple return metrics.

Point-to-point measures used alongside XIRR: absolute return on the
amount invested and CAGR between two values.
"""

from __future__ import annotations


def cagr(
    start_value: float,
    end_value: float,
    n_years: float,
) -> float:
    """Calculate Compound Annual Growth Rate.

    Args:
        start_value: Initial investment value. Must be positive.
        end_value: Final investment value. Must be non-negative.
        n_years: Number of years (can be fractional). Must be positive.

    Returns:
        CAGR as a decimal (e.g., 0.07 for 7%).

    Raises:
        ValueError: If start_value <= 0, end_value < 0, or n_years <= 0.

    """
    if start_value <= 0:
        msg = f"start_value must be positive, got {start_value}"
        raise ValueError(msg)
    if end_value < 0:
        msg = f"end_value must be non-negative, got {end_value}"
        raise ValueError(msg)
    if n_years <= 0:
        msg = f"n_years must be positive, got {n_years}"
        raise ValueError(msg)
    return float((end_value / start_value) ** (1.0 / n_years) - 1.0)


def absolute_return(invested: float, current_value: float) -> tuple[float, float]:
    """Gain on the amount invested.

    Args:
        invested: Net amount invested.
        current_value: Current market value.

    Returns:
        Tuple of (return amount, return percentage). The percentage is
        0.0 when nothing was invested.

    """
    amount = current_value - invested
    if invested <= 0:
        return amount, 0.0
    return amount, amount / invested * 100.0
