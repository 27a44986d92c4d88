"""Indian currency and number formatting.

Rupee amounts are grouped the Indian way (last three digits, then pairs:
``12,34,567``) and abbreviated with lakh (L, 1e5) and crore (Cr, 1e7)
suffixes.
"""

from __future__ import annotations

import math

RUPEE = "₹"
LAKH = 100_000
CRORE = 10_000_000


def format_indian_number(value: float, decimals: int = 0) -> str:
    """Format a number with Indian digit grouping.

    Args:
        value: Number to format.
        decimals: Digits after the decimal point.

    Returns:
        Grouped string, e.g. ``format_indian_number(1234567.5, 1)`` gives
        ``"12,34,567.5"``.

    Raises:
        ValueError: If value is not finite or decimals is negative.

    """
    if not math.isfinite(value):
        msg = f"value must be finite, got {value}"
        raise ValueError(msg)
    if decimals < 0:
        msg = f"decimals must be non-negative, got {decimals}"
        raise ValueError(msg)

    text = f"{abs(value):.{decimals}f}"
    integer, _, fraction = text.partition(".")
    if len(integer) > 3:  # noqa: PLR2004
        head, tail = integer[:-3], integer[-3:]
        groups: list[str] = []
        while len(head) > 2:  # noqa: PLR2004
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        integer = ",".join([*groups, tail])

    result = f"{integer}.{fraction}" if fraction else integer
    if value < 0 and float(text) != 0:
        return f"-{result}"
    return result


def format_inr(value: float, decimals: int = 0) -> str:
    """Format a rupee amount, e.g. ``"₹12,34,567"`` or ``"-₹500"``."""
    grouped = format_indian_number(value, decimals)
    if grouped.startswith("-"):
        return f"-{RUPEE}{grouped[1:]}"
    return f"{RUPEE}{grouped}"


def format_indian_number_with_suffix(value: float) -> str:
    """Abbreviate a rupee amount with a crore, lakh or thousand suffix.

    Examples:
        12_500_000 gives "₹1.25 Cr", 450_000 gives "₹4.50 L",
        12_500 gives "₹12.5K", and 950 gives "₹950".

    """
    if not math.isfinite(value):
        msg = f"value must be finite, got {value}"
        raise ValueError(msg)

    sign = "-" if value < 0 else ""
    magnitude = abs(value)
    if magnitude >= CRORE:
        body = f"{magnitude / CRORE:.2f} Cr"
    elif magnitude >= LAKH:
        body = f"{magnitude / LAKH:.2f} L"
    elif magnitude >= 1_000:  # noqa: PLR2004
        body = f"{magnitude / 1_000:.1f}K"
    else:
        body = f"{magnitude:.0f}"
    return f"{sign}{RUPEE}{body}"


def format_percentage(value: float, decimals: int = 2, signed: bool = True) -> str:
    """Format a value already expressed in percent, e.g. ``"+12.34%"``."""
    sign = "+" if signed and value >= 0 else ""
    return f"{sign}{value:.{decimals}f}%"


def format_duration(months: int) -> str:
    """Render a month count as years and months, e.g. ``"5y 3m"``.

    Whole years drop the month part (``"2y"``), short spans drop the
    year part (``"7m"``), and zero or negative input gives ``"0m"``.
    """
    if months is None or months <= 0:
        return "0m"
    years, remainder = divmod(int(months), 12)
    if years and remainder:
        return f"{years}y {remainder}m"
    if years:
        return f"{years}y"
    return f"{remainder}m"
