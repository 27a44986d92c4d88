"""AMFI mutual-fund NAV feed adapter.

AMFI publishes the latest NAV of every open-ended scheme as a single
semicolon-separated text file::

    Scheme Code;ISIN Div Payout/ ISIN Growth;ISIN Div Reinvestment;Scheme Name;Net Asset Value;Date
    119551;INF209KA12Z1;INF209KA13Z9;ABSL Banking PSU Debt - DIRECT - IDCW;105.7108;16-Oct-2026

Fund-house and category headings appear between blocks as lines with no
separators and are ignored.

"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from goalfolio.market._http import fetch_text

logger = logging.getLogger(__name__)

AMFI_NAV_URL = "https://www.amfiindia.com/spages/NAVAll.txt"

_MIN_FIELDS = 6
_MISSING_ISIN = {"", "-", "na", "n.a."}


def _clean_isin(value: str) -> str | None:
    cleaned = value.strip()
    return None if cleaned.lower() in _MISSING_ISIN else cleaned


def _parse_nav_date(value: str) -> str | None:
    cleaned = value.strip()
    for fmt in ("%d-%b-%Y", "%d-%m-%Y", "%Y-%m-%d"):
        try:
            return datetime.strptime(cleaned, fmt).date().isoformat()
        except ValueError:
            continue
    return None


def parse_nav_text(text: str) -> list[dict[str, Any]]:
    """Parse the AMFI NAVAll.txt feed.

    Args:
        text: Raw feed contents.

    Returns:
        List of dicts with keys scheme_code, isin_div_payout,
        isin_div_reinvestment, scheme_name, nav_value and nav_date
        (YYYY-MM-DD). Lines with fewer than six fields, header lines,
        and lines whose NAV is non-numeric or not positive are skipped.

    """
    records: list[dict[str, Any]] = []
    skipped = 0

    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("Scheme Code;"):
            continue

        parts = line.split(";")
        if len(parts) < _MIN_FIELDS:
            continue

        scheme_code, isin_payout, isin_reinvest, scheme_name, nav_raw, date_raw = (
            p.strip() for p in parts[:_MIN_FIELDS]
        )
        try:
            nav_value = float(nav_raw.replace(",", ""))
        except ValueError:
            skipped += 1
            continue
        nav_date = _parse_nav_date(date_raw)
        if not scheme_code or not scheme_name or nav_value <= 0 or nav_date is None:
            skipped += 1
            continue

        records.append(
            {
                "scheme_code": scheme_code,
                "isin_div_payout": _clean_isin(isin_payout),
                "isin_div_reinvestment": _clean_isin(isin_reinvest),
                "scheme_name": scheme_name,
                "nav_value": nav_value,
                "nav_date": nav_date,
            }
        )

    if skipped:
        logger.debug("Skipped %d AMFI lines without a usable NAV", skipped)
    return records


def fetch_nav_text(url: str = AMFI_NAV_URL, timeout: float = 30.0) -> str:
    """Download the AMFI NAV feed.

    Raises:
        UpstreamError: If the download fails.

    """
    logger.info("Fetching AMFI NAV feed from %s", url)
    return fetch_text(url, timeout=timeout)


def fetch_nav_records(url: str = AMFI_NAV_URL, timeout: float = 30.0) -> list[dict[str, Any]]:
    """Download and parse the AMFI NAV feed."""
    return parse_nav_text(fetch_nav_text(url, timeout=timeout))
