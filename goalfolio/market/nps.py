"""NPS (National Pension System) NAV adapter.

Latest NAVs come from the npsnav.in detailed endpoint, which returns
JSON such as ``{"NAV": 45.1234, "Last Updated": "15-10-2026", ...}``.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from goalfolio.market._http import fetch_json

logger = logging.getLogger(__name__)

NPS_NAV_URL = "https://npsnav.in/api/detailed/{fund_code}"


def parse_nps_payload(fund_code: str, payload: Any) -> dict[str, Any]:
    """Extract the NAV and its date from an npsnav.in response.

    Args:
        fund_code: NPS fund (scheme) code the payload belongs to.
        payload: Decoded JSON response.

    Returns:
        Dict with keys fund_code, nav and nav_date (YYYY-MM-DD).

    Raises:
        ValueError: If the NAV or date is missing or malformed.

    """
    if not isinstance(payload, dict):
        msg = f"Unexpected NPS NAV payload for {fund_code}: {payload!r}"
        raise ValueError(msg)

    try:
        nav = float(payload["NAV"])
    except (KeyError, TypeError, ValueError) as exc:
        msg = f"NPS NAV payload for {fund_code} has no numeric 'NAV'"
        raise ValueError(msg) from exc
    if nav <= 0:
        msg = f"NPS NAV for {fund_code} must be positive, got {nav}"
        raise ValueError(msg)

    raw_date = str(payload.get("Last Updated", "")).strip()
    try:
        nav_date = datetime.strptime(raw_date, "%d-%m-%Y").date().isoformat()
    except ValueError as exc:
        msg = f"NPS NAV payload for {fund_code} has bad 'Last Updated': {raw_date!r}"
        raise ValueError(msg) from exc

    return {"fund_code": fund_code, "nav": nav, "nav_date": nav_date}


def fetch_nps_nav(
    fund_code: str,
    url_template: str = NPS_NAV_URL,
    timeout: float = 30.0,
) -> dict[str, Any]:
    """Fetch the latest NAV for one NPS fund.

    Raises:
        ValueError: If fund_code is empty or the response is malformed.
        UpstreamError: If the request fails.

    """
    if not fund_code or not fund_code.strip():
        msg = "fund_code must be a non-empty string"
        raise ValueError(msg)
    code = fund_code.strip()
    payload = fetch_json(url_template.format(fund_code=code), timeout=timeout)
    return parse_nps_payload(code, payload)
