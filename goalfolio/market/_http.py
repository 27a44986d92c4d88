"""Minimal HTTP helpers for the public market-data feeds."""

from __future__ import annotations

import json
import logging
import urllib.error
import urllib.request
from typing import Any

logger = logging.getLogger(__name__)

_USER_AGENT = "goalfolio/0.1"


class UpstreamError(RuntimeError):
    """A market-data feed could not be reached or returned unusable data."""


def fetch_text(url: str, timeout: float = 30.0) -> str:
    """GET a URL and return the body decoded as UTF-8.

    Raises:
        UpstreamError: If the request fails or returns a non-200 status.

    """
    req = urllib.request.Request(url, method="GET")
    req.add_header("User-Agent", _USER_AGENT)
    try:
        with urllib.request.urlopen(req, timeout=timeout) as resp:
            status = getattr(resp, "status", 200)
            if status != 200:  # noqa: PLR2004
                msg = f"GET {url} returned HTTP {status}"
                raise UpstreamError(msg)
            return resp.read().decode("utf-8", errors="replace")
    except urllib.error.HTTPError as exc:
        msg = f"GET {url} returned HTTP {exc.code}"
        raise UpstreamError(msg) from exc
    except (urllib.error.URLError, TimeoutError) as exc:
        msg = f"GET {url} failed: {exc}"
        raise UpstreamError(msg) from exc


def fetch_json(url: str, timeout: float = 30.0) -> Any:
    """GET a URL and parse the body as JSON.

    Raises:
        UpstreamError: If the request fails or the body is not valid JSON.

    """
    body = fetch_text(url, timeout=timeout)
    try:
        return json.loads(body)
    except json.JSONDecodeError as exc:
        msg = f"GET {url} returned invalid JSON: {exc}"
        raise UpstreamError(msg) from exc
