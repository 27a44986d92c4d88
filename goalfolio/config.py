"""Runtime settings read from environment variables.

Every setting has a default, so an empty environment gives a working
local setup (database under ``~/.goalfolio/data``, server on
127.0.0.1:8000). A value that cannot be parsed is logged and replaced
by its default rather than failing at startup.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from goalfolio.db.connection import DEFAULT_DB_PATH
from goalfolio.market.amfi import AMFI_NAV_URL
from goalfolio.market.nps import NPS_NAV_URL
from goalfolio.market.prices import DEFAULT_BATCH_SIZE, DEFAULT_MAX_SYMBOLS
from goalfolio.market.yahoo import FX_FALLBACK_URL

logger = logging.getLogger(__name__)

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _parse_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    logger.warning("Ignoring %s=%r: expected a boolean", name, raw)
    return default


def _parse_int(env: Mapping[str, str], name: str, default: int, minimum: int = 1) -> int:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r: expected an integer", name, raw)
        return default
    if value < minimum:
        logger.warning("Ignoring %s=%r: must be at least %d", name, raw, minimum)
        return default
    return value


def _parse_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r: expected a number", name, raw)
        return default
    if value < 0:
        logger.warning("Ignoring %s=%r: must not be negative", name, raw)
        return default
    return value


def _parse_str(env: Mapping[str, str], name: str, default: str) -> str:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip()


@dataclass(frozen=True)
class Settings:
    """Process-wide configuration.

    Attributes:
        db_path: DuckDB database file.
        nav_refresh_api_key: Key required by the job routes; the routes
            reject every request while it is unset.
        amfi_nav_url: AMFI NAVAll.txt URL.
        nps_nav_url: NPS NAV URL template with a ``{fund_code}`` field.
        fx_fallback_url: Exchange-rate API used when Yahoo has no USD/INR.
        http_timeout: Timeout in seconds for feed downloads.
        max_symbols: Maximum stocks per price lookup request.
        prefetch_batch_size: Symbols per batch in the price prefetch job.
        default_xirr: Annual return (percent) assumed when a goal's
            XIRR cannot be computed.
        inflation_rate: Annual inflation (percent) for real-value figures.
        host: API bind address.
        port: API port.
        verbose: DEBUG logging.

    """

    db_path: Path = DEFAULT_DB_PATH
    nav_refresh_api_key: str | None = None
    amfi_nav_url: str = AMFI_NAV_URL
    nps_nav_url: str = NPS_NAV_URL
    fx_fallback_url: str = FX_FALLBACK_URL
    http_timeout: float = 30.0
    max_symbols: int = DEFAULT_MAX_SYMBOLS
    prefetch_batch_size: int = DEFAULT_BATCH_SIZE
    default_xirr: float = 12.0
    inflation_rate: float = 6.0
    host: str = "127.0.0.1"
    port: int = 8000
    verbose: bool = False

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> Settings:
        """Build settings from ``env`` (defaults to ``os.environ``)."""
        env = os.environ if env is None else env
        api_key = env.get("NAV_REFRESH_API_KEY", "").strip() or None
        return cls(
            db_path=Path(_parse_str(env, "GOALFOLIO_DB_PATH", str(DEFAULT_DB_PATH))).expanduser(),
            nav_refresh_api_key=api_key,
            amfi_nav_url=_parse_str(env, "AMFI_NAV_URL", AMFI_NAV_URL),
            nps_nav_url=_parse_str(env, "NPS_NAV_URL", NPS_NAV_URL),
            fx_fallback_url=_parse_str(env, "FX_FALLBACK_URL", FX_FALLBACK_URL),
            http_timeout=_parse_float(env, "GOALFOLIO_HTTP_TIMEOUT", 30.0),
            max_symbols=_parse_int(env, "GOALFOLIO_MAX_SYMBOLS", DEFAULT_MAX_SYMBOLS),
            prefetch_batch_size=_parse_int(env, "GOALFOLIO_PREFETCH_BATCH", DEFAULT_BATCH_SIZE),
            default_xirr=_parse_float(env, "GOALFOLIO_DEFAULT_XIRR", 12.0),
            inflation_rate=_parse_float(env, "GOALFOLIO_INFLATION", 6.0),
            host=_parse_str(env, "GOALFOLIO_HOST", "127.0.0.1"),
            port=_parse_int(env, "GOALFOLIO_PORT", 8000),
            verbose=_parse_bool(env, "GOALFOLIO_VERBOSE", False),
        )
