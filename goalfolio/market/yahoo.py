"""Yahoo Finance quote adapter.

Fetches the latest price of listed stocks and the exchange rates
needed to express them in rupees, via the yfinance library. Stock
codes are stored without exchange suffix; :func:`yahoo_symbol` maps
(code, exchange) to the Yahoo ticker.

Note:
    yfinance uses an unofficial Yahoo Finance API. Rate limiting
    and respectful request patterns are required.

    yfinance is an optional dependency (install with ``pip install
    goalfolio[market]``). Functions raise ``ImportError`` at call
    time if the library is not installed.

"""

from __future__ import annotations

import logging
import math
from typing import Any

from goalfolio.market._http import UpstreamError, fetch_json

logger = logging.getLogger(__name__)

FX_FALLBACK_URL = "https://open.er-api.com/v6/latest/USD"
USD_INR_SYMBOL = "USDINR=X"

EXCHANGE_SUFFIXES: dict[str, str] = {
    "NSE": ".NS",
    "BSE": ".BO",
    "NASDAQ": "",
    "NYSE": "",
    "LSE": ".L",
    "TSE": ".T",
    "ASX": ".AX",
    "TSX": ".TO",
    "HKEX": ".HK",
}

EXCHANGE_NAMES: dict[str, str] = {
    "NSE": "NSE (India)",
    "BSE": "BSE (India)",
    "NASDAQ": "NASDAQ (US)",
    "NYSE": "NYSE (US)",
    "LSE": "LSE (UK)",
    "TSE": "TSE (Japan)",
    "ASX": "ASX (Australia)",
    "TSX": "TSX (Canada)",
    "HKEX": "HKEX (Hong Kong)",
}


def _require_yfinance() -> tuple[Any, Any]:
    """Lazy-import yfinance and pandas.

    Returns:
        Tuple of (yfinance module, pandas module).

    Raises:
        ImportError: If yfinance is not installed.

    """
    try:
        import pandas as pd
        import yfinance as yf
    except ImportError as exc:
        msg = (
            "yfinance is required for Yahoo Finance data. "
            "Install with: pip install goalfolio[market]"
        )
        raise ImportError(msg) from exc
    return yf, pd


def yahoo_symbol(stock_code: str, exchange: str) -> str:
    """Build the Yahoo ticker for a stock code on an exchange.

    Args:
        stock_code: Code without suffix (e.g., "INFY", "AAPL").
        exchange: Exchange code (e.g., "NSE", "NASDAQ").

    Returns:
        Yahoo symbol such as "INFY.NS" or "AAPL".

    Raises:
        ValueError: If stock_code is empty or the exchange is unknown.

    """
    if not stock_code or not stock_code.strip():
        msg = "stock_code must be a non-empty string"
        raise ValueError(msg)
    key = (exchange or "").strip().upper()
    if key not in EXCHANGE_SUFFIXES:
        msg = f"Unsupported exchange '{exchange}'. Expected one of {sorted(EXCHANGE_SUFFIXES)}"
        raise ValueError(msg)
    return f"{stock_code.strip().upper()}{EXCHANGE_SUFFIXES[key]}"


def exchange_display_name(exchange: str) -> str:
    """Human-readable exchange label, e.g. "NSE (India)"."""
    key = (exchange or "").strip().upper()
    return EXCHANGE_NAMES.get(key, key)


def _valid_price(value: Any) -> float | None:
    try:
        price = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(price) or price <= 0:
        return None
    return price


def fetch_quote(symbol: str) -> dict[str, Any]:
    """Fetch the latest price for a Yahoo symbol.

    Uses the ticker's fast info, falling back to the last close of the
    past five sessions when the live price is unavailable.

    Args:
        symbol: Yahoo symbol (e.g., "TCS.NS", "MSFT", "USDINR=X").

    Returns:
        Dict with keys symbol, price and currency.

    Raises:
        ValueError: If symbol is empty.
        LookupError: If Yahoo has no price for the symbol.
        ImportError: If yfinance is not installed.

    """
    if not symbol or not symbol.strip():
        msg = "symbol must be a non-empty string"
        raise ValueError(msg)

    yf, _pd = _require_yfinance()
    ticker = yf.Ticker(symbol.strip().upper())

    fast_info = ticker.fast_info
    price = _valid_price(getattr(fast_info, "last_price", None))
    currency = getattr(fast_info, "currency", None)

    if price is None:
        history = ticker.history(period="5d")
        if not history.empty and "Close" in history:
            closes = history["Close"].dropna()
            if not closes.empty:
                price = _valid_price(closes.iloc[-1])

    if price is None:
        msg = f"No price data available for {symbol}"
        raise LookupError(msg)

    return {
        "symbol": symbol.strip().upper(),
        "price": price,
        "currency": str(currency).strip() if currency else "USD",
    }


def fetch_usd_inr(
    fallback_url: str = FX_FALLBACK_URL,
    timeout: float = 30.0,
) -> float:
    """Fetch the USD to INR exchange rate.

    Tries Yahoo's ``USDINR=X`` first and falls back to the open
    exchange-rate API.

    Raises:
        UpstreamError: If neither source returns a usable rate.

    """
    try:
        return float(fetch_quote(USD_INR_SYMBOL)["price"])
    except Exception as exc:  # noqa: BLE001 — yfinance raises arbitrary errors; fall back below
        logger.warning("Yahoo USD/INR lookup failed (%s); using fallback API", exc)

    try:
        payload = fetch_json(fallback_url, timeout=timeout)
        rate = _valid_price(payload["rates"]["INR"])
    except (UpstreamError, KeyError, TypeError) as exc:
        msg = f"Could not determine USD/INR exchange rate: {exc}"
        raise UpstreamError(msg) from exc
    if rate is None:
        msg = "Could not determine USD/INR exchange rate: fallback returned no INR rate"
        raise UpstreamError(msg)
    return rate


def fetch_inr_rate(
    currency: str,
    usd_inr: float | None = None,
    fallback_url: str = FX_FALLBACK_URL,
) -> float:
    """Rate that converts one unit of ``currency`` into rupees.

    Args:
        currency: ISO currency code as reported by Yahoo. "GBp" (pence,
            used for LSE listings) is converted via GBP.
        usd_inr: Already-known USD/INR rate, reused when currency is USD.
        fallback_url: Exchange-rate API used when Yahoo has no USD/INR.

    Returns:
        Multiplier to apply to a price in ``currency``.

    Raises:
        UpstreamError: If the rate cannot be fetched.

    """
    if currency == "GBp":
        return fetch_inr_rate("GBP") / 100.0

    code = (currency or "").strip().upper()
    if code in {"", "INR"}:
        return 1.0
    if code == "USD":
        return usd_inr if usd_inr is not None else fetch_usd_inr(fallback_url)

    try:
        return float(fetch_quote(f"{code}INR=X")["price"])
    except Exception as exc:  # noqa: BLE001 — yfinance raises arbitrary errors
        msg = f"Could not determine {code}/INR exchange rate: {exc}"
        raise UpstreamError(msg) from exc
