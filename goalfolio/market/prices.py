"""Stock price lookup service.

Resolves (stock code, exchange) pairs to Yahoo quotes, converts them
to rupees, and keeps ``stock_prices_cache`` current so goal and
portfolio valuations do not hit Yahoo on every request.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from goalfolio.db.holdings_store import get_distinct_stock_symbols
from goalfolio.db.market_store import upsert_stock_price
from goalfolio.market._http import UpstreamError
from goalfolio.market.yahoo import (
    FX_FALLBACK_URL,
    exchange_display_name,
    fetch_inr_rate,
    fetch_quote,
    yahoo_symbol,
)

if TYPE_CHECKING:
    import duckdb

logger = logging.getLogger(__name__)

DEFAULT_MAX_SYMBOLS = 5
DEFAULT_BATCH_SIZE = 50


def _quote_in_inr(
    stock_code: str,
    exchange: str,
    rates: dict[str, float],
    fx_fallback_url: str = FX_FALLBACK_URL,
) -> dict[str, Any]:
    """Fetch one quote and convert it to rupees.

    ``rates`` caches currency-to-INR rates across calls. When the rate
    cannot be fetched the price is returned in its listing currency.
    """
    symbol = yahoo_symbol(stock_code, exchange)
    quote = fetch_quote(symbol)
    currency = quote["currency"]

    if currency not in rates:
        try:
            rates[currency] = fetch_inr_rate(
                currency, usd_inr=rates.get("USD"), fallback_url=fx_fallback_url
            )
        except UpstreamError as exc:
            logger.warning("No INR rate for %s (%s); returning %s price", symbol, exc, currency)
            return {
                "symbol": symbol,
                "exchange": exchange,
                "exchange_name": exchange_display_name(exchange),
                "price": quote["price"],
                "currency": currency,
                "original_price": quote["price"],
                "original_currency": currency,
                "exchange_rate": None,
            }

    rate = rates[currency]
    return {
        "symbol": symbol,
        "exchange": exchange,
        "exchange_name": exchange_display_name(exchange),
        "price": round(quote["price"] * rate, 4),
        "currency": "INR",
        "original_price": quote["price"],
        "original_currency": currency,
        "exchange_rate": rate,
    }


def _cache(conn: duckdb.DuckDBPyConnection, result: dict[str, Any]) -> bool:
    if result["currency"] != "INR":
        return False
    upsert_stock_price(
        conn,
        symbol=result["symbol"],
        price_inr=result["price"],
        price_original=result["original_price"],
        currency=result["original_currency"],
        exchange_rate_to_inr=result["exchange_rate"],
    )
    return True


def get_stock_prices(
    requests: Iterable[tuple[str, str]],
    conn: duckdb.DuckDBPyConnection | None = None,
    max_symbols: int = DEFAULT_MAX_SYMBOLS,
    fx_fallback_url: str = FX_FALLBACK_URL,
) -> dict[str, dict[str, Any]]:
    """Look up current prices for up to ``max_symbols`` stocks.

    Args:
        requests: (stock_code, exchange) pairs. Pairs with a blank code
            or exchange are dropped.
        conn: Optional connection; converted prices are written to the
            cache when given.
        max_symbols: Maximum number of pairs per call.
        fx_fallback_url: Exchange-rate API used when Yahoo has no USD/INR.

    Returns:
        Dict keyed by upper-cased stock code. Each value holds symbol,
        exchange, price (INR), currency, original_price,
        original_currency and exchange_rate; failed lookups carry
        ``price: None`` and an ``error`` message.

    Raises:
        ValueError: If more than ``max_symbols`` pairs remain after filtering.

    """
    pairs = [
        (code.strip().upper(), exchange.strip().upper())
        for code, exchange in requests
        if code and code.strip() and exchange and exchange.strip()
    ]
    if len(pairs) > max_symbols:
        msg = f"Maximum {max_symbols} symbols allowed per request"
        raise ValueError(msg)

    rates: dict[str, float] = {"INR": 1.0}
    prices: dict[str, dict[str, Any]] = {}
    for code, exchange in pairs:
        try:
            result = _quote_in_inr(code, exchange, rates, fx_fallback_url)
        except Exception as exc:  # noqa: BLE001 — one bad symbol must not fail the batch
            logger.warning("Price lookup failed for %s:%s: %s", exchange, code, exc)
            prices[code] = {
                "exchange": exchange,
                "exchange_name": exchange_display_name(exchange),
                "price": None,
                "currency": "INR",
                "error": str(exc),
            }
            continue

        prices[code] = result
        if conn is not None:
            _cache(conn, result)

    return prices


def prefetch_stock_prices(
    conn: duckdb.DuckDBPyConnection,
    batch_size: int = DEFAULT_BATCH_SIZE,
    fx_fallback_url: str = FX_FALLBACK_URL,
) -> dict[str, Any]:
    """Refresh the price cache for every stock any user holds.

    Args:
        conn: Active DuckDB connection.
        batch_size: Symbols processed per batch.
        fx_fallback_url: Exchange-rate API used when Yahoo has no USD/INR.

    Returns:
        Dict with total, updated, failed and errors (list of messages).

    Raises:
        ValueError: If batch_size < 1.

    """
    if batch_size < 1:
        msg = f"batch_size must be at least 1, got {batch_size}"
        raise ValueError(msg)

    symbols = get_distinct_stock_symbols(conn)
    rates: dict[str, float] = {"INR": 1.0}
    updated = 0
    errors: list[str] = []

    for start in range(0, len(symbols), batch_size):
        batch = symbols[start : start + batch_size]
        logger.info(
            "Prefetching batch %d: %d symbols", start // batch_size + 1, len(batch)
        )
        for code, exchange in batch:
            try:
                result = _quote_in_inr(code, exchange, rates, fx_fallback_url)
            except Exception as exc:  # noqa: BLE001 — record and continue with the batch
                errors.append(f"{exchange}:{code}: {exc}")
                continue
            if _cache(conn, result):
                updated += 1
            else:
                errors.append(f"{exchange}:{code}: no INR rate for {result['currency']}")

    logger.info("Prefetched %d of %d stock prices", updated, len(symbols))
    return {
        "total": len(symbols),
        "updated": updated,
        "failed": len(symbols) - updated,
        "errors": errors,
    }
