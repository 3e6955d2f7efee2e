"""
yfinance client: price and company-name lookups for portfolio symbols.

Design decisions:
- Per-symbol lookups (fetch_current_price / fetch_stock_name) never raise:
  failures come back as sentinels (-1.0 / None) and are logged
- Batch refresh uses a single yf.download() call for every symbol
  (1 API hit, not N); symbols yfinance couldn't fetch are omitted
- Symbols are passed through as Yahoo symbols (RELIANCE.NS, TCS.BO, AAPL)
"""
from __future__ import annotations

import logging
import math
from typing import Optional

import pandas as pd
import yfinance as yf

logger = logging.getLogger(__name__)

PRICE_NOT_FOUND = -1.0


def fetch_current_price(symbol: str) -> float:
    """
    Latest close for one symbol.

    Returns:
        price > 0 on success, PRICE_NOT_FOUND (-1.0) if yfinance had nothing
    """
    try:
        df = yf.Ticker(symbol).history(period="1d", auto_adjust=True)
        if df is None or df.empty:
            logger.warning("No price data for %s", symbol)
            return PRICE_NOT_FOUND
        price = float(df["Close"].dropna().iloc[-1])
    except Exception as e:
        logger.warning("Error fetching price for %s: %s", symbol, e)
        return PRICE_NOT_FOUND
    return price if math.isfinite(price) and price > 0 else PRICE_NOT_FOUND


def fetch_stock_name(symbol: str) -> Optional[str]:
    """Company long name (falls back to short name), or None if unavailable."""
    try:
        info = yf.Ticker(symbol).info or {}
    except Exception as e:
        logger.warning("Error fetching name for %s: %s", symbol, e)
        return None
    name = info.get("longName") or info.get("shortName")
    return str(name) if name else None


# ── Batch lookups ─────────────────────────────────────────────────────────────

def fetch_price_history(symbols: list[str], period: str = "5d") -> dict[str, pd.DataFrame]:
    """
    Download daily OHLCV for all symbols in one call.

    Returns:
        { "SYMBOL": DataFrame(columns=[Open, High, Low, Close, Volume]) }
        Symbols yfinance couldn't fetch are omitted (and logged).
    """
    if not symbols:
        return {}

    raw = yf.download(
        symbols,
        period=period,
        auto_adjust=True,
        progress=False,
        threads=True,
    )

    result: dict[str, pd.DataFrame] = {}
    if raw is None or raw.empty:
        logger.warning("No price data returned for %d symbols", len(symbols))
        return result

    # MultiIndex columns: (field, symbol)
    for symbol in symbols:
        try:
            df = raw.xs(symbol, level=1, axis=1)[["Open", "High", "Low", "Close", "Volume"]].dropna()
        except KeyError:
            logger.warning("No price data for %s", symbol)
            continue
        if not df.empty:
            result[symbol] = df
    return result


def latest_price(history: dict[str, pd.DataFrame]) -> dict[str, float]:
    """Most recent usable Close for each symbol; non-finite or non-positive closes are dropped."""
    prices = {}
    for symbol, df in history.items():
        if df.empty:
            continue
        price = float(df["Close"].iloc[-1])
        if math.isfinite(price) and price > 0:
            prices[symbol] = price
    return prices


def fetch_latest_prices(symbols: list[str]) -> dict[str, float]:
    return latest_price(fetch_price_history(symbols))
