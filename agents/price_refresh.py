"""
Price refresh: fetch a fresh price for every holding off the caller's thread.

Flow:
  1. Copy the holdings list under the engine lock, then release it
  2. Look up prices with no lock held while the network is in flight:
       refresh_prices        one lookup per symbol, run concurrently
                             (asyncio.gather over worker threads)
       refresh_prices_batch  one yf.download call for every symbol
  3. Re-take the lock and apply each successful price to its own Holding.
     Failed symbols (exception, missing, non-finite or price <= 0) keep their
     previous price. Holdings removed from the ledger mid-flight are left alone.
  4. Run the completion step once (XP, achievements, daily P/L snapshot)

Cancelling the task during step 2 writes nothing.

Design:
  - the async functions are the core logic, testable with a fake lookup
  - the *_sync wrappers serve synchronous callers (CLI, scheduler)
"""
from __future__ import annotations

import asyncio
import logging
import math
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from analysis.gamification import GamificationEngine
from state.models import Holding
from tools.yfinance_client import fetch_current_price, fetch_latest_prices

logger = logging.getLogger(__name__)

PriceLookup = Callable[[str], float]
BatchPriceLookup = Callable[[list[str]], dict[str, float]]


@dataclass
class RefreshReport:
    updated: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    unlocked: list[str] = field(default_factory=list)
    elapsed: float = 0.0

    @property
    def total(self) -> int:
        return len(self.updated) + len(self.failed)

    def summary(self) -> str:
        return f"Updated {len(self.updated)} out of {self.total} stocks ({self.elapsed:.1f}s)"


def _usable(price) -> bool:
    return price is not None and math.isfinite(price) and price > 0


def _apply(
    engine: GamificationEngine,
    holdings: list[Holding],
    results: list,
    report: RefreshReport,
) -> None:
    """Write fetched prices back and run the completion step. Caller holds engine.lock."""
    for holding, result in zip(holdings, results):
        if isinstance(result, BaseException):
            logger.warning("Price lookup failed for %s: %s", holding.symbol, result)
            report.failed.append(holding.symbol)
            continue
        if not _usable(result):
            report.failed.append(holding.symbol)
            continue
        if holding not in engine.ledger:
            logger.debug("%s was removed during refresh, skipping", holding.symbol)
            continue
        holding.current_price = float(result)
        report.updated.append(holding.symbol)
        logger.debug("Updated %s to %.2f", holding.symbol, result)

    report.unlocked = engine.record_price_refresh()


def _snapshot_holdings(engine: GamificationEngine) -> list[Holding]:
    with engine.lock:
        return engine.ledger.holdings


async def _lookup(fetch_price: PriceLookup, symbol: str) -> float:
    return await asyncio.to_thread(fetch_price, symbol)


async def refresh_prices(
    engine: GamificationEngine,
    fetch_price: PriceLookup = fetch_current_price,
) -> RefreshReport:
    report = RefreshReport()
    holdings = _snapshot_holdings(engine)
    if not holdings:
        return report

    t0 = time.time()
    results = await asyncio.gather(
        *(_lookup(fetch_price, h.symbol) for h in holdings),
        return_exceptions=True,
    )

    with engine.lock:
        _apply(engine, holdings, list(results), report)

    report.elapsed = time.time() - t0
    logger.info(report.summary())
    return report


async def refresh_prices_batch(
    engine: GamificationEngine,
    fetch_prices: BatchPriceLookup = fetch_latest_prices,
) -> RefreshReport:
    """Same contract as refresh_prices, but one download call for all symbols."""
    report = RefreshReport()
    holdings = _snapshot_holdings(engine)
    if not holdings:
        return report

    t0 = time.time()
    symbols = list(dict.fromkeys(h.symbol for h in holdings))
    prices: dict[str, float] = {}
    error: Optional[Exception] = None
    try:
        prices = await asyncio.to_thread(fetch_prices, symbols)
    except Exception as e:
        error = e

    results = [error if error is not None else prices.get(h.symbol) for h in holdings]
    with engine.lock:
        _apply(engine, holdings, results, report)

    report.elapsed = time.time() - t0
    logger.info(report.summary())
    return report


def refresh_prices_sync(
    engine: GamificationEngine,
    fetch_price: PriceLookup = fetch_current_price,
) -> RefreshReport:
    return asyncio.run(refresh_prices(engine, fetch_price))


def refresh_prices_batch_sync(
    engine: GamificationEngine,
    fetch_prices: BatchPriceLookup = fetch_latest_prices,
) -> RefreshReport:
    return asyncio.run(refresh_prices_batch(engine, fetch_prices))
