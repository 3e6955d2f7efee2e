"""
Auto-save / auto-refresh: two independent periodic triggers.

Each job runs on an APScheduler interval trigger with max_instances=1, and
each run is also wrapped in a non-blocking lock, so a run that is still in
progress suppresses the next trigger (scheduled or manual) instead of
overlapping it. stop() shuts both jobs down together and returns only once
no save or refresh is still running, so nothing writes after teardown.

Auto-save awards no XP; auto-refresh goes through refresh_prices(), which
applies its completion step once per run.
"""
from __future__ import annotations

import logging
import threading
from pathlib import Path

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from agents.price_refresh import PriceLookup, refresh_prices_sync
from analysis.gamification import GamificationEngine
from cache.portfolio_store import save_engine
from config.settings import AUTO_REFRESH_MINUTES, AUTO_SAVE_MINUTES
from state.errors import PersistenceError
from tools.yfinance_client import fetch_current_price

logger = logging.getLogger(__name__)

SAVE_JOB_ID = "auto_save"
REFRESH_JOB_ID = "auto_refresh"


class AutoTasks:
    def __init__(
        self,
        engine: GamificationEngine,
        path: str | Path,
        save_minutes: float = AUTO_SAVE_MINUTES,
        refresh_minutes: float = AUTO_REFRESH_MINUTES,
        fetch_price: PriceLookup = fetch_current_price,
    ):
        self.engine = engine
        self.path = Path(path)
        self.save_minutes = save_minutes
        self.refresh_minutes = refresh_minutes
        self.fetch_price = fetch_price
        self._save_running = threading.Lock()
        self._refresh_running = threading.Lock()
        self._scheduler: BackgroundScheduler | None = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None

    def start(self) -> None:
        if self._scheduler is not None:
            return
        scheduler = BackgroundScheduler()
        scheduler.add_job(
            self.run_save,
            trigger=IntervalTrigger(minutes=self.save_minutes),
            id=SAVE_JOB_ID,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        scheduler.add_job(
            self.run_refresh,
            trigger=IntervalTrigger(minutes=self.refresh_minutes),
            id=REFRESH_JOB_ID,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        scheduler.start()
        self._scheduler = scheduler
        logger.info("Auto-save every %g min, auto-refresh every %g min",
                    self.save_minutes, self.refresh_minutes)

    def stop(self) -> None:
        """Stop both triggers, then wait for any run still in progress."""
        if self._scheduler is None:
            return
        self._scheduler.shutdown(wait=True)
        self._scheduler = None
        # A manually triggered run may still be going. Refresh first: it nests a save.
        with self._refresh_running, self._save_running:
            pass
        logger.info("Auto-save and auto-refresh stopped")

    def run_save(self) -> bool:
        """Save once. Returns False if a save was already running."""
        if not self._save_running.acquire(blocking=False):
            logger.debug("Auto-save already running, trigger suppressed")
            return False
        try:
            save_engine(self.engine, self.path)
            logger.info("Auto-saved to %s", self.path)
        except PersistenceError as e:
            logger.error("Auto-save failed: %s", e)
        finally:
            self._save_running.release()
        return True

    def run_refresh(self) -> bool:
        """Refresh prices once, then save. Returns False if a refresh was already running."""
        if not self._refresh_running.acquire(blocking=False):
            logger.debug("Auto-refresh already running, trigger suppressed")
            return False
        try:
            if self.engine.ledger.count == 0:
                return True
            report = refresh_prices_sync(self.engine, self.fetch_price)
            logger.info("Auto-refresh: %s", report.summary())
            self.run_save()
        finally:
            self._refresh_running.release()
        return True
