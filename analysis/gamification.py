"""
Gamification engine: XP, levels, achievements, health/risk scores and quick stats over a Ledger.

The engine owns its Ledger (composition): ledger mutators are called first,
then the engine runs its own post-mutation hooks.

Leveling:
  xp_needed(level) = 100 * level    (1→2 costs 100, 2→3 costs 200, ...)
  After every award, experience is normalized eagerly so that
  0 <= experience < xp_needed(level) holds for non-negative awards.

Achievements are evaluated against the current ledger each call, in table
order, and never revoke.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from state.ledger import Ledger
from state.models import GamificationStats, Holding, PortfolioSnapshot

logger = logging.getLogger(__name__)

XP_PER_HOLDING_ADDED = 10
XP_PER_PRICE_REFRESH = 5
XP_PER_EXPORT = 15
XP_PER_MANUAL_SAVE = 5

HEALTH_BASE = 50
HEALTH_MAX = 100
RISK_MAX = 100

# Symbol substring → sector; first match wins, anything else is "Other"
SECTOR_KEYWORDS: list[tuple[tuple[str, ...], str]] = [
    (("BANK", "HDFC", "ICICI"),               "Banking"),
    (("IT", "TCS", "INFY", "WIPRO", "HCL"),   "IT"),
    (("RELIANCE", "ONGC", "IOC"),             "Energy"),
    (("PHARMA", "SUN", "CIPLA"),              "Pharma"),
]

# (exclusive upper bound, title): first match wins, None catches the rest
LEVEL_TITLES: list[tuple[Optional[int], str]] = [
    (3, "Novice Trader"),
    (5, "Learning Investor"),
    (8, "Smart Trader"),
    (12, "Expert Investor"),
    (20, "Portfolio Master"),
    (None, "Warren Buffett Jr."),
]


@dataclass(frozen=True)
class Achievement:
    name: str
    xp: int
    unlocked: Callable[[Ledger], bool]


ACHIEVEMENTS: list[Achievement] = [
    Achievement("First Stock",          0,   lambda lg: lg.count == 1),
    Achievement("Portfolio Builder",    50,  lambda lg: lg.count >= 5),
    Achievement("Diversified Investor", 100, lambda lg: lg.count >= 10),
    Achievement("Profit Maker",         30,  lambda lg: lg.total_profit > 0),
    Achievement("Big Winner",           200, lambda lg: lg.total_profit >= 10_000),
    Achievement("Millionaire",          500, lambda lg: lg.total_value >= 1_000_000),
]


def xp_needed(level: int) -> int:
    return 100 * level


def title_for(level: int) -> str:
    for upper, title in LEVEL_TITLES:
        if upper is None or level < upper:
            return title
    return LEVEL_TITLES[-1][1]


def sector_for(symbol: str) -> str:
    for keywords, sector in SECTOR_KEYWORDS:
        if any(k in symbol for k in keywords):
            return sector
    return "Other"


@dataclass(frozen=True)
class QuickStats:
    top_gainer: Holding
    top_loser: Optional[Holding]     # None when it would be the top gainer again
    winners: int
    count: int
    avg_buy_price: float
    avg_current_price: float
    sectors: int

    @property
    def winner_pct(self) -> float:
        return self.winners * 100 / self.count


class GamificationEngine:
    def __init__(
        self,
        ledger: Optional[Ledger] = None,
        level: int = 1,
        experience: int = 0,
        daily_profit_loss: float = 0.0,
        achievements: Optional[list[str]] = None,
        stats: Optional[GamificationStats] = None,
    ):
        self.ledger = ledger if ledger is not None else Ledger()
        self.level = level
        self.experience = experience
        self.daily_profit_loss = daily_profit_loss
        self._achievements: list[str] = list(dict.fromkeys(achievements or []))
        self.stats = stats.model_copy() if stats is not None else GamificationStats()
        # Held only while touching in-memory state, never across network calls.
        self.lock = threading.RLock()

    # ── Leveling ──────────────────────────────────────────────────────────────

    @property
    def xp_needed(self) -> int:
        return xp_needed(self.level)

    @property
    def level_title(self) -> str:
        return title_for(self.level)

    def add_experience(self, amount: int) -> int:
        """Award XP and normalize. Returns the number of levels gained."""
        start = self.level
        self.experience += amount
        while self.experience >= xp_needed(self.level):
            self.experience -= xp_needed(self.level)
            self.level += 1
        if self.level > start:
            logger.info("Level up: %d → %d (%s)", start, self.level, self.level_title)
        return self.level - start

    # ── Ledger mutations + hooks ──────────────────────────────────────────────

    def add_holding(self, holding: Holding) -> list[str]:
        """Add to the ledger, then award XP and evaluate achievements."""
        with self.lock:
            self.ledger.add(holding)
            return self.record_holding_added(holding)

    def remove_holding(self, symbol: str) -> bool:
        with self.lock:
            return self.ledger.remove(symbol)

    def record_holding_added(self, holding: Holding) -> list[str]:
        self.stats.total_trades += 1
        self.add_experience(XP_PER_HOLDING_ADDED)
        logger.debug("Holding added: %s x%d", holding.symbol, holding.quantity)
        return self.evaluate_achievements()

    def record_trade_outcome(self, is_winning: bool) -> None:
        if is_winning:
            self.stats.winning_trades += 1
        else:
            self.stats.losing_trades += 1

    def record_price_refresh(self) -> list[str]:
        """Completion step of a price refresh: XP, achievements, daily P/L snapshot."""
        with self.lock:
            self.add_experience(XP_PER_PRICE_REFRESH)
            unlocked = self.evaluate_achievements()
            self.update_daily_profit_loss()
            return unlocked

    def record_export(self) -> None:
        self.add_experience(XP_PER_EXPORT)

    def record_manual_save(self) -> None:
        self.add_experience(XP_PER_MANUAL_SAVE)

    @property
    def win_rate(self) -> int:
        if self.stats.total_trades == 0:
            return 0
        return self.stats.winning_trades * 100 // self.stats.total_trades

    # ── Achievements ──────────────────────────────────────────────────────────

    @property
    def achievements(self) -> list[str]:
        return list(self._achievements)

    def evaluate_achievements(self) -> list[str]:
        """Award every not-yet-held badge whose condition holds. Returns new badges."""
        unlocked = []
        for badge in ACHIEVEMENTS:
            if badge.name in self._achievements:
                continue
            if badge.unlocked(self.ledger):
                self._achievements.append(badge.name)
                unlocked.append(badge.name)
                logger.info("Achievement unlocked: %s (+%d XP)", badge.name, badge.xp)
                if badge.xp:
                    self.add_experience(badge.xp)
        return unlocked

    # ── Derived scores ────────────────────────────────────────────────────────

    def health_score(self) -> int:
        score = HEALTH_BASE
        if self.ledger.count >= 5:
            score += 15
        if self.ledger.count >= 10:
            score += 10
        if self.ledger.total_profit > 0:
            score += 15
        if self.ledger.total_profit_pct > 10:
            score += 10
        return min(score, HEALTH_MAX)

    def risk_score(self) -> int:
        """
        100 minus the mean absolute profit % across holdings, clamped to 0..100.
        Higher is calmer. An empty portfolio scores RISK_MAX.
        """
        holdings = self.ledger.holdings
        if not holdings:
            return RISK_MAX
        volatility = sum(abs(h.profit_pct) for h in holdings) / len(holdings)
        return max(0, min(RISK_MAX, int(RISK_MAX - volatility)))

    def quick_stats(self) -> Optional[QuickStats]:
        """Sidebar figures for the current holdings, or None when there are none."""
        holdings = self.ledger.holdings
        if not holdings:
            return None
        # max/min keep the first holding on ties
        gainer = max(holdings, key=lambda h: h.profit_pct)
        loser = min(holdings, key=lambda h: h.profit_pct)
        n = len(holdings)
        return QuickStats(
            top_gainer=gainer,
            top_loser=None if loser is gainer else loser,
            winners=sum(1 for h in holdings if h.profit > 0),
            count=n,
            avg_buy_price=sum(h.buy_price for h in holdings) / n,
            avg_current_price=sum(h.current_price for h in holdings) / n,
            sectors=len({sector_for(h.symbol) for h in holdings}),
        )

    def update_daily_profit_loss(self) -> None:
        self.daily_profit_loss = self.ledger.total_profit

    # ── Snapshot export / import ──────────────────────────────────────────────

    def snapshot(self) -> PortfolioSnapshot:
        with self.lock:
            return PortfolioSnapshot(
                saved_at=datetime.now().replace(microsecond=0),
                portfolio_name=self.ledger.name,
                level=self.level,
                experience=self.experience,
                daily_profit_loss=self.daily_profit_loss,
                achievements=list(self._achievements),
                stats=self.stats.model_copy(),
                holdings=[h.model_copy() for h in self.ledger],
            )

    @classmethod
    def from_snapshot(cls, snap: PortfolioSnapshot) -> "GamificationEngine":
        ledger = Ledger(snap.portfolio_name, [h.model_copy() for h in snap.holdings])
        return cls(
            ledger=ledger,
            level=snap.level,
            experience=snap.experience,
            daily_profit_loss=snap.daily_profit_loss,
            achievements=snap.achievements,
            stats=snap.stats,
        )
