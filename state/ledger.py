"""
Ledger — ordered collection of Holdings plus aggregate math.

Symbol uniqueness is not enforced: duplicate symbols may coexist (multi-lot
positions). Lookups are case-insensitive and only ever reach the first match.
Aggregates are recomputed on every read, so they always reflect mutated prices.
"""
from __future__ import annotations

from typing import Iterator, Optional

from state.models import Holding


class Ledger:
    def __init__(self, name: str = "My Portfolio", holdings: Optional[list[Holding]] = None):
        self.name = name
        self._holdings: list[Holding] = list(holdings or [])

    def __len__(self) -> int:
        return len(self._holdings)

    def __iter__(self) -> Iterator[Holding]:
        return iter(list(self._holdings))

    def __contains__(self, holding: object) -> bool:
        return any(h is holding for h in self._holdings)

    @property
    def holdings(self) -> list[Holding]:
        return list(self._holdings)

    @property
    def count(self) -> int:
        return len(self._holdings)

    # ── Mutation ──────────────────────────────────────────────────────────────

    def add(self, holding: Holding) -> None:
        self._holdings.append(holding)

    def remove(self, symbol: str) -> bool:
        """Drop every holding whose symbol matches case-insensitively."""
        key = symbol.casefold()
        kept = [h for h in self._holdings if h.symbol.casefold() != key]
        removed = len(kept) != len(self._holdings)
        self._holdings = kept
        return removed

    def find(self, symbol: str) -> Optional[Holding]:
        key = symbol.casefold()
        for h in self._holdings:
            if h.symbol.casefold() == key:
                return h
        return None

    # ── Ordering (list.sort is stable, ties keep relative order) ─────────────

    def sort_by_name(self) -> None:
        self._holdings.sort(key=lambda h: h.name)

    def sort_by_symbol(self) -> None:
        self._holdings.sort()

    def sort_by_profit_desc(self) -> None:
        self._holdings.sort(key=lambda h: h.profit, reverse=True)

    def sort_by_value_desc(self) -> None:
        self._holdings.sort(key=lambda h: h.total_value, reverse=True)

    # ── Aggregates ────────────────────────────────────────────────────────────

    @property
    def total_investment(self) -> float:
        return sum(h.total_investment for h in self._holdings)

    @property
    def total_value(self) -> float:
        return sum(h.total_value for h in self._holdings)

    @property
    def total_profit(self) -> float:
        return self.total_value - self.total_investment

    @property
    def total_profit_pct(self) -> float:
        investment = self.total_investment
        if investment == 0:
            return 0.0
        return self.total_profit / investment * 100
