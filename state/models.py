"""
Pydantic models for portfolio holdings and gamification state.

Holding is the live, mutable position object owned by the ledger.
PortfolioSnapshot is the frozen export used for persistence. It holds
copies, never references into a running engine.
"""
from __future__ import annotations

import math
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from state.errors import HoldingInputError


class Holding(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    name: str
    symbol: str
    quantity: int = Field(gt=0)
    buy_price: float = Field(gt=0, allow_inf_nan=False)
    current_price: float = Field(ge=0, allow_inf_nan=False)

    # Two holdings with identical fields are still two positions.
    def __eq__(self, other: object) -> bool:
        return self is other

    def __hash__(self) -> int:
        return id(self)

    def __lt__(self, other: "Holding") -> bool:
        return self.symbol < other.symbol

    @property
    def total_value(self) -> float:
        return self.quantity * self.current_price

    @property
    def total_investment(self) -> float:
        return self.quantity * self.buy_price

    @property
    def profit(self) -> float:
        return self.total_value - self.total_investment

    @property
    def profit_pct(self) -> float:
        if self.total_investment == 0:
            return 0.0
        return self.profit / self.total_investment * 100

    def describe(self) -> str:
        return (
            f"{self.name} ({self.symbol}) - Qty: {self.quantity} | "
            f"Buy: ₹{self.buy_price:.2f} | Current: ₹{self.current_price:.2f} | "
            f"Profit: ₹{self.profit:.2f} ({self.profit_pct:.2f}%)"
        )


class GamificationStats(BaseModel):
    total_trades: int = Field(default=0, ge=0)
    winning_trades: int = Field(default=0, ge=0)
    losing_trades: int = Field(default=0, ge=0)
    days_active: int = Field(default=0, ge=0)


class ColumnMapping(BaseModel):
    """0-based column indices for the generic CSV importer. name=-1 → use the symbol."""
    symbol: int = Field(ge=0)
    name: int = Field(ge=-1)
    quantity: int = Field(ge=0)
    buy_price: int = Field(ge=0)
    current_price: int = Field(ge=0)

    @classmethod
    def parse(cls, text: str) -> "ColumnMapping":
        """Parse "0,1,2,3,4" (symbol, name, qty, buy, current)."""
        parts = [p.strip() for p in text.split(",")]
        if len(parts) != 5:
            raise HoldingInputError(f"Column mapping needs 5 indices, got {len(parts)}: {text!r}")
        try:
            s, n, q, b, c = (int(p) for p in parts)
        except ValueError:
            raise HoldingInputError(f"Invalid column mapping: {text!r}") from None
        return cls(symbol=s, name=n, quantity=q, buy_price=b, current_price=c)


SNAPSHOT_VERSION = 1


class PortfolioSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    version: int = SNAPSHOT_VERSION
    saved_at: Optional[datetime] = None
    portfolio_name: str
    level: int = Field(ge=1)
    experience: int
    daily_profit_loss: float = Field(allow_inf_nan=False)
    achievements: list[str]
    stats: GamificationStats
    holdings: list[Holding]


# ── Boundary parsing for direct entry ────────────────────────────────────────

def normalize_symbol(text: str | None) -> str:
    symbol = (text or "").strip().upper()
    if not symbol:
        raise HoldingInputError("Symbol must not be empty")
    return symbol


def parse_quantity(text: str | int) -> int:
    try:
        quantity = int(str(text).strip())
    except ValueError:
        raise HoldingInputError(f"Invalid quantity: {text!r}") from None
    if quantity <= 0:
        raise HoldingInputError("Quantity must be positive")
    return quantity


def parse_price(text: str | float) -> float:
    try:
        price = float(str(text).strip())
    except ValueError:
        raise HoldingInputError(f"Invalid price: {text!r}") from None
    if not math.isfinite(price):
        raise HoldingInputError(f"Price must be a finite number: {text!r}")
    if price <= 0:
        raise HoldingInputError("Price must be positive")
    return price
