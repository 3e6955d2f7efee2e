"""
Error taxonomy for the portfolio core.

  HoldingInputError: user-entered text rejected before it reaches the ledger
  PersistenceError:  snapshot file missing / unreadable / corrupt / incompatible

CSV row failures and price-lookup failures never surface as exceptions:
the importer logs and skips the row, the lookup client returns a sentinel.
"""
from __future__ import annotations

from pathlib import Path


class PortfolioError(Exception):
    """Base class for recoverable portfolio failures."""


class HoldingInputError(PortfolioError, ValueError):
    pass


class PersistenceError(PortfolioError):
    """
    Loading or saving a snapshot failed.

    reason is one of: "missing", "unreadable", "corrupt", "incompatible", "write".
    """

    def __init__(self, reason: str, path: str | Path, detail: str = ""):
        self.reason = reason
        self.path = Path(path)
        self.detail = detail
        msg = f"{reason} portfolio file: {self.path}"
        if detail:
            msg += f" ({detail})"
        super().__init__(msg)
