"""
CSV import / export for portfolio holdings.

Import dialects (one header line skipped, blank lines ignored):
  zerodha  — Instrument, Qty., Avg. cost, LTP, ...        (extra columns ignored)
  groww    — Stock Name, Quantity, Avg Buy Price, Current Price   (₹-prefixed prices)
  generic  — caller-supplied ColumnMapping of 0-based indices

Row policy:
  A row with too few columns, an unparseable number, or a value the Holding
  model rejects (qty <= 0, buy price <= 0, negative or non-finite price) is skipped with a
  logged warning. The import keeps going and returns whatever rows parsed.

The Groww name→symbol table (NAME_TO_SYMBOL) covers a fixed set of large caps,
including the full "Tata Consultancy Services" spelling; unknown names fall back
to the normalized name itself.

Symbols without an exchange suffix (.NS / .BO) get the default suffix so the
price lookup can resolve them.
"""
from __future__ import annotations

import csv
import enum
import logging
import re
from pathlib import Path
from typing import Callable, Iterator, Optional

import pandas as pd

from config.settings import DEFAULT_MARKET_SUFFIX, KNOWN_MARKET_SUFFIXES
from state.models import ColumnMapping, Holding

logger = logging.getLogger(__name__)


class ImportFormat(str, enum.Enum):
    ZERODHA = "zerodha"
    GROWW = "groww"
    GENERIC = "generic"


TEMPLATE_HEADER = ["Symbol", "Name", "Quantity", "Buy Price", "Current Price"]
TEMPLATE_ROWS = [
    ["RELIANCE.NS", "Reliance Industries", "10", "2450.50", "2680.75"],
    ["TCS.NS", "Tata Consultancy Services", "5", "3200.00", "3450.25"],
    ["INFY.NS", "Infosys Limited", "15", "1450.00", "1520.80"],
]

EXPORT_COLUMNS = [
    "Symbol", "Name", "Quantity", "Buy Price", "Current Price",
    "Total Value", "Profit", "Profit %",
]

# Groww display name → NSE symbol. Every substring in the key must appear in
# the normalized name; first match wins. Beyond the basic one-keyword rows the
# table also maps "Tata Consultancy Services" (Groww's full name for TCS) and
# "State Bank of India", which normalizes to STATEBANKOFINDIA.
NAME_TO_SYMBOL: list[tuple[tuple[str, ...], str]] = [
    (("RELIANCE",),            "RELIANCE"),
    (("TCS",),                 "TCS"),
    (("TATA", "CONSULTANCY"),  "TCS"),
    (("INFOSYS",),             "INFY"),
    (("INFY",),                "INFY"),
    (("HDFC", "BANK"),         "HDFCBANK"),
    (("ITC",),                 "ITC"),
    (("TATA", "MOTOR"),        "TATAMOTORS"),
    (("WIPRO",),               "WIPRO"),
    (("BHARTI",),              "BHARTIARTL"),
    (("MARUTI",),              "MARUTI"),
    (("SBIN",),                "SBIN"),
    (("STATEBANK",),           "SBIN"),
]

_COMPANY_SUFFIX_RE = re.compile(r"\s+(LIMITED|LTD\.?)(?=\s|$)")
_NON_SYMBOL_RE = re.compile(r"[^A-Z0-9&-]")
_CURRENCY_RE = re.compile(r"₹|\$|Rs\.?|INR|,|\s")


# ── Field helpers ─────────────────────────────────────────────────────────────

def with_market_suffix(symbol: str) -> str:
    if any(suffix in symbol for suffix in KNOWN_MARKET_SUFFIXES):
        return symbol
    return symbol + DEFAULT_MARKET_SUFFIX


def parse_money(text: str) -> float:
    """'₹2,450.50' → 2450.5. Raises ValueError on anything non-numeric."""
    return float(_CURRENCY_RE.sub("", text))


def symbol_from_name(name: str) -> str:
    """
    Derive a bare NSE symbol from a broker display name.

    "Reliance Industries Ltd." → RELIANCE
    "Some Unknown Co Ltd"      → SOMEUNKNOWNCO
    """
    normalized = _COMPANY_SUFFIX_RE.sub("", name.upper().strip())
    normalized = _NON_SYMBOL_RE.sub("", normalized)
    for needles, symbol in NAME_TO_SYMBOL:
        if all(n in normalized for n in needles):
            return symbol
    return normalized


def _require_columns(row: list[str], n: int) -> None:
    if len(row) < n:
        raise ValueError(f"expected at least {n} columns, got {len(row)}")


# ── Row parsers ───────────────────────────────────────────────────────────────

def _parse_zerodha(row: list[str]) -> Holding:
    _require_columns(row, 4)
    symbol = with_market_suffix(row[0].strip())
    return Holding(
        name=symbol,
        symbol=symbol,
        quantity=int(row[1].strip()),
        buy_price=float(row[2].strip()),
        current_price=float(row[3].strip()),
    )


def _parse_groww(row: list[str]) -> Holding:
    _require_columns(row, 4)
    name = row[0].strip()
    return Holding(
        name=name,
        symbol=with_market_suffix(symbol_from_name(name)),
        quantity=int(row[1].strip()),
        buy_price=parse_money(row[2]),
        current_price=parse_money(row[3]),
    )


def _generic_parser(mapping: ColumnMapping) -> Callable[[list[str]], Holding]:
    def parse(row: list[str]) -> Holding:
        raw_symbol = row[mapping.symbol].strip()
        name = row[mapping.name].strip() if mapping.name >= 0 else raw_symbol
        return Holding(
            name=name,
            symbol=with_market_suffix(raw_symbol),
            quantity=int(row[mapping.quantity].strip()),
            buy_price=parse_money(row[mapping.buy_price]),
            current_price=parse_money(row[mapping.current_price]),
        )
    return parse


# ── File reading ──────────────────────────────────────────────────────────────

def _read_rows(path: str | Path) -> Iterator[tuple[int, list[str]]]:
    """Yield (line_number, cells) for every non-blank row after the header."""
    with open(path, newline="", encoding="utf-8-sig") as f:
        reader = csv.reader(f)
        next(reader, None)
        for row in reader:
            if not any(cell.strip() for cell in row):
                continue
            yield reader.line_num, row


def _collect(path: str | Path, parse_row: Callable[[list[str]], Holding]) -> list[Holding]:
    holdings: list[Holding] = []
    skipped = 0
    for line_no, row in _read_rows(path):
        try:
            holdings.append(parse_row(row))
        except (ValueError, IndexError) as e:
            skipped += 1
            logger.warning("Skipping invalid line %d in %s: %r (%s)",
                           line_no, path, ",".join(row), e)
    logger.info("Imported %d holdings from %s (%d skipped)", len(holdings), path, skipped)
    return holdings


# ── Public entry points ───────────────────────────────────────────────────────

def import_zerodha(path: str | Path) -> list[Holding]:
    return _collect(path, _parse_zerodha)


def import_groww(path: str | Path) -> list[Holding]:
    return _collect(path, _parse_groww)


def import_generic(path: str | Path, mapping: ColumnMapping) -> list[Holding]:
    return _collect(path, _generic_parser(mapping))


def import_file(
    path: str | Path,
    fmt: ImportFormat | str,
    mapping: Optional[ColumnMapping] = None,
) -> list[Holding]:
    """
    Dispatch on format. OSError (missing / unreadable file) propagates:
    that is a whole-import failure, not a row failure.
    """
    fmt = ImportFormat(fmt)
    if fmt is ImportFormat.ZERODHA:
        return import_zerodha(path)
    if fmt is ImportFormat.GROWW:
        return import_groww(path)
    if mapping is None:
        raise ValueError("generic import needs a column mapping")
    return import_generic(path, mapping)


def write_template(path: str | Path) -> Path:
    """Write the fixed 3-row sample CSV (generic format, mapping 0,1,2,3,4)."""
    p = Path(path)
    with open(p, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f, lineterminator="\n")
        writer.writerow(TEMPLATE_HEADER)
        writer.writerows(TEMPLATE_ROWS)
    return p


def holdings_frame(holdings: list[Holding]) -> pd.DataFrame:
    """One row per holding, in the given order, with derived columns."""
    return pd.DataFrame(
        [
            [h.symbol, h.name, h.quantity, h.buy_price, h.current_price,
             h.total_value, h.profit, h.profit_pct]
            for h in holdings
        ],
        columns=EXPORT_COLUMNS,
    )


def export_csv(holdings: list[Holding], path: str | Path) -> Path:
    """Write the 8-column export. Money and % columns use 2 fixed decimals."""
    p = Path(path)
    if p.suffix.lower() != ".csv":
        p = p.with_name(p.name + ".csv")
    df = holdings_frame(holdings)
    df.to_csv(p, index=False, float_format="%.2f", lineterminator="\n")
    logger.info("Exported %d holdings to %s", len(holdings), p)
    return p
