#!/usr/bin/env python3
"""
Gamified Portfolio — Runner
===========================
Every subcommand maps to one portfolio action, then the portfolio is saved
back to the snapshot file (unless --mock).

Usage:
  python main.py show
  python main.py add RELIANCE.NS 10                  # price + name via yfinance, bought now
  python main.py add TCS.NS 5 --buy-price 3200       # bought previously
  python main.py remove TCS.NS
  python main.py refresh                             # refresh all prices (+5 XP)
  python main.py refresh --batch                     # one yf.download call for all symbols
  python main.py import zerodha holdings.csv
  python main.py import generic my.csv --columns 0,1,2,3,4
  python main.py export my_portfolio_export.csv      # (+15 XP)
  python main.py template portfolio_template.csv
  python main.py sort profit
  python main.py trade win
  python main.py save                                # (+5 XP)
  python main.py save backup.json                    # also write a copy (+5 XP)
  python main.py watch                               # auto-save 5m / auto-refresh 15m
  python main.py --mock show                         # sample holdings, nothing saved
"""
import argparse
import logging
import sys
import time

from agents.auto_tasks import AutoTasks
from agents.price_refresh import refresh_prices_batch_sync, refresh_prices_sync
from analysis.gamification import GamificationEngine
from cache.portfolio_store import load_engine, save_engine, set_aside
from config import settings
from state.errors import HoldingInputError, PortfolioError
from state.models import ColumnMapping, Holding, normalize_symbol, parse_price, parse_quantity
from tools import csv_importer
from tools.yfinance_client import fetch_current_price, fetch_stock_name


def _mock_engine() -> GamificationEngine:
    from mock_data import mock_holdings
    engine = GamificationEngine()
    engine.ledger.name = "Mock Portfolio"
    for h in mock_holdings():
        engine.add_holding(h)
    engine.update_daily_profit_loss()
    return engine


def _announce(engine: GamificationEngine, old_level: int, unlocked: list[str]) -> None:
    if engine.level > old_level:
        print(f"  LEVEL UP!  Level {old_level} → Level {engine.level}  ({engine.level_title})")
    for name in unlocked:
        print(f"  Achievement unlocked: {name}")


# ── Commands (each returns True when the portfolio changed) ─────────────────

def cmd_show(engine: GamificationEngine, args) -> bool:
    ledger = engine.ledger
    print(f"\n=== {ledger.name} ===")
    print(f"Level {engine.level} - {engine.level_title}  |  "
          f"XP {engine.experience}/{engine.xp_needed}  |  Health {engine.health_score()}/100")
    print(f"Holdings: {ledger.count}  |  Invested: ₹{ledger.total_investment:,.2f}  |  "
          f"Value: ₹{ledger.total_value:,.2f}")
    print(f"Profit: ₹{ledger.total_profit:,.2f} ({ledger.total_profit_pct:.2f}%)  |  "
          f"Daily P/L: ₹{engine.daily_profit_loss:,.2f}")
    s = engine.stats
    print(f"Trades: {s.total_trades}  |  Won: {s.winning_trades}  Lost: {s.losing_trades}  |  "
          f"Win rate: {engine.win_rate}%")
    print(f"Achievements ({len(engine.achievements)}): {', '.join(engine.achievements) or '-'}")
    quick = engine.quick_stats()
    if quick is None:
        print("No stocks yet - add some to see stats!")
    else:
        print(f"Top gainer: {quick.top_gainer.symbol} ({quick.top_gainer.profit_pct:+.2f}%)", end="")
        if quick.top_loser is not None:
            print(f"  |  Top loser: {quick.top_loser.symbol} ({quick.top_loser.profit_pct:.2f}%)", end="")
        print()
        print(f"In profit: {quick.winner_pct:.1f}% ({quick.winners}/{quick.count})  |  "
              f"Avg buy: ₹{quick.avg_buy_price:,.2f}  |  Avg current: ₹{quick.avg_current_price:,.2f}")
        print(f"Sectors: {quick.sectors}  |  Risk score: {engine.risk_score()}/100")
    if ledger.count:
        print()
        df = csv_importer.holdings_frame(ledger.holdings)
        print(df.to_string(index=False, float_format=lambda v: f"{v:,.2f}"))
    print()
    return False


def cmd_add(engine: GamificationEngine, args) -> bool:
    symbol = normalize_symbol(args.symbol)
    quantity = parse_quantity(args.quantity)

    if args.current_price is not None:
        current_price = parse_price(args.current_price)
    else:
        print(f"Fetching current price for {symbol}...", flush=True)
        current_price = fetch_current_price(symbol)
        if current_price <= 0:
            raise HoldingInputError(
                f"Could not fetch price for {symbol}. Please check the symbol and try again."
            )

    name = args.name or fetch_stock_name(symbol) or symbol
    buy_price = parse_price(args.buy_price) if args.buy_price is not None else current_price

    holding = Holding(
        name=name,
        symbol=symbol,
        quantity=quantity,
        buy_price=buy_price,
        current_price=current_price,
    )
    old_level = engine.level
    unlocked = engine.add_holding(holding)

    print(f"Stock added: {holding.describe()}")
    print("  +10 XP")
    _announce(engine, old_level, unlocked)
    return True


def cmd_remove(engine: GamificationEngine, args) -> bool:
    if engine.remove_holding(args.symbol):
        print(f"Removed {args.symbol.upper()}")
        return True
    print(f"No holding with symbol {args.symbol!r}")
    return False


def cmd_refresh(engine: GamificationEngine, args) -> bool:
    if engine.ledger.count == 0:
        print("No stocks in portfolio to refresh!")
        return False
    print(f"Refreshing prices for {engine.ledger.count} stocks...", flush=True)
    old_level = engine.level
    if args.batch:
        report = refresh_prices_batch_sync(engine)
    else:
        report = refresh_prices_sync(engine)
    print(report.summary())
    if report.failed:
        print(f"  Kept previous price for: {', '.join(report.failed)}")
    print("  +5 XP")
    _announce(engine, old_level, report.unlocked)
    return True


def cmd_import(engine: GamificationEngine, args) -> bool:
    mapping = None
    if args.format == csv_importer.ImportFormat.GENERIC.value:
        if not args.columns:
            raise HoldingInputError("generic import needs --columns symbol,name,qty,buy,current")
        mapping = ColumnMapping.parse(args.columns)

    holdings = csv_importer.import_file(args.path, args.format, mapping)
    if not holdings:
        print("No stocks found in CSV file!")
        return False

    old_level = engine.level
    unlocked: list[str] = []
    for h in holdings:
        unlocked += engine.add_holding(h)

    print(f"Successfully imported {len(holdings)} stocks!  +{len(holdings) * 10} XP")
    _announce(engine, old_level, unlocked)
    return True


def cmd_export(engine: GamificationEngine, args) -> bool:
    if engine.ledger.count == 0:
        print("No stocks to export!")
        return False
    path = csv_importer.export_csv(engine.ledger.holdings, args.path)
    engine.record_export()
    print(f"Portfolio exported to {path}  +15 XP")
    return True


def cmd_template(engine: GamificationEngine, args) -> bool:
    path = csv_importer.write_template(args.path)
    print(f"Sample template saved to {path}")
    print("Fill in your stock details and import with: import generic <file> --columns 0,1,2,3,4")
    return False


def cmd_sort(engine: GamificationEngine, args) -> bool:
    ledger = engine.ledger
    {
        "name": ledger.sort_by_name,
        "symbol": ledger.sort_by_symbol,
        "profit": ledger.sort_by_profit_desc,
        "value": ledger.sort_by_value_desc,
    }[args.key]()
    print(f"Sorted by {args.key}")
    return True


def cmd_trade(engine: GamificationEngine, args) -> bool:
    engine.record_trade_outcome(args.outcome == "win")
    print(f"Recorded {args.outcome}. Win rate: {engine.win_rate}%")
    return True


def cmd_save(engine: GamificationEngine, args) -> bool:
    engine.record_manual_save()
    if args.path:
        path = save_engine(engine, args.path)
        print(f"Portfolio saved to {path}!  +5 XP")
    else:
        print("Portfolio saved!  +5 XP")
    return True


def cmd_watch(engine: GamificationEngine, args) -> bool:
    tasks = AutoTasks(
        engine,
        args.file,
        save_minutes=settings.AUTO_SAVE_MINUTES,
        refresh_minutes=settings.AUTO_REFRESH_MINUTES,
    )
    tasks.start()
    print("Auto-save / auto-refresh running, Ctrl-C to stop", flush=True)
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        pass
    finally:
        tasks.stop()
    return True


# ── Entry point ──────────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Gamified stock portfolio tracker")
    parser.add_argument("--file",      default=str(settings.PORTFOLIO_FILE),
                        help="Portfolio snapshot file")
    parser.add_argument("--mock",      action="store_true",
                        help="Use hardcoded sample holdings; nothing is saved")
    parser.add_argument("--log-level", default=settings.LOG_LEVEL)
    sub = parser.add_subparsers(dest="cmd", required=True)

    sub.add_parser("show", help="Portfolio, level and achievements").set_defaults(func=cmd_show)

    p = sub.add_parser("add", help="Add a holding")
    p.add_argument("symbol")
    p.add_argument("quantity")
    p.add_argument("--buy-price",     help="Price paid per share (default: current price)")
    p.add_argument("--current-price", help="Skip the price lookup and use this price")
    p.add_argument("--name",          help="Skip the name lookup and use this name")
    p.set_defaults(func=cmd_add)

    p = sub.add_parser("remove", help="Remove every holding with this symbol")
    p.add_argument("symbol")
    p.set_defaults(func=cmd_remove)

    p = sub.add_parser("refresh", help="Refresh all prices")
    p.add_argument("--batch", action="store_true",
                   help="One download call for every symbol instead of one lookup each")
    p.set_defaults(func=cmd_refresh)

    p = sub.add_parser("import", help="Import holdings from a broker CSV")
    p.add_argument("format", choices=[f.value for f in csv_importer.ImportFormat])
    p.add_argument("path")
    p.add_argument("--columns", help="generic only: symbol,name,qty,buy,current (name=-1 → symbol)")
    p.set_defaults(func=cmd_import)

    p = sub.add_parser("export", help="Export holdings to CSV")
    p.add_argument("path")
    p.set_defaults(func=cmd_export)

    p = sub.add_parser("template", help="Write a sample CSV template")
    p.add_argument("path")
    p.set_defaults(func=cmd_template)

    p = sub.add_parser("sort", help="Reorder holdings")
    p.add_argument("key", choices=["name", "symbol", "profit", "value"])
    p.set_defaults(func=cmd_sort)

    p = sub.add_parser("trade", help="Record a closed trade outcome")
    p.add_argument("outcome", choices=["win", "loss"])
    p.set_defaults(func=cmd_trade)

    p = sub.add_parser("save", help="Save the portfolio")
    p.add_argument("path", nargs="?", help="Also write a copy here (default: --file only)")
    p.set_defaults(func=cmd_save)
    sub.add_parser("watch", help="Run auto-save and auto-refresh").set_defaults(func=cmd_watch)
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.mock:
            engine = _mock_engine()
        else:
            engine, load_error = load_engine(args.file, settings.PORTFOLIO_NAME)
            # Never save a fresh portfolio over a file that exists but didn't load
            if load_error is not None and load_error.reason != "missing":
                kept = set_aside(load_error.path)
                print(f"Warning: {load_error}")
                print(f"Starting a fresh portfolio; the old file was kept as {kept}")

        changed = args.func(engine, args)
        if changed and not args.mock:
            with engine.lock:
                engine.evaluate_achievements()
                engine.update_daily_profit_loss()
            save_engine(engine, args.file)
    except (PortfolioError, ValueError, OSError) as e:
        print(f"Error: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
