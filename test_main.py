"""End-to-end tests for the main.py CLI against a temporary snapshot file (no network)."""
from __future__ import annotations

import os

import pytest

import main
from cache.portfolio_store import load


@pytest.fixture
def pfile(tmp_path):
    return str(tmp_path / "portfolio.json")


def run(pfile, *args) -> int:
    return main.main(["--file", pfile, *args])


def test_help_exits_cleanly(capsys):
    with pytest.raises(SystemExit) as exc:
        main.main(["--help"])
    assert exc.value.code == 0
    assert "add" in capsys.readouterr().out


def test_add_then_show(pfile, capsys):
    assert run(pfile, "add", "reliance.ns", "10",
               "--buy-price", "2450.50", "--current-price", "2680.75",
               "--name", "Reliance Industries") == 0

    snap = load(pfile)
    [h] = snap.holdings
    assert (h.symbol, h.name, h.quantity, h.buy_price, h.current_price) == \
        ("RELIANCE.NS", "Reliance Industries", 10, 2450.50, 2680.75)
    assert snap.achievements == ["First Stock", "Profit Maker"]
    assert snap.stats.total_trades == 1
    assert snap.daily_profit_loss == pytest.approx(2302.5)

    assert run(pfile, "show") == 0
    out = capsys.readouterr().out
    assert "RELIANCE.NS" in out
    assert "Novice Trader" in out
    assert "Top gainer: RELIANCE.NS (+9.40%)" in out
    assert "Risk score: 90/100" in out


def test_add_defaults_buy_price_to_current(pfile):
    assert run(pfile, "add", "ITC.NS", "5", "--current-price", "436.15", "--name", "ITC") == 0
    [h] = load(pfile).holdings
    assert h.buy_price == h.current_price == 436.15


@pytest.mark.parametrize("price", ["inf", "Infinity", "nan", "1e400"])
def test_add_rejects_non_finite_price(pfile, price, capsys):
    assert run(pfile, "add", "X.NS", "1", "--current-price", price, "--name", "X") == 1
    assert "Error" in capsys.readouterr().out
    assert run(pfile, "add", "X.NS", "1", "--current-price", "10", "--buy-price", price, "--name", "X") == 1
    assert not os.path.exists(pfile)


@pytest.mark.parametrize("qty", ["0", "-1", "ten"])
def test_add_rejects_bad_quantity(pfile, qty, capsys):
    assert run(pfile, "add", "ITC.NS", qty, "--current-price", "400", "--name", "ITC") == 1
    assert "Error" in capsys.readouterr().out


def test_add_fails_when_price_lookup_fails(pfile, monkeypatch, capsys):
    monkeypatch.setattr(main, "fetch_current_price", lambda s: -1.0)
    assert run(pfile, "add", "NOPE.NS", "1") == 1
    assert "Could not fetch price" in capsys.readouterr().out


def test_import_export_remove(pfile, tmp_path):
    csv_in = tmp_path / "zerodha.csv"
    csv_in.write_text(
        "Instrument,Qty.,Avg. cost,LTP\n"
        "TCS,5,3200,3450.25\n"
        "TCS.NS,1,3300,3450.25\n"
        "INFY,15,1450,1520.80\n",
        encoding="utf-8",
    )
    assert run(pfile, "import", "zerodha", str(csv_in)) == 0
    assert load(pfile).stats.total_trades == 3

    out = tmp_path / "out"
    assert run(pfile, "export", str(out)) == 0
    lines = (tmp_path / "out.csv").read_text(encoding="utf-8").splitlines()
    assert lines[0] == "Symbol,Name,Quantity,Buy Price,Current Price,Total Value,Profit,Profit %"
    assert len(lines) == 4

    assert run(pfile, "remove", "TCS.NS") == 0
    assert [h.symbol for h in load(pfile).holdings] == ["INFY.NS"]


def test_generic_import_requires_columns(pfile, tmp_path):
    t = tmp_path / "t.csv"
    assert run(pfile, "template", str(t)) == 0
    assert run(pfile, "import", "generic", str(t)) == 1
    assert run(pfile, "import", "generic", str(t), "--columns", "0,1,2,3,4") == 0
    assert len(load(pfile).holdings) == 3


def test_sort_and_trade(pfile):
    for sym, price in [("A.NS", "10"), ("B.NS", "30"), ("C.NS", "20")]:
        run(pfile, "add", sym, "1", "--current-price", price, "--name", sym)

    assert run(pfile, "sort", "value") == 0
    assert [h.symbol for h in load(pfile).holdings] == ["B.NS", "C.NS", "A.NS"]

    assert run(pfile, "trade", "win") == 0
    stats = load(pfile).stats
    assert (stats.winning_trades, stats.losing_trades) == (1, 0)


def test_refresh_uses_price_lookup(pfile, monkeypatch):
    from agents import price_refresh
    run(pfile, "add", "A.NS", "2", "--current-price", "100", "--name", "A")
    monkeypatch.setattr(main, "refresh_prices_sync",
                        lambda engine: price_refresh.refresh_prices_sync(engine, lambda s: 150.0))

    assert run(pfile, "refresh") == 0

    snap = load(pfile)
    assert snap.holdings[0].current_price == 150.0
    assert snap.daily_profit_loss == 100.0


def test_refresh_batch_uses_one_download(pfile, monkeypatch):
    from agents import price_refresh
    run(pfile, "add", "A.NS", "2", "--current-price", "100", "--name", "A")
    run(pfile, "add", "B.NS", "1", "--current-price", "50", "--name", "B")
    calls = []

    def fake_batch(symbols):
        calls.append(symbols)
        return {"A.NS": 110.0}

    monkeypatch.setattr(main, "refresh_prices_batch_sync",
                        lambda engine: price_refresh.refresh_prices_batch_sync(engine, fake_batch))

    assert run(pfile, "refresh", "--batch") == 0

    assert calls == [["A.NS", "B.NS"]]
    assert [h.current_price for h in load(pfile).holdings] == [110.0, 50.0]


def test_save_writes_copy_and_awards_xp(pfile, tmp_path):
    run(pfile, "add", "A.NS", "1", "--current-price", "100", "--name", "A")
    before = load(pfile).experience

    assert run(pfile, "save", str(tmp_path / "backup.json")) == 0

    assert load(pfile).experience == before + 5
    assert [h.symbol for h in load(tmp_path / "backup.json").holdings] == ["A.NS"]


def test_corrupt_file_falls_back_to_fresh_portfolio(pfile, capsys):
    with open(pfile, "w") as f:
        f.write("garbage")
    assert run(pfile, "show") == 0
    out = capsys.readouterr().out
    assert "My Portfolio" in out
    assert "portfolio.json.bad" in out


def test_unloadable_file_survives_the_next_save(pfile):
    for sym in ("A.NS", "B.NS", "C.NS"):
        assert run(pfile, "add", sym, "1", "--current-price", "10", "--name", sym) == 0
    with open(pfile, encoding="utf-8") as f:
        good = f.read()
    # simulate an older snapshot format
    with open(pfile, "w", encoding="utf-8") as f:
        f.write(good.replace('"version": 1', '"version": 0'))

    assert run(pfile, "add", "Y.NS", "1", "--current-price", "10", "--name", "Y") == 0

    assert [h.symbol for h in load(pfile).holdings] == ["Y.NS"]
    with open(pfile + ".bad", encoding="utf-8") as f:
        kept = f.read()
    assert kept == good.replace('"version": 1', '"version": 0')
    assert all(sym in kept for sym in ("A.NS", "B.NS", "C.NS"))


def test_mock_mode_saves_nothing(pfile, capsys):
    assert run(pfile, "--mock", "show") == 0
    assert "Mock Portfolio" in capsys.readouterr().out
    assert not os.path.exists(pfile)
