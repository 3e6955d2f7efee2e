"""Tests for state/ledger.py — add/remove/find, stable sorts, aggregates."""
from __future__ import annotations

import pytest

from state.ledger import Ledger
from state.models import Holding


def h(symbol, qty=1, buy=100.0, cur=100.0, name=None):
    return Holding(name=name or symbol, symbol=symbol, quantity=qty, buy_price=buy, current_price=cur)


class TestMutation:
    def test_add_appends_and_allows_duplicates(self):
        ledger = Ledger()
        a, b = h("TCS.NS"), h("TCS.NS")
        ledger.add(a)
        ledger.add(b)
        assert ledger.holdings == [a, b]
        assert ledger.count == 2

    def test_remove_case_variant_duplicates(self):
        ledger = Ledger()
        ledger.add(h("TCS.NS"))
        ledger.add(h("INFY.NS"))
        ledger.add(h("tcs.ns"))

        assert ledger.remove("Tcs.Ns") is True
        assert [x.symbol for x in ledger] == ["INFY.NS"]

    def test_remove_missing_returns_false(self):
        ledger = Ledger()
        ledger.add(h("INFY.NS"))
        assert ledger.remove("WIPRO.NS") is False
        assert ledger.count == 1

    def test_find_returns_first_match(self):
        ledger = Ledger()
        first, second = h("ITC.NS", qty=1), h("itc.ns", qty=2)
        ledger.add(first)
        ledger.add(second)
        assert ledger.find("ITC.NS") is first
        assert ledger.find("nope") is None

    def test_holdings_is_a_copy(self):
        ledger = Ledger()
        ledger.add(h("A"))
        ledger.holdings.clear()
        assert ledger.count == 1

    def test_contains_is_identity(self):
        ledger = Ledger()
        a = h("A")
        ledger.add(a)
        assert a in ledger
        assert h("A") not in ledger


class TestSorting:
    def test_sort_by_name(self):
        ledger = Ledger()
        for name in ["Wipro", "Infosys", "HDFC Bank"]:
            ledger.add(h(name.upper(), name=name))
        ledger.sort_by_name()
        assert [x.name for x in ledger] == ["HDFC Bank", "Infosys", "Wipro"]

    def test_sort_by_symbol(self):
        ledger = Ledger()
        for s in ["WIPRO.NS", "INFY.NS", "ITC.NS"]:
            ledger.add(h(s))
        ledger.sort_by_symbol()
        assert [x.symbol for x in ledger] == ["INFY.NS", "ITC.NS", "WIPRO.NS"]

    def test_sort_by_profit_desc_is_stable(self):
        ledger = Ledger()
        a = h("A", cur=110.0)   # +10
        b = h("B", cur=90.0)    # -10
        c = h("C", cur=110.0)   # +10, ties with A
        d = h("D", cur=150.0)   # +50
        for x in (a, b, c, d):
            ledger.add(x)
        ledger.sort_by_profit_desc()
        assert ledger.holdings == [d, a, c, b]

    def test_sort_by_value_desc_is_stable(self):
        ledger = Ledger()
        a = h("A", qty=2, cur=50.0)    # 100
        b = h("B", qty=1, cur=100.0)   # 100, ties with A
        c = h("C", qty=1, cur=300.0)   # 300
        for x in (a, b, c):
            ledger.add(x)
        ledger.sort_by_value_desc()
        assert ledger.holdings == [c, a, b]


class TestAggregates:
    def test_empty_ledger(self):
        ledger = Ledger()
        assert ledger.total_value == 0
        assert ledger.total_investment == 0
        assert ledger.total_profit == 0
        assert ledger.total_profit_pct == 0.0

    def test_totals(self):
        ledger = Ledger()
        ledger.add(h("A", qty=10, buy=100.0, cur=120.0))   # inv 1000, val 1200
        ledger.add(h("B", qty=5, buy=200.0, cur=180.0))    # inv 1000, val 900
        assert ledger.total_investment == 2000.0
        assert ledger.total_value == 2100.0
        assert ledger.total_profit == 100.0
        assert ledger.total_profit_pct == pytest.approx(5.0)

    def test_totals_track_price_changes(self):
        ledger = Ledger()
        a = h("A", qty=10, buy=100.0, cur=100.0)
        ledger.add(a)
        assert ledger.total_profit == 0.0
        a.current_price = 110.0
        assert ledger.total_profit == 100.0
