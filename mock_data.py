"""
Hardcoded sample portfolio for offline runs (main.py --mock) and tests.

Prices are fixed; nothing here touches the network.
"""
from state.models import Holding


def mock_holdings() -> list[Holding]:
    """Fresh Holding objects on every call (holdings are mutable)."""
    return [
        Holding(
            name="Reliance Industries",
            symbol="RELIANCE.NS",
            quantity=10,
            buy_price=2450.50,
            current_price=2680.75,
        ),
        Holding(
            name="Tata Consultancy Services",
            symbol="TCS.NS",
            quantity=5,
            buy_price=3200.00,
            current_price=3450.25,
        ),
        Holding(
            name="Infosys Limited",
            symbol="INFY.NS",
            quantity=15,
            buy_price=1450.00,
            current_price=1520.80,
        ),
        Holding(
            name="HDFC Bank",
            symbol="HDFCBANK.NS",
            quantity=20,
            buy_price=1620.00,
            current_price=1585.40,
        ),
        Holding(
            name="ITC Limited",
            symbol="ITC.NS",
            quantity=100,
            buy_price=410.00,
            current_price=436.15,
        ),
    ]
