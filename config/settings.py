"""
Runtime settings — read once from the environment (.env supported).
"""
import os
from pathlib import Path

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).parent.parent

load_dotenv(PROJECT_ROOT / ".env")

# Snapshot file used by the CLI when --file is not given
PORTFOLIO_FILE = Path(os.environ.get("PORTFOLIO_FILE", "portfolio.json"))

# Name given to a fresh portfolio when no snapshot can be loaded
PORTFOLIO_NAME = os.environ.get("PORTFOLIO_NAME", "My Portfolio")

# Periodic triggers for `main.py watch`
AUTO_SAVE_MINUTES = float(os.environ.get("AUTO_SAVE_MINUTES", "5"))
AUTO_REFRESH_MINUTES = float(os.environ.get("AUTO_REFRESH_MINUTES", "15"))

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

# Exchange suffix appended to imported symbols that carry none (NSE)
DEFAULT_MARKET_SUFFIX = os.environ.get("DEFAULT_MARKET_SUFFIX", ".NS")
KNOWN_MARKET_SUFFIXES = (".NS", ".BO")
