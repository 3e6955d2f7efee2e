"""
Portfolio snapshot store — one JSON file per portfolio.

File: { "version": 1, "saved_at": "2026-02-27T10:30:00", "portfolio_name": ...,
        "level": ..., "experience": ..., "daily_profit_loss": ...,
        "achievements": [...], "stats": {...}, "holdings": [...] }

Loading never crashes the caller: every failure is a PersistenceError whose
reason says what went wrong, so "no usable file" stays distinct from
"loaded an empty portfolio". A caller that falls back to a fresh portfolio
moves the unusable file out of the way with set_aside() before saving.
"""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from analysis.gamification import GamificationEngine
from state.errors import PersistenceError
from state.models import SNAPSHOT_VERSION, PortfolioSnapshot

logger = logging.getLogger(__name__)


def save(snapshot: PortfolioSnapshot, path: str | Path) -> Path:
    """Write the snapshot atomically (temp file + replace)."""
    p = Path(path)
    tmp = p.with_name(p.name + ".tmp")
    try:
        p.parent.mkdir(parents=True, exist_ok=True)
        with open(tmp, "w", encoding="utf-8") as f:
            f.write(snapshot.model_dump_json(indent=2))
        os.replace(tmp, p)
    except OSError as e:
        raise PersistenceError("write", p, str(e)) from e
    logger.debug("Saved portfolio %r to %s", snapshot.portfolio_name, p)
    return p


def load(path: str | Path) -> PortfolioSnapshot:
    """
    Load a snapshot.

    Raises:
        PersistenceError(reason="missing")       no file at path
        PersistenceError(reason="unreadable")    file exists but can't be read
        PersistenceError(reason="corrupt")       not JSON / not an object
        PersistenceError(reason="incompatible")  other version or wrong shape
    """
    p = Path(path)
    if not p.exists():
        raise PersistenceError("missing", p)
    try:
        with open(p, encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise PersistenceError("corrupt", p, str(e)) from e
    except (OSError, UnicodeDecodeError) as e:
        raise PersistenceError("unreadable", p, str(e)) from e

    if not isinstance(data, dict):
        raise PersistenceError("corrupt", p, "top-level value is not an object")
    version = data.get("version")
    if version != SNAPSHOT_VERSION:
        raise PersistenceError("incompatible", p, f"version {version!r}, expected {SNAPSHOT_VERSION}")
    try:
        return PortfolioSnapshot.model_validate(data)
    except ValidationError as e:
        raise PersistenceError("incompatible", p, f"{e.error_count()} invalid field(s)") from e


def load_engine(path: str | Path, default_name: str) -> tuple[GamificationEngine, Optional[PersistenceError]]:
    """
    Load the engine stored at path, or fall back to a fresh one.

    Returns:
        (engine, None)   if the snapshot loaded
        (engine, error)  fresh engine named default_name, plus the load failure
    """
    try:
        snap = load(path)
    except PersistenceError as e:
        if e.reason == "missing":
            logger.info("No portfolio at %s, starting %r", e.path, default_name)
        else:
            logger.warning("Could not load portfolio (%s), starting %r", e, default_name)
        engine = GamificationEngine()
        engine.ledger.name = default_name
        return engine, e
    return GamificationEngine.from_snapshot(snap), None


def save_engine(engine: GamificationEngine, path: str | Path) -> Path:
    return save(engine.snapshot(), path)


def set_aside(path: str | Path) -> Path:
    """
    Rename an unusable snapshot to <name>.bad (then .bad.1, .bad.2, ...) so
    that the next save starts clean without destroying it.
    """
    p = Path(path)
    target = p.with_name(p.name + ".bad")
    n = 1
    while target.exists():
        target = p.with_name(f"{p.name}.bad.{n}")
        n += 1
    try:
        os.replace(p, target)
    except OSError as e:
        raise PersistenceError("write", p, str(e)) from e
    logger.warning("Kept unusable portfolio file %s as %s", p, target)
    return target
