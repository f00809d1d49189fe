# src/tomato_garden/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the SQLite database and the reconciliation engine into AppState.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.state import AppState
from ..tasks.task_engine import ReconciliationEngine
from ..tasks.task_store import Database

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    db = Database(settings.db_path, timeout=getattr(settings, "db_timeout", 30.0))
    engine = ReconciliationEngine(db)

    logger.debug("State created db=%s user_id=%s", settings.db_path, settings.user_id)
    return AppState(
        settings=settings,
        db=db,
        engine=engine,
        user_id=int(settings.user_id),
    )
