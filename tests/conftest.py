# tests/conftest.py

from __future__ import annotations

import random
from dataclasses import replace
from pathlib import Path
from types import SimpleNamespace

import pytest

from tomato_garden.core.state import AppState
from tomato_garden.tasks.task_engine import ReconciliationEngine
from tomato_garden.tasks.task_store import Database, TaskStore

from .fakes import FakeClock


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the CLI.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="tomato-test",
        log_level="DEBUG",
        data_dir=tmp_path,
        db_path=tmp_path / "tomato.sqlite3",
        db_timeout=10.0,
        user_id=1,
        console_enabled=False,
        sweeper_enabled=False,
        sweep_interval_seconds=30.0,
    )


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def db(settings: SimpleNamespace) -> Database:
    return Database(settings.db_path, timeout=settings.db_timeout)


@pytest.fixture()
def engine(db: Database, clock: FakeClock) -> ReconciliationEngine:
    return ReconciliationEngine(db, clock=clock, rng=random.Random(7))


@pytest.fixture()
def state(settings: SimpleNamespace, db: Database, engine: ReconciliationEngine) -> AppState:
    """
    AppState wired with a real SQLite database and a fake clock.

    NOTE: We keep real SQLite here because transactional behavior is part of
    what we want to test.
    """
    return AppState(settings=settings, db=db, engine=engine, user_id=settings.user_id)


def force_expired(db: Database, task_id: int) -> None:
    """Flip a task to expired directly in the store, bypassing the sweeper."""
    with db.transaction() as conn:
        store = TaskStore(conn)
        task = store.find_by_id(task_id)
        assert task is not None
        store.save(replace(task, expired=True))
