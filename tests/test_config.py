# tests/test_config.py

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from tomato_garden.cli.bootstrap import create_initial_state
from tomato_garden.config import Settings
from tomato_garden.logging_setup import setup_logging


def test_settings_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "TOMATO_APP_NAME",
        "TOMATO_USER_ID",
        "TOMATO_DATA_DIR",
        "TOMATO_DB_PATH",
        "TOMATO_SWEEP_INTERVAL_SECONDS",
        "TOMATO_SWEEPER_ENABLED",
    ):
        monkeypatch.delenv(name, raising=False)

    s = Settings.from_env()
    assert s.app_name == "tomato"
    assert s.user_id == 1
    assert s.sweeper_enabled
    assert s.sweep_interval_seconds == 30.0
    assert s.db_path == Path(".local/tomato") / "tomato.sqlite3"


def test_settings_from_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("TOMATO_USER_ID", "42")
    monkeypatch.setenv("TOMATO_DATA_DIR", str(tmp_path))
    monkeypatch.delenv("TOMATO_DB_PATH", raising=False)
    monkeypatch.setenv("TOMATO_SWEEPER_ENABLED", "off")
    monkeypatch.setenv("TOMATO_SWEEP_INTERVAL_SECONDS", "5")

    s = Settings.from_env()
    assert s.user_id == 42
    assert s.data_dir == tmp_path
    assert s.db_path == tmp_path / "tomato.sqlite3"
    assert not s.sweeper_enabled
    assert s.sweep_interval_seconds == 5.0


def test_settings_bad_values_fall_back(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TOMATO_USER_ID", "not-a-number")
    monkeypatch.setenv("TOMATO_SWEEP_INTERVAL_SECONDS", "-3")
    monkeypatch.setenv("TOMATO_DB_TIMEOUT", "soon")

    s = Settings.from_env()
    assert s.user_id == 1
    assert s.sweep_interval_seconds == 30.0
    assert s.db_timeout == 30.0


def test_create_initial_state(settings) -> None:
    settings.user_id = 3
    state = create_initial_state(settings=settings)

    assert state.user_id == 3
    assert state.db.path == settings.db_path
    assert settings.db_path.exists()
    assert state.engine.list_tasks(3) == []


def _record(name: str, level: int) -> logging.LogRecord:
    return logging.LogRecord(name, level, __file__, 1, "msg", None, None)


def test_setup_logging_keeps_console_quiet(tmp_path: Path) -> None:
    root = logging.getLogger()
    saved_level, saved_handlers = root.level, list(root.handlers)
    try:
        log_file = setup_logging(log_dir=tmp_path / "logs", log_name="garden")
        assert log_file == tmp_path / "logs" / "garden.log"

        (console,) = [h for h in root.handlers if type(h) is logging.StreamHandler]
        assert console.filter(_record("tomato_garden.tasks.task_engine", logging.INFO))
        assert not console.filter(_record("tomato_garden.tasks.task_sweeper", logging.INFO))
        assert console.filter(_record("tomato_garden.tasks.task_sweeper", logging.WARNING))
        assert not console.filter(_record("urllib3", logging.WARNING))
        assert not console.filter(_record("py.warnings", logging.WARNING))
        assert console.filter(_record("urllib3", logging.ERROR))

        logging.getLogger("tomato_garden.tasks.task_sweeper").debug("sweep tick")
        for h in root.handlers:
            h.flush()
        assert "sweep tick" in log_file.read_text(encoding="utf-8")
    finally:
        for h in list(root.handlers):
            root.removeHandler(h)
            h.close()
        for h in saved_handlers:
            root.addHandler(h)
        root.setLevel(saved_level)
        logging.captureWarnings(False)
