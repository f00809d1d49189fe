# src/tomato_garden/logging_setup.py

from __future__ import annotations

import logging
import sys
from collections.abc import Mapping
from pathlib import Path

_PACKAGE = "tomato_garden"

# The sweeper thread writes between console prompts; only problems get through.
DEFAULT_QUIET = {f"{_PACKAGE}.tasks.task_sweeper": logging.WARNING}


class _PromptFriendlyFilter(logging.Filter):
    """Console filter: our records pass, quiet loggers need a minimum level, anything else needs ERROR."""

    def __init__(self, quiet: Mapping[str, int]) -> None:
        super().__init__()
        self._quiet = dict(quiet)

    def filter(self, record: logging.LogRecord) -> bool:
        floor = self._quiet.get(record.name)
        if floor is not None:
            return record.levelno >= floor
        if record.name == _PACKAGE or record.name.startswith(_PACKAGE + "."):
            return True
        return record.levelno >= logging.ERROR


def setup_logging(
    *,
    log_dir: str | Path = ".local/tomato",
    log_name: str = "tomato",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    quiet: Mapping[str, int] | None = None,
) -> Path:
    """
    Send filtered records to stderr and everything to <log_dir>/<log_name>.log.

    Replaces whatever handlers the root logger had. Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / f"{log_name}.log"

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s [%(threadName)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(fmt)
    console.addFilter(_PromptFriendlyFilter(DEFAULT_QUIET if quiet is None else quiet))
    root.addHandler(console)

    file_handler = logging.FileHandler(str(log_file), encoding="utf-8")
    file_handler.setLevel(file_level)
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    # warnings.warn(...) arrives as "py.warnings" and is held to ERROR on the console
    logging.captureWarnings(True)
    return log_file
