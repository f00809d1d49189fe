# src/tomato_garden/core/state.py

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any

from ..tasks.task_engine import ReconciliationEngine
from ..tasks.task_store import Database


@dataclass
class AppState:
    # Settings object (config.Settings in production, SimpleNamespace in tests).
    settings: Any

    db: Database
    engine: ReconciliationEngine
    user_id: int

    # Serializes console command handling against other front-end callers.
    lock: threading.RLock = field(default_factory=threading.RLock)
