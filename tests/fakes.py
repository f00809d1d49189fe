# tests/fakes.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from tomato_garden.tasks.task_engine import ReconciliationEngine


class FakeClock:
    """
    Deterministic clock for the engine.

    - Returns a fixed "now" until advanced
    - Callable, so it plugs straight into ReconciliationEngine(clock=...)
    """

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = float(start)

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += float(seconds)
        return self.now


@dataclass(slots=True)
class FlakyExpiryTarget:
    """
    Wraps a real engine and makes expire_task() blow up for selected task ids.

    Used to check that one failing task does not stop the rest of a sweep.
    """

    engine: ReconciliationEngine
    failing_ids: set[int] = field(default_factory=set)
    calls: list[int] = field(default_factory=list)

    def now(self) -> float:
        return self.engine.now()

    def find_expirable(self, now_ts: float) -> list[Any]:
        return self.engine.find_expirable(now_ts)

    def expire_task(self, task_id: int, *, now_ts: float | None = None) -> Any | None:
        self.calls.append(task_id)
        if task_id in self.failing_ids:
            raise RuntimeError(f"simulated write conflict for task {task_id}")
        return self.engine.expire_task(task_id, now_ts=now_ts)
