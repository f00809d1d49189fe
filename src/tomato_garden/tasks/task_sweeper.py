# src/tomato_garden/tasks/task_sweeper.py

from __future__ import annotations

"""
Expiry sweeper.

A small polling loop that:
- fetches tasks whose deadline passed while still incomplete,
- flips each one to expired and opens exactly one punishment for it,
- keeps going when a single task fails (it stays eligible for the next tick).

Runs in a background thread with its own event loop so the blocking console
REPL can stay in the main thread.
"""

import asyncio
import contextlib
import logging
import threading
from dataclasses import dataclass

from ..core.ports import ExpiryTarget

logger = logging.getLogger(__name__)


def sweep_expired_tasks(engine: ExpiryTarget, *, now_ts: float | None = None) -> int:
    """
    Run one sweep. Returns the number of tasks that were expired by this call.
    """
    if now_ts is None:
        now_ts = engine.now()

    try:
        candidates = engine.find_expirable(now_ts)
    except Exception:
        logger.exception("find_expirable failed")
        return 0

    expired = 0
    for task in candidates:
        task_id = getattr(task, "id", None)
        if task_id is None:
            continue

        try:
            debt = engine.expire_task(int(task_id), now_ts=now_ts)
        except Exception:
            logger.exception("expire_task failed task_id=%s", task_id)
            continue

        if debt is not None:
            expired += 1

    if candidates:
        logger.debug("Sweep done candidates=%s expired=%s", len(candidates), expired)
    return expired


async def run_expiry_sweeper(
        engine: ExpiryTarget,
        *,
        interval_seconds: float = 30.0,
) -> None:
    """
    Simple polling sweeper.

    Every interval_seconds run sweep_expired_tasks(). A run always finishes
    before the next sleep starts, so runs never overlap.

    To stop the sweeper, cancel the coroutine/task.
    """
    sleep_s = max(0.5, float(interval_seconds))
    logger.info("Expiry sweeper started interval=%.1fs", sleep_s)

    while True:
        try:
            sweep_expired_tasks(engine)
        except Exception:
            logger.exception("Expiry sweep crashed")

        await asyncio.sleep(sleep_s)


@dataclass(slots=True)
class SweeperBackgroundRunner:
    thread: threading.Thread
    loop: asyncio.AbstractEventLoop
    task: asyncio.Task[None]

    def stop(self) -> None:
        try:
            self.loop.call_soon_threadsafe(self.task.cancel)
        except RuntimeError:
            logger.debug("Failed to signal sweeper stop (loop already closed).", exc_info=True)

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)


def start_sweeper_in_background(
        engine: ExpiryTarget,
        *,
        interval_seconds: float = 30.0,
) -> SweeperBackgroundRunner | None:
    """Start run_expiry_sweeper() on its own event loop in a daemon thread."""
    ready = threading.Event()
    holder: dict[str, object] = {}

    def runner() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        task = loop.create_task(run_expiry_sweeper(engine, interval_seconds=interval_seconds))

        holder["loop"] = loop
        holder["task"] = task
        ready.set()

        try:
            with contextlib.suppress(asyncio.CancelledError):
                loop.run_until_complete(task)
        finally:
            with contextlib.suppress(Exception):
                loop.close()

    t = threading.Thread(target=runner, name="expiry-sweeper", daemon=True)
    t.start()

    ready.wait(timeout=5.0)
    loop = holder.get("loop")
    task = holder.get("task")

    if not isinstance(loop, asyncio.AbstractEventLoop) or not isinstance(task, asyncio.Task):
        logger.error("Sweeper thread did not initialize properly.")
        return None

    logger.info("Sweeper background thread started.")
    return SweeperBackgroundRunner(thread=t, loop=loop, task=task)
