# src/tomato_garden/tasks/task_engine.py

from __future__ import annotations

"""
Reconciliation engine.

Owns the rules that tie task lifecycle to the two ledgers:
- completing an expired task always earns a tomato;
- completing an on-time task pays off the oldest open punishment first,
  and only earns a tomato when nothing is owed;
- deleting a rewarded task takes its tomato back, punishments stay.

Every public operation runs in a single write transaction, so task state and
ledger effects commit together or not at all.
"""

import logging
import random
import sqlite3
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, replace

from ..core.errors import AuthorizationError, NotFoundError, ValidationError
from ..core.ports import DebtRepo, RewardRepo, TaskRepo
from .ledger_store import DebtLedger, RewardLedger
from .task_models import DebtObligation, DebtTag, GardenSummary, Priority, RewardToken, Task
from .task_store import Database, TaskStore

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _Session:
    tasks: TaskRepo
    rewards: RewardRepo
    debts: DebtRepo


def _clean_title(title: str | None) -> str:
    cleaned = (title or "").strip()
    if not cleaned:
        raise ValidationError("title is required")
    return cleaned


def _clean_description(description: str | None) -> str | None:
    if description is None:
        return None
    cleaned = description.strip()
    return cleaned or None


def _coerce_priority(priority: Priority | str | None) -> Priority:
    if priority is None:
        return Priority.MEDIUM
    if isinstance(priority, Priority):
        return priority
    try:
        return Priority(str(priority).strip().upper())
    except ValueError:
        raise ValidationError(f"unknown priority: {priority!r}") from None


class ReconciliationEngine:
    def __init__(
        self,
        db: Database,
        *,
        clock: Callable[[], float] = time.time,
        rng: random.Random | None = None,
        task_repo: Callable[[sqlite3.Connection], TaskRepo] = TaskStore,
        reward_repo: Callable[[sqlite3.Connection], RewardRepo] = RewardLedger,
        debt_repo: Callable[[sqlite3.Connection], DebtRepo] = DebtLedger,
    ) -> None:
        self._db = db
        self._clock = clock
        self._rng = rng or random.Random()
        self._task_repo = task_repo
        self._reward_repo = reward_repo
        self._debt_repo = debt_repo

    def now(self) -> float:
        return float(self._clock())

    @contextmanager
    def _session(self, *, write: bool = True) -> Iterator[_Session]:
        with self._db.transaction(write=write) as conn:
            yield _Session(
                tasks=self._task_repo(conn),
                rewards=self._reward_repo(conn),
                debts=self._debt_repo(conn),
            )

    @staticmethod
    def _load_owned(session: _Session, owner_id: int, task_id: int) -> Task:
        task = session.tasks.find_by_id(task_id)
        if task is None:
            raise NotFoundError(f"task {task_id} not found")
        if task.owner_id != owner_id:
            raise AuthorizationError(f"task {task_id} belongs to another user")
        return task

    # ---- tasks ----

    def create_task(
        self,
        owner_id: int,
        *,
        title: str,
        description: str | None = None,
        priority: Priority | str | None = Priority.MEDIUM,
        deadline: float | None = None,
    ) -> Task:
        task = Task(
            id=None,
            owner_id=int(owner_id),
            title=_clean_title(title),
            created_at=self.now(),
            description=_clean_description(description),
            priority=_coerce_priority(priority),
            deadline=float(deadline) if deadline is not None else None,
            deadline_tracking_enabled=deadline is not None,
        )
        with self._session() as s:
            task = s.tasks.save(task)

        logger.info("Task created id=%s owner=%s deadline=%s", task.id, owner_id, task.deadline)
        return task

    def list_tasks(self, owner_id: int) -> list[Task]:
        with self._session(write=False) as s:
            return s.tasks.find_by_owner(owner_id)

    def get_task(self, owner_id: int, task_id: int) -> Task:
        with self._session(write=False) as s:
            return self._load_owned(s, owner_id, task_id)

    def update_task(
        self,
        owner_id: int,
        task_id: int,
        *,
        title: str,
        description: str | None = None,
        priority: Priority | str | None = Priority.MEDIUM,
        deadline: float | None = None,
    ) -> Task:
        """
        Replace the editable fields of a task.

        completed / expired / reward_count are left alone: moving the deadline
        of an expired task does not un-expire it.
        """
        clean_title = _clean_title(title)
        clean_priority = _coerce_priority(priority)

        with self._session() as s:
            task = self._load_owned(s, owner_id, task_id)
            task = replace(
                task,
                title=clean_title,
                description=_clean_description(description),
                priority=clean_priority,
                deadline=float(deadline) if deadline is not None else None,
                deadline_tracking_enabled=deadline is not None,
            )
            task = s.tasks.save(task)

        logger.info("Task updated id=%s owner=%s deadline=%s", task_id, owner_id, task.deadline)
        return task

    def complete_task(self, owner_id: int, task_id: int) -> Task:
        task, _ = self.try_complete_task(owner_id, task_id)
        return task

    def try_complete_task(self, owner_id: int, task_id: int) -> tuple[Task, bool]:
        """
        Complete a task and apply its ledger effect.

        Returns (task, True) if this call completed it, or the stored task and
        False when it was already completed.
        """
        with self._session() as s:
            task = self._load_owned(s, owner_id, task_id)
            if task.completed:
                logger.debug("Task %s already completed; nothing to do", task_id)
                return task, False

            now_ts = self.now()
            task = replace(task, completed=True, completed_at=now_ts)

            if task.expired:
                s.rewards.grant(owner_id, task_id, now_ts=now_ts)
                task = replace(task, reward_count=1)
                outcome = "late, tomato granted"
            else:
                debt = s.debts.claim_oldest_unresolved(owner_id, task_id)
                if debt is not None:
                    task = replace(task, reward_count=0)
                    outcome = f"on time, punishment {debt.id} resolved"
                else:
                    s.rewards.grant(owner_id, task_id, now_ts=now_ts)
                    task = replace(task, reward_count=1)
                    outcome = "on time, tomato granted"

            task = s.tasks.save(task)

        logger.info("Task %s completed owner=%s (%s)", task_id, owner_id, outcome)
        return task, True

    def delete_task(self, owner_id: int, task_id: int) -> None:
        """Delete a task; its tomato goes with it, punishments that mention it stay."""
        with self._session() as s:
            task = self._load_owned(s, owner_id, task_id)
            revoked = 0
            if task.completed and task.reward_count > 0:
                revoked = s.rewards.revoke_by_owner_and_task(owner_id, task_id)
            s.tasks.delete(task)

        if revoked:
            logger.info("Task %s deleted owner=%s, %s tomato(es) revoked", task_id, owner_id, revoked)
        else:
            logger.info("Task %s deleted owner=%s", task_id, owner_id)

    # ---- expiry ----

    def find_expirable(self, now_ts: float) -> list[Task]:
        with self._session(write=False) as s:
            return s.tasks.find_expirable(now_ts)

    def expire_task(self, task_id: int, *, now_ts: float | None = None) -> DebtObligation | None:
        """
        Flip one overdue task to expired and open its punishment.

        The eligibility predicate is re-checked inside the transaction, so a
        task that was completed or already expired in the meantime is left
        alone and None is returned.
        """
        if now_ts is None:
            now_ts = self.now()

        with self._session() as s:
            if not s.tasks.try_mark_expired(task_id, now_ts=now_ts):
                return None
            task = s.tasks.find_by_id(task_id)
            if task is None:
                raise RuntimeError(f"task {task_id} vanished inside its own transaction")
            tag = self._rng.choice(list(DebtTag))
            debt = s.debts.create(task.owner_id, task_id, tag, now_ts=now_ts)

        logger.info(
            "Task %s expired owner=%s -> punishment %s (%s)",
            task_id,
            debt.owner_id,
            debt.id,
            debt.tag.value,
        )
        return debt

    # ---- ledgers (read side) ----

    def reward_count(self, owner_id: int) -> int:
        with self._session(write=False) as s:
            return s.rewards.count_by_owner(owner_id)

    def reward_history(self, owner_id: int) -> list[RewardToken]:
        with self._session(write=False) as s:
            return s.rewards.history_by_owner(owner_id)

    def all_debts(self, owner_id: int) -> list[DebtObligation]:
        with self._session(write=False) as s:
            return s.debts.all_by_owner(owner_id)

    def unresolved_debts(self, owner_id: int) -> list[DebtObligation]:
        with self._session(write=False) as s:
            return s.debts.unresolved_by_owner(owner_id)

    def garden_summary(self, owner_id: int) -> GardenSummary:
        with self._session(write=False) as s:
            tomatoes = s.rewards.count_by_owner(owner_id)
            open_debts = s.debts.unresolved_by_owner(owner_id)
            tasks = s.tasks.find_by_owner(owner_id)

        by_tag = {tag: 0 for tag in DebtTag}
        for debt in open_debts:
            by_tag[debt.tag] += 1

        open_tasks = [t for t in tasks if not t.completed]
        return GardenSummary(
            tomatoes=tomatoes,
            active_debts=len(open_debts),
            by_tag=by_tag,
            open_tasks=len(open_tasks),
            expired_tasks=sum(1 for t in open_tasks if t.expired),
        )
