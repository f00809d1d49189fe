# tests/test_task_store.py

from __future__ import annotations

import sqlite3
from dataclasses import replace
from pathlib import Path

import pytest

from tomato_garden.tasks.ledger_store import DebtLedger, RewardLedger
from tomato_garden.tasks.task_models import DebtTag, Priority, Task
from tomato_garden.tasks.task_store import Database, TaskStore


def _task(owner_id: int = 1, **kw) -> Task:
    base = Task(id=None, owner_id=owner_id, title="t", created_at=100.0)
    return replace(base, **kw)


def test_task_save_find_delete(db: Database) -> None:
    with db.transaction() as conn:
        store = TaskStore(conn)
        saved = store.save(_task(title="write", priority=Priority.HIGH, deadline=200.0, deadline_tracking_enabled=True))
        assert saved.id is not None

    with db.transaction() as conn:
        store = TaskStore(conn)
        found = store.find_by_id(saved.id)
        assert found == saved

        store.save(replace(found, title="rewrite", completed=True, completed_at=150.0, reward_count=1))

    with db.transaction() as conn:
        store = TaskStore(conn)
        again = store.find_by_id(saved.id)
        assert again is not None
        assert again.title == "rewrite"
        assert again.completed
        assert again.reward_count == 1

        store.delete(again)
        assert store.find_by_id(saved.id) is None


def test_find_by_owner_scopes_and_orders(db: Database) -> None:
    with db.transaction() as conn:
        store = TaskStore(conn)
        late = store.save(_task(1, title="late", created_at=300.0))
        early = store.save(_task(1, title="early", created_at=100.0))
        store.save(_task(2, title="foreign", created_at=50.0))

        assert [t.id for t in store.find_by_owner(1)] == [early.id, late.id]


def test_find_expirable_predicate(db: Database) -> None:
    with db.transaction() as conn:
        store = TaskStore(conn)
        hit = store.save(_task(deadline=90.0, deadline_tracking_enabled=True))
        store.save(_task(deadline=110.0, deadline_tracking_enabled=True))  # future
        store.save(_task(deadline=90.0, deadline_tracking_enabled=False))  # tracking off
        store.save(_task(deadline=90.0, deadline_tracking_enabled=True, completed=True))
        store.save(_task(deadline=90.0, deadline_tracking_enabled=True, expired=True))
        store.save(_task())  # no deadline

        assert [t.id for t in store.find_expirable(100.0)] == [hit.id]

        assert store.try_mark_expired(hit.id, now_ts=100.0)
        assert not store.try_mark_expired(hit.id, now_ts=100.0)
        assert store.find_expirable(100.0) == []


def test_reward_ledger(db: Database) -> None:
    with db.transaction() as conn:
        ledger = RewardLedger(conn)
        first = ledger.grant(1, 10, now_ts=100.0)
        second = ledger.grant(1, 11, now_ts=200.0)
        ledger.grant(2, 12, now_ts=150.0)

        assert ledger.count_by_owner(1) == 2
        assert ledger.history_by_owner(1) == [second, first]

        assert ledger.revoke_by_owner_and_task(1, 10) == 1
        assert ledger.revoke_by_owner_and_task(1, 12) == 0, "owner mismatch"
        assert ledger.count_by_owner(1) == 1
        assert ledger.count_by_owner(2) == 1


def test_debt_ledger_claim(db: Database) -> None:
    with db.transaction() as conn:
        ledger = DebtLedger(conn)
        newer = ledger.create(1, 5, DebtTag.WEEDS, now_ts=200.0)
        older = ledger.create(1, 6, DebtTag.FOG, now_ts=100.0)
        ledger.create(2, 7, DebtTag.WILTED_LEAF, now_ts=50.0)

        assert ledger.oldest_unresolved(1) == older
        assert [d.id for d in ledger.unresolved_by_owner(1)] == [older.id, newer.id]

        claimed = ledger.claim_oldest_unresolved(1, resolving_task_id=99)
        assert claimed is not None
        assert claimed.id == older.id
        assert claimed.resolved
        assert claimed.resolved_by_task_id == 99
        assert ledger.all_by_owner(1)[0] == claimed

        assert not ledger.resolve(older, 100), "already resolved"
        assert [d.id for d in ledger.unresolved_by_owner(1)] == [newer.id]
        assert len(ledger.all_by_owner(1)) == 2

        assert ledger.claim_oldest_unresolved(1, 98) is not None
        assert ledger.claim_oldest_unresolved(1, 97) is None


def test_transaction_rolls_back_on_error(db: Database) -> None:
    with pytest.raises(RuntimeError):
        with db.transaction() as conn:
            TaskStore(conn).save(_task(title="ghost"))
            raise RuntimeError("boom")

    with db.transaction(write=False) as conn:
        assert TaskStore(conn).find_by_owner(1) == []


def test_schema_migration_adds_missing_columns(tmp_path: Path) -> None:
    path = tmp_path / "old.sqlite3"
    conn = sqlite3.connect(path)
    conn.execute(
        """
        CREATE TABLE tasks (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            owner_id INTEGER NOT NULL,
            title TEXT NOT NULL,
            created_at REAL NOT NULL,
            deadline REAL,
            completed INTEGER NOT NULL DEFAULT 0,
            expired INTEGER NOT NULL DEFAULT 0
        )
        """
    )
    conn.execute("INSERT INTO tasks(owner_id, title, created_at) VALUES (1, 'legacy', 1.0)")
    conn.commit()
    conn.close()

    db = Database(path)
    with db.transaction() as c:
        store = TaskStore(c)
        (legacy,) = store.find_by_owner(1)
        assert legacy.title == "legacy"
        assert legacy.priority == Priority.MEDIUM
        assert legacy.reward_count == 0
        assert not legacy.deadline_tracking_enabled

        saved = store.save(_task(title="new", priority=Priority.LOW, description="d"))
        assert store.find_by_id(saved.id) == saved
