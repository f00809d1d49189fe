# src/tomato_garden/tasks/ledger_store.py

from __future__ import annotations

import logging
import sqlite3
import time
from dataclasses import replace

from .task_models import DebtObligation, DebtTag, RewardToken

logger = logging.getLogger(__name__)


def _row_to_token(row: sqlite3.Row) -> RewardToken:
    return RewardToken(
        id=int(row["id"]),
        owner_id=int(row["owner_id"]),
        task_id=int(row["task_id"]),
        issued_at=float(row["issued_at"] or 0.0),
    )


def _row_to_debt(row: sqlite3.Row) -> DebtObligation:
    return DebtObligation(
        id=int(row["id"]),
        owner_id=int(row["owner_id"]),
        task_id=int(row["task_id"]),
        created_at=float(row["created_at"] or 0.0),
        tag=DebtTag.from_db(row["tag"]),
        resolved=bool(row["resolved"]),
        resolved_by_task_id=(
            int(row["resolved_by_task_id"]) if row["resolved_by_task_id"] is not None else None
        ),
    )


class RewardLedger:
    """Tomatoes: append-only, except for retraction when the source task is deleted."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def grant(self, owner_id: int, task_id: int, *, now_ts: float | None = None) -> RewardToken:
        if now_ts is None:
            now_ts = time.time()
        cur = self._conn.execute(
            "INSERT INTO tomatoes(owner_id, task_id, issued_at) VALUES (?, ?, ?)",
            (int(owner_id), int(task_id), float(now_ts)),
        )
        rowid = cur.lastrowid
        if rowid is None:
            raise RuntimeError("SQLite did not return lastrowid for tomatoes insert")
        logger.debug("Tomato granted id=%s owner=%s task=%s", rowid, owner_id, task_id)
        return RewardToken(id=int(rowid), owner_id=int(owner_id), task_id=int(task_id), issued_at=float(now_ts))

    def count_by_owner(self, owner_id: int) -> int:
        (n,) = self._conn.execute(
            "SELECT COUNT(*) FROM tomatoes WHERE owner_id = ?", (int(owner_id),)
        ).fetchone()
        return int(n)

    def history_by_owner(self, owner_id: int) -> list[RewardToken]:
        """Newest first."""
        rows = self._conn.execute(
            "SELECT * FROM tomatoes WHERE owner_id = ? ORDER BY issued_at DESC, id DESC",
            (int(owner_id),),
        ).fetchall()
        return [_row_to_token(r) for r in rows]

    def revoke_by_owner_and_task(self, owner_id: int, task_id: int) -> int:
        cur = self._conn.execute(
            "DELETE FROM tomatoes WHERE owner_id = ? AND task_id = ?",
            (int(owner_id), int(task_id)),
        )
        logger.debug("Tomatoes revoked owner=%s task=%s n=%s", owner_id, task_id, cur.rowcount)
        return int(cur.rowcount)


class DebtLedger:
    """
    Punishments: created by the expiry sweep, resolved once, never deleted.

    Open debts are ordered oldest first: created_at ASC, then id ASC.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def create(
        self,
        owner_id: int,
        task_id: int,
        tag: DebtTag,
        *,
        now_ts: float | None = None,
    ) -> DebtObligation:
        if now_ts is None:
            now_ts = time.time()
        cur = self._conn.execute(
            """
            INSERT INTO punishments(owner_id, task_id, created_at, tag, resolved)
            VALUES (?, ?, ?, ?, 0)
            """,
            (int(owner_id), int(task_id), float(now_ts), DebtTag(tag).value),
        )
        rowid = cur.lastrowid
        if rowid is None:
            raise RuntimeError("SQLite did not return lastrowid for punishments insert")
        logger.debug("Punishment created id=%s owner=%s task=%s tag=%s", rowid, owner_id, task_id, tag)
        return DebtObligation(
            id=int(rowid),
            owner_id=int(owner_id),
            task_id=int(task_id),
            created_at=float(now_ts),
            tag=DebtTag(tag),
        )

    def oldest_unresolved(self, owner_id: int) -> DebtObligation | None:
        row = self._conn.execute(
            """
            SELECT *
            FROM punishments
            WHERE owner_id = ? AND resolved = 0
            ORDER BY created_at ASC, id ASC
            LIMIT 1
            """,
            (int(owner_id),),
        ).fetchone()
        return _row_to_debt(row) if row else None

    def resolve(self, obligation: DebtObligation, resolving_task_id: int) -> bool:
        """
        Atomically transitions:
          resolved = 0  ->  resolved = 1, resolved_by_task_id = resolving_task_id

        Returns True if the row was resolved by this caller.
        """
        cur = self._conn.execute(
            """
            UPDATE punishments
            SET resolved = 1, resolved_by_task_id = ?
            WHERE id = ? AND resolved = 0
            """,
            (int(resolving_task_id), int(obligation.id)),
        )
        return cur.rowcount == 1

    def claim_oldest_unresolved(self, owner_id: int, resolving_task_id: int) -> DebtObligation | None:
        """
        Find the owner's oldest open debt and resolve it in one step.

        Must run inside a write transaction: the lookup and the update then
        commit together, so two completions can never claim the same debt.
        """
        debt = self.oldest_unresolved(owner_id)
        if debt is None:
            return None
        if not self.resolve(debt, resolving_task_id):
            return None
        return replace(debt, resolved=True, resolved_by_task_id=int(resolving_task_id))

    def all_by_owner(self, owner_id: int) -> list[DebtObligation]:
        rows = self._conn.execute(
            "SELECT * FROM punishments WHERE owner_id = ? ORDER BY created_at ASC, id ASC",
            (int(owner_id),),
        ).fetchall()
        return [_row_to_debt(r) for r in rows]

    def unresolved_by_owner(self, owner_id: int) -> list[DebtObligation]:
        rows = self._conn.execute(
            """
            SELECT *
            FROM punishments
            WHERE owner_id = ? AND resolved = 0
            ORDER BY created_at ASC, id ASC
            """,
            (int(owner_id),),
        ).fetchall()
        return [_row_to_debt(r) for r in rows]
