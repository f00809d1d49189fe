# src/tomato_garden/tasks/task_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
from collections.abc import Iterator
from dataclasses import replace
from pathlib import Path

from .task_models import Priority, Task

logger = logging.getLogger(__name__)


class Database:
    """
    SQLite database holding tasks, tomatoes and punishments.

    The schema is intentionally simple and migration-safe:
    - create tables if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Thread-safety:
    - every transaction opens its own SQLite connection
    - write transactions start with BEGIN IMMEDIATE, so read-modify-write
      sequences from different threads are serialized by SQLite itself
    """

    def __init__(self, db_path: str | Path = "tomato.sqlite3", *, timeout: float = 30.0) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._timeout = float(timeout)
        self._ensure_schema()
        with self.transaction(write=False) as conn:
            (total,) = conn.execute("SELECT COUNT(*) FROM tasks").fetchone()
        logger.info("Database ready db=%s tasks=%s", self._db_path, total)

    @property
    def path(self) -> Path:
        return self._db_path

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        # isolation_level=None: transactions are opened explicitly in transaction().
        conn = sqlite3.connect(str(self._db_path), timeout=self._timeout, isolation_level=None)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")

    @contextlib.contextmanager
    def transaction(self, *, write: bool = True) -> Iterator[sqlite3.Connection]:
        """
        Run a block atomically.

        Commits when the block exits normally, rolls back on any exception.
        Readers in other transactions only ever see committed state.
        """
        conn = self._get_conn()
        try:
            conn.execute("BEGIN IMMEDIATE" if write else "BEGIN")
            yield conn
            conn.execute("COMMIT")
        except Exception:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("BEGIN IMMEDIATE")

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    owner_id INTEGER NOT NULL,
                    title TEXT NOT NULL,
                    description TEXT,
                    priority TEXT NOT NULL DEFAULT 'MEDIUM',
                    created_at REAL NOT NULL,
                    deadline REAL,
                    completed_at REAL,
                    completed INTEGER NOT NULL DEFAULT 0,
                    expired INTEGER NOT NULL DEFAULT 0,
                    deadline_tracking_enabled INTEGER NOT NULL DEFAULT 0,
                    reward_count INTEGER NOT NULL DEFAULT 0
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tomatoes (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    owner_id INTEGER NOT NULL,
                    task_id INTEGER NOT NULL,
                    issued_at REAL NOT NULL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS punishments (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    owner_id INTEGER NOT NULL,
                    task_id INTEGER NOT NULL,
                    created_at REAL NOT NULL,
                    tag TEXT NOT NULL,
                    resolved INTEGER NOT NULL DEFAULT 0,
                    resolved_by_task_id INTEGER
                )
                """
            )

            # Migrations (safe): add missing columns.
            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("Database migration: added tasks.%s", name)

            add_col("description", "TEXT")
            add_col("priority", "TEXT NOT NULL DEFAULT 'MEDIUM'")
            add_col("completed_at", "REAL")
            add_col("deadline_tracking_enabled", "INTEGER NOT NULL DEFAULT 0")
            add_col("reward_count", "INTEGER NOT NULL DEFAULT 0")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_owner ON tasks(owner_id)")
            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_tasks_expirable "
                "ON tasks(deadline_tracking_enabled, completed, expired, deadline)"
            )
            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_tomatoes_owner_task ON tomatoes(owner_id, task_id)"
            )
            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_punishments_owner_open "
                "ON punishments(owner_id, resolved, created_at, id)"
            )

            cur.execute("COMMIT")
        finally:
            conn.close()


def _row_to_task(row: sqlite3.Row) -> Task:
    return Task(
        id=int(row["id"]),
        owner_id=int(row["owner_id"]),
        title=str(row["title"] or ""),
        created_at=float(row["created_at"] or 0.0),
        description=row["description"],
        priority=Priority.from_db(row["priority"]),
        deadline=float(row["deadline"]) if row["deadline"] is not None else None,
        completed_at=float(row["completed_at"]) if row["completed_at"] is not None else None,
        completed=bool(row["completed"]),
        expired=bool(row["expired"]),
        deadline_tracking_enabled=bool(row["deadline_tracking_enabled"]),
        reward_count=int(row["reward_count"] or 0),
    )


class TaskStore:
    """Task repository bound to one open transaction (see Database.transaction)."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def save(self, task: Task) -> Task:
        params = (
            int(task.owner_id),
            task.title,
            task.description,
            task.priority.value,
            float(task.created_at),
            task.deadline,
            task.completed_at,
            int(task.completed),
            int(task.expired),
            int(task.deadline_tracking_enabled),
            int(task.reward_count),
        )

        if task.id is None:
            cur = self._conn.execute(
                """
                INSERT INTO tasks(
                    owner_id, title, description, priority, created_at,
                    deadline, completed_at, completed, expired,
                    deadline_tracking_enabled, reward_count
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                params,
            )
            rowid = cur.lastrowid
            if rowid is None:
                raise RuntimeError("SQLite did not return lastrowid for tasks insert")
            logger.debug("Task inserted id=%s owner=%s", rowid, task.owner_id)
            return replace(task, id=int(rowid))

        self._conn.execute(
            """
            UPDATE tasks
            SET owner_id = ?, title = ?, description = ?, priority = ?, created_at = ?,
                deadline = ?, completed_at = ?, completed = ?, expired = ?,
                deadline_tracking_enabled = ?, reward_count = ?
            WHERE id = ?
            """,
            (*params, int(task.id)),
        )
        return task

    def find_by_id(self, task_id: int) -> Task | None:
        row = self._conn.execute("SELECT * FROM tasks WHERE id = ?", (int(task_id),)).fetchone()
        return _row_to_task(row) if row else None

    def find_by_owner(self, owner_id: int) -> list[Task]:
        rows = self._conn.execute(
            "SELECT * FROM tasks WHERE owner_id = ? ORDER BY created_at ASC, id ASC",
            (int(owner_id),),
        ).fetchall()
        return [_row_to_task(r) for r in rows]

    def find_expirable(self, now_ts: float) -> list[Task]:
        """Tasks whose deadline has passed while still tracked, incomplete and not yet expired."""
        rows = self._conn.execute(
            """
            SELECT *
            FROM tasks
            WHERE deadline_tracking_enabled = 1
              AND completed = 0
              AND expired = 0
              AND deadline IS NOT NULL
              AND deadline < ?
            ORDER BY deadline ASC, id ASC
            """,
            (float(now_ts),),
        ).fetchall()
        return [_row_to_task(r) for r in rows]

    def try_mark_expired(self, task_id: int, *, now_ts: float) -> bool:
        """
        Atomically transitions:
          tracked, incomplete, not expired, deadline < now  ->  expired = 1

        Returns True if the row was flipped by this caller.
        """
        cur = self._conn.execute(
            """
            UPDATE tasks
            SET expired = 1
            WHERE id = ?
              AND deadline_tracking_enabled = 1
              AND completed = 0
              AND expired = 0
              AND deadline IS NOT NULL
              AND deadline < ?
            """,
            (int(task_id), float(now_ts)),
        )
        return cur.rowcount == 1

    def delete(self, task: Task) -> None:
        if task.id is None:
            return
        self._conn.execute("DELETE FROM tasks WHERE id = ?", (int(task.id),))
        logger.debug("Task deleted id=%s owner=%s", task.id, task.owner_id)
