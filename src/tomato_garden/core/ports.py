# src/tomato_garden/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The reconciliation engine and the sweeper depend on Protocols instead of
concrete implementations, so the SQLite stores stay swappable and tests can
drop in fakes.
"""

from typing import Any, Protocol


class TaskRepo(Protocol):
    def save(self, task: Any) -> Any: ...
    def find_by_id(self, task_id: int) -> Any | None: ...
    def find_by_owner(self, owner_id: int) -> list[Any]: ...
    def find_expirable(self, now_ts: float) -> list[Any]: ...
    def try_mark_expired(self, task_id: int, *, now_ts: float) -> bool: ...
    def delete(self, task: Any) -> None: ...


class RewardRepo(Protocol):
    def grant(self, owner_id: int, task_id: int, *, now_ts: float | None = None) -> Any: ...
    def count_by_owner(self, owner_id: int) -> int: ...
    def history_by_owner(self, owner_id: int) -> list[Any]: ...
    def revoke_by_owner_and_task(self, owner_id: int, task_id: int) -> int: ...


class DebtRepo(Protocol):
    def create(
            self,
            owner_id: int,
            task_id: int,
            tag: Any,
            *,
            now_ts: float | None = None,
    ) -> Any: ...

    def oldest_unresolved(self, owner_id: int) -> Any | None: ...
    def resolve(self, obligation: Any, resolving_task_id: int) -> bool: ...
    def claim_oldest_unresolved(self, owner_id: int, resolving_task_id: int) -> Any | None: ...
    def all_by_owner(self, owner_id: int) -> list[Any]: ...
    def unresolved_by_owner(self, owner_id: int) -> list[Any]: ...


class ExpiryTarget(Protocol):
    """What the expiry sweeper needs from the engine."""

    def now(self) -> float: ...
    def find_expirable(self, now_ts: float) -> list[Any]: ...
    def expire_task(self, task_id: int, *, now_ts: float | None = None) -> Any | None: ...
