# src/tomato_garden/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class Priority(StrEnum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"

    @classmethod
    def from_db(cls, raw: str | None) -> Priority:
        if not raw:
            return cls.MEDIUM
        try:
            return cls(raw)
        except ValueError:
            return cls.MEDIUM


class DebtTag(StrEnum):
    """
    Punishment flavor shown in the garden.

    Purely cosmetic: picked uniformly at random when a debt is created and
    never consulted by the reconciliation rules.
    """

    FOG = "FOG"
    WEEDS = "WEEDS"
    WILTED_LEAF = "WILTED_LEAF"

    @classmethod
    def from_db(cls, raw: str | None) -> DebtTag:
        if not raw:
            return cls.WEEDS
        try:
            return cls(raw)
        except ValueError:
            return cls.WEEDS


@dataclass(slots=True)
class Task:
    """
    A task owned by exactly one user.

    Flags are stored explicitly:
    - completed: finished by the owner; never reverts
    - expired: deadline passed while incomplete; only flips false -> true
    - deadline_tracking_enabled: true iff a deadline is set

    reward_count is fixed at completion time (0 or 1 under current rules).
    """

    id: int | None
    owner_id: int
    title: str
    created_at: float

    description: str | None = None
    priority: Priority = Priority.MEDIUM
    deadline: float | None = None
    completed_at: float | None = None

    completed: bool = False
    expired: bool = False
    deadline_tracking_enabled: bool = False
    reward_count: int = 0


@dataclass(frozen=True, slots=True)
class RewardToken:
    id: int
    owner_id: int
    task_id: int
    issued_at: float


@dataclass(frozen=True, slots=True)
class DebtObligation:
    id: int
    owner_id: int
    task_id: int  # the task whose missed deadline created this debt
    created_at: float
    tag: DebtTag
    resolved: bool = False
    resolved_by_task_id: int | None = None


@dataclass(frozen=True, slots=True)
class GardenSummary:
    tomatoes: int
    active_debts: int
    by_tag: dict[DebtTag, int]
    open_tasks: int
    expired_tasks: int
