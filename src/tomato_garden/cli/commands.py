# src/tomato_garden/cli/commands.py

from __future__ import annotations

import inspect
import logging
import re
from collections.abc import Callable
from datetime import datetime
from typing import cast

from ..core.errors import TomatoError, ValidationError
from ..core.state import AppState
from ..tasks.task_models import DebtObligation, Priority, Task
from ..tasks.task_sweeper import sweep_expired_tasks

CommandEmitter = Callable[[str], None]
CommandHandler3 = Callable[[AppState, list[str], int], str]
CommandHandler4 = Callable[[AppState, list[str], int, CommandEmitter | None], str]
CommandHandler = CommandHandler3 | CommandHandler4

logger = logging.getLogger(__name__)

_DURATION_RE = re.compile(r"^([+-])(\d+(?:\.\d+)?)([smhd])$")
_UNIT_SECONDS = {"s": 1, "m": 60, "h": 3600, "d": 86400}
_NO_DEADLINE = {"+none", "+never", "+-"}


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /add, /done, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(
        self,
        state: AppState,
        line: str,
        user_id: int | None = None,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.

        Domain errors (bad input, unknown or foreign task) become a one-line reply.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        uid = state.user_id if user_id is None else int(user_id)

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 4

        try:
            if nparams >= 4:
                h4 = cast(CommandHandler4, handler)
                return h4(state, args, uid, emit)

            h3 = cast(CommandHandler3, handler)
            return h3(state, args, uid)
        except TomatoError as e:
            logger.debug("Command /%s rejected: %s", name, e)
            return f"Error: {e}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- parsing / formatting helpers ----


_TS_ERRORS = (OverflowError, ValueError, OSError)


def _local_dt(ts: float) -> datetime:
    return datetime.fromtimestamp(ts).astimezone()


def _fmt_ts(ts: float | None) -> str:
    if ts is None:
        return "-"
    try:
        return _local_dt(ts).strftime("%Y-%m-%d %H:%M:%S")
    except _TS_ERRORS:
        return f"{ts:.0f}"


def _checked_deadline(ts: float, token: str) -> float:
    """Reject timestamps that datetime cannot represent."""
    try:
        _local_dt(ts)
    except _TS_ERRORS:
        raise ValidationError(f"bad deadline: {token!r} is out of range") from None
    return ts


def parse_deadline(token: str, *, now_ts: float) -> float | None:
    """
    Deadline tokens:
      +30m / +2h / +45s / +1d   relative to now
      -2s                       in the past (handy for trying out the sweeper)
      @2026-10-20T18:00         absolute, local time unless an offset is given
      +none                     no deadline
    """
    token = token.strip()
    if token.lower() in _NO_DEADLINE:
        return None

    m = _DURATION_RE.match(token.lower())
    if m:
        sign, amount, unit = m.groups()
        delta = float(amount) * _UNIT_SECONDS[unit]
        return _checked_deadline(now_ts + delta if sign == "+" else now_ts - delta, token)

    if token.startswith("@"):
        try:
            ts = datetime.fromisoformat(token[1:]).timestamp()
        except _TS_ERRORS:
            raise ValidationError(f"bad deadline: {token!r}") from None
        return _checked_deadline(ts, token)

    raise ValidationError(f"bad deadline: {token!r}")


def _is_deadline_token(token: str) -> bool:
    return token.startswith("@") or token.lower() in _NO_DEADLINE or bool(_DURATION_RE.match(token.lower()))


def _split_task_args(
    args: list[str], *, now_ts: float
) -> tuple[str, str | None, Priority | None, bool, float | None]:
    """
    Split "[deadline] [!priority] title words [-- description words]".

    Options are only read before the first title word, and "!word" counts as
    a priority only when it names one. A bare "--" gives an empty description.

    Returns (title, description, priority, deadline_given, deadline).
    """
    deadline_given = False
    deadline: float | None = None
    priority: Priority | None = None

    rest = list(args)
    while rest:
        tok = rest[0]
        if tok.startswith("!") and tok[1:].upper() in Priority.__members__:
            priority = Priority(tok[1:].upper())
        elif _is_deadline_token(tok):
            deadline = parse_deadline(tok, now_ts=now_ts)
            deadline_given = True
        else:
            break
        rest.pop(0)

    description: str | None = None
    if "--" in rest:
        idx = rest.index("--")
        description = " ".join(rest[idx + 1:])
        rest = rest[:idx]

    return " ".join(rest), description, priority, deadline_given, deadline


def _parse_task_id(args: list[str], usage: str) -> int:
    if not args:
        raise ValidationError(usage)
    try:
        return int(args[0].lstrip("#"))
    except ValueError:
        raise ValidationError(f"bad task id: {args[0]!r}") from None


def format_task(task: Task) -> str:
    state = "done" if task.completed else ("EXPIRED" if task.expired else "open")
    line = f"#{task.id} [{task.priority.value}] {task.title} ({state})"
    if task.deadline is not None:
        line += f" due {_fmt_ts(task.deadline)}"
    if task.completed:
        line += f" completed {_fmt_ts(task.completed_at)}"
        if task.reward_count:
            line += f" +{task.reward_count} tomato"
    if task.description:
        line += f"\n    {task.description}"
    return line


def format_debt(debt: DebtObligation) -> str:
    line = f"#{debt.id} {debt.tag.value} from task #{debt.task_id} at {_fmt_ts(debt.created_at)}"
    if debt.resolved:
        line += f" - resolved by task #{debt.resolved_by_task_id}"
    return line


# ---- handlers ----


def cmd_help(state: AppState, args: list[str], user_id: int) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str], user_id: int) -> str:
    settings = state.settings
    sweeper = "ON" if getattr(settings, "sweeper_enabled", False) else "OFF"
    interval = getattr(settings, "sweep_interval_seconds", "?")
    return (
        "Status:\n"
        f"  User: {user_id}\n"
        f"  Database: {state.db.path}\n"
        f"  Expiry sweeper: {sweeper} (every {interval}s)"
    )


def cmd_add(state: AppState, args: list[str], user_id: int) -> str:
    """
    /add [+30m|@2026-10-20T18:00] [!high] title [-- description]
    """
    title, description, priority, _, deadline = _split_task_args(args, now_ts=state.engine.now())
    task = state.engine.create_task(
        user_id,
        title=title,
        description=description,
        priority=priority or Priority.MEDIUM,
        deadline=deadline,
    )
    return f"Created {format_task(task)}"


def cmd_list(state: AppState, args: list[str], user_id: int) -> str:
    tasks = state.engine.list_tasks(user_id)
    if not tasks:
        return "No tasks yet. Use /add to create one."
    return "Tasks:\n" + "\n".join(f"  {format_task(t)}" for t in tasks)


def cmd_edit(state: AppState, args: list[str], user_id: int) -> str:
    """
    /edit ID [+2h|@...|+none] [!low] [new title] [-- new description]

    Anything not given keeps its current value; a bare "--" clears the description.
    """
    task_id = _parse_task_id(args, "Usage: /edit ID [deadline] [!priority] [title] [-- description]")
    current = state.engine.get_task(user_id, task_id)

    title, description, priority, deadline_given, deadline = _split_task_args(
        args[1:], now_ts=state.engine.now()
    )
    task = state.engine.update_task(
        user_id,
        task_id,
        title=title or current.title,
        description=description if description is not None else current.description,
        priority=priority or current.priority,
        deadline=deadline if deadline_given else current.deadline,
    )
    return f"Updated {format_task(task)}"


def cmd_done(state: AppState, args: list[str], user_id: int) -> str:
    task_id = _parse_task_id(args, "Usage: /done ID")
    task, completed_now = state.engine.try_complete_task(user_id, task_id)
    if not completed_now:
        return f"Already done: {format_task(task)}"

    if task.reward_count:
        note = "You earned a tomato!"
    else:
        note = "A punishment was paid off instead of earning a tomato."
    return f"Completed {format_task(task)}\n{note}"


def cmd_rm(state: AppState, args: list[str], user_id: int) -> str:
    task_id = _parse_task_id(args, "Usage: /rm ID")
    state.engine.delete_task(user_id, task_id)
    return f"Deleted task #{task_id}."


def cmd_tomatoes(state: AppState, args: list[str], user_id: int) -> str:
    return f"Tomatoes: {state.engine.reward_count(user_id)}"


def cmd_history(state: AppState, args: list[str], user_id: int) -> str:
    tokens = state.engine.reward_history(user_id)
    if not tokens:
        return "No tomatoes yet."
    lines = ["Tomato history (newest first):"]
    for t in tokens:
        lines.append(f"  {_fmt_ts(t.issued_at)} from task #{t.task_id}")
    return "\n".join(lines)


def cmd_debts(state: AppState, args: list[str], user_id: int) -> str:
    """
    /debts      -> open punishments (oldest first)
    /debts all  -> every punishment, resolved ones included
    """
    show_all = bool(args) and args[0].lower() == "all"
    debts = state.engine.all_debts(user_id) if show_all else state.engine.unresolved_debts(user_id)
    if not debts:
        return "No punishments." if show_all else "Nothing owed. Keep it up!"
    title = "All punishments:" if show_all else "Open punishments (oldest first):"
    return title + "\n" + "\n".join(f"  {format_debt(d)}" for d in debts)


def cmd_garden(state: AppState, args: list[str], user_id: int) -> str:
    g = state.engine.garden_summary(user_id)
    tags = ", ".join(f"{tag.value.lower()}={n}" for tag, n in g.by_tag.items())
    return (
        "Garden:\n"
        f"  Tomatoes: {g.tomatoes}\n"
        f"  Open punishments: {g.active_debts} ({tags})\n"
        f"  Open tasks: {g.open_tasks} (expired: {g.expired_tasks})"
    )


def cmd_sweep(
    state: AppState,
    args: list[str],
    user_id: int,
    emit: CommandEmitter | None = None,
) -> str:
    if emit:
        emit("[SWEEP] Checking deadlines...")
    n = sweep_expired_tasks(state.engine)
    return f"Expired {n} task(s)."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show current user, database and sweeper settings.")
registry.register(
    "add", cmd_add, help_text="Create a task: /add [+30m|@ISO] [!low|!medium|!high] title [-- description]."
)
registry.register("list", cmd_list, help_text="List your tasks.", aliases=["ls"])
registry.register(
    "edit", cmd_edit, help_text="Edit a task: /edit ID [+2h|@ISO|+none] [!priority] [title] [-- description]."
)
registry.register("done", cmd_done, help_text="Complete a task: /done ID.")
registry.register("rm", cmd_rm, help_text="Delete a task: /rm ID.", aliases=["delete"])
registry.register("tomatoes", cmd_tomatoes, help_text="Show your tomato count.")
registry.register("history", cmd_history, help_text="Show your tomato history.")
registry.register("debts", cmd_debts, help_text="Show punishments: /debts | /debts all.")
registry.register("garden", cmd_garden, help_text="Show your garden summary.")
registry.register("sweep", cmd_sweep, help_text="Run the deadline check right now.")
