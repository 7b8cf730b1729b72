# src/tasklane/cli/commands.py

from __future__ import annotations

import logging
import shlex
from collections.abc import Callable
from typing import Any

from ..core.errors import (
    InvalidTransitionError,
    NotFoundError,
    PersistenceError,
    TaskError,
    ValidationError,
)
from ..core.state import AppState
from ..tasks.task_api import flush, flush_or_warn
from ..tasks.task_models import Task, TaskStatus
from ..tasks.time_policy import to_iso, utcnow

CommandHandler = Callable[[AppState, list[str]], str]

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_INVALID = 1
EXIT_NOT_FOUND = 2
EXIT_PERSISTENCE = 3


def exit_code_for(exc: BaseException) -> int:
    if isinstance(exc, NotFoundError):
        return EXIT_NOT_FOUND
    if isinstance(exc, PersistenceError):
        return EXIT_PERSISTENCE
    return EXIT_INVALID


def describe_error(exc: TaskError) -> str:
    if isinstance(exc, ValidationError):
        if len(exc.violations) > 1:
            details = "; ".join(f"{v.field}: {v.message}" for v in exc.violations)
            return f"Invalid input: {details}"
        return f"Invalid {exc.field}: {exc.message}"
    if isinstance(exc, InvalidTransitionError):
        return f"Not allowed: {exc}"
    return str(exc)


class CommandRegistry:
    """Simple slash-command registry used by the console and the one-shot CLI."""

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

    def handle(self, state: AppState, line: str) -> str | None:
        """
        Handle a string like "/command args".

        Returns a reply string or None if not a command. Engine errors
        (TaskError) propagate so callers can map them to messages or exit codes.
        """
        if not line.startswith("/"):
            return None

        try:
            parts = shlex.split(line[1:])
        except ValueError as exc:
            return f"Could not parse command: {exc}"
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        return handler(state, args)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- helpers ----

_FIELD_KEYS = {
    "title": "title",
    "desc": "description",
    "description": "description",
    "category": "category",
    "cat": "category",
    "priority": "priority",
    "p": "priority",
    "duration": "duration",
    "due": "due_at",
    "place": "place",
    "assignee": "assignee",
    "collaborators": "collaborators",
    "with": "collaborators",
    "tags": "tags",
}


def parse_fields(args: list[str]) -> tuple[dict[str, Any], list[str]]:
    """Split `key=value` tokens (known keys only) from free words."""
    fields: dict[str, Any] = {}
    words: list[str] = []
    for arg in args:
        key, sep, value = arg.partition("=")
        target = _FIELD_KEYS.get(key.lower()) if sep else None
        if target is None:
            words.append(arg)
            continue
        fields[target] = value if value != "" else None
    return fields, words


def resolve_id(state: AppState, raw: str) -> str:
    """Exact id, or a unique id prefix. Unknown ids are returned unchanged."""
    ids = state.store.list().ids()
    if raw in ids:
        return raw
    matches = [tid for tid in ids if tid.startswith(raw)]
    return matches[0] if len(matches) == 1 else raw


def format_task(task: Task, *, verbose: bool = False) -> str:
    now = utcnow()
    if task.status is TaskStatus.COMPLETED:
        when = "done"
    else:
        days = task.remaining_days(now)
        when = f"overdue {-days}d" if days < 0 else ("due today" if days == 0 else f"{days}d left")
    tags = " ".join(f"#{t}" for t in task.tags)
    line = (
        f"[{task.id}] P{int(task.priority)} {task.status.value:<9} "
        f"due {to_iso(task.due_at)[:10]} ({when})  {task.title}  @{task.category.name}"
    )
    if tags:
        line += f"  {tags}"
    if not verbose:
        return line

    details = [
        line,
        f"  priority:     {task.priority.label}",
        f"  duration:     {task.duration.value}",
        f"  created:      {to_iso(task.created_at)}",
        f"  due:          {to_iso(task.due_at)}",
        f"  elapsed:      {task.elapsed_minutes(now)} min",
    ]
    if task.description:
        details.append(f"  description:  {task.description}")
    if task.place:
        details.append(f"  place:        {task.place}")
    if task.assignee:
        details.append(f"  assignee:     {task.assignee}")
    if task.collaborators:
        details.append(f"  with:         {', '.join(task.collaborators)}")
    if task.due_history:
        details.append(f"  due history:  {', '.join(to_iso(d) for d in task.due_history)}")
    if task.completed_at:
        details.append(f"  completed:    {to_iso(task.completed_at)}")
    return "\n".join(details)


def _with_flush(state: AppState, reply: str) -> str:
    warning = flush_or_warn(state)
    return f"{reply}\n{warning}" if warning else reply


def _need_id(args: list[str], usage: str) -> str:
    if not args:
        raise ValidationError("id", "required", f"Usage: {usage}")
    return args[0]


# ---- handlers ----


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    store = state.store
    open_count = len(store.list(status=["pending", "postponed"]))
    return (
        "Status:\n"
        f"  Tasks: {store.count()} total, {open_count} open\n"
        f"  Revision: {store.revision}\n"
        f"  Data file: {state.persistence.tasks_path}\n"
        f"  Unsaved changes: {'YES' if state.unsaved_changes else 'no'}"
    )


def cmd_add(state: AppState, args: list[str]) -> str:
    """
    /add Review notes category=study priority=1 duration=short
    """
    fields, words = parse_fields(args)
    if words and "title" not in fields:
        fields["title"] = " ".join(words)
    task = state.store.create(fields)
    return _with_flush(state, f"Created {format_task(task)}")


def cmd_list(state: AppState, args: list[str]) -> str:
    """
    /list                      -> everything except deleted tasks
    /list all                  -> include deleted tasks
    /list status=pending tag=x category=study priority=1,2 from=2024-01-01 to=2024-02-01
    """
    criteria: dict[str, Any] = {}
    include_deleted = False
    for arg in args:
        key, sep, value = arg.partition("=")
        key = key.lower()
        if not sep:
            if key == "all":
                include_deleted = True
                continue
            raise ValidationError("filter", "unknown", f"Unknown list option: {arg}")
        if key in ("status", "category", "priority", "tags"):
            criteria[key] = value
        elif key == "tag":
            criteria["tags"] = value
        elif key == "from":
            criteria["due_from"] = value
        elif key == "to":
            criteria["due_to"] = value
        else:
            raise ValidationError("filter", "unknown", f"Unknown list option: {key}")

    if "status" not in criteria and not include_deleted:
        criteria["status"] = ["pending", "postponed", "completed"]
    try:
        tasks = list(state.store.list(**criteria))
    except ValueError as exc:
        raise ValidationError("filter", "invalid", f"Invalid filter value: {exc}") from exc
    if not tasks:
        return "No tasks."
    return "\n".join(format_task(t) for t in tasks)


def cmd_show(state: AppState, args: list[str]) -> str:
    task = state.store.get(resolve_id(state, _need_id(args, "/show <id>")))
    return format_task(task, verbose=True)


def cmd_edit(state: AppState, args: list[str]) -> str:
    task_id = resolve_id(state, _need_id(args, "/edit <id> key=value ..."))
    fields, words = parse_fields(args[1:])
    if words:
        raise ValidationError("fields", "unknown", f"Expected key=value pairs, got: {' '.join(words)}")
    task = state.store.update(task_id, fields)
    return _with_flush(state, f"Updated {format_task(task)}")


def cmd_done(state: AppState, args: list[str]) -> str:
    task = state.store.complete(resolve_id(state, _need_id(args, "/done <id>")))
    return _with_flush(state, f"Completed {format_task(task)}")


def cmd_postpone(state: AppState, args: list[str]) -> str:
    if len(args) < 2:
        raise ValidationError("due_at", "required", "Usage: /postpone <id> <new due ISO-8601>")
    task = state.store.postpone(resolve_id(state, args[0]), args[1])
    return _with_flush(state, f"Postponed {format_task(task)}")


def cmd_restore(state: AppState, args: list[str]) -> str:
    task = state.store.restore(resolve_id(state, _need_id(args, "/restore <id>")))
    return _with_flush(state, f"Restored {format_task(task)}")


def cmd_delete(state: AppState, args: list[str]) -> str:
    task_id = resolve_id(state, _need_id(args, "/delete <id>"))
    state.store.delete(task_id)
    return _with_flush(state, f"Deleted {task_id} (use /purge {task_id} to remove it permanently).")


def cmd_purge(state: AppState, args: list[str]) -> str:
    task_id = resolve_id(state, _need_id(args, "/purge <id>"))
    state.store.purge(task_id)
    return _with_flush(state, f"Purged {task_id}.")


def cmd_categories(state: AppState, args: list[str]) -> str:
    lines = ["Categories:"]
    for cat in state.registry.all():
        lines.append(f"  {cat.name}{'' if cat.is_predefined else ' (custom)'}")
    return "\n".join(lines)


def cmd_save(state: AppState, args: list[str]) -> str:
    snapshot = flush(state)
    return f"Saved {snapshot.task_count} tasks (revision {snapshot.revision})."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show store and storage status.")
registry.register(
    "add",
    cmd_add,
    help_text="Create a task: /add <title> [category= priority=1-4 duration= due= tags=a,b ...]",
    aliases=["new", "create"],
)
registry.register(
    "list",
    cmd_list,
    help_text="List tasks: /list [all] [status= category= priority= tag= from= to=]",
    aliases=["ls"],
)
registry.register("show", cmd_show, help_text="Show one task: /show <id>.")
registry.register("edit", cmd_edit, help_text="Edit a task: /edit <id> key=value ...", aliases=["update"])
registry.register("done", cmd_done, help_text="Complete a task: /done <id>.", aliases=["complete"])
registry.register("postpone", cmd_postpone, help_text="Postpone: /postpone <id> <new due>.")
registry.register("restore", cmd_restore, help_text="Reactivate a postponed task: /restore <id>.")
registry.register("delete", cmd_delete, help_text="Move a task to trash: /delete <id>.", aliases=["rm"])
registry.register("purge", cmd_purge, help_text="Permanently remove a deleted task: /purge <id>.")
registry.register("categories", cmd_categories, help_text="List categories.", aliases=["cats"])
registry.register("save", cmd_save, help_text="Write all changes to disk now.")
