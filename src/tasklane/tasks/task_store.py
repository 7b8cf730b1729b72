# src/tasklane/tasks/task_store.py

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Literal

from ..core.errors import InvalidTransitionError, NotFoundError
from .categories import CategoryRegistry
from .filters import Predicate, TaskFilter, canonical_sort_key
from .task_models import Task, TaskStatus
from .time_policy import compute_due_date, ensure_utc, utcnow
from .validation import ValidationResult, check_fields, validate_postpone

logger = logging.getLogger(__name__)

ValidationPolicy = Literal["fail_fast", "accumulate"]

# Status state machine. Only postponed -> pending goes "backwards".
VALID_TRANSITIONS: dict[TaskStatus, set[TaskStatus]] = {
    TaskStatus.PENDING: {TaskStatus.COMPLETED, TaskStatus.POSTPONED, TaskStatus.DELETED},
    TaskStatus.POSTPONED: {TaskStatus.PENDING, TaskStatus.POSTPONED, TaskStatus.DELETED},
    TaskStatus.COMPLETED: {TaskStatus.DELETED},
    TaskStatus.DELETED: set(),
}

EDITABLE_STATUSES = frozenset({TaskStatus.PENDING, TaskStatus.POSTPONED})


def validate_transition(from_status: TaskStatus, to_status: TaskStatus) -> bool:
    return to_status in VALID_TRANSITIONS.get(from_status, set())


def _new_id() -> str:
    return uuid.uuid4().hex[:10]


@dataclass(slots=True, frozen=True)
class StoreState:
    """Consistent copy of the store handed to the persistence layer."""

    tasks: tuple[Task, ...]
    revision: int
    updated_at: datetime | None


class TaskView:
    """
    Lazily produced, restartable view returned by TaskStore.list().

    The underlying tasks are captured when list() is called; filtering and
    the canonical ordering are applied on each iteration.
    """

    def __init__(self, items: list[tuple[Task, int]], predicate: Predicate | None) -> None:
        self._items = items
        self._predicate = predicate

    def __iter__(self) -> Iterator[Task]:
        pred = self._predicate
        ordered = sorted(self._items, key=lambda it: canonical_sort_key(it[0], it[1]))
        for task, _ in ordered:
            if pred is None or pred(task):
                yield task

    def __len__(self) -> int:
        return sum(1 for _ in self)

    def __bool__(self) -> bool:
        return next(iter(self), None) is not None

    def ids(self) -> list[str]:
        return [t.id for t in self]


class TaskStore:
    """
    In-memory authoritative task collection.

    Thread-safety:
    - every mutation runs its read-modify-write under one re-entrant lock
    - tasks are immutable values; readers copy references under the same
      short-lived lock and never see a partially updated task

    Every operation is all-or-nothing: the new Task value is fully built and
    validated before it replaces the old one.
    """

    def __init__(
        self,
        *,
        registry: CategoryRegistry | None = None,
        clock: Callable[[], datetime] = utcnow,
        owner: str | None = None,
        id_factory: Callable[[], str] = _new_id,
        validation_policy: ValidationPolicy = "fail_fast",
    ) -> None:
        if validation_policy not in ("fail_fast", "accumulate"):
            raise ValueError(f"unknown validation policy: {validation_policy!r}")
        self.registry = registry if registry is not None else CategoryRegistry()
        self._clock = clock
        self._owner = owner
        self._id_factory = id_factory
        self._policy: ValidationPolicy = validation_policy

        self._lock = threading.RLock()
        self._tasks: dict[str, Task] = {}
        self._order: dict[str, int] = {}
        self._next_index = 0
        self._revision = 0
        self._updated_at: datetime | None = None

    # ---- low-level helpers ----

    def _now(self) -> datetime:
        return ensure_utc(self._clock())

    def _raise_invalid(self, result: ValidationResult) -> None:
        if self._policy == "accumulate":
            result.raise_all()
        else:
            result.raise_first()

    def _require(self, task_id: str) -> Task:
        task = self._tasks.get(task_id)
        if task is None:
            raise NotFoundError(task_id)
        return task

    def _check_transition(self, task: Task, target: TaskStatus, action: str) -> None:
        if not validate_transition(task.status, target):
            raise InvalidTransitionError(task.id, task.status.value, action)

    def _stamp(self, previous: datetime) -> datetime:
        # last-updated never moves backwards, even if the clock does
        return max(self._now(), previous)

    def _commit(self, task: Task) -> Task:
        if task.id not in self._order:
            self._order[task.id] = self._next_index
            self._next_index += 1
        self._tasks[task.id] = task
        self._revision += 1
        self._updated_at = task.updated_at
        return task

    def _allocate_id(self) -> str:
        for _ in range(16):
            tid = str(self._id_factory())
            if tid and tid not in self._tasks:
                return tid
        raise RuntimeError("could not allocate a unique task id")

    # ---- queries ----

    @property
    def revision(self) -> int:
        with self._lock:
            return self._revision

    def count(self) -> int:
        with self._lock:
            return len(self._tasks)

    def get(self, task_id: str) -> Task:
        with self._lock:
            return self._require(task_id)

    def list(self, flt: Predicate | None = None, **criteria: Any) -> TaskView:
        """
        List tasks in canonical order.

        `flt` is any predicate (e.g. a TaskFilter); keyword criteria are
        passed to TaskFilter.build() and combined with it.
        """
        predicate: Predicate | None = flt
        if criteria:
            built = TaskFilter.build(**criteria)
            predicate = built & flt if flt is not None else built
        with self._lock:
            items = [(task, self._order[tid]) for tid, task in self._tasks.items()]
        return TaskView(items, predicate)

    def export_state(self) -> StoreState:
        with self._lock:
            return StoreState(
                tasks=tuple(self._tasks.values()),
                revision=self._revision,
                updated_at=self._updated_at,
            )

    def load_state(
        self,
        tasks: Iterable[Task],
        *,
        revision: int = 0,
        updated_at: datetime | None = None,
    ) -> None:
        """Replace the whole collection (used when loading from disk)."""
        loaded = list(tasks)
        seen: set[str] = set()
        for task in loaded:
            if task.id in seen:
                raise ValueError(f"duplicate task id in loaded data: {task.id}")
            seen.add(task.id)
        # Re-bind categories to the registry so spelling and kind stay canonical.
        loaded = [replace(t, category=self.registry.ensure(t.category.name)) for t in loaded]

        with self._lock:
            self._tasks = {t.id: t for t in loaded}
            self._order = {t.id: i for i, t in enumerate(loaded)}
            self._next_index = len(loaded)
            self._revision = int(revision)
            self._updated_at = updated_at
        logger.info("TaskStore loaded tasks=%d revision=%d", len(loaded), revision)

    # ---- mutations ----

    def create(self, fields: Mapping[str, Any]) -> Task:
        now = self._now()
        result = check_fields(fields, created_at=now, registry=self.registry, partial=False)
        self._raise_invalid(result)
        values = result.values

        duration = values["duration"]
        explicit_due = values["due_at"]
        due_at = explicit_due if explicit_due is not None else compute_due_date(now, duration)

        with self._lock:
            category = self.registry.ensure(values["category"].name)
            task = Task(
                id=self._allocate_id(),
                title=values["title"],
                description=values["description"],
                category=category,
                priority=values["priority"],
                duration=duration,
                status=TaskStatus.PENDING,
                created_at=now,
                due_at=due_at,
                updated_at=now,
                place=values["place"],
                assignee=values["assignee"] or self._owner,
                collaborators=values["collaborators"],
                tags=values["tags"],
                due_explicit=explicit_due is not None,
            )
            self._commit(task)

        logger.info(
            "Task created id=%s priority=%d category=%s due_at=%s",
            task.id,
            task.priority,
            task.category.name,
            task.due_at.isoformat(),
        )
        return task

    def update(self, task_id: str, changes: Mapping[str, Any]) -> Task:
        with self._lock:
            current = self._require(task_id)
            if current.status not in EDITABLE_STATUSES:
                raise InvalidTransitionError(task_id, current.status.value, "update")

            result = check_fields(
                changes, created_at=current.created_at, registry=self.registry, partial=True
            )
            self._raise_invalid(result)
            values = result.values
            if not values:
                return current

            updates: dict[str, Any] = {}
            for name in ("title", "description", "priority", "place", "collaborators", "tags"):
                if name in values:
                    updates[name] = values[name]
            if "assignee" in values:
                updates["assignee"] = values["assignee"] or self._owner
            if "category" in values:
                updates["category"] = self.registry.ensure(values["category"].name)

            duration = values.get("duration", current.duration)
            updates["duration"] = duration
            if "due_at" in values and values["due_at"] is not None:
                updates["due_at"] = values["due_at"]
                updates["due_explicit"] = True
            elif "due_at" in values:
                # due_at=None clears an override: back to the duration default.
                updates["due_at"] = compute_due_date(current.created_at, duration)
                updates["due_explicit"] = False
            elif "duration" in values and not current.due_explicit:
                # Anchored to the original creation time so repeated edits do not drift.
                updates["due_at"] = compute_due_date(current.created_at, duration)

            updates["updated_at"] = self._stamp(current.updated_at)
            task = self._commit(replace(current, **updates))

        logger.debug("Task updated id=%s fields=%s", task_id, sorted(values))
        return task

    def complete(self, task_id: str) -> Task:
        with self._lock:
            current = self._require(task_id)
            self._check_transition(current, TaskStatus.COMPLETED, "complete")
            now = self._stamp(current.updated_at)
            task = self._commit(
                replace(
                    current,
                    status=TaskStatus.COMPLETED,
                    completed_at=max(now, current.created_at),
                    updated_at=now,
                )
            )
        logger.info("Task %s -> completed", task_id)
        return task

    def postpone(self, task_id: str, new_due: datetime | str) -> Task:
        with self._lock:
            current = self._require(task_id)
            self._check_transition(current, TaskStatus.POSTPONED, "postpone")
            due_at = validate_postpone(current.due_at, new_due)
            task = self._commit(
                replace(
                    current,
                    status=TaskStatus.POSTPONED,
                    due_at=due_at,
                    due_explicit=True,
                    due_history=current.due_history + (current.due_at,),
                    updated_at=self._stamp(current.updated_at),
                )
            )
        logger.info("Task %s -> postponed until %s", task_id, due_at.isoformat())
        return task

    def restore(self, task_id: str) -> Task:
        with self._lock:
            current = self._require(task_id)
            if current.status is not TaskStatus.POSTPONED:
                raise InvalidTransitionError(task_id, current.status.value, "restore")
            task = self._commit(
                replace(current, status=TaskStatus.PENDING, updated_at=self._stamp(current.updated_at))
            )
        logger.info("Task %s -> pending (restored)", task_id)
        return task

    def delete(self, task_id: str) -> None:
        with self._lock:
            current = self._require(task_id)
            self._check_transition(current, TaskStatus.DELETED, "delete")
            self._commit(
                replace(current, status=TaskStatus.DELETED, updated_at=self._stamp(current.updated_at))
            )
        logger.info("Task %s -> deleted", task_id)

    def purge(self, task_id: str) -> None:
        with self._lock:
            current = self._require(task_id)
            if current.status is not TaskStatus.DELETED:
                raise InvalidTransitionError(task_id, current.status.value, "purge")
            del self._tasks[task_id]
            del self._order[task_id]
            self._revision += 1
            self._updated_at = self._stamp(self._updated_at or current.updated_at)
        logger.info("Task %s purged", task_id)

    def purge_deleted(self) -> int:
        """Purge every tombstone. Returns the number of tasks removed."""
        with self._lock:
            ids = [tid for tid, t in self._tasks.items() if t.status is TaskStatus.DELETED]
            for tid in ids:
                self.purge(tid)
        return len(ids)
