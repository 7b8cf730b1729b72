# src/tasklane/tasks/filters.py

"""
Composable predicates for TaskStore.list() and the canonical sort key.

Usage:
    flt = TaskFilter.build(status="pending", priority=[1, 2]) & has_tag("exam")
    store.list(flt)
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import datetime

from .task_models import Priority, Task, TaskStatus
from .time_policy import ensure_utc, parse_iso

Predicate = Callable[[Task], bool]


def _as_set(value: object) -> set[str]:
    if isinstance(value, str):
        return {p.strip() for p in value.split(",") if p.strip()}
    if isinstance(value, Iterable):
        return {str(v).strip() for v in value if str(v).strip()}
    return {str(value)}


def _as_datetime(value: datetime | str) -> datetime:
    return ensure_utc(value) if isinstance(value, datetime) else parse_iso(value)


def status_in(statuses: Iterable[TaskStatus | str] | str) -> Predicate:
    wanted = {TaskStatus(s.lower()) for s in _as_set(statuses)}
    return lambda task: task.status in wanted


def category_in(categories: Iterable[str] | str) -> Predicate:
    wanted = {c.casefold() for c in _as_set(categories)}
    return lambda task: task.category.key in wanted


def priority_in(priorities: Iterable[int | str] | int | str) -> Predicate:
    raw = [priorities] if isinstance(priorities, int) else _as_set(priorities)
    wanted = {Priority(int(p)) for p in raw}
    return lambda task: task.priority in wanted


def due_between(start: datetime | str | None = None, end: datetime | str | None = None) -> Predicate:
    """Inclusive on both ends; either bound may be omitted."""
    lo = _as_datetime(start) if start is not None else None
    hi = _as_datetime(end) if end is not None else None

    def pred(task: Task) -> bool:
        if lo is not None and task.due_at < lo:
            return False
        if hi is not None and task.due_at > hi:
            return False
        return True

    return pred


def has_tag(*tags: str) -> Predicate:
    """Task carries every given tag."""
    wanted = {t.strip() for t in tags if t and t.strip()}
    return lambda task: wanted.issubset(task.tags)


class TaskFilter:
    """A conjunction of predicates. An empty filter matches everything."""

    def __init__(self, *predicates: Predicate) -> None:
        self._predicates: tuple[Predicate, ...] = tuple(predicates)

    def __call__(self, task: Task) -> bool:
        return all(p(task) for p in self._predicates)

    def __and__(self, other: Predicate) -> TaskFilter:
        return TaskFilter(*self._predicates, other)

    @classmethod
    def build(
        cls,
        *,
        status: Iterable[TaskStatus | str] | str | None = None,
        category: Iterable[str] | str | None = None,
        priority: Iterable[int | str] | int | str | None = None,
        due_from: datetime | str | None = None,
        due_to: datetime | str | None = None,
        tags: Iterable[str] | str | None = None,
    ) -> TaskFilter:
        preds: list[Predicate] = []
        if status is not None:
            preds.append(status_in(status))
        if category is not None:
            preds.append(category_in(category))
        if priority is not None:
            preds.append(priority_in(priority))
        if due_from is not None or due_to is not None:
            preds.append(due_between(due_from, due_to))
        if tags is not None:
            preds.append(has_tag(*_as_set(tags)))
        return cls(*preds)


_STATUS_RANK = {
    TaskStatus.PENDING: 0,
    TaskStatus.POSTPONED: 0,
    TaskStatus.COMPLETED: 1,
    TaskStatus.DELETED: 2,
}


def canonical_sort_key(task: Task, insertion_index: int) -> tuple:
    """
    Incomplete before complete, then priority rank, then due date, then
    insertion order, with the identifier as the final tie-breaker.
    """
    return (
        _STATUS_RANK[task.status],
        int(task.priority),
        task.due_at,
        insertion_index,
        task.id,
    )
