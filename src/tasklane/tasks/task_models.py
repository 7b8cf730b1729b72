# src/tasklane/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum, StrEnum

from . import time_policy


class TaskStatus(StrEnum):
    """
    Task lifecycle status.

    Allowed transitions live in task_store.VALID_TRANSITIONS.
    """

    PENDING = "pending"
    COMPLETED = "completed"
    POSTPONED = "postponed"
    DELETED = "deleted"


class Priority(IntEnum):
    """Eisenhower matrix class, stored as rank 1 (highest) .. 4."""

    URGENT_IMPORTANT = 1
    URGENT_NOT_IMPORTANT = 2
    NOT_URGENT_IMPORTANT = 3
    NOT_URGENT_NOT_IMPORTANT = 4

    @property
    def label(self) -> str:
        return {
            Priority.URGENT_IMPORTANT: "urgent + important",
            Priority.URGENT_NOT_IMPORTANT: "urgent + not important",
            Priority.NOT_URGENT_IMPORTANT: "not urgent + important",
            Priority.NOT_URGENT_NOT_IMPORTANT: "not urgent + not important",
        }[self]


DEFAULT_PRIORITY = Priority.NOT_URGENT_NOT_IMPORTANT


class DurationClass(StrEnum):
    SHORT_TERM = "short term"
    MID_TERM = "mid term"
    LONG_TERM = "long term"

    @property
    def offset_days(self) -> int:
        return _DURATION_OFFSETS[self]

    @classmethod
    def parse(cls, raw: str | DurationClass) -> DurationClass:
        """Accept "short term", "short_term", "short-term", "short", "SHORT" ..."""
        if isinstance(raw, DurationClass):
            return raw
        key = str(raw).strip().lower().replace("_", " ").replace("-", " ")
        key = " ".join(key.split())
        if key in _DURATION_ALIASES:
            return _DURATION_ALIASES[key]
        return cls(key)


_DURATION_OFFSETS = {
    DurationClass.SHORT_TERM: 7,
    DurationClass.MID_TERM: 30,
    DurationClass.LONG_TERM: 90,
}

_DURATION_ALIASES = {
    "short": DurationClass.SHORT_TERM,
    "mid": DurationClass.MID_TERM,
    "medium": DurationClass.MID_TERM,
    "medium term": DurationClass.MID_TERM,
    "long": DurationClass.LONG_TERM,
}

DEFAULT_DURATION = DurationClass.SHORT_TERM


class CategoryKind(StrEnum):
    PREDEFINED = "predefined"
    CUSTOM = "custom"


@dataclass(slots=True, frozen=True)
class Category:
    name: str
    kind: CategoryKind = CategoryKind.CUSTOM

    @property
    def is_predefined(self) -> bool:
        return self.kind is CategoryKind.PREDEFINED

    @property
    def key(self) -> str:
        return self.name.casefold()

    def __str__(self) -> str:
        return self.name


@dataclass(slots=True, frozen=True)
class Task:
    """
    Immutable task value.

    The store replaces a task wholesale on every mutation, so readers never
    observe a half-updated record. Elapsed and remaining time are derived on
    read (see elapsed_minutes / remaining_days) and never stored.
    """

    id: str
    title: str
    category: Category
    priority: Priority
    duration: DurationClass
    status: TaskStatus
    created_at: datetime
    due_at: datetime
    updated_at: datetime

    description: str = ""
    place: str | None = None
    assignee: str | None = None
    collaborators: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()

    completed_at: datetime | None = None
    due_explicit: bool = False
    due_history: tuple[datetime, ...] = field(default_factory=tuple)

    def elapsed_minutes(self, now: datetime) -> int:
        return time_policy.elapsed(self.created_at, now, self.status, self.completed_at)

    def remaining_days(self, now: datetime) -> int:
        return time_policy.remaining_days(self.due_at, now)

    @property
    def original_due_at(self) -> datetime:
        return self.due_history[0] if self.due_history else self.due_at
