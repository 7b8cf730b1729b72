# src/tasklane/storage/snapshot.py

"""
Snapshot: immutable, versioned point-in-time copy of the store + categories.

Encoding is deterministic (fixed key order, fixed indentation, trailing
newline), so encoding a freshly decoded snapshot reproduces the same bytes.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from ..tasks.categories import PREDEFINED_CATEGORIES
from ..tasks.task_models import Category, CategoryKind, DurationClass, Priority, Task, TaskStatus
from ..tasks.task_store import TaskStore
from ..tasks.time_policy import parse_iso, to_iso

SCHEMA_VERSION = 1


class SnapshotDecodeError(ValueError):
    """The bytes on disk are not a valid snapshot."""


class StaleCategoriesError(SnapshotDecodeError):
    """The category file belongs to a different revision than the task file."""

    def __init__(self, expected: int, found: object) -> None:
        super().__init__(f"category file revision {found!r} does not match task file revision {expected}")
        self.expected = expected
        self.found = found


@dataclass(slots=True, frozen=True)
class Snapshot:
    tasks: tuple[Task, ...]
    categories: tuple[Category, ...]
    revision: int
    updated_at: datetime | None
    schema_version: int = SCHEMA_VERSION

    @property
    def task_count(self) -> int:
        return len(self.tasks)

    @classmethod
    def empty(cls) -> Snapshot:
        return cls(tasks=(), categories=(), revision=0, updated_at=None)

    @classmethod
    def capture(cls, store: TaskStore) -> Snapshot:
        state = store.export_state()
        return cls(
            tasks=state.tasks,
            categories=tuple(store.registry.all()),
            revision=state.revision,
            updated_at=state.updated_at,
        )

    def apply_to(self, store: TaskStore) -> None:
        for cat in self.categories:
            store.registry.ensure(cat.name)
        store.load_state(self.tasks, revision=self.revision, updated_at=self.updated_at)


# ---- records ----


def _iso_or_none(value: datetime | None) -> str | None:
    return to_iso(value) if value is not None else None


def task_to_record(task: Task) -> dict[str, Any]:
    return {
        "id": task.id,
        "title": task.title,
        "description": task.description,
        "category": task.category.name,
        "priority": int(task.priority),
        "duration": task.duration.value,
        "status": task.status.value,
        "created_at": to_iso(task.created_at),
        "due_at": to_iso(task.due_at),
        "updated_at": to_iso(task.updated_at),
        "completed_at": _iso_or_none(task.completed_at),
        "due_explicit": task.due_explicit,
        "due_history": [to_iso(d) for d in task.due_history],
        "place": task.place,
        "assignee": task.assignee,
        "collaborators": list(task.collaborators),
        "tags": list(task.tags),
    }


def _category_from_name(name: str) -> Category:
    name = name.strip()
    if not name:
        raise SnapshotDecodeError("category name is blank")
    kind = CategoryKind.PREDEFINED if name.casefold() in PREDEFINED_CATEGORIES else CategoryKind.CUSTOM
    return Category(name, kind)


def task_from_record(raw: Any) -> Task:
    if not isinstance(raw, dict):
        raise SnapshotDecodeError("task record must be an object")
    try:
        completed_raw = raw.get("completed_at")
        task = Task(
            id=str(raw["id"]),
            title=str(raw["title"]),
            description=str(raw.get("description") or ""),
            category=_category_from_name(str(raw["category"])),
            priority=Priority(int(raw["priority"])),
            duration=DurationClass.parse(raw["duration"]),
            status=TaskStatus(raw["status"]),
            created_at=parse_iso(raw["created_at"]),
            due_at=parse_iso(raw["due_at"]),
            updated_at=parse_iso(raw["updated_at"]),
            completed_at=parse_iso(completed_raw) if completed_raw else None,
            due_explicit=bool(raw.get("due_explicit", False)),
            due_history=tuple(parse_iso(d) for d in raw.get("due_history") or ()),
            place=raw.get("place"),
            assignee=raw.get("assignee"),
            collaborators=tuple(str(c) for c in raw.get("collaborators") or ()),
            tags=tuple(str(t) for t in raw.get("tags") or ()),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise SnapshotDecodeError(f"invalid task record {raw.get('id')!r}: {exc}") from exc
    if task.due_at <= task.created_at:
        raise SnapshotDecodeError(f"task record {task.id!r} is not due after its creation time")
    return task


# ---- documents ----


def _dump(doc: dict[str, Any]) -> bytes:
    return (json.dumps(doc, ensure_ascii=False, indent=2) + "\n").encode("utf-8")


def _load(data: bytes, what: str) -> dict[str, Any]:
    try:
        doc = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise SnapshotDecodeError(f"{what} is not valid JSON: {exc}") from exc
    if not isinstance(doc, dict) or not isinstance(doc.get("meta"), dict):
        raise SnapshotDecodeError(f"{what} has no meta section")
    version = doc["meta"].get("schema_version")
    if version != SCHEMA_VERSION:
        raise SnapshotDecodeError(f"{what} has unsupported schema_version {version!r}")
    return doc


def encode_tasks(snapshot: Snapshot) -> bytes:
    return _dump(
        {
            "meta": {
                "schema_version": snapshot.schema_version,
                "revision": snapshot.revision,
                "task_count": snapshot.task_count,
                "updated_at": _iso_or_none(snapshot.updated_at),
            },
            "tasks": [task_to_record(t) for t in snapshot.tasks],
        }
    )


def encode_categories(snapshot: Snapshot) -> bytes:
    return _dump(
        {
            "meta": {
                "schema_version": snapshot.schema_version,
                "revision": snapshot.revision,
            },
            "categories": [{"name": c.name, "kind": c.kind.value} for c in snapshot.categories],
        }
    )


def decode_categories(data: bytes, *, revision: int | None = None) -> tuple[Category, ...]:
    """
    Decode the category file. With `revision` set, a file written for any other
    revision raises StaleCategoriesError.
    """
    doc = _load(data, "category file")
    if revision is not None and doc["meta"].get("revision") != revision:
        raise StaleCategoriesError(revision, doc["meta"].get("revision"))
    items = doc.get("categories")
    if not isinstance(items, list):
        raise SnapshotDecodeError("category file has no categories list")
    out: list[Category] = []
    for item in items:
        if not isinstance(item, dict) or not isinstance(item.get("name"), str) or not item["name"].strip():
            raise SnapshotDecodeError("invalid category record")
        try:
            kind = CategoryKind(item.get("kind", CategoryKind.CUSTOM.value))
        except ValueError as exc:
            raise SnapshotDecodeError(f"invalid category kind: {exc}") from exc
        out.append(Category(item["name"], kind))
    return tuple(out)


def decode_snapshot(tasks_data: bytes, categories_data: bytes | None = None) -> Snapshot:
    doc = _load(tasks_data, "task file")
    meta = doc["meta"]
    records = doc.get("tasks")
    if not isinstance(records, list):
        raise SnapshotDecodeError("task file has no tasks list")
    tasks = tuple(task_from_record(r) for r in records)
    if len({t.id for t in tasks}) != len(tasks):
        raise SnapshotDecodeError("task file contains duplicate ids")
    if meta.get("task_count") != len(tasks):
        raise SnapshotDecodeError(
            f"task_count mismatch: meta={meta.get('task_count')!r} actual={len(tasks)}"
        )
    try:
        revision = int(meta.get("revision", 0))
        updated_raw = meta.get("updated_at")
        updated_at = parse_iso(updated_raw) if updated_raw else None
    except (TypeError, ValueError) as exc:
        raise SnapshotDecodeError(f"invalid meta section: {exc}") from exc

    if categories_data is None:
        categories: tuple[Category, ...] = ()
    else:
        categories = decode_categories(categories_data, revision=revision)
    return Snapshot(tasks=tasks, categories=categories, revision=revision, updated_at=updated_at)


def categories_from_tasks(tasks: Iterable[Task]) -> tuple[Category, ...]:
    """Predefined categories plus every custom category the tasks reference."""
    out = {name: Category(name, CategoryKind.PREDEFINED) for name in PREDEFINED_CATEGORIES}
    for task in tasks:
        out.setdefault(task.category.key, task.category)
    return tuple(out.values())
