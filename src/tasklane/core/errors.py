# src/tasklane/core/errors.py

"""
Error taxonomy for the task engine.

Store-level errors (validation / not-found / transition) are raised before any
mutation happens, so the in-memory store is unchanged when they propagate.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from pathlib import Path

    from ..storage.snapshot import Snapshot


class TaskError(Exception):
    """Base class for every error raised by the engine."""


class ValidationError(TaskError):
    def __init__(
        self,
        field: str,
        rule: str,
        message: str | None = None,
        *,
        violations: list[Any] | None = None,
    ) -> None:
        self.field = field
        self.rule = rule
        self.message = message or f"{field}: {rule}"
        # All violations found (only more than one in accumulate mode).
        self.violations = list(violations or [])
        super().__init__(self.message)


class NotFoundError(TaskError):
    def __init__(self, task_id: str) -> None:
        self.task_id = task_id
        super().__init__(f"Task not found: {task_id}")


class InvalidTransitionError(TaskError):
    def __init__(self, task_id: str, status: str, action: str) -> None:
        self.task_id = task_id
        self.status = status
        self.action = action
        super().__init__(f"Cannot {action} task {task_id} while it is {status}")


class PersistenceError(TaskError):
    """I/O or decode failure while loading, saving or backing up."""


class RecoveredFromBackupError(TaskError):
    """
    Non-fatal: the canonical file was unreadable and a backup was used instead.

    The recovered snapshot travels with the error so callers can keep going.
    """

    def __init__(self, snapshot: Snapshot, backup_path: Path, cause: BaseException | None = None) -> None:
        self.snapshot = snapshot
        self.backup_path = backup_path
        self.cause = cause
        super().__init__(f"Data file was unreadable; restored from backup {backup_path}")
