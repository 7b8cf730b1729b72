# src/tasklane/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the engine.

The reminder scheduler depends on Protocols instead of concrete classes so
that presentation layers (console, tests, a future TUI) can plug in.
"""

from typing import TYPE_CHECKING, Any, Awaitable, Protocol

if TYPE_CHECKING:
    from ..tasks.task_scheduler import ReminderEvent


class ReminderSink(Protocol):
    """
    Presentation-side port: receives reminder events.

    Raising signals "not ready"; the scheduler logs it and retries the same
    reminder on the next scan.
    """

    def notify(self, event: ReminderEvent) -> Awaitable[None] | None: ...


class TaskReader(Protocol):
    """Read-only view of the task store needed by the scheduler."""

    def list(self, flt: Any = None, **criteria: Any) -> Any: ...
