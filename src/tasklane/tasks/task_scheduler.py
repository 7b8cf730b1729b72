# src/tasklane/tasks/task_scheduler.py

from __future__ import annotations

"""
Reminder scheduler.

A small polling loop that:
- reads the pending tasks from the store (read-only, never blocks mutations
  for longer than the store's short copy lock),
- classifies each one against the due-soon / overdue thresholds,
- emits one ReminderEvent per (task, threshold, due date) per session through
  an injected ReminderSink.

Sink failures are logged; the reminder is not marked as sent, so it is
retried on the next scan.
"""

import asyncio
import inspect
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import StrEnum

from ..core.ports import ReminderSink, TaskReader
from .task_models import Task, TaskStatus
from .time_policy import ensure_utc, remaining, remaining_days, to_iso, utcnow

logger = logging.getLogger(__name__)


class ReminderThreshold(StrEnum):
    DUE_SOON = "due_soon"
    OVERDUE = "overdue"


@dataclass(slots=True, frozen=True)
class ReminderEvent:
    task_id: str
    title: str
    threshold: ReminderThreshold
    due_at: datetime
    remaining_days: int
    emitted_at: datetime

    @property
    def text(self) -> str:
        if self.threshold is ReminderThreshold.OVERDUE:
            return f"Overdue: {self.title} (was due {to_iso(self.due_at)})"
        return f"Due soon: {self.title} (due {to_iso(self.due_at)})"


MarkerKey = tuple[str, ReminderThreshold, datetime]


def classify(task: Task, now: datetime, due_soon: timedelta) -> ReminderThreshold | None:
    """Which threshold, if any, the task has crossed at `now`."""
    left = remaining(task.due_at, now)
    if left < timedelta(0):
        return ReminderThreshold.OVERDUE
    if left <= due_soon:
        return ReminderThreshold.DUE_SOON
    return None


class ReminderScheduler:
    def __init__(
        self,
        store: TaskReader,
        sink: ReminderSink,
        *,
        due_soon: timedelta = timedelta(hours=24),
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._sink = sink
        self._due_soon = due_soon
        self._clock = clock
        self._notified: set[MarkerKey] = set()

    @property
    def notified(self) -> frozenset[MarkerKey]:
        return frozenset(self._notified)

    def pending_reminders(self, now: datetime | None = None) -> list[ReminderEvent]:
        """Reminders that would be emitted at `now` (not yet marked as sent)."""
        now = ensure_utc(now or self._clock())
        out: list[ReminderEvent] = []
        for task in self._store.list(status=TaskStatus.PENDING):
            threshold = classify(task, now, self._due_soon)
            if threshold is None:
                continue
            if (task.id, threshold, task.due_at) in self._notified:
                continue
            out.append(
                ReminderEvent(
                    task_id=task.id,
                    title=task.title,
                    threshold=threshold,
                    due_at=task.due_at,
                    remaining_days=remaining_days(task.due_at, now),
                    emitted_at=now,
                )
            )
        return out

    def _forget_purged(self) -> None:
        live = {task.id for task in self._store.list()}
        stale = {key for key in self._notified if key[0] not in live}
        if stale:
            self._notified -= stale
            logger.debug("Dropped %d reminder markers of purged tasks", len(stale))

    async def scan_once(self, now: datetime | None = None) -> list[ReminderEvent]:
        """Emit every new reminder; returns the ones the sink accepted."""
        self._forget_purged()
        sent: list[ReminderEvent] = []
        for event in self.pending_reminders(now):
            try:
                result = self._sink.notify(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(
                    "Reminder delivery failed task_id=%s threshold=%s",
                    event.task_id,
                    event.threshold.value,
                )
                continue
            self._notified.add((event.task_id, event.threshold, event.due_at))
            sent.append(event)
            logger.info("Reminder sent task_id=%s threshold=%s", event.task_id, event.threshold.value)
        return sent

    async def run(self, *, interval_seconds: float = 60.0, stop_event: asyncio.Event | None = None) -> None:
        """
        Scan every interval_seconds until stop_event is set (or the task is cancelled).

        A failing scan is logged and does not stop the loop.
        """
        sleep_s = max(0.01, float(interval_seconds))
        while stop_event is None or not stop_event.is_set():
            try:
                await self.scan_once()
            except Exception:
                logger.exception("Reminder scan failed")

            if stop_event is None:
                await asyncio.sleep(sleep_s)
                continue
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=sleep_s)
            except asyncio.TimeoutError:
                pass


async def run_reminder_scheduler(
    store: TaskReader,
    sink: ReminderSink,
    *,
    interval_seconds: float = 60.0,
    due_soon_hours: float = 24.0,
    clock: Callable[[], datetime] = utcnow,
    stop_event: asyncio.Event | None = None,
) -> None:
    """Convenience wrapper: build a ReminderScheduler and run it."""
    scheduler = ReminderScheduler(
        store,
        sink,
        due_soon=timedelta(hours=float(due_soon_hours)),
        clock=clock,
    )
    await scheduler.run(interval_seconds=interval_seconds, stop_event=stop_event)
