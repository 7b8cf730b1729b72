# src/tasklane/connectors/reminder_runner.py

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
from dataclasses import dataclass

from ..core.ports import ReminderSink
from ..core.state import AppState
from ..tasks.task_scheduler import run_reminder_scheduler

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ReminderBackgroundRunner:
    thread: threading.Thread
    loop: asyncio.AbstractEventLoop
    stop_event: asyncio.Event

    def stop(self) -> None:
        try:
            self.loop.call_soon_threadsafe(self.stop_event.set)
        except RuntimeError:
            logger.debug("Reminder loop already closed.", exc_info=True)

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)


def start_reminders_in_background(state: AppState, sink: ReminderSink) -> ReminderBackgroundRunner | None:
    """
    Start the reminder scheduler in a background thread with its own event loop,
    so the blocking console REPL (input()) can run in parallel.
    """
    settings = state.settings
    if not getattr(settings, "reminders_enabled", True):
        logger.info("Reminders disabled, not starting.")
        return None

    ready = threading.Event()
    holder: dict[str, object] = {}

    def runner() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        stop_event = asyncio.Event()

        holder["loop"] = loop
        holder["stop_event"] = stop_event
        ready.set()

        try:
            loop.run_until_complete(
                run_reminder_scheduler(
                    state.store,
                    sink,
                    interval_seconds=float(getattr(settings, "reminder_interval_seconds", 60.0)),
                    due_soon_hours=float(getattr(settings, "due_soon_hours", 24.0)),
                    stop_event=stop_event,
                )
            )
        finally:
            with contextlib.suppress(RuntimeError):
                loop.close()

    t = threading.Thread(target=runner, name="tasklane-reminders", daemon=True)
    t.start()

    ready.wait(timeout=5.0)
    loop = holder.get("loop")
    stop_event = holder.get("stop_event")

    if not isinstance(loop, asyncio.AbstractEventLoop) or not isinstance(stop_event, asyncio.Event):
        logger.error("Reminder thread did not initialize properly.")
        return None

    logger.info("Reminder scheduler started in background.")
    return ReminderBackgroundRunner(thread=t, loop=loop, stop_event=stop_event)
