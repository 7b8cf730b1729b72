# tests/fakes.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta

from tasklane.tasks.task_scheduler import ReminderEvent
from tasklane.tasks.time_policy import parse_iso


class FakeClock:
    """
    Controllable clock for the store / scheduler / persistence.

    Call it to read the time; advance() moves it forward.
    """

    def __init__(self, start: str | datetime = "2024-01-15T10:00:00Z") -> None:
        self.now = parse_iso(start) if isinstance(start, str) else start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now

    def set(self, value: str) -> datetime:
        self.now = parse_iso(value)
        return self.now


@dataclass(slots=True)
class FakeReminderSink:
    """
    Records reminder events. With fail_times > 0 the first N deliveries raise,
    simulating a presentation layer that is not ready yet.
    """

    events: list[ReminderEvent] = field(default_factory=list)
    fail_times: int = 0
    attempts: int = 0

    async def notify(self, event: ReminderEvent) -> None:
        self.attempts += 1
        if self.fail_times > 0:
            self.fail_times -= 1
            raise RuntimeError("presentation layer not ready")
        self.events.append(event)
