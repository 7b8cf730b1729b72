# src/tasklane/tasks/time_policy.py

"""
Time policy: pure functions over timestamps.

All datetimes handled here are timezone-aware UTC. Naive datetimes are
interpreted as UTC by ensure_utc().
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

_DAY_US = 86_400 * 1_000_000
_COMPLETED = "completed"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_iso(value: datetime) -> str:
    """ISO-8601 UTC with a trailing Z, e.g. 2024-01-22T10:00:00Z."""
    return ensure_utc(value).isoformat().replace("+00:00", "Z")


def parse_iso(raw: str) -> datetime:
    """Parse ISO-8601 (Z suffix allowed, date-only allowed). Raises ValueError."""
    text = str(raw).strip()
    if not text:
        raise ValueError("empty timestamp")
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(text))


def compute_due_date(creation: datetime, duration_class) -> datetime:
    """creation + the class offset (7 / 30 / 90 days)."""
    return ensure_utc(creation) + timedelta(days=int(duration_class.offset_days))


def elapsed(
    creation: datetime,
    now: datetime,
    status: str,
    completed_at: datetime | None = None,
) -> int:
    """
    Whole minutes since creation.

    Frozen at completed_at for completed tasks; never negative.
    """
    end = now
    if status == _COMPLETED and completed_at is not None:
        end = completed_at
    delta = ensure_utc(end) - ensure_utc(creation)
    return max(0, int(delta.total_seconds() // 60))


def remaining_days(due: datetime, now: datetime) -> int:
    """ceil((due - now) / 1 day). Zero means due today, negative means overdue."""
    delta = ensure_utc(due) - ensure_utc(now)
    total_us = delta // timedelta(microseconds=1)
    return -(-total_us // _DAY_US)


def remaining(due: datetime, now: datetime) -> timedelta:
    return ensure_utc(due) - ensure_utc(now)
