# src/tasklane/tasks/validation.py

"""
Field-level validation rules.

Rules are stateless and composed per field. check_fields() always collects
every violation; the store decides whether to surface only the first one
(fail-fast) or all of them.

Each rule returns the cleaned value so that the store writes exactly what
was validated (trimmed title, parsed timestamp, resolved category, ...).
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ..core.errors import ValidationError
from .categories import DEFAULT_CATEGORY, MAX_CATEGORY_LENGTH, CategoryRegistry
from .task_models import DEFAULT_DURATION, DEFAULT_PRIORITY, DurationClass, Priority
from .time_policy import ensure_utc, parse_iso

MAX_TITLE_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 500

# Canonical order; violations are reported in this order.
EDITABLE_FIELDS: tuple[str, ...] = (
    "title",
    "description",
    "category",
    "priority",
    "duration",
    "due_at",
    "place",
    "assignee",
    "collaborators",
    "tags",
)

_FIELD_ALIASES = {
    "due": "due_at",
    "due_date": "due_at",
    "duration_class": "duration",
}


@dataclass(slots=True, frozen=True)
class FieldViolation:
    field: str
    rule: str
    message: str

    def to_error(self, violations: list[FieldViolation] | None = None) -> ValidationError:
        return ValidationError(self.field, self.rule, self.message, violations=violations or [self])


@dataclass(slots=True)
class ValidationResult:
    values: dict[str, Any] = field(default_factory=dict)
    violations: list[FieldViolation] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.violations

    def raise_first(self) -> None:
        if self.violations:
            raise self.violations[0].to_error()

    def raise_all(self) -> None:
        if self.violations:
            first = self.violations[0]
            raise ValidationError(
                first.field,
                first.rule,
                "; ".join(v.message for v in self.violations),
                violations=list(self.violations),
            )


@dataclass(slots=True, frozen=True)
class RuleContext:
    created_at: datetime
    registry: CategoryRegistry | None = None


class _Invalid(Exception):
    def __init__(self, rule: str, message: str) -> None:
        self.rule = rule
        self.message = message
        super().__init__(message)


Rule = Callable[[Any, RuleContext], Any]


def _title(value: Any, ctx: RuleContext) -> str:
    if value is None:
        raise _Invalid("required", "Title is required.")
    if not isinstance(value, str):
        raise _Invalid("type", "Title must be text.")
    clean = value.strip()
    if not clean:
        raise _Invalid("required", "Title is required.")
    if len(clean) > MAX_TITLE_LENGTH:
        raise _Invalid("too_long", f"Title must be at most {MAX_TITLE_LENGTH} characters.")
    return clean


def _description(value: Any, ctx: RuleContext) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise _Invalid("type", "Description must be text.")
    clean = value.strip()
    if len(clean) > MAX_DESCRIPTION_LENGTH:
        raise _Invalid(
            "too_long", f"Description must be at most {MAX_DESCRIPTION_LENGTH} characters."
        )
    return clean


def _category(value: Any, ctx: RuleContext):
    if value is None:
        value = DEFAULT_CATEGORY
    name = str(value) if not isinstance(value, str) else value
    clean = name.strip()
    if not clean:
        raise _Invalid("required", "Category must not be empty.")
    if len(clean) > MAX_CATEGORY_LENGTH:
        raise _Invalid(
            "too_long", f"Category must be at most {MAX_CATEGORY_LENGTH} characters."
        )
    if ctx.registry is None:
        return clean
    return ctx.registry.candidate(clean)


def _priority(value: Any, ctx: RuleContext) -> Priority:
    if value is None:
        return DEFAULT_PRIORITY
    if isinstance(value, bool):
        raise _Invalid("type", "Priority must be an integer from 1 to 4.")
    if isinstance(value, str):
        try:
            value = int(value.strip())
        except ValueError:
            raise _Invalid("type", "Priority must be an integer from 1 to 4.") from None
    if not isinstance(value, int):
        raise _Invalid("type", "Priority must be an integer from 1 to 4.")
    try:
        return Priority(value)
    except ValueError:
        raise _Invalid("out_of_range", "Priority must be between 1 and 4.") from None


def _duration(value: Any, ctx: RuleContext) -> DurationClass:
    if value is None:
        return DEFAULT_DURATION
    try:
        return DurationClass.parse(value)
    except ValueError:
        raise _Invalid(
            "unknown_duration", "Duration must be one of: short term, mid term, long term."
        ) from None


def _due_at(value: Any, ctx: RuleContext) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        due = ensure_utc(value)
    else:
        try:
            due = parse_iso(str(value))
        except ValueError:
            raise _Invalid("invalid_timestamp", "Due date must be an ISO-8601 timestamp.") from None
    if due <= ensure_utc(ctx.created_at):
        raise _Invalid("not_after_creation", "Due date must be after the creation time.")
    return due


def _optional_text(label: str) -> Rule:
    def rule(value: Any, ctx: RuleContext) -> str | None:
        if value is None:
            return None
        if not isinstance(value, str):
            raise _Invalid("type", f"{label} must be text.")
        return value.strip() or None

    return rule


def _string_set(label: str) -> Rule:
    def rule(value: Any, ctx: RuleContext) -> tuple[str, ...]:
        if value is None:
            return ()
        items: Iterable[Any]
        if isinstance(value, str):
            items = value.split(",")
        elif isinstance(value, Iterable):
            items = value
        else:
            raise _Invalid("type", f"{label} must be a list of text values.")
        out: list[str] = []
        seen: set[str] = set()
        for item in items:
            if not isinstance(item, str):
                raise _Invalid("type", f"{label} must be a list of text values.")
            clean = item.strip()
            # Duplicates are silently ignored.
            if clean and clean not in seen:
                seen.add(clean)
                out.append(clean)
        return tuple(out)

    return rule


RULES: dict[str, Rule] = {
    "title": _title,
    "description": _description,
    "category": _category,
    "priority": _priority,
    "duration": _duration,
    "due_at": _due_at,
    "place": _optional_text("Place"),
    "assignee": _optional_text("Assignee"),
    "collaborators": _string_set("Collaborators"),
    "tags": _string_set("Tags"),
}


def normalize_keys(fields: Mapping[str, Any]) -> dict[str, Any]:
    return {_FIELD_ALIASES.get(k, k): v for k, v in fields.items()}


def check_fields(
    fields: Mapping[str, Any],
    *,
    created_at: datetime,
    registry: CategoryRegistry | None = None,
    partial: bool = False,
) -> ValidationResult:
    """
    Validate a candidate field set and collect every violation.

    partial=False (create): absent fields are validated as None, so required
    fields fail and optional ones take their defaults.
    partial=True (update): only the supplied fields are checked.
    """
    data = normalize_keys(fields)
    ctx = RuleContext(created_at=created_at, registry=registry)
    result = ValidationResult()

    for name in sorted(set(data) - set(RULES)):
        result.violations.append(FieldViolation(name, "unknown_field", f"Unknown field: {name}."))

    for name in EDITABLE_FIELDS:
        if partial and name not in data:
            continue
        try:
            result.values[name] = RULES[name](data.get(name), ctx)
        except _Invalid as exc:
            result.violations.append(FieldViolation(name, exc.rule, exc.message))

    # Keep violation order canonical: known fields first, unknown ones last.
    order = {name: i for i, name in enumerate(EDITABLE_FIELDS)}
    result.violations.sort(key=lambda v: order.get(v.field, len(order)))
    return result


def validate_fields(
    fields: Mapping[str, Any],
    *,
    created_at: datetime,
    registry: CategoryRegistry | None = None,
    partial: bool = False,
) -> list[FieldViolation]:
    """Return all violations (empty list when the field set is valid)."""
    return check_fields(fields, created_at=created_at, registry=registry, partial=partial).violations


def validate_postpone(current_due: datetime, new_due: Any) -> datetime:
    """Parse new_due and require it to be strictly later than current_due."""
    if isinstance(new_due, datetime):
        parsed = ensure_utc(new_due)
    else:
        try:
            parsed = parse_iso(str(new_due))
        except ValueError:
            raise ValidationError(
                "due_at", "invalid_timestamp", "Due date must be an ISO-8601 timestamp."
            ) from None
    if parsed <= ensure_utc(current_due):
        raise ValidationError(
            "due_at", "not_after_current_due", "New due date must be later than the current one."
        )
    return parsed
