# tests/test_task_store.py

from __future__ import annotations

import threading

import pytest

from tasklane.core.errors import InvalidTransitionError, NotFoundError, ValidationError
from tasklane.tasks.categories import CategoryRegistry
from tasklane.tasks.filters import TaskFilter, has_tag
from tasklane.tasks.task_models import CategoryKind, DurationClass, Priority, TaskStatus
from tasklane.tasks.task_store import VALID_TRANSITIONS, TaskStore, validate_transition
from tasklane.tasks.time_policy import parse_iso, to_iso

from .fakes import FakeClock

SCENARIO_A = {
    "title": "Review notes",
    "category": "study",
    "priority": 1,
    "duration": "short term",
}


class TestCreateAndGet:
    def test_scenario_create_short_term_task(self, store: TaskStore) -> None:
        task = store.create(SCENARIO_A)

        assert task.status is TaskStatus.PENDING
        assert to_iso(task.created_at) == "2024-01-15T10:00:00Z"
        assert to_iso(task.due_at) == "2024-01-22T10:00:00Z"
        assert task.priority is Priority.URGENT_IMPORTANT
        assert task.category.name == "study"
        assert task.duration is DurationClass.SHORT_TERM

    def test_get_returns_stored_fields_with_defaults(self, store: TaskStore) -> None:
        created = store.create(
            {
                "title": "  Plan trip ",
                "description": "book flights",
                "tags": ["travel", "travel"],
                "collaborators": ["ann"],
                "place": "Lisbon",
            }
        )
        task = store.get(created.id)

        assert task == created
        assert task.title == "Plan trip"
        assert task.priority is Priority.NOT_URGENT_NOT_IMPORTANT
        assert task.category.name == "other"
        assert task.assignee == "tester"
        assert task.tags == ("travel",)
        assert task.collaborators == ("ann",)
        assert task.place == "Lisbon"
        assert task.due_explicit is False

    @pytest.mark.parametrize(
        "duration,days", [("short term", 7), ("mid term", 30), ("long term", 90)]
    )
    def test_due_date_follows_duration_offset(self, store: TaskStore, duration: str, days: int) -> None:
        task = store.create({"title": "t", "duration": duration})
        assert (task.due_at - task.created_at).days == days

    def test_explicit_due_date_overrides_duration(self, store: TaskStore) -> None:
        task = store.create({"title": "t", "due_at": "2024-01-16T09:00:00Z"})
        assert to_iso(task.due_at) == "2024-01-16T09:00:00Z"
        assert task.due_explicit is True

    def test_ids_are_unique(self, store: TaskStore) -> None:
        ids = {store.create({"title": f"task {i}"}).id for i in range(50)}
        assert len(ids) == 50

    def test_id_collisions_are_retried(self, clock: FakeClock) -> None:
        ids = iter(["a", "a", "b"])
        store = TaskStore(clock=clock, id_factory=lambda: next(ids))
        assert store.create({"title": "one"}).id == "a"
        assert store.create({"title": "two"}).id == "b"

    def test_custom_category_is_registered_on_first_use(self, store: TaskStore) -> None:
        task = store.create({"title": "t", "category": "Garden"})
        assert task.category.kind is CategoryKind.CUSTOM
        assert store.registry.resolve("garden") is task.category

        again = store.create({"title": "t2", "category": "GARDEN"})
        assert again.category.name == "Garden"

    def test_validation_failure_leaves_store_unchanged(self, store: TaskStore) -> None:
        revision = store.revision
        with pytest.raises(ValidationError) as exc:
            store.create({"title": "", "category": "Brand new", "priority": 9})
        assert exc.value.field == "title"
        assert exc.value.rule == "required"
        assert store.count() == 0
        assert store.revision == revision
        assert store.registry.resolve("brand new") is None

    def test_accumulate_policy_reports_every_violation(self, clock: FakeClock) -> None:
        store = TaskStore(clock=clock, validation_policy="accumulate")
        with pytest.raises(ValidationError) as exc:
            store.create({"title": "", "priority": 9})
        assert [v.field for v in exc.value.violations] == ["title", "priority"]

    def test_fail_fast_policy_reports_only_first_violation(self, store: TaskStore) -> None:
        with pytest.raises(ValidationError) as exc:
            store.create({"title": "", "priority": 9})
        assert [v.field for v in exc.value.violations] == ["title"]

    def test_get_unknown_id(self, store: TaskStore) -> None:
        with pytest.raises(NotFoundError):
            store.get("nope")


class TestDerivedTime:
    def test_elapsed_and_remaining_recomputed_on_read(self, store: TaskStore, clock: FakeClock) -> None:
        task = store.create(SCENARIO_A)
        clock.advance(days=2, minutes=30)
        assert task.elapsed_minutes(clock()) == 2 * 24 * 60 + 30
        assert task.remaining_days(clock()) == 5

    def test_elapsed_frozen_after_completion(self, store: TaskStore, clock: FakeClock) -> None:
        task = store.create(SCENARIO_A)
        clock.advance(hours=3)
        done = store.complete(task.id)
        clock.advance(days=10)
        assert done.elapsed_minutes(clock()) == 180
        assert done.remaining_days(clock()) < 0


class TestTransitions:
    @pytest.mark.parametrize(
        "from_status,to_status",
        [
            (TaskStatus.PENDING, TaskStatus.COMPLETED),
            (TaskStatus.PENDING, TaskStatus.POSTPONED),
            (TaskStatus.PENDING, TaskStatus.DELETED),
            (TaskStatus.POSTPONED, TaskStatus.PENDING),
            (TaskStatus.POSTPONED, TaskStatus.DELETED),
            (TaskStatus.COMPLETED, TaskStatus.DELETED),
        ],
    )
    def test_valid_transition(self, from_status: TaskStatus, to_status: TaskStatus) -> None:
        assert validate_transition(from_status, to_status) is True

    @pytest.mark.parametrize(
        "from_status,to_status",
        [
            (TaskStatus.COMPLETED, TaskStatus.PENDING),
            (TaskStatus.COMPLETED, TaskStatus.POSTPONED),
            (TaskStatus.DELETED, TaskStatus.PENDING),
            (TaskStatus.DELETED, TaskStatus.COMPLETED),
            (TaskStatus.POSTPONED, TaskStatus.COMPLETED),
            (TaskStatus.PENDING, TaskStatus.PENDING),
        ],
    )
    def test_invalid_transition(self, from_status: TaskStatus, to_status: TaskStatus) -> None:
        assert validate_transition(from_status, to_status) is False

    def test_deleted_is_terminal(self) -> None:
        assert VALID_TRANSITIONS[TaskStatus.DELETED] == set()

    def test_complete_records_completion(self, store: TaskStore, clock: FakeClock) -> None:
        task = store.create(SCENARIO_A)
        clock.advance(hours=1)
        done = store.complete(task.id)
        assert done.status is TaskStatus.COMPLETED
        assert to_iso(done.completed_at) == "2024-01-15T11:00:00Z"
        assert done.updated_at == done.completed_at

    def test_complete_on_deleted_task_fails_and_keeps_status(self, store: TaskStore) -> None:
        task = store.create(SCENARIO_A)
        store.delete(task.id)
        with pytest.raises(InvalidTransitionError):
            store.complete(task.id)
        assert store.get(task.id).status is TaskStatus.DELETED

    def test_scenario_postpone_then_earlier_postpone_fails(self, store: TaskStore) -> None:
        task = store.create(SCENARIO_A)

        postponed = store.postpone(task.id, "2024-01-30T00:00:00Z")
        assert postponed.status is TaskStatus.POSTPONED
        assert to_iso(postponed.due_at) == "2024-01-30T00:00:00Z"
        assert [to_iso(d) for d in postponed.due_history] == ["2024-01-22T10:00:00Z"]
        assert to_iso(postponed.original_due_at) == "2024-01-22T10:00:00Z"

        with pytest.raises(ValidationError):
            store.postpone(task.id, "2024-01-25T00:00:00Z")
        assert store.get(task.id) == postponed

    def test_postpone_to_same_due_date_fails(self, store: TaskStore) -> None:
        task = store.create(SCENARIO_A)
        with pytest.raises(ValidationError):
            store.postpone(task.id, task.due_at)
        assert store.get(task.id).status is TaskStatus.PENDING

    def test_restore_reactivates_postponed_task(self, store: TaskStore) -> None:
        task = store.create(SCENARIO_A)
        store.postpone(task.id, "2024-02-01T00:00:00Z")
        restored = store.restore(task.id)
        assert restored.status is TaskStatus.PENDING
        assert to_iso(restored.due_at) == "2024-02-01T00:00:00Z"

    def test_restore_only_from_postponed(self, store: TaskStore) -> None:
        task = store.create(SCENARIO_A)
        with pytest.raises(InvalidTransitionError):
            store.restore(task.id)
        store.delete(task.id)
        with pytest.raises(InvalidTransitionError):
            store.restore(task.id)

    def test_scenario_delete_then_purge(self, store: TaskStore) -> None:
        keep = store.create({"title": "keep"})
        task = store.create(SCENARIO_A)

        store.delete(task.id)
        assert store.get(task.id).status is TaskStatus.DELETED
        assert task.id in store.list().ids()

        store.purge(task.id)
        assert store.list().ids() == [keep.id]
        with pytest.raises(NotFoundError):
            store.get(task.id)

    def test_purge_requires_deleted(self, store: TaskStore) -> None:
        task = store.create(SCENARIO_A)
        with pytest.raises(InvalidTransitionError):
            store.purge(task.id)
        assert store.get(task.id).status is TaskStatus.PENDING

    def test_completed_task_can_be_archived(self, store: TaskStore) -> None:
        task = store.create(SCENARIO_A)
        store.complete(task.id)
        store.delete(task.id)
        assert store.get(task.id).status is TaskStatus.DELETED

    def test_delete_twice_fails(self, store: TaskStore) -> None:
        task = store.create(SCENARIO_A)
        store.delete(task.id)
        with pytest.raises(InvalidTransitionError):
            store.delete(task.id)

    def test_purge_deleted_removes_all_tombstones(self, store: TaskStore) -> None:
        a = store.create({"title": "a"})
        b = store.create({"title": "b"})
        store.create({"title": "c"})
        store.delete(a.id)
        store.delete(b.id)
        assert store.purge_deleted() == 2
        assert store.count() == 1

    @pytest.mark.parametrize("op", ["complete", "delete", "purge", "restore"])
    def test_unknown_id_is_not_found(self, store: TaskStore, op: str) -> None:
        with pytest.raises(NotFoundError):
            getattr(store, op)("missing")

    def test_postpone_unknown_id_is_not_found(self, store: TaskStore) -> None:
        with pytest.raises(NotFoundError):
            store.postpone("missing", "2030-01-01T00:00:00Z")


class TestUpdate:
    def test_update_bumps_updated_at(self, store: TaskStore, clock: FakeClock) -> None:
        task = store.create(SCENARIO_A)
        clock.advance(minutes=5)
        updated = store.update(task.id, {"title": "Review all notes", "priority": 2})
        assert updated.title == "Review all notes"
        assert updated.priority is Priority.URGENT_NOT_IMPORTANT
        assert updated.updated_at > task.updated_at
        assert updated.created_at == task.created_at

    def test_updated_at_never_rolls_back(self, store: TaskStore, clock: FakeClock) -> None:
        task = store.create(SCENARIO_A)
        clock.advance(hours=-1)
        updated = store.update(task.id, {"title": "x"})
        assert updated.updated_at == task.updated_at

    def test_duration_change_recomputes_from_creation(self, store: TaskStore, clock: FakeClock) -> None:
        task = store.create(SCENARIO_A)
        clock.advance(days=3)
        updated = store.update(task.id, {"duration": "mid term"})
        assert to_iso(updated.due_at) == "2024-02-14T10:00:00Z"
        clock.advance(days=3)
        again = store.update(task.id, {"duration": "short term"})
        assert to_iso(again.due_at) == "2024-01-22T10:00:00Z"

    def test_duration_change_keeps_explicit_due(self, store: TaskStore) -> None:
        task = store.create({"title": "t", "due_at": "2024-01-20T00:00:00Z"})
        updated = store.update(task.id, {"duration": "long term"})
        assert updated.due_at == task.due_at
        assert updated.duration is DurationClass.LONG_TERM

    def test_clearing_due_falls_back_to_duration(self, store: TaskStore) -> None:
        task = store.create({"title": "t", "due_at": "2024-01-20T00:00:00Z"})
        updated = store.update(task.id, {"due_at": None})
        assert to_iso(updated.due_at) == "2024-01-22T10:00:00Z"
        assert updated.due_explicit is False

    def test_update_due_must_follow_creation(self, store: TaskStore) -> None:
        task = store.create(SCENARIO_A)
        with pytest.raises(ValidationError) as exc:
            store.update(task.id, {"due_at": "2024-01-01T00:00:00Z"})
        assert exc.value.rule == "not_after_creation"
        assert store.get(task.id) == task

    def test_invalid_update_is_all_or_nothing(self, store: TaskStore) -> None:
        task = store.create(SCENARIO_A)
        with pytest.raises(ValidationError):
            store.update(task.id, {"title": "new title", "priority": 0})
        assert store.get(task.id).title == "Review notes"

    def test_update_rejected_for_completed_and_deleted(self, store: TaskStore) -> None:
        done = store.create({"title": "done"})
        store.complete(done.id)
        with pytest.raises(InvalidTransitionError):
            store.update(done.id, {"title": "x"})

        gone = store.create({"title": "gone"})
        store.delete(gone.id)
        with pytest.raises(InvalidTransitionError):
            store.update(gone.id, {"title": "x"})

    def test_empty_update_is_a_no_op(self, store: TaskStore) -> None:
        task = store.create(SCENARIO_A)
        revision = store.revision
        assert store.update(task.id, {}) == task
        assert store.revision == revision


class TestList:
    def test_canonical_order(self, store: TaskStore, clock: FakeClock) -> None:
        low = store.create({"title": "low", "priority": 4})
        done = store.create({"title": "done", "priority": 1})
        store.complete(done.id)
        late = store.create({"title": "late", "priority": 1, "duration": "long term"})
        soon = store.create({"title": "soon", "priority": 1, "duration": "short term"})
        clock.advance(seconds=1)
        tie = store.create({"title": "tie", "priority": 1, "due_at": to_iso(soon.due_at)})

        assert [t.title for t in store.list()] == ["soon", "tie", "late", "low", "done"]
        assert low.id in store.list().ids()

    def test_view_is_restartable_and_captured_at_call_time(self, store: TaskStore) -> None:
        store.create({"title": "a"})
        view = store.list()
        store.create({"title": "b"})

        assert [t.title for t in view] == ["a"]
        assert [t.title for t in view] == ["a"]
        assert len(view) == 1
        assert len(store.list()) == 2

    def test_filters_compose(self, store: TaskStore) -> None:
        a = store.create({"title": "a", "category": "study", "priority": 1, "tags": ["exam"]})
        store.create({"title": "b", "category": "study", "priority": 3, "tags": ["exam"]})
        store.create({"title": "c", "category": "work", "priority": 1})
        d = store.create({"title": "d", "category": "study", "priority": 1, "tags": ["exam", "hard"]})
        store.complete(d.id)

        flt = TaskFilter.build(category="STUDY", priority=1) & has_tag("exam")
        assert {t.title for t in store.list(flt)} == {"a", "d"}
        assert [t.id for t in store.list(flt, status="pending")] == [a.id]

    def test_due_range_filter(self, store: TaskStore) -> None:
        store.create({"title": "week", "duration": "short term"})
        store.create({"title": "month", "duration": "mid term"})
        titles = [t.title for t in store.list(due_from="2024-01-20", due_to="2024-01-31")]
        assert titles == ["week"]

    def test_status_filter(self, store: TaskStore) -> None:
        a = store.create({"title": "a"})
        store.create({"title": "b"})
        store.postpone(a.id, "2024-03-01T00:00:00Z")
        assert [t.title for t in store.list(status="postponed")] == ["a"]
        assert [t.title for t in store.list(status=[TaskStatus.PENDING])] == ["b"]


class TestSnapshotState:
    def test_export_and_load_state(self, store: TaskStore, clock: FakeClock) -> None:
        store.create({"title": "a", "category": "Garden"})
        store.create({"title": "b"})
        state = store.export_state()

        other = TaskStore(clock=clock)
        other.load_state(state.tasks, revision=state.revision, updated_at=state.updated_at)

        assert other.list().ids() == store.list().ids()
        assert other.revision == store.revision
        assert other.registry.resolve("garden") is not None

    def test_load_state_rejects_duplicate_ids(self, store: TaskStore) -> None:
        task = store.create({"title": "a"})
        with pytest.raises(ValueError):
            TaskStore().load_state([task, task])


def test_concurrent_creates_do_not_lose_tasks(clock: FakeClock) -> None:
    store = TaskStore(registry=CategoryRegistry(), clock=clock)

    def worker(n: int) -> None:
        for i in range(25):
            store.create({"title": f"w{n}-{i}"})

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert store.count() == 200
    assert store.revision == 200
