"""Tests for scheduling conflict detection."""

from src.conversation.conflicts import conflicts, find_all_conflicts, find_conflict
from src.schemas.task_schema import TaskStatus
from tests.conftest import at, make_task


class TestConflicts:
    def test_within_window_same_day(self):
        assert conflicts(at(1, 15), at(1, 16, 30))

    def test_exactly_two_hours_is_not_a_conflict(self):
        assert not conflicts(at(1, 15), at(1, 17))

    def test_different_days_never_conflict(self):
        assert not conflicts(at(1, 23, 30), at(2, 0, 30))

    def test_symmetric(self):
        pairs = [(at(1, 15), at(1, 16)), (at(1, 9), at(1, 14)), (at(1, 23), at(2, 0))]
        for a, b in pairs:
            assert conflicts(a, b) == conflicts(b, a)

    def test_custom_window(self):
        assert conflicts(at(1, 15), at(1, 17), window_hours=3)


class TestFindConflict:
    def test_nearest_conflict_wins(self):
        tasks = [
            make_task("far", "Café", at(1, 14)),
            make_task("near", "Reunião", at(1, 15, 30)),
        ]
        assert find_conflict(at(1, 15), tasks).id == "near"

    def test_tie_returns_first_found(self):
        tasks = [
            make_task("before", "Café", at(1, 14)),
            make_task("after", "Reunião", at(1, 16)),
        ]
        assert find_conflict(at(1, 15), tasks).id == "before"

    def test_task_never_conflicts_with_itself(self):
        task = make_task("t1", "Almoço", at(1, 13))
        assert find_conflict(task.scheduled_date, [task], exclude_id="t1") is None

    def test_non_pending_tasks_ignored(self):
        tasks = [make_task("t1", "Almoço", at(1, 13), status=TaskStatus.CANCELLED)]
        assert find_conflict(at(1, 13), tasks) is None

    def test_find_all(self):
        tasks = [
            make_task("a", "Café", at(1, 14)),
            make_task("b", "Reunião", at(1, 16)),
            make_task("c", "Jantar", at(1, 20)),
        ]
        assert [t.id for t in find_all_conflicts(at(1, 15), tasks)] == ["a", "b"]
