"""Scheduling conflict detection.

Two appointments conflict when they fall on the same calendar day in the
reference timezone and start less than the configured window apart.
Conflicts are advisory: callers mention them but still write the task.
"""

from datetime import datetime, timedelta
from typing import Optional

from src.config import settings
from src.prompts.formatting import to_reference
from src.schemas.task_schema import Task, TaskStatus


def _window(hours: Optional[float]) -> timedelta:
    return timedelta(hours=settings.conversation.conflict_window_hours if hours is None else hours)


def conflicts(a: datetime, b: datetime, window_hours: Optional[float] = None) -> bool:
    local_a, local_b = to_reference(a), to_reference(b)
    if local_a.date() != local_b.date():
        return False
    return abs(local_a - local_b) < _window(window_hours)


def find_all_conflicts(
    when: datetime,
    tasks: list[Task],
    exclude_id: Optional[str] = None,
    window_hours: Optional[float] = None,
) -> list[Task]:
    """Pending tasks that conflict with ``when``, in the order given."""
    return [
        task
        for task in tasks
        if task.id != exclude_id
        and task.status == TaskStatus.PENDING
        and conflicts(when, task.scheduled_date, window_hours)
    ]


def find_conflict(
    when: datetime,
    tasks: list[Task],
    exclude_id: Optional[str] = None,
    window_hours: Optional[float] = None,
) -> Optional[Task]:
    """The nearest conflicting task; the first one found wins a tie."""
    nearest: Optional[Task] = None
    best: Optional[timedelta] = None
    for task in find_all_conflicts(when, tasks, exclude_id, window_hours):
        distance = abs(to_reference(task.scheduled_date) - to_reference(when))
        if best is None or distance < best:
            nearest, best = task, distance
    return nearest
