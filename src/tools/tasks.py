"""
Task store contract and an in-memory implementation.

In production this is a remote appointment backend; the dialogue core only
depends on the TaskStore protocol. The in-memory store backs the tests and
the console demo.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Protocol

from src.schemas.task_schema import Task, TaskCreate, TaskUpdate

logger = logging.getLogger(__name__)


class TaskNotFoundError(Exception):
    """Raised when a task id does not exist in the store."""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task {task_id} not found")
        self.task_id = task_id


class TaskStore(Protocol):
    async def create(self, payload: TaskCreate) -> Task: ...

    async def update(self, task_id: str, payload: TaskUpdate) -> Task: ...

    async def delete(self, task_id: str) -> None: ...

    async def list_by_owner(self, owner_id: str) -> list[Task]: ...

    async def get_by_id(self, task_id: str) -> Task: ...


class InMemoryTaskStore:
    """Dictionary-backed task store returning copies of stored records."""

    def __init__(self) -> None:
        self._tasks: dict[str, Task] = {}

    async def create(self, payload: TaskCreate) -> Task:
        task = Task(
            id=f"task-{uuid.uuid4().hex[:8]}",
            created_at=datetime.now(timezone.utc),
            **payload.model_dump(),
        )
        self._tasks[task.id] = task
        logger.info("Task created: %s '%s' at %s", task.id, task.title, task.scheduled_date.isoformat())
        return task.model_copy(deep=True)

    async def update(self, task_id: str, payload: TaskUpdate) -> Task:
        current = self._tasks.get(task_id)
        if current is None:
            raise TaskNotFoundError(task_id)
        updated = current.model_copy(deep=True, update=payload.model_dump(exclude_none=True))
        self._tasks[task_id] = updated
        logger.info("Task updated: %s fields=%s", task_id, sorted(payload.model_dump(exclude_none=True)))
        return updated.model_copy(deep=True)

    async def delete(self, task_id: str) -> None:
        if task_id not in self._tasks:
            raise TaskNotFoundError(task_id)
        del self._tasks[task_id]
        logger.info("Task deleted: %s", task_id)

    async def list_by_owner(self, owner_id: str) -> list[Task]:
        owned = [task for task in self._tasks.values() if task.owner_id == owner_id]
        return [task.model_copy(deep=True) for task in sorted(owned, key=lambda t: t.scheduled_date)]

    async def get_by_id(self, task_id: str) -> Task:
        task = self._tasks.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task.model_copy(deep=True)

    def add(self, task: Task) -> None:
        """Insert a fully formed task as-is. Used to seed fixtures."""
        self._tasks[task.id] = task.model_copy(deep=True)

    def reset(self) -> None:
        """Clear all tasks. Used by test fixtures for isolation."""
        self._tasks.clear()
