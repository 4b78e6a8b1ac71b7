"""Deterministic fallback for working out which task a message refers to."""

import logging
import re
from datetime import datetime
from typing import Optional

from src.prompts.formatting import date_tokens, time_tokens, to_reference
from src.schemas.task_schema import Task, TaskStatus
from src.utils import fold_text

logger = logging.getLogger(__name__)


def upcoming_tasks(tasks: list[Task], now: datetime) -> list[Task]:
    """Pending tasks scheduled from ``now`` on, nearest first."""
    current = to_reference(now)
    pending = [
        task
        for task in tasks
        if task.status == TaskStatus.PENDING and to_reference(task.scheduled_date) >= current
    ]
    return sorted(pending, key=lambda task: task.scheduled_date)


def _mentions(folded_text: str, token: str) -> bool:
    folded = fold_text(token)
    if not folded:
        return False
    return re.search(rf"(?<!\w){re.escape(folded)}(?!\w)", folded_text) is not None


def find_owned_task(task_id: Optional[str], tasks: list[Task]) -> Optional[Task]:
    if not task_id:
        return None
    for task in tasks:
        if task.id == task_id:
            return task
    return None


def resolve_task_reference(text: str, tasks: list[Task], now: datetime) -> Optional[Task]:
    """Match the message against upcoming tasks by title, then date or time.

    Tasks are tried nearest first and the first match wins.
    """
    folded_text = fold_text(text)
    for task in upcoming_tasks(tasks, now):
        if _mentions(folded_text, task.title):
            logger.debug("Resolved task %s by title", task.id)
            return task
        tokens = date_tokens(task.scheduled_date, now) + time_tokens(task.scheduled_date)
        if any(_mentions(folded_text, token) for token in tokens):
            logger.debug("Resolved task %s by date/time", task.id)
            return task
    return None
