"""Task (appointment) data models shared with the task store."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class TaskStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Task(BaseModel):
    """Appointment record as returned by the task store."""
    id: str
    owner_id: str
    title: str
    scheduled_date: datetime
    location: Optional[str] = None
    participants: list[str] = Field(default_factory=list)
    description: Optional[str] = None
    status: TaskStatus = TaskStatus.PENDING
    created_at: datetime


class TaskCreate(BaseModel):
    """Validated payload for creating a task."""
    owner_id: str
    title: str = Field(min_length=1)
    scheduled_date: datetime
    location: Optional[str] = None
    participants: list[str] = Field(default_factory=list)
    description: Optional[str] = None


class TaskUpdate(BaseModel):
    """Partial update; only fields that are not None are applied."""
    title: Optional[str] = None
    scheduled_date: Optional[datetime] = None
    location: Optional[str] = None
    participants: Optional[list[str]] = None
    description: Optional[str] = None
    status: Optional[TaskStatus] = None

    def is_empty(self) -> bool:
        return not self.model_dump(exclude_none=True)
