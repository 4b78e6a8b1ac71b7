"""Per-user conversation records: dialogue context, history and inbound messages."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from src.conversation.slot_manager import SlotModel, SlotPatch
from src.conversation.state_machine import ConversationState
from src.schemas.task_schema import Task


class TaskOperationKind(str, Enum):
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class ConversationContext(BaseModel):
    """Dialogue state persisted between turns for one user."""

    state: ConversationState = ConversationState.INITIAL
    slots: SlotModel = Field(default_factory=SlotModel)
    last_update_time: datetime
    selected_task_id: Optional[str] = None
    selected_task: Optional[Task] = None
    operation: Optional[TaskOperationKind] = None
    candidate_tasks: list[Task] = Field(default_factory=list)
    # Changes extracted on the turn that opened a selection list
    pending_changes: Optional[SlotPatch] = None

    @classmethod
    def fresh(cls, now: datetime) -> "ConversationContext":
        return cls(state=ConversationState.INITIAL, last_update_time=now)


class HistoryEntry(BaseModel):
    """A single message in the per-user transcript."""

    role: Role
    content: str
    timestamp: datetime

    def render(self) -> str:
        return f"{self.role.value}: {self.content}"


class InboundMessage(BaseModel):
    """Channel-neutral inbound message, already normalized to plain text."""

    sender: str
    text: str
    timestamp: float
    message_id: Optional[str] = None
    interactive: bool = False
