"""Request and response models for the intent and slot oracle.

The oracle answers in camelCase JSON; the models accept both the wire
aliases and the Python field names. Unknown intents collapse to
``clarify`` and confidence is clamped to [0, 1] so that nothing untyped
reaches the dialogue manager.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.schemas.task_schema import Task


class Intent(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    LIST = "list"
    QUERY = "query"
    CLARIFY = "clarify"


class TaskInfo(BaseModel):
    """Partial appointment details extracted from free text."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    title: Optional[str] = None
    scheduled_date: Optional[str] = Field(default=None, alias="scheduledDate")
    location: Optional[str] = None
    participants: list[str] = Field(default_factory=list)
    description: Optional[str] = None

    @field_validator("scheduled_date", mode="before")
    @classmethod
    def _stringify_date(cls, value: Any) -> Optional[str]:
        if value is None or value == "":
            return None
        if isinstance(value, datetime):
            return value.isoformat()
        return str(value)

    @field_validator("participants", mode="before")
    @classmethod
    def _coerce_participants(cls, value: Any) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return [str(part).strip() for part in value if str(part).strip()]

    def is_empty(self) -> bool:
        return not (
            self.title or self.scheduled_date or self.location or self.participants
        )


class ReferencedTask(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: Optional[str] = None
    match_reason: Optional[str] = Field(default=None, alias="matchReason")


class OracleResult(BaseModel):
    """Best-effort classification of one user message."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    intent: Intent = Intent.CLARIFY
    confidence: float = 0.5
    referenced_task: Optional[ReferencedTask] = Field(default=None, alias="referencedTask")
    changes: Optional[TaskInfo] = None
    new_task_info: Optional[TaskInfo] = Field(default=None, alias="newTaskInfo")
    response_type: Optional[str] = Field(default=None, alias="responseType")
    suggested_response_text: Optional[str] = Field(
        default=None, alias="suggestedResponseText"
    )

    @field_validator("intent", mode="before")
    @classmethod
    def _unknown_intent_is_clarify(cls, value: Any) -> Any:
        valid = {member.value for member in Intent}
        if isinstance(value, str) and value.lower() in valid:
            return value.lower()
        if isinstance(value, Intent):
            return value
        return Intent.CLARIFY

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, value: Any) -> float:
        try:
            number = float(value)
        except (TypeError, ValueError):
            return 0.5
        return min(max(number, 0.0), 1.0)

    @property
    def referenced_task_id(self) -> Optional[str]:
        if self.referenced_task and self.referenced_task.id:
            return self.referenced_task.id
        return None

    @classmethod
    def degraded(cls) -> "OracleResult":
        """Fallback used whenever the oracle cannot be reached or parsed."""
        return cls(intent=Intent.CLARIFY, confidence=0.5)


@dataclass
class OracleRequest:
    """Everything the oracle needs to classify one turn."""

    message: str
    history: list[str] = field(default_factory=list)
    tasks: list[Task] = field(default_factory=list)
    now: Optional[datetime] = None
