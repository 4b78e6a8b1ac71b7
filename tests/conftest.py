"""Shared test fixtures and helpers."""

from datetime import datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

import pytest

from src.conversation.dialogue import DialogueManager
from src.conversation.history import InMemoryMessageHistory
from src.conversation.state_machine import ConversationStateMachine
from src.conversation.store import InMemoryConversationStore
from src.orchestrator import TurnOrchestrator
from src.schemas.conversation_schema import InboundMessage
from src.schemas.oracle_schema import Intent, OracleRequest, OracleResult, TaskInfo
from src.schemas.task_schema import Task, TaskStatus
from src.tools.tasks import InMemoryTaskStore
from src.tools.whatsapp import MessageSendError

TZ = ZoneInfo("America/Sao_Paulo")

# Wednesday, 5 March 2025, 10:00 in São Paulo
NOW = datetime(2025, 3, 5, 10, 0, tzinfo=TZ)
TOMORROW = NOW + timedelta(days=1)

USER = "+5511999990000"


def at(days: int, hour: int, minute: int = 0) -> datetime:
    """Local instant ``days`` after NOW's date at ``hour:minute``."""
    return (NOW + timedelta(days=days)).replace(hour=hour, minute=minute)


def make_task(
    task_id: str,
    title: str,
    when: datetime,
    owner_id: str = USER,
    location: Optional[str] = None,
    participants: Optional[list[str]] = None,
    status: TaskStatus = TaskStatus.PENDING,
) -> Task:
    return Task(
        id=task_id,
        owner_id=owner_id,
        title=title,
        scheduled_date=when,
        location=location,
        participants=participants or [],
        status=status,
        created_at=datetime(2025, 3, 1, tzinfo=timezone.utc),
    )


def oracle_result(
    intent: Intent = Intent.CREATE,
    confidence: float = 0.95,
    referenced_id: Optional[str] = None,
    new_task_info: Optional[dict] = None,
    changes: Optional[dict] = None,
    suggested: Optional[str] = None,
) -> OracleResult:
    return OracleResult(
        intent=intent,
        confidence=confidence,
        referenced_task={"id": referenced_id} if referenced_id else None,
        new_task_info=TaskInfo.model_validate(new_task_info) if new_task_info else None,
        changes=TaskInfo.model_validate(changes) if changes else None,
        suggested_response_text=suggested,
    )


def inbound(text: str, when: datetime = NOW, message_id: Optional[str] = None) -> InboundMessage:
    return InboundMessage(sender=USER, text=text, timestamp=when.timestamp(), message_id=message_id)


class ScriptedOracle:
    """Returns queued results in order and records every request."""

    def __init__(self, *results: OracleResult) -> None:
        self.results = list(results)
        self.requests: list[OracleRequest] = []

    def queue(self, *results: OracleResult) -> None:
        self.results.extend(results)

    async def analyze(self, request: OracleRequest) -> OracleResult:
        self.requests.append(request)
        if not self.results:
            return OracleResult.degraded()
        return self.results.pop(0)


class RecordingSender:
    """Message sender that records calls and can be told to fail."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str, Optional[list[tuple[str, str]]]]] = []
        self.fail_text = False
        self.fail_buttons = False

    async def send_text(self, user: str, text: str) -> None:
        if self.fail_text:
            raise MessageSendError("text send failed")
        self.sent.append((user, text, None))

    async def send_buttons(self, user: str, text: str, buttons: list[tuple[str, str]]) -> None:
        if self.fail_buttons:
            raise MessageSendError("interactive send failed")
        self.sent.append((user, text, buttons))

    @property
    def texts(self) -> list[str]:
        return [text for _, text, _ in self.sent]


@pytest.fixture
def state_machine():
    return ConversationStateMachine()


@pytest.fixture
def dialogue():
    return DialogueManager(low_confidence_threshold=0.6, max_listed_tasks=10)


@pytest.fixture
def task_store():
    return InMemoryTaskStore()


@pytest.fixture
def context_store():
    return InMemoryConversationStore()


@pytest.fixture
def history():
    return InMemoryMessageHistory(limit=10)


@pytest.fixture
def oracle():
    return ScriptedOracle()


@pytest.fixture
def sender():
    return RecordingSender()


@pytest.fixture
def orchestrator(context_store, task_store, oracle, sender, history, dialogue):
    return TurnOrchestrator(
        store=context_store,
        tasks=task_store,
        oracle=oracle,
        sender=sender,
        history=history,
        dialogue=dialogue,
    )
