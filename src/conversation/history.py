"""Bounded per-user message history.

Feeds the last few lines of the conversation to the oracle and holds the
last assistant message that the outbound dedup guard compares against.
"""

from collections import deque
from datetime import datetime
from typing import Optional, Protocol

from src.config import settings
from src.schemas.conversation_schema import HistoryEntry, Role


class MessageHistory(Protocol):
    async def append(self, user: str, role: Role, content: str, timestamp: datetime) -> None: ...

    async def recent(self, user: str, limit: Optional[int] = None) -> list[HistoryEntry]: ...

    async def last_assistant_message(self, user: str) -> Optional[str]: ...

    async def clear(self, user: str) -> None: ...


class InMemoryMessageHistory:
    """Keeps the last ``limit`` entries per user, oldest first."""

    def __init__(self, limit: Optional[int] = None) -> None:
        self._limit = limit or settings.conversation.history_limit
        self._entries: dict[str, deque[HistoryEntry]] = {}

    async def append(self, user: str, role: Role, content: str, timestamp: datetime) -> None:
        entries = self._entries.setdefault(user, deque(maxlen=self._limit))
        entries.append(HistoryEntry(role=role, content=content, timestamp=timestamp))

    async def recent(self, user: str, limit: Optional[int] = None) -> list[HistoryEntry]:
        entries = list(self._entries.get(user, ()))
        if limit is not None:
            entries = entries[-limit:] if limit > 0 else []
        return entries

    async def last_assistant_message(self, user: str) -> Optional[str]:
        for entry in reversed(self._entries.get(user, ())):
            if entry.role == Role.ASSISTANT:
                return entry.content
        return None

    async def clear(self, user: str) -> None:
        self._entries.pop(user, None)

    def reset(self) -> None:
        self._entries.clear()


def render_history(entries: list[HistoryEntry]) -> list[str]:
    """``role: content`` lines in chronological order."""
    return [entry.render() for entry in entries]
