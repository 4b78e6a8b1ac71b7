"""
Conversation state store and staleness policy.

The store is keyed by the user's phone identity and treated as if it were
remote: every read returns an independent copy and writes are
last-writer-wins per key. Strict compare-and-swap is not offered, so two
concurrent turns for the same user can overwrite each other.
"""

import json
import logging
from datetime import datetime, timedelta
from typing import Optional, Protocol

from src.config import settings
from src.conversation.state_machine import ConversationState
from src.prompts.formatting import to_reference
from src.schemas.conversation_schema import ConversationContext
from src.utils import redact_phone

logger = logging.getLogger(__name__)


class ConversationStore(Protocol):
    async def get(self, user: str) -> Optional[ConversationContext]: ...

    async def put(self, user: str, context: ConversationContext) -> None: ...

    async def delete(self, user: str) -> None: ...


class InMemoryConversationStore:
    """Keeps JSON dumps so callers never share a mutable context."""

    def __init__(self) -> None:
        self._contexts: dict[str, str] = {}

    async def get(self, user: str) -> Optional[ConversationContext]:
        raw = self._contexts.get(user)
        if raw is None:
            return None
        return ConversationContext.model_validate(json.loads(raw))

    async def put(self, user: str, context: ConversationContext) -> None:
        self._contexts[user] = json.dumps(context.model_dump(mode="json"))

    async def delete(self, user: str) -> None:
        self._contexts.pop(user, None)

    def reset(self) -> None:
        """Clear all contexts. Used by test fixtures for isolation."""
        self._contexts.clear()


def is_stale(context: ConversationContext, now: datetime, ttl_minutes: Optional[int] = None) -> bool:
    ttl = timedelta(
        minutes=settings.conversation.context_ttl_minutes if ttl_minutes is None else ttl_minutes
    )
    return to_reference(now) - to_reference(context.last_update_time) > ttl


async def load_context(
    store: ConversationStore, user: str, now: datetime
) -> ConversationContext:
    """Fetch the user's context, evicting it first when it has gone stale.

    A missing or evicted context is replaced by a fresh one in INITIAL; the
    fresh context is not written until the turn decides to keep it.
    """
    context = await store.get(user)
    if context is None:
        return ConversationContext.fresh(now)
    if is_stale(context, now):
        logger.info(
            "Discarding stale context for %s (state %s, last update %s)",
            redact_phone(user),
            context.state.value,
            context.last_update_time.isoformat(),
        )
        await store.delete(user)
        return ConversationContext.fresh(now)
    if context.state == ConversationState.LISTING_TASKS:
        # Transient state; never meaningful at the start of a turn
        return ConversationContext.fresh(now)
    return context
