"""
Outbound duplicate suppression.

Before sending, the reply is compared with the last assistant message
recorded for the user. An identical text is dropped, so a redelivered
webhook or a repeated prompt never reaches the user twice in a row.
"""

import logging
from datetime import datetime
from typing import Optional

from src.conversation.history import MessageHistory
from src.schemas.conversation_schema import Role
from src.tools.whatsapp import MessageSender, MessageSendError
from src.utils import redact_phone

logger = logging.getLogger(__name__)


class OutboundDedupGuard:
    """Single-slot duplicate check in front of a message sender."""

    def __init__(self, sender: MessageSender, history: MessageHistory) -> None:
        self.sender = sender
        self.history = history

    async def send(
        self,
        user: str,
        text: str,
        now: datetime,
        buttons: Optional[list[tuple[str, str]]] = None,
    ) -> bool:
        """Send ``text`` unless it repeats the last reply. Returns whether it was sent.

        A failed interactive send falls back to plain text; a failed plain
        text send raises ``MessageSendError``.
        """
        last = await self.history.last_assistant_message(user)
        if last == text:
            logger.info("Suppressed duplicate outbound message to %s", redact_phone(user))
            return False

        if buttons:
            try:
                await self.sender.send_buttons(user, text, buttons)
            except MessageSendError as exc:
                logger.warning(
                    "Interactive send to %s failed, falling back to text: %s",
                    redact_phone(user),
                    exc,
                )
                await self.sender.send_text(user, text)
        else:
            await self.sender.send_text(user, text)

        await self.history.append(user, Role.ASSISTANT, text, now)
        return True
