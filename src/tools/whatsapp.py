"""
WhatsApp Cloud API adapter: outbound sender and inbound webhook normalizer.

Only the parts of the wire format the assistant needs are handled: plain
text and reply-button messages out; text, image captions, forwarded flags
and button replies in.
"""

import logging
import time
from typing import Any, Optional, Protocol

import httpx

from src.config import settings
from src.schemas.conversation_schema import InboundMessage
from src.utils import redact_phone

logger = logging.getLogger(__name__)

FORWARDED_PREFIX = "[Mensagem encaminhada] "

# Button ids mapped to the literal text a user would have typed
BUTTON_TEXT = {
    "confirm_yes": "confirmar",
    "confirm_no": "editar",
}

# Cloud API limit for reply-button titles
MAX_BUTTON_TITLE = 20


class MessageSendError(Exception):
    """Raised when the chat provider rejects or cannot receive a message."""


class MessageSender(Protocol):
    async def send_text(self, user: str, text: str) -> None: ...

    async def send_buttons(self, user: str, text: str, buttons: list[tuple[str, str]]) -> None: ...


class WhatsAppSender:
    """Posts messages to ``{api_url}/{phone_number_id}/messages``."""

    def __init__(
        self,
        token: Optional[str] = None,
        phone_number_id: Optional[str] = None,
        api_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        cfg = settings.whatsapp
        self._token = token if token is not None else cfg.token
        self._phone_number_id = phone_number_id if phone_number_id is not None else cfg.phone_number_id
        self._api_url = (api_url or cfg.api_url).rstrip("/")
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=cfg.timeout_sec)

    @property
    def endpoint(self) -> str:
        return f"{self._api_url}/{self._phone_number_id}/messages"

    async def send_text(self, user: str, text: str) -> None:
        await self._post({
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": user,
            "type": "text",
            "text": {"preview_url": False, "body": text},
        })

    async def send_buttons(self, user: str, text: str, buttons: list[tuple[str, str]]) -> None:
        await self._post({
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": user,
            "type": "interactive",
            "interactive": {
                "type": "button",
                "body": {"text": text},
                "action": {
                    "buttons": [
                        {"type": "reply", "reply": {"id": button_id, "title": title[:MAX_BUTTON_TITLE]}}
                        for button_id, title in buttons
                    ]
                },
            },
        })

    async def _post(self, payload: dict[str, Any]) -> None:
        headers = {"Authorization": f"Bearer {self._token}"}
        try:
            response = await self._client.post(self.endpoint, json=payload, headers=headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise MessageSendError(
                f"WhatsApp API returned {exc.response.status_code}: {exc.response.text[:200]}"
            ) from exc
        except httpx.HTTPError as exc:
            raise MessageSendError(f"WhatsApp API request failed: {exc}") from exc
        logger.debug("Message (%s) sent to %s", payload["type"], redact_phone(payload["to"]))

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def _message_text(message: dict[str, Any]) -> Optional[str]:
    kind = message.get("type")
    if kind == "text":
        return (message.get("text") or {}).get("body")
    if kind == "image":
        return (message.get("image") or {}).get("caption")
    if kind == "interactive":
        interactive = message.get("interactive") or {}
        reply = interactive.get("button_reply") or interactive.get("list_reply") or {}
        button_id = reply.get("id", "")
        if button_id in BUTTON_TEXT:
            return BUTTON_TEXT[button_id]
        title = reply.get("title")
        return title.lower() if title else None
    if kind == "button":
        return (message.get("button") or {}).get("text")
    return None


def _timestamp(message: dict[str, Any]) -> float:
    """Unix send time; a missing or malformed value means "received now"."""
    try:
        value = float(message["timestamp"])
    except (KeyError, TypeError, ValueError):
        value = 0.0
    if 0 < value < float("inf"):
        return value
    logger.warning("Message %s has no usable timestamp, using receipt time", message.get("id"))
    return time.time()


def parse_webhook_payload(body: dict[str, Any]) -> list[InboundMessage]:
    """Normalize a Cloud API webhook body into inbound messages.

    Status callbacks and unsupported message types yield nothing.
    """
    messages: list[InboundMessage] = []
    for entry in body.get("entry") or []:
        for change in entry.get("changes") or []:
            value = change.get("value") or {}
            for message in value.get("messages") or []:
                text = _message_text(message)
                if not text or not text.strip():
                    logger.debug("Ignoring message of type %s without text", message.get("type"))
                    continue
                if (message.get("context") or {}).get("forwarded"):
                    text = FORWARDED_PREFIX + text
                timestamp = _timestamp(message)
                messages.append(InboundMessage(
                    sender=message.get("from", ""),
                    text=text.strip(),
                    timestamp=timestamp,
                    message_id=message.get("id"),
                    interactive=message.get("type") == "interactive",
                ))
    return messages
