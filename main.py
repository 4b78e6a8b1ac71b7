"""
Appointment assistant entry point.

Processes WhatsApp webhook bodies with the OpenAI oracle and the Cloud API
sender, or runs the offline console demo. The HTTP server that receives
webhooks is deployed separately and calls ``process_webhook`` per request.

Usage:
    Webhook body:  python main.py webhook payload.json
    Console mode:  python main.py console
"""

import asyncio
import json
import logging
import sys
from typing import Any

from src.config import settings
from src.conversation.history import InMemoryMessageHistory
from src.conversation.store import InMemoryConversationStore
from src.orchestrator import TurnOrchestrator
from src.tools.oracle import OpenAIOracle
from src.tools.tasks import InMemoryTaskStore
from src.tools.whatsapp import WhatsAppSender, parse_webhook_payload

logger = logging.getLogger(__name__)


def build_orchestrator(sender: WhatsAppSender) -> TurnOrchestrator:
    """Wire the production oracle and sender to the available stores."""
    return TurnOrchestrator(
        store=InMemoryConversationStore(),
        tasks=InMemoryTaskStore(),
        oracle=OpenAIOracle(),
        sender=sender,
        history=InMemoryMessageHistory(),
    )


async def process_webhook(orchestrator: TurnOrchestrator, body: dict[str, Any]) -> int:
    """Handle every message in one webhook body; returns how many were processed."""
    messages = parse_webhook_payload(body)
    for message in messages:
        await orchestrator.handle(message)
    return len(messages)


async def _run_webhook_file(path: str) -> None:
    with open(path, encoding="utf-8") as fh:
        body = json.load(fh)
    sender = WhatsAppSender()
    try:
        count = await process_webhook(build_orchestrator(sender), body)
    finally:
        await sender.aclose()
    logger.info("Processed %d message(s) for '%s'", count, settings.agent_name)


def _run_console_mode() -> None:
    """Start the offline console demo (no API keys required)."""
    from console_demo import ConsoleSession

    asyncio.run(ConsoleSession().run())


if __name__ == "__main__":
    if len(sys.argv) > 2 and sys.argv[1] == "webhook":
        asyncio.run(_run_webhook_file(sys.argv[2]))
    else:
        _run_console_mode()
