"""
Turn orchestrator: processes one inbound message end to end.

    load context (evict if stale)
      -> control keyword short-circuit, or oracle classification
      -> dialogue decision
      -> task-store operation
      -> persist context
      -> deduplicated send, history append

The context is written before the reply goes out, so a retried webhook
never repeats a create that already happened. Any failure of an external
collaborator is contained here: it is logged with its stack trace, the
user gets one fixed apology and the stored context is left untouched.
"""

import logging
import uuid
from datetime import datetime
from typing import Optional

from src.conversation.dialogue import DialogueManager, OperationKind, TurnDecision
from src.conversation.history import MessageHistory, render_history
from src.conversation.store import ConversationStore, load_context
from src.logging_context import get_turn_logger, set_turn_id
from src.messaging.dedup import OutboundDedupGuard
from src.prompts import response_templates as templates
from src.prompts.formatting import from_unix
from src.schemas.conversation_schema import InboundMessage, Role
from src.schemas.oracle_schema import OracleRequest, OracleResult
from src.tools.oracle import Oracle
from src.tools.tasks import TaskNotFoundError, TaskStore
from src.tools.whatsapp import MessageSender
from src.utils import normalize_phone, redact_phone

logger = get_turn_logger(__name__)


class TurnOrchestrator:
    """Wires the dialogue manager to the stores, the oracle and the sender."""

    def __init__(
        self,
        store: ConversationStore,
        tasks: TaskStore,
        oracle: Oracle,
        sender: MessageSender,
        history: MessageHistory,
        dialogue: Optional[DialogueManager] = None,
    ) -> None:
        self.store = store
        self.tasks = tasks
        self.oracle = oracle
        self.history = history
        self.dialogue = dialogue or DialogueManager()
        self.outbound = OutboundDedupGuard(sender, history)

    async def handle(self, message: InboundMessage) -> Optional[TurnDecision]:
        """Process one inbound message. Never raises.

        Returns the executed decision, or None when the turn failed and was
        answered with the apology.
        """
        set_turn_id(message.message_id or uuid.uuid4().hex[:12])
        user = normalize_phone(message.sender)
        now = from_unix(message.timestamp)
        logger.info("Inbound message from %s (interactive=%s)", redact_phone(user), message.interactive)

        try:
            return await self._process(user, message.text, now)
        except Exception:
            logger.exception("Turn failed for %s", redact_phone(user))
            await self._apologize(user, now)
            return None

    async def _process(self, user: str, text: str, now: datetime) -> TurnDecision:
        context = await load_context(self.store, user, now)
        task_list = await self.tasks.list_by_owner(user)

        command = self.dialogue.control_command(text)
        result = None
        if command is None:
            result = await self._classify(user, context, text, task_list, now)
        await self.history.append(user, Role.USER, text, now)

        if command is not None:
            decision = self.dialogue.handle_command(command.command, context, task_list, now)
        else:
            decision = self.dialogue.decide(context, text, result, task_list, user, now)
            decision = await self._execute(decision, now)

        logger.debug("State trace: %s", " -> ".join(decision.trace))

        if decision.context is None:
            await self.store.delete(user)
        else:
            decision.context.last_update_time = now
            await self.store.put(user, decision.context)

        if decision.clear_history:
            await self.history.clear(user)
        await self.outbound.send(user, decision.response, now, buttons=decision.buttons)
        return decision

    async def _classify(self, user, context, text, task_list, now) -> Optional[OracleResult]:
        if not self.dialogue.needs_oracle(context, text):
            return None
        history = await self.history.recent(user)
        request = OracleRequest(
            message=self.dialogue.oracle_message(context, text),
            history=render_history(history),
            tasks=task_list,
            now=now,
        )
        return await self.oracle.analyze(request)

    async def _execute(self, decision: TurnDecision, now: datetime) -> TurnDecision:
        """Run the requested task-store write; a vanished task is a referential failure."""
        operation = decision.operation
        try:
            if operation.kind == OperationKind.CREATE:
                task = await self.tasks.create(operation.payload)
                logger.info("Created task %s", task.id)
            elif operation.kind == OperationKind.UPDATE:
                await self.tasks.update(operation.task_id, operation.payload)
            elif operation.kind == OperationKind.DELETE:
                await self.tasks.delete(operation.task_id)
        except TaskNotFoundError as exc:
            logger.warning("Task %s disappeared before %s", exc.task_id, operation.kind.value)
            return TurnDecision(
                context=None,
                response=templates.NOT_FOUND_MESSAGE,
                trace=decision.trace,
            )
        return decision

    async def _apologize(self, user: str, now: datetime) -> None:
        try:
            await self.outbound.send(user, templates.APOLOGY_MESSAGE, now)
        except Exception:
            logger.exception("Could not deliver apology to %s", redact_phone(user))
