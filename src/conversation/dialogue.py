"""
Dialogue manager: the per-turn decision function.

Given the user's stored context, the inbound text, the oracle's reading of
it and the user's tasks, decide the next state, the task-store operation
to request and the reply. Nothing here performs I/O; the orchestrator
executes the decision.

The current state always takes priority over the freshly detected intent,
so a multi-turn flow is never hijacked by a one-off misclassification.
Only the control keywords cut across every state.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Union

from src.config import settings
from src.conversation.commands import (
    CommandMatch,
    ControlCommand,
    ControlKeywords,
    ReplyClassifier,
    ReplyKind,
)
from src.conversation.conflicts import find_all_conflicts, find_conflict
from src.conversation.diff import diff_slots
from src.conversation.resolution import find_owned_task, resolve_task_reference, upcoming_tasks
from src.conversation.slot_manager import TIME_ONLY_DEFINITION, SlotModel, SlotPatch
from src.conversation.state_machine import (
    ConversationState,
    ConversationStateMachine,
    TransitionTrigger,
)
from src.prompts import response_templates as templates
from src.prompts.formatting import to_reference
from src.prompts.system_prompts import HELP_MESSAGE
from src.schemas.conversation_schema import ConversationContext, TaskOperationKind
from src.schemas.oracle_schema import Intent, OracleResult, TaskInfo
from src.schemas.task_schema import Task, TaskCreate, TaskUpdate

logger = logging.getLogger(__name__)

# Past tasks shown by the list command
RECENT_TASKS_SHOWN = 3

S = ConversationState
T = TransitionTrigger


class OperationKind(str, Enum):
    NONE = "none"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass
class TaskOperation:
    """Task-store write requested by a turn."""

    kind: OperationKind = OperationKind.NONE
    payload: Optional[Union[TaskCreate, TaskUpdate]] = None
    task_id: Optional[str] = None


@dataclass
class TurnDecision:
    """Outcome of one turn, executed by the orchestrator."""

    context: Optional[ConversationContext]
    response: str
    operation: TaskOperation = field(default_factory=TaskOperation)
    conflict: Optional[Task] = None
    buttons: list[tuple[str, str]] = field(default_factory=list)
    trace: list[str] = field(default_factory=list)
    clear_history: bool = False


def _info(primary: Optional[TaskInfo], fallback: Optional[TaskInfo]) -> Optional[TaskInfo]:
    if primary is not None and not primary.is_empty():
        return primary
    return fallback


class DialogueManager:
    """Deterministic dialogue policy on top of the transition table."""

    def __init__(
        self,
        keywords: Optional[ControlKeywords] = None,
        replies: Optional[ReplyClassifier] = None,
        low_confidence_threshold: Optional[float] = None,
        max_listed_tasks: Optional[int] = None,
    ) -> None:
        self.keywords = keywords or ControlKeywords()
        self.replies = replies or ReplyClassifier()
        conv = settings.conversation
        self.low_confidence_threshold = (
            conv.low_confidence_threshold
            if low_confidence_threshold is None
            else low_confidence_threshold
        )
        self.max_listed_tasks = max_listed_tasks or conv.max_listed_tasks

    # --- Pre-oracle checks ---

    def control_command(self, text: str) -> Optional[CommandMatch]:
        return self.keywords.match(text)

    def needs_oracle(self, context: ConversationContext, text: str) -> bool:
        """Whether this turn needs the oracle at all.

        Selection and deletion prompts only accept numbers and yes/no, and a
        plain confirmation or save keyword is unambiguous without it.
        """
        state = context.state
        if state in (S.SELECTING_TASK, S.DELETING_TASK):
            return False
        if state in (S.CONFIRMING, S.CONFIRMING_CONFLICT):
            return self.replies.classify(text) != ReplyKind.AFFIRMATIVE
        if state == S.UPDATING_TASK:
            return not self.replies.is_save(text)
        return True

    def oracle_message(self, context: ConversationContext, text: str) -> str:
        """Raw text on a fresh turn, the accumulated turns inside a flow."""
        if context.state == S.INITIAL or not context.slots.raw_turns:
            return text
        return " ".join([*context.slots.raw_turns, text])

    # --- Decisions ---

    def handle_command(
        self,
        command: ControlCommand,
        context: ConversationContext,
        tasks: list[Task],
        now: datetime,
    ) -> TurnDecision:
        sm = ConversationStateMachine(context.state)
        if command == ControlCommand.CANCEL:
            sm.transition(T.CANCEL)
            return self._finish(sm, None, templates.CANCEL_MESSAGE, clear_history=True)
        if command == ControlCommand.RESTART:
            sm.transition(T.RESTART)
            return self._finish(sm, None, templates.RESTART_MESSAGE, clear_history=True)
        if command == ControlCommand.HELP:
            sm.transition(T.HELP)
            return self._finish(sm, None, HELP_MESSAGE)

        sm.transition(T.LIST_COMMAND)
        upcoming = upcoming_tasks(tasks, now)[: self.max_listed_tasks]
        current = to_reference(now)
        past = sorted(
            (task for task in tasks if to_reference(task.scheduled_date) < current),
            key=lambda task: task.scheduled_date,
            reverse=True,
        )
        sm.transition(T.LISTING_DONE)
        return self._finish(sm, None, templates.build_overview(upcoming, past[:RECENT_TASKS_SHOWN], now))

    def decide(
        self,
        context: ConversationContext,
        text: str,
        result: Optional[OracleResult],
        tasks: list[Task],
        owner_id: str,
        now: datetime,
    ) -> TurnDecision:
        """Decide one non-command turn. ``result`` is None when the oracle was skipped."""
        sm = ConversationStateMachine(context.state)
        ctx = context.model_copy(deep=True)
        oracle = result or OracleResult.degraded()
        state = ctx.state

        if state == S.COLLECTING_INFO:
            decision = self._collecting(sm, ctx, text, oracle, tasks, now)
        elif state in (S.CONFIRMING, S.CONFIRMING_CONFLICT):
            decision = self._confirming(sm, ctx, text, oracle, tasks, owner_id, now)
        elif state == S.SELECTING_TASK:
            decision = self._selecting(sm, ctx, text, tasks, now)
        elif state == S.UPDATING_TASK:
            decision = self._updating(sm, ctx, text, oracle, tasks, now)
        elif state == S.DELETING_TASK:
            decision = self._deleting(sm, ctx, text, tasks, now)
        else:
            decision = self._dispatch_intent(sm, ctx, text, oracle, tasks, owner_id, now)

        logger.info(
            "Turn decided: %s -> %s (operation: %s)",
            state.value,
            sm.current_state.value,
            decision.operation.kind.value,
        )
        return decision

    # --- State handlers ---

    def _collecting(self, sm, ctx, text, oracle, tasks, now) -> TurnDecision:
        before = ctx.slots
        slots = before.model_copy(deep=True)
        slots.append_turn(text)
        patch = SlotPatch.from_task_info(_info(oracle.new_task_info, oracle.changes), now)
        return self._evaluate_slots(sm, ctx, before, slots.merge(patch), tasks, now)

    def _confirming(self, sm, ctx, text, oracle, tasks, owner_id, now) -> TurnDecision:
        kind = self.replies.classify(text)
        if kind == ReplyKind.AFFIRMATIVE and ctx.slots.is_complete():
            sm.transition(T.USER_CONFIRMED)
            payload = ctx.slots.to_task_create(owner_id)
            conflict = find_conflict(payload.scheduled_date, tasks)
            return self._finish(
                sm,
                None,
                templates.build_created_message(payload, now, conflict),
                operation=TaskOperation(kind=OperationKind.CREATE, payload=payload),
                conflict=conflict,
            )

        before = ctx.slots
        slots = before.model_copy(deep=True)
        slots.append_turn(text)
        merged = slots.merge(
            SlotPatch.from_task_info(_info(oracle.new_task_info, oracle.changes), now)
        )
        if kind == ReplyKind.NEGATIVE:
            sm.transition(T.USER_REJECTED)
            ctx.slots = merged
            response = (
                f"Tudo bem. {templates.ASK_WHAT_TO_CHANGE_MESSAGE}\n\n"
                f"{templates.describe_slots(merged, now)}"
            )
            return self._finish(sm, ctx, response)
        return self._evaluate_slots(sm, ctx, before, merged, tasks, now)

    def _selecting(self, sm, ctx, text, tasks, now) -> TurnDecision:
        count = len(ctx.candidate_tasks)
        choice = text.strip().rstrip(".")
        index = int(choice) if choice.isdecimal() else 0
        if not 1 <= index <= count:
            sm.transition(T.SELECTION_INVALID)
            return self._finish(sm, ctx, templates.build_selection_retry(count))

        listed = ctx.candidate_tasks[index - 1]
        task = find_owned_task(listed.id, tasks)
        if task is None:
            return self._not_found(sm, listed.id)

        ctx.selected_task_id = task.id
        ctx.selected_task = task
        ctx.candidate_tasks = []
        if ctx.operation == TaskOperationKind.DELETE:
            sm.transition(T.SELECTED_FOR_DELETE)
            ctx.pending_changes = None
            return self._finish(
                sm,
                ctx,
                templates.build_delete_confirmation(task, now),
                buttons=templates.DELETE_BUTTONS,
            )

        sm.transition(T.SELECTED_FOR_UPDATE)
        seeded = SlotModel.from_task(task)
        slots = seeded.model_copy(update={"raw_turns": list(ctx.slots.raw_turns)})
        if ctx.pending_changes is not None:
            slots = slots.merge(ctx.pending_changes)
        ctx.slots = slots
        ctx.pending_changes = None
        changes = diff_slots(seeded, slots, now)
        return self._finish(sm, ctx, templates.build_update_prompt(task, changes, now))

    def _updating(self, sm, ctx, text, oracle, tasks, now) -> TurnDecision:
        selected = find_owned_task(ctx.selected_task_id, tasks)
        if selected is None:
            return self._not_found(sm, ctx.selected_task_id)

        if self.replies.is_save(text):
            sm.transition(T.TASK_UPDATED)
            return self._apply_update(sm, selected, ctx.slots, tasks, now)

        slots = ctx.slots.model_copy(deep=True)
        slots.append_turn(text)
        patch = SlotPatch.from_task_info(_info(oracle.changes, oracle.new_task_info), now)
        ctx.slots = slots.merge(patch)
        sm.transition(T.EDIT_RECEIVED)
        snapshot = ctx.selected_task or selected
        changes = diff_slots(SlotModel.from_task(snapshot), ctx.slots, now)
        return self._finish(sm, ctx, templates.build_update_prompt(snapshot, changes, now))

    def _deleting(self, sm, ctx, text, tasks, now) -> TurnDecision:
        if self.replies.classify(text) != ReplyKind.AFFIRMATIVE:
            sm.transition(T.DELETE_ABORTED)
            return self._finish(sm, None, templates.DELETE_ABORTED_MESSAGE)

        task = find_owned_task(ctx.selected_task_id, tasks)
        if task is None:
            return self._not_found(sm, ctx.selected_task_id)
        sm.transition(T.DELETE_CONFIRMED)
        return self._finish(
            sm,
            None,
            templates.build_deleted_message(task, now),
            operation=TaskOperation(kind=OperationKind.DELETE, task_id=task.id),
        )

    # --- Fresh requests ---

    def _dispatch_intent(self, sm, ctx, text, oracle, tasks, owner_id, now) -> TurnDecision:
        if oracle.intent == Intent.CLARIFY or oracle.confidence <= self.low_confidence_threshold:
            sm.transition(T.CLARIFICATION_NEEDED)
            ctx.slots.append_turn(text)
            response = oracle.suggested_response_text or templates.CLARIFY_MESSAGE
            return self._finish(sm, ctx, response)

        if oracle.intent == Intent.CREATE:
            before = ctx.slots
            slots = before.model_copy(deep=True)
            slots.append_turn(text)
            merged = slots.merge(
                SlotPatch.from_task_info(_info(oracle.new_task_info, oracle.changes), now)
            )
            if merged.is_complete():
                sm.transition(T.TASK_CREATED)
                payload = merged.to_task_create(owner_id)
                conflict = find_conflict(payload.scheduled_date, tasks)
                return self._finish(
                    sm,
                    None,
                    templates.build_created_message(payload, now, conflict),
                    operation=TaskOperation(kind=OperationKind.CREATE, payload=payload),
                    conflict=conflict,
                )
            return self._ask_missing(sm, ctx, merged, now)

        if oracle.intent == Intent.LIST:
            sm.transition(T.LIST_REQUESTED)
            upcoming = upcoming_tasks(tasks, now)[: self.max_listed_tasks]
            sm.transition(T.LISTING_DONE)
            return self._finish(sm, None, templates.build_task_list(upcoming, now))

        referenced_id = oracle.referenced_task_id
        task = find_owned_task(referenced_id, tasks)
        if referenced_id and task is None:
            return self._not_found(sm, referenced_id)
        if task is None:
            task = resolve_task_reference(text, tasks, now)

        if oracle.intent == Intent.QUERY:
            sm.transition(T.QUERY_ANSWERED)
            if task is None:
                upcoming = upcoming_tasks(tasks, now)[: self.max_listed_tasks]
                return self._finish(sm, None, templates.build_task_list(upcoming, now))
            nearby = find_all_conflicts(task.scheduled_date, tasks, exclude_id=task.id)
            return self._finish(sm, None, templates.build_query_answer(task, nearby, now))

        is_update = oracle.intent == Intent.UPDATE
        patch = SlotPatch.from_task_info(_info(oracle.changes, oracle.new_task_info), now)
        turns = [*ctx.slots.raw_turns, text]
        if task is None:
            return self._offer_selection(sm, ctx, tasks, turns, patch if is_update else None, now)

        ctx.selected_task_id = task.id
        ctx.selected_task = task
        if not is_update:
            sm.transition(T.TASK_RESOLVED_FOR_DELETE)
            ctx.operation = TaskOperationKind.DELETE
            return self._finish(
                sm,
                ctx,
                templates.build_delete_confirmation(task, now),
                buttons=templates.DELETE_BUTTONS,
            )

        ctx.operation = TaskOperationKind.UPDATE
        seeded = SlotModel.from_task(task)
        slots = seeded.merge(patch)
        if not patch.is_empty() and not slots.to_task_update(task).is_empty():
            sm.transition(T.TASK_UPDATED)
            return self._apply_update(sm, task, slots, tasks, now)

        sm.transition(T.TASK_RESOLVED_FOR_UPDATE)
        ctx.slots = seeded.model_copy(update={"raw_turns": turns})
        return self._finish(sm, ctx, templates.build_update_prompt(task, [], now))

    # --- Helpers ---

    def _evaluate_slots(self, sm, ctx, before, merged, tasks, now) -> TurnDecision:
        """Move to confirmation when the model is complete, else ask for what is missing."""
        if not merged.is_complete():
            return self._ask_missing(sm, ctx, merged, now)

        conflict = find_conflict(merged.when, tasks)
        sm.transition(T.SLOTS_COMPLETE_WITH_CONFLICT if conflict else T.SLOTS_COMPLETE)
        ctx.slots = merged
        ctx.operation = TaskOperationKind.CREATE
        changes = diff_slots(before, merged, now)
        return self._finish(
            sm,
            ctx,
            templates.build_confirmation_message(merged, now, changes, conflict),
            conflict=conflict,
            buttons=templates.CONFIRM_BUTTONS,
        )

    def _ask_missing(self, sm, ctx, slots, now) -> TurnDecision:
        missing = slots.missing_fields()
        sm.transition(T.TIME_MISSING if missing == [TIME_ONLY_DEFINITION] else T.INFO_MISSING)
        ctx.slots = slots
        ctx.operation = TaskOperationKind.CREATE
        return self._finish(sm, ctx, templates.build_missing_fields_message(slots, missing, now))

    def _offer_selection(self, sm, ctx, tasks, turns, patch, now) -> TurnDecision:
        upcoming = upcoming_tasks(tasks, now)[: self.max_listed_tasks]
        if not upcoming:
            sm.transition(T.NO_TASKS)
            return self._finish(sm, None, templates.NO_UPCOMING_TASKS_MESSAGE)

        sm.transition(T.TASK_AMBIGUOUS)
        operation = TaskOperationKind.UPDATE if patch is not None else TaskOperationKind.DELETE
        ctx.operation = operation
        ctx.candidate_tasks = upcoming
        ctx.pending_changes = patch if patch is not None and not patch.is_empty() else None
        ctx.slots = SlotModel(raw_turns=turns)
        return self._finish(sm, ctx, templates.build_selection_list(upcoming, operation.value, now))

    def _apply_update(self, sm, task, slots, tasks, now) -> TurnDecision:
        """Write the fields of ``slots`` that differ from ``task``."""
        payload = slots.to_task_update(task)
        changes = diff_slots(SlotModel.from_task(task), slots, now)
        if payload.is_empty():
            return self._finish(sm, None, templates.build_updated_message(task, [], now))

        conflict = None
        if payload.scheduled_date is not None:
            conflict = find_conflict(payload.scheduled_date, tasks, exclude_id=task.id)
        return self._finish(
            sm,
            None,
            templates.build_updated_message(task, changes, now, conflict),
            operation=TaskOperation(kind=OperationKind.UPDATE, payload=payload, task_id=task.id),
            conflict=conflict,
        )

    def _not_found(self, sm, task_id: Optional[str]) -> TurnDecision:
        logger.warning("Referenced task %s is not among the user's tasks", task_id)
        sm.transition(T.TASK_NOT_FOUND)
        return self._finish(sm, None, templates.NOT_FOUND_MESSAGE)

    @staticmethod
    def _finish(
        sm: ConversationStateMachine,
        ctx: Optional[ConversationContext],
        response: str,
        operation: Optional[TaskOperation] = None,
        conflict: Optional[Task] = None,
        buttons: Optional[list[tuple[str, str]]] = None,
        clear_history: bool = False,
    ) -> TurnDecision:
        """Attach the final state; a flow back at INITIAL keeps no context."""
        if ctx is not None and not sm.is_idle():
            ctx.state = sm.current_state
        else:
            ctx = None
        return TurnDecision(
            context=ctx,
            response=response,
            operation=operation or TaskOperation(),
            conflict=conflict,
            buttons=list(buttons or []),
            trace=sm.get_state_trace(),
            clear_history=clear_history,
        )
