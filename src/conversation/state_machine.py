"""
Finite state machine for deterministic dialogue flow control.

Defines the conversation states and the explicit transitions between
them. The dialogue manager decides *which* trigger fired on a turn; this
table decides whether that move is legal, so a flow can never drift into
an undeclared state on top of probabilistic oracle output.

Usage:
    sm = ConversationStateMachine()
    sm.transition(TransitionTrigger.INFO_MISSING)
    assert sm.current_state == ConversationState.COLLECTING_INFO
"""

import logging
from enum import Enum
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

logger = logging.getLogger(__name__)


class ConversationState(str, Enum):
    """All possible states in a conversation lifecycle."""
    INITIAL = "initial"
    COLLECTING_INFO = "collecting_info"
    CONFIRMING = "confirming"
    CONFIRMING_CONFLICT = "confirming_conflict"
    SELECTING_TASK = "selecting_task"
    UPDATING_TASK = "updating_task"
    DELETING_TASK = "deleting_task"
    LISTING_TASKS = "listing_tasks"
    WAITING_FOR_CLARIFICATION = "waiting_for_clarification"


class TransitionTrigger(str, Enum):
    """Events that cause state transitions."""
    # Control keywords, legal from every state
    CANCEL = "cancel"
    RESTART = "restart"
    HELP = "help"
    LIST_COMMAND = "list_command"

    # Creation flow
    INFO_MISSING = "info_missing"
    TIME_MISSING = "time_missing"
    SLOTS_COMPLETE = "slots_complete"
    SLOTS_COMPLETE_WITH_CONFLICT = "slots_complete_with_conflict"
    USER_CONFIRMED = "user_confirmed"
    USER_REJECTED = "user_rejected"
    TASK_CREATED = "task_created"

    # Task selection
    TASK_AMBIGUOUS = "task_ambiguous"
    SELECTION_INVALID = "selection_invalid"
    SELECTED_FOR_UPDATE = "selected_for_update"
    SELECTED_FOR_DELETE = "selected_for_delete"
    TASK_RESOLVED_FOR_UPDATE = "task_resolved_for_update"
    TASK_RESOLVED_FOR_DELETE = "task_resolved_for_delete"
    TASK_NOT_FOUND = "task_not_found"
    NO_TASKS = "no_tasks"

    # Update / delete
    EDIT_RECEIVED = "edit_received"
    TASK_UPDATED = "task_updated"
    DELETE_CONFIRMED = "delete_confirmed"
    DELETE_ABORTED = "delete_aborted"

    # Read-only answers
    LIST_REQUESTED = "list_requested"
    LISTING_DONE = "listing_done"
    QUERY_ANSWERED = "query_answered"
    CLARIFICATION_NEEDED = "clarification_needed"


@dataclass(frozen=True)
class Transition:
    from_state: ConversationState
    to_state: ConversationState
    trigger: TransitionTrigger


@dataclass
class StateEntry:
    """Recorded history entry for a state visit."""
    state: ConversationState
    entered_at: datetime
    trigger: Optional[TransitionTrigger] = None


class InvalidTransitionError(Exception):
    """Raised when a transition is not valid from the current state."""


S = ConversationState
T = TransitionTrigger

# States where a fresh request (oracle intent) is dispatched
_IDLE = (S.INITIAL, S.WAITING_FOR_CLARIFICATION)
_CONFIRMING = (S.CONFIRMING, S.CONFIRMING_CONFLICT)


class ConversationStateMachine:
    """
    Deterministic state machine controlling dialogue flow.

    Every transition must be explicitly defined. If the dialogue manager
    attempts a move without a corresponding valid transition, it is
    rejected with a clear error indicating what transitions are allowed.
    """

    TRANSITIONS: list[Transition] = [
        # --- Control keywords: any state back to the start ---
        *[Transition(s, S.INITIAL, T.CANCEL) for s in S],
        *[Transition(s, S.INITIAL, T.RESTART) for s in S],
        *[Transition(s, S.INITIAL, T.HELP) for s in S],
        *[Transition(s, S.LISTING_TASKS, T.LIST_COMMAND) for s in S],

        # --- Fresh requests ---
        *[Transition(s, S.COLLECTING_INFO, T.INFO_MISSING) for s in _IDLE],
        *[Transition(s, S.COLLECTING_INFO, T.TIME_MISSING) for s in _IDLE],
        *[Transition(s, S.INITIAL, T.TASK_CREATED) for s in _IDLE],
        *[Transition(s, S.SELECTING_TASK, T.TASK_AMBIGUOUS) for s in _IDLE],
        *[Transition(s, S.UPDATING_TASK, T.TASK_RESOLVED_FOR_UPDATE) for s in _IDLE],
        *[Transition(s, S.DELETING_TASK, T.TASK_RESOLVED_FOR_DELETE) for s in _IDLE],
        *[Transition(s, S.INITIAL, T.TASK_UPDATED) for s in _IDLE],
        *[Transition(s, S.INITIAL, T.NO_TASKS) for s in _IDLE],
        *[Transition(s, S.LISTING_TASKS, T.LIST_REQUESTED) for s in _IDLE],
        *[Transition(s, S.INITIAL, T.QUERY_ANSWERED) for s in _IDLE],
        *[Transition(s, S.WAITING_FOR_CLARIFICATION, T.CLARIFICATION_NEEDED) for s in _IDLE],

        # --- Slot collection ---
        Transition(S.COLLECTING_INFO, S.COLLECTING_INFO, T.INFO_MISSING),
        Transition(S.COLLECTING_INFO, S.COLLECTING_INFO, T.TIME_MISSING),
        Transition(S.COLLECTING_INFO, S.CONFIRMING, T.SLOTS_COMPLETE),
        Transition(S.COLLECTING_INFO, S.CONFIRMING_CONFLICT, T.SLOTS_COMPLETE_WITH_CONFLICT),

        # --- Confirmation gate ---
        *[Transition(s, S.INITIAL, T.USER_CONFIRMED) for s in _CONFIRMING],
        *[Transition(s, S.COLLECTING_INFO, T.USER_REJECTED) for s in _CONFIRMING],
        *[Transition(s, S.CONFIRMING, T.SLOTS_COMPLETE) for s in _CONFIRMING],
        *[Transition(s, S.CONFIRMING_CONFLICT, T.SLOTS_COMPLETE_WITH_CONFLICT)
          for s in _CONFIRMING],
        *[Transition(s, S.COLLECTING_INFO, T.INFO_MISSING) for s in _CONFIRMING],
        *[Transition(s, S.COLLECTING_INFO, T.TIME_MISSING) for s in _CONFIRMING],

        # --- Selection from a numbered list ---
        Transition(S.SELECTING_TASK, S.SELECTING_TASK, T.SELECTION_INVALID),
        Transition(S.SELECTING_TASK, S.UPDATING_TASK, T.SELECTED_FOR_UPDATE),
        Transition(S.SELECTING_TASK, S.DELETING_TASK, T.SELECTED_FOR_DELETE),

        # --- Editing an existing task ---
        Transition(S.UPDATING_TASK, S.UPDATING_TASK, T.EDIT_RECEIVED),
        Transition(S.UPDATING_TASK, S.INITIAL, T.TASK_UPDATED),

        # --- Deleting an existing task ---
        Transition(S.DELETING_TASK, S.INITIAL, T.DELETE_CONFIRMED),
        Transition(S.DELETING_TASK, S.INITIAL, T.DELETE_ABORTED),

        # --- Referential failures ---
        *[Transition(s, S.INITIAL, T.TASK_NOT_FOUND)
          for s in (*_IDLE, S.SELECTING_TASK, S.UPDATING_TASK, S.DELETING_TASK)],

        # --- Transient listing state ---
        Transition(S.LISTING_TASKS, S.INITIAL, T.LISTING_DONE),
    ]

    def __init__(self, initial_state: ConversationState = ConversationState.INITIAL) -> None:
        self._current_state = initial_state
        self._history: list[StateEntry] = [
            StateEntry(state=initial_state, entered_at=datetime.now(timezone.utc))
        ]

    @property
    def current_state(self) -> ConversationState:
        return self._current_state

    def transition(self, trigger: TransitionTrigger) -> ConversationState:
        """
        Move to the state the table assigns to ``trigger``.

        Raises:
            InvalidTransitionError: If the current state does not accept
                the trigger.
        """
        target = _TARGETS.get((self._current_state, trigger))
        if target is None:
            valid = [t.value for t in self.get_valid_triggers()]
            raise InvalidTransitionError(
                f"No valid transition from '{self._current_state.value}' "
                f"with trigger '{trigger.value}'. Valid triggers: {valid}"
            )

        previous = self._current_state
        self._current_state = target
        self._history.append(
            StateEntry(state=target, entered_at=datetime.now(timezone.utc), trigger=trigger)
        )
        logger.debug("State transition: %s -> %s (%s)", previous.value, target.value, trigger.value)
        return target

    def get_valid_triggers(self) -> list[TransitionTrigger]:
        return [trigger for state, trigger in _TARGETS if state == self._current_state]

    def get_history(self) -> list[StateEntry]:
        return list(self._history)

    def get_state_trace(self) -> list[str]:
        """State names visited this turn, starting state first."""
        return [entry.state.value for entry in self._history]

    def is_idle(self) -> bool:
        return self._current_state == ConversationState.INITIAL


# (from_state, trigger) -> to_state; the first declaration wins
_TARGETS: dict[tuple[ConversationState, TransitionTrigger], ConversationState] = {}
for _t in ConversationStateMachine.TRANSITIONS:
    _TARGETS.setdefault((_t.from_state, _t.trigger), _t.to_state)
del _t
