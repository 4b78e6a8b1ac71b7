from src.conversation.commands import ControlCommand, ControlKeywords, ReplyClassifier, ReplyKind
from src.conversation.conflicts import conflicts, find_all_conflicts, find_conflict
from src.conversation.diff import FieldChange, diff_slots, render_diff
from src.conversation.slot_manager import SlotModel, SlotPatch
from src.conversation.state_machine import (
    ConversationState,
    ConversationStateMachine,
    InvalidTransitionError,
    TransitionTrigger,
)

__all__ = [
    "ConversationStateMachine",
    "ConversationState",
    "TransitionTrigger",
    "InvalidTransitionError",
    "SlotModel",
    "SlotPatch",
    "ControlCommand",
    "ControlKeywords",
    "ReplyClassifier",
    "ReplyKind",
    "FieldChange",
    "diff_slots",
    "render_diff",
    "conflicts",
    "find_conflict",
    "find_all_conflicts",
]
