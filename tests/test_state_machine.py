"""Tests for the conversation transition table."""

import pytest

from src.conversation.state_machine import (
    ConversationState,
    ConversationStateMachine,
    InvalidTransitionError,
    TransitionTrigger,
)

S = ConversationState
T = TransitionTrigger


class TestInitialState:
    def test_starts_in_initial(self, state_machine):
        assert state_machine.current_state == S.INITIAL
        assert state_machine.is_idle()

    def test_initial_history_has_one_entry(self, state_machine):
        assert len(state_machine.get_history()) == 1

    def test_resumes_from_given_state(self):
        sm = ConversationStateMachine(S.CONFIRMING)
        assert sm.current_state == S.CONFIRMING
        assert not sm.is_idle()


class TestCreationFlow:
    def test_collect_confirm_create(self, state_machine):
        state_machine.transition(T.TIME_MISSING)
        state_machine.transition(T.INFO_MISSING)
        state_machine.transition(T.SLOTS_COMPLETE)
        state_machine.transition(T.USER_CONFIRMED)
        assert state_machine.get_state_trace() == [
            "initial", "collecting_info", "collecting_info", "confirming", "initial",
        ]

    def test_single_shot_create(self, state_machine):
        assert state_machine.transition(T.TASK_CREATED) == S.INITIAL

    def test_conflict_state_moves_back_to_confirming(self):
        sm = ConversationStateMachine(S.CONFIRMING_CONFLICT)
        assert sm.transition(T.SLOTS_COMPLETE) == S.CONFIRMING

    def test_rejection_returns_to_collecting(self):
        sm = ConversationStateMachine(S.CONFIRMING)
        assert sm.transition(T.USER_REJECTED) == S.COLLECTING_INFO

    def test_cannot_confirm_while_collecting(self):
        sm = ConversationStateMachine(S.COLLECTING_INFO)
        with pytest.raises(InvalidTransitionError, match="collecting_info"):
            sm.transition(T.USER_CONFIRMED)


class TestSelectionFlow:
    def test_ambiguous_update(self, state_machine):
        state_machine.transition(T.TASK_AMBIGUOUS)
        state_machine.transition(T.SELECTION_INVALID)
        assert state_machine.transition(T.SELECTED_FOR_UPDATE) == S.UPDATING_TASK
        state_machine.transition(T.EDIT_RECEIVED)
        assert state_machine.transition(T.TASK_UPDATED) == S.INITIAL

    def test_delete_selection(self):
        sm = ConversationStateMachine(S.SELECTING_TASK)
        assert sm.transition(T.SELECTED_FOR_DELETE) == S.DELETING_TASK
        assert sm.transition(T.DELETE_ABORTED) == S.INITIAL

    def test_selecting_does_not_accept_intents(self):
        sm = ConversationStateMachine(S.SELECTING_TASK)
        with pytest.raises(InvalidTransitionError):
            sm.transition(T.TASK_CREATED)


class TestControlTriggers:
    @pytest.mark.parametrize("state", list(ConversationState))
    @pytest.mark.parametrize("trigger", [T.CANCEL, T.RESTART, T.HELP])
    def test_control_returns_to_initial_from_any_state(self, state, trigger):
        sm = ConversationStateMachine(state)
        assert sm.transition(trigger) == S.INITIAL

    @pytest.mark.parametrize("state", list(ConversationState))
    def test_list_command_passes_through_listing(self, state):
        sm = ConversationStateMachine(state)
        assert sm.transition(T.LIST_COMMAND) == S.LISTING_TASKS
        assert sm.transition(T.LISTING_DONE) == S.INITIAL


class TestClarification:
    def test_clarification_can_repeat(self, state_machine):
        state_machine.transition(T.CLARIFICATION_NEEDED)
        assert state_machine.transition(T.CLARIFICATION_NEEDED) == S.WAITING_FOR_CLARIFICATION

    def test_clarified_request_dispatches(self):
        sm = ConversationStateMachine(S.WAITING_FOR_CLARIFICATION)
        assert sm.transition(T.INFO_MISSING) == S.COLLECTING_INFO

    def test_error_lists_valid_triggers(self):
        sm = ConversationStateMachine(S.DELETING_TASK)
        with pytest.raises(InvalidTransitionError, match="delete_confirmed"):
            sm.transition(T.EDIT_RECEIVED)
