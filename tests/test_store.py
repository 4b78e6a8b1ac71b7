"""Tests for the conversation store, staleness policy and message history."""

from datetime import timedelta

import pytest

from src.conversation.slot_manager import SlotModel
from src.conversation.state_machine import ConversationState
from src.conversation.store import is_stale, load_context
from src.schemas.conversation_schema import ConversationContext, Role
from tests.conftest import NOW, USER, at, make_task


def _context(minutes_ago: int, state=ConversationState.COLLECTING_INFO) -> ConversationContext:
    return ConversationContext(
        state=state,
        slots=SlotModel(title="Reunião", raw_turns=["Reunião"]),
        last_update_time=NOW - timedelta(minutes=minutes_ago),
    )


class TestInMemoryConversationStore:
    @pytest.mark.asyncio
    async def test_round_trip(self, context_store):
        ctx = _context(0)
        ctx.candidate_tasks = [make_task("t1", "Almoço", at(1, 13))]
        await context_store.put(USER, ctx)
        loaded = await context_store.get(USER)
        assert loaded == ctx

    @pytest.mark.asyncio
    async def test_reads_are_independent_copies(self, context_store):
        await context_store.put(USER, _context(0))
        first = await context_store.get(USER)
        first.slots.append_turn("mutated")
        second = await context_store.get(USER)
        assert second.slots.raw_turns == ["Reunião"]

    @pytest.mark.asyncio
    async def test_delete(self, context_store):
        await context_store.put(USER, _context(0))
        await context_store.delete(USER)
        assert await context_store.get(USER) is None
        await context_store.delete(USER)  # deleting twice is fine


class TestStaleness:
    def test_thirty_minutes_is_fresh(self):
        assert not is_stale(_context(30), NOW)

    def test_thirty_one_minutes_is_stale(self):
        assert is_stale(_context(31), NOW)

    @pytest.mark.asyncio
    async def test_stale_context_is_evicted(self, context_store):
        await context_store.put(USER, _context(31))
        ctx = await load_context(context_store, USER, NOW)
        assert ctx.state == ConversationState.INITIAL
        assert ctx.slots.raw_turns == []
        assert await context_store.get(USER) is None

    @pytest.mark.asyncio
    async def test_fresh_context_is_reused(self, context_store):
        await context_store.put(USER, _context(5))
        ctx = await load_context(context_store, USER, NOW)
        assert ctx.state == ConversationState.COLLECTING_INFO
        assert ctx.slots.title == "Reunião"

    @pytest.mark.asyncio
    async def test_unknown_user_gets_fresh_context(self, context_store):
        ctx = await load_context(context_store, USER, NOW)
        assert ctx.state == ConversationState.INITIAL
        assert ctx.last_update_time == NOW


class TestMessageHistory:
    @pytest.mark.asyncio
    async def test_bounded(self, history):
        for i in range(15):
            await history.append(USER, Role.USER, f"msg {i}", NOW)
        entries = await history.recent(USER)
        assert len(entries) == 10
        assert entries[0].content == "msg 5"

    @pytest.mark.asyncio
    async def test_last_assistant_message(self, history):
        await history.append(USER, Role.ASSISTANT, "Olá", NOW)
        await history.append(USER, Role.USER, "oi", NOW)
        assert await history.last_assistant_message(USER) == "Olá"
        assert (await history.recent(USER, limit=1))[0].render() == "user: oi"

    @pytest.mark.asyncio
    async def test_clear(self, history):
        await history.append(USER, Role.ASSISTANT, "Olá", NOW)
        await history.clear(USER)
        assert await history.last_assistant_message(USER) is None
        assert await history.recent(USER) == []
