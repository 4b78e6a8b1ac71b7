"""Tests for the OpenAI oracle adapter and the offline keyword oracle."""

import json
from types import SimpleNamespace

import httpx
import openai
import pytest

from src.schemas.oracle_schema import Intent, OracleRequest, OracleResult
from src.tools.oracle import KeywordOracle, OpenAIOracle
from tests.conftest import NOW, make_task, at


class FakeCompletions:
    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def fake_client(content=None, error=None):
    completions = FakeCompletions(content=content, error=error)
    return SimpleNamespace(chat=SimpleNamespace(completions=completions)), completions


def request(message: str) -> OracleRequest:
    return OracleRequest(message=message, tasks=[make_task("t1", "Almoço", at(1, 12))], now=NOW)


class TestOpenAIOracle:
    @pytest.mark.asyncio
    async def test_parses_json_response(self):
        payload = {
            "intent": "update",
            "confidence": 0.88,
            "referencedTask": {"id": "t1", "matchReason": "title"},
            "changes": {"scheduledDate": "2025-03-06T13:00:00"},
        }
        client, completions = fake_client(content=json.dumps(payload))
        oracle = OpenAIOracle(client=client, model="test-model", temperature=0.0)

        result = await oracle.analyze(request("mude o almoço para 13h"))

        assert result.intent == Intent.UPDATE
        assert result.referenced_task_id == "t1"
        assert result.changes.scheduled_date == "2025-03-06T13:00:00"
        [call] = completions.calls
        assert call["model"] == "test-model"
        assert call["response_format"] == {"type": "json_object"}
        assert "mude o almoço para 13h" in call["messages"][1]["content"]
        assert "t1" in call["messages"][1]["content"]

    @pytest.mark.asyncio
    async def test_malformed_json_degrades(self):
        client, _ = fake_client(content="not json {")
        result = await OpenAIOracle(client=client, model="m").analyze(request("oi"))
        assert result == OracleResult.degraded()

    @pytest.mark.asyncio
    async def test_empty_content_degrades(self):
        client, _ = fake_client(content="")
        result = await OpenAIOracle(client=client, model="m").analyze(request("oi"))
        assert result.intent == Intent.CLARIFY

    @pytest.mark.asyncio
    async def test_api_error_degrades(self):
        error = openai.APIConnectionError(request=httpx.Request("POST", "https://api.test"))
        client, _ = fake_client(error=error)
        result = await OpenAIOracle(client=client, model="m").analyze(request("oi"))
        assert result.intent == Intent.CLARIFY
        assert result.confidence == 0.5

    @pytest.mark.asyncio
    async def test_unknown_intent_becomes_clarify(self):
        client, _ = fake_client(content=json.dumps({"intent": "dance", "confidence": 3}))
        result = await OpenAIOracle(client=client, model="m").analyze(request("oi"))
        assert result.intent == Intent.CLARIFY
        assert result.confidence == 1.0


class TestKeywordOracle:
    @pytest.mark.asyncio
    async def test_create_with_date_and_time(self):
        result = await KeywordOracle().analyze(request("Reunião amanhã às 15h"))
        assert result.intent == Intent.CREATE
        assert result.new_task_info.title == "Reunião"
        assert result.new_task_info.scheduled_date == "2025-03-06T15:00:00"

    @pytest.mark.asyncio
    async def test_weekday_resolves_to_next_occurrence(self):
        result = await KeywordOracle().analyze(request("Dentista sexta às 10h"))
        assert result.new_task_info.scheduled_date == "2025-03-07T10:00:00"

    @pytest.mark.asyncio
    async def test_date_only(self):
        result = await KeywordOracle().analyze(request("Consulta 20/03"))
        assert result.new_task_info.scheduled_date == "2025-03-20"

    @pytest.mark.asyncio
    async def test_people(self):
        result = await KeywordOracle().analyze(request("Almoço amanhã ao meio-dia com Ana e Bruno"))
        info = result.new_task_info
        assert info.scheduled_date == "2025-03-06T12:00:00"
        assert info.participants == ["Ana", "Bruno"]

    @pytest.mark.asyncio
    async def test_update_carries_time_without_title(self):
        result = await KeywordOracle().analyze(request("mude o horário para 16h"))
        assert result.intent == Intent.UPDATE
        assert result.changes.scheduled_date == "16:00"
        assert result.changes.title is None

    @pytest.mark.asyncio
    async def test_delete(self):
        result = await KeywordOracle().analyze(request("cancele o dentista"))
        assert result.intent == Intent.DELETE

    @pytest.mark.asyncio
    async def test_unrecognized_is_low_confidence_clarify(self):
        result = await KeywordOracle().analyze(request("oi, tudo bem?"))
        assert result.intent == Intent.CLARIFY
        assert result.confidence < 0.5
