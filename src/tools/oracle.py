"""
Intent and slot oracles.

OpenAIOracle asks a chat model for a JSON classification of the message.
Transport and parsing failures never escape: the adapter degrades to a
low-confidence ``clarify`` result and the dialogue asks the user to
rephrase. KeywordOracle is an offline stand-in driven by Portuguese
keywords, used by the console demo.
"""

import json
import logging
import re
from datetime import date, datetime, timedelta
from typing import Optional, Protocol

from openai import AsyncOpenAI, OpenAIError

from src.config import settings
from src.prompts.formatting import WEEKDAYS, to_reference
from src.prompts.system_prompts import ORACLE_SYSTEM_PROMPT, build_oracle_prompt
from src.schemas.oracle_schema import Intent, OracleRequest, OracleResult, TaskInfo
from src.utils import fold_text

logger = logging.getLogger(__name__)


class Oracle(Protocol):
    async def analyze(self, request: OracleRequest) -> OracleResult: ...


class OpenAIOracle:
    """Chat-completions oracle in JSON response mode."""

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> None:
        cfg = settings.oracle
        self._client = client or AsyncOpenAI(api_key=cfg.api_key, timeout=cfg.timeout_sec)
        self._model = model or cfg.llm_model
        self._temperature = cfg.llm_temperature if temperature is None else temperature

    async def analyze(self, request: OracleRequest) -> OracleResult:
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": ORACLE_SYSTEM_PROMPT},
                    {"role": "user", "content": build_oracle_prompt(request)},
                ],
                response_format={"type": "json_object"},
                temperature=self._temperature,
            )
            content = response.choices[0].message.content
            if not content:
                logger.warning("Oracle returned no content, degrading to clarify")
                return OracleResult.degraded()
            result = OracleResult.model_validate(json.loads(content))
        except (OpenAIError, ValueError, IndexError) as exc:
            # ValueError covers both malformed JSON and pydantic validation
            logger.warning("Oracle call failed, degrading to clarify: %s", exc)
            return OracleResult.degraded()

        logger.info(
            "Oracle classified message: intent=%s confidence=%.2f",
            result.intent.value,
            result.confidence,
        )
        return result


# --- Offline keyword oracle ---

_DELETE_WORDS = [
    "cancele", "cancela", "desmarcar", "desmarque", "excluir", "exclua",
    "remover", "remova", "apagar", "apague",
]
_UPDATE_WORDS = [
    "mude", "mudar", "muda", "altere", "alterar", "remarcar", "remarque",
    "troque", "trocar", "adie", "adiar", "passe", "na verdade",
]
_LIST_PHRASES = ["quais sao meus", "meus compromissos", "o que tenho", "minha agenda"]
_QUERY_WORDS = ["quando", "onde", "que horas"]
_CREATE_WORDS = ["marque", "marcar", "agende", "agendar", "tenho", "lembre"]

# Folded keyword -> display title
_TITLES = {
    "reuniao": "Reunião",
    "almoco": "Almoço",
    "jantar": "Jantar",
    "cafe": "Café",
    "consulta": "Consulta",
    "dentista": "Dentista",
    "medico": "Médico",
    "aula": "Aula",
    "academia": "Academia",
    "entrevista": "Entrevista",
    "call": "Call",
    "aniversario": "Aniversário",
}

_WEEKDAY_KEYS = [fold_text(name.split("-")[0]) for name in WEEKDAYS]
_BR_DATE = re.compile(r"\b(\d{1,2})/(\d{1,2})(?:/(\d{4}))?\b")
_CLOCK = re.compile(r"\b(\d{1,2})(?::(\d{2})|h(\d{2})?)(?!\w)")
_AT_HOUR = re.compile(r"\bas (\d{1,2})\b")
_PLACE = re.compile(r"\b(?:na|no) (sala \w+|escritorio|restaurante \w+|clinica|hospital)\b")
_PEOPLE = re.compile(r"\bcom (?:o |a |os |as )?(\w+(?: e \w+)*)")


def _has_any(folded: str, words: list[str]) -> bool:
    return any(re.search(rf"(?<!\w){re.escape(word)}(?!\w)", folded) for word in words)


class KeywordOracle:
    """Heuristic oracle for offline runs; never references tasks by id."""

    async def analyze(self, request: OracleRequest) -> OracleResult:
        now = to_reference(request.now or datetime.now(settings.timezone))
        folded = fold_text(request.message)

        info = TaskInfo(
            title=self._title(folded),
            scheduled_date=self._when(folded, now.date()),
            location=self._place(folded),
            participants=self._people(folded),
        )
        intent = self._intent(folded, info)
        result = OracleResult(intent=intent, confidence=0.9 if intent != Intent.CLARIFY else 0.3)
        if intent == Intent.CREATE:
            result.new_task_info = info
        elif intent == Intent.UPDATE:
            result.changes = info.model_copy(update={"title": None})
        return result

    @staticmethod
    def _intent(folded: str, info: TaskInfo) -> Intent:
        if _has_any(folded, _DELETE_WORDS):
            return Intent.DELETE
        if _has_any(folded, _UPDATE_WORDS):
            return Intent.UPDATE
        if any(phrase in folded for phrase in _LIST_PHRASES):
            return Intent.LIST
        if _has_any(folded, _QUERY_WORDS):
            return Intent.QUERY
        if info.title or info.scheduled_date or _has_any(folded, _CREATE_WORDS):
            return Intent.CREATE
        return Intent.CLARIFY

    @staticmethod
    def _title(folded: str) -> Optional[str]:
        for word in folded.split():
            if word in _TITLES:
                return _TITLES[word]
        return None

    @staticmethod
    def _day(folded: str, today: date) -> Optional[date]:
        if "depois de amanha" in folded:
            return today + timedelta(days=2)
        if re.search(r"\bamanha\b", folded):
            return today + timedelta(days=1)
        if re.search(r"\bhoje\b", folded):
            return today
        match = _BR_DATE.search(folded)
        if match:
            day, month, year = match.groups()
            try:
                return date(int(year or today.year), int(month), int(day))
            except ValueError:
                return None
        for index, key in enumerate(_WEEKDAY_KEYS):
            if re.search(rf"\b{key}\b", folded):
                ahead = (index - today.weekday()) % 7 or 7
                return today + timedelta(days=ahead)
        return None

    @staticmethod
    def _clock(folded: str) -> Optional[tuple[int, int]]:
        if "meio-dia" in folded or "meio dia" in folded:
            return 12, 30 if "e meia" in folded else 0
        if "meia-noite" in folded or "meia noite" in folded:
            return 0, 0
        match = _CLOCK.search(folded)
        if match:
            hour = int(match.group(1))
            minute = int(match.group(2) or match.group(3) or 0)
            if hour < 24 and minute < 60:
                return hour, minute
        match = _AT_HOUR.search(folded)
        if match and int(match.group(1)) < 24:
            return int(match.group(1)), 0
        return None

    def _when(self, folded: str, today: date) -> Optional[str]:
        # Dates are checked first so "05/03" is never read as a time
        day = self._day(folded, today)
        clock = self._clock(_BR_DATE.sub(" ", folded))
        if day and clock:
            return f"{day.isoformat()}T{clock[0]:02d}:{clock[1]:02d}:00"
        if day:
            return day.isoformat()
        if clock:
            return f"{clock[0]:02d}:{clock[1]:02d}"
        return None

    @staticmethod
    def _place(folded: str) -> Optional[str]:
        match = _PLACE.search(folded)
        return match.group(1).capitalize() if match else None

    @staticmethod
    def _people(folded: str) -> list[str]:
        match = _PEOPLE.search(folded)
        if not match:
            return []
        return [name.capitalize() for name in match.group(1).split(" e ")]
