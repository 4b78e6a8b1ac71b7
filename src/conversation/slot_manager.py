"""
Slot model for the appointment under construction or edit.

A slot model accumulates what the user has said across turns. Every turn
the oracle re-extracts fields from the whole raw text and the result is
merged field-wise: a non-empty extracted value replaces the stored one,
an absent value leaves it alone.

Usage:
    slots = SlotModel()
    slots.append_turn("Reunião amanhã")
    slots = slots.merge(SlotPatch.from_task_info(result.new_task_info))
    if slots.is_complete():
        ...
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, time
from typing import Any, Optional
from zoneinfo import ZoneInfo

from pydantic import BaseModel, Field, field_validator

from src.prompts.formatting import reference_tz, to_reference
from src.schemas.oracle_schema import TaskInfo
from src.schemas.task_schema import Task, TaskCreate, TaskUpdate

logger = logging.getLogger(__name__)

# Hour used when only a date is known; the model still asks for the time.
DEFAULT_HOUR = 12

_BR_DATE = re.compile(
    r"^(\d{1,2})/(\d{1,2})/(\d{4})(?:[ T]+(\d{1,2})(?:[:h](\d{2}))?h?)?$"
)
_ISO_DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME_ONLY = re.compile(r"^(\d{1,2})(?:[:h](\d{2}))?h?$")


@dataclass(frozen=True)
class SlotDefinition:
    """Schema for a single appointment field."""

    name: str
    display_name: str
    required: bool = True


@dataclass(frozen=True)
class ParsedWhen:
    """A scheduled instant plus which parts of it were actually stated."""

    value: datetime
    date_known: bool = True
    time_known: bool = True


def _dedupe(values: list[str]) -> list[str]:
    seen: set[str] = set()
    result: list[str] = []
    for raw in values:
        value = raw.strip()
        if value and value not in seen:
            seen.add(value)
            result.append(value)
    return result


def parse_scheduled_date(
    raw: Optional[str], now: Optional[datetime] = None, tz: Optional[ZoneInfo] = None
) -> Optional[ParsedWhen]:
    """Parse an oracle date string into an aware instant.

    Accepts ISO datetimes, ISO dates, ``DD/MM/YYYY`` with an optional time,
    and bare times (``15:30``, ``15h``). Naive values are wall-clock time in
    the reference timezone.
    """
    if not raw:
        return None
    tz = tz or reference_tz()
    text = raw.strip()

    match = _BR_DATE.match(text)
    if match:
        day, month, year, hour, minute = match.groups()
        try:
            base = datetime(int(year), int(month), int(day), tzinfo=tz)
        except ValueError:
            logger.warning("Invalid DD/MM/YYYY date from oracle: %r", raw)
            return None
        if hour is None:
            return ParsedWhen(base.replace(hour=DEFAULT_HOUR), time_known=False)
        return ParsedWhen(base.replace(hour=int(hour), minute=int(minute or 0)))

    match = _TIME_ONLY.match(text)
    if match:
        hour, minute = int(match.group(1)), int(match.group(2) or 0)
        if hour > 23 or minute > 59:
            return None
        today = to_reference(now or datetime.now(tz), tz)
        return ParsedWhen(
            today.replace(hour=hour, minute=minute, second=0, microsecond=0),
            date_known=False,
        )

    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        logger.warning("Unparseable scheduled date from oracle: %r", raw)
        return None
    if _ISO_DATE_ONLY.match(text):
        return ParsedWhen(
            parsed.replace(hour=DEFAULT_HOUR, tzinfo=tz), time_known=False
        )
    return ParsedWhen(to_reference(parsed, tz).replace(second=0, microsecond=0))


class SlotPatch(BaseModel):
    """Newly extracted fields for one turn; empty fields mean 'not stated'."""

    title: Optional[str] = None
    when: Optional[datetime] = None
    date_known: bool = True
    time_known: bool = True
    place: Optional[str] = None
    participants: list[str] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.title or self.when or self.place or self.participants)

    @classmethod
    def from_task_info(
        cls, info: Optional[TaskInfo], now: Optional[datetime] = None
    ) -> "SlotPatch":
        if info is None:
            return cls()
        parsed = parse_scheduled_date(info.scheduled_date, now)
        return cls(
            title=(info.title or "").strip() or None,
            when=parsed.value if parsed else None,
            date_known=parsed.date_known if parsed else True,
            time_known=parsed.time_known if parsed else True,
            place=(info.location or "").strip() or None,
            participants=_dedupe(info.participants),
        )


class SlotModel(BaseModel):
    """Appointment fields collected so far plus the raw text they came from."""

    title: Optional[str] = None
    when: Optional[datetime] = None
    needs_time_confirmation: bool = False
    place: Optional[str] = None
    participants: list[str] = Field(default_factory=list)
    raw_turns: list[str] = Field(default_factory=list)

    @field_validator("participants")
    @classmethod
    def _ordered_set(cls, value: list[str]) -> list[str]:
        return _dedupe(value)

    @field_validator("when")
    @classmethod
    def _normalize_when(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_reference(value) if value is not None else None

    @classmethod
    def from_task(cls, task: Task) -> "SlotModel":
        """Seed a slot model with an existing task's values."""
        return cls(
            title=task.title,
            when=task.scheduled_date,
            place=task.location,
            participants=list(task.participants),
        )

    def append_turn(self, text: str) -> None:
        self.raw_turns.append(text)

    def source_text(self) -> str:
        """All user turns joined, re-submitted to the oracle every turn."""
        return " ".join(turn.strip() for turn in self.raw_turns if turn.strip())

    def merge(self, patch: SlotPatch) -> "SlotModel":
        """Return a new model with the patch's non-empty fields applied."""
        update: dict[str, Any] = {}
        if patch.title:
            update["title"] = patch.title
        if patch.place:
            update["place"] = patch.place
        if patch.participants:
            update["participants"] = _dedupe(patch.participants)
        if patch.when is not None:
            when, needs_time = self._resolve_when(patch)
            update["when"] = when
            update["needs_time_confirmation"] = needs_time
        if not update:
            return self.model_copy(deep=True)
        merged = self.model_copy(deep=True, update=update)
        # model_copy skips validation; re-run the field normalizers
        return SlotModel.model_validate(merged.model_dump())

    def _resolve_when(self, patch: SlotPatch) -> tuple[datetime, bool]:
        new = to_reference(patch.when)
        current = self.when
        if not patch.time_known:
            if current is not None and not self.needs_time_confirmation:
                return datetime.combine(new.date(), current.timetz()), False
            return datetime.combine(new.date(), time(DEFAULT_HOUR), tzinfo=new.tzinfo), True
        if not patch.date_known and current is not None:
            return datetime.combine(current.date(), new.timetz()), False
        return new, False

    def to_task_create(self, owner_id: str) -> TaskCreate:
        if not self.is_complete():
            raise ValueError("Cannot create a task from an incomplete slot model")
        return TaskCreate(
            owner_id=owner_id,
            title=self.title,
            scheduled_date=self.when,
            location=self.place,
            participants=list(self.participants),
        )

    def to_task_update(self, task: Task) -> TaskUpdate:
        """Only the fields whose value differs from ``task``."""
        update = TaskUpdate()
        if self.title and self.title != task.title:
            update.title = self.title
        if self.when is not None and self.when != task.scheduled_date:
            update.scheduled_date = self.when
        if self.place and self.place != task.location:
            update.location = self.place
        if self.participants and self.participants != list(task.participants):
            update.participants = list(self.participants)
        return update

    def is_complete(self) -> bool:
        return bool(self.title) and self.when is not None and not self.needs_time_confirmation

    def missing_fields(self) -> list[SlotDefinition]:
        """Required fields still unknown, in asking order."""
        missing = []
        for defn in SLOT_DEFINITIONS:
            if not defn.required:
                continue
            if defn.name == "title" and not self.title:
                missing.append(defn)
            elif defn.name == "when" and self.when is None:
                missing.append(defn)
            elif defn.name == "when" and self.needs_time_confirmation:
                missing.append(TIME_ONLY_DEFINITION)
        return missing


SLOT_DEFINITIONS: list[SlotDefinition] = [
    SlotDefinition(name="title", display_name="o que é o compromisso"),
    SlotDefinition(name="when", display_name="a data e o horário"),
    SlotDefinition(name="place", display_name="o local", required=False),
    SlotDefinition(name="participants", display_name="os participantes", required=False),
]

TIME_ONLY_DEFINITION = SlotDefinition(name="when", display_name="o horário")
