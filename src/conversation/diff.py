"""Human-readable diffs between two slot models."""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from src.conversation.slot_manager import SlotModel
from src.prompts.formatting import format_when, to_reference

ABSENT = "—"


@dataclass(frozen=True)
class FieldChange:
    """One field whose value differs between the two sides of a diff."""

    field: str
    label: str
    old: str
    new: str

    def render(self) -> str:
        return f"{self.label}: {self.old} → {self.new}"


def _same_instant(a: Optional[datetime], b: Optional[datetime]) -> bool:
    if a is None or b is None:
        return a is b
    return to_reference(a) == to_reference(b)


def _text(value: Optional[str], now: datetime) -> str:
    return value if value else ABSENT


def _when(value: Optional[datetime], now: datetime) -> str:
    return format_when(value, now) if value is not None else ABSENT


def _people(value: list[str], now: datetime) -> str:
    return ", ".join(value) if value else ABSENT


# (field, label, equality, formatter) in display order
_FIELDS: list[tuple[str, str, Callable, Callable]] = [
    ("title", "Título", lambda a, b: a == b, _text),
    ("when", "Data e horário", _same_instant, _when),
    ("place", "Local", lambda a, b: a == b, _text),
    ("participants", "Participantes", lambda a, b: list(a) == list(b), _people),
]


def diff_slots(before: SlotModel, after: SlotModel, now: datetime) -> list[FieldChange]:
    """List the fields that changed from ``before`` to ``after``.

    ``raw_turns`` and the time-confirmation flag are not user-visible and
    are never reported.
    """
    changes = []
    for name, label, equal, fmt in _FIELDS:
        old, new = getattr(before, name), getattr(after, name)
        if equal(old, new):
            continue
        changes.append(FieldChange(field=name, label=label, old=fmt(old, now), new=fmt(new, now)))
    return changes


def render_diff(changes: list[FieldChange]) -> str:
    return "\n".join(f"• {change.render()}" for change in changes)
