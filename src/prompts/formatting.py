"""Humanized date and time phrasing in the reference timezone.

Every instant shown to the user goes through these helpers, so the
conversion from stored instants to local wall-clock time happens in one
place.
"""

from datetime import date, datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from src.config import settings

WEEKDAYS = [
    "segunda-feira",
    "terça-feira",
    "quarta-feira",
    "quinta-feira",
    "sexta-feira",
    "sábado",
    "domingo",
]

MONTHS = [
    "janeiro",
    "fevereiro",
    "março",
    "abril",
    "maio",
    "junho",
    "julho",
    "agosto",
    "setembro",
    "outubro",
    "novembro",
    "dezembro",
]

# Weekday names are used up to this many days ahead; beyond it the full date.
WEEKDAY_HORIZON_DAYS = 7


def reference_tz() -> ZoneInfo:
    return settings.timezone


def to_reference(value: datetime, tz: Optional[ZoneInfo] = None) -> datetime:
    """Normalize an instant to the reference timezone.

    Naive values are taken as wall-clock time in the reference timezone.
    """
    tz = tz or reference_tz()
    if value.tzinfo is None:
        return value.replace(tzinfo=tz)
    return value.astimezone(tz)


def now_in_reference() -> datetime:
    return datetime.now(timezone.utc).astimezone(reference_tz())


def from_unix(timestamp: float) -> datetime:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).astimezone(reference_tz())


def format_date(value: datetime, now: datetime) -> str:
    """Phrase a date relative to ``now`` the way a person would say it."""
    local = to_reference(value).date()
    today = to_reference(now).date()
    days = (local - today).days
    if days == 0:
        return "hoje"
    if days == 1:
        return "amanhã"
    if days == 2:
        return "depois de amanhã"
    if 2 < days < WEEKDAY_HORIZON_DAYS:
        return WEEKDAYS[local.weekday()]
    return format_full_date(local)


def format_full_date(value: date) -> str:
    return f"{WEEKDAYS[value.weekday()]}, {value.day} de {MONTHS[value.month - 1]}"


def format_time(value: datetime) -> str:
    """Phrase a time of day; round hours and half hours get special wording."""
    local = to_reference(value)
    hours, minutes = local.hour, local.minute
    if minutes == 0:
        if hours == 12:
            return "meio-dia"
        if hours == 0:
            return "meia-noite"
        return f"{hours} horas"
    if minutes == 30:
        if hours == 12:
            return "meio-dia e meia"
        if hours == 0:
            return "meia-noite e meia"
        return f"{hours} e meia"
    return local.strftime("%H:%M")


def time_preposition(time_text: str) -> str:
    if time_text.startswith("meio-dia"):
        return "ao"
    if time_text.startswith("meia-noite"):
        return "à"
    return "às"


def format_when(value: datetime, now: datetime) -> str:
    """Date and time together, e.g. ``amanhã às 15 horas``."""
    time_text = format_time(value)
    return f"{format_date(value, now)} {time_preposition(time_text)} {time_text}"


def date_tokens(value: datetime, now: datetime) -> list[str]:
    """Strings a user might type to refer to this date."""
    local = to_reference(value)
    return [
        format_date(value, now),
        WEEKDAYS[local.weekday()],
        f"{local.day:02d}/{local.month:02d}",
        f"{local.day}/{local.month}",
        f"{local.day} de {MONTHS[local.month - 1]}",
    ]


def time_tokens(value: datetime) -> list[str]:
    """Strings a user might type to refer to this time of day."""
    local = to_reference(value)
    tokens = [format_time(value), local.strftime("%H:%M"), f"{local.hour}:{local.minute:02d}"]
    if local.minute == 0:
        tokens.extend([f"{local.hour}h", f"{local.hour}:00"])
    else:
        tokens.append(f"{local.hour}h{local.minute:02d}")
    return tokens
