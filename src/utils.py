"""Shared utilities used across the appointment assistant."""

import re
import unicodedata


def normalize_phone(value: str) -> str:
    """Normalize a phone number by stripping everything except digits and a leading +.

    Examples:
        >>> normalize_phone("+55 (11) 99999-9999")
        '+5511999999999'
        >>> normalize_phone("5511 99999 9999")
        '5511999999999'
    """
    value = value.strip()
    if value.startswith("+"):
        return "+" + re.sub(r"[^\d]", "", value[1:])
    return re.sub(r"[^\d]", "", value)


def fold_text(value: str) -> str:
    """Lower-case, strip accents and collapse whitespace for keyword matching.

    Examples:
        >>> fold_text("  Reunião   AMANHÃ ")
        'reuniao amanha'
    """
    decomposed = unicodedata.normalize("NFKD", value)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return re.sub(r"\s+", " ", stripped).strip().lower()


def redact_phone(value: str) -> str:
    """Mask a phone number for logging, keeping the last four digits."""
    if not value or len(value) <= 4:
        return "***"
    return "***" + value[-4:]
