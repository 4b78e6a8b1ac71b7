"""
Keyword classification for control commands and short replies.

Two independent checks, each looking at a different concern:
1. ControlKeywords: cancel / restart / help / list, available in any state
   and matched before the oracle is ever called
2. ReplyClassifier: affirmative / negative answers to confirmation
   prompts and the "save" keyword that finishes an edit

Matching is case- and accent-insensitive and ignores surrounding
punctuation, so "Cancelar!" and "CANCELAR" behave the same.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from src.utils import fold_text

logger = logging.getLogger(__name__)

_PUNCTUATION = re.compile(r"[^\w\s]")


def _clean(text: str) -> str:
    return fold_text(_PUNCTUATION.sub(" ", text))


class ControlCommand(str, Enum):
    CANCEL = "cancel"
    RESTART = "restart"
    HELP = "help"
    LIST = "list"


class ReplyKind(str, Enum):
    AFFIRMATIVE = "affirmative"
    NEGATIVE = "negative"
    OTHER = "other"


@dataclass
class CommandMatch:
    """Outcome of a control keyword check."""
    command: ControlCommand
    keyword: str


class ControlKeywords:
    """Exact-match control keywords that bypass the oracle."""

    KEYWORDS: dict[ControlCommand, list[str]] = {
        ControlCommand.CANCEL: ["cancelar", "cancel", "sair"],
        ControlCommand.RESTART: ["reiniciar", "recomecar", "restart"],
        ControlCommand.HELP: ["ajuda", "help", "menu"],
        ControlCommand.LIST: ["listar", "lista", "list", "compromissos", "agenda"],
    }

    def match(self, text: str) -> Optional[CommandMatch]:
        cleaned = _clean(text)
        for command, keywords in self.KEYWORDS.items():
            if cleaned in keywords:
                logger.info("Control keyword detected: '%s'", cleaned)
                return CommandMatch(command=command, keyword=cleaned)
        return None


class ReplyClassifier:
    """Classifies short replies to confirmation and edit prompts."""

    AFFIRMATIVE_WORDS = [
        "sim", "s", "confirmar", "confirmo", "confirma", "ok", "okay",
        "yes", "claro", "perfeito", "correto", "certo", "beleza",
    ]
    AFFIRMATIVE_PHRASES = [
        "pode marcar", "pode agendar", "pode ser", "pode confirmar",
        "isso mesmo", "isso", "esta certo", "ta certo", "tudo certo",
        "pode excluir", "pode remover", "pode apagar",
    ]

    NEGATIVE_WORDS = [
        "nao", "n", "no", "editar", "corrigir", "alterar", "mudar", "errado",
    ]
    NEGATIVE_PHRASES = ["esta errado", "ta errado", "nao esta certo"]

    # May accompany a yes or a no without turning it into new slot data
    COURTESY_WORDS = [
        "por", "favor", "obrigado", "obrigada", "pode", "marcar", "agendar",
        "excluir", "remover", "apagar",
    ]

    SAVE_WORDS = ["confirmar", "confirmo", "confirma", "salvar", "salva", "sim", "ok", "pronto"]
    SAVE_PHRASES = ["pode salvar", "pode confirmar", "pode atualizar", "finalizar", "concluir"]

    def classify(self, text: str) -> ReplyKind:
        """Whole-reply match: "no escritório" and "sim, mas às 16h" are OTHER.

        A reply is affirmative or negative only when it is a known phrase or
        every word is a yes (or no) word or a courtesy word.
        """
        cleaned = _clean(text)
        if not cleaned:
            return ReplyKind.OTHER
        if cleaned in self.NEGATIVE_PHRASES:
            return ReplyKind.NEGATIVE
        if cleaned in self.AFFIRMATIVE_PHRASES:
            return ReplyKind.AFFIRMATIVE

        words = cleaned.split()
        rest = [word for word in words if word not in self.COURTESY_WORDS]
        if rest and all(word in self.NEGATIVE_WORDS for word in rest):
            return ReplyKind.NEGATIVE
        if rest and all(word in self.AFFIRMATIVE_WORDS for word in rest):
            return ReplyKind.AFFIRMATIVE
        return ReplyKind.OTHER

    def is_save(self, text: str) -> bool:
        """Whole-reply match, so "ok, mas muda para 16h" keeps editing."""
        cleaned = _clean(text)
        return cleaned in self.SAVE_WORDS or cleaned in self.SAVE_PHRASES
