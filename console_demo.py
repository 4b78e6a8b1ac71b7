"""
Offline console demo: a full appointment conversation without any API keys.

Runs the real orchestrator, dialogue manager and dedup guard against the
in-memory stores and the keyword oracle. Replies are printed instead of
being sent to WhatsApp.

Usage:
    python console_demo.py
    python console_demo.py --scenario create
    python console_demo.py --scenario update
"""

import argparse
import asyncio
import time

from src.conversation.history import InMemoryMessageHistory
from src.conversation.store import InMemoryConversationStore
from src.orchestrator import TurnOrchestrator
from src.schemas.conversation_schema import InboundMessage
from src.tools.oracle import KeywordOracle
from src.tools.tasks import InMemoryTaskStore

BLUE = "\033[94m"
GREEN = "\033[92m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"

DEMO_USER = "+5511999990000"


class PrintingSender:
    """Message sender that writes replies to the terminal."""

    async def send_text(self, user: str, text: str) -> None:
        print(f"{GREEN}{BOLD}[assistente]{RESET} {GREEN}{text}{RESET}")

    async def send_buttons(self, user: str, text: str, buttons: list[tuple[str, str]]) -> None:
        await self.send_text(user, text)
        labels = "  ".join(f"[{title}]" for _, title in buttons)
        print(f"{DIM}  {labels}{RESET}")


class ConsoleSession:
    """Feeds typed or scripted lines through the orchestrator."""

    SCENARIOS: dict[str, list[str]] = {
        "create": [
            "Reunião amanhã",
            "às 15h",
            "na verdade é meio-dia",
            "confirmar",
            "listar",
        ],
        "update": [
            "Almoço amanhã às 12h com Ana",
            "mude o horário para 16h",
            "1",
            "confirmar",
            "listar",
        ],
        "delete": [
            "Dentista sexta às 10h",
            "cancele o dentista",
            "sim",
            "listar",
        ],
    }

    def __init__(self) -> None:
        self.tasks = InMemoryTaskStore()
        self.store = InMemoryConversationStore()
        self.orchestrator = TurnOrchestrator(
            store=self.store,
            tasks=self.tasks,
            oracle=KeywordOracle(),
            sender=PrintingSender(),
            history=InMemoryMessageHistory(),
        )

    def system_log(self, text: str) -> None:
        print(f"{DIM}  >> {text}{RESET}")

    async def say(self, text: str) -> None:
        print(f"{BLUE}{BOLD}[você]{RESET} {BLUE}{text}{RESET}")
        decision = await self.orchestrator.handle(
            InboundMessage(sender=DEMO_USER, text=text, timestamp=time.time())
        )
        if decision is not None:
            self.system_log(
                f"{' -> '.join(decision.trace)} | operation: {decision.operation.kind.value}"
            )

    async def run_scenario(self, name: str) -> None:
        print(f"{BOLD}--- Cenário: {name} ---{RESET}")
        for line in self.SCENARIOS[name]:
            await self.say(line)
            print()

    async def run(self) -> None:
        print(f"{BOLD}Assistente de compromissos (digite /sair para encerrar){RESET}")
        while True:
            try:
                text = input("> ").strip()
            except (EOFError, KeyboardInterrupt):
                print()
                return
            if text == "/sair":
                return
            if text:
                await self.say(text)


def main() -> None:
    parser = argparse.ArgumentParser(description="Offline console demo")
    parser.add_argument(
        "--scenario",
        choices=sorted(ConsoleSession.SCENARIOS),
        default=None,
        help="Auto-play a pre-scripted scenario instead of interactive mode",
    )
    args = parser.parse_args()

    session = ConsoleSession()
    if args.scenario:
        asyncio.run(session.run_scenario(args.scenario))
    else:
        asyncio.run(session.run())


if __name__ == "__main__":
    main()
