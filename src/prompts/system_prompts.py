"""
Centralized prompts for the intent and slot oracle, plus the static help text.

The oracle receives one system prompt describing the JSON contract and one
user prompt carrying the message, recent history, the user's tasks and the
current time. Values such as the timezone come from configuration.
"""

import json
from datetime import datetime

from src.config import settings
from src.prompts.formatting import to_reference
from src.schemas.oracle_schema import OracleRequest
from src.schemas.task_schema import Task

ORACLE_SYSTEM_PROMPT = f"""
You analyze Brazilian Portuguese chat messages sent to a personal
appointment assistant. Decide what the user wants to do with their
appointments and extract any appointment details.

Answer with ONE JSON object and nothing else:
{{
  "intent": "create" | "update" | "delete" | "list" | "query" | "clarify",
  "confidence": number between 0 and 1,
  "referencedTask": {{"id": string, "matchReason": string}} | null,
  "changes": {{"title", "scheduledDate", "location", "participants"}} | null,
  "newTaskInfo": {{"title", "scheduledDate", "location", "participants"}} | null,
  "responseType": string | null,
  "suggestedResponseText": string | null
}}

RULES:
- "create" fills newTaskInfo; "update" fills changes with ONLY the fields that change.
- "referencedTask.id" must be the id of one of the listed tasks, never invented.
- scheduledDate is ISO 8601 local time in {settings.conversation.reference_timezone}
  ("2025-03-05T15:00:00"). Use a date only ("2025-03-05") when no time was said.
- Resolve relative dates ("amanhã", "quarta-feira") against the current time given.
- participants is a list of names.
- When the message is ambiguous use "clarify" and put a short question in Portuguese
  in suggestedResponseText.
- When the message continues earlier turns, extract from all of the text provided.

Examples:
- "Reunião amanhã às 15h" -> create
- "Na verdade a reunião é às 14:00" -> update with changes.scheduledDate
- "Cancele minha consulta de amanhã" -> delete
- "Quais são meus compromissos?" -> list
- "Onde será o almoço de amanhã?" -> query
"""


def _task_line(task: Task) -> str:
    local = to_reference(task.scheduled_date)
    line = f"- id={task.id} | {task.title} | {local.strftime('%Y-%m-%dT%H:%M')} | {task.status.value}"
    if task.location:
        line += f" | local: {task.location}"
    if task.participants:
        line += f" | com: {', '.join(task.participants)}"
    return line


def build_oracle_prompt(request: OracleRequest) -> str:
    """Render the user-side prompt for one oracle call."""
    now = to_reference(request.now or datetime.now(settings.timezone))
    tasks = "\n".join(_task_line(task) for task in request.tasks) or "(nenhum)"
    history = "\n".join(request.history) or "(vazio)"
    return (
        f"Current time: {now.isoformat()} ({now.strftime('%A')})\n\n"
        f"User tasks:\n{tasks}\n\n"
        f"Recent conversation:\n{history}\n\n"
        f"Message: {json.dumps(request.message, ensure_ascii=False)}"
    )


HELP_MESSAGE = (
    "Olá! Sou seu assistente pessoal para gerenciar compromissos. Você pode conversar "
    "comigo naturalmente, como falaria com uma pessoa. Alguns exemplos do que posso fazer:\n\n"
    "*Para criar compromissos:*\n"
    '• "Marque uma reunião com o time amanhã às 15h"\n'
    '• "Tenho almoço com a família quarta-feira às 12h"\n\n'
    "*Para ver seus compromissos:*\n"
    '• "Quais são meus compromissos?"\n'
    '• "O que tenho agendado para amanhã?"\n\n'
    "*Para alterar compromissos:*\n"
    '• "Mude o almoço de amanhã para 13h"\n'
    '• "A reunião será na sala 2, não na recepção"\n\n'
    "*Para cancelar compromissos:*\n"
    '• "Cancele minha reunião de amanhã"\n'
    '• "Preciso desmarcar o almoço de quarta"\n\n'
    "*Comandos:* cancelar, reiniciar, ajuda, listar\n\n"
    "Fale comigo naturalmente e eu farei o meu melhor para entender e ajudar!"
)
