"""User-facing reply texts, built from tasks, slot models and diffs."""

from datetime import datetime
from itertools import groupby
from typing import Optional

from src.conversation.diff import FieldChange, render_diff
from src.conversation.slot_manager import SlotDefinition, SlotModel
from src.prompts.formatting import format_date, format_time, format_when, time_preposition, to_reference
from src.schemas.task_schema import Task, TaskCreate

APOLOGY_MESSAGE = "Desculpe, tive um problema ao processar sua mensagem. Pode tentar novamente?"
CANCEL_MESSAGE = "Tudo bem, esqueci nossa conversa anterior. Em que posso ajudar agora?"
RESTART_MESSAGE = (
    "Conversa reiniciada. Estou pronto para ajudar com seus compromissos. O que você precisa hoje?"
)
NOT_FOUND_MESSAGE = (
    "Não encontrei esse compromisso nos seus agendamentos. Pode verificar se ele existe?"
)
CLARIFY_MESSAGE = "Não entendi completamente. Você pode me dar mais detalhes?"
NO_UPCOMING_TASKS_MESSAGE = "Você não tem compromissos agendados para os próximos dias."
NO_TASKS_AT_ALL_MESSAGE = (
    "Você não tem compromissos agendados. Para criar um novo compromisso, basta me dizer "
    'os detalhes, como por exemplo "Reunião amanhã às 15h".'
)
DELETE_ABORTED_MESSAGE = "Tudo bem, não excluí o compromisso."
ASK_WHAT_TO_CHANGE_MESSAGE = "O que você gostaria de mudar no compromisso?"
EDIT_INSTRUCTIONS = 'Me diga o que mais quer mudar ou responda "confirmar" para salvar.'
CONFIRM_INSTRUCTIONS = 'Responda "confirmar" para agendar ou "editar" para mudar algo.'

CONFIRM_BUTTONS = [("confirm_yes", "Confirmar"), ("confirm_no", "Editar")]
DELETE_BUTTONS = [("confirm_yes", "Sim, excluir"), ("confirm_no", "Não")]

_OPERATION_VERBS = {"update": "alterar", "delete": "excluir", "read": "consultar"}


def _details(location: Optional[str], participants: list[str]) -> str:
    text = ""
    if location:
        text += f" em {location}"
    if participants:
        text += f" com {', '.join(participants)}"
    return text


def describe_task(task: Task, now: datetime) -> str:
    """One-line description, e.g. ``"Reunião" amanhã às 15 horas em Sala 2``."""
    return f'"{task.title}" {format_when(task.scheduled_date, now)}' + _details(
        task.location, task.participants
    )


def describe_slots(slots: SlotModel, now: datetime) -> str:
    lines = [f"• Título: {slots.title or '—'}"]
    lines.append(f"• Data e horário: {format_when(slots.when, now) if slots.when else '—'}")
    if slots.place:
        lines.append(f"• Local: {slots.place}")
    if slots.participants:
        lines.append(f"• Participantes: {', '.join(slots.participants)}")
    return "\n".join(lines)


def conflict_note(conflict: Optional[Task], now: datetime) -> str:
    if conflict is None:
        return ""
    time_text = format_time(conflict.scheduled_date)
    return (
        f'Observação: você já tem outro compromisso "{conflict.title}" '
        f"{time_preposition(time_text)} {time_text} próximo desse horário."
    )


def _join_natural(parts: list[str]) -> str:
    if len(parts) <= 1:
        return "".join(parts)
    return ", ".join(parts[:-1]) + " e " + parts[-1]


def build_missing_fields_message(slots: SlotModel, missing: list[SlotDefinition], now: datetime) -> str:
    """Ask for the required fields that are still unknown, by name."""
    if [defn.display_name for defn in missing] == ["o horário"] and slots.when is not None:
        subject = f' "{slots.title}"' if slots.title else ""
        return (
            f"Qual horário você deseja para o compromisso{subject} "
            f"{format_date(slots.when, now)}?"
        )
    names = _join_natural([defn.display_name for defn in missing])
    if slots.title or slots.when:
        return f"Anotado! Para agendar, só falta me dizer {names}."
    return f"Para agendar, me diga {names}."


def build_confirmation_message(
    slots: SlotModel,
    now: datetime,
    changes: Optional[list[FieldChange]] = None,
    conflict: Optional[Task] = None,
) -> str:
    parts = [f"Posso agendar este compromisso?\n{describe_slots(slots, now)}"]
    if changes:
        parts.append(f"Alterações:\n{render_diff(changes)}")
    note = conflict_note(conflict, now)
    if note:
        parts.append(note)
    parts.append(CONFIRM_INSTRUCTIONS)
    return "\n\n".join(parts)


def build_created_message(task: TaskCreate, now: datetime, conflict: Optional[Task] = None) -> str:
    text = (
        f"Perfeito! Agendei {task.title} para {format_when(task.scheduled_date, now)}"
        + _details(task.location, task.participants)
        + "."
    )
    note = conflict_note(conflict, now)
    return f"{text} {note}" if note else text


def build_selection_list(tasks: list[Task], operation: str, now: datetime) -> str:
    verb = _OPERATION_VERBS.get(operation, "usar")
    lines = [f"Qual compromisso você quer {verb}? Responda com o número:"]
    for index, task in enumerate(tasks, start=1):
        lines.append(f"{index}. {describe_task(task, now)}")
    return "\n".join(lines)


def build_selection_retry(count: int) -> str:
    if count == 1:
        return "Por favor, responda com o número 1 para escolher o compromisso."
    return f"Por favor, responda com um número de 1 a {count} para escolher o compromisso."


def build_update_prompt(task: Task, changes: list[FieldChange], now: datetime) -> str:
    if not changes:
        return (
            f"Vamos alterar o compromisso {describe_task(task, now)}. "
            f"{ASK_WHAT_TO_CHANGE_MESSAGE}"
        )
    return (
        f'Alterações no compromisso "{task.title}":\n{render_diff(changes)}\n\n{EDIT_INSTRUCTIONS}'
    )


def build_updated_message(
    task: Task, changes: list[FieldChange], now: datetime, conflict: Optional[Task] = None
) -> str:
    if not changes:
        return f'Não houve alterações necessárias para o compromisso "{task.title}".'
    text = f'Pronto! Atualizei o compromisso "{task.title}":\n{render_diff(changes)}'
    note = conflict_note(conflict, now)
    return f"{text}\n\n{note}" if note else text


def build_delete_confirmation(task: Task, now: datetime) -> str:
    return f"Tem certeza que deseja excluir o compromisso {describe_task(task, now)}?"


def build_deleted_message(task: Task, now: datetime) -> str:
    return (
        f'Pronto! Removi o compromisso "{task.title}" que estava agendado para '
        f"{format_when(task.scheduled_date, now)}."
    )


def build_task_list(tasks: list[Task], now: datetime) -> str:
    """Upcoming tasks grouped by local calendar day."""
    if not tasks:
        return NO_UPCOMING_TASKS_MESSAGE
    lines = ["Seus próximos compromissos:"]
    for day, group in groupby(tasks, key=lambda task: to_reference(task.scheduled_date).date()):
        day_tasks = list(group)
        lines.append("")
        lines.append(f"{format_date(day_tasks[0].scheduled_date, now)}:")
        for task in day_tasks:
            lines.append(
                f"- {format_time(task.scheduled_date)}: {task.title}"
                + _details(task.location, task.participants)
            )
    return "\n".join(lines)


def build_overview(upcoming: list[Task], recent: list[Task], now: datetime) -> str:
    """Reply to the list command: upcoming tasks plus a few recent past ones."""
    if not upcoming and not recent:
        return NO_TASKS_AT_ALL_MESSAGE
    parts = []
    if upcoming:
        lines = ["Aqui estão seus próximos compromissos:"]
        lines.extend(f"• {describe_task(task, now)}" for task in upcoming)
        parts.append("\n".join(lines))
    else:
        parts.append(
            "Você não tem compromissos futuros agendados. Para criar um novo compromisso, "
            "basta me dizer os detalhes."
        )
    if recent:
        lines = ["Compromissos recentes:"]
        lines.extend(f"• {describe_task(task, now)}" for task in recent)
        parts.append("\n".join(lines))
    parts.append(
        "Para saber mais sobre um compromisso específico, basta perguntar. Para criar, "
        "alterar ou excluir compromissos, fale naturalmente comigo."
    )
    return "\n\n".join(parts)


def build_query_answer(task: Task, nearby: list[Task], now: datetime) -> str:
    lines = [f'O compromisso "{task.title}" está agendado para {format_when(task.scheduled_date, now)}.']
    if task.location:
        lines.append(f"Local: {task.location}")
    if task.participants:
        lines.append(f"Participantes: {', '.join(task.participants)}")
    if nearby:
        lines.append("")
        lines.append("Observação: você tem outros compromissos próximos a este horário:")
        for other in nearby:
            time_text = format_time(other.scheduled_date)
            lines.append(f'- "{other.title}" {time_preposition(time_text)} {time_text}')
    return "\n".join(lines)
