from __future__ import annotations

from typing import Iterable, Optional, Sequence

from eventsplit.db.models import ExplicitShare, Expense
from eventsplit.services.errors import ValidationError


def clean_name(value: Optional[str], what: str = "Имя") -> str:
    name = (value or "").strip()
    if not name:
        raise ValidationError(f"{what} не может быть пустым.")
    return name


def resolve_participants(
    creator_name: str,
    persisted: Sequence[str],
    respondents: Iterable[str],
    expenses: Iterable[Expense],
) -> list[str]:
    """
    Собирает всех участников события без повторов.

    Порядок: создатель, уже сохранённый список, ответившие в опросе,
    затем плательщики и явные участники расходов. Имена сравниваются как есть.
    """
    seen: dict[str, None] = {}

    def add(name: Optional[str]) -> None:
        if name:
            seen.setdefault(name, None)

    add(creator_name)
    for name in persisted:
        add(name)
    for name in respondents:
        add(name)
    for expense in expenses:
        add(expense.payer)
        if isinstance(expense.policy, ExplicitShare):
            for member in expense.policy.members:
                add(member)

    return list(seen)


def has_grown(persisted: Sequence[str], resolved: Sequence[str]) -> bool:
    return list(resolved) != list(persisted)
