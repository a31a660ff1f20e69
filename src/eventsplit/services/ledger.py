from __future__ import annotations

import asyncio
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Optional, Protocol, Sequence

from eventsplit.db.models import Event, Expense, SharedWithAll
from eventsplit.logging import get_logger
from eventsplit.services.errors import (
    DuplicateParticipantError,
    EventNotFoundError,
    ExpenseNotFoundError,
    PreconditionError,
    ValidationError,
)
from eventsplit.services.participants import clean_name, has_grown, resolve_participants
from eventsplit.services.settlement import Transfer, calculate_settlements, net_balances, settle
from eventsplit.services.split import Balance, ExpenseShare, calculate_balances


class LedgerRepository(Protocol):
    async def get_event(self, event_id: int) -> Event | None: ...

    async def set_event_participants(self, event_id: int, names: Sequence[str]) -> None: ...

    async def list_respondent_names(self, event_id: int) -> list[str]: ...

    async def create_expense(
        self,
        event_id: int,
        payer: str,
        description: str,
        amount: int,
        members: Sequence[str],
        is_shared_with_all: bool,
    ) -> Expense: ...

    async def get_expense(self, expense_id: int) -> Expense | None: ...

    async def list_expenses(self, event_id: int) -> list[Expense]: ...

    async def update_shared_snapshot(self, expense_id: int, members: Sequence[str]) -> None: ...

    async def delete_expense(self, expense_id: int) -> None: ...


@dataclass(slots=True)
class LedgerSummary:
    total: int
    participants: list[str]
    per_person: int
    balances: dict[str, Balance]
    transfers: list[Transfer]
    expenses: list[Expense] = field(default_factory=list)


def to_shares(expenses: Sequence[Expense]) -> list[ExpenseShare]:
    return [ExpenseShare(payer=e.payer, amount=e.amount, policy=e.policy) for e in expenses]


def validate_amount(amount: object) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValidationError("Сумма должна быть целым числом.")
    if amount <= 0:
        raise ValidationError("Сумма должна быть больше нуля.")
    return amount


def validate_members(members: Optional[Sequence[str]]) -> Optional[list[str]]:
    if members is None:
        return None
    if not members:
        raise ValidationError("Список участников расхода не может быть пустым.")
    cleaned = [clean_name(name, "Имя участника") for name in members]
    return list(dict.fromkeys(cleaned))


class ExpenseLedger:
    """
    Расходы события и их деление.

    Все записи по одному событию выполняются последовательно под общим
    замком события; разные события не блокируют друг друга.
    """

    def __init__(self, repo: LedgerRepository) -> None:
        self.repo = repo
        self._locks: defaultdict[int, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._log = get_logger(__name__)

    def lock(self, event_id: int) -> asyncio.Lock:
        return self._locks[event_id]

    async def _require_event(self, event_id: int) -> Event:
        event = await self.repo.get_event(event_id)
        if event is None:
            raise EventNotFoundError(event_id)
        return event

    async def resolve_participants(self, event: Event, expenses: Optional[Sequence[Expense]] = None) -> list[str]:
        if expenses is None:
            expenses = await self.repo.list_expenses(event.id)
        respondents = await self.repo.list_respondent_names(event.id)
        resolved = resolve_participants(event.creator_name, event.participants, respondents, expenses)
        if has_grown(event.participants, resolved):
            await self.repo.set_event_participants(event.id, resolved)
            event.participants = resolved
            self._log.info("participants.resolved", event_id=event.id, count=len(resolved))
        return resolved

    async def record_expense(
        self,
        event_id: int,
        payer: str,
        description: str,
        amount: int,
        members: Optional[Sequence[str]] = None,
    ) -> Expense:
        payer = clean_name(payer, "Имя плательщика")
        description = (description or "").strip()
        if not description:
            raise ValidationError("Описание расхода не может быть пустым.")
        amount = validate_amount(amount)
        explicit = validate_members(members)

        async with self.lock(event_id):
            event = await self._require_event(event_id)
            if not event.is_finalized:
                raise PreconditionError("Дата события ещё не выбрана, поэтому расходы пока недоступны.")

            before = list(event.participants)
            participants = await self.resolve_participants(event)
            if explicit is None:
                snapshot = list(dict.fromkeys([*participants, payer]))
                expense = await self.repo.create_expense(event_id, payer, description, amount, snapshot, True)
            else:
                expense = await self.repo.create_expense(event_id, payer, description, amount, explicit, False)

            # Новый плательщик или участник расширяет состав для всех общих расходов.
            if has_grown(before, await self.resolve_participants(event)):
                await self._resnapshot(event)

        self._log.info(
            "expense.recorded",
            event_id=event_id,
            expense_id=expense.id,
            amount=amount,
            shared_with_all=expense.is_shared_with_all,
        )
        return expense

    async def delete_expense(self, event_id: int, expense_id: int) -> None:
        async with self.lock(event_id):
            await self._require_event(event_id)
            expense = await self.repo.get_expense(expense_id)
            if expense is None or expense.event_id != event_id:
                raise ExpenseNotFoundError(expense_id)
            await self.repo.delete_expense(expense_id)
        self._log.info("expense.deleted", event_id=event_id, expense_id=expense_id)

    async def add_participant(self, event_id: int, name: str) -> int:
        """Добавляет участника и возвращает число пересчитанных общих расходов."""
        name = clean_name(name)
        async with self.lock(event_id):
            event = await self._require_event(event_id)
            participants = await self.resolve_participants(event)
            if name in participants:
                raise DuplicateParticipantError(name)

            await self.repo.set_event_participants(event_id, [*participants, name])
            event.participants = [*participants, name]
            self._log.info("participant.added", event_id=event_id, name=name)
            return await self._resnapshot(event)

    async def on_participant_added(self, event_id: int, new_name: str) -> int:
        async with self.lock(event_id):
            event = await self._require_event(event_id)
            if new_name not in event.participants:
                await self.repo.set_event_participants(event_id, [*event.participants, new_name])
                event.participants = [*event.participants, new_name]
            return await self._resnapshot(event)

    async def _resnapshot(self, event: Event) -> int:
        expenses = await self.repo.list_expenses(event.id)
        participants = await self.resolve_participants(event, expenses)

        updated = 0
        for expense in expenses:
            if not isinstance(expense.policy, SharedWithAll):
                continue
            if expense.members == participants:
                continue
            await self.repo.update_shared_snapshot(expense.id, participants)
            expense.members = list(participants)
            updated += 1

        if updated:
            self._log.info("expenses.resnapshotted", event_id=event.id, updated=updated)
        return updated

    async def list_expenses(self, event_id: int) -> list[Expense]:
        await self._require_event(event_id)
        return await self.repo.list_expenses(event_id)

    async def _load_for_settlement(self, event_id: int) -> tuple[list[Expense], list[str]]:
        # Дописывание участников идёт под замком, как и любая другая запись по событию.
        async with self.lock(event_id):
            event = await self._require_event(event_id)
            if not event.is_finalized:
                raise PreconditionError("Дата события ещё не выбрана, поэтому расчёт недоступен.")

            expenses = await self.repo.list_expenses(event_id)
            participants = await self.resolve_participants(event, expenses)
        return expenses, participants

    async def get_settlements(self, event_id: int) -> list[Transfer]:
        expenses, participants = await self._load_for_settlement(event_id)
        return calculate_settlements(to_shares(expenses), participants)

    async def summarize(self, event_id: int) -> LedgerSummary:
        expenses, participants = await self._load_for_settlement(event_id)
        shares = to_shares(expenses)

        total = sum(e.amount for e in expenses)
        balances = calculate_balances(shares, participants)
        transfers = settle(net_balances(balances))
        return LedgerSummary(
            total=total,
            participants=participants,
            per_person=total // len(participants) if participants else 0,
            balances=balances,
            transfers=transfers,
            expenses=expenses,
        )
