from __future__ import annotations

from typing import Optional

from aiogram import F, Router
from aiogram.filters import Command
from aiogram.types import CallbackQuery, Message

from eventsplit.config import get_settings
from eventsplit.db.models import ExplicitShare, Expense
from eventsplit.services.ledger import ExpenseLedger, LedgerSummary
from eventsplit.services.settlement import Transfer
from eventsplit.state import state
from eventsplit.utils.parse import parse_amount, parse_id, parse_names, split_command_args

expenses_router = Router()


def format_money(amount: int) -> str:
    return f"{get_settings().currency}{amount:,}"


def format_expense(expense: Expense) -> str:
    split = ", ".join(expense.policy.members) if isinstance(expense.policy, ExplicitShare) else "на всех"
    line = f"#{expense.id} {expense.payer}: {expense.description} — {format_money(expense.amount)} ({split})"
    if expense.created_at is not None:
        created = expense.created_at.astimezone(get_settings().zoneinfo)
        line += f", {created:%d.%m %H:%M}"
    return line


def format_transfers(transfers: list[Transfer]) -> list[str]:
    if not transfers:
        return ["Все в расчёте, переводы не нужны."]
    return [f"{t.from_name} → {t.to_name}: {format_money(t.amount)}" for t in transfers]


def format_summary(summary: LedgerSummary) -> str:
    lines = [
        f"Всего: {format_money(summary.total)}",
        f"Участников: {len(summary.participants)}",
        f"В среднем на человека: {format_money(summary.per_person)}",
        "",
        "<b>Балансы</b>",
    ]
    for name, balance in summary.balances.items():
        sign = "+" if balance.net > 0 else ""
        lines.append(
            f"{name}: заплатил {format_money(balance.paid)}, доля {format_money(balance.should_pay)}, "
            f"итог {sign}{balance.net:,}"
        )
    lines.extend(["", "<b>Переводы</b>", *format_transfers(summary.transfers)])
    return "\n".join(lines)


def _event_id_or_current(message: Message, args: list[str]) -> Optional[int]:
    if args:
        return parse_id(args[0], "event_id")
    if message.from_user:
        return state.get_current_event(message.from_user.id)
    return None


@expenses_router.message(Command("addexpense"))
async def cmd_addexpense(message: Message, ledger: ExpenseLedger) -> None:
    args = split_command_args(message.text or "")
    if len(args) < 4:
        await message.answer(
            "Использование: /addexpense <event_id> | <плательщик> | <описание> | <сумма> [| all | имя1, имя2]"
        )
        return

    members = parse_names(args[4]) if len(args) > 4 else None
    expense = await ledger.record_expense(
        event_id=parse_id(args[0], "event_id"),
        payer=args[1],
        description=args[2],
        amount=parse_amount(args[3]),
        members=members,
    )
    await message.answer(f"Расход добавлен: {format_expense(expense)}")


@expenses_router.message(Command("delexpense"))
async def cmd_delexpense(message: Message, ledger: ExpenseLedger) -> None:
    args = split_command_args(message.text or "")
    if len(args) < 2:
        await message.answer("Использование: /delexpense <event_id> | <expense_id>")
        return

    expense_id = parse_id(args[1], "expense_id")
    await ledger.delete_expense(parse_id(args[0], "event_id"), expense_id)
    await message.answer(f"Расход #{expense_id} удалён.")


@expenses_router.message(Command("addparticipant"))
async def cmd_addparticipant(message: Message, ledger: ExpenseLedger) -> None:
    args = split_command_args(message.text or "")
    if len(args) < 2:
        await message.answer("Использование: /addparticipant <event_id> | <имя>")
        return

    updated = await ledger.add_participant(parse_id(args[0], "event_id"), args[1])
    await message.answer(
        f"Участник «{args[1].strip()}» добавлен. Пересчитано общих расходов: {updated}."
    )


async def _send_expenses(message: Message, ledger: ExpenseLedger, event_id: int) -> None:
    expenses = await ledger.list_expenses(event_id)
    if not expenses:
        await message.answer("Расходов пока нет.")
        return
    await message.answer("\n".join(["<b>Расходы</b>", *(format_expense(e) for e in expenses)]))


async def _send_summary(message: Message, ledger: ExpenseLedger, event_id: int) -> None:
    summary = await ledger.summarize(event_id)
    await message.answer(format_summary(summary))


@expenses_router.message(Command("expenses"))
async def cmd_expenses(message: Message, ledger: ExpenseLedger) -> None:
    event_id = _event_id_or_current(message, split_command_args(message.text or ""))
    if event_id is None:
        await message.answer("Использование: /expenses <event_id>")
        return
    await _send_expenses(message, ledger, event_id)


@expenses_router.message(Command("settle"))
async def cmd_settle(message: Message, ledger: ExpenseLedger) -> None:
    event_id = _event_id_or_current(message, split_command_args(message.text or ""))
    if event_id is None:
        await message.answer("Использование: /settle <event_id>")
        return
    await _send_summary(message, ledger, event_id)


@expenses_router.message(Command("transfers"))
async def cmd_transfers(message: Message, ledger: ExpenseLedger) -> None:
    event_id = _event_id_or_current(message, split_command_args(message.text or ""))
    if event_id is None:
        await message.answer("Использование: /transfers <event_id>")
        return
    transfers = await ledger.get_settlements(event_id)
    await message.answer("\n".join(["<b>Кто кому переводит</b>", *format_transfers(transfers)]))


@expenses_router.callback_query(F.data.startswith("expenses:"))
async def cb_expenses(callback: CallbackQuery, ledger: ExpenseLedger) -> None:
    if callback.message:
        await _send_expenses(callback.message, ledger, int(callback.data.split(":")[1]))
    await callback.answer()


@expenses_router.callback_query(F.data.startswith("settle:"))
async def cb_settle(callback: CallbackQuery, ledger: ExpenseLedger) -> None:
    if callback.message:
        await _send_summary(callback.message, ledger, int(callback.data.split(":")[1]))
    await callback.answer()
