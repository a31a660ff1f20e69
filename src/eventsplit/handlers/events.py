from __future__ import annotations

from aiogram import F, Router
from aiogram.filters import Command
from aiogram.types import CallbackQuery, Message

from eventsplit.config import get_settings
from eventsplit.db.models import AttendanceStatus
from eventsplit.keyboards import event_actions_keyboard, finalize_keyboard, vote_keyboard
from eventsplit.services.events import (
    EventService,
    format_event_card,
    format_event_line,
    next_status,
    tally_availability,
)
from eventsplit.state import state
from eventsplit.utils.parse import parse_date_options, parse_id, parse_votes, split_command_args

events_router = Router()


@events_router.message(Command("newevent"))
async def cmd_newevent(message: Message, event_service: EventService) -> None:
    args = split_command_args(message.text or "")
    if len(args) < 3:
        await message.answer(
            "Использование: /newevent <название> | <организатор> | <дата [HH:MM-HH:MM]>, ... [| описание]"
        )
        return

    settings = get_settings()
    details = await event_service.create_event(
        title=args[0],
        creator_name=args[1],
        date_options=parse_date_options(args[2]),
        description=args[3] if len(args) > 3 else None,
        default_start_time=settings.default_start_time,
        default_end_time=settings.default_end_time,
    )

    if message.from_user:
        state.set_current_event(message.from_user.id, details.event.id)

    await message.answer(
        "✅ Событие создано!\n\n"
        f"{format_event_card(details)}\n\n"
        f"Попросите друзей ответить: <code>/vote {details.event.id} | Имя</code>",
        reply_markup=event_actions_keyboard(details.event.id, finalized=False),
    )


@events_router.message(Command("event"))
async def cmd_event(message: Message, event_service: EventService) -> None:
    args = split_command_args(message.text or "")
    if not args:
        await message.answer("Использование: /event <event_id>")
        return

    details = await event_service.get_event(parse_id(args[0], "event_id"))
    if message.from_user:
        state.set_current_event(message.from_user.id, details.event.id)

    await message.answer(
        format_event_card(details),
        reply_markup=event_actions_keyboard(details.event.id, finalized=details.event.is_finalized),
    )


@events_router.message(Command("events"))
async def cmd_events(message: Message, event_service: EventService) -> None:
    events = await event_service.list_events()
    if not events:
        await message.answer("Событий пока нет. Создайте первое: /newevent")
        return
    await message.answer("\n".join(["<b>События</b>", *(format_event_line(e) for e in events)]))


@events_router.message(Command("vote"))
async def cmd_vote(message: Message, event_service: EventService) -> None:
    args = split_command_args(message.text or "")
    if len(args) < 2:
        await message.answer("Использование: /vote <event_id> | <имя> [| 3:o 4:? 5:x]")
        return

    event_id = parse_id(args[0], "event_id")
    name = args[1]

    if len(args) > 2:
        attendance = await event_service.submit_attendance(event_id, name, parse_votes(args[2]))
        await message.answer(f"Спасибо, {attendance.name}! Ответ сохранён.")
        return

    user = message.from_user
    if not user:
        return

    details = await event_service.get_event(event_id)
    vote = state.start_vote(user.id, event_id, name)
    await message.answer(
        f"{details.event.title}: отметьте подходящие даты, затем нажмите «Отправить».",
        reply_markup=vote_keyboard(event_id, details.date_options, vote.answers),
    )


@events_router.callback_query(F.data.startswith("vote_cycle:"))
async def cb_vote_cycle(callback: CallbackQuery, event_service: EventService) -> None:
    _, event_id_raw, option_id_raw = callback.data.split(":")
    event_id, option_id = int(event_id_raw), int(option_id_raw)

    vote = state.get_vote(callback.from_user.id)
    if vote is None or vote.event_id != event_id:
        await callback.answer("Начните заново: /vote <event_id> | <имя>", show_alert=True)
        return

    current = vote.answers.get(option_id, AttendanceStatus.UNAVAILABLE)
    vote.answers[option_id] = next_status(current)

    details = await event_service.get_event(event_id)
    if callback.message:
        await callback.message.edit_reply_markup(
            reply_markup=vote_keyboard(event_id, details.date_options, vote.answers),
        )
    await callback.answer()


@events_router.callback_query(F.data.startswith("vote_submit:"))
async def cb_vote_submit(callback: CallbackQuery, event_service: EventService) -> None:
    event_id = int(callback.data.split(":")[1])
    vote = state.get_vote(callback.from_user.id)
    if vote is None or vote.event_id != event_id:
        await callback.answer("Начните заново: /vote <event_id> | <имя>", show_alert=True)
        return

    attendance = await event_service.submit_attendance(event_id, vote.name, vote.answers)
    state.pop_vote(callback.from_user.id)
    if callback.message:
        await callback.message.edit_text(f"Спасибо, {attendance.name}! Ответ сохранён.")
    await callback.answer()


async def _send_finalize_choices(message: Message, event_service: EventService, event_id: int) -> None:
    details = await event_service.get_event(event_id)
    tallies = tally_availability(details.date_options, details.attendances)
    await message.answer(
        f"Выберите дату для «{details.event.title}»:",
        reply_markup=finalize_keyboard(event_id, tallies),
    )


@events_router.message(Command("finalize"))
async def cmd_finalize(message: Message, event_service: EventService) -> None:
    args = split_command_args(message.text or "")
    if not args:
        await message.answer("Использование: /finalize <event_id>")
        return
    await _send_finalize_choices(message, event_service, parse_id(args[0], "event_id"))


@events_router.callback_query(F.data.startswith("pick_date:"))
async def cb_pick_date(callback: CallbackQuery, event_service: EventService) -> None:
    event_id = int(callback.data.split(":")[1])
    if callback.message:
        await _send_finalize_choices(callback.message, event_service, event_id)
    await callback.answer()


@events_router.callback_query(F.data.startswith("finalize:"))
async def cb_finalize(callback: CallbackQuery, event_service: EventService) -> None:
    _, event_id_raw, option_id_raw = callback.data.split(":")
    event = await event_service.finalize_date(int(event_id_raw), int(option_id_raw))

    if callback.message:
        await callback.message.edit_text(
            f"📌 Дата «{event.title}» выбрана: {event.selected_date} {event.start_time}–{event.end_time}\n\n"
            f"Теперь можно записывать расходы: <code>/addexpense {event.id} | Плательщик | Что | Сумма</code>",
            reply_markup=event_actions_keyboard(event.id, finalized=True),
        )
    await callback.answer("Дата выбрана")
