from __future__ import annotations

from typing import Mapping, Sequence

from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup

from eventsplit.db.models import AttendanceStatus, DateOption
from eventsplit.services.events import OptionTally, format_option, humanize_status


def main_menu_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        inline_keyboard=[
            [InlineKeyboardButton(text="ℹ️ Помощь", callback_data="menu:help")],
        ]
    )


def vote_keyboard(
    event_id: int,
    options: Sequence[DateOption],
    answers: Mapping[int, AttendanceStatus],
) -> InlineKeyboardMarkup:
    rows: list[list[InlineKeyboardButton]] = []
    for option in options:
        status = answers.get(option.id, AttendanceStatus.UNAVAILABLE)
        rows.append(
            [
                InlineKeyboardButton(
                    text=f"{format_option(option)} · {humanize_status(status)}",
                    callback_data=f"vote_cycle:{event_id}:{option.id}",
                )
            ]
        )
    rows.append([InlineKeyboardButton(text="✅ Отправить", callback_data=f"vote_submit:{event_id}")])
    return InlineKeyboardMarkup(inline_keyboard=rows)


def finalize_keyboard(event_id: int, tallies: Sequence[OptionTally]) -> InlineKeyboardMarkup:
    rows = [
        [
            InlineKeyboardButton(
                text=f"{format_option(t.option)} (○{t.available} △{t.maybe})",
                callback_data=f"finalize:{event_id}:{t.option.id}",
            )
        ]
        for t in tallies
    ]
    return InlineKeyboardMarkup(inline_keyboard=rows)


def event_actions_keyboard(event_id: int, finalized: bool) -> InlineKeyboardMarkup:
    if not finalized:
        return InlineKeyboardMarkup(
            inline_keyboard=[
                [InlineKeyboardButton(text="📌 Выбрать дату", callback_data=f"pick_date:{event_id}")],
            ]
        )
    return InlineKeyboardMarkup(
        inline_keyboard=[
            [
                InlineKeyboardButton(text="💰 Расходы", callback_data=f"expenses:{event_id}"),
                InlineKeyboardButton(text="🤝 Расчёт", callback_data=f"settle:{event_id}"),
            ]
        ]
    )
