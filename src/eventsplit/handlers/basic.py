from __future__ import annotations

from aiogram import F, Router
from aiogram.filters import Command, CommandStart
from aiogram.types import CallbackQuery, Message

from eventsplit.keyboards import main_menu_keyboard
from eventsplit.state import state

basic_router = Router()


HELP_TEXT = (
    "<b>Команды</b>\n\n"
    "<b>Событие и опрос</b>\n"
    "<code>/newevent Название | Организатор | 2025-05-20 13:00-21:00, 2025-05-27</code>\n"
    "<code>/events</code> — последние события\n"
    "<code>/event 1</code> — карточка события и итоги опроса\n"
    "<code>/vote 1 | Имя</code> — ответить кнопками\n"
    "<code>/vote 1 | Имя | 3:o 4:? 5:x</code> — ответить сразу\n"
    "<code>/finalize 1</code> — выбрать дату\n\n"
    "<b>Расходы</b> (после выбора даты)\n"
    "<code>/addexpense 1 | Плательщик | Пицца | 4500</code> — на всех\n"
    "<code>/addexpense 1 | Плательщик | Такси | 3000 | Аня, Боря</code> — на выбранных\n"
    "Последнее поле <code>all</code>, <code>все</code>, <code>на всех</code> или пустое означает «на всех», "
    "поэтому участника с таким именем можно указать только вместе с другими.\n"
    "<code>/delexpense 1 | 7</code>\n"
    "<code>/addparticipant 1 | Имя</code>\n"
    "<code>/expenses 1</code>, <code>/settle 1</code>, <code>/transfers 1</code>\n\n"
    "Без номера события <code>/expenses</code>, <code>/settle</code> и <code>/transfers</code> используют последнее открытое."
)


@basic_router.message(CommandStart())
async def cmd_start(message: Message) -> None:
    user = message.from_user
    if not user:
        return

    state.clear_user(user.id)
    await message.answer(
        f"👋 Привет, {user.first_name}!\n\n"
        "Я помогу выбрать дату встречи и честно поделить расходы после неё.",
        reply_markup=main_menu_keyboard(),
    )


@basic_router.message(Command("help"))
async def cmd_help(message: Message) -> None:
    await message.answer(HELP_TEXT)


@basic_router.callback_query(F.data == "menu:help")
async def cb_help(callback: CallbackQuery) -> None:
    if callback.message:
        await callback.message.answer(HELP_TEXT)
    await callback.answer()
