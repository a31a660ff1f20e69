from __future__ import annotations

from aiogram import Router
from aiogram.filters import ExceptionTypeFilter
from aiogram.types import ErrorEvent

from eventsplit.logging import get_logger
from eventsplit.services.errors import EventSplitError, InvariantViolation

errors_router = Router()

log = get_logger(__name__)


async def _reply(event: ErrorEvent, text: str) -> None:
    update = event.update
    if update.message:
        await update.message.answer(text)
    elif update.callback_query:
        await update.callback_query.answer(text, show_alert=True)


@errors_router.errors(ExceptionTypeFilter(EventSplitError, ValueError))
async def on_user_error(event: ErrorEvent) -> None:
    log.info("handler.rejected", error=type(event.exception).__name__, detail=str(event.exception))
    await _reply(event, f"❌ {event.exception}")


@errors_router.errors(ExceptionTypeFilter(InvariantViolation))
async def on_invariant_violation(event: ErrorEvent) -> None:
    log.error("handler.invariant_violation", exc_info=event.exception)
    await _reply(event, "⚠️ Внутренняя ошибка расчёта. Мы уже знаем о ней.")
