from __future__ import annotations

import asyncio

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode

from eventsplit.config import get_settings
from eventsplit.db.repo import Database, EventSplitRepository
from eventsplit.handlers import basic_router, errors_router, events_router, expenses_router
from eventsplit.logging import configure_logging, get_logger
from eventsplit.services.events import EventService
from eventsplit.services.ledger import ExpenseLedger


async def main() -> None:
    configure_logging()
    settings = get_settings()
    bot = Bot(token=settings.bot_token, default=DefaultBotProperties(parse_mode=ParseMode.HTML))
    dp = Dispatcher()
    db = Database(settings.database_url)
    await db.connect()
    repo = EventSplitRepository(db)

    dp.include_router(errors_router)
    dp.include_router(basic_router)
    dp.include_router(events_router)
    dp.include_router(expenses_router)

    log = get_logger(__name__)
    log.info("bot.start")
    try:
        await dp.start_polling(bot, ledger=ExpenseLedger(repo), event_service=EventService(repo))
    finally:
        await db.close()
        await bot.session.close()
        log.info("bot.stop")


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
