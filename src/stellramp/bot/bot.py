"""Telegram bot setup: dispatcher, command menu and polling runner."""

import asyncio
import logging

from aiogram import Bot, Dispatcher
from aiogram.fsm.storage.memory import MemoryStorage
from aiogram.types import BotCommand

from stellramp.bot.handlers import setup_routers
from stellramp.config import get_settings
from stellramp.ledger.database import close_db, init_db
from stellramp.utils.logs import configure_logging

logger = logging.getLogger(__name__)

# Shown in the Telegram command menu
BOT_COMMANDS = [
    BotCommand(command="start", description="Welcome and linked wallet"),
    BotCommand(command="linkwallet", description="Link your Stellar address"),
    BotCommand(command="addfunds", description="Buy XLM with fiat"),
    BotCommand(command="withdraw", description="Sell XLM for fiat"),
    BotCommand(command="rates", description="Current exchange rates"),
    BotCommand(command="txhistory", description="Your deposits and withdrawals"),
    BotCommand(command="depositstatus", description="Look up a deposit"),
    BotCommand(command="withdrawstatus", description="Look up a withdrawal"),
    BotCommand(command="help", description="List commands"),
]


def create_bot() -> tuple[Bot, Dispatcher]:
    """Create bot and dispatcher with all ramp routers attached.

    Raises:
        ValueError: If TELEGRAM_BOT_TOKEN is not configured
    """
    settings = get_settings()
    if not settings.telegram_bot_token:
        raise ValueError("TELEGRAM_BOT_TOKEN is not set")

    # Replies are plain text, so no default parse_mode
    bot = Bot(token=settings.telegram_bot_token)
    dp = Dispatcher(storage=MemoryStorage())
    dp.include_router(setup_routers())
    return bot, dp


async def start_polling(bot: Bot, dp: Dispatcher) -> None:
    """Publish the command menu, drop stale updates and poll."""
    await bot.set_my_commands(BOT_COMMANDS)
    await bot.delete_webhook(drop_pending_updates=True)
    logger.info("Bot polling started")
    await dp.start_polling(bot)


async def run_bot() -> None:
    """Run the bot alone (no API server)."""
    settings = get_settings()
    configure_logging(settings.debug)
    logger.info(f"Starting Stellramp bot ({settings.stellar_network})")

    await init_db()
    bot, dp = create_bot()
    try:
        await start_polling(bot, dp)
    finally:
        await bot.session.close()
        await close_db()


def main() -> None:
    """Entry point for bot-only mode."""
    asyncio.run(run_bot())
