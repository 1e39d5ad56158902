"""Start and help command handlers."""

from aiogram import Router
from aiogram.filters import Command, CommandStart
from aiogram.types import Message

from stellramp.anchor.service import get_ramp_service
from stellramp.bot.keyboards import main_menu_keyboard
from stellramp.bot.messages import HELP_TEXT, format_welcome

router = Router()


@router.message(CommandStart())
async def cmd_start(message: Message) -> None:
    """Handle /start command - show welcome and linked wallet."""
    if not message.from_user:
        return

    linked = await get_ramp_service().linked_wallet(message.from_user.id)
    await message.answer(
        format_welcome(message.from_user.first_name, linked),
        reply_markup=main_menu_keyboard(),
    )


@router.message(Command("help"))
async def cmd_help(message: Message) -> None:
    """Handle /help command."""
    await message.answer(HELP_TEXT)
