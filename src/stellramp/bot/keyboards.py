"""Telegram keyboard builders."""

from aiogram.types import KeyboardButton, ReplyKeyboardMarkup

ADD_FUNDS_BUTTON = "💵 Add Funds"
WITHDRAW_BUTTON = "📤 Withdraw"
RATES_BUTTON = "📈 Rates"
HISTORY_BUTTON = "📊 History"


def main_menu_keyboard() -> ReplyKeyboardMarkup:
    """Create main menu keyboard."""
    keyboard = [
        [KeyboardButton(text=ADD_FUNDS_BUTTON), KeyboardButton(text=WITHDRAW_BUTTON)],
        [KeyboardButton(text=RATES_BUTTON), KeyboardButton(text=HISTORY_BUTTON)],
    ]
    return ReplyKeyboardMarkup(keyboard=keyboard, resize_keyboard=True)
