"""Ramp command handlers: link wallet, add funds, withdraw, rates and history."""

import logging

from aiogram import F, Router
from aiogram.filters import Command
from aiogram.types import Message

from stellramp.anchor.results import RampValidationError
from stellramp.anchor.service import get_ramp_service
from stellramp.anchor.settlement import ExternalCustodySimulated
from stellramp.bot.keyboards import (
    ADD_FUNDS_BUTTON,
    HISTORY_BUTTON,
    RATES_BUTTON,
    WITHDRAW_BUTTON,
)
from stellramp.bot.messages import (
    format_deposit_result,
    format_deposit_status,
    format_history,
    format_rates,
    format_usage,
    format_wallet_linked,
    format_withdrawal_result,
    format_withdrawal_status,
)

logger = logging.getLogger(__name__)

router = Router()


def _args(message: Message) -> list[str]:
    return message.text.split()[1:] if message.text else []


@router.message(Command("linkwallet"))
async def cmd_linkwallet(message: Message) -> None:
    """Link a Stellar public address: /linkwallet <address>"""
    if not message.from_user:
        return

    args = _args(message)
    if len(args) != 1:
        await message.answer(format_usage("linkwallet", "<G... address>"))
        return

    service = get_ramp_service()
    try:
        address = await service.link_wallet(message.from_user.id, args[0])
    except RampValidationError as e:
        await message.answer(format_usage("linkwallet", "<G... address>", str(e)))
        return

    await message.answer(format_wallet_linked(address, service.network_name))


@router.message(Command("addfunds"))
async def cmd_addfunds(message: Message) -> None:
    """Buy XLM with fiat: /addfunds <amount> [currency]"""
    if not message.from_user:
        return

    args = _args(message)
    if not args or len(args) > 2:
        await message.answer(format_usage("addfunds", "<amount> [USD|EUR|INR|GBP]"))
        return

    amount = args[0]
    currency = args[1] if len(args) > 1 else "USD"

    await message.answer("⏳ Processing deposit with the anchor...")
    result = await get_ramp_service().quick_deposit(message.from_user.id, amount, currency)
    logger.info(
        f"Chat deposit for user {message.from_user.id}: {amount} {currency} "
        f"-> success={result.success}"
    )
    await message.answer(format_deposit_result(result))


@router.message(Command("withdraw"))
async def cmd_withdraw(message: Message) -> None:
    """Sell XLM for fiat: /withdraw <amount> [currency]"""
    if not message.from_user:
        return

    args = _args(message)
    if not args or len(args) > 2:
        await message.answer(format_usage("withdraw", "<amount> [USD|EUR|INR|GBP]"))
        return

    value = args[0]
    currency = args[1] if len(args) > 1 else "USD"

    await message.answer("⏳ Processing withdrawal with the anchor...")
    # Chat users never hand over a secret seed, so the debit uses external custody
    result = await get_ramp_service().quick_withdrawal(
        message.from_user.id, value, currency, strategy=ExternalCustodySimulated()
    )
    logger.info(
        f"Chat withdrawal for user {message.from_user.id}: {value} XLM -> {currency} "
        f"success={result.success}"
    )
    await message.answer(format_withdrawal_result(result))


@router.message(F.text == ADD_FUNDS_BUTTON)
async def handle_add_funds_button(message: Message) -> None:
    await message.answer(format_usage("addfunds", "<amount> [USD|EUR|INR|GBP]"))


@router.message(F.text == WITHDRAW_BUTTON)
async def handle_withdraw_button(message: Message) -> None:
    await message.answer(format_usage("withdraw", "<amount> [USD|EUR|INR|GBP]"))


@router.message(Command("rates"))
@router.message(F.text == RATES_BUTTON)
async def cmd_rates(message: Message) -> None:
    """Show the demo rate table."""
    await message.answer(format_rates(get_ramp_service().rates()))


@router.message(Command("txhistory"))
@router.message(F.text == HISTORY_BUTTON)
async def cmd_txhistory(message: Message) -> None:
    """Show the user's deposits and withdrawals."""
    if not message.from_user:
        return

    deposits, withdrawals = await get_ramp_service().history(message.from_user.id)
    await message.answer(format_history(deposits, withdrawals))


@router.message(Command("depositstatus"))
async def cmd_depositstatus(message: Message) -> None:
    """Look up a deposit: /depositstatus <id>"""
    args = _args(message)
    if len(args) != 1:
        await message.answer(format_usage("depositstatus", "<deposit id>"))
        return

    record = await get_ramp_service().get_deposit(args[0])
    await message.answer(format_deposit_status(record, args[0]))


@router.message(Command("withdrawstatus"))
async def cmd_withdrawstatus(message: Message) -> None:
    """Look up a withdrawal: /withdrawstatus <id>"""
    args = _args(message)
    if len(args) != 1:
        await message.answer(format_usage("withdrawstatus", "<withdrawal id>"))
        return

    record = await get_ramp_service().get_withdrawal(args[0])
    await message.answer(format_withdrawal_status(record, args[0]))
