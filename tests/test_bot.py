"""Tests for chat command handlers and reply formatting."""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from stellar_sdk import Keypair

from stellramp.anchor.results import DepositResult, ErrorKind, WithdrawalResult
from stellramp.bot import messages
from stellramp.bot.handlers import anchor, setup_routers, start


def make_message(text: str, user_id: int = 1001, first_name: str = "Ada") -> MagicMock:
    message = MagicMock()
    message.text = text
    message.from_user = MagicMock(id=user_id, first_name=first_name)
    message.answer = AsyncMock()
    return message


def last_reply(message: MagicMock) -> str:
    return message.answer.call_args.args[0]


@pytest.fixture
def bot_service(monkeypatch, ramp_service):
    """Point handlers at the per-test ramp service."""
    monkeypatch.setattr(anchor, "get_ramp_service", lambda: ramp_service)
    monkeypatch.setattr(start, "get_ramp_service", lambda: ramp_service)
    return ramp_service


class TestFormatters:
    """Tests for pure reply builders."""

    def test_short_address(self):
        address = Keypair.random().public_key
        short = messages.short_address(address)
        assert short.startswith(address[:6])
        assert short.endswith(address[-6:])
        assert messages.short_address(None) == "(none)"

    def test_deposit_success(self):
        result = DepositResult(
            success=True,
            deposit_id="DEP-X-001",
            credited_value=Decimal("100.0000000"),
            settlement_reference="sim_tx_1",
            message="10 USD -> 100 XLM credited",
        )
        text = messages.format_deposit_result(result)
        assert "DEP-X-001" in text
        assert "Credited: 100 XLM" in text

    def test_deposit_failure(self):
        result = DepositResult.failure("N/A", "Amount must be positive", ErrorKind.VALIDATION_FAILURE)
        assert messages.format_deposit_result(result).startswith("❌")

    def test_withdrawal_success(self):
        result = WithdrawalResult(
            success=True,
            withdrawal_id="WDR-X-001",
            value_debited=Decimal("10"),
            fiat_payout=Decimal("1.00"),
            currency="USD",
            eta="5-10 min (simulated)",
        )
        text = messages.format_withdrawal_result(result)
        assert "Payout: 1.00 USD" in text
        assert "ETA: 5-10 min (simulated)" in text

    def test_empty_history(self):
        assert "No ramp history" in messages.format_history([], [])

    def test_status_not_found(self):
        assert "not found" in messages.format_deposit_status(None, "DEP-1")
        assert "not found" in messages.format_withdrawal_status(None, "WDR-1")


class TestCommands:
    """Tests for command handlers."""

    def test_setup_routers(self):
        assert setup_routers() is not None

    @pytest.mark.asyncio
    async def test_start_shows_linked_wallet(self, bot_service, user_keypair):
        await bot_service.link_wallet(1001, user_keypair.public_key)
        message = make_message("/start")

        await start.cmd_start(message)

        assert "Welcome to Stellramp, Ada!" in last_reply(message)
        assert user_keypair.public_key[:6] in last_reply(message)

    @pytest.mark.asyncio
    async def test_help(self):
        message = make_message("/help")
        await start.cmd_help(message)
        assert "/addfunds" in last_reply(message)

    @pytest.mark.asyncio
    async def test_linkwallet(self, bot_service, user_keypair):
        message = make_message(f"/linkwallet {user_keypair.public_key}")

        await anchor.cmd_linkwallet(message)

        assert "Wallet linked" in last_reply(message)
        assert await bot_service.linked_wallet(1001) == user_keypair.public_key

    @pytest.mark.asyncio
    async def test_linkwallet_invalid(self, bot_service):
        message = make_message("/linkwallet GBAD")

        await anchor.cmd_linkwallet(message)

        assert "Invalid Stellar address" in last_reply(message)
        assert await bot_service.linked_wallet(1001) is None

    @pytest.mark.asyncio
    async def test_linkwallet_usage(self, bot_service):
        message = make_message("/linkwallet")
        await anchor.cmd_linkwallet(message)
        assert last_reply(message).startswith("Usage: /linkwallet")

    @pytest.mark.asyncio
    async def test_addfunds(self, bot_service, ledger_client, user_keypair):
        await bot_service.link_wallet(1001, user_keypair.public_key)
        message = make_message("/addfunds 10 eur")

        await anchor.cmd_addfunds(message)

        assert message.answer.await_count == 2
        assert "Deposit complete" in last_reply(message)
        assert "Credited: 110 XLM" in last_reply(message)
        assert ledger_client.balance_of(user_keypair.public_key) > 0

    @pytest.mark.asyncio
    async def test_addfunds_without_wallet(self, bot_service):
        message = make_message("/addfunds 10")

        await anchor.cmd_addfunds(message)

        assert "Deposit failed" in last_reply(message)
        assert "/linkwallet" in last_reply(message)

    @pytest.mark.asyncio
    async def test_addfunds_invalid_amount(self, bot_service, user_keypair):
        await bot_service.link_wallet(1001, user_keypair.public_key)
        message = make_message("/addfunds ten")

        await anchor.cmd_addfunds(message)

        assert "Invalid amount" in last_reply(message)

    @pytest.mark.asyncio
    async def test_addfunds_usage(self, bot_service):
        message = make_message("/addfunds")
        await anchor.cmd_addfunds(message)
        assert last_reply(message).startswith("Usage: /addfunds")

    @pytest.mark.asyncio
    async def test_withdraw_funded(self, bot_service, funded_keypair):
        await bot_service.link_wallet(1001, funded_keypair.public_key)
        message = make_message("/withdraw 20 USD")

        await anchor.cmd_withdraw(message)

        assert "Withdrawal complete" in last_reply(message)
        assert "Payout: 2.00 USD" in last_reply(message)

    @pytest.mark.asyncio
    async def test_withdraw_unfunded(self, bot_service, user_keypair):
        await bot_service.link_wallet(1001, user_keypair.public_key)
        message = make_message("/withdraw 20")

        await anchor.cmd_withdraw(message)

        assert "Withdrawal failed" in last_reply(message)

    @pytest.mark.asyncio
    async def test_rates(self, bot_service):
        message = make_message("/rates")
        await anchor.cmd_rates(message)

        text = last_reply(message)
        assert "1 USD = 10 XLM" in text
        assert "1 XLM = 0.08 GBP" in text

    @pytest.mark.asyncio
    async def test_txhistory(self, bot_service, user_keypair):
        await bot_service.link_wallet(1001, user_keypair.public_key)
        await bot_service.quick_deposit(1001, "5", "USD")
        message = make_message("/txhistory")

        await anchor.cmd_txhistory(message)

        text = last_reply(message)
        assert "Deposits:" in text
        assert "5 USD -> 50 XLM" in text
        assert "completed" in text

    @pytest.mark.asyncio
    async def test_depositstatus(self, bot_service):
        created = await bot_service.create_deposit(1001, "5", "USD")
        message = make_message(f"/depositstatus {created.deposit_id}")

        await anchor.cmd_depositstatus(message)

        assert created.deposit_id in last_reply(message)
        assert "created" in last_reply(message)

    @pytest.mark.asyncio
    async def test_withdrawstatus_unknown(self, bot_service):
        message = make_message("/withdrawstatus WDR-NOPE-001")
        await anchor.cmd_withdrawstatus(message)
        assert "not found" in last_reply(message)
