"""Tests for the deposit (on-ramp) ledger."""

import asyncio
import re
from decimal import Decimal

import pytest
from stellar_sdk import Keypair

from stellramp.anchor.deposits import DepositLedger, next_deposit_id
from stellramp.anchor.fiat_rail import FiatRailSimulator
from stellramp.anchor.results import ErrorKind
from stellramp.anchor.settlement import DirectCustody, ExternalCustodySimulated
from stellramp.ledger.database import session_scope
from stellramp.ledger.models import DepositStatus
from stellramp.ledger.repository import RampRepository
from stellramp.stellar.base import FAUCET_AMOUNT
from stellramp.utils.locks import active_record_locks


class ExplodingStrategy(ExternalCustodySimulated):
    """Credit raises instead of returning an outcome."""

    async def credit(self, client, destination, amount):
        raise RuntimeError("ledger unreachable")


async def _set_status(session_factory, deposit_id: str, status: DepositStatus) -> None:
    async with session_scope(session_factory) as session:
        record = await RampRepository(session).get_deposit(deposit_id)
        record.status = status


class TestCreateDeposit:
    """Tests for deposit creation."""

    @pytest.mark.asyncio
    async def test_create_quotes_at_current_rate(self, deposit_ledger):
        record = await deposit_ledger.create("u1", Decimal("100"), "USD")

        assert record.estimated_value == Decimal("1000")
        assert record.exchange_rate == Decimal("10")
        assert record.status == DepositStatus.CREATED
        assert record.credited_value == Decimal("0")
        assert record.settlement_reference is None
        assert record.destination_address is None

    @pytest.mark.asyncio
    async def test_create_persists_record(self, deposit_ledger):
        record = await deposit_ledger.create("u1", Decimal("25"), "gbp")
        stored = await deposit_ledger.get(record.deposit_id)

        assert stored is not None
        assert stored.currency == "GBP"
        assert stored.estimated_value == Decimal("312.5")
        assert DepositStatus(stored.status) == DepositStatus.CREATED

    @pytest.mark.asyncio
    async def test_payment_link(self, deposit_ledger):
        record = await deposit_ledger.create("u1", Decimal("50"), "EUR")
        assert record.payment_link == (
            f"https://stellramp-anchor.demo/pay/{record.deposit_id}?amt=50&cur=EUR"
        )

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5"), Decimal("0.004")])
    async def test_create_rejects_non_positive(self, deposit_ledger, amount):
        with pytest.raises(ValueError):
            await deposit_ledger.create("u1", amount, "USD")

    @pytest.mark.asyncio
    async def test_unsupported_currency_uses_usd_rate(self, deposit_ledger):
        record = await deposit_ledger.create("u1", Decimal("10"), "JPY")
        assert record.exchange_rate == Decimal("10")
        assert record.currency == "JPY"

    def test_ids_are_unique_and_formatted(self):
        ids = {next_deposit_id() for _ in range(100)}
        assert len(ids) == 100
        assert all(re.fullmatch(r"DEP-[0-9A-Z]+-\d{3,}", i) for i in ids)


class TestConfirmDeposit:
    """Tests for deposit confirmation."""

    @pytest.mark.asyncio
    async def test_confirm_with_faucet(self, deposit_ledger, ledger_client, user_keypair):
        record = await deposit_ledger.create("u1", Decimal("10"), "USD")
        result = await deposit_ledger.confirm(
            record.deposit_id, user_keypair.public_key, ExternalCustodySimulated()
        )

        assert result.success
        assert result.credited_value == Decimal("100")
        assert result.settlement_reference.startswith("sim_faucet_")
        assert ledger_client.balance_of(user_keypair.public_key) == FAUCET_AMOUNT

        stored = await deposit_ledger.get(record.deposit_id)
        assert DepositStatus(stored.status) == DepositStatus.COMPLETED
        assert stored.credited_value == Decimal("100")
        assert stored.settlement_reference == result.settlement_reference
        assert stored.destination_address == user_keypair.public_key
        assert stored.completed_at is not None

    @pytest.mark.asyncio
    async def test_confirm_with_direct_custody(self, deposit_ledger, ledger_client, user_keypair):
        distributor = Keypair.random()
        ledger_client.fund(distributor.public_key, Decimal("5000"))

        record = await deposit_ledger.create("u1", Decimal("20"), "EUR")
        result = await deposit_ledger.confirm(
            record.deposit_id, user_keypair.public_key, DirectCustody(distributor.secret)
        )

        assert result.success
        assert result.credited_value == Decimal("220")
        assert ledger_client.balance_of(user_keypair.public_key) == Decimal("220")
        assert ledger_client.balance_of(distributor.public_key) == Decimal("4780")

    @pytest.mark.asyncio
    async def test_confirm_settles_at_snapshot_rate(
        self, deposit_ledger, session_factory, user_keypair
    ):
        record = await deposit_ledger.create("u1", Decimal("10"), "USD")
        async with session_scope(session_factory) as session:
            stored = await RampRepository(session).get_deposit(record.deposit_id)
            stored.exchange_rate = Decimal("9")

        result = await deposit_ledger.confirm(
            record.deposit_id, user_keypair.public_key, ExternalCustodySimulated()
        )
        assert result.credited_value == Decimal("90")

    @pytest.mark.asyncio
    async def test_confirm_not_found(self, deposit_ledger, user_keypair):
        result = await deposit_ledger.confirm(
            "DEP-MISSING-001", user_keypair.public_key, ExternalCustodySimulated()
        )
        assert not result.success
        assert result.error_kind == ErrorKind.NOT_FOUND
        assert result.message == "Deposit not found"

    @pytest.mark.asyncio
    async def test_double_confirm_is_rejected(self, deposit_ledger, ledger_client, user_keypair):
        record = await deposit_ledger.create("u1", Decimal("10"), "USD")
        strategy = ExternalCustodySimulated()

        first = await deposit_ledger.confirm(record.deposit_id, user_keypair.public_key, strategy)
        second = await deposit_ledger.confirm(record.deposit_id, user_keypair.public_key, strategy)

        assert first.success
        assert not second.success
        assert second.error_kind == ErrorKind.INVALID_STATE
        assert second.message == "Already completed"
        assert ledger_client.balance_of(user_keypair.public_key) == FAUCET_AMOUNT

    @pytest.mark.asyncio
    async def test_concurrent_confirms_credit_once(
        self, session_factory, ledger_client, user_keypair
    ):
        ledger = DepositLedger(
            session_factory, FiatRailSimulator(deposit_delay=0.05), ledger_client
        )
        record = await ledger.create("u1", Decimal("10"), "USD")
        strategy = ExternalCustodySimulated()

        results = await asyncio.gather(
            ledger.confirm(record.deposit_id, user_keypair.public_key, strategy),
            ledger.confirm(record.deposit_id, user_keypair.public_key, strategy),
        )

        assert sorted(r.success for r in results) == [False, True]
        assert ledger_client.balance_of(user_keypair.public_key) == FAUCET_AMOUNT
        assert len(ledger_client.transfers_for_address(user_keypair.public_key)) == 1

    @pytest.mark.asyncio
    async def test_confirm_expired(self, deposit_ledger, user_keypair):
        record = await deposit_ledger.create("u1", Decimal("10"), "USD")
        assert await deposit_ledger.cancel(record.deposit_id)

        result = await deposit_ledger.confirm(
            record.deposit_id, user_keypair.public_key, ExternalCustodySimulated()
        )
        assert not result.success
        assert result.error_kind == ErrorKind.INVALID_STATE
        assert result.message == "Expired"

    @pytest.mark.asyncio
    async def test_confirm_processing(self, deposit_ledger, session_factory, user_keypair):
        record = await deposit_ledger.create("u1", Decimal("10"), "USD")
        await _set_status(session_factory, record.deposit_id, DepositStatus.PROCESSING)

        result = await deposit_ledger.confirm(
            record.deposit_id, user_keypair.public_key, ExternalCustodySimulated()
        )
        assert not result.success
        assert result.error_kind == ErrorKind.INVALID_STATE
        assert result.message == "Already processing"

    @pytest.mark.asyncio
    async def test_failed_transfer_marks_failed(self, deposit_ledger, user_keypair):
        unfunded = Keypair.random()
        record = await deposit_ledger.create("u1", Decimal("10"), "USD")

        result = await deposit_ledger.confirm(
            record.deposit_id, user_keypair.public_key, DirectCustody(unfunded.secret)
        )

        assert not result.success
        assert result.error_kind == ErrorKind.SETTLEMENT_FAILURE
        assert result.status == "failed"

        stored = await deposit_ledger.get(record.deposit_id)
        assert DepositStatus(stored.status) == DepositStatus.FAILED
        assert stored.credited_value == Decimal("0")
        assert stored.error_message == "Source account not found"

    @pytest.mark.asyncio
    async def test_failed_deposit_can_be_retried(self, deposit_ledger, user_keypair):
        unfunded = Keypair.random()
        record = await deposit_ledger.create("u1", Decimal("10"), "USD")
        await deposit_ledger.confirm(
            record.deposit_id, user_keypair.public_key, DirectCustody(unfunded.secret)
        )

        retry = await deposit_ledger.confirm(
            record.deposit_id, user_keypair.public_key, ExternalCustodySimulated()
        )
        assert retry.success
        stored = await deposit_ledger.get(record.deposit_id)
        assert stored.error_message is None

    @pytest.mark.asyncio
    async def test_unexpected_error_marks_failed_and_propagates(
        self, deposit_ledger, user_keypair
    ):
        record = await deposit_ledger.create("u1", Decimal("10"), "USD")

        with pytest.raises(RuntimeError):
            await deposit_ledger.confirm(
                record.deposit_id, user_keypair.public_key, ExplodingStrategy()
            )

        stored = await deposit_ledger.get(record.deposit_id)
        assert DepositStatus(stored.status) == DepositStatus.FAILED
        assert stored.error_message == "ledger unreachable"


class TestDepositQueries:
    """Tests for quick, history, estimate and cancel."""

    @pytest.mark.asyncio
    async def test_quick(self, deposit_ledger, user_keypair):
        result = await deposit_ledger.quick(
            "u1", Decimal("5"), "USD", user_keypair.public_key, ExternalCustodySimulated()
        )
        assert result.success
        assert result.credited_value == Decimal("50")

    @pytest.mark.asyncio
    async def test_history_in_creation_order(self, deposit_ledger):
        first = await deposit_ledger.create("u2", Decimal("1"), "USD")
        await deposit_ledger.create("other", Decimal("2"), "USD")
        second = await deposit_ledger.create("u2", Decimal("3"), "USD")

        history = await deposit_ledger.get_for_user("u2")
        assert [r.deposit_id for r in history] == [first.deposit_id, second.deposit_id]
        assert await deposit_ledger.get_for_user("nobody") == []

    def test_estimate(self, deposit_ledger):
        quote = deposit_ledger.estimate(Decimal("100"), "inr")
        assert quote.currency == "INR"
        assert quote.estimated_value == Decimal("12")
        assert quote.rate == Decimal("0.12")

    @pytest.mark.asyncio
    async def test_estimate_does_not_persist(self, deposit_ledger):
        deposit_ledger.estimate(Decimal("100"), "USD")
        assert await deposit_ledger.get_for_user("u1") == []

    @pytest.mark.asyncio
    async def test_cancel_created(self, deposit_ledger):
        record = await deposit_ledger.create("u1", Decimal("10"), "USD")

        assert await deposit_ledger.cancel(record.deposit_id) is True
        stored = await deposit_ledger.get(record.deposit_id)
        assert DepositStatus(stored.status) == DepositStatus.EXPIRED

    @pytest.mark.asyncio
    async def test_cancel_is_idempotent(self, deposit_ledger):
        record = await deposit_ledger.create("u1", Decimal("10"), "USD")

        assert await deposit_ledger.cancel(record.deposit_id) is True
        assert await deposit_ledger.cancel(record.deposit_id) is True

    @pytest.mark.asyncio
    async def test_cancel_completed_or_missing(self, deposit_ledger, user_keypair):
        result = await deposit_ledger.quick(
            "u1", Decimal("5"), "USD", user_keypair.public_key, ExternalCustodySimulated()
        )

        assert await deposit_ledger.cancel(result.deposit_id) is False
        assert await deposit_ledger.cancel("DEP-MISSING-001") is False

        stored = await deposit_ledger.get(result.deposit_id)
        assert DepositStatus(stored.status) == DepositStatus.COMPLETED


class TestDepositPrecisionAndLocking:
    """Cent rounding, account minimums and confirm/cancel ordering."""

    @pytest.mark.asyncio
    async def test_sub_cent_amount_settles_at_quote(self, deposit_ledger, user_keypair):
        record = await deposit_ledger.create("u1", Decimal("10.555"), "USD")
        assert record.fiat_amount == Decimal("10.56")
        assert record.estimated_value == Decimal("105.6")

        result = await deposit_ledger.confirm(
            record.deposit_id, user_keypair.public_key, ExternalCustodySimulated()
        )

        assert result.credited_value == record.estimated_value
        stored = await deposit_ledger.get(record.deposit_id)
        assert stored.fiat_amount == Decimal("10.56")
        assert stored.credited_value == stored.estimated_value

    def test_estimate_uses_cent_amount(self, deposit_ledger):
        quote = deposit_ledger.estimate(Decimal("10.555"), "USD")
        assert quote.fiat_amount == Decimal("10.56")
        assert quote.estimated_value == Decimal("105.6")

    @pytest.mark.asyncio
    async def test_direct_credit_below_account_minimum_fails(
        self, deposit_ledger, ledger_client, user_keypair
    ):
        distributor = Keypair.random()
        ledger_client.fund(distributor.public_key, Decimal("100"))
        record = await deposit_ledger.create("u1", Decimal("0.05"), "USD")

        result = await deposit_ledger.confirm(
            record.deposit_id, user_keypair.public_key, DirectCustody(distributor.secret)
        )

        assert not result.success
        assert result.error_kind == ErrorKind.SETTLEMENT_FAILURE
        stored = await deposit_ledger.get(record.deposit_id)
        assert DepositStatus(stored.status) == DepositStatus.FAILED
        assert stored.credited_value == Decimal("0")
        assert ledger_client.balance_of(distributor.public_key) == Decimal("100")

    @pytest.mark.asyncio
    async def test_cancel_waits_for_inflight_confirm(
        self, session_factory, ledger_client, user_keypair
    ):
        ledger = DepositLedger(
            session_factory, FiatRailSimulator(deposit_delay=0.1), ledger_client
        )
        record = await ledger.create("u1", Decimal("10"), "USD")

        confirm = asyncio.create_task(
            ledger.confirm(record.deposit_id, user_keypair.public_key, ExternalCustodySimulated())
        )
        await asyncio.sleep(0.02)
        cancelled = await ledger.cancel(record.deposit_id)
        result = await confirm

        assert result.success
        assert cancelled is False
        stored = await ledger.get(record.deposit_id)
        assert DepositStatus(stored.status) == DepositStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_concurrent_confirm_and_cancel(
        self, session_factory, ledger_client, user_keypair
    ):
        ledger = DepositLedger(
            session_factory, FiatRailSimulator(deposit_delay=0.05), ledger_client
        )
        record = await ledger.create("u1", Decimal("10"), "USD")

        result, cancelled = await asyncio.gather(
            ledger.confirm(record.deposit_id, user_keypair.public_key, ExternalCustodySimulated()),
            ledger.cancel(record.deposit_id),
        )

        stored = await ledger.get(record.deposit_id)
        # Whichever runs first, the two outcomes agree with the final state
        if result.success:
            assert cancelled is False
            assert DepositStatus(stored.status) == DepositStatus.COMPLETED
        else:
            assert cancelled is True
            assert DepositStatus(stored.status) == DepositStatus.EXPIRED
            assert ledger_client.balance_of(user_keypair.public_key) == Decimal("0")

    @pytest.mark.asyncio
    async def test_locks_released_after_operations(self, deposit_ledger, user_keypair):
        for _ in range(10):
            record = await deposit_ledger.create("u1", Decimal("1"), "USD")
            await deposit_ledger.cancel(record.deposit_id)
        await deposit_ledger.quick(
            "u1", Decimal("1"), "USD", user_keypair.public_key, ExternalCustodySimulated()
        )

        assert active_record_locks() == 0
