"""On-ramp ledger (fiat -> XLM).

Lifecycle:
    created -> processing -> completed | failed | expired

1. create()  - quote at the current rate and store the record
2. confirm() - fiat rail confirms payment, then XLM is credited on-chain
3. quick()   - create + confirm in one call

The exchange rate is snapshotted at creation; confirm settles at that rate
even if the table changes in between.
"""

import itertools
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from stellramp.anchor.fiat_rail import FiatRailSimulator, timestamp_token
from stellramp.anchor.rates import (
    normalize_currency,
    plain_amount,
    rate_for,
    round_fiat,
    round_value,
)
from stellramp.anchor.results import DepositQuote, DepositResult, ErrorKind
from stellramp.anchor.settlement import SettlementStrategy
from stellramp.ledger.database import session_scope
from stellramp.ledger.models import DepositRecord, DepositStatus
from stellramp.ledger.repository import RampRepository
from stellramp.stellar.base import LedgerClient
from stellramp.utils.locks import RecordLock

logger = logging.getLogger(__name__)

_deposit_counter = itertools.count(1)


def next_deposit_id() -> str:
    """Time-based ID plus a process-wide counter, unique within the same millisecond."""
    return f"DEP-{timestamp_token()}-{next(_deposit_counter):03d}"


class DepositLedger:
    """Owns the deposit table and its per-user index."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        fiat_rail: FiatRailSimulator,
        ledger_client: LedgerClient,
        payment_base_url: str = "https://stellramp-anchor.demo",
        lock_timeout: Optional[float] = 30.0,
    ):
        self.session_factory = session_factory
        self.fiat_rail = fiat_rail
        self.ledger_client = ledger_client
        self.payment_base_url = payment_base_url.rstrip("/")
        self.lock_timeout = lock_timeout

    async def create(
        self,
        user_id: str,
        fiat_amount: Decimal,
        currency: str = "USD",
        destination_address: Optional[str] = None,
    ) -> DepositRecord:
        """Record a deposit request with a mock payment link.

        The amount is stored in cents; the quote is computed from the stored
        amount so confirm credits exactly what was quoted.

        Raises:
            ValueError: If fiat_amount is not positive once rounded to cents
        """
        fiat_amount = round_fiat(fiat_amount)
        if fiat_amount <= 0:
            raise ValueError(f"Deposit amount must be at least 0.01, got {fiat_amount}")

        currency = normalize_currency(currency)
        rate = rate_for(currency)
        deposit_id = next_deposit_id()

        record = DepositRecord(
            deposit_id=deposit_id,
            user_id=str(user_id),
            fiat_amount=fiat_amount,
            currency=currency,
            estimated_value=round_value(fiat_amount * rate),
            exchange_rate=rate,
            destination_address=destination_address,
            status=DepositStatus.CREATED,
            payment_link=(
                f"{self.payment_base_url}/pay/{deposit_id}"
                f"?amt={plain_amount(fiat_amount)}&cur={currency}"
            ),
            credited_value=Decimal("0"),
            created_at=datetime.now(timezone.utc),
        )

        async with session_scope(self.session_factory) as session:
            await RampRepository(session).add_deposit(record)

        logger.info(
            f"Deposit {deposit_id} created for user {user_id}: "
            f"{fiat_amount} {currency} -> ~{record.estimated_value} XLM"
        )
        return record

    async def confirm(
        self,
        deposit_id: str,
        destination_address: str,
        strategy: SettlementStrategy,
    ) -> DepositResult:
        """Simulate the fiat leg, then credit XLM to destination_address."""
        async with RecordLock(deposit_id, self.lock_timeout, "confirm_deposit"):
            async with session_scope(self.session_factory) as session:
                record = await RampRepository(session).get_deposit(deposit_id)
                if record is None:
                    return DepositResult.failure(
                        deposit_id, "Deposit not found", ErrorKind.NOT_FOUND
                    )

                status = DepositStatus(record.status)
                if status == DepositStatus.COMPLETED:
                    return DepositResult.failure(
                        deposit_id, "Already completed", ErrorKind.INVALID_STATE, status.value
                    )
                if status == DepositStatus.EXPIRED:
                    return DepositResult.failure(
                        deposit_id, "Expired", ErrorKind.INVALID_STATE, status.value
                    )
                if status == DepositStatus.PROCESSING:
                    return DepositResult.failure(
                        deposit_id, "Already processing", ErrorKind.INVALID_STATE, status.value
                    )

                record.status = DepositStatus.PROCESSING
                record.destination_address = destination_address
                record.error_message = None
                fiat_amount = record.fiat_amount
                currency = record.currency
                rate = record.exchange_rate

            try:
                anchor = await self.fiat_rail.simulate_deposit(fiat_amount, currency, rate=rate)
                if anchor.status != "completed":
                    await self._mark_failed(deposit_id, "Anchor did not confirm fiat")
                    return DepositResult.failure(
                        deposit_id,
                        "Anchor did not confirm fiat",
                        ErrorKind.SETTLEMENT_FAILURE,
                        DepositStatus.FAILED.value,
                    )

                transfer = await strategy.credit(
                    self.ledger_client, destination_address, anchor.credited_value
                )
            except Exception as e:
                await self._mark_failed(deposit_id, str(e))
                raise

            if not transfer.success:
                error = transfer.error or "Stellar transfer failed"
                logger.warning(f"Deposit {deposit_id} credit failed: {error}")
                await self._mark_failed(deposit_id, error)
                return DepositResult.failure(
                    deposit_id, error, ErrorKind.SETTLEMENT_FAILURE, DepositStatus.FAILED.value
                )

            async with session_scope(self.session_factory) as session:
                record = await RampRepository(session).get_deposit(deposit_id)
                record.status = DepositStatus.COMPLETED
                record.credited_value = anchor.credited_value
                record.settlement_reference = transfer.reference
                record.completed_at = datetime.now(timezone.utc)

            logger.info(
                f"Deposit {deposit_id} completed: {anchor.credited_value} XLM "
                f"to {destination_address[:6]}... via {strategy.name}"
            )
            return DepositResult(
                success=True,
                deposit_id=deposit_id,
                credited_value=anchor.credited_value,
                settlement_reference=transfer.reference,
                message=f"{fiat_amount} {currency} -> {anchor.credited_value} XLM credited",
                status=DepositStatus.COMPLETED.value,
            )

    async def quick(
        self,
        user_id: str,
        fiat_amount: Decimal,
        currency: str,
        destination_address: str,
        strategy: SettlementStrategy,
    ) -> DepositResult:
        """Create and immediately confirm a deposit."""
        record = await self.create(user_id, fiat_amount, currency, destination_address)
        return await self.confirm(record.deposit_id, destination_address, strategy)

    async def get(self, deposit_id: str) -> Optional[DepositRecord]:
        async with session_scope(self.session_factory) as session:
            return await RampRepository(session).get_deposit(deposit_id)

    async def get_for_user(self, user_id: str) -> list[DepositRecord]:
        """All deposits for a user in creation order."""
        async with session_scope(self.session_factory) as session:
            return await RampRepository(session).get_user_deposits(str(user_id))

    def estimate(self, fiat_amount: Decimal, currency: str = "USD") -> DepositQuote:
        """Quote a deposit at the current rate without storing anything."""
        fiat_amount = round_fiat(fiat_amount)
        currency = normalize_currency(currency)
        rate = rate_for(currency)
        return DepositQuote(
            fiat_amount=fiat_amount,
            currency=currency,
            estimated_value=round_value(fiat_amount * rate),
            rate=rate,
        )

    async def cancel(self, deposit_id: str) -> bool:
        """Expire a deposit. False if it does not exist or already completed."""
        async with RecordLock(deposit_id, self.lock_timeout, "cancel_deposit"):
            async with session_scope(self.session_factory) as session:
                record = await RampRepository(session).get_deposit(deposit_id)
                if record is None or record.status == DepositStatus.COMPLETED:
                    return False
                record.status = DepositStatus.EXPIRED

        logger.info(f"Deposit {deposit_id} expired by caller")
        return True

    async def _mark_failed(self, deposit_id: str, error: str) -> None:
        async with session_scope(self.session_factory) as session:
            record = await RampRepository(session).get_deposit(deposit_id)
            if record is not None:
                record.status = DepositStatus.FAILED
                record.error_message = error
