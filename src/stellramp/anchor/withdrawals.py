"""Off-ramp ledger (XLM -> fiat).

Lifecycle:
    created -> processing -> completed | failed | cancelled

1. create()  - quote the payout and store the record
2. confirm() - re-check the balance, debit XLM to the treasury, then the
               fiat rail pays out
3. quick()   - create + confirm in one call

The source balance is checked immediately before the debit and must cover
the requested value plus the minimum reserve. Cancellation is only possible
before processing starts, so an in-flight debit is never raced.
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
    round_fiat,
    round_value,
    withdrawal_rate_for,
)
from stellramp.anchor.results import ErrorKind, WithdrawalQuote, WithdrawalResult
from stellramp.anchor.settlement import SettlementStrategy
from stellramp.ledger.database import session_scope
from stellramp.ledger.models import WithdrawalRecord, WithdrawalStatus
from stellramp.ledger.repository import RampRepository
from stellramp.stellar.base import LedgerClient
from stellramp.utils.locks import RecordLock

logger = logging.getLogger(__name__)

DEFAULT_ETA = "5-10 min"

_withdrawal_counter = itertools.count(1)


def next_withdrawal_id() -> str:
    """Time-based ID plus a process-wide counter, unique within the same millisecond."""
    return f"WDR-{timestamp_token()}-{next(_withdrawal_counter):03d}"


class WithdrawalLedger:
    """Owns the withdrawal table and its per-user index."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        fiat_rail: FiatRailSimulator,
        ledger_client: LedgerClient,
        treasury_address: str,
        minimum_reserve: Decimal = Decimal("1.5"),
        lock_timeout: Optional[float] = 30.0,
    ):
        self.session_factory = session_factory
        self.fiat_rail = fiat_rail
        self.ledger_client = ledger_client
        self.treasury_address = treasury_address
        self.minimum_reserve = Decimal(minimum_reserve)
        self.lock_timeout = lock_timeout

    async def create(
        self,
        user_id: str,
        requested_value: Decimal,
        currency: str = "USD",
        source_address: Optional[str] = None,
    ) -> WithdrawalRecord:
        """Record a withdrawal intent.

        The value is stored at ledger precision (7 dp), which is what confirm
        debits.

        Raises:
            ValueError: If requested_value is not positive once rounded
        """
        requested_value = round_value(requested_value)
        if requested_value <= 0:
            raise ValueError(
                f"Withdrawal amount must be at least 0.0000001 XLM, got {requested_value}"
            )

        currency = normalize_currency(currency)
        fiat_rate = withdrawal_rate_for(currency)

        record = WithdrawalRecord(
            withdrawal_id=next_withdrawal_id(),
            user_id=str(user_id),
            requested_value=requested_value,
            estimated_fiat_payout=round_fiat(requested_value * fiat_rate),
            currency=currency,
            fiat_per_unit_rate=fiat_rate,
            source_address=source_address,
            status=WithdrawalStatus.CREATED,
            actual_fiat_payout=Decimal("0"),
            estimated_time_to_settle=DEFAULT_ETA,
            created_at=datetime.now(timezone.utc),
        )

        async with session_scope(self.session_factory) as session:
            await RampRepository(session).add_withdrawal(record)

        logger.info(
            f"Withdrawal {record.withdrawal_id} created for user {user_id}: "
            f"{requested_value} XLM -> ~{record.estimated_fiat_payout} {currency}"
        )
        return record

    async def confirm(
        self,
        withdrawal_id: str,
        source_address: str,
        strategy: SettlementStrategy,
        treasury_address: Optional[str] = None,
    ) -> WithdrawalResult:
        """Debit XLM from source_address, then simulate the fiat payout."""
        treasury = treasury_address or self.treasury_address

        async with RecordLock(withdrawal_id, self.lock_timeout, "confirm_withdrawal"):
            async with session_scope(self.session_factory) as session:
                record = await RampRepository(session).get_withdrawal(withdrawal_id)
                if record is None:
                    return WithdrawalResult.failure(
                        withdrawal_id, "Withdrawal not found", ErrorKind.NOT_FOUND
                    )

                status = WithdrawalStatus(record.status)
                if status == WithdrawalStatus.COMPLETED:
                    return WithdrawalResult.failure(
                        withdrawal_id, "Already completed", ErrorKind.INVALID_STATE, status.value
                    )
                if status == WithdrawalStatus.CANCELLED:
                    return WithdrawalResult.failure(
                        withdrawal_id, "Cancelled", ErrorKind.INVALID_STATE, status.value
                    )
                if status == WithdrawalStatus.PROCESSING:
                    return WithdrawalResult.failure(
                        withdrawal_id, "Already processing", ErrorKind.INVALID_STATE, status.value
                    )

                record.status = WithdrawalStatus.PROCESSING
                record.source_address = source_address
                record.error_message = None
                requested_value = record.requested_value
                currency = record.currency
                fiat_rate = record.fiat_per_unit_rate

            try:
                shortfall = await self._check_balance(source_address, requested_value)
                if shortfall:
                    logger.warning(f"Withdrawal {withdrawal_id} rejected: {shortfall}")
                    await self._mark_failed(withdrawal_id, shortfall)
                    return WithdrawalResult.failure(
                        withdrawal_id,
                        shortfall,
                        ErrorKind.SETTLEMENT_FAILURE,
                        WithdrawalStatus.FAILED.value,
                    )

                transfer = await strategy.debit(
                    self.ledger_client, source_address, treasury, requested_value
                )
                if not transfer.success:
                    error = transfer.error or "XLM debit failed"
                    logger.warning(f"Withdrawal {withdrawal_id} debit failed: {error}")
                    await self._mark_failed(withdrawal_id, error)
                    return WithdrawalResult.failure(
                        withdrawal_id,
                        error,
                        ErrorKind.SETTLEMENT_FAILURE,
                        WithdrawalStatus.FAILED.value,
                    )

                payout = await self.fiat_rail.simulate_withdrawal(
                    requested_value, currency, fiat_rate=fiat_rate
                )
            except Exception as e:
                await self._mark_failed(withdrawal_id, str(e))
                raise

            async with session_scope(self.session_factory) as session:
                record = await RampRepository(session).get_withdrawal(withdrawal_id)
                record.status = WithdrawalStatus.COMPLETED
                record.actual_fiat_payout = payout.fiat_payout
                record.ledger_reference = transfer.reference
                record.estimated_time_to_settle = payout.eta
                record.completed_at = datetime.now(timezone.utc)

            logger.info(
                f"Withdrawal {withdrawal_id} completed: {requested_value} XLM -> "
                f"{payout.fiat_payout} {currency} via {strategy.name}"
            )
            return WithdrawalResult(
                success=True,
                withdrawal_id=withdrawal_id,
                value_debited=requested_value,
                fiat_payout=payout.fiat_payout,
                currency=currency,
                settlement_reference=transfer.reference,
                eta=payout.eta,
                message=f"{requested_value} XLM -> {payout.fiat_payout} {currency}",
                status=WithdrawalStatus.COMPLETED.value,
            )

    async def _check_balance(self, address: str, amount: Decimal) -> Optional[str]:
        """Return a failure message if ``address`` cannot cover amount + reserve."""
        balance = await self.ledger_client.get_balance(address)
        if not balance.exists:
            return "Wallet not found on Stellar network. Fund it first."

        available = balance.native
        usable = max(available - self.minimum_reserve, Decimal("0"))
        if usable < amount:
            return (
                f"Insufficient balance. Available: {available} XLM "
                f"({usable} usable after {self.minimum_reserve} XLM reserve)."
            )
        return None

    async def quick(
        self,
        user_id: str,
        requested_value: Decimal,
        currency: str,
        source_address: str,
        strategy: SettlementStrategy,
    ) -> WithdrawalResult:
        """Create and immediately confirm a withdrawal."""
        record = await self.create(user_id, requested_value, currency, source_address)
        return await self.confirm(record.withdrawal_id, source_address, strategy)

    async def get(self, withdrawal_id: str) -> Optional[WithdrawalRecord]:
        async with session_scope(self.session_factory) as session:
            return await RampRepository(session).get_withdrawal(withdrawal_id)

    async def get_for_user(self, user_id: str) -> list[WithdrawalRecord]:
        """All withdrawals for a user in creation order."""
        async with session_scope(self.session_factory) as session:
            return await RampRepository(session).get_user_withdrawals(str(user_id))

    def estimate(self, requested_value: Decimal, currency: str = "USD") -> WithdrawalQuote:
        """Quote a payout at the current rate without storing anything."""
        requested_value = round_value(requested_value)
        currency = normalize_currency(currency)
        fiat_rate = withdrawal_rate_for(currency)
        return WithdrawalQuote(
            requested_value=requested_value,
            currency=currency,
            estimated_fiat_payout=round_fiat(requested_value * fiat_rate),
            rate=fiat_rate,
        )

    async def cancel(self, withdrawal_id: str) -> bool:
        """Cancel a withdrawal that has not started processing."""
        async with RecordLock(withdrawal_id, self.lock_timeout, "cancel_withdrawal"):
            async with session_scope(self.session_factory) as session:
                record = await RampRepository(session).get_withdrawal(withdrawal_id)
                if record is None or record.status != WithdrawalStatus.CREATED:
                    return False
                record.status = WithdrawalStatus.CANCELLED

        logger.info(f"Withdrawal {withdrawal_id} cancelled by caller")
        return True

    async def _mark_failed(self, withdrawal_id: str, error: str) -> None:
        async with session_scope(self.session_factory) as session:
            record = await RampRepository(session).get_withdrawal(withdrawal_id)
            if record is not None:
                record.status = WithdrawalStatus.FAILED
                record.error_message = error
