"""Ramp orchestrator.

Single entry point for REST handlers and chat commands. Coerces caller
input, picks settlement strategies and converts unexpected errors into
failure results so callers can always show a message.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Callable, Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from stellramp.anchor.deposits import DepositLedger
from stellramp.anchor.fiat_rail import FiatRailSimulator
from stellramp.anchor.rates import (
    is_supported,
    normalize_currency,
    rate_for,
    round_fiat,
    round_value,
    supported_currencies,
    withdrawal_rate_for,
)
from stellramp.anchor.results import (
    DepositQuote,
    DepositResult,
    ErrorKind,
    RampValidationError,
    RateQuote,
    WithdrawalQuote,
    WithdrawalResult,
)
from stellramp.anchor.settlement import (
    DirectCustody,
    ExternalCustodySimulated,
    SettlementStrategy,
)
from stellramp.anchor.withdrawals import WithdrawalLedger
from stellramp.config import Settings, get_settings
from stellramp.ledger.database import get_session_factory, session_scope
from stellramp.ledger.models import (
    DepositRecord,
    DepositStatus,
    WithdrawalRecord,
    WithdrawalStatus,
)
from stellramp.ledger.repository import RampRepository
from stellramp.stellar.base import LedgerClient, TransferLogEntry
from stellramp.stellar.factory import get_ledger_client, is_valid_address
from stellramp.utils.locks import LockTimeoutError

logger = logging.getLogger(__name__)

AmountInput = Union[str, int, float, Decimal]


def parse_amount(
    value: Optional[AmountInput],
    quantize: Optional[Callable[[Decimal], Decimal]] = None,
) -> Decimal:
    """Parse a caller-supplied amount into a positive Decimal.

    Args:
        value: Raw amount from a request body or chat command
        quantize: Rounds to the precision the amount is stored at

    Raises:
        RampValidationError: If the amount is missing, non-numeric, not positive
            or rounds to zero
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        raise RampValidationError("Amount is required")
    if isinstance(value, bool):
        raise RampValidationError(f"Invalid amount: {value}")
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise RampValidationError(f"Invalid amount: {value}")
    if not amount.is_finite():
        raise RampValidationError(f"Invalid amount: {value}")
    if amount <= 0:
        raise RampValidationError("Amount must be positive")
    if quantize is not None:
        amount = quantize(amount)
        if amount <= 0:
            raise RampValidationError(f"Amount {value} is below the smallest unit")
    return amount


class RampService:
    """Composes the deposit and withdrawal ledgers. Holds no record state."""

    def __init__(
        self,
        deposits: DepositLedger,
        withdrawals: WithdrawalLedger,
        session_factory: async_sessionmaker[AsyncSession],
        ledger_client: LedgerClient,
        fiat_rail: FiatRailSimulator,
        settings: Optional[Settings] = None,
    ):
        self.deposits = deposits
        self.withdrawals = withdrawals
        self.session_factory = session_factory
        self.ledger_client = ledger_client
        self.fiat_rail = fiat_rail
        self.settings = settings or get_settings()

    # ======================
    # Coercion
    # ======================
    def parse_currency(self, currency: Optional[str]) -> str:
        """Normalize a currency code and reject unsupported ones unless fallback is on."""
        code = normalize_currency(currency)
        if not is_supported(code) and not self.settings.allow_currency_fallback:
            raise RampValidationError(
                f"Unsupported currency: {code}. Supported: {', '.join(supported_currencies())}"
            )
        return code

    def _parse_address(self, address: Optional[str], label: str) -> str:
        if not address:
            raise RampValidationError(f"{label} is required")
        address = address.strip()
        if not is_valid_address(address):
            raise RampValidationError(f"Invalid Stellar address: {address}")
        return address

    def deposit_strategy(self) -> SettlementStrategy:
        """Anchor distribution account if configured, else faucet funding."""
        if self.settings.anchor_distribution_secret:
            return DirectCustody(self.settings.anchor_distribution_secret)
        return ExternalCustodySimulated()

    async def _resolve_wallet(self, user_id: str, address: Optional[str]) -> str:
        if address:
            return self._parse_address(address, "Wallet address")
        linked = await self.linked_wallet(user_id)
        if linked is None:
            raise RampValidationError("No wallet linked. Use /linkwallet <address> first.")
        return linked

    # ======================
    # Deposits
    # ======================
    async def create_deposit(
        self,
        user_id: Union[str, int],
        amount: AmountInput,
        currency: Optional[str] = "USD",
        destination_address: Optional[str] = None,
    ) -> DepositResult:
        """Quote and store a deposit without settling it."""
        try:
            fiat_amount = parse_amount(amount, round_fiat)
            code = self.parse_currency(currency)
            if destination_address:
                destination_address = self._parse_address(destination_address, "Wallet address")
        except RampValidationError as e:
            return DepositResult.failure("N/A", str(e), ErrorKind.VALIDATION_FAILURE)

        record = await self.deposits.create(str(user_id), fiat_amount, code, destination_address)
        return DepositResult(
            success=True,
            deposit_id=record.deposit_id,
            message=(
                f"Deposit created: {record.fiat_amount} {record.currency} -> "
                f"~{record.estimated_value} XLM"
            ),
            status=DepositStatus.CREATED.value,
            record=record,
        )

    async def confirm_deposit(
        self,
        deposit_id: str,
        destination_address: Optional[str] = None,
        strategy: Optional[SettlementStrategy] = None,
    ) -> DepositResult:
        """Settle a created deposit, crediting the stored address if none is given."""
        if not destination_address:
            record = await self.deposits.get(deposit_id)
            if record is None:
                return DepositResult.failure(deposit_id, "Deposit not found", ErrorKind.NOT_FOUND)
            destination_address = record.destination_address
        try:
            destination = self._parse_address(destination_address, "Destination address")
        except RampValidationError as e:
            return DepositResult.failure(deposit_id, str(e), ErrorKind.VALIDATION_FAILURE)

        try:
            return await self.deposits.confirm(
                deposit_id, destination, strategy or self.deposit_strategy()
            )
        except LockTimeoutError as e:
            return DepositResult.failure(deposit_id, str(e), ErrorKind.SETTLEMENT_FAILURE)
        except Exception as e:
            logger.exception(f"Deposit {deposit_id} settlement error")
            return DepositResult.failure(
                deposit_id, f"Settlement error: {e}", ErrorKind.SETTLEMENT_FAILURE, "failed"
            )

    async def quick_deposit(
        self,
        user_id: Union[str, int],
        amount: AmountInput,
        currency: Optional[str] = "USD",
        destination_address: Optional[str] = None,
        strategy: Optional[SettlementStrategy] = None,
    ) -> DepositResult:
        """Create and settle a deposit in one call."""
        user_id = str(user_id)
        try:
            fiat_amount = parse_amount(amount, round_fiat)
            code = self.parse_currency(currency)
            destination = await self._resolve_wallet(user_id, destination_address)
        except RampValidationError as e:
            return DepositResult.failure("N/A", str(e), ErrorKind.VALIDATION_FAILURE)

        record = await self.deposits.create(user_id, fiat_amount, code, destination)
        return await self.confirm_deposit(record.deposit_id, destination, strategy)

    async def get_deposit(self, deposit_id: str) -> Optional[DepositRecord]:
        return await self.deposits.get(deposit_id.strip())

    async def deposit_history(self, user_id: Union[str, int]) -> list[DepositRecord]:
        return await self.deposits.get_for_user(str(user_id))

    def estimate_deposit(
        self, amount: AmountInput, currency: Optional[str] = "USD"
    ) -> DepositQuote:
        """Quote a deposit. Raises RampValidationError on bad input."""
        return self.deposits.estimate(
            parse_amount(amount, round_fiat), self.parse_currency(currency)
        )

    async def cancel_deposit(self, deposit_id: str) -> bool:
        try:
            return await self.deposits.cancel(deposit_id)
        except LockTimeoutError:
            logger.warning(f"Cancel of deposit {deposit_id} timed out waiting for lock")
            return False

    # ======================
    # Withdrawals
    # ======================
    async def create_withdrawal(
        self,
        user_id: Union[str, int],
        requested_value: AmountInput,
        currency: Optional[str] = "USD",
        source_address: Optional[str] = None,
    ) -> WithdrawalResult:
        """Quote and store a withdrawal without settling it."""
        try:
            value = parse_amount(requested_value, round_value)
            code = self.parse_currency(currency)
            if source_address:
                source_address = self._parse_address(source_address, "Wallet address")
        except RampValidationError as e:
            return WithdrawalResult.failure("N/A", str(e), ErrorKind.VALIDATION_FAILURE)

        record = await self.withdrawals.create(str(user_id), value, code, source_address)
        return WithdrawalResult(
            success=True,
            withdrawal_id=record.withdrawal_id,
            currency=record.currency,
            eta=record.estimated_time_to_settle,
            message=(
                f"Withdrawal created: {record.requested_value} XLM -> "
                f"~{record.estimated_fiat_payout} {record.currency}"
            ),
            status=WithdrawalStatus.CREATED.value,
            record=record,
        )

    async def confirm_withdrawal(
        self,
        withdrawal_id: str,
        source_address: Optional[str] = None,
        strategy: Optional[SettlementStrategy] = None,
        treasury_address: Optional[str] = None,
    ) -> WithdrawalResult:
        """Settle a created withdrawal, debiting the stored address if none is given.

        Without a strategy the debit is simulated (external custody).
        """
        if not source_address:
            record = await self.withdrawals.get(withdrawal_id)
            if record is None:
                return WithdrawalResult.failure(
                    withdrawal_id, "Withdrawal not found", ErrorKind.NOT_FOUND
                )
            source_address = record.source_address
        try:
            source = self._parse_address(source_address, "Source address")
        except RampValidationError as e:
            return WithdrawalResult.failure(withdrawal_id, str(e), ErrorKind.VALIDATION_FAILURE)

        try:
            return await self.withdrawals.confirm(
                withdrawal_id, source, strategy or ExternalCustodySimulated(), treasury_address
            )
        except LockTimeoutError as e:
            return WithdrawalResult.failure(withdrawal_id, str(e), ErrorKind.SETTLEMENT_FAILURE)
        except Exception as e:
            logger.exception(f"Withdrawal {withdrawal_id} settlement error")
            return WithdrawalResult.failure(
                withdrawal_id, f"Settlement error: {e}", ErrorKind.SETTLEMENT_FAILURE, "failed"
            )

    async def quick_withdrawal(
        self,
        user_id: Union[str, int],
        requested_value: AmountInput,
        currency: Optional[str] = "USD",
        source_address: Optional[str] = None,
        strategy: Optional[SettlementStrategy] = None,
    ) -> WithdrawalResult:
        """Create and settle a withdrawal in one call."""
        user_id = str(user_id)
        try:
            value = parse_amount(requested_value, round_value)
            code = self.parse_currency(currency)
            source = await self._resolve_wallet(user_id, source_address)
        except RampValidationError as e:
            return WithdrawalResult.failure("N/A", str(e), ErrorKind.VALIDATION_FAILURE)

        record = await self.withdrawals.create(user_id, value, code, source)
        return await self.confirm_withdrawal(record.withdrawal_id, source, strategy)

    async def get_withdrawal(self, withdrawal_id: str) -> Optional[WithdrawalRecord]:
        return await self.withdrawals.get(withdrawal_id.strip())

    async def withdrawal_history(self, user_id: Union[str, int]) -> list[WithdrawalRecord]:
        return await self.withdrawals.get_for_user(str(user_id))

    def estimate_withdrawal(
        self, requested_value: AmountInput, currency: Optional[str] = "USD"
    ) -> WithdrawalQuote:
        """Quote a withdrawal. Raises RampValidationError on bad input."""
        return self.withdrawals.estimate(
            parse_amount(requested_value, round_value), self.parse_currency(currency)
        )

    async def cancel_withdrawal(self, withdrawal_id: str) -> bool:
        try:
            return await self.withdrawals.cancel(withdrawal_id)
        except LockTimeoutError:
            logger.warning(f"Cancel of withdrawal {withdrawal_id} timed out waiting for lock")
            return False

    # ======================
    # Queries
    # ======================
    def rates(self) -> list[RateQuote]:
        return [
            RateQuote(
                currency=code,
                fiat_to_value=rate_for(code),
                value_to_fiat=withdrawal_rate_for(code),
            )
            for code in supported_currencies()
        ]

    async def history(
        self, user_id: Union[str, int]
    ) -> tuple[list[DepositRecord], list[WithdrawalRecord]]:
        """Deposits and withdrawals for a user, each in creation order."""
        return await self.deposit_history(user_id), await self.withdrawal_history(user_id)

    def transfer_log(
        self, address: Optional[str] = None, limit: int = 20
    ) -> list[TransferLogEntry]:
        if address:
            return self.ledger_client.transfers_for_address(address, limit)
        return self.ledger_client.recent_transfers(limit)

    @property
    def network_name(self) -> str:
        return self.ledger_client.network_name

    def anchor_available(self) -> bool:
        return self.fiat_rail.is_available()

    async def in_flight_counts(self) -> dict[str, int]:
        """Records stuck in processing, e.g. after a crash mid-settlement."""
        async with session_scope(self.session_factory) as session:
            repo = RampRepository(session)
            deposits = await repo.get_deposits_by_status(DepositStatus.PROCESSING)
            withdrawals = await repo.get_withdrawals_by_status(WithdrawalStatus.PROCESSING)
        return {"deposits": len(deposits), "withdrawals": len(withdrawals)}

    # ======================
    # Linked wallets
    # ======================
    async def link_wallet(self, user_id: Union[str, int], address: str) -> str:
        """Link a public address to a user. Raises RampValidationError if invalid."""
        address = self._parse_address(address, "Wallet address")
        async with session_scope(self.session_factory) as session:
            await RampRepository(session).link_wallet(str(user_id), address)
        logger.info(f"User {user_id} linked wallet {address[:6]}...")
        return address

    async def linked_wallet(self, user_id: Union[str, int]) -> Optional[str]:
        async with session_scope(self.session_factory) as session:
            wallet = await RampRepository(session).get_linked_wallet(str(user_id))
            return wallet.address if wallet else None


# Process-wide service instance
_service: Optional[RampService] = None


def build_ramp_service(
    session_factory: async_sessionmaker[AsyncSession],
    ledger_client: LedgerClient,
    settings: Optional[Settings] = None,
    fiat_rail: Optional[FiatRailSimulator] = None,
) -> RampService:
    """Wire ledgers, fiat rail and ledger client into a RampService."""
    settings = settings or get_settings()
    fiat_rail = fiat_rail or FiatRailSimulator(
        deposit_delay=settings.deposit_delay_seconds,
        withdraw_delay=settings.withdraw_delay_seconds,
    )
    deposits = DepositLedger(
        session_factory,
        fiat_rail,
        ledger_client,
        payment_base_url=settings.anchor_payment_base_url,
        lock_timeout=settings.record_lock_timeout,
    )
    withdrawals = WithdrawalLedger(
        session_factory,
        fiat_rail,
        ledger_client,
        treasury_address=settings.anchor_treasury_public,
        minimum_reserve=settings.minimum_reserve,
        lock_timeout=settings.record_lock_timeout,
    )
    return RampService(deposits, withdrawals, session_factory, ledger_client, fiat_rail, settings)


def get_ramp_service() -> RampService:
    """Get the process-wide ramp service."""
    global _service
    if _service is None:
        _service = build_ramp_service(get_session_factory(), get_ledger_client())
    return _service


def reset_ramp_service() -> None:
    """Drop the cached service (useful for testing)."""
    global _service
    _service = None
