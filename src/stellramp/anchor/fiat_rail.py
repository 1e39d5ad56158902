"""Simulated fiat rail (mock SEP-24 anchor).

A real anchor accepts fiat by bank transfer or card, handles KYC and
settlement, then credits XLM on-chain (or pays out fiat for withdrawals).

This simulator skips KYC, uses the demo rate table, sleeps to model
settlement latency and always reports ``completed``.
"""

import asyncio
import itertools
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from stellramp.anchor.rates import (
    normalize_currency,
    rate_for,
    round_fiat,
    round_value,
    withdrawal_rate_for,
)

logger = logging.getLogger(__name__)

DEFAULT_PAYOUT_ETA = "5-10 min (simulated)"

_tx_counter = itertools.count(1)


def _base36(number: int) -> str:
    digits = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
    out = ""
    while True:
        number, rem = divmod(number, 36)
        out = digits[rem] + out
        if number == 0:
            return out


def timestamp_token() -> str:
    """Current epoch milliseconds in upper-case base36."""
    return _base36(int(time.time() * 1000))


def next_rail_reference(prefix: str) -> str:
    """Generate a rail transaction reference like ``DEP-LX2K9Q1A-0001``."""
    return f"{prefix}-{timestamp_token()}-{next(_tx_counter):04d}"


@dataclass
class FiatDepositConfirmation:
    """Anchor confirmation that fiat was received."""

    status: str
    fiat_amount: Decimal
    currency: str
    credited_value: Decimal
    rate: Decimal
    transaction_ref: str
    message: str
    created_at: datetime
    completed_at: Optional[datetime]


@dataclass
class FiatPayoutConfirmation:
    """Anchor confirmation that a fiat payout was sent."""

    status: str
    value: Decimal
    currency: str
    fiat_payout: Decimal
    rate: Decimal
    eta: str
    transaction_ref: str
    message: str
    created_at: datetime
    completed_at: Optional[datetime]


class FiatRailSimulator:
    """Fiat leg of the ramp. Never fails."""

    def __init__(self, deposit_delay: float = 2.5, withdraw_delay: float = 3.0):
        """Initialize simulator.

        Args:
            deposit_delay: Seconds to wait before confirming a deposit
            withdraw_delay: Seconds to wait before confirming a payout
        """
        self.deposit_delay = deposit_delay
        self.withdraw_delay = withdraw_delay

    def is_available(self) -> bool:
        """Health check, always true for the simulator."""
        return True

    async def simulate_deposit(
        self,
        fiat_amount: Decimal,
        currency: str = "USD",
        rate: Optional[Decimal] = None,
    ) -> FiatDepositConfirmation:
        """Wait for the simulated bank/card payment and confirm it.

        Args:
            fiat_amount: Fiat amount paid by the user
            currency: Fiat currency code
            rate: Rate snapshot quoted to the user (live table if None)

        Returns:
            Completed deposit confirmation
        """
        if self.deposit_delay > 0:
            await asyncio.sleep(self.deposit_delay)

        currency = normalize_currency(currency)
        rate = rate if rate is not None else rate_for(currency)
        credited = round_value(Decimal(fiat_amount) * rate)
        now = datetime.now(timezone.utc)

        confirmation = FiatDepositConfirmation(
            status="completed",
            fiat_amount=Decimal(fiat_amount),
            currency=currency,
            credited_value=credited,
            rate=rate,
            transaction_ref=next_rail_reference("DEP"),
            message=f"Anchor confirmed: {fiat_amount} {currency} -> {credited} XLM",
            created_at=now,
            completed_at=now,
        )
        logger.info(f"[SIMULATED] {confirmation.message} ({confirmation.transaction_ref})")
        return confirmation

    async def simulate_withdrawal(
        self,
        value: Decimal,
        currency: str = "USD",
        fiat_rate: Optional[Decimal] = None,
    ) -> FiatPayoutConfirmation:
        """Wait for the simulated bank payout and confirm it.

        Args:
            value: XLM received by the anchor
            currency: Payout currency code
            fiat_rate: Fiat-per-XLM snapshot quoted to the user (live table if None)

        Returns:
            Completed payout confirmation
        """
        if self.withdraw_delay > 0:
            await asyncio.sleep(self.withdraw_delay)

        currency = normalize_currency(currency)
        fiat_rate = fiat_rate if fiat_rate is not None else withdrawal_rate_for(currency)
        payout = round_fiat(Decimal(value) * fiat_rate)
        now = datetime.now(timezone.utc)

        confirmation = FiatPayoutConfirmation(
            status="completed",
            value=Decimal(value),
            currency=currency,
            fiat_payout=payout,
            rate=fiat_rate,
            eta=DEFAULT_PAYOUT_ETA,
            transaction_ref=next_rail_reference("WDR"),
            message=f"Anchor payout: {value} XLM -> {payout} {currency}",
            created_at=now,
            completed_at=now,
        )
        logger.info(f"[SIMULATED] {confirmation.message} ({confirmation.transaction_ref})")
        return confirmation
