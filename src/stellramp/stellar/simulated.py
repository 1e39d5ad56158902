"""Simulated ledger client for dry-run mode and tests."""

import logging
import secrets
from decimal import Decimal

from stellar_sdk import Keypair

from stellramp.stellar.base import (
    FAUCET_AMOUNT,
    MIN_CREATE_ACCOUNT_BALANCE,
    BalanceInfo,
    LedgerClient,
    TransferOutcome,
)

logger = logging.getLogger(__name__)


class SimulatedLedgerClient(LedgerClient):
    """In-memory ledger. Accounts exist once they have been funded."""

    def __init__(self, network: str = "testnet"):
        super().__init__(network)
        self._balances: dict[str, Decimal] = {}

    def fund(self, address: str, amount: Decimal) -> None:
        """Create or top up an account directly."""
        self._balances[address] = self._balances.get(address, Decimal("0")) + Decimal(amount)

    def balance_of(self, address: str) -> Decimal:
        return self._balances.get(address, Decimal("0"))

    async def get_balance(self, address: str) -> BalanceInfo:
        """Return the simulated balance."""
        if address not in self._balances:
            return BalanceInfo(exists=False)
        return BalanceInfo(exists=True, native_balance=f"{self._balances[address]:.7f}")

    async def transfer(
        self, source_credential: str, destination: str, amount: Decimal
    ) -> TransferOutcome:
        """Move simulated XLM from the account owning the secret seed."""
        amount = Decimal(amount)
        try:
            source = Keypair.from_secret(source_credential).public_key
        except ValueError:
            return TransferOutcome(success=False, error="Invalid source secret")

        if source not in self._balances:
            self.transfer_log.record(
                "transfer", source, destination, amount, None, "failed", "source account not found"
            )
            return TransferOutcome(success=False, error="Source account not found")

        if self._balances[source] < amount:
            error = f"Insufficient balance: have {self._balances[source]} XLM, need {amount}"
            self.transfer_log.record("transfer", source, destination, amount, None, "failed", error)
            return TransferOutcome(success=False, error=error)

        if destination not in self._balances and amount < MIN_CREATE_ACCOUNT_BALANCE:
            error = (
                f"Destination account does not exist and {amount} XLM is below "
                f"the {MIN_CREATE_ACCOUNT_BALANCE} XLM needed to create it"
            )
            self.transfer_log.record("transfer", source, destination, amount, None, "failed", error)
            return TransferOutcome(success=False, error=error)

        self._balances[source] -= amount
        self.fund(destination, amount)

        txid = f"sim_tx_{secrets.token_hex(32)}"
        logger.info(f"[SIMULATED] Transfer: {amount} XLM {source[:6]}... -> {destination[:6]}...")
        self.transfer_log.record("transfer", source, destination, amount, txid, "ok", "payment")
        return TransferOutcome(success=True, reference=txid)

    async def fund_via_faucet(self, address: str) -> TransferOutcome:
        """Credit the faucet amount (testnet only)."""
        if not self.is_testnet:
            return TransferOutcome(success=False, error="Friendbot is testnet-only")

        self.fund(address, FAUCET_AMOUNT)
        txid = f"sim_faucet_{secrets.token_hex(32)}"
        self.transfer_log.record(
            "faucet", "friendbot", address, FAUCET_AMOUNT, txid, "ok", "testnet funding"
        )
        return TransferOutcome(success=True, reference=txid)
