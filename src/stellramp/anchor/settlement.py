"""Settlement strategies for the on-chain leg of the ramp.

DirectCustody: we hold the secret seed and sign the transfer ourselves.
ExternalCustodySimulated: the key lives elsewhere (e.g. a browser-extension
wallet). Deposits fall back to faucet funding and withdrawal debits are
simulated, since the service cannot sign on the holder's behalf. Production
would hand the holder an unsigned envelope instead.
"""

import logging
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Optional

from stellar_sdk import Keypair

from stellramp.anchor.fiat_rail import timestamp_token
from stellramp.stellar.base import LedgerClient, TransferOutcome

logger = logging.getLogger(__name__)


class SettlementStrategy(ABC):
    """How XLM is credited to or debited from a user account."""

    name: str = "abstract"

    @abstractmethod
    async def credit(
        self, client: LedgerClient, destination: str, amount: Decimal
    ) -> TransferOutcome:
        """Credit ``amount`` XLM to ``destination`` for a deposit."""
        pass

    @abstractmethod
    async def debit(
        self, client: LedgerClient, source: str, treasury: str, amount: Decimal
    ) -> TransferOutcome:
        """Move ``amount`` XLM from ``source`` to the treasury for a withdrawal."""
        pass


class DirectCustody(SettlementStrategy):
    """Sign transfers with a secret seed we hold."""

    name = "direct_custody"

    def __init__(self, credential: str):
        self._credential = credential

    def __repr__(self) -> str:
        return "DirectCustody(credential=***)"

    async def credit(
        self, client: LedgerClient, destination: str, amount: Decimal
    ) -> TransferOutcome:
        return await client.transfer(self._credential, destination, amount)

    async def debit(
        self, client: LedgerClient, source: str, treasury: str, amount: Decimal
    ) -> TransferOutcome:
        try:
            signer = Keypair.from_secret(self._credential).public_key
        except ValueError:
            return TransferOutcome(success=False, error="Invalid source secret")

        if signer != source:
            return TransferOutcome(
                success=False, error="Credential does not match the source address"
            )
        return await client.transfer(self._credential, treasury, amount)


class ExternalCustodySimulated(SettlementStrategy):
    """Key held outside the service; on-chain leg is funded or simulated."""

    name = "external_custody_simulated"

    def __repr__(self) -> str:
        return "ExternalCustodySimulated()"

    async def credit(
        self, client: LedgerClient, destination: str, amount: Decimal
    ) -> TransferOutcome:
        return await client.fund_via_faucet(destination)

    async def debit(
        self, client: LedgerClient, source: str, treasury: str, amount: Decimal
    ) -> TransferOutcome:
        logger.warning(
            f"[SIMULATED] Debit of {amount} XLM from externally held {source[:6]}... "
            f"not executed on-chain (no signing key)"
        )
        return TransferOutcome(success=True, reference=f"EXTERNAL-DEBIT-{timestamp_token()}")


def strategy_for(credential: Optional[str]) -> SettlementStrategy:
    """Pick DirectCustody when a credential is supplied, else external custody."""
    if credential:
        return DirectCustody(credential)
    return ExternalCustodySimulated()
