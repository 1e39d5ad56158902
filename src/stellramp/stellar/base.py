"""Base interface for Stellar ledger clients.

The ramp ledgers only need three capabilities from the network:
1. Query an account balance
2. Move XLM from an account we can sign for
3. Fund an account from the test network faucet

Everything about fees and envelope construction stays inside the client.
"""

import itertools
import logging
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

logger = logging.getLogger(__name__)

FAUCET_AMOUNT = Decimal("10000")

# createAccount needs at least the base reserve
MIN_CREATE_ACCOUNT_BALANCE = Decimal("1")


@dataclass
class AssetBalance:
    """Non-native asset held by an account."""
    code: str
    balance: str
    issuer: str


@dataclass
class BalanceInfo:
    """Account balance snapshot."""
    exists: bool
    native_balance: str = "0"
    other_assets: list[AssetBalance] = field(default_factory=list)

    @property
    def native(self) -> Decimal:
        return Decimal(self.native_balance or "0")


@dataclass
class TransferOutcome:
    """Result of a transfer or faucet call."""
    success: bool
    reference: Optional[str] = None
    ledger: Optional[int] = None
    error: Optional[str] = None


@dataclass
class TransferLogEntry:
    """One transfer attempt seen by the client."""
    id: str
    type: str                      # transfer / faucet
    source: str
    destination: str
    amount: Decimal
    reference: Optional[str]
    status: str                    # ok / failed
    note: str
    timestamp: datetime


class TransferLog:
    """Bounded in-memory log of transfer attempts (newest last)."""

    def __init__(self, max_entries: int = 500):
        self._entries: deque[TransferLogEntry] = deque(maxlen=max_entries)
        self._counter = itertools.count(1)

    def record(
        self,
        type: str,
        source: str,
        destination: str,
        amount: Decimal,
        reference: Optional[str],
        status: str,
        note: str = "",
    ) -> TransferLogEntry:
        entry = TransferLogEntry(
            id=f"LOG-{next(self._counter)}",
            type=type,
            source=source,
            destination=destination,
            amount=Decimal(amount),
            reference=reference,
            status=status,
            note=note,
            timestamp=datetime.now(timezone.utc),
        )
        self._entries.append(entry)
        return entry

    def recent(self, limit: int = 20) -> list[TransferLogEntry]:
        """Last ``limit`` entries, newest first."""
        return list(reversed(self._entries))[:limit]

    def for_address(self, address: str, limit: int = 20) -> list[TransferLogEntry]:
        """Entries touching ``address``, newest first."""
        matches = [e for e in reversed(self._entries) if address in (e.source, e.destination)]
        return matches[:limit]

    def clear(self) -> None:
        self._entries.clear()


class LedgerClient(ABC):
    """Abstract base class for ledger clients."""

    def __init__(self, network: str = "testnet"):
        """Initialize client.

        Args:
            network: Stellar network name (testnet or public)
        """
        self.network = network.lower()
        self.transfer_log = TransferLog()

    @property
    def network_name(self) -> str:
        return self.network

    @property
    def is_testnet(self) -> bool:
        return self.network != "public"

    @abstractmethod
    async def get_balance(self, address: str) -> BalanceInfo:
        """Load account balances.

        Args:
            address: Stellar public key (G...)

        Returns:
            BalanceInfo with exists=False if the account was never funded
        """
        pass

    @abstractmethod
    async def transfer(
        self, source_credential: str, destination: str, amount: Decimal
    ) -> TransferOutcome:
        """Send native XLM.

        Args:
            source_credential: Secret seed (S...) of the paying account
            destination: Destination public key
            amount: XLM amount

        Returns:
            TransferOutcome with the transaction hash if successful
        """
        pass

    @abstractmethod
    async def fund_via_faucet(self, address: str) -> TransferOutcome:
        """Fund an account from the test network faucet.

        Args:
            address: Account to fund

        Returns:
            TransferOutcome, failed on public network
        """
        pass

    def recent_transfers(self, limit: int = 20) -> list[TransferLogEntry]:
        return self.transfer_log.recent(limit)

    def transfers_for_address(self, address: str, limit: int = 20) -> list[TransferLogEntry]:
        return self.transfer_log.for_address(address, limit)
