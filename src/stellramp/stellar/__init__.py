"""Stellar ledger client: balances, transfers and faucet funding."""

from stellramp.stellar.base import BalanceInfo, LedgerClient, TransferOutcome
from stellramp.stellar.factory import get_ledger_client, is_valid_address

__all__ = [
    "BalanceInfo",
    "LedgerClient",
    "TransferOutcome",
    "get_ledger_client",
    "is_valid_address",
]
