"""Ledger module for ramp records and linked wallets."""

from stellramp.ledger.database import init_db, session_scope
from stellramp.ledger.models import (
    DepositRecord,
    DepositStatus,
    LinkedWallet,
    WithdrawalRecord,
    WithdrawalStatus,
)
from stellramp.ledger.repository import RampRepository

__all__ = [
    # Models
    "DepositRecord",
    "WithdrawalRecord",
    "LinkedWallet",
    # Enums
    "DepositStatus",
    "WithdrawalStatus",
    # Database
    "init_db",
    "session_scope",
    "RampRepository",
]
