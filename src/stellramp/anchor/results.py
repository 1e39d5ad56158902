"""Result and quote types returned by the ramp ledgers."""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    """Machine-readable failure category."""

    NOT_FOUND = "not_found"
    INVALID_STATE = "invalid_state"
    SETTLEMENT_FAILURE = "settlement_failure"
    VALIDATION_FAILURE = "validation_failure"


class RampValidationError(ValueError):
    """Malformed caller input (amount, currency or address)."""

    pass


@dataclass
class DepositResult:
    """Outcome of a deposit operation."""
    success: bool
    deposit_id: str
    credited_value: Decimal = Decimal("0")
    settlement_reference: Optional[str] = None
    message: str = ""
    status: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    record: Optional[Any] = None  # DepositRecord for create operations

    @classmethod
    def failure(
        cls,
        deposit_id: str,
        message: str,
        kind: ErrorKind,
        status: Optional[str] = None,
    ) -> "DepositResult":
        return cls(
            success=False,
            deposit_id=deposit_id,
            message=message,
            status=status,
            error_kind=kind,
        )


@dataclass
class WithdrawalResult:
    """Outcome of a withdrawal operation."""
    success: bool
    withdrawal_id: str
    value_debited: Decimal = Decimal("0")
    fiat_payout: Decimal = Decimal("0")
    currency: str = "N/A"
    settlement_reference: Optional[str] = None
    eta: str = "N/A"
    message: str = ""
    status: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    record: Optional[Any] = None  # WithdrawalRecord for create operations

    @classmethod
    def failure(
        cls,
        withdrawal_id: str,
        message: str,
        kind: ErrorKind,
        status: Optional[str] = None,
    ) -> "WithdrawalResult":
        return cls(
            success=False,
            withdrawal_id=withdrawal_id,
            message=message,
            status=status,
            error_kind=kind,
        )


@dataclass(frozen=True)
class DepositQuote:
    """Deposit estimate, nothing persisted."""
    fiat_amount: Decimal
    currency: str
    estimated_value: Decimal
    rate: Decimal


@dataclass(frozen=True)
class WithdrawalQuote:
    """Withdrawal estimate, nothing persisted."""
    requested_value: Decimal
    currency: str
    estimated_fiat_payout: Decimal
    rate: Decimal


@dataclass(frozen=True)
class RateQuote:
    """Both directions of the rate for one currency."""
    currency: str
    fiat_to_value: Decimal
    value_to_fiat: Decimal
