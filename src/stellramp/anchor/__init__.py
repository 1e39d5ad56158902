"""Anchor ramp: fiat <-> XLM deposits and withdrawals."""

from stellramp.anchor.results import (
    DepositResult,
    ErrorKind,
    RampValidationError,
    WithdrawalResult,
)
from stellramp.anchor.service import RampService, get_ramp_service

__all__ = [
    "DepositResult",
    "WithdrawalResult",
    "ErrorKind",
    "RampValidationError",
    "RampService",
    "get_ramp_service",
]
