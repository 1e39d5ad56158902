"""Request and response models for the anchor REST API.

JSON keys are camelCase; Python attributes stay snake_case.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from stellramp.anchor.results import (
    DepositQuote,
    DepositResult,
    RateQuote,
    WithdrawalQuote,
    WithdrawalResult,
)
from stellramp.ledger.models import DepositRecord, WithdrawalRecord
from stellramp.stellar.base import TransferLogEntry

AmountField = Optional[Union[int, float, str]]


def _amount(value: Optional[Decimal]) -> str:
    return str(value if value is not None else Decimal("0"))


class CamelModel(BaseModel):
    """Base model serialising to camelCase and accepting either spelling."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ======================
# Requests
# ======================
class DepositRequest(CamelModel):
    """Deposit request from a web or chat client."""
    user_id: Optional[Union[int, str]] = None
    chat_id: Optional[Union[int, str]] = None
    amount: AmountField = None
    currency: Optional[str] = Field(default="USD", max_length=10)
    wallet_address: Optional[str] = Field(default=None, max_length=100)

    @property
    def caller_id(self) -> Optional[str]:
        caller = self.user_id if self.user_id not in (None, "") else self.chat_id
        return str(caller) if caller not in (None, "") else None


class WithdrawRequest(CamelModel):
    """Withdrawal request from a web or chat client."""
    user_id: Optional[Union[int, str]] = None
    chat_id: Optional[Union[int, str]] = None
    requested_value: AmountField = None
    currency: Optional[str] = Field(default="USD", max_length=10)
    wallet_address: Optional[str] = Field(default=None, max_length=100)

    @property
    def caller_id(self) -> Optional[str]:
        caller = self.user_id if self.user_id not in (None, "") else self.chat_id
        return str(caller) if caller not in (None, "") else None


class ConfirmRequest(CamelModel):
    """Optional body for confirm endpoints."""
    wallet_address: Optional[str] = Field(default=None, max_length=100)


# ======================
# Records
# ======================
class DepositView(CamelModel):
    deposit_id: str
    user_id: str
    fiat_amount: str
    currency: str
    estimated_value: str
    exchange_rate: str
    destination_address: Optional[str] = None
    status: str
    payment_link: Optional[str] = None
    settlement_reference: Optional[str] = None
    credited_value: str
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: DepositRecord) -> "DepositView":
        return cls(
            deposit_id=record.deposit_id,
            user_id=record.user_id,
            fiat_amount=_amount(record.fiat_amount),
            currency=record.currency,
            estimated_value=_amount(record.estimated_value),
            exchange_rate=_amount(record.exchange_rate),
            destination_address=record.destination_address,
            status=str(getattr(record.status, "value", record.status)),
            payment_link=record.payment_link,
            settlement_reference=record.settlement_reference,
            credited_value=_amount(record.credited_value),
            error_message=record.error_message,
            created_at=record.created_at,
            completed_at=record.completed_at,
        )


class WithdrawalView(CamelModel):
    withdrawal_id: str
    user_id: str
    requested_value: str
    estimated_fiat_payout: str
    currency: str
    fiat_per_unit_rate: str
    source_address: Optional[str] = None
    status: str
    ledger_reference: Optional[str] = None
    actual_fiat_payout: str
    estimated_time_to_settle: Optional[str] = None
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: WithdrawalRecord) -> "WithdrawalView":
        return cls(
            withdrawal_id=record.withdrawal_id,
            user_id=record.user_id,
            requested_value=_amount(record.requested_value),
            estimated_fiat_payout=_amount(record.estimated_fiat_payout),
            currency=record.currency,
            fiat_per_unit_rate=_amount(record.fiat_per_unit_rate),
            source_address=record.source_address,
            status=str(getattr(record.status, "value", record.status)),
            ledger_reference=record.ledger_reference,
            actual_fiat_payout=_amount(record.actual_fiat_payout),
            estimated_time_to_settle=record.estimated_time_to_settle,
            error_message=record.error_message,
            created_at=record.created_at,
            completed_at=record.completed_at,
        )


# ======================
# Responses
# ======================
class DepositResponse(CamelModel):
    """Outcome of a deposit operation."""
    success: bool
    deposit_id: str
    credited_value: str = "0"
    settlement_reference: Optional[str] = None
    message: str = ""
    status: Optional[str] = None
    error_kind: Optional[str] = None
    deposit: Optional[DepositView] = None

    @classmethod
    def from_result(cls, result: DepositResult) -> "DepositResponse":
        return cls(
            success=result.success,
            deposit_id=result.deposit_id,
            credited_value=_amount(result.credited_value),
            settlement_reference=result.settlement_reference,
            message=result.message,
            status=result.status,
            error_kind=result.error_kind.value if result.error_kind else None,
            deposit=DepositView.from_record(result.record) if result.record else None,
        )


class WithdrawalResponse(CamelModel):
    """Outcome of a withdrawal operation."""
    success: bool
    withdrawal_id: str
    value_debited: str = "0"
    fiat_payout: str = "0"
    currency: str = "N/A"
    settlement_reference: Optional[str] = None
    eta: str = "N/A"
    message: str = ""
    status: Optional[str] = None
    error_kind: Optional[str] = None
    withdrawal: Optional[WithdrawalView] = None

    @classmethod
    def from_result(cls, result: WithdrawalResult) -> "WithdrawalResponse":
        return cls(
            success=result.success,
            withdrawal_id=result.withdrawal_id,
            value_debited=_amount(result.value_debited),
            fiat_payout=_amount(result.fiat_payout),
            currency=result.currency,
            settlement_reference=result.settlement_reference,
            eta=result.eta,
            message=result.message,
            status=result.status,
            error_kind=result.error_kind.value if result.error_kind else None,
            withdrawal=WithdrawalView.from_record(result.record) if result.record else None,
        )


class CancelResponse(CamelModel):
    success: bool
    id: str
    message: str


class DepositEstimateResponse(CamelModel):
    success: bool = True
    fiat_amount: str
    currency: str
    estimated_value: str
    rate: str

    @classmethod
    def from_quote(cls, quote: DepositQuote) -> "DepositEstimateResponse":
        return cls(
            fiat_amount=str(quote.fiat_amount),
            currency=quote.currency,
            estimated_value=str(quote.estimated_value),
            rate=str(quote.rate),
        )


class WithdrawalEstimateResponse(CamelModel):
    success: bool = True
    requested_value: str
    currency: str
    estimated_fiat_payout: str
    rate: str

    @classmethod
    def from_quote(cls, quote: WithdrawalQuote) -> "WithdrawalEstimateResponse":
        return cls(
            requested_value=str(quote.requested_value),
            currency=quote.currency,
            estimated_fiat_payout=str(quote.estimated_fiat_payout),
            rate=str(quote.rate),
        )


class RateView(CamelModel):
    currency: str
    fiat_to_value: str
    value_to_fiat: str

    @classmethod
    def from_quote(cls, quote: RateQuote) -> "RateView":
        return cls(
            currency=quote.currency,
            fiat_to_value=str(quote.fiat_to_value),
            value_to_fiat=str(quote.value_to_fiat),
        )


class RatesResponse(CamelModel):
    success: bool = True
    rates: list[RateView]


class HistoryResponse(CamelModel):
    success: bool = True
    user_id: str
    deposits: list[DepositView]
    withdrawals: list[WithdrawalView]


class TransferView(CamelModel):
    id: str
    type: str
    source: str
    destination: str
    amount: str
    reference: Optional[str] = None
    status: str
    note: str
    timestamp: datetime

    @classmethod
    def from_entry(cls, entry: TransferLogEntry) -> "TransferView":
        return cls(
            id=entry.id,
            type=entry.type,
            source=entry.source,
            destination=entry.destination,
            amount=str(entry.amount),
            reference=entry.reference,
            status=entry.status,
            note=entry.note,
            timestamp=entry.timestamp,
        )


class TransfersResponse(CamelModel):
    success: bool = True
    network: str
    transfers: list[TransferView]
