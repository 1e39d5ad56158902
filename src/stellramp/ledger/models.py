"""SQLAlchemy models for the ramp ledger."""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, Index, Numeric, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class DepositStatus(str, Enum):
    """Status of a deposit (fiat -> XLM)."""

    CREATED = "created"          # Quoted, waiting for confirmation
    PROCESSING = "processing"    # Fiat leg / on-chain credit in flight
    COMPLETED = "completed"      # XLM credited
    FAILED = "failed"            # Credit failed
    EXPIRED = "expired"          # Cancelled by caller


class WithdrawalStatus(str, Enum):
    """Status of a withdrawal (XLM -> fiat)."""

    CREATED = "created"          # Quoted, waiting for confirmation
    PROCESSING = "processing"    # Debit / payout in flight
    COMPLETED = "completed"      # Fiat paid out
    FAILED = "failed"            # Debit failed
    CANCELLED = "cancelled"      # Cancelled before processing


class DepositRecord(Base):
    """One fiat -> XLM conversion request."""

    __tablename__ = "ramp_deposits"
    __table_args__ = (Index("ix_ramp_deposits_user_seq", "user_id", "id"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    deposit_id: Mapped[str] = mapped_column(String(40), unique=True, nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    fiat_amount: Mapped[Decimal] = mapped_column(Numeric(36, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(10), nullable=False)
    estimated_value: Mapped[Decimal] = mapped_column(Numeric(36, 7), nullable=False)
    exchange_rate: Mapped[Decimal] = mapped_column(Numeric(36, 10), nullable=False)
    destination_address: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    status: Mapped[DepositStatus] = mapped_column(
        String(20), default=DepositStatus.CREATED, nullable=False
    )
    payment_link: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    settlement_reference: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    credited_value: Mapped[Decimal] = mapped_column(Numeric(36, 7), default=Decimal("0"))
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class WithdrawalRecord(Base):
    """One XLM -> fiat conversion request."""

    __tablename__ = "ramp_withdrawals"
    __table_args__ = (Index("ix_ramp_withdrawals_user_seq", "user_id", "id"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    withdrawal_id: Mapped[str] = mapped_column(String(40), unique=True, nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    requested_value: Mapped[Decimal] = mapped_column(Numeric(36, 7), nullable=False)
    estimated_fiat_payout: Mapped[Decimal] = mapped_column(Numeric(36, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(10), nullable=False)
    fiat_per_unit_rate: Mapped[Decimal] = mapped_column(Numeric(36, 10), nullable=False)
    source_address: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    status: Mapped[WithdrawalStatus] = mapped_column(
        String(20), default=WithdrawalStatus.CREATED, nullable=False
    )
    ledger_reference: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    actual_fiat_payout: Mapped[Decimal] = mapped_column(Numeric(36, 2), default=Decimal("0"))
    estimated_time_to_settle: Mapped[str] = mapped_column(String(50), default="5-10 min")
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class LinkedWallet(Base):
    """Public Stellar address a chat user has linked for ramp commands."""

    __tablename__ = "linked_wallets"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    address: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )
