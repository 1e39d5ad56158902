"""Repository for ramp ledger records."""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stellramp.ledger.models import (
    DepositRecord,
    DepositStatus,
    LinkedWallet,
    WithdrawalRecord,
    WithdrawalStatus,
)


class RampRepository:
    """Repository for deposit, withdrawal and linked-wallet rows.

    Rows are never deleted; status changes are the only mutation.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    # Deposit operations
    async def add_deposit(self, record: DepositRecord) -> DepositRecord:
        """Persist a new deposit record."""
        self.session.add(record)
        await self.session.flush()
        return record

    async def get_deposit(self, deposit_id: str) -> Optional[DepositRecord]:
        """Get a deposit by its public ID."""
        stmt = select(DepositRecord).where(DepositRecord.deposit_id == deposit_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_user_deposits(self, user_id: str) -> list[DepositRecord]:
        """Get deposits for a user in creation order."""
        stmt = (
            select(DepositRecord)
            .where(DepositRecord.user_id == user_id)
            .order_by(DepositRecord.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_deposits_by_status(self, status: DepositStatus) -> list[DepositRecord]:
        """Get all deposits currently in a status."""
        stmt = select(DepositRecord).where(DepositRecord.status == status).order_by(DepositRecord.id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    # Withdrawal operations
    async def add_withdrawal(self, record: WithdrawalRecord) -> WithdrawalRecord:
        """Persist a new withdrawal record."""
        self.session.add(record)
        await self.session.flush()
        return record

    async def get_withdrawal(self, withdrawal_id: str) -> Optional[WithdrawalRecord]:
        """Get a withdrawal by its public ID."""
        stmt = select(WithdrawalRecord).where(WithdrawalRecord.withdrawal_id == withdrawal_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_user_withdrawals(self, user_id: str) -> list[WithdrawalRecord]:
        """Get withdrawals for a user in creation order."""
        stmt = (
            select(WithdrawalRecord)
            .where(WithdrawalRecord.user_id == user_id)
            .order_by(WithdrawalRecord.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_withdrawals_by_status(
        self, status: WithdrawalStatus
    ) -> list[WithdrawalRecord]:
        """Get all withdrawals currently in a status."""
        stmt = (
            select(WithdrawalRecord)
            .where(WithdrawalRecord.status == status)
            .order_by(WithdrawalRecord.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    # Linked wallet operations
    async def get_linked_wallet(self, user_id: str) -> Optional[LinkedWallet]:
        """Get the address a user has linked."""
        stmt = select(LinkedWallet).where(LinkedWallet.user_id == user_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def link_wallet(self, user_id: str, address: str) -> LinkedWallet:
        """Link (or re-link) a public address to a user."""
        wallet = await self.get_linked_wallet(user_id)
        if wallet is None:
            wallet = LinkedWallet(user_id=user_id, address=address)
            self.session.add(wallet)
        else:
            wallet.address = address
        await self.session.flush()
        return wallet
