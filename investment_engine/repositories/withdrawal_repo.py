"""Withdrawal request repository."""

from typing import List, Optional

from sqlalchemy.future import select

from investment_engine.models.withdrawal import WithdrawalRequest, WithdrawalStatus
from investment_engine.repositories.base import BaseRepository


class WithdrawalRepository(BaseRepository[WithdrawalRequest]):
    """Concrete repository for :class:`WithdrawalRequest` entities."""

    async def get_by_investment(self, investment_id: int) -> List[WithdrawalRequest]:
        stmt = (
            select(self.model)
            .where(self.model.investment_id == investment_id)
            .order_by(self.model.requested_at.desc())
        )
        return await self._scalars(stmt)

    async def get_open(self, investment_id: int) -> Optional[WithdrawalRequest]:
        """The investment's ``requested`` withdrawal, if any (at most one is ever open)."""
        stmt = (
            select(self.model)
            .where(self.model.investment_id == investment_id)
            .where(self.model.status == WithdrawalStatus.REQUESTED)
            .order_by(self.model.requested_at.desc())
            .limit(1)
        )
        rows = await self._scalars(stmt)
        return rows[0] if rows else None
