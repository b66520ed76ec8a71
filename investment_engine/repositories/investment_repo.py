"""
Investment repository.

Besides CRUD, serves the two look-ups the service layer needs: the filtered
list behind ``GET /investments`` and an owner's locking investments for the
account-type check at draft creation.
"""

from typing import Iterable, List, Optional
from uuid import UUID

from sqlalchemy.future import select

from investment_engine.models.investment import EARNING_STATUSES, Investment, InvestmentStatus
from investment_engine.repositories.base import BaseRepository


class InvestmentRepository(BaseRepository[Investment]):
    """Concrete repository for :class:`Investment` entities."""

    async def list(
        self,
        owner_id: Optional[UUID] = None,
        status: Optional[InvestmentStatus] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Investment]:
        """Newest first; both filters optional."""
        stmt = select(self.model)
        if owner_id is not None:
            stmt = stmt.where(self.model.owner_id == owner_id)
        if status is not None:
            stmt = stmt.where(self.model.status == status)
        stmt = stmt.order_by(self.model.created_at.desc(), self.model.id.desc())
        return await self._scalars(stmt.offset(skip).limit(limit))

    async def get_by_owner(
        self, owner_id: UUID, statuses: Iterable[InvestmentStatus]
    ) -> List[Investment]:
        stmt = (
            select(self.model)
            .where(self.model.owner_id == owner_id)
            .where(self.model.status.in_(list(statuses)))
            .order_by(self.model.created_at.desc())
        )
        return await self._scalars(stmt)

    async def get_earning(self) -> List[Investment]:
        """Every investment that accrues (``active`` or ``withdrawal_notice``)."""
        stmt = (
            select(self.model)
            .where(self.model.status.in_(list(EARNING_STATUSES)))
            .order_by(self.model.id)
        )
        return await self._scalars(stmt)
