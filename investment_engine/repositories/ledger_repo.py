"""
Ledger repository — read side of the append-only ``ledger_entries`` table.

Entries are only ever inserted (by the reconciler and lifecycle events) or
have their status moved forward by the payout gate; nothing here deletes.
"""

from typing import List

from sqlalchemy.future import select

from investment_engine.models.ledger_entry import LedgerEntry, LedgerEntryStatus
from investment_engine.repositories.base import BaseRepository


class LedgerRepository(BaseRepository[LedgerEntry]):
    """Concrete repository for :class:`LedgerEntry` entities."""

    async def get_by_investment(self, investment_id: int) -> List[LedgerEntry]:
        """Chronological ledger for one investment (opening entry first)."""
        stmt = (
            select(self.model)
            .where(self.model.investment_id == investment_id)
            .order_by(self.model.occurred_at, self.model.id)
        )
        return await self._scalars(stmt)

    async def get_pending(self, skip: int = 0, limit: int = 100) -> List[LedgerEntry]:
        """Payouts awaiting an administrator's decision, oldest first."""
        stmt = (
            select(self.model)
            .where(
                self.model.status.in_(
                    [LedgerEntryStatus.PENDING, LedgerEntryStatus.SUBMITTED]
                )
            )
            .order_by(self.model.occurred_at, self.model.id)
            .offset(skip)
            .limit(limit)
        )
        return await self._scalars(stmt)
