"""
Account repository.

Adds an e-mail look-up so account registration can return a clear 409
before hitting the unique index.
"""

from typing import Optional

from sqlalchemy.future import select

from investment_engine.models.account import Account
from investment_engine.repositories.base import BaseRepository


class AccountRepository(BaseRepository[Account]):
    """Concrete repository for :class:`Account` entities."""

    async def get_by_email(self, email: str) -> Optional[Account]:
        stmt = select(self.model).where(self.model.email == email.lower())
        rows = await self._scalars(stmt)
        return rows[0] if rows else None
