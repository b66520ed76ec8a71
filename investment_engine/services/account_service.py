"""
Account service — registration and look-up of investor accounts.

Race condition note:
    ``get_by_email()`` followed by ``create()`` can race; the unique index on
    ``email`` is the real guard and its ``IntegrityError`` becomes the same
    409 the pre-check would have produced.
"""

import logging
from uuid import UUID

from sqlalchemy.exc import IntegrityError

from investment_engine.core.exceptions import ConflictException, NotFoundException
from investment_engine.models.account import Account
from investment_engine.repositories.account_repo import AccountRepository
from investment_engine.schemas.account import AccountCreate

logger = logging.getLogger(__name__)


class AccountService:
    """Encapsulates CRUD + business rules for :class:`Account`."""

    def __init__(self, account_repo: AccountRepository):
        self._repo = account_repo

    async def get_account(self, account_id: UUID) -> Account:
        account = await self._repo.get(account_id)
        if account is None:
            raise NotFoundException("Account", account_id)
        return account

    async def create_account(self, account_in: AccountCreate) -> Account:
        if await self._repo.get_by_email(str(account_in.email)):
            raise ConflictException(f"An account with email '{account_in.email}' already exists")

        account = Account(**account_in.model_dump())
        try:
            created = await self._repo.create(account)
        except IntegrityError:
            logger.warning("Duplicate email '%s' caught by unique index", account_in.email)
            raise ConflictException(f"An account with email '{account_in.email}' already exists")

        logger.info("Created %s account %s", created.account_type.value, created.id)
        return created
