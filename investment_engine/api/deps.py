"""
Request-scoped dependencies: the calling actor and the wired-up services.

Identity comes from the gateway as two headers:

- ``X-Actor-Id``   — account id (investors) or operator id (admins)
- ``X-Actor-Role`` — ``investor`` (default), ``admin`` or ``system``
"""

from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from investment_engine.core.exceptions import ForbiddenException
from investment_engine.db.session import get_db
from investment_engine.engine.actor import Actor, ActorRole
from investment_engine.models.account import Account
from investment_engine.models.app_setting import AppSetting
from investment_engine.models.investment import Investment
from investment_engine.models.ledger_entry import LedgerEntry
from investment_engine.models.withdrawal import WithdrawalRequest
from investment_engine.repositories.account_repo import AccountRepository
from investment_engine.repositories.investment_repo import InvestmentRepository
from investment_engine.repositories.ledger_repo import LedgerRepository
from investment_engine.repositories.setting_repo import SettingRepository
from investment_engine.repositories.withdrawal_repo import WithdrawalRepository
from investment_engine.services.account_service import AccountService
from investment_engine.services.clock_service import ClockService
from investment_engine.services.investment_service import InvestmentService
from investment_engine.services.payout_service import PayoutService


def get_actor(
    x_actor_id: Optional[str] = Header(default=None),
    x_actor_role: str = Header(default=ActorRole.INVESTOR.value),
) -> Actor:
    if not x_actor_id:
        raise ForbiddenException("X-Actor-Id header is required")
    try:
        role = ActorRole(x_actor_role.strip().lower())
    except ValueError:
        raise ForbiddenException(f"Unknown actor role '{x_actor_role}'")
    return Actor(id=x_actor_id.strip(), role=role)


def get_clock_service(db: AsyncSession = Depends(get_db)) -> ClockService:
    return ClockService(SettingRepository(AppSetting, db))


def get_account_service(db: AsyncSession = Depends(get_db)) -> AccountService:
    return AccountService(AccountRepository(Account, db))


def get_investment_service(
    db: AsyncSession = Depends(get_db),
    clock_service: ClockService = Depends(get_clock_service),
) -> InvestmentService:
    """All repositories share the request's session so one commit covers them all."""
    return InvestmentService(
        invest_repo=InvestmentRepository(Investment, db),
        ledger_repo=LedgerRepository(LedgerEntry, db),
        withdrawal_repo=WithdrawalRepository(WithdrawalRequest, db),
        account_repo=AccountRepository(Account, db),
        clock_service=clock_service,
    )


def get_payout_service(
    db: AsyncSession = Depends(get_db),
    clock_service: ClockService = Depends(get_clock_service),
) -> PayoutService:
    return PayoutService(LedgerRepository(LedgerEntry, db), clock_service)
