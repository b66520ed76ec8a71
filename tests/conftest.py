"""
Shared pytest fixtures for unit tests.

All tests run with ``USE_SQLITE=true`` and mocked repositories, so no real
database or network I/O is needed.  The variable is set before anything from
the package is imported because ``Settings`` is built at import time.
"""

import os

os.environ.setdefault("USE_SQLITE", "true")
os.environ.setdefault("CACHE_ENABLED", "true")

import uuid  # noqa: E402
from datetime import datetime, timezone  # noqa: E402
from decimal import Decimal  # noqa: E402
from unittest.mock import AsyncMock, MagicMock  # noqa: E402

import pytest  # noqa: E402

from investment_engine.core.cache import TTLCache  # noqa: E402
from investment_engine.core.locks import KeyedLock  # noqa: E402
from investment_engine.engine.actor import Actor, ActorRole  # noqa: E402
from investment_engine.engine.clock import Clock  # noqa: E402
from investment_engine.engine.ledger import entry_id  # noqa: E402
from investment_engine.engine.lifecycle import lockup_end_for  # noqa: E402
from investment_engine.engine.valuation import RateTable  # noqa: E402
from investment_engine.models.account import Account, AccountType  # noqa: E402
from investment_engine.models.investment import (  # noqa: E402
    Investment,
    InvestmentStatus,
    LockupPeriod,
    PaymentFrequency,
    PaymentMethod,
)
from investment_engine.models.ledger_entry import (  # noqa: E402
    LedgerEntry,
    LedgerEntryStatus,
    LedgerEntryType,
)
from investment_engine.models.withdrawal import WithdrawalRequest, WithdrawalStatus  # noqa: E402

# ────────────────────────────────────────────────────────────────────────────
# Factory helpers
# ────────────────────────────────────────────────────────────────────────────

ACCOUNT_ID = uuid.UUID("22222222-2222-2222-2222-222222222222")
ACCOUNT_ID_2 = uuid.UUID("55555555-5555-5555-5555-555555555555")
WITHDRAWAL_ID = uuid.UUID("33333333-3333-3333-3333-333333333333")
INVESTMENT_ID = 12

CONFIRMED_AT = datetime(2024, 1, 1, tzinfo=timezone.utc)
NOW = datetime(2024, 4, 1, tzinfo=timezone.utc)

# 1% per month keeps the arithmetic checkable by hand.
ONE_PERCENT = RateTable.flat(Decimal("0.01"))

ADMIN = Actor(id="ops-1", role=ActorRole.ADMIN)
OWNER = Actor(id=str(ACCOUNT_ID), role=ActorRole.INVESTOR)
STRANGER = Actor(id=str(ACCOUNT_ID_2), role=ActorRole.INVESTOR)


def make_account(
    *,
    id: uuid.UUID = ACCOUNT_ID,
    name: str = "Jane Doe",
    email: str = "jane@example.com",
    account_type: AccountType = AccountType.INDIVIDUAL,
) -> Account:
    return Account(
        id=id,
        name=name,
        email=email,
        account_type=account_type,
        created_at=datetime(2023, 12, 1, tzinfo=timezone.utc),
    )


def make_investment(
    *,
    id: int = INVESTMENT_ID,
    owner_id: uuid.UUID = ACCOUNT_ID,
    amount: Decimal = Decimal("10000.00"),
    status: InvestmentStatus = InvestmentStatus.ACTIVE,
    lockup_period: LockupPeriod = LockupPeriod.ONE_YEAR,
    payment_frequency: PaymentFrequency = PaymentFrequency.COMPOUNDING,
    account_type: AccountType = AccountType.INDIVIDUAL,
    payment_method: PaymentMethod = PaymentMethod.ACH,
    confirmed_at: datetime = CONFIRMED_AT,
    last_accrual_index: int = 0,
    created_at: datetime = datetime(2023, 12, 15, tzinfo=timezone.utc),
) -> Investment:
    """
    An Investment in ``status``.  Lifecycle stamps are filled in consistently:
    drafts have none, pending ones are submitted, earning ones are confirmed.
    """
    investment = Investment(
        id=id,
        owner_id=owner_id,
        amount=amount,
        status=status,
        lockup_period=lockup_period,
        payment_frequency=payment_frequency,
        account_type=account_type,
        payment_method=payment_method,
        created_at=created_at,
        last_accrual_index=last_accrual_index,
    )
    if status != InvestmentStatus.DRAFT:
        investment.submitted_at = created_at
        investment.submitted_amount = amount
    if status in (
        InvestmentStatus.ACTIVE,
        InvestmentStatus.WITHDRAWAL_NOTICE,
        InvestmentStatus.WITHDRAWN,
    ):
        investment.confirmed_at = confirmed_at
        investment.lockup_end_date = lockup_end_for(confirmed_at, lockup_period)
    return investment


def make_entry(
    *,
    investment_id: int = INVESTMENT_ID,
    period: int = 1,
    type: LedgerEntryType = LedgerEntryType.DISTRIBUTION,
    status: LedgerEntryStatus = LedgerEntryStatus.PENDING,
    amount: Decimal = Decimal("100.00"),
) -> LedgerEntry:
    return LedgerEntry(
        id=entry_id(type, investment_id, period),
        investment_id=investment_id,
        type=type,
        amount=amount,
        period_index=period,
        status=status,
        occurred_at=datetime(2024, 1 + period, 1, tzinfo=timezone.utc),
        recorded_at=NOW,
    )


def make_withdrawal(
    *,
    id: uuid.UUID = WITHDRAWAL_ID,
    investment_id: int = INVESTMENT_ID,
    status: WithdrawalStatus = WithdrawalStatus.REQUESTED,
    requested_at: datetime = NOW,
) -> WithdrawalRequest:
    return WithdrawalRequest(
        id=id,
        investment_id=investment_id,
        requested_at=requested_at,
        quoted_amount=Decimal("10303.01"),
        quoted_earnings=Decimal("303.01"),
        status=status,
    )


# ────────────────────────────────────────────────────────────────────────────
# Pytest fixtures
# ────────────────────────────────────────────────────────────────────────────


@pytest.fixture()
def mock_db():
    """A mocked AsyncSession that tracks add/commit/rollback calls."""
    session = AsyncMock()
    session.add = MagicMock()
    session.add_all = MagicMock()
    session.commit = AsyncMock()
    session.flush = AsyncMock()
    session.refresh = AsyncMock()
    session.rollback = AsyncMock()
    session.execute = AsyncMock()
    session.get = AsyncMock()
    return session


@pytest.fixture()
def clock_service():
    """ClockService stand-in pinned at ``NOW`` with auto-approval off."""
    service = AsyncMock()
    service.get_clock.return_value = Clock.at(NOW)
    service.auto_approve_enabled.return_value = False
    return service


@pytest.fixture()
def locks():
    return KeyedLock("test")


@pytest.fixture()
def test_cache():
    return TTLCache(ttl=30.0, max_size=100, enabled=True)


@pytest.fixture()
def disabled_cache():
    return TTLCache(ttl=30.0, max_size=100, enabled=False)


@pytest.fixture(autouse=True)
def _clear_global_cache():
    """Every test starts and ends with an empty global cache."""
    from investment_engine.core.cache import cache

    cache.clear()
    yield
    cache.clear()
