"""
Investment domain model.

Represents a single fixed-rate investment held by an account.  The row is the
canonical state the lifecycle engine reads and transitions; every lifecycle
stamp (submission, confirmation, lockup end, withdrawal notice) lives here.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import CheckConstraint, DateTime, Index
from sqlmodel import Field, Relationship, SQLModel

from investment_engine.models.account import AccountType

if TYPE_CHECKING:
    from investment_engine.models.account import Account


class InvestmentStatus(str, Enum):
    """Allowed lifecycle states for an Investment."""

    DRAFT = "draft"
    PENDING = "pending"
    ACTIVE = "active"
    REJECTED = "rejected"
    WITHDRAWAL_NOTICE = "withdrawal_notice"
    WITHDRAWN = "withdrawn"


class LockupPeriod(str, Enum):
    """Minimum holding term before a withdrawal may settle without override."""

    ONE_YEAR = "one_year"
    THREE_YEAR = "three_year"

    @property
    def years(self) -> int:
        return 1 if self is LockupPeriod.ONE_YEAR else 3


class PaymentFrequency(str, Enum):
    """How monthly earnings are handled: paid out, or retained and compounded."""

    MONTHLY = "monthly"
    COMPOUNDING = "compounding"


class PaymentMethod(str, Enum):
    """Funding rail chosen for the principal."""

    ACH = "ach"
    WIRE = "wire"


# Statuses in which the investment earns.
EARNING_STATUSES = frozenset({InvestmentStatus.ACTIVE, InvestmentStatus.WITHDRAWAL_NOTICE})
# Only a draft may change its amount; submission freezes it.
AMOUNT_LOCKED_STATUSES = frozenset(set(InvestmentStatus) - {InvestmentStatus.DRAFT})


class Investment(SQLModel, table=True):
    """
    SQLModel / SQLAlchemy table definition for investments.

    Design notes:
    - ``amount`` and ``submitted_amount`` use DECIMAL(20,2) for cent-precise values.
    - ``last_accrual_index`` counts the monthly periods already written to the
      ledger; it only ever moves forward.
    - A composite index on ``(owner_id, status)`` serves the account-type lock
      look-up done when a new draft is created.
    """

    __tablename__ = "investments"  # type: ignore[assignment]

    __table_args__ = (
        Index("ix_investments_owner_status", "owner_id", "status"),
        CheckConstraint("amount > 0", name="ck_investments_amount_positive"),
        CheckConstraint("last_accrual_index >= 0", name="ck_investments_accrual_index"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    owner_id: uuid.UUID = Field(
        foreign_key="accounts.id",
        index=True,
        ondelete="RESTRICT",
    )
    amount: Decimal = Field(max_digits=20, decimal_places=2)
    status: InvestmentStatus = Field(default=InvestmentStatus.DRAFT, index=True)
    lockup_period: LockupPeriod
    payment_frequency: PaymentFrequency
    account_type: AccountType
    payment_method: Optional[PaymentMethod] = Field(default=None)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
    )
    submitted_at: Optional[datetime] = Field(
        default=None, sa_type=DateTime(timezone=True)  # type: ignore[arg-type]
    )
    submitted_amount: Optional[Decimal] = Field(default=None, max_digits=20, decimal_places=2)
    confirmed_at: Optional[datetime] = Field(
        default=None, sa_type=DateTime(timezone=True)  # type: ignore[arg-type]
    )
    lockup_end_date: Optional[datetime] = Field(
        default=None, sa_type=DateTime(timezone=True)  # type: ignore[arg-type]
    )
    last_accrual_index: int = Field(default=0)

    rejected_at: Optional[datetime] = Field(
        default=None, sa_type=DateTime(timezone=True)  # type: ignore[arg-type]
    )
    rejection_reason: Optional[str] = Field(default=None, max_length=500)
    withdrawal_requested_at: Optional[datetime] = Field(
        default=None, sa_type=DateTime(timezone=True)  # type: ignore[arg-type]
    )
    payout_due_by: Optional[datetime] = Field(
        default=None, sa_type=DateTime(timezone=True)  # type: ignore[arg-type]
    )
    withdrawn_at: Optional[datetime] = Field(
        default=None, sa_type=DateTime(timezone=True)  # type: ignore[arg-type]
    )
    lockup_override_by: Optional[str] = Field(default=None, max_length=255)
    lockup_overridden_at: Optional[datetime] = Field(
        default=None, sa_type=DateTime(timezone=True)  # type: ignore[arg-type]
    )

    owner: Optional["Account"] = Relationship(back_populates="investments")

    def __repr__(self) -> str:
        return (
            f"<Investment id={self.id} owner={self.owner_id} "
            f"status={self.status.value} amount=${self.amount}>"
        )
