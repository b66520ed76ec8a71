"""
Withdrawal request domain model.

Captures both halves of a withdrawal: the *quote* frozen when the investor
gives notice and the *final* figures frozen when an administrator settles it.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


class WithdrawalStatus(str, Enum):
    """Allowed states for a WithdrawalRequest."""

    REQUESTED = "requested"
    APPROVED = "approved"
    REJECTED = "rejected"


class WithdrawalRequest(SQLModel, table=True):
    """SQLModel / SQLAlchemy table definition for withdrawal requests."""

    __tablename__ = "withdrawal_requests"  # type: ignore[assignment]

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    investment_id: int = Field(foreign_key="investments.id", index=True, ondelete="RESTRICT")
    requested_at: datetime = Field(sa_type=DateTime(timezone=True))  # type: ignore[arg-type]
    quoted_amount: Decimal = Field(max_digits=20, decimal_places=2)
    quoted_earnings: Decimal = Field(max_digits=20, decimal_places=2)
    final_amount: Optional[Decimal] = Field(default=None, max_digits=20, decimal_places=2)
    final_earnings: Optional[Decimal] = Field(default=None, max_digits=20, decimal_places=2)
    status: WithdrawalStatus = Field(default=WithdrawalStatus.REQUESTED, index=True)
    payout_due_by: Optional[datetime] = Field(
        default=None, sa_type=DateTime(timezone=True)  # type: ignore[arg-type]
    )
    settled_at: Optional[datetime] = Field(
        default=None, sa_type=DateTime(timezone=True)  # type: ignore[arg-type]
    )
    rejection_reason: Optional[str] = Field(default=None, max_length=500)

    def __repr__(self) -> str:
        return (
            f"<WithdrawalRequest id={self.id} investment={self.investment_id} "
            f"status={self.status.value} quoted=${self.quoted_amount}>"
        )
