"""
Ledger entry domain model.

One row per financial event tied to an investment: the opening principal,
each monthly distribution or contribution, and the final withdrawal.  The
table is append-only; the ``(investment_id, period_index, type)`` unique
constraint is what makes double accrual impossible even under concurrent
reconciliation.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional, Tuple

from sqlalchemy import CheckConstraint, DateTime, UniqueConstraint
from sqlmodel import Field, SQLModel


class LedgerEntryType(str, Enum):
    """Kind of financial event an entry records."""

    INVESTMENT = "investment"
    DISTRIBUTION = "distribution"
    CONTRIBUTION = "contribution"
    WITHDRAWAL = "withdrawal"


class LedgerEntryStatus(str, Enum):
    """Processing status of a ledger entry."""

    PENDING = "pending"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"
    RECEIVED = "received"


# Once an entry reaches one of these it is never touched again.
TERMINAL_ENTRY_STATUSES = frozenset({LedgerEntryStatus.REJECTED, LedgerEntryStatus.RECEIVED})

# Human-readable id prefixes, one per entry type.
ENTRY_ID_PREFIXES = {
    LedgerEntryType.INVESTMENT: "INV",
    LedgerEntryType.DISTRIBUTION: "DIST",
    LedgerEntryType.CONTRIBUTION: "CONT",
    LedgerEntryType.WITHDRAWAL: "WDR",
}


class LedgerEntry(SQLModel, table=True):
    """
    SQLModel / SQLAlchemy table definition for ledger entries (transactions).

    ``id`` is deterministic (``INV-12``, ``DIST-12-3``, ``CONT-12-3``,
    ``WDR-12``) so the same logical event always maps to the same primary key.
    """

    __tablename__ = "ledger_entries"  # type: ignore[assignment]

    __table_args__ = (
        UniqueConstraint(
            "investment_id",
            "period_index",
            "type",
            name="uq_ledger_entries_investment_period_type",
        ),
        CheckConstraint("amount >= 0", name="ck_ledger_entries_amount_non_negative"),
    )

    id: str = Field(primary_key=True, max_length=64)
    investment_id: int = Field(foreign_key="investments.id", index=True, ondelete="RESTRICT")
    type: LedgerEntryType = Field(index=True)
    amount: Decimal = Field(max_digits=20, decimal_places=2)
    period_index: Optional[int] = Field(default=None)
    status: LedgerEntryStatus = Field(default=LedgerEntryStatus.PENDING, index=True)
    occurred_at: datetime = Field(sa_type=DateTime(timezone=True))  # type: ignore[arg-type]
    recorded_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
    )
    status_changed_at: Optional[datetime] = Field(
        default=None, sa_type=DateTime(timezone=True)  # type: ignore[arg-type]
    )
    rejection_reason: Optional[str] = Field(default=None, max_length=500)

    @property
    def key(self) -> Tuple[int, Optional[int], LedgerEntryType]:
        """The reconciliation key: at most one entry exists per key."""
        return (self.investment_id, self.period_index, LedgerEntryType(self.type))

    def __repr__(self) -> str:
        return (
            f"<LedgerEntry id={self.id} type={self.type.value} "
            f"status={self.status.value} amount=${self.amount}>"
        )
