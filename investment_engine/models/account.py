"""
Account domain model.

Represents the owning account of one or more investments, persisted in the
``accounts`` table.  The lifecycle engine only ever reads an account (to
check that an investment's account type matches its owner); it never
mutates one.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, List

from sqlalchemy import CheckConstraint, DateTime
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from investment_engine.models.investment import Investment


class AccountType(str, Enum):
    """Ownership structure of an account (and of each investment it holds)."""

    INDIVIDUAL = "individual"
    JOINT = "joint"
    ENTITY = "entity"
    IRA = "ira"


class Account(SQLModel, table=True):
    """
    SQLModel / SQLAlchemy table definition for investor accounts.

    Constraints:
    - ``email`` has a unique index — duplicate registrations are rejected at DB level.
    """

    __tablename__ = "accounts"  # type: ignore[assignment]

    __table_args__ = (
        CheckConstraint("length(name) > 0", name="ck_accounts_name_not_empty"),
        CheckConstraint("length(email) > 0", name="ck_accounts_email_not_empty"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    name: str = Field(index=True, max_length=255)
    email: str = Field(unique=True, index=True, max_length=320)
    account_type: AccountType
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
    )

    investments: List["Investment"] = Relationship(back_populates="owner")

    def __repr__(self) -> str:
        return f"<Account id={self.id} name='{self.name}' type={self.account_type.value}>"
