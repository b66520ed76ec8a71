"""
Pydantic schemas for Investment API request / response serialisation.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from investment_engine.models.account import AccountType
from investment_engine.models.investment import (
    InvestmentStatus,
    LockupPeriod,
    PaymentFrequency,
    PaymentMethod,
)


class InvestmentCreate(BaseModel):
    """
    Schema for ``POST /investments``.

    Creates a *draft*.  ``account_type`` defaults to the owning account's type;
    ``payment_method`` defaults at submission (wire where mandatory, else ACH).
    Term rules (minimum, increment, IRA restrictions) are checked by the
    service so their messages are the business ones.
    """

    owner_id: UUID = Field(..., description="Owning account")
    amount: Decimal = Field(
        ..., gt=0, max_digits=20, decimal_places=2, examples=["10000.00"]
    )
    lockup_period: LockupPeriod = Field(..., examples=["one_year"])
    payment_frequency: PaymentFrequency = Field(..., examples=["compounding"])
    account_type: Optional[AccountType] = None
    payment_method: Optional[str] = Field(
        default=None, description="'ach' or 'wire' (case-insensitive)", examples=["wire"]
    )


class InvestmentResponse(BaseModel):
    id: int
    owner_id: UUID
    amount: Decimal
    status: InvestmentStatus
    lockup_period: LockupPeriod
    payment_frequency: PaymentFrequency
    account_type: AccountType
    payment_method: Optional[PaymentMethod] = None
    created_at: datetime
    submitted_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    lockup_end_date: Optional[datetime] = None
    last_accrual_index: int = 0
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    withdrawal_requested_at: Optional[datetime] = None
    payout_due_by: Optional[datetime] = None
    withdrawn_at: Optional[datetime] = None
    lockup_override_by: Optional[str] = None
    lockup_overridden_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class TransitionRequest(BaseModel):
    """Body of ``POST /investments/{id}/transition``."""

    target: InvestmentStatus
    amount: Optional[Decimal] = Field(
        default=None,
        gt=0,
        decimal_places=2,
        description="New amount; only a draft may change it",
    )
    reason: Optional[str] = Field(default=None, max_length=500)
    override_lockup: bool = Field(
        default=False, description="Settle inside lockup (administrators only)"
    )


class ValuationResponse(BaseModel):
    investment_id: int
    as_of: datetime
    principal: Decimal
    total_earnings: Decimal
    current_value: Decimal
    elapsed_months: int
    monthly_rate: Decimal
    next_accrual_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ProjectionResponse(BaseModel):
    investment_id: int
    months: int
    principal: Decimal
    total_earnings: Decimal
    ending_value: Decimal
    monthly_rate: Decimal
