"""
Pydantic schemas for withdrawal requests, settlements and terminations.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from investment_engine.models.withdrawal import WithdrawalStatus


class WithdrawalResponse(BaseModel):
    id: UUID
    investment_id: int
    requested_at: datetime
    quoted_amount: Decimal
    quoted_earnings: Decimal
    final_amount: Optional[Decimal] = None
    final_earnings: Optional[Decimal] = None
    status: WithdrawalStatus
    payout_due_by: Optional[datetime] = None
    settled_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class FinalPayoutResponse(BaseModel):
    withdrawal_id: UUID
    investment_id: int
    principal: Decimal
    earnings: Decimal
    amount: Decimal
    settled_at: datetime
    lockup_overridden: bool

    model_config = ConfigDict(from_attributes=True)


class SettlementResponse(BaseModel):
    """Result of finalizing a withdrawal or terminating an investment."""

    withdrawal: WithdrawalResponse
    payout: FinalPayoutResponse


class FinalizeRequest(BaseModel):
    settlement_time: Optional[datetime] = Field(
        default=None, description="Defaults to the application clock's now"
    )
    override_lockup: bool = False


class TerminateRequest(BaseModel):
    override_lockup: bool = False


class RejectRequest(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=500)
