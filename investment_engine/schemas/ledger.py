"""
Pydantic schemas for ledger entries and reconciliation results.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from investment_engine.models.ledger_entry import LedgerEntryStatus, LedgerEntryType


class LedgerEntryResponse(BaseModel):
    id: str = Field(..., examples=["DIST-12-3"])
    investment_id: int
    type: LedgerEntryType
    amount: Decimal
    period_index: Optional[int] = None
    status: LedgerEntryStatus
    occurred_at: datetime
    recorded_at: datetime
    status_changed_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class ReconcileResponse(BaseModel):
    """Entries written by one reconcile call (empty when already up to date)."""

    investment_id: int
    accrual_index: int
    created: List[LedgerEntryResponse]
    skipped_periods: List[int] = Field(default_factory=list)
