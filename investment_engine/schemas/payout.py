"""
Pydantic schemas for the payout approval queue.
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from investment_engine.models.ledger_entry import LedgerEntryStatus


class BulkApproveRequest(BaseModel):
    entry_ids: List[str] = Field(..., min_length=1, max_length=500)


class BulkApproveItem(BaseModel):
    entry_id: str
    ok: bool
    changed: bool = False
    status: Optional[LedgerEntryStatus] = None
    code: Optional[str] = None
    message: Optional[str] = None


class BulkApproveResponse(BaseModel):
    approved: int
    failed: int
    results: List[BulkApproveItem]
