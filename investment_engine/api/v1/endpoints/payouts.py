"""
Payout queue API endpoints (administrators).

- GET   /payouts/pending              — Entries awaiting a decision
- POST  /payouts/approve              — Bulk approve, per-item results
- POST  /payouts/{entry_id}/approve   — Approve one (repeat approvals are no-ops)
- POST  /payouts/{entry_id}/reject    — Reject one pending entry
- POST  /payouts/{entry_id}/received  — Confirm the payment arrived
"""

from typing import List

from fastapi import APIRouter, Depends, Query

from investment_engine.api.deps import get_actor, get_payout_service
from investment_engine.engine.actor import Actor
from investment_engine.schemas.common import ErrorResponse
from investment_engine.schemas.ledger import LedgerEntryResponse
from investment_engine.schemas.payout import (
    BulkApproveItem,
    BulkApproveRequest,
    BulkApproveResponse,
)
from investment_engine.schemas.withdrawal import RejectRequest
from investment_engine.services.payout_service import PayoutService

router = APIRouter()

_ERRORS = {
    403: {"model": ErrorResponse, "description": "Administrators only"},
    404: {"model": ErrorResponse, "description": "Ledger entry not found"},
    409: {"model": ErrorResponse, "description": "Entry not in an actionable state"},
}


@router.get("/pending", response_model=List[LedgerEntryResponse], responses=_ERRORS)
async def list_pending_payouts(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    actor: Actor = Depends(get_actor),
    service: PayoutService = Depends(get_payout_service),
) -> List[LedgerEntryResponse]:
    return await service.list_pending(actor, skip=skip, limit=limit)


@router.post("/approve", response_model=BulkApproveResponse, responses=_ERRORS)
async def approve_payouts(
    body: BulkApproveRequest,
    actor: Actor = Depends(get_actor),
    service: PayoutService = Depends(get_payout_service),
) -> BulkApproveResponse:
    decisions = await service.approve_many(body.entry_ids, actor)
    items = [BulkApproveItem(**vars(d)) for d in decisions]
    return BulkApproveResponse(
        approved=sum(1 for i in items if i.ok),
        failed=sum(1 for i in items if not i.ok),
        results=items,
    )


@router.post("/{entry_id}/approve", response_model=LedgerEntryResponse, responses=_ERRORS)
async def approve_payout(
    entry_id: str,
    actor: Actor = Depends(get_actor),
    service: PayoutService = Depends(get_payout_service),
) -> LedgerEntryResponse:
    return await service.approve(entry_id, actor)


@router.post("/{entry_id}/reject", response_model=LedgerEntryResponse, responses=_ERRORS)
async def reject_payout(
    entry_id: str,
    body: RejectRequest = RejectRequest(),
    actor: Actor = Depends(get_actor),
    service: PayoutService = Depends(get_payout_service),
) -> LedgerEntryResponse:
    return await service.reject(entry_id, actor, body.reason)


@router.post("/{entry_id}/received", response_model=LedgerEntryResponse, responses=_ERRORS)
async def mark_payout_received(
    entry_id: str,
    actor: Actor = Depends(get_actor),
    service: PayoutService = Depends(get_payout_service),
) -> LedgerEntryResponse:
    return await service.mark_received(entry_id, actor)
