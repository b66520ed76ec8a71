"""
Withdrawal API endpoints.

- GET   /withdrawals/{id}           — Fetch a request
- POST  /withdrawals/{id}/finalize  — Settle the payout (admin)
- POST  /withdrawals/{id}/reject    — Decline the request (admin)
"""

from uuid import UUID

from fastapi import APIRouter, Depends

from investment_engine.api.deps import get_actor, get_investment_service
from investment_engine.engine.actor import Actor
from investment_engine.schemas.common import ErrorResponse
from investment_engine.schemas.withdrawal import (
    FinalizeRequest,
    FinalPayoutResponse,
    RejectRequest,
    SettlementResponse,
    WithdrawalResponse,
)
from investment_engine.services.investment_service import InvestmentService

router = APIRouter()

_ERRORS = {
    403: {"model": ErrorResponse, "description": "Actor not allowed"},
    404: {"model": ErrorResponse, "description": "Withdrawal not found"},
    409: {"model": ErrorResponse, "description": "Request not open or lockup not expired"},
}


@router.get("/{withdrawal_id}", response_model=WithdrawalResponse, responses=_ERRORS)
async def get_withdrawal(
    withdrawal_id: UUID,
    actor: Actor = Depends(get_actor),
    service: InvestmentService = Depends(get_investment_service),
) -> WithdrawalResponse:
    return await service.get_withdrawal(withdrawal_id, actor)


@router.post(
    "/{withdrawal_id}/finalize",
    response_model=SettlementResponse,
    summary="Settle a withdrawal",
    description=(
        "Values the investment at ``settlement_time`` (default now), writes the "
        "outstanding accruals and the withdrawal entry, and marks the "
        "investment withdrawn.  Inside lockup ``override_lockup`` is required."
    ),
    responses=_ERRORS,
)
async def finalize_withdrawal(
    withdrawal_id: UUID,
    body: FinalizeRequest = FinalizeRequest(),
    actor: Actor = Depends(get_actor),
    service: InvestmentService = Depends(get_investment_service),
) -> SettlementResponse:
    request, payout = await service.finalize_withdrawal(
        withdrawal_id, actor, body.settlement_time, body.override_lockup
    )
    return SettlementResponse(
        withdrawal=WithdrawalResponse.model_validate(request),
        payout=FinalPayoutResponse.model_validate(payout),
    )


@router.post(
    "/{withdrawal_id}/reject",
    response_model=WithdrawalResponse,
    summary="Reject a withdrawal request",
    responses=_ERRORS,
)
async def reject_withdrawal(
    withdrawal_id: UUID,
    body: RejectRequest = RejectRequest(),
    actor: Actor = Depends(get_actor),
    service: InvestmentService = Depends(get_investment_service),
) -> WithdrawalResponse:
    return await service.reject_withdrawal(withdrawal_id, actor, body.reason)
