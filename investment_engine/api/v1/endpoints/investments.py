"""
Investment API endpoints.

- POST  /investments                       — Create a draft
- GET   /investments                       — List (own, or all for admins)
- GET   /investments/{id}                  — Fetch one
- GET   /investments/{id}/valuation        — Value at ``as_of`` (default now)
- GET   /investments/{id}/projection       — Earnings over the lockup term
- POST  /investments/{id}/transition       — Drive the state machine
- POST  /investments/{id}/reconcile        — Write due ledger entries
- GET   /investments/{id}/ledger           — Ledger entries
- POST  /investments/{id}/withdrawals      — Give notice and quote
- POST  /investments/{id}/terminate        — Immediate withdrawal (admin)
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from investment_engine.api.deps import get_actor, get_investment_service
from investment_engine.engine.actor import Actor
from investment_engine.models.investment import InvestmentStatus
from investment_engine.schemas.common import ErrorResponse, ValidationErrorResponse
from investment_engine.schemas.investment import (
    InvestmentCreate,
    InvestmentResponse,
    ProjectionResponse,
    TransitionRequest,
    ValuationResponse,
)
from investment_engine.schemas.ledger import LedgerEntryResponse, ReconcileResponse
from investment_engine.schemas.withdrawal import (
    FinalPayoutResponse,
    SettlementResponse,
    TerminateRequest,
    WithdrawalResponse,
)
from investment_engine.services.investment_service import InvestmentService

router = APIRouter()

_NOT_FOUND = {404: {"model": ErrorResponse, "description": "Investment not found"}}
_FORBIDDEN = {403: {"model": ErrorResponse, "description": "Actor not allowed"}}
_CONFLICT = {409: {"model": ErrorResponse, "description": "Business rule violation"}}


@router.post(
    "",
    response_model=InvestmentResponse,
    status_code=201,
    summary="Create a draft investment",
    responses={
        **_FORBIDDEN,
        404: {"model": ErrorResponse, "description": "Account not found"},
        422: {
            "model": ValidationErrorResponse,
            "description": "Invalid terms or account-type mismatch",
        },
    },
)
async def create_investment(
    investment: InvestmentCreate,
    actor: Actor = Depends(get_actor),
    service: InvestmentService = Depends(get_investment_service),
) -> InvestmentResponse:
    return await service.create_investment(investment, actor)


@router.get(
    "",
    response_model=List[InvestmentResponse],
    summary="List investments",
    responses=_FORBIDDEN,
)
async def list_investments(
    owner_id: Optional[UUID] = Query(None, description="Filter by owning account"),
    status: Optional[InvestmentStatus] = Query(None, description="Filter by status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    actor: Actor = Depends(get_actor),
    service: InvestmentService = Depends(get_investment_service),
) -> List[InvestmentResponse]:
    return await service.list_investments(
        actor, owner_id=owner_id, status=status, skip=skip, limit=limit
    )


@router.get(
    "/{investment_id}",
    response_model=InvestmentResponse,
    summary="Get an investment",
    responses={**_NOT_FOUND, **_FORBIDDEN},
)
async def get_investment(
    investment_id: int,
    actor: Actor = Depends(get_actor),
    service: InvestmentService = Depends(get_investment_service),
) -> InvestmentResponse:
    return await service.get_investment(investment_id, actor)


@router.get(
    "/{investment_id}/valuation",
    response_model=ValuationResponse,
    summary="Value an investment",
    description=(
        "Principal, accrued earnings and current value at ``as_of`` "
        "(defaults to the application clock, which honours the time machine)."
    ),
    responses={**_NOT_FOUND, **_FORBIDDEN},
)
async def get_valuation(
    investment_id: int,
    as_of: Optional[datetime] = Query(None),
    actor: Actor = Depends(get_actor),
    service: InvestmentService = Depends(get_investment_service),
) -> ValuationResponse:
    return await service.evaluate(investment_id, actor, as_of)


@router.get(
    "/{investment_id}/projection",
    response_model=ProjectionResponse,
    summary="Project earnings over a horizon",
    responses={**_NOT_FOUND, **_FORBIDDEN},
)
async def get_projection(
    investment_id: int,
    months: Optional[int] = Query(None, ge=0, le=600, description="Defaults to the lockup term"),
    actor: Actor = Depends(get_actor),
    service: InvestmentService = Depends(get_investment_service),
) -> ProjectionResponse:
    result = await service.projection(investment_id, actor, months)
    return ProjectionResponse(
        investment_id=investment_id,
        months=result.months,
        principal=result.principal,
        total_earnings=result.total_earnings,
        ending_value=result.ending_value,
        monthly_rate=result.monthly_rate,
    )


@router.post(
    "/{investment_id}/transition",
    response_model=InvestmentResponse,
    summary="Change an investment's status",
    description=(
        "Submit (draft → pending), approve (pending → active), reject "
        "(pending → rejected), give notice (active → withdrawal_notice) or "
        "settle (withdrawal_notice → withdrawn).  Requesting the current "
        "status is a no-op."
    ),
    responses={**_NOT_FOUND, **_FORBIDDEN, **_CONFLICT},
)
async def transition_investment(
    investment_id: int,
    body: TransitionRequest,
    actor: Actor = Depends(get_actor),
    service: InvestmentService = Depends(get_investment_service),
) -> InvestmentResponse:
    return await service.transition(
        investment_id,
        body.target,
        actor,
        amount=body.amount,
        reason=body.reason,
        override_lockup=body.override_lockup,
    )


@router.post(
    "/{investment_id}/reconcile",
    response_model=ReconcileResponse,
    summary="Write due ledger entries",
    responses={**_NOT_FOUND, **_FORBIDDEN, **_CONFLICT},
)
async def reconcile_investment(
    investment_id: int,
    as_of: Optional[datetime] = Query(None),
    actor: Actor = Depends(get_actor),
    service: InvestmentService = Depends(get_investment_service),
) -> ReconcileResponse:
    result = await service.reconcile(investment_id, actor, as_of)
    return ReconcileResponse(
        investment_id=investment_id,
        accrual_index=result.accrual_index,
        created=[LedgerEntryResponse.model_validate(e) for e in result.entries],
        skipped_periods=result.skipped_periods,
    )


@router.get(
    "/{investment_id}/ledger",
    response_model=List[LedgerEntryResponse],
    summary="List ledger entries",
    responses={**_NOT_FOUND, **_FORBIDDEN},
)
async def list_ledger(
    investment_id: int,
    actor: Actor = Depends(get_actor),
    service: InvestmentService = Depends(get_investment_service),
) -> List[LedgerEntryResponse]:
    return await service.list_ledger(investment_id, actor)


@router.post(
    "/{investment_id}/withdrawals",
    response_model=WithdrawalResponse,
    status_code=201,
    summary="Request a withdrawal",
    description="Starts the notice period and freezes a quote of the current value.",
    responses={**_NOT_FOUND, **_FORBIDDEN, **_CONFLICT},
)
async def request_withdrawal(
    investment_id: int,
    actor: Actor = Depends(get_actor),
    service: InvestmentService = Depends(get_investment_service),
) -> WithdrawalResponse:
    return await service.quote_withdrawal(investment_id, actor)


@router.post(
    "/{investment_id}/terminate",
    response_model=SettlementResponse,
    summary="Terminate immediately (admin)",
    responses={**_NOT_FOUND, **_FORBIDDEN, **_CONFLICT},
)
async def terminate_investment(
    investment_id: int,
    body: TerminateRequest = TerminateRequest(),
    actor: Actor = Depends(get_actor),
    service: InvestmentService = Depends(get_investment_service),
) -> SettlementResponse:
    request, payout = await service.terminate(investment_id, actor, body.override_lockup)
    return SettlementResponse(
        withdrawal=WithdrawalResponse.model_validate(request),
        payout=FinalPayoutResponse.model_validate(payout),
    )
