"""
Account API endpoints.

- POST  /accounts       — Register an investor account
- GET   /accounts/{id}  — Fetch one account
"""

from uuid import UUID

from fastapi import APIRouter, Depends

from investment_engine.api.deps import get_account_service, get_actor
from investment_engine.core.exceptions import ForbiddenException
from investment_engine.engine.actor import Actor
from investment_engine.schemas.account import AccountCreate, AccountResponse
from investment_engine.schemas.common import ErrorResponse, ValidationErrorResponse
from investment_engine.services.account_service import AccountService

router = APIRouter()


@router.post(
    "",
    response_model=AccountResponse,
    status_code=201,
    summary="Register an account",
    responses={
        409: {"model": ErrorResponse, "description": "E-mail already registered"},
        422: {"model": ValidationErrorResponse, "description": "Validation error"},
    },
)
async def create_account(
    account: AccountCreate,
    service: AccountService = Depends(get_account_service),
) -> AccountResponse:
    return await service.create_account(account)


@router.get(
    "/{account_id}",
    response_model=AccountResponse,
    summary="Get an account",
    responses={
        403: {"model": ErrorResponse, "description": "Not your account"},
        404: {"model": ErrorResponse, "description": "Account not found"},
    },
)
async def get_account(
    account_id: UUID,
    actor: Actor = Depends(get_actor),
    service: AccountService = Depends(get_account_service),
) -> AccountResponse:
    if not actor.is_admin and actor.id != str(account_id):
        raise ForbiddenException(f"Actor '{actor}' may only view their own account")
    return await service.get_account(account_id)
