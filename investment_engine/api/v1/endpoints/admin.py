"""
Administrator operations.

- GET   /admin/time-machine        — Current override and application time
- POST  /admin/time-machine        — Set the override instant
- POST  /admin/time-machine/reset  — Return to the system clock
- GET   /admin/auto-approve        — Distribution auto-approval flag
- PUT   /admin/auto-approve        — Toggle it
"""

from fastapi import APIRouter, Depends

from investment_engine.api.deps import get_actor, get_clock_service
from investment_engine.core.authorization import authorize_admin
from investment_engine.engine.actor import Actor
from investment_engine.engine.clock import Clock
from investment_engine.schemas.admin import AutoApproveSetting, TimeMachineResponse, TimeMachineSet
from investment_engine.schemas.common import ErrorResponse
from investment_engine.services.clock_service import ClockService

router = APIRouter()

_FORBIDDEN = {403: {"model": ErrorResponse, "description": "Administrators only"}}


def _time_machine(clock: Clock) -> TimeMachineResponse:
    return TimeMachineResponse(
        active=clock.is_overridden, override_at=clock.override, now=clock.now()
    )


@router.get("/time-machine", response_model=TimeMachineResponse, responses=_FORBIDDEN)
async def get_time_machine(
    actor: Actor = Depends(get_actor),
    service: ClockService = Depends(get_clock_service),
) -> TimeMachineResponse:
    authorize_admin(actor, "view the time machine")
    return _time_machine(await service.get_clock())


@router.post("/time-machine", response_model=TimeMachineResponse, responses=_FORBIDDEN)
async def set_time_machine(
    body: TimeMachineSet,
    actor: Actor = Depends(get_actor),
    service: ClockService = Depends(get_clock_service),
) -> TimeMachineResponse:
    return _time_machine(await service.set_time_machine(body.instant, actor))


@router.post("/time-machine/reset", response_model=TimeMachineResponse, responses=_FORBIDDEN)
async def reset_time_machine(
    actor: Actor = Depends(get_actor),
    service: ClockService = Depends(get_clock_service),
) -> TimeMachineResponse:
    return _time_machine(await service.reset_time_machine(actor))


@router.get("/auto-approve", response_model=AutoApproveSetting, responses=_FORBIDDEN)
async def get_auto_approve(
    actor: Actor = Depends(get_actor),
    service: ClockService = Depends(get_clock_service),
) -> AutoApproveSetting:
    authorize_admin(actor, "view distribution auto-approval")
    return AutoApproveSetting(enabled=await service.auto_approve_enabled())


@router.put("/auto-approve", response_model=AutoApproveSetting, responses=_FORBIDDEN)
async def set_auto_approve(
    body: AutoApproveSetting,
    actor: Actor = Depends(get_actor),
    service: ClockService = Depends(get_clock_service),
) -> AutoApproveSetting:
    return AutoApproveSetting(enabled=await service.set_auto_approve(body.enabled, actor))
