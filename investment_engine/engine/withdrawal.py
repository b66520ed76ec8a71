"""
Withdrawal quote calculator.

A withdrawal is valued twice:

1. :func:`quote` — when the investor gives notice.  The figures are frozen
   on the request so the investor sees what they were told.
2. :func:`finalize` — when the payout settles.  The investment is valued
   again at the settlement instant (it keeps earning during the notice
   period), the final figures are frozen, and the state machine moves the
   investment to ``withdrawn``.

:func:`terminate` is the administrator's immediate version: quote and
finalize at the same instant, skipping the notice period.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional, Tuple
from uuid import UUID

from investment_engine.core.exceptions import (
    InvalidEntryState,
    InvalidTransition,
    LockupNotExpired,
    ValidationError,
)
from investment_engine.engine.actor import Actor
from investment_engine.engine.clock import add_months, as_utc
from investment_engine.engine.lifecycle import (
    DEFAULT_NOTICE_PERIOD,
    TransitionOptions,
    lockup_expired,
    transition,
)
from investment_engine.engine.valuation import RateTable, evaluate
from investment_engine.models.investment import Investment, InvestmentStatus
from investment_engine.models.withdrawal import WithdrawalRequest, WithdrawalStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FinalPayout:
    """What is actually paid out when a withdrawal settles."""

    withdrawal_id: UUID
    investment_id: int
    principal: Decimal
    earnings: Decimal
    amount: Decimal
    settled_at: datetime
    lockup_overridden: bool


def quote(investment: Investment, now: datetime, rates: RateTable) -> WithdrawalRequest:
    """
    Value ``investment`` at ``now`` and freeze the result on a new request.

    The investment must already be in ``withdrawal_notice`` (the state machine
    stamps ``payout_due_by`` on entry).
    """
    if investment.status != InvestmentStatus.WITHDRAWAL_NOTICE:
        raise InvalidTransition(investment.status, InvestmentStatus.WITHDRAWAL_NOTICE)
    now = as_utc(now)
    valuation = evaluate(investment, now, rates)
    request = WithdrawalRequest(
        investment_id=investment.id,
        requested_at=now,
        quoted_amount=valuation.current_value,
        quoted_earnings=valuation.total_earnings,
        status=WithdrawalStatus.REQUESTED,
        payout_due_by=investment.payout_due_by,
    )
    logger.info(
        "Quoted withdrawal for investment %s: $%s (earnings $%s), due by %s",
        investment.id,
        request.quoted_amount,
        request.quoted_earnings,
        request.payout_due_by,
        extra={"investment_id": investment.id},
    )
    return request


def _ensure_after_accruals(investment: Investment, settlement_time: datetime) -> None:
    """Refuse a settlement that would fall inside periods already written to the ledger."""
    if investment.confirmed_at is None or not investment.last_accrual_index:
        return
    reconciled_until = add_months(as_utc(investment.confirmed_at), investment.last_accrual_index)
    if settlement_time < reconciled_until:
        raise ValidationError(
            f"settlement_time {settlement_time.isoformat()} is before the end of "
            f"period {investment.last_accrual_index} ({reconciled_until.isoformat()}), "
            f"which is already in the ledger",
            details={"reconciled_until": reconciled_until.isoformat()},
        )


def finalize(
    investment: Investment,
    request: WithdrawalRequest,
    settlement_time: datetime,
    rates: RateTable,
    actor: Actor,
    override_lockup: bool = False,
) -> FinalPayout:
    """
    Settle ``request`` at ``settlement_time`` and move the investment to ``withdrawn``.

    Raises :class:`InvalidEntryState` if the request is not open and
    :class:`ValidationError` if ``settlement_time`` falls before the end of
    the last period already in the ledger.  The state machine raises
    :class:`LockupNotExpired` / :class:`InvalidTransition`.
    Nothing is written unless every check passes.
    """
    if request.investment_id != investment.id:
        raise InvalidEntryState(
            f"Withdrawal {request.id} belongs to investment {request.investment_id}, "
            f"not {investment.id}"
        )
    if request.status != WithdrawalStatus.REQUESTED:
        raise InvalidEntryState(
            f"Withdrawal {request.id} is {WithdrawalStatus(request.status).value} "
            f"and cannot be finalized"
        )
    if investment.status != InvestmentStatus.WITHDRAWAL_NOTICE:
        raise InvalidTransition(investment.status, InvestmentStatus.WITHDRAWN)

    settlement_time = as_utc(settlement_time)
    _ensure_after_accruals(investment, settlement_time)
    overridden = not lockup_expired(investment, settlement_time)
    if overridden and not override_lockup:
        raise LockupNotExpired(investment.lockup_end_date)

    # Valued while still earning; once withdrawn the investment stops accruing.
    valuation = evaluate(investment, settlement_time, rates)
    transition(
        investment,
        InvestmentStatus.WITHDRAWN,
        actor,
        settlement_time,
        TransitionOptions(override_lockup=override_lockup),
    )

    request.final_amount = valuation.current_value
    request.final_earnings = valuation.total_earnings
    request.settled_at = settlement_time
    request.status = WithdrawalStatus.APPROVED

    payout = FinalPayout(
        withdrawal_id=request.id,
        investment_id=investment.id,
        principal=valuation.principal,
        earnings=valuation.total_earnings,
        amount=valuation.current_value,
        settled_at=settlement_time,
        lockup_overridden=overridden,
    )
    logger.info(
        "Finalized withdrawal %s for investment %s: $%s (quoted $%s)",
        request.id,
        investment.id,
        payout.amount,
        request.quoted_amount,
        extra={"investment_id": investment.id},
    )
    return payout


def terminate(
    investment: Investment,
    now: datetime,
    rates: RateTable,
    actor: Actor,
    override_lockup: bool = False,
    notice_period: timedelta = DEFAULT_NOTICE_PERIOD,
) -> Tuple[WithdrawalRequest, FinalPayout]:
    """
    Immediate withdrawal: notice, quote and settlement at the same instant.

    The lockup check runs before any state change, so a refused termination
    leaves the investment exactly as it was.
    """
    now = as_utc(now)
    if investment.status != InvestmentStatus.ACTIVE:
        raise InvalidTransition(investment.status, InvestmentStatus.WITHDRAWN)
    _ensure_after_accruals(investment, now)
    if not lockup_expired(investment, now) and not override_lockup:
        raise LockupNotExpired(investment.lockup_end_date)

    transition(
        investment,
        InvestmentStatus.WITHDRAWAL_NOTICE,
        actor,
        now,
        TransitionOptions(notice_period=notice_period),
    )
    # Termination skips the notice period: payout is due immediately.
    investment.payout_due_by = now
    request = quote(investment, now, rates)
    payout = finalize(investment, request, now, rates, actor, override_lockup)
    logger.warning(
        "Investment %s terminated by %s; payout $%s",
        investment.id,
        actor,
        payout.amount,
        extra={"investment_id": investment.id},
    )
    return request, payout


def reject_withdrawal(
    request: WithdrawalRequest, reason: Optional[str], now: datetime
) -> WithdrawalRequest:
    """Decline an open withdrawal request."""
    if request.status != WithdrawalStatus.REQUESTED:
        raise InvalidEntryState(
            f"Withdrawal {request.id} is {WithdrawalStatus(request.status).value} "
            f"and cannot be rejected"
        )
    request.status = WithdrawalStatus.REJECTED
    request.rejection_reason = reason
    request.settled_at = as_utc(now)
    logger.info("Withdrawal %s rejected: %s", request.id, reason or "no reason given")
    return request
