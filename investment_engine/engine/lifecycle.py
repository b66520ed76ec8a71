"""
Investment lifecycle state machine.

    DRAFT → PENDING            (investor submits)
    PENDING → ACTIVE           (admin approves; accrual starts)
    PENDING → REJECTED         (admin rejects)
    ACTIVE → WITHDRAWAL_NOTICE (withdrawal requested; notice period starts)
    WITHDRAWAL_NOTICE → WITHDRAWN (withdrawal settled)

    Terminal states: REJECTED, WITHDRAWN

Requesting the current status again is a no-op.  Every precondition is
checked before anything is written, so a failed transition never leaves the
investment half-updated.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, Dict, FrozenSet, Optional

from dateutil.relativedelta import relativedelta

from investment_engine.core.exceptions import (
    AccountTypeMismatch,
    AmountLocked,
    InvalidTransition,
    LockupNotExpired,
)
from investment_engine.engine.actor import Actor
from investment_engine.engine.clock import as_utc
from investment_engine.engine.terms import (
    DEFAULT_LIMITS,
    TermLimits,
    default_payment_method,
    validate_investment,
    validate_terms,
)
from investment_engine.models.account import Account
from investment_engine.models.investment import (
    AMOUNT_LOCKED_STATUSES,
    Investment,
    InvestmentStatus,
    LockupPeriod,
)

logger = logging.getLogger(__name__)

DEFAULT_NOTICE_PERIOD = timedelta(days=90)

VALID_TRANSITIONS: Dict[InvestmentStatus, FrozenSet[InvestmentStatus]] = {
    InvestmentStatus.DRAFT: frozenset({InvestmentStatus.PENDING}),
    InvestmentStatus.PENDING: frozenset({InvestmentStatus.ACTIVE, InvestmentStatus.REJECTED}),
    InvestmentStatus.ACTIVE: frozenset({InvestmentStatus.WITHDRAWAL_NOTICE}),
    InvestmentStatus.WITHDRAWAL_NOTICE: frozenset({InvestmentStatus.WITHDRAWN}),
    InvestmentStatus.REJECTED: frozenset(),
    InvestmentStatus.WITHDRAWN: frozenset(),
}

TERMINAL_STATUSES = frozenset(
    status for status, targets in VALID_TRANSITIONS.items() if not targets
)


@dataclass(frozen=True)
class TransitionOptions:
    """Optional inputs a particular transition may need."""

    amount: Optional[Decimal] = None
    account: Optional[Account] = None
    override_lockup: bool = False
    reason: Optional[str] = None
    notice_period: timedelta = DEFAULT_NOTICE_PERIOD
    limits: TermLimits = field(default=DEFAULT_LIMITS)


def can_transition(current: InvestmentStatus, target: InvestmentStatus) -> bool:
    current = InvestmentStatus(current)
    target = InvestmentStatus(target)
    return current == target or target in VALID_TRANSITIONS[current]


def lockup_end_for(confirmed_at: datetime, lockup_period: LockupPeriod) -> datetime:
    return as_utc(confirmed_at) + relativedelta(years=LockupPeriod(lockup_period).years)


def lockup_expired(investment: Investment, now: datetime) -> bool:
    if investment.lockup_end_date is None:
        return False
    return as_utc(now) >= as_utc(investment.lockup_end_date)


@dataclass(frozen=True)
class _Step:
    """Everything a precondition or effect may read."""

    actor: Actor
    now: datetime
    options: TransitionOptions
    amount: Optional[Decimal]


def transition(
    investment: Investment,
    target: InvestmentStatus,
    actor: Actor,
    now: datetime,
    options: Optional[TransitionOptions] = None,
) -> Investment:
    """
    Move ``investment`` to ``target`` at instant ``now``.

    Returns the same (mutated) investment.  Raises :class:`InvalidTransition`,
    :class:`AmountLocked`, :class:`AccountTypeMismatch`,
    :class:`LockupNotExpired` or :class:`ValidationError`.
    """
    options = options or TransitionOptions()
    current = InvestmentStatus(investment.status)
    target = InvestmentStatus(target)

    requested_amount = None
    if options.amount is not None:
        requested_amount = Decimal(str(options.amount))
        if (
            requested_amount != Decimal(str(investment.amount))
            and current in AMOUNT_LOCKED_STATUSES
        ):
            raise AmountLocked(
                f"Investment {investment.id} is {current.value}; its amount "
                f"(${investment.amount}) can no longer be changed"
            )

    if current == target:
        return investment

    if target not in VALID_TRANSITIONS[current]:
        logger.warning(
            "Rejected transition %s → %s for investment %s by %s",
            current.value,
            target.value,
            investment.id,
            actor,
        )
        raise InvalidTransition(current, target)

    step = _Step(actor=actor, now=as_utc(now), options=options, amount=requested_amount)
    _PRECONDITIONS[target](investment, step)
    _EFFECTS[target](investment, step)
    investment.status = target

    logger.info(
        "Investment %s: %s → %s by %s",
        investment.id,
        current.value,
        target.value,
        actor,
        extra={"investment_id": investment.id},
    )
    return investment


# ── Preconditions (no writes) ──


def _check_submit(investment: Investment, step: _Step) -> None:
    validate_terms(
        step.amount if step.amount is not None else investment.amount,
        investment.account_type,
        investment.payment_frequency,
        investment.payment_method,
        step.options.limits,
    )


def _check_activate(investment: Investment, step: _Step) -> None:
    if investment.submitted_amount is not None and Decimal(str(investment.amount)) != Decimal(
        str(investment.submitted_amount)
    ):
        raise AmountLocked(
            f"Investment {investment.id} amount ${investment.amount} differs from the "
            f"submitted amount ${investment.submitted_amount}"
        )
    account = step.options.account
    if account is None or account.id != investment.owner_id:
        raise AccountTypeMismatch(
            f"Owning account of investment {investment.id} is required to activate it"
        )
    if account.account_type != investment.account_type:
        raise AccountTypeMismatch(
            f"Investment {investment.id} is a {investment.account_type.value} investment "
            f"but its owner is a {account.account_type.value} account"
        )


def _check_withdrawn(investment: Investment, step: _Step) -> None:
    if not lockup_expired(investment, step.now) and not step.options.override_lockup:
        raise LockupNotExpired(investment.lockup_end_date)


def _no_check(investment: Investment, step: _Step) -> None:
    return None


# ── Effects ──


def _apply_submit(investment: Investment, step: _Step) -> None:
    if step.amount is not None:
        investment.amount = step.amount
    if investment.payment_method is None:
        investment.payment_method = default_payment_method(
            investment.account_type, investment.amount, step.options.limits
        )
    validate_investment(investment, step.options.limits)
    investment.submitted_at = step.now
    investment.submitted_amount = investment.amount


def _apply_activate(investment: Investment, step: _Step) -> None:
    investment.confirmed_at = step.now
    investment.lockup_end_date = lockup_end_for(step.now, investment.lockup_period)
    investment.last_accrual_index = 0


def _apply_reject(investment: Investment, step: _Step) -> None:
    investment.rejected_at = step.now
    investment.rejection_reason = step.options.reason


def _apply_notice(investment: Investment, step: _Step) -> None:
    investment.withdrawal_requested_at = step.now
    investment.payout_due_by = step.now + step.options.notice_period


def _apply_withdrawn(investment: Investment, step: _Step) -> None:
    investment.withdrawn_at = step.now
    if not lockup_expired(investment, step.now):
        investment.lockup_override_by = str(step.actor)
        investment.lockup_overridden_at = step.now
        logger.warning(
            "Lockup overridden for investment %s by %s (lockup ends %s)",
            investment.id,
            step.actor,
            investment.lockup_end_date,
            extra={"investment_id": investment.id},
        )


_Rule = Callable[[Investment, _Step], None]

_PRECONDITIONS: Dict[InvestmentStatus, _Rule] = {
    InvestmentStatus.PENDING: _check_submit,
    InvestmentStatus.ACTIVE: _check_activate,
    InvestmentStatus.REJECTED: _no_check,
    InvestmentStatus.WITHDRAWAL_NOTICE: _no_check,
    InvestmentStatus.WITHDRAWN: _check_withdrawn,
}

_EFFECTS: Dict[InvestmentStatus, _Rule] = {
    InvestmentStatus.PENDING: _apply_submit,
    InvestmentStatus.ACTIVE: _apply_activate,
    InvestmentStatus.REJECTED: _apply_reject,
    InvestmentStatus.WITHDRAWAL_NOTICE: _apply_notice,
    InvestmentStatus.WITHDRAWN: _apply_withdrawn,
}
