"""
Authorization rules.

Answers "may this actor do this?" for the lifecycle operations.  Identity is
established upstream (gateway / session layer); here we only see an
:class:`Actor` with a role.

- Admins may do everything.
- The system actor (scheduled jobs) may reconcile ledgers.
- Investors may submit their own drafts and give notice on their own active
  investments; they may never approve, reject, terminate, override lockup or
  touch payouts.
"""

import logging
from typing import Any

from investment_engine.core.exceptions import ForbiddenException
from investment_engine.engine.actor import Actor
from investment_engine.models.investment import Investment, InvestmentStatus

logger = logging.getLogger(__name__)

# Targets an investor may request for their own investment.
OWNER_TRANSITIONS = frozenset({InvestmentStatus.PENDING, InvestmentStatus.WITHDRAWAL_NOTICE})


def _is_owner(actor: Actor, investment: Investment) -> bool:
    return str(investment.owner_id) == actor.id


def _deny(actor: Actor, action: str) -> ForbiddenException:
    logger.warning("Denied %s to %s", action, actor)
    return ForbiddenException(f"Actor '{actor}' is not allowed to {action}")


def authorize_transition(actor: Actor, investment: Investment, target: InvestmentStatus) -> None:
    if actor.is_admin:
        return
    if target in OWNER_TRANSITIONS and _is_owner(actor, investment):
        return
    raise _deny(actor, f"move investment {investment.id} to {InvestmentStatus(target).value}")


def authorize_view(actor: Actor, investment: Investment) -> None:
    if actor.is_admin or actor.is_system or _is_owner(actor, investment):
        return
    raise _deny(actor, f"view investment {investment.id}")


def authorize_withdrawal_request(actor: Actor, investment: Investment) -> None:
    authorize_transition(actor, investment, InvestmentStatus.WITHDRAWAL_NOTICE)


def authorize_reconcile(actor: Actor) -> None:
    if actor.is_admin or actor.is_system:
        return
    raise _deny(actor, "reconcile ledgers")


def authorize_override_lockup(actor: Actor) -> None:
    if actor.is_admin:
        return
    raise _deny(actor, "override the lockup period")


def authorize_admin(actor: Actor, action: str) -> None:
    if actor.is_admin:
        return
    raise _deny(actor, action)


def authorize_create(actor: Actor, owner_id: Any) -> None:
    if actor.is_admin or str(owner_id) == actor.id:
        return
    raise _deny(actor, f"create investments for account {owner_id}")
