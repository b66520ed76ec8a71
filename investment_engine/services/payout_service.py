"""
Payout service — the administrator's approval queue for ledger entries.

Every decision runs under the owning investment's lock so it cannot interleave
with a reconcile of the same ledger.  Bulk approval treats each entry on its
own (own lock, own commit): one bad entry id does not block the rest.
"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from investment_engine.core.authorization import authorize_admin
from investment_engine.core.exceptions import AppException, NotFoundException
from investment_engine.core.locks import KeyedLock, investment_locks
from investment_engine.engine import payouts
from investment_engine.engine.actor import Actor
from investment_engine.models.ledger_entry import LedgerEntry, LedgerEntryStatus
from investment_engine.repositories.ledger_repo import LedgerRepository
from investment_engine.services.clock_service import ClockService

logger = logging.getLogger(__name__)


@dataclass
class PayoutDecision:
    """Outcome of one item in a bulk approval."""

    entry_id: str
    ok: bool
    changed: bool = False
    status: Optional[LedgerEntryStatus] = None
    code: Optional[str] = None
    message: Optional[str] = None


class PayoutService:
    """Approve, reject and confirm receipt of scheduled payouts."""

    def __init__(
        self,
        ledger_repo: LedgerRepository,
        clock_service: ClockService,
        locks: KeyedLock = investment_locks,
    ):
        self._ledger = ledger_repo
        self._clock = clock_service
        self._locks = locks

    async def _get(self, entry_id: str, refresh: bool = False) -> LedgerEntry:
        entry = await self._ledger.get(entry_id, refresh=refresh)
        if entry is None:
            raise NotFoundException("Ledger entry", entry_id)
        return entry

    async def _decide(self, entry_id: str, decision: Callable[[LedgerEntry], bool]) -> LedgerEntry:
        # The first read only finds the investment to lock; the decision is
        # made on the row as it stands once the lock is held.
        investment_id = (await self._get(entry_id)).investment_id
        async with self._locks.hold(investment_id):
            entry = await self._get(entry_id, refresh=True)
            if decision(entry):
                await self._ledger.add(entry)
                await self._ledger.commit()
        return entry

    # ── Queries ──

    async def list_pending(self, actor: Actor, skip: int = 0, limit: int = 100) -> List[LedgerEntry]:
        authorize_admin(actor, "view the payout queue")
        return await self._ledger.get_pending(skip=skip, limit=limit)

    # ── Commands ──

    async def approve(self, entry_id: str, actor: Actor) -> LedgerEntry:
        """Approve a payout; approving an approved or received entry is a no-op."""
        authorize_admin(actor, "approve payouts")
        now = (await self._clock.get_clock()).now()
        return await self._decide(entry_id, lambda entry: payouts.approve(entry, now))

    async def reject(self, entry_id: str, actor: Actor, reason: Optional[str] = None) -> LedgerEntry:
        authorize_admin(actor, "reject payouts")
        now = (await self._clock.get_clock()).now()

        def _reject(entry: LedgerEntry) -> bool:
            payouts.reject(entry, reason, now)
            return True

        return await self._decide(entry_id, _reject)

    async def mark_received(self, entry_id: str, actor: Actor) -> LedgerEntry:
        authorize_admin(actor, "confirm payout receipt")
        now = (await self._clock.get_clock()).now()
        return await self._decide(entry_id, lambda entry: payouts.mark_received(entry, now))

    async def approve_many(self, entry_ids: List[str], actor: Actor) -> List[PayoutDecision]:
        """Approve each entry independently and report a result per id."""
        authorize_admin(actor, "approve payouts")
        now = (await self._clock.get_clock()).now()
        results: List[PayoutDecision] = []

        for entry_id in dict.fromkeys(entry_ids):
            changed = False

            def _approve(entry: LedgerEntry) -> bool:
                nonlocal changed
                changed = payouts.approve(entry, now)
                return changed

            try:
                entry = await self._decide(entry_id, _approve)
            except AppException as exc:
                logger.warning(
                    "Bulk approval skipped %s: %s", entry_id, exc.message, extra={"entry_id": entry_id}
                )
                results.append(
                    PayoutDecision(entry_id=entry_id, ok=False, code=exc.code, message=exc.message)
                )
                continue
            results.append(
                PayoutDecision(entry_id=entry_id, ok=True, changed=changed, status=entry.status)
            )

        logger.info(
            "Bulk approval by %s: %d ok, %d failed",
            actor,
            sum(r.ok for r in results),
            sum(not r.ok for r in results),
        )
        return results
