"""
Investment service — orchestrates the lifecycle engine against the database.

Each command follows the same shape:

1. Authorize the actor.
2. Take the per-investment lock.
3. Read the investment (and its ledger when needed) and the clock.
4. Run the pure engine functions; they raise before mutating anything.
5. Stage every changed row and commit once.
6. After the lock is released: invalidate cached lists and publish the
   lifecycle webhook.

A commit rejected by the ledger's ``(investment_id, period_index, type)``
constraint is rolled back and surfaced as :class:`DuplicateAccrual`; it is
never retried here.

Caching:
    ``list_investments`` results are cached under ``investments:`` keys; every
    command invalidates the prefix.
"""

import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy.exc import IntegrityError

from investment_engine.core.authorization import (
    authorize_admin,
    authorize_create,
    authorize_override_lockup,
    authorize_reconcile,
    authorize_transition,
    authorize_view,
    authorize_withdrawal_request,
)
from investment_engine.core.cache import cache, make_key
from investment_engine.core.config import settings
from investment_engine.core.exceptions import (
    AmountLocked,
    DuplicateAccrual,
    ForbiddenException,
    InvalidEntryState,
    InvalidTransition,
    NotFoundException,
    ValidationError,
)
from investment_engine.core.locks import KeyedLock, investment_locks
from investment_engine.engine import ledger as ledger_engine
from investment_engine.engine import withdrawal as withdrawal_engine
from investment_engine.engine.actor import SYSTEM_ACTOR, Actor
from investment_engine.engine.clock import as_utc
from investment_engine.engine.lifecycle import TransitionOptions, can_transition, transition
from investment_engine.engine.terms import TermLimits, check_account_type_lock, validate_terms
from investment_engine.engine.valuation import (
    Projection,
    RateTable,
    ValuationResult,
    evaluate,
    project,
)
from investment_engine.models.investment import Investment, InvestmentStatus
from investment_engine.models.ledger_entry import LedgerEntry
from investment_engine.models.withdrawal import WithdrawalRequest
from investment_engine.repositories.account_repo import AccountRepository
from investment_engine.repositories.investment_repo import InvestmentRepository
from investment_engine.repositories.ledger_repo import LedgerRepository
from investment_engine.repositories.withdrawal_repo import WithdrawalRepository
from investment_engine.schemas.investment import InvestmentCreate, InvestmentResponse
from investment_engine.services.clock_service import ClockService
from investment_engine.services.notification_service import NotificationDispatcher, notifier

logger = logging.getLogger(__name__)

Settlement = Tuple[WithdrawalRequest, withdrawal_engine.FinalPayout]


class InvestmentService:
    """Lifecycle, valuation, reconciliation and withdrawals for :class:`Investment`."""

    CACHE_PREFIX = "investments"

    def __init__(
        self,
        invest_repo: InvestmentRepository,
        ledger_repo: LedgerRepository,
        withdrawal_repo: WithdrawalRepository,
        account_repo: AccountRepository,
        clock_service: ClockService,
        dispatcher: NotificationDispatcher = notifier,
        rates: Optional[RateTable] = None,
        limits: Optional[TermLimits] = None,
        notice_period: Optional[timedelta] = None,
        locks: KeyedLock = investment_locks,
    ):
        self._investments = invest_repo
        self._ledger = ledger_repo
        self._withdrawals = withdrawal_repo
        self._accounts = account_repo
        self._clock = clock_service
        self._dispatcher = dispatcher
        self._rates = rates or settings.rate_table()
        self._limits = limits or settings.term_limits()
        self._notice_period = notice_period if notice_period is not None else settings.notice_period
        self._locks = locks

    # ── Helpers ──

    async def _get(self, investment_id: int, refresh: bool = False) -> Investment:
        investment = await self._investments.get(investment_id, refresh=refresh)
        if investment is None:
            raise NotFoundException("Investment", investment_id)
        return investment

    async def _get_withdrawal(self, withdrawal_id: UUID, refresh: bool = False) -> WithdrawalRequest:
        request = await self._withdrawals.get(withdrawal_id, refresh=refresh)
        if request is None:
            raise NotFoundException("Withdrawal", withdrawal_id)
        return request

    async def _now(self) -> datetime:
        return (await self._clock.get_clock()).now()

    @staticmethod
    def _not_after(value: Optional[datetime], now: datetime, field: str) -> datetime:
        if value is None:
            return now
        value = as_utc(value)
        if value > now:
            raise ValidationError(
                f"{field} cannot be later than the current time ({now.isoformat()})",
                details=[{"field": field, "message": "must not be in the future"}],
            )
        return value

    async def _commit(self, investment_id: int) -> None:
        try:
            await self._investments.commit()
        except IntegrityError as exc:
            logger.warning(
                "Ledger write for investment %s hit the reconciliation key: %s",
                investment_id,
                exc,
                extra={"investment_id": investment_id},
            )
            raise DuplicateAccrual(investment_id)

    def _after_change(self, investment: Investment, event: Optional[str] = None) -> None:
        cache.invalidate(self.CACHE_PREFIX)
        if event:
            payload = InvestmentResponse.model_validate(investment).model_dump(mode="json")
            self._dispatcher.publish(event, payload)

    # ── Queries ──

    async def list_investments(
        self,
        actor: Actor,
        owner_id: Optional[UUID] = None,
        status: Optional[InvestmentStatus] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Investment]:
        """Admins see everything; investors only their own investments (cache-backed)."""
        if not actor.is_admin:
            try:
                actor_account = UUID(actor.id)
            except ValueError:
                raise ForbiddenException(f"Actor '{actor}' does not own an account")
            if owner_id is not None and owner_id != actor_account:
                raise ForbiddenException(f"Actor '{actor}' may only list their own investments")
            owner_id = actor_account

        key = make_key(self.CACHE_PREFIX, owner_id, status.value if status else None, skip, limit)
        return await cache.get_or_load(
            key,
            lambda: self._investments.list(owner_id=owner_id, status=status, skip=skip, limit=limit),
        )

    async def get_investment(self, investment_id: int, actor: Actor) -> Investment:
        investment = await self._get(investment_id)
        authorize_view(actor, investment)
        return investment

    async def evaluate(
        self, investment_id: int, actor: Actor, as_of: Optional[datetime] = None
    ) -> ValuationResult:
        """Value the investment at ``as_of`` (default: the application clock's now)."""
        investment = await self.get_investment(investment_id, actor)
        as_of = as_utc(as_of) if as_of is not None else await self._now()
        return evaluate(investment, as_of, self._rates)

    async def projection(
        self, investment_id: int, actor: Actor, months: Optional[int] = None
    ) -> Projection:
        investment = await self.get_investment(investment_id, actor)
        return project(investment, self._rates, months)

    async def list_ledger(self, investment_id: int, actor: Actor) -> List[LedgerEntry]:
        await self.get_investment(investment_id, actor)
        return await self._ledger.get_by_investment(investment_id)

    async def get_withdrawal(self, withdrawal_id: UUID, actor: Actor) -> WithdrawalRequest:
        request = await self._get_withdrawal(withdrawal_id)
        authorize_view(actor, await self._get(request.investment_id))
        return request

    # ── Commands ──

    async def create_investment(self, invest_in: InvestmentCreate, actor: Actor) -> Investment:
        """
        Record a new *draft* investment.

        1. The owning account must exist → 404.
        2. The terms must be valid for the account type → 422 ``ValidationError``.
        3. An owner holding a pending/active investment keeps that account
           type → 422 ``AccountTypeMismatch``.
        """
        authorize_create(actor, invest_in.owner_id)
        account = await self._accounts.get(invest_in.owner_id)
        if account is None:
            raise NotFoundException("Account", invest_in.owner_id)

        account_type = invest_in.account_type or account.account_type
        method = validate_terms(
            invest_in.amount,
            account_type,
            invest_in.payment_frequency,
            invest_in.payment_method,
            self._limits,
        )
        existing = await self._investments.get_by_owner(
            account.id, [InvestmentStatus.PENDING, InvestmentStatus.ACTIVE]
        )
        check_account_type_lock(account_type, existing)

        investment = Investment(
            owner_id=account.id,
            amount=invest_in.amount,
            status=InvestmentStatus.DRAFT,
            lockup_period=invest_in.lockup_period,
            payment_frequency=invest_in.payment_frequency,
            account_type=account_type,
            payment_method=method,
            created_at=await self._now(),
        )
        created = await self._investments.create(investment)
        self._after_change(created)
        logger.info(
            "Created draft investment %s for account %s ($%s, %s, %s)",
            created.id,
            account.id,
            created.amount,
            created.lockup_period.value,
            created.payment_frequency.value,
            extra={"investment_id": created.id},
        )
        return created

    async def transition(
        self,
        investment_id: int,
        target: InvestmentStatus,
        actor: Actor,
        amount: Optional[Decimal] = None,
        reason: Optional[str] = None,
        override_lockup: bool = False,
    ) -> Investment:
        """
        Drive the state machine.

        ``withdrawal_notice`` quotes a withdrawal as part of the move and
        ``withdrawn`` settles the open withdrawal request, so the ledger and the
        request table always agree with the investment's status.
        """
        target = InvestmentStatus(target)
        if override_lockup:
            authorize_override_lockup(actor)

        async with self._locks.hold(investment_id):
            investment = await self._get(investment_id, refresh=True)
            authorize_transition(actor, investment, target)
            current = InvestmentStatus(investment.status)
            now = await self._now()

            if target in (InvestmentStatus.WITHDRAWAL_NOTICE, InvestmentStatus.WITHDRAWN):
                if amount is not None and Decimal(str(amount)) != Decimal(str(investment.amount)):
                    raise AmountLocked(
                        f"Investment {investment.id} is {current.value}; its amount "
                        f"(${investment.amount}) can no longer be changed"
                    )
                if current == target:
                    return investment
                if not can_transition(current, target):
                    raise InvalidTransition(current, target)
                if target == InvestmentStatus.WITHDRAWAL_NOTICE:
                    await self._give_notice(investment, actor, now)
                else:
                    request = await self._withdrawals.get_open(investment.id)
                    if request is None:
                        raise InvalidEntryState(
                            f"Investment {investment.id} has no open withdrawal request to settle"
                        )
                    await self._settle(investment, request, now, now, actor, override_lockup)
            else:
                account = None
                if target == InvestmentStatus.ACTIVE:
                    account = await self._accounts.get(investment.owner_id)
                options = TransitionOptions(
                    amount=amount,
                    account=account,
                    reason=reason,
                    notice_period=self._notice_period,
                    limits=self._limits,
                )
                transition(investment, target, actor, now, options)
                if current == target:
                    return investment
                if target == InvestmentStatus.ACTIVE:
                    ledger = await self._ledger.get_by_investment(investment.id)
                    await self._ledger.add(
                        *ledger_engine.missing_lifecycle_entries(investment, ledger, now)
                    )
                await self._investments.add(investment)
                await self._commit(investment.id)

        self._after_change(investment, f"investment.{target.value}")
        return investment

    async def reconcile(
        self,
        investment_id: int,
        actor: Actor = SYSTEM_ACTOR,
        as_of: Optional[datetime] = None,
    ) -> ledger_engine.ReconcileResult:
        """
        Write every accrual entry due up to ``as_of`` that the ledger lacks.

        Idempotent: a second call with the same ``as_of`` writes nothing.
        ``as_of`` may not be later than the application clock.
        """
        authorize_reconcile(actor)
        async with self._locks.hold(investment_id):
            investment = await self._get(investment_id, refresh=True)
            now = await self._now()
            as_of = self._not_after(as_of, now, "as_of")
            ledger = await self._ledger.get_by_investment(investment_id)
            auto_approve = await self._clock.auto_approve_enabled()

            result = ledger_engine.reconcile(
                investment, ledger, as_of, self._rates, auto_approve, recorded_at=now
            )
            opening = ledger_engine.missing_lifecycle_entries(investment, ledger, now)
            index_moved = result.accrual_index != (investment.last_accrual_index or 0)
            if not (result.entries or opening or index_moved):
                return result

            result.entries = opening + result.entries
            investment.last_accrual_index = result.accrual_index
            await self._ledger.add(*result.entries)
            await self._investments.add(investment)
            await self._commit(investment_id)

        self._after_change(investment)
        logger.info(
            "Reconciled investment %s through period %d: %d new entries",
            investment_id,
            result.accrual_index,
            len(result.entries),
            extra={"investment_id": investment_id},
        )
        return result

    async def quote_withdrawal(self, investment_id: int, actor: Actor) -> WithdrawalRequest:
        """Give notice on an active investment and freeze a withdrawal quote."""
        async with self._locks.hold(investment_id):
            investment = await self._get(investment_id, refresh=True)
            authorize_withdrawal_request(actor, investment)
            previous = investment.status
            request = await self._give_notice(investment, actor, await self._now())

        if previous != InvestmentStatus.WITHDRAWAL_NOTICE:
            self._after_change(investment, "investment.withdrawal_notice")
        return request

    async def finalize_withdrawal(
        self,
        withdrawal_id: UUID,
        actor: Actor,
        settlement_time: Optional[datetime] = None,
        override_lockup: bool = False,
    ) -> Settlement:
        """Settle an open withdrawal; the payout is the valuation at ``settlement_time``."""
        authorize_admin(actor, "settle withdrawals")
        if override_lockup:
            authorize_override_lockup(actor)
        investment_id = (await self._get_withdrawal(withdrawal_id)).investment_id

        async with self._locks.hold(investment_id):
            request = await self._get_withdrawal(withdrawal_id, refresh=True)
            investment = await self._get(investment_id, refresh=True)
            now = await self._now()
            settlement_time = self._not_after(settlement_time, now, "settlement_time")
            if settlement_time < as_utc(request.requested_at):
                raise ValidationError(
                    "settlement_time cannot precede the withdrawal request",
                    details=[{"field": "settlement_time", "message": "before requested_at"}],
                )
            payout = await self._settle(
                investment, request, settlement_time, now, actor, override_lockup
            )

        self._after_change(investment, "investment.withdrawn")
        return request, payout

    async def terminate(
        self, investment_id: int, actor: Actor, override_lockup: bool = False
    ) -> Settlement:
        """
        Withdraw immediately, skipping the notice period.

        An investment already in ``withdrawal_notice`` has its open request
        settled now.  Inside lockup this requires ``override_lockup``; without
        it :class:`LockupNotExpired` is raised and nothing changes.
        """
        authorize_admin(actor, "terminate investments")
        if override_lockup:
            authorize_override_lockup(actor)

        async with self._locks.hold(investment_id):
            investment = await self._get(investment_id, refresh=True)
            now = await self._now()

            if investment.status == InvestmentStatus.WITHDRAWAL_NOTICE:
                request = await self._withdrawals.get_open(investment_id)
                if request is None:
                    raise InvalidEntryState(
                        f"Investment {investment_id} has no open withdrawal request to settle"
                    )
                payout = await self._settle(investment, request, now, now, actor, override_lockup)
            else:
                ledger = await self._ledger.get_by_investment(investment_id)
                accruals = ledger_engine.reconcile(
                    investment,
                    ledger,
                    now,
                    self._rates,
                    await self._clock.auto_approve_enabled(),
                    recorded_at=now,
                )
                opening = ledger_engine.missing_lifecycle_entries(investment, ledger, now)
                request, payout = withdrawal_engine.terminate(
                    investment, now, self._rates, actor, override_lockup, self._notice_period
                )
                await self._record_settlement(investment, request, payout, accruals, opening, now)

        self._after_change(investment, "investment.withdrawn")
        return request, payout

    async def reject_withdrawal(
        self, withdrawal_id: UUID, actor: Actor, reason: Optional[str] = None
    ) -> WithdrawalRequest:
        """Decline an open request; the investment stays in ``withdrawal_notice``."""
        authorize_admin(actor, "reject withdrawals")
        investment_id = (await self._get_withdrawal(withdrawal_id)).investment_id
        async with self._locks.hold(investment_id):
            request = await self._get_withdrawal(withdrawal_id, refresh=True)
            withdrawal_engine.reject_withdrawal(request, reason, await self._now())
            await self._withdrawals.add(request)
            await self._commit(request.investment_id)
        cache.invalidate(self.CACHE_PREFIX)
        return request

    # ── Internal steps (caller holds the lock) ──

    async def _give_notice(
        self, investment: Investment, actor: Actor, now: datetime
    ) -> WithdrawalRequest:
        if investment.status == InvestmentStatus.WITHDRAWAL_NOTICE:
            open_request = await self._withdrawals.get_open(investment.id)
            if open_request is not None:
                return open_request
        else:
            transition(
                investment,
                InvestmentStatus.WITHDRAWAL_NOTICE,
                actor,
                now,
                TransitionOptions(notice_period=self._notice_period),
            )
        request = withdrawal_engine.quote(investment, now, self._rates)
        await self._withdrawals.add(request)
        await self._investments.add(investment)
        await self._commit(investment.id)
        return request

    async def _settle(
        self,
        investment: Investment,
        request: WithdrawalRequest,
        settlement_time: datetime,
        now: datetime,
        actor: Actor,
        override_lockup: bool,
    ) -> withdrawal_engine.FinalPayout:
        # Accruals are derived while the investment still earns; finalize() stops it.
        ledger = await self._ledger.get_by_investment(investment.id)
        accruals = ledger_engine.reconcile(
            investment,
            ledger,
            settlement_time,
            self._rates,
            await self._clock.auto_approve_enabled(),
            recorded_at=now,
        )
        opening = ledger_engine.missing_lifecycle_entries(investment, ledger, now)
        payout = withdrawal_engine.finalize(
            investment, request, settlement_time, self._rates, actor, override_lockup
        )
        await self._record_settlement(investment, request, payout, accruals, opening, now)
        return payout

    async def _record_settlement(
        self,
        investment: Investment,
        request: WithdrawalRequest,
        payout: withdrawal_engine.FinalPayout,
        accruals: ledger_engine.ReconcileResult,
        opening: List[LedgerEntry],
        now: datetime,
    ) -> None:
        investment.last_accrual_index = accruals.accrual_index
        closing = ledger_engine.withdrawal_entry(investment, payout, now)
        await self._ledger.add(*opening, *accruals.entries, closing)
        await self._withdrawals.add(request)
        await self._investments.add(investment)
        await self._commit(investment.id)
