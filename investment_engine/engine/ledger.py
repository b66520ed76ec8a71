"""
Ledger reconciler.

Derives the ledger entries an investment *should* have from its status and
the time elapsed, compares them with the entries it *does* have, and returns
only the missing ones.  Callers persist the returned entries and the new
accrual index in one commit.

Reconciliation key: ``(investment_id, period_index, type)``.  At most one
entry ever exists per key, which makes :func:`reconcile` idempotent — calling
it again with the same or a later ``as_of`` only yields periods that have
newly elapsed.

Entry ids are deterministic:

    INV-<investment>            opening principal   (period 0)
    DIST-<investment>-<period>  monthly distribution
    CONT-<investment>-<period>  monthly contribution (compounding)
    WDR-<investment>            withdrawal payout   (no period)
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Iterable, List, Optional, Set, Tuple

from investment_engine.engine.clock import add_months, as_utc
from investment_engine.engine.payouts import initial_status
from investment_engine.engine.valuation import (
    RateTable,
    elapsed_months,
    period_earnings,
    principal_of,
)
from investment_engine.models.investment import (
    EARNING_STATUSES,
    Investment,
    InvestmentStatus,
    PaymentFrequency,
)
from investment_engine.models.ledger_entry import (
    ENTRY_ID_PREFIXES,
    LedgerEntry,
    LedgerEntryStatus,
    LedgerEntryType,
)

if TYPE_CHECKING:
    from investment_engine.engine.withdrawal import FinalPayout

logger = logging.getLogger(__name__)

OPENING_PERIOD = 0

LedgerKey = Tuple[int, Optional[int], LedgerEntryType]


@dataclass
class ReconcileResult:
    """New entries to persist, plus the accrual index to store with them."""

    entries: List[LedgerEntry] = field(default_factory=list)
    accrual_index: int = 0
    skipped_periods: List[int] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.entries)


def entry_id(entry_type: LedgerEntryType, investment_id: int, period: Optional[int] = None) -> str:
    prefix = ENTRY_ID_PREFIXES[LedgerEntryType(entry_type)]
    if entry_type in (LedgerEntryType.DISTRIBUTION, LedgerEntryType.CONTRIBUTION):
        return f"{prefix}-{investment_id}-{period}"
    return f"{prefix}-{investment_id}"


def accrual_type(investment: Investment) -> LedgerEntryType:
    if investment.payment_frequency == PaymentFrequency.MONTHLY:
        return LedgerEntryType.DISTRIBUTION
    return LedgerEntryType.CONTRIBUTION


def ledger_keys(ledger: Iterable[LedgerEntry]) -> Set[LedgerKey]:
    return {e.key for e in ledger}


def reconcile(
    investment: Investment,
    ledger: Iterable[LedgerEntry],
    as_of: datetime,
    rates: RateTable,
    auto_approve_distributions: bool = False,
    recorded_at: Optional[datetime] = None,
) -> ReconcileResult:
    """
    Accrual entries due for ``investment`` up to ``as_of`` and not yet in ``ledger``.

    Only ``active`` and ``withdrawal_notice`` investments accrue; for anything
    else the result is empty and the index is unchanged.  The investment
    itself is not modified.
    """
    current_index = investment.last_accrual_index or 0
    result = ReconcileResult(accrual_index=current_index)
    if investment.status not in EARNING_STATUSES or investment.confirmed_at is None:
        return result

    as_of = as_utc(as_of)
    recorded_at = as_utc(recorded_at) if recorded_at is not None else as_of
    confirmed_at = as_utc(investment.confirmed_at)
    elapsed = elapsed_months(investment, as_of)
    if elapsed <= current_index:
        return result

    entry_type = accrual_type(investment)
    existing = ledger_keys(ledger)

    for period in range(current_index + 1, elapsed + 1):
        if (investment.id, period, entry_type) in existing:
            result.skipped_periods.append(period)
            continue
        entry = LedgerEntry(
            id=entry_id(entry_type, investment.id, period),
            investment_id=investment.id,
            type=entry_type,
            amount=period_earnings(investment, period, rates),
            period_index=period,
            occurred_at=add_months(confirmed_at, period),
            recorded_at=recorded_at,
        )
        entry.status = initial_status(entry, auto_approve_distributions)
        result.entries.append(entry)

    if result.skipped_periods:
        logger.warning(
            "Investment %s: periods %s already in ledger; duplicates omitted",
            investment.id,
            result.skipped_periods,
            extra={"investment_id": investment.id},
        )
    result.accrual_index = elapsed
    logger.debug(
        "Investment %s: %d new %s entries through period %d",
        investment.id,
        len(result.entries),
        entry_type.value,
        elapsed,
    )
    return result


def opening_entry(investment: Investment, recorded_at: datetime) -> LedgerEntry:
    """The ``INV-<id>`` entry recording the principal received at activation."""
    if investment.status == InvestmentStatus.DRAFT or investment.confirmed_at is None:
        raise ValueError(f"Investment {investment.id} has not been confirmed")
    return LedgerEntry(
        id=entry_id(LedgerEntryType.INVESTMENT, investment.id),
        investment_id=investment.id,
        type=LedgerEntryType.INVESTMENT,
        amount=principal_of(investment),
        period_index=OPENING_PERIOD,
        status=LedgerEntryStatus.RECEIVED,
        occurred_at=as_utc(investment.confirmed_at),
        recorded_at=as_utc(recorded_at),
    )


def withdrawal_entry(
    investment: Investment, payout: "FinalPayout", recorded_at: datetime
) -> LedgerEntry:
    """The ``WDR-<id>`` entry recording a settled withdrawal payout."""
    return LedgerEntry(
        id=entry_id(LedgerEntryType.WITHDRAWAL, investment.id),
        investment_id=investment.id,
        type=LedgerEntryType.WITHDRAWAL,
        amount=payout.amount,
        period_index=None,
        status=LedgerEntryStatus.APPROVED,
        occurred_at=as_utc(payout.settled_at),
        recorded_at=as_utc(recorded_at),
    )


def missing_lifecycle_entries(
    investment: Investment, ledger: Iterable[LedgerEntry], recorded_at: datetime
) -> List[LedgerEntry]:
    """Opening entry for a confirmed investment whose ledger lacks one."""
    if investment.confirmed_at is None:
        return []
    key = (investment.id, OPENING_PERIOD, LedgerEntryType.INVESTMENT)
    if key in ledger_keys(ledger):
        return []
    return [opening_entry(investment, recorded_at)]
