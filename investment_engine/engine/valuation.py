"""
Valuation engine — what an investment is worth at a given instant.

Everything here is a pure function of its arguments: the investment record,
the instant to value it at, and the rate table.  No clock reads and no I/O,
so a valuation can be reproduced for any historical or time-machine instant.

Two payout regimes share one rate source:

* ``monthly`` — each month's interest (on the original principal) is paid
  out, so the value held stays at principal and ``total_earnings`` reports
  what has been distributed so far.
* ``compounding`` — each month's interest is retained, so the value grows as
  ``principal × (1 + rate) ^ months``.

Amounts are rounded to cents with ROUND_HALF_UP at the end of each
computation.  A monthly distribution is rounded once per period, so the
cumulative figure always equals the sum of the ledger's distribution entries.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Optional

from investment_engine.engine.clock import add_months, as_utc, whole_months_between
from investment_engine.models.investment import (
    EARNING_STATUSES,
    Investment,
    LockupPeriod,
    PaymentFrequency,
)

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
MONTHS_PER_YEAR = 12


def round_cents(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class RateTable:
    """Monthly interest rate per lockup term."""

    monthly_rates: Dict[LockupPeriod, Decimal]

    @classmethod
    def from_annual(cls, one_year: Decimal, three_year: Decimal) -> "RateTable":
        return cls(
            monthly_rates={
                LockupPeriod.ONE_YEAR: Decimal(one_year) / MONTHS_PER_YEAR,
                LockupPeriod.THREE_YEAR: Decimal(three_year) / MONTHS_PER_YEAR,
            }
        )

    @classmethod
    def flat(cls, monthly_rate: Decimal) -> "RateTable":
        """Same monthly rate for every lockup term."""
        return cls(monthly_rates={period: Decimal(monthly_rate) for period in LockupPeriod})

    def monthly_rate(self, lockup_period: LockupPeriod) -> Decimal:
        return self.monthly_rates[LockupPeriod(lockup_period)]


@dataclass(frozen=True)
class ValuationResult:
    """Point-in-time value of one investment."""

    investment_id: Optional[int]
    as_of: datetime
    principal: Decimal
    total_earnings: Decimal
    current_value: Decimal
    elapsed_months: int
    monthly_rate: Decimal
    next_accrual_at: Optional[datetime]


@dataclass(frozen=True)
class Projection:
    """Earnings an investment would produce over a horizon, if held throughout."""

    months: int
    principal: Decimal
    total_earnings: Decimal
    ending_value: Decimal
    monthly_rate: Decimal


def principal_of(investment: Investment) -> Decimal:
    return round_cents(Decimal(str(investment.amount)))


def compounded_value(principal: Decimal, monthly_rate: Decimal, months: int) -> Decimal:
    """``principal × (1 + rate) ^ months``, rounded to cents."""
    if months <= 0:
        return round_cents(principal)
    return round_cents(principal * (Decimal(1) + monthly_rate) ** months)


def monthly_distribution(principal: Decimal, monthly_rate: Decimal) -> Decimal:
    """One month's simple interest on the original principal."""
    return round_cents(principal * monthly_rate)


def elapsed_months(investment: Investment, as_of: datetime) -> int:
    """Whole accrual periods between confirmation and ``as_of``."""
    if investment.confirmed_at is None:
        return 0
    return whole_months_between(investment.confirmed_at, as_of)


def period_earnings(investment: Investment, period: int, rates: RateTable) -> Decimal:
    """
    Earnings attributable to accrual period ``period`` (1-based).

    For compounding investments this is the increment in rounded value, so the
    contributions of periods ``1..n`` sum exactly to ``value(n) - principal``.
    """
    if period < 1:
        raise ValueError(f"Accrual periods start at 1, got {period}")
    principal = principal_of(investment)
    rate = rates.monthly_rate(investment.lockup_period)
    if investment.payment_frequency == PaymentFrequency.MONTHLY:
        return monthly_distribution(principal, rate)
    return compounded_value(principal, rate, period) - compounded_value(principal, rate, period - 1)


def evaluate(investment: Investment, as_of: datetime, rates: RateTable) -> ValuationResult:
    """
    Value ``investment`` at ``as_of``.

    Investments that are not earning (draft, pending, rejected, withdrawn) are
    worth their principal with no earnings and no next accrual date.
    """
    as_of = as_utc(as_of)
    principal = principal_of(investment)
    rate = rates.monthly_rate(investment.lockup_period)

    if investment.status not in EARNING_STATUSES or investment.confirmed_at is None:
        return ValuationResult(
            investment_id=investment.id,
            as_of=as_of,
            principal=principal,
            total_earnings=ZERO,
            current_value=principal,
            elapsed_months=0,
            monthly_rate=rate,
            next_accrual_at=None,
        )

    confirmed_at = as_utc(investment.confirmed_at)
    months = whole_months_between(confirmed_at, as_of)

    if investment.payment_frequency == PaymentFrequency.MONTHLY:
        current_value = principal
        total_earnings = monthly_distribution(principal, rate) * months
    else:
        current_value = compounded_value(principal, rate, months)
        total_earnings = current_value - principal

    return ValuationResult(
        investment_id=investment.id,
        as_of=as_of,
        principal=principal,
        total_earnings=total_earnings,
        current_value=current_value,
        elapsed_months=months,
        monthly_rate=rate,
        next_accrual_at=add_months(confirmed_at, months + 1),
    )


def project(
    investment: Investment, rates: RateTable, months: Optional[int] = None
) -> Projection:
    """
    Project earnings over ``months`` (default: the full lockup term).

    Ignores status and dates: this answers "what does this term pay if held
    to the end", as shown to an investor before they commit.
    """
    if months is None:
        months = LockupPeriod(investment.lockup_period).years * MONTHS_PER_YEAR
    if months < 0:
        raise ValueError(f"Projection horizon must not be negative, got {months}")
    principal = principal_of(investment)
    rate = rates.monthly_rate(investment.lockup_period)

    if investment.payment_frequency == PaymentFrequency.MONTHLY:
        earnings = monthly_distribution(principal, rate) * months
        ending_value = principal
    else:
        ending_value = compounded_value(principal, rate, months)
        earnings = ending_value - principal

    return Projection(
        months=months,
        principal=principal,
        total_earnings=earnings,
        ending_value=ending_value,
        monthly_rate=rate,
    )
