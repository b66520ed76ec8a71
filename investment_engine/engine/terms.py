"""
Investment terms validation.

Checked when a draft is created and again when it is submitted:

- the amount meets the minimum and is a whole multiple of the increment,
- IRA accounts cannot take monthly payouts (earnings must stay in the account),
- IRA accounts and amounts above the wire threshold must be funded by wire.

All problems are collected and reported together in one
:class:`ValidationError` so a form can highlight every bad field at once.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, List, Optional, Union

from investment_engine.core.exceptions import AccountTypeMismatch, ValidationError
from investment_engine.models.account import AccountType
from investment_engine.models.investment import (
    Investment,
    InvestmentStatus,
    PaymentFrequency,
    PaymentMethod,
)

# An owner with an investment in one of these statuses is held to its account type.
ACCOUNT_TYPE_LOCKING_STATUSES = (InvestmentStatus.PENDING, InvestmentStatus.ACTIVE)


@dataclass(frozen=True)
class TermLimits:
    min_amount: Decimal = Decimal("1000")
    increment: Decimal = Decimal("10")
    wire_required_above: Decimal = Decimal("100000")


DEFAULT_LIMITS = TermLimits()


def normalize_payment_method(
    method: Union[PaymentMethod, str, None],
) -> Optional[PaymentMethod]:
    """Accept ``"ACH"``, ``"wire"``, ``PaymentMethod.WIRE`` ... ; ``None`` stays ``None``."""
    if method is None or isinstance(method, PaymentMethod):
        return method
    try:
        return PaymentMethod(str(method).strip().lower())
    except ValueError:
        raise ValidationError(
            f"Unknown payment method '{method}'",
            details=[{"field": "payment_method", "message": "must be 'ach' or 'wire'"}],
        )


def validate_terms(
    amount: Decimal,
    account_type: AccountType,
    payment_frequency: PaymentFrequency,
    payment_method: Union[PaymentMethod, str, None] = None,
    limits: TermLimits = DEFAULT_LIMITS,
) -> Optional[PaymentMethod]:
    """
    Validate one set of investment terms.

    Returns the normalised payment method.  Raises :class:`ValidationError`
    listing every violated rule.
    """
    problems: List[dict] = []
    amount = Decimal(str(amount))
    method = normalize_payment_method(payment_method)

    if amount < limits.min_amount:
        problems.append(
            {"field": "amount", "message": f"Minimum investment is ${limits.min_amount:,}"}
        )
    if amount % limits.increment != 0:
        problems.append(
            {
                "field": "amount",
                "message": f"Investment amount must be in ${limits.increment} increments",
            }
        )
    if account_type == AccountType.IRA and payment_frequency == PaymentFrequency.MONTHLY:
        problems.append(
            {
                "field": "payment_frequency",
                "message": "IRA accounts must use compounding payment frequency",
            }
        )
    if method == PaymentMethod.ACH:
        if account_type == AccountType.IRA:
            problems.append(
                {"field": "payment_method", "message": "IRA accounts must use wire transfer"}
            )
        elif amount > limits.wire_required_above:
            problems.append(
                {
                    "field": "payment_method",
                    "message": (
                        f"Investments above ${limits.wire_required_above:,} "
                        f"must use wire transfer"
                    ),
                }
            )

    if problems:
        raise ValidationError(
            "; ".join(p["message"] for p in problems),
            details=problems,
        )
    return method


def validate_investment(investment: Investment, limits: TermLimits = DEFAULT_LIMITS) -> None:
    """Validate the terms currently recorded on ``investment``."""
    investment.payment_method = validate_terms(
        investment.amount,
        investment.account_type,
        investment.payment_frequency,
        investment.payment_method,
        limits,
    )


def default_payment_method(account_type: AccountType, amount: Decimal,
                           limits: TermLimits = DEFAULT_LIMITS) -> PaymentMethod:
    """Wire where it is mandatory, ACH otherwise."""
    if account_type == AccountType.IRA or Decimal(str(amount)) > limits.wire_required_above:
        return PaymentMethod.WIRE
    return PaymentMethod.ACH


def locked_account_type(existing: Iterable[Investment]) -> Optional[AccountType]:
    """
    Account type an owner is restricted to by their existing investments.

    Pending investments take precedence over active ones; within a status the
    most recently created wins.  ``None`` means the owner is unrestricted.
    """
    existing = list(existing)
    for status in ACCOUNT_TYPE_LOCKING_STATUSES:
        matches = sorted(
            (inv for inv in existing if inv.status == status),
            key=lambda inv: inv.created_at,
            reverse=True,
        )
        if matches:
            return matches[0].account_type
    return None


def check_account_type_lock(account_type: AccountType, existing: Iterable[Investment]) -> None:
    """Raise :class:`AccountTypeMismatch` if ``account_type`` conflicts with the owner's lock."""
    locked = locked_account_type(existing)
    if locked is not None and locked != account_type:
        raise AccountTypeMismatch(
            f"Owner already holds a {locked.value} investment; new investments "
            f"must also be {locked.value}"
        )
