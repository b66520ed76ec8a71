"""
Unit tests for investment-term validation and the account-type lock.
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from investment_engine.core.exceptions import AccountTypeMismatch, ValidationError
from investment_engine.engine.terms import (
    check_account_type_lock,
    default_payment_method,
    locked_account_type,
    validate_terms,
)
from investment_engine.models.account import AccountType
from investment_engine.models.investment import InvestmentStatus, PaymentFrequency, PaymentMethod

from .conftest import make_investment


class TestValidateTerms:
    def test_valid_terms_return_normalised_method(self):
        method = validate_terms(
            Decimal("5000"), AccountType.INDIVIDUAL, PaymentFrequency.MONTHLY, "ACH"
        )
        assert method == PaymentMethod.ACH

    def test_below_minimum(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_terms(Decimal("990"), AccountType.INDIVIDUAL, PaymentFrequency.MONTHLY)
        assert "Minimum investment is $1,000" in exc_info.value.message

    def test_increment(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_terms(Decimal("1005"), AccountType.INDIVIDUAL, PaymentFrequency.MONTHLY)
        assert "$10 increments" in exc_info.value.message

    def test_reports_every_problem(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_terms(Decimal("995"), AccountType.IRA, PaymentFrequency.MONTHLY, "ach")
        fields = [d["field"] for d in exc_info.value.details]
        assert fields == ["amount", "amount", "payment_frequency", "payment_method"]
        assert exc_info.value.status_code == 422

    def test_ira_requires_wire(self):
        with pytest.raises(ValidationError, match="IRA accounts must use wire transfer"):
            validate_terms(Decimal("5000"), AccountType.IRA, PaymentFrequency.COMPOUNDING, "ach")

    def test_large_amounts_require_wire(self):
        with pytest.raises(ValidationError, match="must use wire transfer"):
            validate_terms(
                Decimal("100010"), AccountType.ENTITY, PaymentFrequency.COMPOUNDING, "ach"
            )
        assert (
            validate_terms(
                Decimal("100000"), AccountType.ENTITY, PaymentFrequency.COMPOUNDING, "ach"
            )
            == PaymentMethod.ACH
        )

    def test_unknown_method(self):
        with pytest.raises(ValidationError, match="Unknown payment method"):
            validate_terms(Decimal("5000"), AccountType.JOINT, PaymentFrequency.MONTHLY, "cheque")


class TestDefaultPaymentMethod:
    def test_defaults(self):
        assert default_payment_method(AccountType.IRA, Decimal("5000")) == PaymentMethod.WIRE
        assert default_payment_method(AccountType.JOINT, Decimal("250000")) == PaymentMethod.WIRE
        assert default_payment_method(AccountType.JOINT, Decimal("5000")) == PaymentMethod.ACH


class TestAccountTypeLock:
    def test_unrestricted_without_locking_investments(self):
        drafts = [make_investment(status=InvestmentStatus.DRAFT, account_type=AccountType.IRA)]
        assert locked_account_type(drafts) is None
        check_account_type_lock(AccountType.INDIVIDUAL, drafts)

    def test_pending_takes_precedence_over_active(self):
        existing = [
            make_investment(
                id=1,
                status=InvestmentStatus.ACTIVE,
                account_type=AccountType.JOINT,
                created_at=datetime(2024, 3, 1, tzinfo=timezone.utc),
            ),
            make_investment(
                id=2,
                status=InvestmentStatus.PENDING,
                account_type=AccountType.INDIVIDUAL,
                created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
            ),
        ]
        assert locked_account_type(existing) == AccountType.INDIVIDUAL

    def test_mismatch_raises(self):
        existing = [make_investment(status=InvestmentStatus.ACTIVE)]
        with pytest.raises(AccountTypeMismatch):
            check_account_type_lock(AccountType.IRA, existing)
