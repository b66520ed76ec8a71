"""
Unit tests for the valuation engine.

Scenario figures use a flat 1% monthly rate on $10,000 confirmed on
2024-01-01 and valued on 2024-04-01 (three whole months).
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from investment_engine.engine.clock import add_months
from investment_engine.engine.valuation import (
    RateTable,
    evaluate,
    period_earnings,
    project,
    round_cents,
)
from investment_engine.models.investment import InvestmentStatus, LockupPeriod, PaymentFrequency

from .conftest import CONFIRMED_AT, NOW, ONE_PERCENT, make_investment

STANDARD_RATES = RateTable.from_annual(one_year=Decimal("0.08"), three_year=Decimal("0.10"))


class TestEvaluate:
    def test_compounding_scenario(self):
        result = evaluate(make_investment(), NOW, ONE_PERCENT)

        assert result.elapsed_months == 3
        assert result.principal == Decimal("10000.00")
        assert result.current_value == Decimal("10303.01")
        assert result.total_earnings == Decimal("303.01")
        assert result.next_accrual_at == datetime(2024, 5, 1, tzinfo=timezone.utc)

    def test_monthly_scenario(self):
        investment = make_investment(payment_frequency=PaymentFrequency.MONTHLY)
        result = evaluate(investment, NOW, ONE_PERCENT)

        assert result.current_value == Decimal("10000.00")
        assert result.total_earnings == Decimal("300.00")

    def test_monthly_value_is_always_principal(self):
        investment = make_investment(payment_frequency=PaymentFrequency.MONTHLY)
        for months in range(0, 25):
            as_of = add_months(CONFIRMED_AT, months)
            assert evaluate(investment, as_of, STANDARD_RATES).current_value == Decimal("10000.00")

    def test_compounding_value_never_decreases(self):
        investment = make_investment(lockup_period=LockupPeriod.THREE_YEAR)
        values = [
            evaluate(investment, add_months(CONFIRMED_AT, m), STANDARD_RATES).current_value
            for m in range(0, 37)
        ]
        assert values == sorted(values)
        assert values[0] == Decimal("10000.00")

    def test_partial_month_does_not_accrue(self):
        as_of = datetime(2024, 1, 31, 23, 59, tzinfo=timezone.utc)
        result = evaluate(make_investment(), as_of, ONE_PERCENT)
        assert result.elapsed_months == 0
        assert result.total_earnings == Decimal("0.00")

    @pytest.mark.parametrize(
        "status", [InvestmentStatus.DRAFT, InvestmentStatus.PENDING, InvestmentStatus.REJECTED]
    )
    def test_non_earning_investment_is_worth_principal(self, status):
        result = evaluate(make_investment(status=status), NOW, ONE_PERCENT)
        assert result.current_value == Decimal("10000.00")
        assert result.total_earnings == Decimal("0.00")
        assert result.next_accrual_at is None

    def test_withdrawal_notice_keeps_earning(self):
        investment = make_investment(status=InvestmentStatus.WITHDRAWAL_NOTICE)
        assert evaluate(investment, NOW, ONE_PERCENT).current_value == Decimal("10303.01")


class TestPeriodEarnings:
    def test_compounding_periods_sum_to_total(self):
        investment = make_investment()
        total = sum(period_earnings(investment, k, STANDARD_RATES) for k in range(1, 13))
        at_twelve = evaluate(investment, add_months(CONFIRMED_AT, 12), STANDARD_RATES)
        assert total == at_twelve.total_earnings

    def test_monthly_period_is_rounded_once(self):
        investment = make_investment(payment_frequency=PaymentFrequency.MONTHLY)
        assert period_earnings(investment, 1, STANDARD_RATES) == Decimal("66.67")

    def test_period_zero_rejected(self):
        with pytest.raises(ValueError):
            period_earnings(make_investment(), 0, ONE_PERCENT)


class TestProjection:
    def test_defaults_to_lockup_term(self):
        assert project(make_investment(), STANDARD_RATES).months == 12
        three = make_investment(lockup_period=LockupPeriod.THREE_YEAR)
        assert project(three, STANDARD_RATES).months == 36

    def test_monthly_projection(self):
        investment = make_investment(payment_frequency=PaymentFrequency.MONTHLY)
        result = project(investment, STANDARD_RATES)
        assert result.total_earnings == Decimal("800.04")
        assert result.ending_value == Decimal("10000.00")

    def test_compounding_projection_matches_valuation(self):
        investment = make_investment()
        result = project(investment, ONE_PERCENT, months=3)
        assert result.ending_value == Decimal("10303.01")
        assert result.total_earnings == Decimal("303.01")

    def test_negative_horizon_rejected(self):
        with pytest.raises(ValueError):
            project(make_investment(), ONE_PERCENT, months=-1)


class TestRates:
    def test_monthly_rate_is_annual_over_twelve(self):
        assert STANDARD_RATES.monthly_rate(LockupPeriod.THREE_YEAR) == Decimal("0.10") / 12

    def test_round_cents_half_up(self):
        assert round_cents(Decimal("0.005")) == Decimal("0.01")
        assert round_cents(Decimal("2.675")) == Decimal("2.68")
