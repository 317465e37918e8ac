"""Tests for billing period conversion."""

from datetime import date
from decimal import Decimal

import pytest

from lease_quote.models import BillingPlan
from lease_quote.services.pricing import BillingPeriodConverter


class TestDurationMonths:
    """Test contract month counting."""

    @pytest.mark.parametrize(
        ("pickup", "ret", "months"),
        [
            (date(2026, 1, 1), date(2027, 1, 1), 12),
            (date(2026, 1, 1), date(2026, 1, 15), 1),
            (date(2026, 1, 15), date(2026, 3, 20), 3),
            (date(2026, 1, 31), date(2026, 2, 28), 1),
            (date(2026, 1, 1), date(2026, 1, 1), 0),
            (date(2026, 2, 1), date(2026, 1, 1), 0),
        ],
    )
    def test_duration(self, pickup, ret, months):
        assert BillingPeriodConverter.duration_months(pickup, ret) == months


class TestBillingPeriods:
    """Test billing period counts."""

    def test_partial_period_rounds_up(self):
        result = BillingPeriodConverter.billing_periods(BillingPlan.QUARTERLY, 10)
        assert result.is_ok()
        assert result.unwrap() == 4

    @pytest.mark.parametrize(
        ("plan", "periods"),
        [
            (BillingPlan.MONTHLY, 24),
            (BillingPlan.QUARTERLY, 8),
            (BillingPlan.SEMI_ANNUAL, 4),
            (BillingPlan.ANNUAL, 2),
        ],
    )
    def test_whole_periods(self, plan, periods):
        assert BillingPeriodConverter.billing_periods(plan, 24).unwrap() == periods

    def test_zero_duration_has_no_periods(self):
        assert BillingPeriodConverter.billing_periods(BillingPlan.ANNUAL, 0).unwrap() == 0

    def test_negative_duration_is_an_error(self):
        result = BillingPeriodConverter.billing_periods(BillingPlan.MONTHLY, -1)
        assert result.is_err()
        assert result.unwrap_err().field == "duration_months"

    def test_contract_value_bills_whole_periods(self):
        per_period = BillingPeriodConverter.per_period_rate(Decimal("3000"), BillingPlan.QUARTERLY)
        assert per_period == Decimal("9000")
        value = BillingPeriodConverter.line_contract_value(per_period, BillingPlan.QUARTERLY, 10)
        assert value.unwrap() == Decimal("36000")
