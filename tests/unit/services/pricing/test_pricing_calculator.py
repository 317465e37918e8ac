"""Tests for quote totals."""

from decimal import Decimal

import pytest

from fixtures.quote_data import corporate_quote, vehicle_line
from lease_quote.models import (
    AddOnLine,
    BillingPlan,
    InitialFee,
    LineDefaults,
    PricingModel,
    RateType,
)
from lease_quote.services.pricing import PricingCalculator, price_quote


class TestPriceQuote:
    """Test upfront, VAT and recurring totals."""

    def test_single_line_upfront(self, quote, settings):
        """3000/month, 1 month advance, 2500 deposit, 5% VAT."""
        totals = price_quote(quote, settings)

        assert totals.deposits == Decimal("2500")
        assert totals.advance_rent == Decimal("3000")
        assert totals.taxable_subtotal == Decimal("3000")
        assert totals.vat == Decimal("150")
        assert totals.grand_total == Decimal("5650")
        assert totals.upfront_due == Decimal("5650")
        assert totals.monthly_recurring_rental == Decimal("3000")
        assert totals.total_contract_value == Decimal("36000")
        assert totals.currency == "AED"

    def test_grand_total_identity(self, settings):
        quote = corporate_quote(
            lines=3,
            line_defaults=LineDefaults(
                delivery_fee=Decimal("200"), collection_fee=Decimal("150")
            ),
            initial_fees=[InitialFee(fee_type="registration", amount=Decimal("450"))],
        )
        totals = price_quote(quote, settings)

        assert totals.grand_total == totals.deposits + totals.taxable_subtotal + totals.vat
        assert totals.taxable_subtotal == (
            totals.advance_rent
            + totals.delivery_fees
            + totals.collection_fees
            + totals.initial_fees
            + totals.one_time_addons
        )
        assert totals.delivery_fees == Decimal("600")
        assert totals.collection_fees == Decimal("450")
        assert totals.initial_fees == Decimal("450")

    def test_deposits_are_never_taxed(self, settings):
        low = price_quote(corporate_quote(), settings)
        high = price_quote(
            corporate_quote(quote_items=[vehicle_line(deposit_amount=Decimal("10000"))]),
            settings,
        )
        assert high.vat == low.vat
        assert high.grand_total - low.grand_total == Decimal("7500")

    def test_add_ons_split_by_pricing_model(self, settings):
        line = vehicle_line(
            advance_rent_months=0,
            addons=[
                AddOnLine(name="GPS", unit_price=Decimal("60")),
                AddOnLine(
                    name="Branding",
                    pricing_model=PricingModel.ONE_TIME,
                    quantity=Decimal("2"),
                    unit_price=Decimal("500"),
                ),
            ],
        )
        totals = price_quote(corporate_quote(quote_items=[line]), settings)

        assert totals.one_time_addons == Decimal("1000")
        assert totals.vat == Decimal("50")
        assert totals.monthly_recurring_rental == Decimal("3060")
        assert totals.lines[0].monthly_addons == Decimal("60")

    def test_line_override_beats_header_fee(self, settings):
        quote = corporate_quote(
            lines=2,
            line_defaults=LineDefaults(delivery_fee=Decimal("200")),
        )
        items = list(quote.quote_items)
        items[1] = vehicle_line(2, delivery_fee=Decimal("0"))
        totals = price_quote(quote.model_copy(update={"quote_items": items}), settings)
        assert [ln.delivery_fee for ln in totals.lines] == [Decimal("200"), Decimal("0")]

    def test_billing_plan_changes_contract_value_by_whole_periods(self, settings):
        line = vehicle_line(return_at=vehicle_line().pickup_at.replace(month=11))
        quote = corporate_quote(quote_items=[line], billing_plan=BillingPlan.QUARTERLY)
        totals = price_quote(quote, settings)

        assert totals.lines[0].duration_months == 10
        assert totals.lines[0].billing_periods == 4
        assert totals.lines[0].per_period_rate == Decimal("9000")
        assert totals.total_contract_value == Decimal("36000")

    def test_empty_quote_totals_zero(self, settings):
        totals = price_quote(corporate_quote(lines=0), settings)
        assert totals.grand_total == Decimal("0")
        assert totals.lines == []


class TestEffectiveMonthlyRate:
    """Test rate type conversion."""

    @pytest.mark.parametrize(
        ("rate_type", "rate", "monthly"),
        [
            (RateType.MONTHLY, Decimal("3000"), Decimal("3000")),
            (RateType.WEEKLY, Decimal("600"), Decimal("2600")),
            (RateType.DAILY, Decimal("100"), Decimal("3000")),
        ],
    )
    def test_conversion(self, rate_type, rate, monthly):
        result = PricingCalculator.effective_monthly_rate(rate, rate_type, Decimal("30"))
        assert result.quantize(Decimal("0.01")) == monthly


class TestPresentation:
    """Test rounding for display."""

    def test_amounts_rounded_half_up(self, settings):
        line = vehicle_line(monthly_rate=Decimal("333.33"), deposit_amount=Decimal("0"))
        totals = price_quote(corporate_quote(quote_items=[line]), settings)
        assert totals.vat == Decimal("16.6665")

        shown = totals.for_presentation()
        assert shown.vat == Decimal("16.67")
        assert shown.grand_total == Decimal("350.00")
        assert shown.lines[0].advance_rent == Decimal("333.33")
