"""Tests for quote domain models."""

from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError

from fixtures.quote_data import PICKUP, corporate_quote, vehicle_line
from lease_quote.models import (
    INHERITED,
    AddOnLine,
    Inherited,
    Overridden,
    PricingModel,
    Quote,
    QuoteStatus,
    VehicleLine,
)


class TestVehicleLine:
    """Test vehicle line invariants."""

    def test_return_must_follow_pickup(self):
        with pytest.raises(ValidationError, match="return_at must be after pickup_at"):
            vehicle_line(return_at=PICKUP)

    def test_negative_deposit_rejected(self):
        with pytest.raises(ValidationError):
            vehicle_line(deposit_amount=Decimal("-1"))

    def test_vin_is_normalized_to_upper_case(self):
        line = vehicle_line(vin="1hgbh41jxmn109186")
        assert line.vin == "1HGBH41JXMN109186"

    @pytest.mark.parametrize("vin", ["1HGBH41JXMN10918", "1HGBH41JXMN10918O", "IHGBH41JXMN109186"])
    def test_invalid_vin_rejected(self, vin):
        with pytest.raises(ValidationError):
            vehicle_line(vin=vin)

    def test_overridable_fields_default_to_inherited(self):
        line = vehicle_line()
        assert line.delivery_fee == INHERITED
        assert isinstance(line.maintenance_included, Inherited)

    def test_raw_values_become_overrides(self):
        """Falsy values are explicit overrides, None means inherit."""
        line = vehicle_line(
            delivery_fee=Decimal("0"),
            insurance_glass_tire_cover=False,
            pickup_location=None,
        )
        assert isinstance(line.delivery_fee, Overridden)
        assert line.delivery_fee.value == Decimal("0")
        assert isinstance(line.insurance_glass_tire_cover, Overridden)
        assert line.insurance_glass_tire_cover.value is False
        assert line.pickup_location == INHERITED

    def test_override_survives_dump_and_revalidate(self):
        line = vehicle_line(delivery_fee=Decimal("150"), pickup_type="customer_site")
        again = VehicleLine.model_validate(line.model_dump())
        assert again == line

    def test_lines_are_frozen(self):
        line = vehicle_line()
        with pytest.raises(ValidationError):
            line.monthly_rate = Decimal("1")


class TestAddOnLine:
    """Test add-on totals."""

    def test_total_is_quantity_times_unit_price(self):
        addon = AddOnLine(name="Child seat", quantity=Decimal("2"), unit_price=Decimal("45"))
        assert addon.total == Decimal("90")
        assert addon.pricing_model == PricingModel.MONTHLY

    def test_serialized_total_is_ignored_on_input(self):
        addon = AddOnLine(name="GPS", quantity=Decimal("1"), unit_price=Decimal("60"))
        data = addon.model_dump()
        assert data["total"] == Decimal("60")

        data["total"] = Decimal("999")
        again = AddOnLine.model_validate(data)
        assert again.total == Decimal("60")


class TestQuote:
    """Test quote header invariants."""

    def test_defaults(self):
        quote = Quote(customer_id="cust-001")
        assert quote.status == QuoteStatus.DRAFT
        assert quote.currency == "AED"
        assert quote.vat_percentage == Decimal("5")
        assert quote.is_corporate_lease
        assert not quote.is_locked
        assert quote.version == 1

    def test_currency_upper_cased(self):
        assert Quote(customer_id="c", currency="usd").currency == "USD"

    def test_line_numbers_must_be_contiguous(self):
        with pytest.raises(ValidationError, match="1..n"):
            Quote(customer_id="c", quote_items=[vehicle_line(1), vehicle_line(3)])

    def test_won_requires_reason(self):
        with pytest.raises(ValidationError, match="win/loss reason"):
            corporate_quote(status=QuoteStatus.WON)
        quote = corporate_quote(status=QuoteStatus.WON, win_loss_reason="Best price")
        assert quote.is_locked

    def test_valid_until_not_before_quote_date(self):
        with pytest.raises(ValidationError):
            corporate_quote(valid_until=date(2025, 11, 30))

    def test_vat_bounds(self):
        with pytest.raises(ValidationError):
            corporate_quote(vat_percentage=Decimal("101"))

    def test_line_lookup(self):
        quote = corporate_quote(lines=2)
        assert quote.line(2).line_no == 2
        assert quote.line(3) is None

    def test_full_quote_round_trips_through_dump(self):
        """Computed add-on totals do not block re-validation."""
        quote = corporate_quote(
            quote_items=[
                vehicle_line(
                    addons=[AddOnLine(name="GPS", unit_price=Decimal("60"))],
                    delivery_fee=Decimal("200"),
                )
            ]
        )
        assert Quote.model_validate(quote.model_dump()) == quote
