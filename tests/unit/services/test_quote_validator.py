"""Tests for per-step wizard validation rules."""

from decimal import Decimal

import pytest

from fixtures.quote_data import quote_draft
from lease_quote.services.quote_validator import (
    STEP_ORDER,
    _apply_validation_rule,
    is_step_complete,
    to_validation_errors,
    validate,
)


def _line(**changes):
    line = dict(quote_draft()["quote_items"][0])
    line.update(changes)
    return line


class TestValidationRules:
    """Test individual rules."""

    def test_required_treats_zero_and_false_as_answers(self):
        assert _apply_validation_rule("vat_percentage", 0, "required", None, {}) is None
        assert _apply_validation_rule("invoice_consolidation", False, "required", None, {}) is None
        assert _apply_validation_rule("customer_id", "", "required", None, {}) == "Customer is required"

    def test_in_rule(self):
        error = _apply_validation_rule("billing_plan", "weekly", "in", "monthly,quarterly", {})
        assert error == "Billing plan must be one of: monthly, quarterly"

    def test_numeric_bounds(self):
        assert _apply_validation_rule("vat_percentage", "abc", "min", "0", {}) == "VAT % must be a number"
        assert _apply_validation_rule("vat_percentage", Decimal("-1"), "min", "0", {})
        assert _apply_validation_rule("vat_percentage", Decimal("100.5"), "max", "100", {})
        assert _apply_validation_rule("monthly_rate", 0, "gt", "0", {}) == "Rate must be greater than 0"

    def test_date_rules(self):
        assert _apply_validation_rule("quote_date", "2026-13-01", "date", None, {})
        context = {"pickup_at": "2026-01-01"}
        assert _apply_validation_rule("return_at", "2026-01-01", "after", "pickup_at", context)
        assert _apply_validation_rule("return_at", "2026-01-02", "after", "pickup_at", context) is None

    def test_vin_rule_messages(self):
        assert _apply_validation_rule("vin", "ABC", "vin", None, {}) == "VIN must be exactly 17 characters"
        assert (
            _apply_validation_rule("vin", "1HGBH41JXMN10918Q", "vin", None, {})
            == "VIN cannot contain I, O, or Q per ISO 3779"
        )

    def test_required_if(self):
        context = {"invoice_consolidation": True}
        assert _apply_validation_rule(
            "invoice_to_email", None, "required_if", "invoice_consolidation=true", context
        )
        context = {"invoice_consolidation": False}
        assert (
            _apply_validation_rule(
                "invoice_to_email", None, "required_if", "invoice_consolidation=true", context
            )
            is None
        )


class TestValidateStep:
    """Test whole-step validation."""

    @pytest.mark.parametrize("step", STEP_ORDER)
    def test_complete_draft_passes_every_step(self, step):
        assert validate(step, quote_draft()) == {}
        assert is_step_complete(step, quote_draft())

    def test_header_requires_customer(self):
        errors = validate("header", quote_draft(customer_id=None))
        assert errors == {"customer_id": "Customer is required"}

    def test_won_requires_reason(self):
        errors = validate("header", quote_draft(status="won"))
        assert "win_loss_reason" in errors

    def test_financials_nested_deposit(self):
        draft = quote_draft(line_defaults={"deposit_amount": Decimal("-5")})
        errors = validate("financials", draft)
        assert errors["line_defaults.deposit_amount"] == (
            "Deposit amount per vehicle cannot be less than 0"
        )

    def test_consolidated_invoices_need_email(self):
        errors = validate("financials", quote_draft(invoice_consolidation=True))
        assert "invoice_to_email" in errors
        errors = validate(
            "financials",
            quote_draft(invoice_consolidation=True, invoice_to_email="not-an-email"),
        )
        assert errors["invoice_to_email"] == "Invoice email must be a valid email address"

    def test_vehicles_need_a_line(self):
        errors = validate("vehicles", quote_draft(quote_items=[]))
        assert errors == {"quote_items": "At least 1 vehicle line is required"}

    def test_line_errors_are_keyed_by_line(self):
        draft = quote_draft(
            quote_items=[
                _line(),
                _line(
                    line_no=2,
                    vehicle_class_id=None,
                    return_at="2025-12-31",
                    monthly_rate=Decimal("0"),
                ),
            ]
        )
        errors = validate("vehicles", draft)
        assert errors == {
            "line_2_vehicle": "Line 2: Vehicle category or specific vehicle is required",
            "line_2_return_at": "Line 2: Return date must be after pickup date",
            "line_2_monthly_rate": "Line 2: Rate must be greater than 0",
        }

    def test_summary_runs_every_step(self):
        draft = quote_draft(customer_id="", payment_method=None, quote_items=[])
        assert set(validate("summary", draft)) == {
            "customer_id",
            "payment_method",
            "quote_items",
        }

    def test_validation_is_deterministic(self):
        draft = quote_draft(customer_id="", currency="dirham")
        assert validate("header", draft) == validate("header", draft)

    def test_unknown_step(self):
        assert validate("pricing", quote_draft()) == {"step": "Unknown wizard step: pricing"}


class TestToValidationErrors:
    """Test conversion to structured errors."""

    def test_line_keys_carry_line_number(self):
        errors = to_validation_errors(
            "vehicles",
            {
                "line_3_monthly_rate": "Line 3: Rate must be greater than 0",
                "quote_items": "At least 1 vehicle line is required",
            },
        )
        assert errors[0].line_no == 3
        assert errors[0].field == "monthly_rate"
        assert errors[0].step == "vehicles"
        assert errors[1].line_no is None
        assert errors[1].field == "quote_items"
