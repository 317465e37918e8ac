"""Declarative per-step validation of quote drafts.

Each wizard step declares its rules as strings (``"required"``,
``"in:monthly,quarterly"``, ``"after:pickup_at"``, ...). Rules run in
declaration order per field and the first failing rule is the field's
error, so re-validating an unchanged draft always yields the same map
whatever order fields were edited in.
"""

import re
from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Final

from beartype import beartype
from pydantic import Field

from ..core.errors import ValidationError
from ..models.base import BaseModelConfig
from ..models.quote import (
    BillingPlan,
    DepositType,
    QuoteStatus,
    QuoteType,
    RateType,
    is_valid_vin,
)

_EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")


def _choices(enum: type[Enum]) -> str:
    return ",".join(str(member.value) for member in enum)


class WizardStep(BaseModelConfig):
    """Individual wizard step configuration."""

    step_id: str
    title: str
    validations: dict[str, list[str]] = Field(default_factory=dict)
    line_validations: dict[str, list[str]] = Field(
        default_factory=dict, description="Rules applied to every vehicle line"
    )
    includes: tuple[str, ...] = Field(
        default=(), description="Steps whose rules this step re-runs"
    )
    next_step: str | None = None
    previous_step: str | None = None


WIZARD_STEPS: Final[dict[str, WizardStep]] = {
    "header": WizardStep(
        step_id="header",
        title="Quote Header",
        validations={
            "customer_id": ["required"],
            "quote_date": ["required", "date"],
            "quote_type": ["required", f"in:{_choices(QuoteType)}"],
            "currency": ["required", "regex:^[A-Za-z]{3}$"],
            "status": [f"in:{_choices(QuoteStatus)}"],
            "win_loss_reason": ["required_if:status=won|lost"],
            "valid_until": ["date"],
        },
        next_step="financials",
    ),
    "financials": WizardStep(
        step_id="financials",
        title="Financials",
        validations={
            "payment_terms_id": ["required"],
            "billing_plan": ["required", f"in:{_choices(BillingPlan)}"],
            "billing_start_date": ["required", "date"],
            "vat_percentage": ["required", "min:0", "max:100"],
            "deposit_type": ["required", f"in:{_choices(DepositType)}"],
            "line_defaults.deposit_amount": ["required", "min:0"],
            "line_defaults.advance_rent_months": ["min:0"],
            "payment_method": ["required"],
            "invoice_to_email": ["required_if:invoice_consolidation=true", "email"],
            "annual_escalation_percentage": ["min:0", "max:100"],
        },
        next_step="vehicles",
        previous_step="header",
    ),
    "vehicles": WizardStep(
        step_id="vehicles",
        title="Vehicle Lines",
        validations={
            "quote_items": ["min_items:1"],
        },
        line_validations={
            "vehicle": ["required_any:vehicle_id,vehicle_class_id"],
            "vin": ["vin"],
            "pickup_at": ["required", "date"],
            "return_at": ["required", "date", "after:pickup_at"],
            "monthly_rate": ["required", "gt:0"],
            "rate_type": [f"in:{_choices(RateType)}"],
            "deposit_amount": ["min:0"],
            "advance_rent_months": ["min:0"],
        },
        next_step="summary",
        previous_step="financials",
    ),
    "summary": WizardStep(
        step_id="summary",
        title="Summary",
        includes=("header", "financials", "vehicles"),
        previous_step="vehicles",
    ),
}

STEP_ORDER: Final[tuple[str, ...]] = ("header", "financials", "vehicles", "summary")

_LABELS: Final[dict[str, str]] = {
    "customer_id": "Customer",
    "quote_date": "Quote date",
    "quote_type": "Quote type",
    "currency": "Currency",
    "status": "Status",
    "win_loss_reason": "Win/Loss reason",
    "valid_until": "Valid until",
    "payment_terms_id": "Payment terms",
    "billing_plan": "Billing plan",
    "billing_start_date": "Billing start date",
    "vat_percentage": "VAT %",
    "deposit_type": "Deposit type",
    "line_defaults.deposit_amount": "Deposit amount per vehicle",
    "line_defaults.advance_rent_months": "Advance rent months",
    "payment_method": "Payment method",
    "invoice_to_email": "Invoice email",
    "annual_escalation_percentage": "Annual escalation %",
    "quote_items": "Vehicle lines",
    "vehicle": "Vehicle category or specific vehicle",
    "vin": "VIN",
    "pickup_at": "Pickup date",
    "return_at": "Return date",
    "monthly_rate": "Rate",
    "rate_type": "Rate type",
    "deposit_amount": "Deposit",
    "advance_rent_months": "Advance rent months",
}


def _label(field: str) -> str:
    return _LABELS.get(field, field.replace("_", " ").capitalize())


def _lookup(data: Mapping[str, Any], path: str) -> Any:
    """Read a possibly dotted key from nested mappings."""
    current: Any = data
    for part in path.split("."):
        if not isinstance(current, Mapping):
            return None
        current = current.get(part)
    return current


def _is_blank(value: Any) -> bool:
    # 0 and False are real answers, not missing ones
    return value is None or value == "" or value == [] or value == {}


def _as_text(value: Any) -> str:
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, bool):
        return str(value).lower()
    return str(value)


def _as_decimal(value: Any) -> Decimal | None:
    if isinstance(value, bool):
        return None
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    return number if number.is_finite() else None


def _as_date(value: Any) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value)
        except ValueError:
            return None
    return None


@beartype
def _apply_validation_rule(
    field: str,
    value: Any,
    rule: str,
    rule_value: str | None,
    context: Mapping[str, Any],
) -> str | None:
    """Apply a single validation rule.

    ``context`` is the mapping the field lives in (the draft, or one vehicle
    line) and is used by the conditional and cross-field rules.
    """
    label = _label(field)

    if rule == "required" and _is_blank(value):
        return f"{label} is required"

    if rule == "required_if" and rule_value and _is_blank(value):
        other, _, expected = rule_value.partition("=")
        other_value = _lookup(context, other)
        if other_value is not None and _as_text(other_value) in expected.split("|"):
            return (
                f"{label} is required when {_label(other).lower()} "
                f"is {_as_text(other_value)}"
            )

    if rule == "required_any" and rule_value:
        if all(_is_blank(context.get(name)) for name in rule_value.split(",")):
            return f"{label} is required"

    if rule == "min_items" and rule_value:
        minimum = int(rule_value)
        if not isinstance(value, list) or len(value) < minimum:
            return f"At least {minimum} vehicle line is required"

    if _is_blank(value):
        return None

    if rule == "in" and rule_value:
        allowed_values = rule_value.split(",")
        if _as_text(value) not in allowed_values:
            return f"{label} must be one of: {', '.join(allowed_values)}"

    if rule in ("min", "max", "gt") and rule_value:
        number = _as_decimal(value)
        if number is None:
            return f"{label} must be a number"
        bound = Decimal(rule_value)
        if rule == "min" and number < bound:
            return f"{label} cannot be less than {rule_value}"
        if rule == "max" and number > bound:
            return f"{label} cannot be more than {rule_value}"
        if rule == "gt" and number <= bound:
            return f"{label} must be greater than {rule_value}"

    if rule == "date" and _as_date(value) is None:
        return f"{label} must be a valid date (YYYY-MM-DD)"

    if rule == "after" and rule_value:
        other_value = _as_date(_lookup(context, rule_value))
        this_value = _as_date(value)
        if other_value is not None and this_value is not None:
            if this_value <= other_value:
                return f"{label} must be after {_label(rule_value).lower()}"

    if rule == "length" and rule_value:
        expected_length = int(rule_value)
        if len(str(value)) != expected_length:
            return f"{label} must be exactly {expected_length} characters"

    if rule == "regex" and rule_value:
        if not re.match(rule_value, str(value)):
            return f"{label} format is invalid"

    if rule == "email":
        if not _EMAIL_PATTERN.match(str(value)):
            return f"{label} must be a valid email address"

    if rule == "vin":
        vin = str(value)
        if len(vin) != 17:
            return "VIN must be exactly 17 characters"
        if not is_valid_vin(vin):
            return "VIN cannot contain I, O, or Q per ISO 3779"

    return None


def _first_error(
    field: str, rules: list[str], value: Any, context: Mapping[str, Any]
) -> str | None:
    for rule in rules:
        rule_name, _, rule_value = rule.partition(":")
        error = _apply_validation_rule(
            field, value, rule_name, rule_value or None, context
        )
        if error:
            return error
    return None


def _validate_own_rules(step: WizardStep, draft: Mapping[str, Any]) -> dict[str, str]:
    errors: dict[str, str] = {}
    for field, rules in step.validations.items():
        error = _first_error(field, rules, _lookup(draft, field), draft)
        if error:
            errors[field] = error

    if step.line_validations:
        items = draft.get("quote_items") or []
        for index, line in enumerate(items):
            if not isinstance(line, Mapping):
                continue
            line_no = line.get("line_no") or index + 1
            for field, rules in step.line_validations.items():
                value = line.get(field) if field != "vehicle" else None
                error = _first_error(field, rules, value, line)
                if error:
                    errors[f"line_{line_no}_{field}"] = f"Line {line_no}: {error}"
    return errors


@beartype
def validate(step: str, draft: Mapping[str, Any]) -> dict[str, str]:
    """Validate a draft against one wizard step.

    Args:
        step: One of ``header``, ``financials``, ``vehicles``, ``summary``
        draft: Raw wizard data; vehicle lines under ``quote_items``

    Returns:
        Map of field key to error message; empty when the step is complete.
        Line fields are keyed ``line_<n>_<field>``.
    """
    wizard_step = WIZARD_STEPS.get(step)
    if wizard_step is None:
        return {"step": f"Unknown wizard step: {step}"}

    errors: dict[str, str] = {}
    for included in wizard_step.includes:
        errors.update(_validate_own_rules(WIZARD_STEPS[included], draft))
    errors.update(_validate_own_rules(wizard_step, draft))
    return errors


@beartype
def is_step_complete(step: str, draft: Mapping[str, Any]) -> bool:
    """A step is complete when it has no validation errors."""
    return not validate(step, draft)


_LINE_KEY = re.compile(r"^line_(\d+)_(.+)$")


@beartype
def to_validation_errors(step: str, errors: Mapping[str, str]) -> list[ValidationError]:
    """Convert an error map into structured errors."""
    result = []
    for key, message in errors.items():
        match = _LINE_KEY.match(key)
        if match:
            result.append(
                ValidationError(
                    message=message,
                    field=match.group(2),
                    line_no=int(match.group(1)),
                    step=step,
                )
            )
        else:
            result.append(ValidationError(message=message, field=key, step=step))
    return result
