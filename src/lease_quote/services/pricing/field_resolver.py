"""Three-level default resolution for vehicle line fields.

A line field resolves to the line's own override when there is one, else
to the quote header default, else to the system default from settings.
Resolution is recomputed on every read; nothing resolved is ever written
back onto the line, so header edits made after a line was added still
flow through to every line that inherits them.
"""

from datetime import date
from decimal import Decimal
from typing import Any

from beartype import beartype
from pydantic import Field
from pydantic.types import UUID4

from ...core.config import Settings, get_settings
from ...core.errors import ValidationError
from ...core.result_types import Err, Ok, Result
from ...models.base import BaseModelConfig
from ...models.overrides import INHERITED, Inherited, Overridden
from ...models.quote import (
    OVERRIDABLE_LINE_FIELDS,
    AddOnLine,
    BillingPlan,
    HandoverType,
    InitialFee,
    LineDefaults,
    Quote,
    RateType,
    VehicleLine,
)


@beartype
def resolve(
    line_value: Inherited | Overridden, header_default: Any, system_default: Any
) -> Any:
    """Resolve one field.

    Args:
        line_value: The line's override, or ``Inherited``
        header_default: Header value, ``None`` when the header leaves it unset
        system_default: Fallback from settings

    Returns:
        The override value even when falsy, else the header default when
        defined, else the system default
    """
    if isinstance(line_value, Overridden):
        return line_value.value
    if header_default is not None:
        return header_default
    return system_default


@beartype
def is_customized(line_value: Inherited | Overridden, header_default: Any) -> bool:
    """Check if a line overrides a field with a value other than the header's."""
    return isinstance(line_value, Overridden) and line_value.value != header_default


@beartype
def customized_fields(line: VehicleLine, defaults: LineDefaults) -> list[str]:
    """List the overridable fields a line customizes, in declaration order."""
    return [
        name
        for name in OVERRIDABLE_LINE_FIELDS
        if is_customized(getattr(line, name), getattr(defaults, name))
    ]


@beartype
def reset_field(line: VehicleLine, field: str) -> Result[VehicleLine, ValidationError]:
    """Drop a line-level override so the field inherits again."""
    if field not in OVERRIDABLE_LINE_FIELDS:
        return Err(
            ValidationError(
                message=f"Field '{field}' cannot be inherited from the quote header",
                field=field,
                line_no=line.line_no,
            )
        )
    return Ok(line.model_copy(update={field: INHERITED}))


class ResolvedVehicleLine(BaseModelConfig):
    """A vehicle line with every inheritable field resolved to a value."""

    line_no: int
    vehicle_id: str | None
    vehicle_class_id: str | None
    pickup_at: date
    return_at: date
    monthly_rate: Decimal
    rate_type: RateType
    mileage_package_km: int | None
    excess_km_rate: Decimal | None
    deposit_amount: Decimal
    advance_rent_months: int
    addons: list[AddOnLine] = Field(default_factory=list)

    insurance_coverage_package: str
    insurance_excess_amount: Decimal
    insurance_glass_tire_cover: bool
    insurance_pai_enabled: bool
    maintenance_included: bool
    maintenance_package: str
    monthly_maintenance_cost: Decimal
    pickup_location: str
    pickup_type: HandoverType
    delivery_fee: Decimal
    return_location: str
    return_type: HandoverType
    collection_fee: Decimal


class ResolvedQuote(BaseModelConfig):
    """Pricing view of a quote: header figures plus resolved lines."""

    quote_id: UUID4
    currency: str
    vat_percentage: Decimal
    billing_plan: BillingPlan
    lines: list[ResolvedVehicleLine] = Field(default_factory=list)
    initial_fees: list[InitialFee] = Field(default_factory=list)


@beartype
def resolve_line(
    line: VehicleLine, defaults: LineDefaults, settings: Settings | None = None
) -> ResolvedVehicleLine:
    """Resolve every inheritable field of a line against header and system defaults."""
    settings = settings or get_settings()
    resolved = {
        name: resolve(
            getattr(line, name),
            getattr(defaults, name),
            getattr(settings, f"default_{name}"),
        )
        for name in OVERRIDABLE_LINE_FIELDS
    }
    mileage = line.mileage_package_km
    excess_rate = line.excess_km_rate
    return ResolvedVehicleLine(
        line_no=line.line_no,
        vehicle_id=line.vehicle_id,
        vehicle_class_id=line.vehicle_class_id,
        pickup_at=line.pickup_at,
        return_at=line.return_at,
        monthly_rate=line.monthly_rate,
        rate_type=line.rate_type,
        mileage_package_km=(
            mileage if mileage is not None else defaults.mileage_package_km
        ),
        excess_km_rate=(
            excess_rate if excess_rate is not None else defaults.excess_km_rate
        ),
        deposit_amount=line.deposit_amount,
        advance_rent_months=line.advance_rent_months,
        addons=list(line.addons),
        **resolved,
    )


@beartype
def resolve_quote(quote: Quote, settings: Settings | None = None) -> ResolvedQuote:
    """Resolve every line of a quote."""
    settings = settings or get_settings()
    return ResolvedQuote(
        quote_id=quote.id,
        currency=quote.currency,
        vat_percentage=quote.vat_percentage,
        billing_plan=quote.billing_plan,
        lines=[
            resolve_line(line, quote.line_defaults, settings)
            for line in quote.quote_items
        ],
        initial_fees=list(quote.initial_fees),
    )
