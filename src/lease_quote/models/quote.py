"""Quote domain models: header, vehicle lines, add-ons and initial fees."""

import re
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

from beartype import beartype
from pydantic import Field, computed_field, field_validator, model_validator
from pydantic.types import UUID4

from .base import BaseModelConfig, IdentifiableModel
from .overrides import INHERITED, Inherited, Overridden, coerce_override


class QuoteStatus(str, Enum):
    """Quote lifecycle statuses."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    WON = "won"
    LOST = "lost"


class QuoteType(str, Enum):
    """Commercial products a quote can be raised for."""

    CORPORATE_LEASE = "Corporate lease"
    SHORT_TERM_RENTAL = "Short-term rental"
    LONG_TERM_RENTAL = "Long-term rental"


class BillingPlan(str, Enum):
    """Invoicing cadence."""

    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    SEMI_ANNUAL = "semi-annual"
    ANNUAL = "annual"


class ProrationRule(str, Enum):
    """Partial-period billing policy, consumed by external billing."""

    NONE = "none"
    FIRST_ONLY = "first-only"
    LAST_ONLY = "last-only"
    FIRST_LAST = "first-last"
    ALL_PERIODS = "all-periods"


class RateType(str, Enum):
    """Unit a vehicle line's rate is quoted in."""

    MONTHLY = "monthly"
    WEEKLY = "weekly"
    DAILY = "daily"


class PricingModel(str, Enum):
    """How an add-on is charged."""

    MONTHLY = "monthly"
    ONE_TIME = "one-time"


class DepositType(str, Enum):
    """Deposit handling."""

    REFUNDABLE = "refundable"
    NON_REFUNDABLE = "non-refundable"


class HandoverType(str, Enum):
    """Where a vehicle is handed over or handed back."""

    COMPANY_LOCATION = "company_location"
    CUSTOMER_SITE = "customer_site"


LOCKED_STATUSES: frozenset[QuoteStatus] = frozenset(
    {QuoteStatus.APPROVED, QuoteStatus.WON, QuoteStatus.LOST}
)

# Fields a vehicle line may inherit from the quote header
OVERRIDABLE_LINE_FIELDS: tuple[str, ...] = (
    "insurance_coverage_package",
    "insurance_excess_amount",
    "insurance_glass_tire_cover",
    "insurance_pai_enabled",
    "maintenance_included",
    "maintenance_package",
    "monthly_maintenance_cost",
    "pickup_location",
    "pickup_type",
    "delivery_fee",
    "return_location",
    "return_type",
    "collection_fee",
)

_VIN_PATTERN = re.compile(r"^[A-HJ-NPR-Z0-9]{17}$")


@beartype
def is_valid_vin(vin: str) -> bool:
    """Check VIN format: 17 characters, letters I, O and Q excluded."""
    return bool(_VIN_PATTERN.match(vin.upper()))


def _drop_derived(data: Any, *names: str) -> Any:
    """Strip derived keys from serialized input before re-validation."""
    if isinstance(data, dict) and any(name in data for name in names):
        return {k: v for k, v in data.items() if k not in names}
    return data


@beartype
class AddOnLine(BaseModelConfig):
    """Optional extra sold with a vehicle line (child seat, GPS, ...)."""

    name: str = Field(..., min_length=1, max_length=100, description="Add-on name")
    pricing_model: PricingModel = Field(
        default=PricingModel.MONTHLY, description="Monthly or one-time charge"
    )
    quantity: Decimal = Field(
        default=Decimal("1"), ge=Decimal("0"), description="Units taken"
    )
    unit_price: Decimal = Field(
        ..., ge=Decimal("0"), description="Price per unit per charge"
    )

    @model_validator(mode="before")
    @classmethod
    def ignore_serialized_total(cls, data: Any) -> Any:
        """The total is always derived, never accepted from input."""
        return _drop_derived(data, "total")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total(self) -> Decimal:
        """Quantity times unit price."""
        return self.quantity * self.unit_price


@beartype
class InitialFee(BaseModelConfig):
    """Header-level one-time fee (registration, documentation, ...)."""

    fee_type: str = Field(..., min_length=1, max_length=50, description="Fee type")
    description: str | None = Field(None, max_length=200)
    amount: Decimal = Field(..., ge=Decimal("0"), description="Fee amount")


class LineDefaults(BaseModelConfig):
    """Header defaults for vehicle lines.

    ``None`` means the header leaves the field undefined and resolution
    falls through to the system default.
    """

    deposit_amount: Decimal | None = Field(None, ge=Decimal("0"))
    advance_rent_months: int | None = Field(None, ge=0)
    mileage_package_km: int | None = Field(None, ge=0)
    excess_km_rate: Decimal | None = Field(None, ge=Decimal("0"))

    insurance_coverage_package: str | None = Field(None, min_length=1)
    insurance_excess_amount: Decimal | None = Field(None, ge=Decimal("0"))
    insurance_glass_tire_cover: bool | None = None
    insurance_pai_enabled: bool | None = None

    maintenance_included: bool | None = None
    maintenance_package: str | None = Field(None, min_length=1)
    monthly_maintenance_cost: Decimal | None = Field(None, ge=Decimal("0"))

    pickup_location: str | None = Field(None, min_length=1)
    pickup_type: HandoverType | None = None
    delivery_fee: Decimal | None = Field(None, ge=Decimal("0"))
    return_location: str | None = Field(None, min_length=1)
    return_type: HandoverType | None = None
    collection_fee: Decimal | None = Field(None, ge=Decimal("0"))


@beartype
class VehicleLine(BaseModelConfig):
    """One vehicle (or vehicle class) on a quote."""

    line_no: int = Field(..., ge=1, description="1-based position on the quote")
    vehicle_id: str | None = Field(None, description="Specific fleet vehicle")
    vehicle_class_id: str | None = Field(None, description="Vehicle category")
    vin: str | None = Field(None, description="VIN of the assigned vehicle")

    pickup_at: date = Field(..., description="Contract start")
    return_at: date = Field(..., description="Contract end")

    monthly_rate: Decimal = Field(
        ..., ge=Decimal("0"), description="Rate in rate_type units"
    )
    rate_type: RateType = Field(default=RateType.MONTHLY)

    mileage_package_km: int | None = Field(None, ge=0)
    excess_km_rate: Decimal | None = Field(None, ge=Decimal("0"))

    deposit_amount: Decimal = Field(default=Decimal("0"), ge=Decimal("0"))
    deposit_type: DepositType = Field(default=DepositType.REFUNDABLE)
    advance_rent_months: int = Field(default=0, ge=0)

    addons: list[AddOnLine] = Field(default_factory=list)

    insurance_coverage_package: Inherited | Overridden[str] = INHERITED
    insurance_excess_amount: Inherited | Overridden[Decimal] = INHERITED
    insurance_glass_tire_cover: Inherited | Overridden[bool] = INHERITED
    insurance_pai_enabled: Inherited | Overridden[bool] = INHERITED

    maintenance_included: Inherited | Overridden[bool] = INHERITED
    maintenance_package: Inherited | Overridden[str] = INHERITED
    monthly_maintenance_cost: Inherited | Overridden[Decimal] = INHERITED

    pickup_location: Inherited | Overridden[str] = INHERITED
    pickup_type: Inherited | Overridden[HandoverType] = INHERITED
    delivery_fee: Inherited | Overridden[Decimal] = INHERITED
    return_location: Inherited | Overridden[str] = INHERITED
    return_type: Inherited | Overridden[HandoverType] = INHERITED
    collection_fee: Inherited | Overridden[Decimal] = INHERITED

    @field_validator(*OVERRIDABLE_LINE_FIELDS, mode="before")
    @classmethod
    def wrap_raw_override(cls, v: Any) -> Any:
        """Accept plain values as explicit overrides and ``None`` as inherit."""
        return coerce_override(v)

    @field_validator("vin")
    @classmethod
    def validate_vin(cls, v: str | None) -> str | None:
        """Normalize to uppercase and check the VIN format."""
        if v is None:
            return v
        vin = v.upper()
        if not is_valid_vin(vin):
            raise ValueError("VIN must be exactly 17 characters (no I, O or Q)")
        return vin

    @model_validator(mode="after")
    def validate_dates(self) -> "VehicleLine":
        """Return must come after pickup."""
        if self.return_at <= self.pickup_at:
            raise ValueError("return_at must be after pickup_at")
        return self


@beartype
class Quote(IdentifiableModel):
    """Quote header with its ordered vehicle lines."""

    quote_number: str | None = Field(None, max_length=50)
    version: int = Field(default=1, ge=1, description="Revision number")
    parent_quote_id: UUID4 | None = Field(
        None, description="Quote this revision supersedes"
    )
    quote_type: QuoteType = Field(default=QuoteType.CORPORATE_LEASE)
    status: QuoteStatus = Field(default=QuoteStatus.DRAFT)
    win_loss_reason: str | None = Field(None, max_length=500)

    customer_id: str = Field(..., min_length=1)
    customer_name: str | None = None
    quote_date: date = Field(default_factory=date.today)
    valid_until: date | None = None

    currency: str = Field(default="AED", pattern=r"^[A-Z]{3}$")
    vat_percentage: Decimal = Field(
        default=Decimal("5"), ge=Decimal("0"), le=Decimal("100")
    )

    billing_plan: BillingPlan = Field(default=BillingPlan.MONTHLY)
    billing_start_date: date | None = None
    proration_rule: ProrationRule = Field(default=ProrationRule.FIRST_LAST)
    deposit_type: DepositType = Field(default=DepositType.REFUNDABLE)
    payment_terms_id: str | None = None
    payment_method: str | None = None
    invoice_consolidation: bool = False
    invoice_to_email: str | None = None

    mileage_pooling_enabled: bool = False
    pooled_mileage_km: int | None = Field(None, ge=0)
    annual_escalation_percentage: Decimal = Field(
        default=Decimal("0"), ge=Decimal("0"), le=Decimal("100")
    )
    notes: str | None = None

    line_defaults: LineDefaults = Field(default_factory=LineDefaults)
    quote_items: list[VehicleLine] = Field(default_factory=list)
    initial_fees: list[InitialFee] = Field(default_factory=list)
    default_addons: list[AddOnLine] = Field(
        default_factory=list, description="Templates copied into new lines"
    )

    @field_validator("currency", mode="before")
    @classmethod
    def normalize_currency(cls, v: Any) -> Any:
        """Currency codes are stored upper-case."""
        return v.upper() if isinstance(v, str) else v

    @model_validator(mode="after")
    def validate_quote_consistency(self) -> "Quote":
        """Check status and line numbering rules."""
        if self.status in (QuoteStatus.WON, QuoteStatus.LOST):
            if not self.win_loss_reason:
                raise ValueError("Won/lost quotes must have a win/loss reason")

        expected = list(range(1, len(self.quote_items) + 1))
        if [line.line_no for line in self.quote_items] != expected:
            raise ValueError("Vehicle line numbers must run 1..n in order")

        if self.valid_until is not None and self.valid_until < self.quote_date:
            raise ValueError("valid_until cannot be before quote_date")

        return self

    @property
    def is_corporate_lease(self) -> bool:
        """Corporate leases need an approved cost sheet before approval."""
        return self.quote_type == QuoteType.CORPORATE_LEASE

    @property
    def is_locked(self) -> bool:
        """Approved and closed quotes change only through a new revision."""
        return self.status in LOCKED_STATUSES

    def line(self, line_no: int) -> VehicleLine | None:
        """Get a vehicle line by number."""
        for item in self.quote_items:
            if item.line_no == line_no:
                return item
        return None
