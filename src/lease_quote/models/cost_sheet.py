"""Cost sheet models: per-line cost, suggested rate and margin."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from beartype import beartype
from pydantic import Field, computed_field, model_validator
from pydantic.types import UUID4

from .base import BaseModelConfig, IdentifiableModel
from .quote import RateType


class CostSheetStatus(str, Enum):
    """Cost sheet approval states."""

    DRAFT = "draft"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    REJECTED = "rejected"
    OBSOLETE = "obsolete"


@beartype
class CostAssumptions(BaseModelConfig):
    """Pricing assumptions a cost sheet is calculated under."""

    financing_rate_percent: Decimal = Field(
        ..., ge=Decimal("0"), le=Decimal("100"), description="Annual financing rate"
    )
    overhead_percent: Decimal = Field(..., ge=Decimal("0"), lt=Decimal("100"))
    target_margin_percent: Decimal = Field(..., ge=Decimal("0"), lt=Decimal("100"))
    residual_value_percent: Decimal = Field(
        ..., ge=Decimal("0"), le=Decimal("100"), description="End-of-term value"
    )
    lease_term_months: int = Field(..., ge=1, le=120)


@beartype
class CostComponents(BaseModelConfig):
    """Raw cost inputs for one vehicle line."""

    acquisition_cost: Decimal = Field(..., ge=Decimal("0"))
    maintenance_per_month: Decimal = Field(default=Decimal("0"), ge=Decimal("0"))
    insurance_per_month: Decimal = Field(default=Decimal("0"), ge=Decimal("0"))
    registration_admin_per_month: Decimal = Field(
        default=Decimal("0"), ge=Decimal("0")
    )
    other_per_month: Decimal = Field(default=Decimal("0"), ge=Decimal("0"))
    residual_value_percent: Decimal | None = Field(
        None,
        ge=Decimal("0"),
        le=Decimal("100"),
        description="Per-line residual value; the sheet assumption applies when unset",
    )


@beartype
class FleetVehicle(BaseModelConfig):
    """Fleet record used to estimate a line's acquisition cost."""

    id: str = Field(..., min_length=1)
    make: str | None = Field(None, max_length=50)
    model: str | None = Field(None, max_length=50)
    year: int | None = Field(None, ge=1900, le=2100)
    acquisition_cost: Decimal | None = Field(
        None, ge=Decimal("0"), description="Recorded purchase price, when known"
    )


class LineSnapshot(BaseModelConfig):
    """Cost-relevant vehicle line data a cost sheet was computed from."""

    line_no: int = Field(..., ge=1)
    vehicle_id: str | None = None
    vehicle_class_id: str | None = None
    pickup_at: date
    return_at: date
    monthly_rate: Decimal
    rate_type: RateType


@beartype
class CostSheetLine(BaseModelConfig):
    """Costs and margin for one vehicle line."""

    line_no: int = Field(..., ge=1)
    vehicle_id: str | None = None
    vehicle_class_id: str | None = None

    acquisition_cost: Decimal = Field(..., ge=Decimal("0"))
    maintenance_per_month: Decimal = Field(..., ge=Decimal("0"))
    insurance_per_month: Decimal = Field(..., ge=Decimal("0"))
    registration_admin_per_month: Decimal = Field(..., ge=Decimal("0"))
    other_per_month: Decimal = Field(..., ge=Decimal("0"))
    residual_value_percent: Decimal = Field(..., ge=Decimal("0"), le=Decimal("100"))

    total_cost_per_month: Decimal = Field(..., ge=Decimal("0"))
    suggested_rate_per_month: Decimal = Field(..., ge=Decimal("0"))
    quoted_rate_per_month: Decimal = Field(
        ..., description="Monthly-equivalent rate read from the live quote line"
    )

    @model_validator(mode="before")
    @classmethod
    def ignore_serialized_margin(cls, data: Any) -> Any:
        """The margin is always derived, never accepted from input."""
        if isinstance(data, dict) and "actual_margin_percent" in data:
            return {k: v for k, v in data.items() if k != "actual_margin_percent"}
        return data

    @computed_field  # type: ignore[prop-decorator]
    @property
    def actual_margin_percent(self) -> Decimal | None:
        """Margin on the quoted rate; undefined when the rate is not positive."""
        if self.quoted_rate_per_month <= 0:
            return None
        return (
            (self.quoted_rate_per_month - self.total_cost_per_month)
            / self.quoted_rate_per_month
            * Decimal("100")
        )

    def is_below(self, threshold_percent: Decimal) -> bool:
        """Check if the line misses a margin threshold.

        An undefined margin (zero or negative quoted rate) always misses.
        """
        margin = self.actual_margin_percent
        return margin is None or margin < threshold_percent


@beartype
class CostSheet(IdentifiableModel):
    """Versioned cost sheet for one quote."""

    quote_id: UUID4 = Field(..., description="Quote this sheet belongs to")
    version: int = Field(default=1, ge=1, description="Monotonic per quote")
    status: CostSheetStatus = Field(default=CostSheetStatus.DRAFT)
    assumptions: CostAssumptions
    lines: list[CostSheetLine] = Field(default_factory=list)
    source_lines: list[LineSnapshot] = Field(
        default_factory=list, description="Line data the sheet was computed from"
    )
    notes_assumptions: str | None = None

    submitted_by: str | None = None
    submitted_at: datetime | None = None
    approved_by: str | None = None
    approved_at: datetime | None = None
    approval_notes: str | None = None
    rejected_by: str | None = None
    rejected_at: datetime | None = None
    rejection_reason: str | None = None
    obsoleted_at: datetime | None = None

    @model_validator(mode="after")
    def validate_audit_trail(self) -> "CostSheet":
        """Ensure the audit fields match the status."""
        if self.status == CostSheetStatus.APPROVED and not self.approved_by:
            raise ValueError("Approved cost sheets must record the approver")
        if self.status == CostSheetStatus.REJECTED and not self.rejection_reason:
            raise ValueError("Rejected cost sheets must record a reason")
        if self.status == CostSheetStatus.OBSOLETE and self.obsoleted_at is None:
            raise ValueError("Obsolete cost sheets must record when they went stale")
        return self

    @property
    def is_current(self) -> bool:
        """A sheet that can still certify the quote it was computed for."""
        return self.status not in (CostSheetStatus.OBSOLETE, CostSheetStatus.REJECTED)


@beartype
class CostSheetSummary(BaseModelConfig):
    """Aggregate figures and threshold flags for a cost sheet."""

    total_monthly_cost: Decimal
    total_monthly_revenue: Decimal
    average_margin_percent: Decimal | None = Field(
        None, description="Undefined when total revenue is not positive"
    )
    lowest_margin_line_no: int | None = None
    lowest_margin_percent: Decimal | None = None
    warning_line_nos: list[int] = Field(
        default_factory=list, description="Lines under the warning threshold, blocking ones included"
    )
    blocking_line_nos: list[int] = Field(default_factory=list)

    @property
    def can_submit(self) -> bool:
        """No line sits under the blocking threshold."""
        return not self.blocking_line_nos
