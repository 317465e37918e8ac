"""Cost sheet calculations: monthly cost, suggested rate and margin summary."""

from collections.abc import Mapping
from datetime import date
from decimal import Decimal
from typing import Final

from beartype import beartype

from ...core.config import Settings, get_settings
from ...core.errors import ValidationError
from ...core.result_types import Err, Ok, Result
from ...models.cost_sheet import (
    CostAssumptions,
    CostComponents,
    CostSheet,
    CostSheetLine,
    CostSheetSummary,
    FleetVehicle,
    LineSnapshot,
)
from ...models.quote import Quote, VehicleLine
from ..performance_monitor import performance_monitor
from ..pricing.billing_periods import BillingPeriodConverter
from ..pricing.calculator import PricingCalculator
from ..pricing.field_resolver import resolve_line

_HUNDRED = Decimal("100")
_MONTHS_PER_YEAR = Decimal("12")
_ANNUAL_DEPRECIATION = Decimal("0.90")

# (make/model keywords, acquisition cost) checked in order
ACQUISITION_COST_BY_CLASS: Final[tuple[tuple[tuple[str, ...], Decimal], ...]] = (
    (("civic", "corolla", "sentra", "altima"), Decimal("105000")),
    (("camry", "accord", "maxima"), Decimal("120000")),
    (("cr-v", "rav4", "rogue", "tucson"), Decimal("135000")),
    (("highlander", "pilot", "pathfinder"), Decimal("170000")),
    (("x5", "gle", "q7"), Decimal("280000")),
    (("750", "s-class", "a8"), Decimal("420000")),
    (("f-150", "hilux", "silverado"), Decimal("150000")),
    (("mustang", "camaro", "convertible"), Decimal("220000")),
)

# (max lease term in months, residual value %); longer terms fall to the floor
RESIDUAL_VALUE_BY_TERM: Final[tuple[tuple[int, Decimal], ...]] = (
    (12, Decimal("85")),
    (18, Decimal("75")),
    (24, Decimal("65")),
    (30, Decimal("55")),
)
RESIDUAL_VALUE_FLOOR: Final = Decimal("45")


class CostSheetEngine:
    """Per-line cost and margin calculations for a quote."""

    @beartype
    @staticmethod
    def financing_charge(
        acquisition_cost: Decimal, financing_rate_percent: Decimal
    ) -> Decimal:
        """Monthly financing charge on the acquisition cost."""
        return acquisition_cost * financing_rate_percent / _HUNDRED / _MONTHS_PER_YEAR

    @beartype
    @staticmethod
    def total_cost_per_month(
        components: CostComponents, financing_rate_percent: Decimal
    ) -> Decimal:
        """Total monthly cost of a line.

        The acquisition cost is carried as a monthly financing charge
        rather than expensed in full.
        """
        return (
            CostSheetEngine.financing_charge(
                components.acquisition_cost, financing_rate_percent
            )
            + components.maintenance_per_month
            + components.insurance_per_month
            + components.registration_admin_per_month
            + components.other_per_month
        )

    @beartype
    @staticmethod
    def suggested_rate_per_month(
        total_cost_per_month: Decimal,
        acquisition_cost: Decimal,
        assumptions: CostAssumptions,
        residual_value_percent: Decimal,
    ) -> Decimal:
        """Suggested monthly rate for a line.

        The share of the financing charge covered by the vehicle's residual
        value is taken off the cost to recover, then the remainder is
        grossed up for target margin and overhead. The result never drops
        below the line's total monthly cost.

        Args:
            total_cost_per_month: Line cost from ``total_cost_per_month``
            acquisition_cost: Vehicle acquisition cost
            assumptions: Sheet-level margin, overhead and financing rate
            residual_value_percent: Residual value applied to this line

        Returns:
            Suggested rate at full precision
        """
        capital_charge = CostSheetEngine.financing_charge(
            acquisition_cost, assumptions.financing_rate_percent
        )
        recoverable = total_cost_per_month - capital_charge * (
            residual_value_percent / _HUNDRED
        )
        loaded = (
            recoverable
            / (1 - assumptions.target_margin_percent / _HUNDRED)
            / (1 - assumptions.overhead_percent / _HUNDRED)
        )
        return max(loaded, total_cost_per_month)

    @beartype
    @staticmethod
    def quoted_rate(line: VehicleLine, settings: Settings | None = None) -> Decimal:
        """Monthly-equivalent rate currently quoted on a vehicle line."""
        settings = settings or get_settings()
        return PricingCalculator.effective_monthly_rate(
            line.monthly_rate, line.rate_type, settings.days_per_month
        )

    @beartype
    @staticmethod
    def build_line(
        line: VehicleLine,
        components: CostComponents,
        assumptions: CostAssumptions,
        settings: Settings | None = None,
    ) -> CostSheetLine:
        """Compute the cost sheet line for one vehicle line."""
        residual = (
            components.residual_value_percent
            if components.residual_value_percent is not None
            else assumptions.residual_value_percent
        )
        total_cost = CostSheetEngine.total_cost_per_month(
            components, assumptions.financing_rate_percent
        )
        return CostSheetLine(
            line_no=line.line_no,
            vehicle_id=line.vehicle_id,
            vehicle_class_id=line.vehicle_class_id,
            acquisition_cost=components.acquisition_cost,
            maintenance_per_month=components.maintenance_per_month,
            insurance_per_month=components.insurance_per_month,
            registration_admin_per_month=components.registration_admin_per_month,
            other_per_month=components.other_per_month,
            residual_value_percent=residual,
            total_cost_per_month=total_cost,
            suggested_rate_per_month=CostSheetEngine.suggested_rate_per_month(
                total_cost, components.acquisition_cost, assumptions, residual
            ),
            quoted_rate_per_month=CostSheetEngine.quoted_rate(line, settings),
        )

    @staticmethod
    @performance_monitor("calculate_cost_sheet_lines")
    @beartype
    def calculate_lines(
        quote: Quote,
        assumptions: CostAssumptions,
        components: Mapping[int, CostComponents],
        settings: Settings | None = None,
    ) -> Result[list[CostSheetLine], ValidationError]:
        """Calculate one cost sheet line per vehicle line.

        Args:
            quote: Quote whose lines are costed
            assumptions: Sheet assumptions
            components: Cost inputs keyed by line number, one per line

        Returns:
            Result containing lines ordered by line number, or the first
            line number that has no matching cost inputs or vehicle line
        """
        if not quote.quote_items:
            return Err(
                ValidationError(
                    message="Quote has no vehicle lines to cost",
                    field="quote_items",
                )
            )

        line_nos = {line.line_no for line in quote.quote_items}
        for line_no in sorted(components):
            if line_no not in line_nos:
                return Err(
                    ValidationError(
                        message=f"Cost inputs given for unknown line {line_no}",
                        field="components",
                        line_no=line_no,
                    )
                )

        lines = []
        for line in quote.quote_items:
            line_components = components.get(line.line_no)
            if line_components is None:
                return Err(
                    ValidationError(
                        message="Cost inputs are required for every vehicle line",
                        field="components",
                        line_no=line.line_no,
                    )
                )
            lines.append(
                CostSheetEngine.build_line(line, line_components, assumptions, settings)
            )
        return Ok(lines)

    @beartype
    @staticmethod
    def refresh_quoted_rates(
        sheet: CostSheet, quote: Quote, settings: Settings | None = None
    ) -> CostSheet:
        """Re-read every line's quoted rate from the live quote.

        A cost sheet line whose vehicle line no longer exists is quoted at
        zero and therefore fails the margin gate.
        """
        lines = []
        for cost_line in sheet.lines:
            live = quote.line(cost_line.line_no)
            rate = (
                CostSheetEngine.quoted_rate(live, settings)
                if live is not None
                else Decimal("0")
            )
            lines.append(cost_line.model_copy(update={"quoted_rate_per_month": rate}))
        return sheet.model_copy(update={"lines": lines})

    @beartype
    @staticmethod
    def summarize(sheet: CostSheet, settings: Settings | None = None) -> CostSheetSummary:
        """Aggregate cost, revenue and margin flags for a cost sheet."""
        settings = settings or get_settings()
        zero = Decimal("0")
        total_cost = sum((ln.total_cost_per_month for ln in sheet.lines), zero)
        revenue = sum((ln.quoted_rate_per_month for ln in sheet.lines), zero)
        average = (revenue - total_cost) / revenue * _HUNDRED if revenue > 0 else None

        lowest = None
        if sheet.lines:
            # undefined margins rank below every defined one
            lowest = min(
                sheet.lines,
                key=lambda ln: (
                    (0, zero)
                    if ln.actual_margin_percent is None
                    else (1, ln.actual_margin_percent)
                ),
            )

        blocking = [
            ln.line_no for ln in sheet.lines if ln.is_below(settings.margin_block_percent)
        ]
        warnings = [
            ln.line_no for ln in sheet.lines if ln.is_below(settings.margin_warning_percent)
        ]

        return CostSheetSummary(
            total_monthly_cost=total_cost,
            total_monthly_revenue=revenue,
            average_margin_percent=average,
            lowest_margin_line_no=lowest.line_no if lowest is not None else None,
            lowest_margin_percent=(
                lowest.actual_margin_percent if lowest is not None else None
            ),
            warning_line_nos=warnings,
            blocking_line_nos=blocking,
        )

    @beartype
    @staticmethod
    def snapshot_lines(quote: Quote) -> list[LineSnapshot]:
        """Capture the cost-relevant data of every vehicle line."""
        return [
            LineSnapshot(
                line_no=line.line_no,
                vehicle_id=line.vehicle_id,
                vehicle_class_id=line.vehicle_class_id,
                pickup_at=line.pickup_at,
                return_at=line.return_at,
                monthly_rate=line.monthly_rate,
                rate_type=line.rate_type,
            )
            for line in quote.quote_items
        ]

    @beartype
    @staticmethod
    def new_cost_sheet(
        quote: Quote,
        assumptions: CostAssumptions,
        components: Mapping[int, CostComponents],
        version: int,
        notes_assumptions: str | None = None,
        settings: Settings | None = None,
    ) -> Result[CostSheet, ValidationError]:
        """Calculate a fresh draft cost sheet for a quote."""
        lines = CostSheetEngine.calculate_lines(quote, assumptions, components, settings)
        if lines.is_err():
            return lines
        return Ok(
            CostSheet(
                quote_id=quote.id,
                version=version,
                assumptions=assumptions,
                lines=lines.unwrap(),
                source_lines=CostSheetEngine.snapshot_lines(quote),
                notes_assumptions=notes_assumptions,
            )
        )


@beartype
def default_residual_value_percent(lease_term_months: int) -> Decimal:
    """Residual value expected at the end of a lease term.

    Shorter leases hand back a younger vehicle that keeps more of its value.
    """
    for max_term, residual in RESIDUAL_VALUE_BY_TERM:
        if lease_term_months <= max_term:
            return residual
    return RESIDUAL_VALUE_FLOOR


@beartype
def estimate_acquisition_cost(
    vehicle: FleetVehicle | None,
    as_of: date,
    settings: Settings | None = None,
) -> Decimal:
    """Acquisition cost of a vehicle.

    Uses the recorded cost when there is one; otherwise estimates from the
    make/model class and depreciates 10% per year of age.
    """
    settings = settings or get_settings()
    if vehicle is not None and vehicle.acquisition_cost:
        return vehicle.acquisition_cost

    cost = settings.default_acquisition_cost
    if vehicle is None:
        return cost

    make_model = f"{vehicle.make or ''} {vehicle.model or ''}".lower()
    for keywords, class_cost in ACQUISITION_COST_BY_CLASS:
        if any(keyword in make_model for keyword in keywords):
            cost = class_cost
            break

    age = as_of.year - (vehicle.year or as_of.year)
    if age > 0:
        cost = cost * _ANNUAL_DEPRECIATION**age
    return cost


@beartype
def lease_term_months(quote: Quote, settings: Settings | None = None) -> int:
    """Longest line duration on the quote, or the configured default term."""
    settings = settings or get_settings()
    terms = [
        BillingPeriodConverter.duration_months(line.pickup_at, line.return_at)
        for line in quote.quote_items
    ]
    longest = max(terms, default=0)
    # assumptions cap the term at ten years
    return min(longest, 120) if longest > 0 else settings.default_lease_term_months


@beartype
def default_assumptions(
    quote: Quote, settings: Settings | None = None
) -> CostAssumptions:
    """Sheet assumptions from settings, with the term taken from the quote."""
    settings = settings or get_settings()
    return CostAssumptions(
        financing_rate_percent=settings.default_financing_rate_percent,
        overhead_percent=settings.default_overhead_percent,
        target_margin_percent=settings.default_target_margin_percent,
        residual_value_percent=settings.default_residual_value_percent,
        lease_term_months=lease_term_months(quote, settings),
    )


@beartype
def default_components(
    line: VehicleLine,
    quote: Quote,
    vehicle: FleetVehicle | None = None,
    as_of: date | None = None,
    settings: Settings | None = None,
) -> CostComponents:
    """Cost inputs for a line when the caller supplies none.

    Maintenance is costed only when the line (or its header default)
    includes it. The residual value follows the line's own lease term.
    """
    settings = settings or get_settings()
    as_of = as_of or quote.quote_date
    resolved = resolve_line(line, quote.line_defaults, settings)
    maintenance = (
        resolved.monthly_maintenance_cost
        if resolved.maintenance_included
        else Decimal("0")
    )
    term = BillingPeriodConverter.duration_months(line.pickup_at, line.return_at)
    return CostComponents(
        acquisition_cost=estimate_acquisition_cost(vehicle, as_of, settings),
        maintenance_per_month=maintenance,
        insurance_per_month=settings.default_insurance_cost_per_month,
        registration_admin_per_month=settings.default_registration_admin_per_month,
        other_per_month=settings.default_other_costs_per_month,
        residual_value_percent=default_residual_value_percent(
            term or settings.default_lease_term_months
        ),
    )


@beartype
def components_for_quote(
    quote: Quote,
    supplied: Mapping[int, CostComponents] | None = None,
    vehicles: Mapping[str, FleetVehicle] | None = None,
    settings: Settings | None = None,
) -> dict[int, CostComponents]:
    """Cost inputs for every line, filling the gaps with defaults."""
    supplied = supplied or {}
    vehicles = vehicles or {}
    components = dict(supplied)
    for line in quote.quote_items:
        if line.line_no in components:
            continue
        vehicle = vehicles.get(line.vehicle_id) if line.vehicle_id else None
        components[line.line_no] = default_components(
            line, quote, vehicle, settings=settings
        )
    return components

