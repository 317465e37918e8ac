"""Tests for cost sheet calculations."""

from datetime import date
from decimal import Decimal

import pytest

from fixtures.quote_data import assumptions, components, corporate_quote, vehicle_line
from lease_quote.models import (
    CostSheetStatus,
    FleetVehicle,
    LineDefaults,
    RateType,
)
from lease_quote.services.cost_sheet import (
    CostSheetEngine,
    components_for_quote,
    default_assumptions,
    default_components,
    default_residual_value_percent,
    estimate_acquisition_cost,
    lease_term_months,
)


def _sheet(quote, settings, **component_overrides):
    inputs = {
        line.line_no: components(**component_overrides) for line in quote.quote_items
    }
    return CostSheetEngine.new_cost_sheet(
        quote, assumptions(), inputs, version=1, settings=settings
    ).unwrap()


class TestLineCosts:
    """Test monthly cost and suggested rate."""

    def test_total_cost_per_month(self):
        """80000 at 6% is 400/month on top of 650 running costs."""
        assert CostSheetEngine.financing_charge(Decimal("80000"), Decimal("6")) == Decimal("400")
        assert CostSheetEngine.total_cost_per_month(components(), Decimal("6")) == Decimal("1050")

    def test_suggested_rate_grosses_up_for_margin_and_overhead(self):
        rate = CostSheetEngine.suggested_rate_per_month(
            Decimal("1050"), Decimal("80000"), assumptions(), Decimal("40")
        )
        # (1050 - 400 * 40%) / 0.85 / 0.95
        assert rate.quantize(Decimal("0.01")) == Decimal("1102.17")

    def test_suggested_rate_never_below_cost(self):
        rate = CostSheetEngine.suggested_rate_per_month(
            Decimal("1050"),
            Decimal("80000"),
            assumptions(target_margin_percent=Decimal("0"), overhead_percent=Decimal("0")),
            Decimal("100"),
        )
        assert rate == Decimal("1050")

    def test_quoted_rate_uses_monthly_equivalent(self, settings):
        line = vehicle_line(monthly_rate=Decimal("100"), rate_type=RateType.DAILY)
        assert CostSheetEngine.quoted_rate(line, settings) == Decimal("3000")

    def test_build_line_margin(self, settings):
        sheet = _sheet(corporate_quote(), settings)
        line = sheet.lines[0]
        assert line.total_cost_per_month == Decimal("1050")
        assert line.quoted_rate_per_month == Decimal("3000")
        assert line.actual_margin_percent == Decimal("65")
        assert line.residual_value_percent == Decimal("40")

    def test_component_residual_overrides_assumption(self, settings):
        sheet = _sheet(corporate_quote(), settings, residual_value_percent=Decimal("85"))
        assert sheet.lines[0].residual_value_percent == Decimal("85")

    def test_margin_rises_with_quoted_rate(self, settings):
        margins = []
        for rate in ("1000", "1200", "1500", "3000"):
            quote = corporate_quote(quote_items=[vehicle_line(monthly_rate=Decimal(rate))])
            margins.append(_sheet(quote, settings).lines[0].actual_margin_percent)
        assert margins == sorted(margins)
        assert len(set(margins)) == 4

    def test_margin_falls_as_cost_rises(self, settings):
        quote = corporate_quote()
        lines = [
            _sheet(quote, settings, maintenance_per_month=Decimal(m)).lines[0]
            for m in ("0", "100", "500", "2000", "5000")
        ]
        assert {ln.quoted_rate_per_month for ln in lines} == {Decimal("3000")}
        costs = [ln.total_cost_per_month for ln in lines]
        margins = [ln.actual_margin_percent for ln in lines]
        assert costs == sorted(set(costs))
        assert all(a > b for a, b in zip(margins, margins[1:]))
        # 5000 + 800 running costs exceed the rate
        assert margins[-1] < 0

    def test_registration_and_other_costs(self):
        inputs = components(
            registration_admin_per_month=Decimal("100"), other_per_month=Decimal("0")
        )
        assert CostSheetEngine.total_cost_per_month(inputs, Decimal("6")) == Decimal("1050")
        swapped = components(
            registration_admin_per_month=Decimal("0"), other_per_month=Decimal("100")
        )
        assert CostSheetEngine.total_cost_per_month(swapped, Decimal("6")) == Decimal("1050")


class TestCalculateLines:
    """Test line-set validation."""

    def test_quote_without_lines(self, settings):
        result = CostSheetEngine.calculate_lines(
            corporate_quote(lines=0), assumptions(), {}, settings
        )
        assert result.is_err()
        assert result.unwrap_err().field == "quote_items"

    def test_missing_components(self, settings):
        result = CostSheetEngine.calculate_lines(
            corporate_quote(lines=2), assumptions(), {1: components()}, settings
        )
        assert result.is_err()
        assert result.unwrap_err().line_no == 2

    def test_components_for_unknown_line(self, settings):
        result = CostSheetEngine.calculate_lines(
            corporate_quote(), assumptions(), {1: components(), 5: components()}, settings
        )
        assert result.is_err()
        assert result.unwrap_err().line_no == 5

    def test_new_sheet_snapshots_lines(self, settings):
        quote = corporate_quote(lines=2)
        sheet = _sheet(quote, settings)
        assert sheet.status == CostSheetStatus.DRAFT
        assert sheet.quote_id == quote.id
        assert [s.line_no for s in sheet.source_lines] == [1, 2]
        assert sheet.source_lines == CostSheetEngine.snapshot_lines(quote)


class TestSummary:
    """Test aggregate figures and threshold flags."""

    def test_flags_and_lowest_line(self, settings):
        quote = corporate_quote(
            quote_items=[
                vehicle_line(1, monthly_rate=Decimal("3000")),
                vehicle_line(2, monthly_rate=Decimal("1120")),
                vehicle_line(3, monthly_rate=Decimal("1050")),
            ]
        )
        summary = CostSheetEngine.summarize(_sheet(quote, settings), settings)

        assert summary.total_monthly_cost == Decimal("3150")
        assert summary.total_monthly_revenue == Decimal("5170")
        assert summary.average_margin_percent > Decimal("39")
        assert summary.lowest_margin_line_no == 3
        assert summary.lowest_margin_percent == Decimal("0")
        assert summary.warning_line_nos == [2, 3]
        assert summary.blocking_line_nos == [3]
        assert not summary.can_submit

    def test_undefined_margin_ranks_lowest(self, settings):
        quote = corporate_quote(
            quote_items=[
                vehicle_line(1, monthly_rate=Decimal("500")),
                vehicle_line(2, monthly_rate=Decimal("0")),
            ]
        )
        summary = CostSheetEngine.summarize(_sheet(quote, settings), settings)
        assert summary.lowest_margin_line_no == 2
        assert summary.lowest_margin_percent is None
        assert summary.warning_line_nos == [1, 2]
        assert summary.blocking_line_nos == [1, 2]

    def test_no_revenue_means_no_average(self, settings):
        quote = corporate_quote(quote_items=[vehicle_line(monthly_rate=Decimal("0"))])
        summary = CostSheetEngine.summarize(_sheet(quote, settings), settings)
        assert summary.average_margin_percent is None

    def test_refresh_quotes_removed_line_at_zero(self, settings):
        quote = corporate_quote(lines=2)
        sheet = _sheet(quote, settings)
        shrunk = quote.model_copy(update={"quote_items": quote.quote_items[:1]})
        refreshed = CostSheetEngine.refresh_quoted_rates(sheet, shrunk, settings)
        assert refreshed.lines[1].quoted_rate_per_month == Decimal("0")
        assert refreshed.lines[1].actual_margin_percent is None


class TestDefaults:
    """Test default cost inputs and assumptions."""

    @pytest.mark.parametrize(
        ("term", "residual"),
        [(6, "85"), (12, "85"), (13, "75"), (24, "65"), (30, "55"), (36, "45"), (60, "45")],
    )
    def test_residual_by_term(self, term, residual):
        assert default_residual_value_percent(term) == Decimal(residual)

    def test_recorded_acquisition_cost_wins(self, settings):
        vehicle = FleetVehicle(
            id="v1", make="Toyota", model="Camry", year=2020, acquisition_cost=Decimal("99000")
        )
        assert estimate_acquisition_cost(vehicle, date(2026, 1, 1), settings) == Decimal("99000")

    def test_class_estimate_depreciates_by_age(self, settings):
        vehicle = FleetVehicle(id="v1", make="Toyota", model="Camry", year=2024)
        cost = estimate_acquisition_cost(vehicle, date(2026, 1, 1), settings)
        assert cost == Decimal("120000") * Decimal("0.90") ** 2

    def test_unknown_vehicle_uses_setting(self, settings):
        assert estimate_acquisition_cost(None, date(2026, 1, 1), settings) == Decimal("135000")
        unknown = FleetVehicle(id="v9", make="Lada", model="Niva", year=2026)
        assert estimate_acquisition_cost(unknown, date(2026, 1, 1), settings) == Decimal("135000")

    def test_lease_term_is_longest_line(self, settings):
        quote = corporate_quote(
            quote_items=[
                vehicle_line(1),
                vehicle_line(2, return_at=date(2028, 1, 1)),
            ]
        )
        assert lease_term_months(quote, settings) == 24
        assert lease_term_months(corporate_quote(lines=0), settings) == 36
        assert default_assumptions(quote, settings).lease_term_months == 24

    def test_maintenance_costed_only_when_included(self, settings):
        quote = corporate_quote()
        excluded = default_components(quote.quote_items[0], quote, settings=settings)
        assert excluded.maintenance_per_month == Decimal("0")
        assert excluded.residual_value_percent == Decimal("85")

        included = quote.model_copy(
            update={
                "line_defaults": LineDefaults(
                    maintenance_included=True, monthly_maintenance_cost=Decimal("275")
                )
            }
        )
        costed = default_components(included.quote_items[0], included, settings=settings)
        assert costed.maintenance_per_month == Decimal("275")

    def test_components_for_quote_keeps_supplied_inputs(self, settings):
        quote = corporate_quote(lines=2)
        supplied = {1: components()}
        filled = components_for_quote(quote, supplied, settings=settings)
        assert filled[1] == components()
        assert filled[2].acquisition_cost == Decimal("135000")
        assert filled[2].insurance_per_month == Decimal("450")
