"""Quote totals: upfront amounts, VAT and recurring rent.

Deposits are refundable security and sit outside the VAT base; advance
rent, handover fees, one-time add-ons and initial fees are taxable. All
arithmetic keeps full Decimal precision; amounts are rounded to 2 decimal
places only by ``QuoteTotals.for_presentation``.
"""

from decimal import ROUND_HALF_UP, Decimal

from beartype import beartype
from pydantic import Field
from pydantic.types import UUID4

from ...core.config import Settings, get_settings
from ...models.base import BaseModelConfig
from ...models.quote import PricingModel, Quote, RateType
from ..performance_monitor import performance_monitor
from .billing_periods import BillingPeriodConverter
from .field_resolver import ResolvedQuote, ResolvedVehicleLine, resolve_quote

_CENT = Decimal("0.01")
_WEEKS_PER_MONTH = Decimal("52") / Decimal("12")


def _round(amount: Decimal) -> Decimal:
    return amount.quantize(_CENT, rounding=ROUND_HALF_UP)


class LineUpfront(BaseModelConfig):
    """Per-line breakdown of upfront and recurring amounts."""

    line_no: int
    effective_monthly_rate: Decimal = Field(
        ..., description="Line rate converted to a monthly equivalent"
    )
    deposit: Decimal
    advance_rent: Decimal
    delivery_fee: Decimal
    collection_fee: Decimal
    one_time_addons: Decimal
    monthly_addons: Decimal
    upfront: Decimal = Field(
        ..., description="Deposit + advance rent + delivery + collection"
    )
    monthly_recurring: Decimal
    duration_months: int
    billing_periods: int
    per_period_rate: Decimal
    contract_value: Decimal


class QuoteTotals(BaseModelConfig):
    """Aggregate financial obligations of a quote."""

    quote_id: UUID4
    currency: str
    deposits: Decimal
    advance_rent: Decimal
    delivery_fees: Decimal
    collection_fees: Decimal
    one_time_addons: Decimal
    initial_fees: Decimal
    taxable_subtotal: Decimal
    vat: Decimal
    grand_total: Decimal
    monthly_recurring_rental: Decimal
    total_contract_value: Decimal
    lines: list[LineUpfront] = Field(default_factory=list)

    @property
    def upfront_due(self) -> Decimal:
        """Everything owed before contract start."""
        return self.grand_total

    def for_presentation(self) -> "QuoteTotals":
        """Copy with every amount rounded half-up to 2 decimal places."""
        amounts = {
            name: _round(value)
            for name, value in self
            if isinstance(value, Decimal)
        }
        lines = [
            line.model_copy(
                update={
                    name: _round(value)
                    for name, value in line
                    if isinstance(value, Decimal)
                }
            )
            for line in self.lines
        ]
        return self.model_copy(update={**amounts, "lines": lines})


class PricingCalculator:
    """Pure calculator over a resolved quote."""

    @beartype
    @staticmethod
    def effective_monthly_rate(
        rate: Decimal, rate_type: RateType, days_per_month: Decimal
    ) -> Decimal:
        """Convert a rate quoted in ``rate_type`` units to a monthly equivalent."""
        if rate_type == RateType.WEEKLY:
            return rate * _WEEKS_PER_MONTH
        if rate_type == RateType.DAILY:
            return rate * days_per_month
        return rate

    @beartype
    @staticmethod
    def line_upfront(
        line: ResolvedVehicleLine, resolved: ResolvedQuote, days_per_month: Decimal
    ) -> LineUpfront:
        """Compute the upfront and recurring figures for one resolved line."""
        rate = PricingCalculator.effective_monthly_rate(
            line.monthly_rate, line.rate_type, days_per_month
        )
        advance = rate * line.advance_rent_months
        one_time = sum(
            (a.total for a in line.addons if a.pricing_model == PricingModel.ONE_TIME),
            Decimal("0"),
        )
        monthly_addons = sum(
            (a.total for a in line.addons if a.pricing_model == PricingModel.MONTHLY),
            Decimal("0"),
        )
        monthly_recurring = rate + monthly_addons

        duration = BillingPeriodConverter.duration_months(line.pickup_at, line.return_at)
        # duration is never negative, so neither of these can fail
        periods = BillingPeriodConverter.billing_periods(
            resolved.billing_plan, duration
        ).unwrap()
        per_period = BillingPeriodConverter.per_period_rate(
            monthly_recurring, resolved.billing_plan
        )
        contract_value = BillingPeriodConverter.line_contract_value(
            per_period, resolved.billing_plan, duration
        ).unwrap()

        return LineUpfront(
            line_no=line.line_no,
            effective_monthly_rate=rate,
            deposit=line.deposit_amount,
            advance_rent=advance,
            delivery_fee=line.delivery_fee,
            collection_fee=line.collection_fee,
            one_time_addons=one_time,
            monthly_addons=monthly_addons,
            upfront=line.deposit_amount + advance + line.delivery_fee + line.collection_fee,
            monthly_recurring=monthly_recurring,
            duration_months=duration,
            billing_periods=periods,
            per_period_rate=per_period,
            contract_value=contract_value,
        )

    @staticmethod
    @performance_monitor("calculate_quote_totals")
    @beartype
    def calculate(
        resolved: ResolvedQuote, settings: Settings | None = None
    ) -> QuoteTotals:
        """Calculate quote totals in fixed order.

        Args:
            resolved: Quote with every line field resolved
            settings: Source of ``days_per_month`` for daily rates

        Returns:
            QuoteTotals at full precision
        """
        settings = settings or get_settings()
        zero = Decimal("0")

        # 1. per-line upfront
        lines = [
            PricingCalculator.line_upfront(line, resolved, settings.days_per_month)
            for line in resolved.lines
        ]

        # 2. deposits, never taxed
        deposits = sum((ln.deposit for ln in lines), zero)

        # 3. taxable components
        advance = sum((ln.advance_rent for ln in lines), zero)
        delivery = sum((ln.delivery_fee for ln in lines), zero)
        collection = sum((ln.collection_fee for ln in lines), zero)
        one_time = sum((ln.one_time_addons for ln in lines), zero)
        initial_fees = sum((fee.amount for fee in resolved.initial_fees), zero)

        # 4-6.
        taxable_subtotal = advance + delivery + collection + initial_fees + one_time
        vat = taxable_subtotal * resolved.vat_percentage / Decimal("100")
        grand_total = deposits + taxable_subtotal + vat

        # 7.
        monthly_recurring = sum((ln.monthly_recurring for ln in lines), zero)

        return QuoteTotals(
            quote_id=resolved.quote_id,
            currency=resolved.currency,
            deposits=deposits,
            advance_rent=advance,
            delivery_fees=delivery,
            collection_fees=collection,
            one_time_addons=one_time,
            initial_fees=initial_fees,
            taxable_subtotal=taxable_subtotal,
            vat=vat,
            grand_total=grand_total,
            monthly_recurring_rental=monthly_recurring,
            total_contract_value=sum((ln.contract_value for ln in lines), zero),
            lines=lines,
        )


@beartype
def price_quote(quote: Quote, settings: Settings | None = None) -> QuoteTotals:
    """Resolve a quote's lines and calculate its totals."""
    settings = settings or get_settings()
    return PricingCalculator.calculate(resolve_quote(quote, settings), settings)
