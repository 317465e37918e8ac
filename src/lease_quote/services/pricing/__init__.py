"""Quote pricing: default resolution, billing periods and totals."""

from .billing_periods import BILLING_PERIOD_MONTHS, BillingPeriodConverter
from .calculator import LineUpfront, PricingCalculator, QuoteTotals, price_quote
from .field_resolver import (
    ResolvedQuote,
    ResolvedVehicleLine,
    customized_fields,
    is_customized,
    reset_field,
    resolve,
    resolve_line,
    resolve_quote,
)

__all__ = [
    "BILLING_PERIOD_MONTHS",
    "BillingPeriodConverter",
    "LineUpfront",
    "PricingCalculator",
    "QuoteTotals",
    "price_quote",
    "ResolvedQuote",
    "ResolvedVehicleLine",
    "customized_fields",
    "is_customized",
    "reset_field",
    "resolve",
    "resolve_line",
    "resolve_quote",
]
