"""Billing plan to billing period conversion."""

from datetime import date
from decimal import Decimal
from typing import Final

from beartype import beartype

from ...core.errors import ValidationError
from ...core.result_types import Err, Ok, Result
from ...models.quote import BillingPlan

BILLING_PERIOD_MONTHS: Final[dict[BillingPlan, int]] = {
    BillingPlan.MONTHLY: 1,
    BillingPlan.QUARTERLY: 3,
    BillingPlan.SEMI_ANNUAL: 6,
    BillingPlan.ANNUAL: 12,
}


class BillingPeriodConverter:
    """Convert contract durations into billing periods and contract values."""

    @beartype
    @staticmethod
    def period_length(billing_plan: BillingPlan) -> int:
        """Billing period length in months."""
        return BILLING_PERIOD_MONTHS[billing_plan]

    @beartype
    @staticmethod
    def duration_months(pickup_at: date, return_at: date) -> int:
        """Count contract months between two dates.

        Whole calendar months count once each and a trailing partial month
        counts as a full one. A return on or before pickup gives 0.
        """
        if return_at <= pickup_at:
            return 0
        months = (return_at.year - pickup_at.year) * 12 + (
            return_at.month - pickup_at.month
        )
        if return_at.day > pickup_at.day:
            months += 1
        return max(months, 1)

    @beartype
    @staticmethod
    def billing_periods(
        billing_plan: BillingPlan, duration_months: int
    ) -> Result[int, ValidationError]:
        """Calculate the number of billing periods for a duration.

        Args:
            billing_plan: Invoicing cadence
            duration_months: Contract length in months; 0 means not yet dated

        Returns:
            Result containing ceil(duration / period length) or an error
        """
        if duration_months < 0:
            return Err(
                ValidationError(
                    message="Duration months cannot be negative",
                    field="duration_months",
                )
            )
        length = BILLING_PERIOD_MONTHS[billing_plan]
        return Ok(-(-duration_months // length))

    @beartype
    @staticmethod
    def per_period_rate(monthly_rate: Decimal, billing_plan: BillingPlan) -> Decimal:
        """Invoice amount for one billing period."""
        return monthly_rate * BILLING_PERIOD_MONTHS[billing_plan]

    @beartype
    @staticmethod
    def line_contract_value(
        per_period_rate: Decimal, billing_plan: BillingPlan, duration_months: int
    ) -> Result[Decimal, ValidationError]:
        """Contract value of a line: per-period rate times billing periods.

        Args:
            per_period_rate: Amount invoiced each billing period
            billing_plan: Invoicing cadence
            duration_months: Contract length in months

        Returns:
            Result containing the contract value (0 for an undated line)
        """
        periods = BillingPeriodConverter.billing_periods(billing_plan, duration_months)
        if periods.is_err():
            return periods
        return Ok(per_period_rate * periods.unwrap())
