# LeaseQuote - Corporate Leasing Quote Engine
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Configuration management using Pydantic Settings."""

from decimal import Decimal

from beartype import beartype
from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with immutable configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LEASE_QUOTE_",
        env_file=None,
        env_file_encoding="utf-8",
        frozen=True,  # Immutable settings
        validate_default=True,
        extra="forbid",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Root log level",
    )
    slow_calculation_ms: int = Field(
        default=50,
        ge=1,
        le=10000,
        description="Calculations slower than this are logged as warnings",
    )

    # Quote header defaults
    default_currency: str = Field(
        default="AED",
        pattern="^[A-Z]{3}$",
        description="ISO 4217 currency for new quotes",
    )
    default_vat_percentage: Decimal = Field(
        default=Decimal("5"),
        ge=Decimal("0"),
        le=Decimal("100"),
        description="UAE standard VAT rate",
    )
    days_per_month: Decimal = Field(
        default=Decimal("30"),
        gt=Decimal("0"),
        description="Days used to convert daily rates to a monthly equivalent",
    )

    # Seeded into new vehicle lines
    default_deposit_amount: Decimal = Field(
        default=Decimal("2500"),
        ge=Decimal("0"),
        description="Refundable deposit per vehicle line",
    )
    default_advance_rent_months: int = Field(
        default=1,
        ge=0,
        le=12,
        description="Months of rent collected in advance per vehicle line",
    )

    # System defaults for overridable line fields
    default_insurance_coverage_package: str = Field(
        default="comprehensive",
        min_length=1,
        description="Insurance package when neither line nor header sets one",
    )
    default_insurance_excess_amount: Decimal = Field(
        default=Decimal("1500"),
        ge=Decimal("0"),
        description="Insurance excess per claim",
    )
    default_insurance_glass_tire_cover: bool = Field(
        default=True,
        description="Glass and tyre cover included by default",
    )
    default_insurance_pai_enabled: bool = Field(
        default=False,
        description="Personal accident insurance included by default",
    )
    default_maintenance_included: bool = Field(
        default=False,
        description="Maintenance bundled into the rate by default",
    )
    default_maintenance_package: str = Field(
        default="standard",
        min_length=1,
        description="Maintenance package when included",
    )
    default_monthly_maintenance_cost: Decimal = Field(
        default=Decimal("350"),
        ge=Decimal("0"),
        description="Monthly maintenance cost per vehicle",
    )
    default_pickup_location: str = Field(
        default="main-branch",
        min_length=1,
        description="Pickup location id",
    )
    default_pickup_type: str = Field(
        default="company_location",
        pattern="^(company_location|customer_site)$",
        description="Pickup handover type",
    )
    default_return_location: str = Field(
        default="main-branch",
        min_length=1,
        description="Return location id",
    )
    default_return_type: str = Field(
        default="company_location",
        pattern="^(company_location|customer_site)$",
        description="Return handover type",
    )
    default_delivery_fee: Decimal = Field(
        default=Decimal("0"),
        ge=Decimal("0"),
        description="Delivery fee per line",
    )
    default_collection_fee: Decimal = Field(
        default=Decimal("0"),
        ge=Decimal("0"),
        description="Collection fee per line",
    )

    # Cost sheet assumptions
    default_financing_rate_percent: Decimal = Field(
        default=Decimal("6.0"),
        ge=Decimal("0"),
        le=Decimal("100"),
        description="Annual financing rate applied to acquisition cost",
    )
    default_overhead_percent: Decimal = Field(
        default=Decimal("5.0"),
        ge=Decimal("0"),
        lt=Decimal("100"),
        description="Overhead loading on the suggested rate",
    )
    default_target_margin_percent: Decimal = Field(
        default=Decimal("15.0"),
        ge=Decimal("0"),
        lt=Decimal("100"),
        description="Target margin on the suggested rate",
    )
    default_residual_value_percent: Decimal = Field(
        default=Decimal("40.0"),
        ge=Decimal("0"),
        le=Decimal("100"),
        description="Residual value fallback when no term-based value applies",
    )
    default_lease_term_months: int = Field(
        default=36,
        ge=1,
        le=120,
        description="Lease term used when a quote carries none",
    )

    # Cost components
    default_acquisition_cost: Decimal = Field(
        default=Decimal("135000"),
        gt=Decimal("0"),
        description="Acquisition cost for an unknown vehicle (mid-range SUV)",
    )
    default_insurance_cost_per_month: Decimal = Field(
        default=Decimal("450"),
        ge=Decimal("0"),
        description="Monthly insurance cost per vehicle",
    )
    default_registration_admin_per_month: Decimal = Field(
        default=Decimal("125"),
        ge=Decimal("0"),
        description="Monthly registration and admin cost per vehicle",
    )
    default_other_costs_per_month: Decimal = Field(
        default=Decimal("75"),
        ge=Decimal("0"),
        description="Other monthly costs per vehicle",
    )

    # Margin policy
    margin_warning_percent: Decimal = Field(
        default=Decimal("10"),
        ge=Decimal("0"),
        le=Decimal("100"),
        description="Lines below this margin are listed as warnings",
    )
    margin_block_percent: Decimal = Field(
        default=Decimal("5"),
        ge=Decimal("0"),
        le=Decimal("100"),
        description="Lines below this margin block cost sheet submission",
    )

    @field_validator("margin_block_percent")
    @classmethod
    def validate_margin_thresholds(
        cls: type["Settings"], v: Decimal, info: ValidationInfo
    ) -> Decimal:
        """Ensure the blocking threshold does not exceed the warning threshold."""
        if "margin_warning_percent" in info.data:
            warning = info.data["margin_warning_percent"]
            if v > warning:
                raise ValueError(
                    f"margin_block_percent ({v}) must be <= margin_warning_percent ({warning})"
                )
        return v

    @field_validator("default_currency", mode="before")
    @classmethod
    def normalize_currency(cls: type["Settings"], v: object) -> object:
        """Currency codes are stored upper-case."""
        return v.upper() if isinstance(v, str) else v


_settings: Settings | None = None


@beartype
def get_settings() -> Settings:
    """Get cached settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


@beartype
def clear_settings_cache() -> None:
    """Clear settings cache (for testing)."""
    global _settings
    _settings = None
