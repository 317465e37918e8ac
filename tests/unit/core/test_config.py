"""Tests for settings loading and validation."""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from lease_quote.core.config import Settings, clear_settings_cache, get_settings


class TestSettings:
    """Test default values and environment overrides."""

    def test_defaults(self):
        """Defaults match the UAE corporate leasing setup."""
        settings = Settings()
        assert settings.default_currency == "AED"
        assert settings.default_vat_percentage == Decimal("5")
        assert settings.default_deposit_amount == Decimal("2500")
        assert settings.default_advance_rent_months == 1
        assert settings.margin_warning_percent == Decimal("10")
        assert settings.margin_block_percent == Decimal("5")
        assert settings.days_per_month == Decimal("30")

    def test_env_override(self, monkeypatch):
        """Environment variables with the LEASE_QUOTE_ prefix win."""
        monkeypatch.setenv("LEASE_QUOTE_DEFAULT_VAT_PERCENTAGE", "15")
        monkeypatch.setenv("LEASE_QUOTE_DEFAULT_CURRENCY", "usd")
        settings = Settings()
        assert settings.default_vat_percentage == Decimal("15")
        assert settings.default_currency == "USD"

    def test_block_threshold_cannot_exceed_warning(self):
        """The blocking margin must not be above the warning margin."""
        with pytest.raises(ValidationError):
            Settings(margin_warning_percent=Decimal("5"), margin_block_percent=Decimal("8"))

    def test_invalid_handover_type_rejected(self):
        """Handover defaults accept only the known handover types."""
        with pytest.raises(ValidationError):
            Settings(default_pickup_type="airport")

    def test_settings_are_frozen(self):
        """Settings cannot be changed after load."""
        settings = Settings()
        with pytest.raises(ValidationError):
            settings.default_currency = "EUR"

    def test_get_settings_caches_until_cleared(self, monkeypatch):
        """get_settings returns the cached instance until the cache is cleared."""
        first = get_settings()
        assert get_settings() is first

        monkeypatch.setenv("LEASE_QUOTE_MARGIN_WARNING_PERCENT", "12")
        assert get_settings().margin_warning_percent == Decimal("10")

        clear_settings_cache()
        assert get_settings().margin_warning_percent == Decimal("12")
