"""Test configuration and shared fixtures.

Settings are read from the environment once and cached; every test starts
from a clean cache so ``monkeypatch.setenv`` overrides take effect.
"""

from collections.abc import Generator

import pytest

from fixtures.quote_data import assumptions, components, corporate_quote
from lease_quote.core.config import Settings, clear_settings_cache
from lease_quote.models import CostAssumptions, CostComponents, Quote
from lease_quote.services import CostSheetService, InMemoryQuoteStore, QuoteService


@pytest.fixture(autouse=True)
def clean_settings() -> Generator[None, None, None]:
    """Reset the cached settings around each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def settings() -> Settings:
    """Default settings, independent of the environment cache."""
    return Settings()


@pytest.fixture
def quote() -> Quote:
    """Single-line corporate lease quote."""
    return corporate_quote()


@pytest.fixture
def cost_assumptions() -> CostAssumptions:
    """Sheet assumptions used across cost sheet tests."""
    return assumptions()


@pytest.fixture
def line_components() -> CostComponents:
    """Cost inputs totalling 1050 per month."""
    return components()


@pytest.fixture
def store() -> InMemoryQuoteStore:
    """Empty in-memory store."""
    return InMemoryQuoteStore()


@pytest.fixture
def quote_service(store: InMemoryQuoteStore, settings: Settings) -> QuoteService:
    """Quote service over the in-memory store."""
    return QuoteService(store, settings)


@pytest.fixture
def cost_sheet_service(
    store: InMemoryQuoteStore, settings: Settings
) -> CostSheetService:
    """Cost sheet service over the in-memory store."""
    return CostSheetService(store, settings)
