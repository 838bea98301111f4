"""
Unit tests for pricing calculations and price-change recording.

Tests cost accuracy, rounding behavior, and history pairing.
"""

import os
import tempfile
from datetime import datetime

import pytest

from provider_limits.core.pricing import calculate_cost, record_price_change
from provider_limits.storage.models import ProviderPricing
from provider_limits.storage.repository import open_store


def _gpt4o(input_cost: float = 2.50, output_cost: float = 10.00, **kwargs) -> ProviderPricing:
    return ProviderPricing("openai", "gpt-4o", "tier-1", input_cost, output_cost, "1M tokens", **kwargs)


@pytest.fixture
def store():
    """Initialized store in a temporary directory."""
    with tempfile.TemporaryDirectory() as temp_dir:
        store = open_store(os.path.join(temp_dir, "test.db"))
        try:
            yield store
        finally:
            store.close()


class TestCalculateCost:
    """Test cost calculation from stored prices."""

    def test_per_million_tokens(self):
        """1M input at $2.50 plus 500K output at $10.00."""
        assert calculate_cost(_gpt4o(), 1_000_000, 500_000) == 7.50

    def test_rounds_up(self):
        """Fractional micro-dollars always round up."""
        cost = calculate_cost(_gpt4o(input_cost=0.15, output_cost=0.60), 1, 0)
        assert cost == 0.000001

    def test_per_character_units(self):
        price = ProviderPricing(
            "elevenlabs", "eleven_turbo_v2_5", "starter", 0.00003, 0.00003, "per character"
        )
        assert calculate_cost(price, 10_000, 0) == 0.3

    def test_zero_usage(self):
        assert calculate_cost(_gpt4o(), 0, 0) == 0.0

    def test_unknown_unit_type(self):
        price = ProviderPricing("openai", "dall-e-3", "tier-1", 0.04, 0.0, "per image")
        with pytest.raises(ValueError, match="Unsupported unit type"):
            calculate_cost(price, 1, 0)

    def test_negative_units(self):
        with pytest.raises(ValueError):
            calculate_cost(_gpt4o(), -1, 0)


class TestRecordPriceChange:
    """Test the explicit pairing of price updates with history."""

    def test_first_price_logged_without_old_costs(self, store):
        entry = record_price_change(
            store, _gpt4o(), reason="initial listing", change_date=datetime(2025, 1, 1)
        )

        assert entry is not None
        assert entry.id is not None
        assert entry.old_input_cost is None
        assert entry.old_output_cost is None
        assert entry.new_input_cost == 2.50
        assert store.get_provider_pricing("openai", "gpt-4o", "tier-1") == _gpt4o()

    def test_price_change_logs_transition(self, store):
        record_price_change(store, _gpt4o(5.00, 15.00), change_date=datetime(2025, 1, 1))
        entry = record_price_change(
            store, _gpt4o(2.50, 10.00), reason="price cut", change_date=datetime(2025, 2, 1)
        )

        assert (entry.old_input_cost, entry.old_output_cost) == (5.00, 15.00)
        assert (entry.new_input_cost, entry.new_output_cost) == (2.50, 10.00)

        history = store.get_pricing_history(provider="openai", model="gpt-4o")
        assert len(history) == 2
        assert history[0].change_reason == "price cut"
        assert store.get_provider_pricing("openai", "gpt-4o", "tier-1").input_cost == 2.50

    def test_unchanged_costs_not_logged(self, store):
        record_price_change(store, _gpt4o())
        entry = record_price_change(store, _gpt4o(currency="USD", included_units=100))

        assert entry is None
        assert len(store.get_pricing_history()) == 1
        assert store.get_provider_pricing("openai", "gpt-4o", "tier-1").included_units == 100
