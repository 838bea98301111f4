"""
Pricing calculations and price-change recording.

The store keeps current price and price history apart. Callers that want an
audit trail go through ``record_price_change``, which pairs the two writes.
"""

from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal, ROUND_UP
from typing import Dict, Optional

from provider_limits.storage.models import PricingHistoryEntry, ProviderPricing
from provider_limits.storage.repository import RateLimitStore

# Number of billed units covered by one priced unit
UNIT_SIZES: Dict[str, Decimal] = {
    "1M tokens": Decimal("1000000"),
    "1K tokens": Decimal("1000"),
    "per token": Decimal("1"),
    "per character": Decimal("1"),
    "per second": Decimal("1"),
    "per request": Decimal("1"),
}


def calculate_cost(pricing: ProviderPricing, input_units: int, output_units: int) -> float:
    """Calculate cost of a call at the given price with conservative rounding.

    Args:
        pricing: Current price for the provider/model/plan
        input_units: Billed input units (tokens, characters, seconds...)
        output_units: Billed output units

    Returns:
        Total cost rounded UP to 6 decimal places, in ``pricing.currency``

    Raises:
        ValueError: If the unit type is unknown or unit counts are negative
    """
    if input_units < 0 or output_units < 0:
        raise ValueError("unit counts cannot be negative")
    if pricing.unit_type not in UNIT_SIZES:
        raise ValueError(f"Unsupported unit type: {pricing.unit_type}")

    unit_size = UNIT_SIZES[pricing.unit_type]
    input_cost = (Decimal(input_units) / unit_size) * Decimal(str(pricing.input_cost))
    output_cost = (Decimal(output_units) / unit_size) * Decimal(str(pricing.output_cost))

    total_cost = input_cost + output_cost
    rounded_cost = total_cost.quantize(Decimal("0.000001"), rounding=ROUND_UP)

    return float(rounded_cost)


def record_price_change(
    store: RateLimitStore,
    pricing: ProviderPricing,
    reason: str = "",
    change_date: Optional[datetime] = None,
) -> Optional[PricingHistoryEntry]:
    """Update the current price and log the transition when it changed.

    Reads the existing price, upserts the new one, then appends a history
    entry if input or output cost moved. A first-ever price is logged with
    no old costs. Unit, currency or allotment changes alone are not logged.

    The two writes are separate statements; a failure after the upsert
    leaves the new price in place without a history entry.

    Args:
        store: Initialized rate-limit store
        pricing: New current price
        reason: Free-text reason recorded with the transition
        change_date: When the change took effect (defaults to now)

    Returns:
        The appended history entry, or None if costs were unchanged
    """
    previous = store.get_provider_pricing(pricing.provider, pricing.model, pricing.plan)
    store.upsert_provider_pricing(pricing)

    if (
        previous is not None
        and previous.input_cost == pricing.input_cost
        and previous.output_cost == pricing.output_cost
    ):
        return None

    entry = PricingHistoryEntry(
        provider=pricing.provider,
        model=pricing.model,
        plan=pricing.plan,
        old_input_cost=previous.input_cost if previous else None,
        old_output_cost=previous.output_cost if previous else None,
        new_input_cost=pricing.input_cost,
        new_output_cost=pricing.output_cost,
        change_date=change_date or datetime.now(timezone.utc),
        change_reason=reason,
    )
    entry_id = store.append_pricing_history(entry)
    return replace(entry, id=entry_id)
