"""
Ingestion of documented provider facts.

Applies a FactBundle to the store through the typed upserts. Re-ingesting
the same bundle converges to the same rows.
"""

import logging
from dataclasses import dataclass

from provider_limits.config.loader import FactBundle
from provider_limits.storage.repository import RateLimitStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IngestSummary:
    """Number of facts written per kind."""
    plans: int
    rate_limits: int
    pricing: int

    @property
    def total(self) -> int:
        return self.plans + self.rate_limits + self.pricing


def ingest_bundle(store: RateLimitStore, bundle: FactBundle) -> IngestSummary:
    """Upsert plans, then rate limits, then pricing.

    Stops at the first failed write; facts written before it stay written.

    Args:
        store: Initialized rate-limit store
        bundle: Facts to write

    Returns:
        IngestSummary with per-kind counts

    Raises:
        NotInitializedError: If the store is not initialized
        WriteError: If any upsert fails
    """
    for plan in bundle.plans:
        store.upsert_plan_metadata(plan)
    logger.info(
        "Upserted plan metadata",
        extra={"event": "ingest.plans", "count": len(bundle.plans)},
    )

    for limit in bundle.rate_limits:
        store.upsert_rate_limit(limit)
    logger.info(
        "Upserted rate limits",
        extra={"event": "ingest.rate_limits", "count": len(bundle.rate_limits)},
    )

    for pricing in bundle.pricing:
        store.upsert_provider_pricing(pricing)
    logger.info(
        "Upserted provider pricing",
        extra={"event": "ingest.pricing", "count": len(bundle.pricing)},
    )

    return IngestSummary(
        plans=len(bundle.plans),
        rate_limits=len(bundle.rate_limits),
        pricing=len(bundle.pricing),
    )
