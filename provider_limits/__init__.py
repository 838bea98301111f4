"""
Provider Limits.

Persists and resolves rate-limit and pricing facts for external API providers.
"""

from .storage.errors import (
    NotInitializedError,
    OpenError,
    ReadError,
    SchemaError,
    StoreError,
    WriteError,
)
from .storage.models import (
    PlanMetadata,
    PricingHistoryEntry,
    ProviderPricing,
    RateLimit,
    Scope,
)
from .storage.repository import RateLimitStore, open_store

__all__ = [
    "NotInitializedError",
    "OpenError",
    "PlanMetadata",
    "PricingHistoryEntry",
    "ProviderPricing",
    "RateLimit",
    "RateLimitStore",
    "ReadError",
    "SchemaError",
    "Scope",
    "StoreError",
    "WriteError",
    "open_store",
]
