"""
Effective rate-limit resolution.

The store returns every applicable limit ordered by specificity; these
helpers make the single-answer decision on top of that list.
"""

from typing import List, Optional

from provider_limits.storage.models import RateLimit
from provider_limits.storage.repository import RateLimitStore


def effective_limit(candidates: List[RateLimit]) -> Optional[RateLimit]:
    """Pick the effective limit from a specificity-ordered candidate list.

    Args:
        candidates: Result of ``RateLimitStore.query_rate_limit``

    Returns:
        The most specific limit, or None if nothing applies
    """
    if not candidates:
        return None
    return candidates[0]


def resolve_effective_limit(
    store: RateLimitStore,
    provider: str,
    plan: str,
    limit_type: str,
    model: Optional[str] = None,
    endpoint: Optional[str] = None,
) -> Optional[RateLimit]:
    """Query the store and return the single limit that governs a call.

    An endpoint-scoped limit beats a model-scoped one, which beats the
    account-wide limit.
    """
    candidates = store.query_rate_limit(
        provider, plan, limit_type, model=model, endpoint=endpoint
    )
    return effective_limit(candidates)


def overridden_limits(candidates: List[RateLimit]) -> List[RateLimit]:
    """Return the broader limits shadowed by the effective one."""
    return candidates[1:]
