"""
Built-in rate limits, plans and prices for core providers.

Values are taken from each provider's public rate-limit and pricing pages.
"""

from datetime import datetime, timezone
from typing import List, Optional

from provider_limits.config.loader import FactBundle
from provider_limits.storage.models import PlanMetadata, ProviderPricing, RateLimit, Scope

MINUTE = 60
HOUR = 3600
DAY = 86400

OPENAI_LIMITS_URL = "https://platform.openai.com/docs/guides/rate-limits"
ANTHROPIC_LIMITS_URL = "https://docs.anthropic.com/en/api/rate-limits"
DEEPSEEK_URL = "https://platform.deepseek.com/api-docs/pricing/"
CEREBRAS_LIMITS_URL = "https://inference-docs.cerebras.ai/api-reference/rate-limits"
GEMINI_URL = "https://ai.google.dev/pricing"
GROQ_LIMITS_URL = "https://console.groq.com/docs/rate-limits"
MISTRAL_LIMITS_URL = "https://docs.mistral.ai/api/#rate-limits"
DEEPGRAM_LIMITS_URL = "https://developers.deepgram.com/docs/rate-limits"


def _limit(
    provider: str,
    plan: str,
    limit_type: str,
    value: int,
    window: int,
    source_url: str,
    verified_at: datetime,
    model: Optional[str] = None,
) -> RateLimit:
    return RateLimit(
        provider=provider,
        plan=plan,
        limit_type=limit_type,
        limit_value=value,
        reset_window_seconds=window,
        applies_to=Scope.MODEL if model else Scope.ACCOUNT,
        model=model,
        source_url=source_url,
        last_verified=verified_at,
    )


def default_rate_limits(verified_at: datetime) -> List[RateLimit]:
    """Known rate limits, stamped as verified at ``verified_at``."""
    v = verified_at
    limits = []

    openai_tiers = {
        "tier-1": (500, 200_000),
        "tier-2": (3_500, 450_000),
        "tier-3": (5_000, 1_000_000),
        "tier-4": (10_000, 10_000_000),
        "tier-5": (30_000, 100_000_000),
    }
    for plan, (rpm, tpm) in openai_tiers.items():
        limits.append(_limit("openai", plan, "rpm", rpm, MINUTE, OPENAI_LIMITS_URL, v))
        limits.append(_limit("openai", plan, "tpm", tpm, MINUTE, OPENAI_LIMITS_URL, v))
    limits.append(_limit("openai", "tier-1", "rpd", 10_000, DAY, OPENAI_LIMITS_URL, v))

    anthropic_tiers = {
        "tier-1": (50, 100_000),
        "tier-2": (1_000, 300_000),
        "tier-3": (2_000, 1_000_000),
        "tier-4": (4_000, 4_000_000),
    }
    for plan, (rpm, tpm) in anthropic_tiers.items():
        limits.append(_limit("anthropic", plan, "rpm", rpm, MINUTE, ANTHROPIC_LIMITS_URL, v))
        limits.append(_limit("anthropic", plan, "tpm", tpm, MINUTE, ANTHROPIC_LIMITS_URL, v))
    limits.append(_limit("anthropic", "tier-1", "rpd", 1_000, DAY, ANTHROPIC_LIMITS_URL, v))

    limits.extend([
        _limit("deepseek", "pay_per_go", "rpm", 60, MINUTE, DEEPSEEK_URL, v),
        _limit("deepseek", "pay_per_go", "rph", 3_600, HOUR, DEEPSEEK_URL, v),
        _limit("cerebras", "free", "rpm", 30, MINUTE, CEREBRAS_LIMITS_URL, v),
        _limit("cerebras", "free", "tpm", 1_000_000, MINUTE, CEREBRAS_LIMITS_URL, v),
        _limit("cerebras", "pay_per_go", "rpm", 900, MINUTE, CEREBRAS_LIMITS_URL, v),
        # Gemini free tier is declared per model
        _limit("google-gemini", "free", "rpm", 15, MINUTE, GEMINI_URL, v, model="gemini-2.0-flash"),
        _limit("google-gemini", "free", "tpm", 1_000_000, MINUTE, GEMINI_URL, v, model="gemini-2.0-flash"),
        _limit("google-gemini", "pay_per_go", "rpm", 1_000, MINUTE, GEMINI_URL, v),
        _limit("google-gemini", "pay_per_go", "tpm", 4_000_000, MINUTE, GEMINI_URL, v),
        _limit("groq", "free", "rpm", 30, MINUTE, GROQ_LIMITS_URL, v),
        _limit("groq", "free", "rpd", 14_400, DAY, GROQ_LIMITS_URL, v),
        _limit("groq", "pay_per_go", "rpm", 7_000, MINUTE, GROQ_LIMITS_URL, v),
        _limit("mistral", "free", "rpm", 1, MINUTE, MISTRAL_LIMITS_URL, v),
        _limit("mistral", "pay_per_go", "rpm", 5, MINUTE, MISTRAL_LIMITS_URL, v),
        # Concurrency caps have no reset window
        _limit("deepgram", "pay_per_go", "concurrent", 250, 0, DEEPGRAM_LIMITS_URL, v),
    ])
    return limits


def default_pricing() -> List[ProviderPricing]:
    """Known current prices per model and plan."""
    tokens = "1M tokens"
    return [
        ProviderPricing("openai", "gpt-4o", "tier-1", 2.50, 10.00, tokens),
        ProviderPricing("openai", "gpt-4o-mini", "tier-1", 0.15, 0.60, tokens),
        ProviderPricing("openai", "o1", "tier-1", 15.00, 60.00, tokens),
        ProviderPricing("anthropic", "claude-3.5-sonnet", "tier-1", 3.00, 15.00, tokens),
        ProviderPricing("anthropic", "claude-3.5-haiku", "tier-1", 0.80, 4.00, tokens),
        ProviderPricing("deepseek", "deepseek-chat", "pay_per_go", 0.14, 0.28, tokens),
        ProviderPricing("deepseek", "deepseek-reasoner", "pay_per_go", 0.55, 2.19, tokens),
        ProviderPricing("cerebras", "llama3.1-8b", "free", 0.00, 0.00, tokens, included_units=1_000_000),
        ProviderPricing("cerebras", "llama3.1-70b", "pay_per_go", 0.60, 0.60, tokens),
        ProviderPricing("google-gemini", "gemini-2.0-flash", "free", 0.00, 0.00, tokens, included_units=1_500),
        ProviderPricing("google-gemini", "gemini-1.5-pro", "pay_per_go", 1.25, 5.00, tokens),
        ProviderPricing("groq", "llama-3.3-70b", "pay_per_go", 0.59, 0.79, tokens),
        ProviderPricing("mistral", "mistral-large", "pay_per_go", 2.00, 6.00, tokens),
        ProviderPricing("deepgram", "nova-2", "pay_per_go", 0.0043, 0.0043, "per second"),
    ]


def default_plans() -> List[PlanMetadata]:
    """Descriptions of the plans referenced by the default limits."""
    plans = [
        PlanMetadata("openai", f"tier-{n}", f"Usage Tier {n}", documentation_url=OPENAI_LIMITS_URL)
        for n in range(1, 6)
    ]
    plans.extend(
        PlanMetadata("anthropic", f"tier-{n}", f"Build Tier {n}", documentation_url=ANTHROPIC_LIMITS_URL)
        for n in range(1, 5)
    )
    plans.extend([
        PlanMetadata("deepseek", "pay_per_go", "Pay as you go", documentation_url=DEEPSEEK_URL),
        PlanMetadata("cerebras", "free", "Free", has_free_tier=True, documentation_url=CEREBRAS_LIMITS_URL),
        PlanMetadata("cerebras", "pay_per_go", "Developer", documentation_url=CEREBRAS_LIMITS_URL),
        PlanMetadata("google-gemini", "free", "Free of charge", has_free_tier=True, documentation_url=GEMINI_URL),
        PlanMetadata("google-gemini", "pay_per_go", "Pay-as-you-go", documentation_url=GEMINI_URL),
        PlanMetadata("groq", "free", "Free", has_free_tier=True, documentation_url=GROQ_LIMITS_URL),
        PlanMetadata("groq", "pay_per_go", "Developer", documentation_url=GROQ_LIMITS_URL),
        PlanMetadata("mistral", "free", "Experiment", has_free_tier=True, documentation_url=MISTRAL_LIMITS_URL),
        PlanMetadata("mistral", "pay_per_go", "Scale", documentation_url=MISTRAL_LIMITS_URL),
        PlanMetadata("deepgram", "pay_per_go", "Pay As You Go", documentation_url=DEEPGRAM_LIMITS_URL),
    ])
    return plans


def default_bundle(verified_at: Optional[datetime] = None) -> FactBundle:
    """All built-in facts as one bundle ready for ``ingest_bundle``."""
    return FactBundle(
        plans=default_plans(),
        rate_limits=default_rate_limits(verified_at or datetime.now(timezone.utc)),
        pricing=default_pricing(),
    )
