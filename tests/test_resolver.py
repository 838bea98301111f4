"""
Unit tests for rate-limit resolution.

Tests specificity ordering, scope filtering and concurrent reads.
"""

import os
import tempfile
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime

import pytest

from provider_limits.core.resolution import (
    effective_limit,
    overridden_limits,
    resolve_effective_limit,
)
from provider_limits.storage.models import RateLimit, Scope
from provider_limits.storage.repository import open_store

VERIFIED = datetime(2025, 1, 15, 12, 0, 0)


def _limit(limit_type: str, value: int, model=None, endpoint=None, plan="tier-1") -> RateLimit:
    if endpoint:
        scope = Scope.ENDPOINT
    elif model:
        scope = Scope.MODEL
    else:
        scope = Scope.ACCOUNT
    return RateLimit(
        provider="openai",
        plan=plan,
        limit_type=limit_type,
        limit_value=value,
        reset_window_seconds=60,
        applies_to=scope,
        model=model,
        endpoint=endpoint,
        last_verified=VERIFIED,
    )


@pytest.fixture
def store():
    """Initialized store in a temporary directory."""
    with tempfile.TemporaryDirectory() as temp_dir:
        store = open_store(os.path.join(temp_dir, "test.db"))
        try:
            yield store
        finally:
            store.close()


@pytest.fixture
def populated(store):
    """Store with account, model and endpoint scoped tpm/rpm limits."""
    for limit in [
        _limit("tpm", 80_000),
        _limit("tpm", 30_000, model="gpt-4o"),
        _limit("tpm", 150_000, model="gpt-4o-mini"),
        _limit("tpm", 10_000, endpoint="/v1/images/generations"),
        _limit("rpm", 500),
        _limit("rpm", 100, model="gpt-4o"),
        _limit("rpm", 500, plan="tier-2"),
    ]:
        store.upsert_rate_limit(limit)
    return store


class TestQueryRateLimit:
    """Test specificity-ordered rate limit queries."""

    def test_model_scope_ranks_before_account(self, populated):
        """The model-scoped limit is the effective one for that model."""
        results = populated.query_rate_limit("openai", "tier-1", "tpm", model="gpt-4o")

        model_pos = next(i for i, r in enumerate(results) if r.model == "gpt-4o")
        account_pos = next(i for i, r in enumerate(results) if r.applies_to == Scope.ACCOUNT)
        assert model_pos < account_pos
        assert results[model_pos].limit_value == 30_000
        assert results[account_pos].limit_value == 80_000

    def test_model_filter_excludes_other_models(self, populated):
        """Rows scoped to a different model never match."""
        results = populated.query_rate_limit("openai", "tier-1", "tpm", model="gpt-4o")

        assert all(r.model in (None, "gpt-4o") for r in results)
        assert not any(r.model == "gpt-4o-mini" for r in results)

    def test_account_rows_match_any_model(self, populated):
        """Wildcard rows stay eligible for a model with no override."""
        results = populated.query_rate_limit("openai", "tier-1", "tpm", model="o1")

        values = [r.limit_value for r in results]
        assert 80_000 in values
        assert results[-1].applies_to == Scope.ACCOUNT

    def test_no_filters_returns_all_scopes_ordered(self, populated):
        """Unsupplied filters admit every scope, narrowest first."""
        results = populated.query_rate_limit("openai", "tier-1", "tpm")

        assert len(results) == 4
        ranks = [r.applies_to.rank for r in results]
        assert ranks == sorted(ranks, reverse=True)
        assert results[0].endpoint == "/v1/images/generations"
        assert results[-1].applies_to == Scope.ACCOUNT

    def test_endpoint_scope_ranks_first(self, populated):
        results = populated.query_rate_limit(
            "openai", "tier-1", "tpm", model="gpt-4o", endpoint="/v1/images/generations"
        )

        assert [r.applies_to for r in results] == [Scope.ENDPOINT, Scope.MODEL, Scope.ACCOUNT]

    def test_endpoint_filter_excludes_other_endpoints(self, populated):
        results = populated.query_rate_limit(
            "openai", "tier-1", "tpm", endpoint="/v1/chat/completions"
        )

        assert all(r.endpoint is None for r in results)

    def test_exact_key_match(self, populated):
        """Plan and limit type must match exactly."""
        assert len(populated.query_rate_limit("openai", "tier-2", "rpm")) == 1
        assert populated.query_rate_limit("openai", "tier-2", "tpm") == []
        assert populated.query_rate_limit("anthropic", "tier-1", "rpm") == []

    def test_no_match_is_empty_list(self, store):
        """An empty result is not an error."""
        assert store.query_rate_limit("openai", "tier-1", "rpm", model="gpt-4o") == []


class TestEffectiveLimit:
    """Test the single-answer pick on top of the ordered list."""

    def test_resolve_picks_most_specific(self, populated):
        chosen = resolve_effective_limit(populated, "openai", "tier-1", "rpm", model="gpt-4o")
        assert chosen.limit_value == 100
        assert chosen.model == "gpt-4o"

    def test_resolve_falls_back_to_account(self, populated):
        chosen = resolve_effective_limit(populated, "openai", "tier-1", "rpm", model="o1")
        assert chosen.limit_value == 500
        assert chosen.applies_to == Scope.ACCOUNT

    def test_resolve_none_when_absent(self, populated):
        assert resolve_effective_limit(populated, "openai", "tier-1", "rpd") is None

    def test_effective_limit_of_empty_list(self):
        assert effective_limit([]) is None

    def test_overridden_limits(self, populated):
        candidates = populated.query_rate_limit("openai", "tier-1", "rpm", model="gpt-4o")
        shadowed = overridden_limits(candidates)
        assert [r.limit_value for r in shadowed] == [500]


class TestGetAllRateLimits:
    """Test bulk listing for display."""

    def test_ordered_by_type_then_scope(self, populated):
        rows = populated.get_all_rate_limits_for_provider("openai", "tier-1")

        assert [r.limit_type for r in rows] == ["rpm", "rpm", "tpm", "tpm", "tpm", "tpm"]
        assert [r.applies_to for r in rows[:2]] == [Scope.ACCOUNT, Scope.MODEL]
        assert rows[2].applies_to == Scope.ACCOUNT
        assert rows[-1].applies_to == Scope.ENDPOINT

    def test_scoped_to_plan(self, populated):
        rows = populated.get_all_rate_limits_for_provider("openai", "tier-2")
        assert len(rows) == 1

    def test_unknown_provider_is_empty(self, populated):
        assert populated.get_all_rate_limits_for_provider("groq", "free") == []


class TestConcurrency:
    """Test reads overlapping writes under write-ahead logging."""

    def test_concurrent_reads_during_writes(self, populated):
        """Readers all succeed while a writer keeps upserting."""
        def read(_):
            results = populated.query_rate_limit("openai", "tier-1", "rpm", model="gpt-4o")
            return [r.applies_to for r in results]

        def write(n):
            populated.upsert_rate_limit(_limit("rpd", 10_000 + n))

        with ThreadPoolExecutor(max_workers=8) as pool:
            writes = [pool.submit(write, n) for n in range(50)]
            reads = list(pool.map(read, range(200)))
            for future in writes:
                future.result()

        assert all(r == [Scope.MODEL, Scope.ACCOUNT] for r in reads)
        rpd = populated.query_rate_limit("openai", "tier-1", "rpd")
        assert len(rpd) == 1

    def test_racing_upserts_converge_to_one_full_fact(self, store):
        """Two writers on one identity leave exactly one writer's values."""
        a = RateLimit(
            provider="openai", plan="tier-1", limit_type="rpm", limit_value=500,
            burst_allowance=10, reset_window_seconds=60, applies_to=Scope.ACCOUNT,
            source_url="https://a.example", last_verified=datetime(2025, 1, 1),
        )
        b = RateLimit(
            provider="openai", plan="tier-1", limit_type="rpm", limit_value=900,
            burst_allowance=90, reset_window_seconds=120, applies_to=Scope.ACCOUNT,
            source_url="https://b.example", last_verified=datetime(2025, 2, 1),
        )

        with ThreadPoolExecutor(max_workers=4) as pool:
            futures = [pool.submit(store.upsert_rate_limit, a if n % 2 else b) for n in range(40)]
            for future in futures:
                future.result()

        results = store.query_rate_limit("openai", "tier-1", "rpm")
        assert len(results) == 1
        assert results[0] in (a, b)
