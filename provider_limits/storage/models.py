"""
Data models for storage layer.

Defines the four fact kinds held by the rate-limit store and the scope
ranking used to order overlapping rate limits.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class Scope(Enum):
    """Breadth at which a rate limit applies."""
    ACCOUNT = "account"
    MODEL = "model"
    ENDPOINT = "endpoint"

    @property
    def rank(self) -> int:
        """Specificity ordinal; narrower scopes rank higher."""
        return _SCOPE_RANK[self]


_SCOPE_RANK = {
    Scope.ACCOUNT: 0,
    Scope.MODEL: 1,
    Scope.ENDPOINT: 2,
}


@dataclass(frozen=True)
class RateLimit:
    """One configured ceiling for a provider plan.

    Identity is ``(provider, plan, limit_type, model, endpoint)``. A ``None``
    model or endpoint means the limit applies to all models or endpoints.
    ``applies_to`` declares the scope kind and must agree with which of
    ``model``/``endpoint`` are set.
    """
    provider: str
    plan: str
    limit_type: str
    limit_value: int
    reset_window_seconds: int
    applies_to: Scope
    last_verified: datetime
    burst_allowance: int = 0
    model: Optional[str] = None
    endpoint: Optional[str] = None
    source_url: str = ""

    def __post_init__(self):
        """Validate identity fields, numeric ranges and scope agreement."""
        for name in ("provider", "plan", "limit_type"):
            value = getattr(self, name)
            if not value or not value.strip():
                raise ValueError(f"{name} is required and cannot be empty")
        if not isinstance(self.applies_to, Scope):
            raise ValueError(f"applies_to must be a Scope, got {self.applies_to!r}")
        if self.model == "":
            raise ValueError("model cannot be empty; use None for all models")
        if self.endpoint == "":
            raise ValueError("endpoint cannot be empty; use None for all endpoints")
        if self.limit_value < 0:
            raise ValueError("limit_value cannot be negative")
        if self.burst_allowance < 0:
            raise ValueError("burst_allowance cannot be negative")
        if self.reset_window_seconds < 0:
            raise ValueError("reset_window_seconds cannot be negative")

        if self.applies_to == Scope.ACCOUNT:
            if self.model is not None or self.endpoint is not None:
                raise ValueError("account-scoped limits cannot name a model or endpoint")
        elif self.applies_to == Scope.MODEL:
            if self.model is None:
                raise ValueError("model-scoped limits require a model")
            if self.endpoint is not None:
                raise ValueError("model-scoped limits cannot name an endpoint")
        elif self.endpoint is None:
            raise ValueError("endpoint-scoped limits require an endpoint")

    @property
    def identity(self) -> tuple:
        """Unique key of this fact."""
        return (self.provider, self.plan, self.limit_type, self.model, self.endpoint)


@dataclass(frozen=True)
class PlanMetadata:
    """Description of a named provider plan."""
    provider: str
    plan: str
    official_name: str
    cost_per_month: Optional[float] = None
    has_free_tier: bool = False
    documentation_url: str = ""

    def __post_init__(self):
        if not self.provider or not self.plan:
            raise ValueError("provider and plan are required")
        if self.cost_per_month is not None and self.cost_per_month < 0:
            raise ValueError("cost_per_month cannot be negative")


@dataclass(frozen=True)
class ProviderPricing:
    """Current price for a provider/model/plan triple.

    Costs are per ``unit_type`` (e.g. ``"1M tokens"``, ``"per character"``).
    """
    provider: str
    model: str
    plan: str
    input_cost: float
    output_cost: float
    unit_type: str
    currency: str = "USD"
    included_units: Optional[int] = None

    def __post_init__(self):
        if not self.provider or not self.model or not self.plan:
            raise ValueError("provider, model and plan are required")
        if self.input_cost < 0 or self.output_cost < 0:
            raise ValueError("costs cannot be negative")
        if not self.unit_type:
            raise ValueError("unit_type is required")
        if self.included_units is not None and self.included_units < 0:
            raise ValueError("included_units cannot be negative")


@dataclass(frozen=True)
class PricingHistoryEntry:
    """Append-only record of one price transition.

    Old costs are ``None`` when the transition is the first known price.
    ``id`` is assigned by the store and is ``None`` until the entry is read back.
    """
    provider: str
    model: str
    plan: str
    new_input_cost: float
    new_output_cost: float
    change_date: datetime
    old_input_cost: Optional[float] = None
    old_output_cost: Optional[float] = None
    change_reason: str = ""
    id: Optional[int] = field(default=None, compare=False)
