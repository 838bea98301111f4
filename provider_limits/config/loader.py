"""
Configuration management and loading.

Handles store settings and YAML fact files used for manual ingestion.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from provider_limits.storage.db import DEFAULT_BUSY_TIMEOUT, DEFAULT_DB_PATH, parse_timestamp
from provider_limits.storage.models import PlanMetadata, ProviderPricing, RateLimit, Scope


@dataclass(frozen=True)
class StoreConfig:
    """Settings for opening the rate-limit store."""
    db_path: str = DEFAULT_DB_PATH
    busy_timeout_seconds: float = DEFAULT_BUSY_TIMEOUT

    def __post_init__(self):
        """Validate store settings."""
        if not self.db_path or not self.db_path.strip():
            raise ValueError("db_path cannot be empty")
        if self.busy_timeout_seconds <= 0:
            raise ValueError("busy_timeout_seconds must be > 0")


@dataclass(frozen=True)
class FactBundle:
    """Facts ready to be upserted into the store."""
    plans: List[PlanMetadata] = field(default_factory=list)
    rate_limits: List[RateLimit] = field(default_factory=list)
    pricing: List[ProviderPricing] = field(default_factory=list)


_RATE_LIMIT_REQUIRED = {
    'provider', 'plan', 'limit_type', 'limit_value',
    'reset_window_seconds', 'applies_to',
}
_RATE_LIMIT_OPTIONAL = {
    'model', 'endpoint', 'burst_allowance', 'source_url', 'last_verified',
}
_PLAN_REQUIRED = {'provider', 'plan', 'official_name'}
_PLAN_OPTIONAL = {'cost_per_month', 'has_free_tier', 'documentation_url'}
_PRICING_REQUIRED = {
    'provider', 'model', 'plan', 'input_cost', 'output_cost', 'unit_type',
}
_PRICING_OPTIONAL = {'currency', 'included_units'}


def load_store_config(path: str) -> StoreConfig:
    """Load and validate store configuration from YAML file.

    Expected layout::

        database:
          path: rate_limits.db
          busy_timeout_seconds: 5

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated StoreConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    raw_config = _read_yaml(path, "Store config")

    unknown_keys = set(raw_config.keys()) - {'database'}
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    if 'database' not in raw_config:
        raise ValueError("Missing required 'database' section")

    database = raw_config['database']
    if not isinstance(database, dict):
        raise ValueError("'database' must be a dictionary")

    unknown_db_keys = set(database.keys()) - {'path', 'busy_timeout_seconds'}
    if unknown_db_keys:
        raise ValueError(f"Unknown database keys: {unknown_db_keys}")

    db_path = database.get('path', DEFAULT_DB_PATH)
    if not isinstance(db_path, str):
        raise ValueError("'database.path' must be a string")

    timeout = database.get('busy_timeout_seconds', DEFAULT_BUSY_TIMEOUT)
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)):
        raise ValueError("'database.busy_timeout_seconds' must be a number")

    return StoreConfig(db_path=db_path, busy_timeout_seconds=float(timeout))


def load_fact_file(path: str, verified_at: Optional[datetime] = None) -> FactBundle:
    """Load plans, rate limits and pricing from a YAML fact file.

    Every section is optional but the file must contain at least one.
    Rate limits without ``last_verified`` are stamped with ``verified_at``
    (or the load time).

    Args:
        path: Path to YAML fact file
        verified_at: Timestamp for rate limits that don't carry one

    Returns:
        FactBundle with validated facts

    Raises:
        FileNotFoundError: If the file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If any entry is invalid
    """
    raw = _read_yaml(path, "Fact file")

    allowed_top_keys = {'plans', 'rate_limits', 'pricing'}
    unknown_keys = set(raw.keys()) - allowed_top_keys
    if unknown_keys:
        raise ValueError(f"Unknown fact file keys: {unknown_keys}")

    stamp = verified_at or datetime.now(timezone.utc)

    plans = [
        _parse_plan(entry, f"plans[{i}]")
        for i, entry in enumerate(_section(raw, 'plans'))
    ]
    rate_limits = [
        _parse_rate_limit(entry, f"rate_limits[{i}]", stamp)
        for i, entry in enumerate(_section(raw, 'rate_limits'))
    ]
    pricing = [
        _parse_pricing(entry, f"pricing[{i}]")
        for i, entry in enumerate(_section(raw, 'pricing'))
    ]

    return FactBundle(plans=plans, rate_limits=rate_limits, pricing=pricing)


def _read_yaml(path: str, label: str) -> Dict[str, Any]:
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"{label} not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in {path}: {e}")

    if not raw:
        raise ValueError(f"{label} is empty")
    if not isinstance(raw, dict):
        raise ValueError(f"{label} must be a mapping at the top level")
    return raw


def _section(raw: Dict[str, Any], name: str) -> List[Dict[str, Any]]:
    entries = raw.get(name) or []
    if not isinstance(entries, list):
        raise ValueError(f"'{name}' must be a list")
    return entries


def _check_keys(data: Any, required: set, optional: set, path: str) -> None:
    """Reject non-mapping entries, unknown keys and missing required keys."""
    if not isinstance(data, dict):
        raise ValueError(f"{path} must be a dictionary")

    unknown_keys = set(data.keys()) - required - optional
    if unknown_keys:
        raise ValueError(f"Unknown keys in {path}: {unknown_keys}")

    missing = required - set(data.keys())
    if missing:
        raise ValueError(f"Missing required keys in {path}: {sorted(missing)}")


def _require_str(data: Dict[str, Any], key: str, path: str) -> str:
    value = data[key]
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"'{key}' in {path} must be a non-empty string")
    return value


def _optional_str(data: Dict[str, Any], key: str, path: str) -> Optional[str]:
    if data.get(key) is None:
        return None
    return _require_str(data, key, path)


def _require_int(data: Dict[str, Any], key: str, path: str, default: Optional[int] = None) -> int:
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"'{key}' in {path} must be an integer >= 0")
    return value


def _require_number(data: Dict[str, Any], key: str, path: str) -> float:
    value = data[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
        raise ValueError(f"'{key}' in {path} must be a number >= 0")
    return float(value)


def _parse_rate_limit(data: Any, path: str, stamp: datetime) -> RateLimit:
    _check_keys(data, _RATE_LIMIT_REQUIRED, _RATE_LIMIT_OPTIONAL, path)

    scope_str = data['applies_to']
    try:
        applies_to = Scope(str(scope_str).lower())
    except ValueError:
        valid_scopes = [scope.value for scope in Scope]
        raise ValueError(f"'applies_to' in {path} must be one of: {valid_scopes}")

    last_verified = data.get('last_verified', stamp)
    if isinstance(last_verified, str):
        try:
            last_verified = parse_timestamp(last_verified)
        except ValueError:
            raise ValueError(f"'last_verified' in {path} must be an ISO-8601 timestamp")
    elif isinstance(last_verified, date) and not isinstance(last_verified, datetime):
        # YAML reads unquoted dates as date objects
        last_verified = datetime.combine(last_verified, time())
    elif not isinstance(last_verified, datetime):
        raise ValueError(f"'last_verified' in {path} must be an ISO-8601 timestamp")

    try:
        return RateLimit(
            provider=_require_str(data, 'provider', path),
            plan=_require_str(data, 'plan', path),
            limit_type=_require_str(data, 'limit_type', path),
            limit_value=_require_int(data, 'limit_value', path),
            burst_allowance=_require_int(data, 'burst_allowance', path, default=0),
            reset_window_seconds=_require_int(data, 'reset_window_seconds', path),
            applies_to=applies_to,
            model=_optional_str(data, 'model', path),
            endpoint=_optional_str(data, 'endpoint', path),
            source_url=data.get('source_url') or "",
            last_verified=last_verified,
        )
    except ValueError as e:
        raise ValueError(f"Invalid rate limit in {path}: {e}") from e


def _parse_plan(data: Any, path: str) -> PlanMetadata:
    _check_keys(data, _PLAN_REQUIRED, _PLAN_OPTIONAL, path)

    cost = data.get('cost_per_month')
    if cost is not None:
        cost = _require_number(data, 'cost_per_month', path)

    has_free_tier = data.get('has_free_tier', False)
    if not isinstance(has_free_tier, bool):
        raise ValueError(f"'has_free_tier' in {path} must be true or false")

    return PlanMetadata(
        provider=_require_str(data, 'provider', path),
        plan=_require_str(data, 'plan', path),
        official_name=_require_str(data, 'official_name', path),
        cost_per_month=cost,
        has_free_tier=has_free_tier,
        documentation_url=data.get('documentation_url') or "",
    )


def _parse_pricing(data: Any, path: str) -> ProviderPricing:
    _check_keys(data, _PRICING_REQUIRED, _PRICING_OPTIONAL, path)

    included_units = data.get('included_units')
    if included_units is not None:
        included_units = _require_int(data, 'included_units', path)

    return ProviderPricing(
        provider=_require_str(data, 'provider', path),
        model=_require_str(data, 'model', path),
        plan=_require_str(data, 'plan', path),
        input_cost=_require_number(data, 'input_cost', path),
        output_cost=_require_number(data, 'output_cost', path),
        unit_type=_require_str(data, 'unit_type', path),
        currency=data.get('currency') or "USD",
        included_units=included_units,
    )
