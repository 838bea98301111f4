"""
Repository pattern for data access.

Holds the rate-limit store: typed upserts for rate limits, plans and current
pricing, the append-only pricing history, and the specificity-ordered
rate-limit resolver.
"""

import sqlite3
from contextlib import suppress
from pathlib import Path
from typing import List, Optional, Sequence, Type

from .db import (
    DEFAULT_BUSY_TIMEOUT,
    DEFAULT_DB_PATH,
    enable_wal,
    get_connection,
    parse_timestamp,
    to_stored_timestamp,
)
from .errors import NotInitializedError, OpenError, ReadError, StoreError, WriteError
from .models import PlanMetadata, PricingHistoryEntry, ProviderPricing, RateLimit, Scope
from .schema import initialize_schema

_RATE_LIMIT_COLUMNS = """
    SELECT provider_name, plan_type, limit_type, limit_value,
           burst_allowance, reset_window_seconds, applies_to,
           model_id, endpoint_path, source_url, last_verified
    FROM rate_limits
"""

_PRICING_COLUMNS = """
    SELECT provider_name, model_id, plan_type, input_cost, output_cost,
           unit_type, currency, included_units
    FROM provider_pricing
"""

_PLAN_COLUMNS = """
    SELECT provider_name, plan_type, official_name, cost_per_month,
           has_free_tier, documentation_url
    FROM plan_metadata
"""

_HISTORY_COLUMNS = """
    SELECT id, provider_name, model_id, plan_type, old_input_cost,
           old_output_cost, new_input_cost, new_output_cost,
           change_date, change_reason
    FROM pricing_history
"""


class RateLimitStore:
    """SQLite-backed store for provider rate limits and pricing.

    One store object owns one live handle to the backing file. Every
    operation opens its own short-lived connection, so any number of threads
    may read while one writes; write-ahead logging keeps readers off the
    writer's lock.

    Example:
        store = RateLimitStore("rate_limits.db").initialize()
        store.upsert_rate_limit(limit)
        effective = store.query_rate_limit("openai", "tier-1", "rpm", model="gpt-4o")
        store.close()
    """

    def __init__(
        self,
        db_path: str = DEFAULT_DB_PATH,
        busy_timeout: float = DEFAULT_BUSY_TIMEOUT,
    ):
        """Create an uninitialized store bound to a database path.

        Args:
            db_path: Path to SQLite database file
            busy_timeout: Seconds a write waits for a competing writer
        """
        self.db_path = str(db_path)
        self.busy_timeout = busy_timeout
        self._conn: Optional[sqlite3.Connection] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self) -> "RateLimitStore":
        """Open the backing file, enable WAL and ensure the schema exists.

        Calling this on an already-initialized store is a no-op.

        Returns:
            The store itself, for chaining

        Raises:
            OpenError: If the path is invalid, unwritable or cannot use WAL
            SchemaError: If creating tables or indexes fails
        """
        if self._conn is not None:
            return self

        if not self.db_path.strip() or Path(self.db_path).is_dir():
            raise OpenError(f"Invalid database path: {self.db_path!r}")

        try:
            conn = get_connection(self.db_path, self.busy_timeout)
        except sqlite3.Error as e:
            raise OpenError(f"Failed to open database {self.db_path}: {e}") from e

        try:
            mode = enable_wal(conn)
            if mode != "wal":
                raise OpenError(
                    f"Database {self.db_path} cannot use write-ahead logging "
                    f"(journal mode is {mode})"
                )
            initialize_schema(conn)
        except StoreError:
            conn.close()
            raise
        except sqlite3.Error as e:
            conn.close()
            raise OpenError(f"Failed to prepare database {self.db_path}: {e}") from e

        self._conn = conn
        return self

    def close(self) -> None:
        """Release the handle. Repeated calls are a no-op and never raise."""
        conn, self._conn = self._conn, None
        if conn is None:
            return
        with suppress(sqlite3.Error):
            conn.close()

    def get_handle(self) -> Optional[sqlite3.Connection]:
        """Return the live handle, or None if the store is not initialized."""
        return self._conn

    @property
    def is_initialized(self) -> bool:
        return self._conn is not None

    def __enter__(self) -> "RateLimitStore":
        return self.initialize()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Fact store
    # ------------------------------------------------------------------

    def upsert_rate_limit(self, fact: RateLimit) -> None:
        """Insert a rate limit, or overwrite the row with the same identity.

        Identity is (provider, plan, limit_type, model, endpoint). Only the
        mutable fields are replaced; the statement is atomic, so racing
        writers converge on whichever commits last.

        Raises:
            NotInitializedError: If called before initialize
            WriteError: On constraint violation or I/O failure
        """
        self._execute_write(
            """
            INSERT INTO rate_limits (
                provider_name, plan_type, limit_type, limit_value,
                burst_allowance, reset_window_seconds, applies_to,
                model_id, endpoint_path, source_url, last_verified
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(provider_name, plan_type, limit_type, model_id, endpoint_path)
            DO UPDATE SET
                limit_value = excluded.limit_value,
                burst_allowance = excluded.burst_allowance,
                reset_window_seconds = excluded.reset_window_seconds,
                applies_to = excluded.applies_to,
                source_url = excluded.source_url,
                last_verified = excluded.last_verified
            """,
            (
                fact.provider,
                fact.plan,
                fact.limit_type,
                fact.limit_value,
                fact.burst_allowance,
                fact.reset_window_seconds,
                fact.applies_to.value,
                _to_sentinel(fact.model),
                _to_sentinel(fact.endpoint),
                fact.source_url,
                to_stored_timestamp(fact.last_verified),
            ),
            what=f"rate limit {fact.provider}/{fact.plan}/{fact.limit_type}",
        )

    def upsert_plan_metadata(self, fact: PlanMetadata) -> None:
        """Insert or replace the description of a (provider, plan) pair."""
        self._execute_write(
            """
            INSERT INTO plan_metadata (
                provider_name, plan_type, official_name, cost_per_month,
                has_free_tier, documentation_url
            ) VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(provider_name, plan_type)
            DO UPDATE SET
                official_name = excluded.official_name,
                cost_per_month = excluded.cost_per_month,
                has_free_tier = excluded.has_free_tier,
                documentation_url = excluded.documentation_url
            """,
            (
                fact.provider,
                fact.plan,
                fact.official_name,
                fact.cost_per_month,
                int(fact.has_free_tier),
                fact.documentation_url,
            ),
            what=f"plan {fact.provider}/{fact.plan}",
        )

    def upsert_provider_pricing(self, fact: ProviderPricing) -> None:
        """Insert or replace the current price of a (provider, model, plan).

        Does not read or write pricing history; see
        ``provider_limits.core.pricing.record_price_change`` for the pairing.
        """
        self._execute_write(
            """
            INSERT INTO provider_pricing (
                provider_name, model_id, plan_type, input_cost, output_cost,
                unit_type, currency, included_units
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(provider_name, model_id, plan_type)
            DO UPDATE SET
                input_cost = excluded.input_cost,
                output_cost = excluded.output_cost,
                unit_type = excluded.unit_type,
                currency = excluded.currency,
                included_units = excluded.included_units
            """,
            (
                fact.provider,
                fact.model,
                fact.plan,
                fact.input_cost,
                fact.output_cost,
                fact.unit_type,
                fact.currency,
                fact.included_units,
            ),
            what=f"pricing {fact.provider}/{fact.model}/{fact.plan}",
        )

    # ------------------------------------------------------------------
    # History recorder
    # ------------------------------------------------------------------

    def append_pricing_history(self, entry: PricingHistoryEntry) -> int:
        """Append one price transition to the audit log.

        Always inserts a new row; entries are never updated or merged.

        Returns:
            Row id of the new entry
        """
        return self._execute_write(
            """
            INSERT INTO pricing_history (
                provider_name, model_id, plan_type, old_input_cost,
                old_output_cost, new_input_cost, new_output_cost,
                change_date, change_reason
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                entry.provider,
                entry.model,
                entry.plan,
                entry.old_input_cost,
                entry.old_output_cost,
                entry.new_input_cost,
                entry.new_output_cost,
                to_stored_timestamp(entry.change_date),
                entry.change_reason,
            ),
            what=f"pricing history {entry.provider}/{entry.model}/{entry.plan}",
        )

    def get_pricing_history(
        self,
        provider: Optional[str] = None,
        model: Optional[str] = None,
        plan: Optional[str] = None,
        limit: int = 100,
    ) -> List[PricingHistoryEntry]:
        """Fetch price transitions, newest change first.

        Args:
            provider: Optional filter for a provider
            model: Optional filter for a model
            plan: Optional filter for a plan
            limit: Maximum number of entries to return
        """
        query = _HISTORY_COLUMNS
        params: List[object] = []
        conditions = []

        if provider:
            conditions.append("provider_name = ?")
            params.append(provider)
        if model:
            conditions.append("model_id = ?")
            params.append(model)
        if plan:
            conditions.append("plan_type = ?")
            params.append(plan)

        if conditions:
            query += " WHERE " + " AND ".join(conditions)

        query += " ORDER BY change_date DESC, id DESC LIMIT ?"
        params.append(limit)

        return [_row_to_history(row) for row in self._fetch_all(query, params)]

    # ------------------------------------------------------------------
    # Resolver
    # ------------------------------------------------------------------

    def query_rate_limit(
        self,
        provider: str,
        plan: str,
        limit_type: str,
        model: Optional[str] = None,
        endpoint: Optional[str] = None,
    ) -> List[RateLimit]:
        """Find every rate limit that could apply, most specific first.

        Rows scoped to all models (or endpoints) always match. When ``model``
        is given, rows scoped to a different model are excluded; the same
        holds for ``endpoint``. Omitted filters admit every scope.

        The caller picks ``results[0]`` when it needs a single effective
        limit; the rest are the broader limits it overrides.

        Returns:
            Matching limits ordered endpoint, then model, then account scope.
            Empty when nothing matches.

        Raises:
            NotInitializedError: If called before initialize
            ReadError: On I/O failure or an unreadable row
        """
        query = _RATE_LIMIT_COLUMNS + (
            " WHERE provider_name = ? AND plan_type = ? AND limit_type = ?"
        )
        params: List[object] = [provider, plan, limit_type]

        if model:
            query += " AND (model_id = ? OR model_id = '')"
            params.append(model)
        if endpoint:
            query += " AND (endpoint_path = ? OR endpoint_path = '')"
            params.append(endpoint)

        query += " ORDER BY model_id, endpoint_path"

        limits = [_row_to_rate_limit(row) for row in self._fetch_all(query, params)]
        return sorted(limits, key=lambda rl: rl.applies_to.rank, reverse=True)

    def get_all_rate_limits_for_provider(self, provider: str, plan: str) -> List[RateLimit]:
        """List every rate limit of a provider plan for display.

        Ordered by limit type, then from broad to narrow scope.
        """
        rows = self._fetch_all(
            _RATE_LIMIT_COLUMNS
            + " WHERE provider_name = ? AND plan_type = ?"
            + " ORDER BY limit_type, model_id, endpoint_path",
            (provider, plan),
        )
        limits = [_row_to_rate_limit(row) for row in rows]
        return sorted(limits, key=lambda rl: (rl.limit_type, rl.applies_to.rank))

    def get_provider_pricing(self, provider: str, model: str, plan: str) -> Optional[ProviderPricing]:
        """Exact-match lookup of the current price; None when absent."""
        rows = self._fetch_all(
            _PRICING_COLUMNS
            + " WHERE provider_name = ? AND model_id = ? AND plan_type = ?",
            (provider, model, plan),
        )
        if not rows:
            return None
        return _row_to_pricing(rows[0])

    def get_plan_metadata(self, provider: str, plan: str) -> Optional[PlanMetadata]:
        rows = self._fetch_all(
            _PLAN_COLUMNS + " WHERE provider_name = ? AND plan_type = ?",
            (provider, plan),
        )
        if not rows:
            return None
        return _row_to_plan(rows[0])

    def list_plans(self, provider: str) -> List[PlanMetadata]:
        rows = self._fetch_all(
            _PLAN_COLUMNS + " WHERE provider_name = ? ORDER BY plan_type",
            (provider,),
        )
        return [_row_to_plan(row) for row in rows]

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _open(self, error_cls: Type[StoreError]) -> sqlite3.Connection:
        if self._conn is None:
            raise NotInitializedError()
        try:
            conn = get_connection(self.db_path, self.busy_timeout)
        except sqlite3.Error as e:
            raise error_cls(f"Failed to open database {self.db_path}: {e}") from e
        conn.row_factory = sqlite3.Row
        return conn

    def _execute_write(self, query: str, params: Sequence[object], what: str) -> int:
        conn = self._open(WriteError)
        try:
            cursor = conn.execute(query, params)
            conn.commit()
            return cursor.lastrowid
        except sqlite3.Error as e:
            conn.rollback()
            raise WriteError(f"Failed to write {what}: {e}") from e
        finally:
            conn.close()

    def _fetch_all(self, query: str, params: Sequence[object]) -> List[sqlite3.Row]:
        conn = self._open(ReadError)
        try:
            return conn.execute(query, params).fetchall()
        except sqlite3.Error as e:
            raise ReadError(f"Failed to query {self.db_path}: {e}") from e
        finally:
            conn.close()


def open_store(
    db_path: str = DEFAULT_DB_PATH,
    busy_timeout: float = DEFAULT_BUSY_TIMEOUT,
) -> RateLimitStore:
    """Create and initialize a store in one call."""
    return RateLimitStore(db_path, busy_timeout).initialize()


def _to_sentinel(value: Optional[str]) -> str:
    return value if value is not None else ""


def _from_sentinel(value: Optional[str]) -> Optional[str]:
    return value or None


def _row_to_rate_limit(row: sqlite3.Row) -> RateLimit:
    try:
        return RateLimit(
            provider=row["provider_name"],
            plan=row["plan_type"],
            limit_type=row["limit_type"],
            limit_value=row["limit_value"],
            burst_allowance=row["burst_allowance"],
            reset_window_seconds=row["reset_window_seconds"],
            applies_to=Scope(row["applies_to"]),
            model=_from_sentinel(row["model_id"]),
            endpoint=_from_sentinel(row["endpoint_path"]),
            source_url=row["source_url"] or "",
            last_verified=parse_timestamp(row["last_verified"]),
        )
    except ValueError as e:
        raise ReadError(f"Unreadable rate limit row: {e}") from e


def _row_to_pricing(row: sqlite3.Row) -> ProviderPricing:
    try:
        return ProviderPricing(
            provider=row["provider_name"],
            model=row["model_id"],
            plan=row["plan_type"],
            input_cost=row["input_cost"],
            output_cost=row["output_cost"],
            unit_type=row["unit_type"],
            currency=row["currency"],
            included_units=row["included_units"],
        )
    except ValueError as e:
        raise ReadError(f"Unreadable pricing row: {e}") from e


def _row_to_plan(row: sqlite3.Row) -> PlanMetadata:
    try:
        return PlanMetadata(
            provider=row["provider_name"],
            plan=row["plan_type"],
            official_name=row["official_name"],
            cost_per_month=row["cost_per_month"],
            has_free_tier=bool(row["has_free_tier"]),
            documentation_url=row["documentation_url"] or "",
        )
    except ValueError as e:
        raise ReadError(f"Unreadable plan row: {e}") from e


def _row_to_history(row: sqlite3.Row) -> PricingHistoryEntry:
    try:
        change_date = parse_timestamp(row["change_date"])
    except ValueError as e:
        raise ReadError(f"Unreadable pricing history row {row['id']}: {e}") from e
    return PricingHistoryEntry(
        id=row["id"],
        provider=row["provider_name"],
        model=row["model_id"],
        plan=row["plan_type"],
        old_input_cost=row["old_input_cost"],
        old_output_cost=row["old_output_cost"],
        new_input_cost=row["new_input_cost"],
        new_output_cost=row["new_output_cost"],
        change_date=change_date,
        change_reason=row["change_reason"] or "",
    )
