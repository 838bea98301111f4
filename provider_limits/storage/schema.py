"""
Schema for the rate-limit store.

Four relations share one file: rate_limits, plan_metadata, provider_pricing
and the append-only pricing_history.
"""

import sqlite3

from .errors import SchemaError

# model_id/endpoint_path use '' for "all"; NULLs never collide in a UNIQUE index.
SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS rate_limits (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        provider_name TEXT NOT NULL,
        plan_type TEXT NOT NULL,
        limit_type TEXT NOT NULL,
        limit_value INTEGER NOT NULL,
        burst_allowance INTEGER NOT NULL DEFAULT 0,
        reset_window_seconds INTEGER NOT NULL,
        applies_to TEXT NOT NULL,
        model_id TEXT NOT NULL DEFAULT '',
        endpoint_path TEXT NOT NULL DEFAULT '',
        source_url TEXT,
        last_verified TEXT NOT NULL,
        UNIQUE(provider_name, plan_type, limit_type, model_id, endpoint_path)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS plan_metadata (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        provider_name TEXT NOT NULL,
        plan_type TEXT NOT NULL,
        official_name TEXT NOT NULL,
        cost_per_month REAL,
        has_free_tier INTEGER NOT NULL DEFAULT 0,
        documentation_url TEXT,
        UNIQUE(provider_name, plan_type)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS provider_pricing (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        provider_name TEXT NOT NULL,
        model_id TEXT NOT NULL,
        plan_type TEXT NOT NULL,
        input_cost REAL NOT NULL,
        output_cost REAL NOT NULL,
        unit_type TEXT NOT NULL,
        currency TEXT NOT NULL DEFAULT 'USD',
        included_units INTEGER,
        UNIQUE(provider_name, model_id, plan_type)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS pricing_history (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        provider_name TEXT NOT NULL,
        model_id TEXT NOT NULL,
        plan_type TEXT NOT NULL,
        old_input_cost REAL,
        old_output_cost REAL,
        new_input_cost REAL NOT NULL,
        new_output_cost REAL NOT NULL,
        change_date TEXT NOT NULL,
        change_reason TEXT
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_rate_limits_provider_plan
    ON rate_limits(provider_name, plan_type, limit_type)
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_rate_limits_model
    ON rate_limits(model_id) WHERE model_id != ''
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_plan_metadata_provider
    ON plan_metadata(provider_name)
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_provider_pricing_model
    ON provider_pricing(provider_name, model_id)
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_pricing_history_date
    ON pricing_history(change_date DESC)
    """,
)

TABLES = ("rate_limits", "plan_metadata", "provider_pricing", "pricing_history")

INDEXES = (
    "idx_rate_limits_provider_plan",
    "idx_rate_limits_model",
    "idx_plan_metadata_provider",
    "idx_provider_pricing_model",
    "idx_pricing_history_date",
)


def initialize_schema(conn: sqlite3.Connection) -> None:
    """Create all tables and indexes if they don't exist.

    Safe to run against an already-initialized file.

    Args:
        conn: Open connection to the store file

    Raises:
        SchemaError: If any DDL statement fails
    """
    try:
        for statement in SCHEMA_STATEMENTS:
            conn.execute(statement)
        conn.commit()
    except sqlite3.Error as e:
        conn.rollback()
        raise SchemaError(f"Failed to create rate limit schema: {e}") from e
