"""
Database connection management.

Provides SQLite connections for the rate-limit store.
"""

import sqlite3
from datetime import datetime, timezone
from pathlib import Path

DEFAULT_DB_PATH = "rate_limits.db"
DEFAULT_BUSY_TIMEOUT = 5.0


def get_connection(
    db_path: str = DEFAULT_DB_PATH,
    timeout: float = DEFAULT_BUSY_TIMEOUT,
) -> sqlite3.Connection:
    """Create and return a SQLite database connection with foreign keys enabled.

    Connections may be handed between threads; each operation still uses
    its own connection so SQLite's locking does the serialization.

    Args:
        db_path: Path to SQLite database file
        timeout: Seconds to wait on a locked database before failing

    Returns:
        SQLite connection with foreign key constraints enabled
    """
    path = Path(db_path)
    conn = sqlite3.connect(str(path), timeout=timeout, check_same_thread=False)
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def enable_wal(conn: sqlite3.Connection) -> str:
    """Switch the database file to write-ahead logging.

    The mode is persistent in the file, so later connections inherit it.

    Returns:
        The journal mode reported by SQLite after the switch
    """
    row = conn.execute("PRAGMA journal_mode = WAL").fetchone()
    return str(row[0]).lower()


def to_stored_timestamp(value: datetime) -> str:
    """Render a timestamp as naive UTC ISO text so stored values sort in time order.

    Naive datetimes are taken to be UTC already; aware ones are converted.
    """
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.isoformat()


def parse_timestamp(text: str) -> datetime:
    """Parse ISO-8601 text, accepting a trailing ``Z`` for UTC.

    Raises:
        ValueError: If the text is not an ISO-8601 timestamp
    """
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)
