"""
Store error taxonomy.

Every failure surfaced by the store is one of these types. The store never
retries and never logs on the caller's behalf.
"""


class StoreError(Exception):
    """Base class for all rate-limit store failures."""


class OpenError(StoreError):
    """Backing file path is invalid or unwritable."""


class SchemaError(StoreError):
    """A DDL statement failed while initializing the store."""


class NotInitializedError(StoreError):
    """An operation was invoked before ``initialize``."""

    def __init__(self, message: str = "rate limit store is not initialized"):
        super().__init__(message)


class WriteError(StoreError):
    """Constraint violation or I/O failure during a write."""


class ReadError(StoreError):
    """I/O failure during a query, or an unreadable stored row."""
