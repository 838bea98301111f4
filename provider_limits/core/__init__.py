"""
Core modules for Provider Limits.

This package contains the caller-side logic built on top of the store:
picking the effective rate limit and pairing price updates with history.
"""
