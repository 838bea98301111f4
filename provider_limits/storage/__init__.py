"""
Storage layer for Provider Limits.

SQLite-backed persistence for rate limits, plans, pricing and price history.
"""
