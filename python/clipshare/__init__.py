"""Clipshare - text clip sharing service.

Accounts, rotating login sessions, expiring clips with visibility rules,
append-only access logs and per-user tag counters.
"""

__version__ = "0.1.0"
