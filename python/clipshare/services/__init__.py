"""Service layer.

Route handlers are transport-only; business rules live in these modules:

- accounts: registration, credential checks, account deletion
- sessions: access/refresh token lifecycle
- clips: clip CRUD, visibility and expiry
- access_log: per-view audit rows
- tags: per-user tag counters
"""
