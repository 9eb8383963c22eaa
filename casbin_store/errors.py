"""casbin-store exception hierarchy."""

from __future__ import annotations


class StoreError(Exception):
    """Base exception for all policy store errors."""


class ConnectionError(StoreError):  # noqa: A001
    """Raised when a database handle cannot be acquired or opened."""


class ConstraintViolation(StoreError):
    """Raised when an insert conflicts with the unique rule constraint."""


class QueryError(StoreError):
    """Raised when the store rejects a statement (or it times out)."""


class SchemaError(StoreError):
    """Raised when applying or reverting schema migrations fails."""
