"""
casbin-store: policy rule storage for authorization engines (SQLite).

Example:
    >>> from casbin_store import CasbinRepository, StoreOptions
    >>> repo = await CasbinRepository.create(StoreOptions(db_path="casbin.db"))
    >>> await repo.insert_policy("p", ["alice", "data1", "read"])
    >>> await repo.get_filtered_policies({"p": ["alice"]})
"""

__version__ = "0.1.0"

from casbin_store.config import StoreOptions, load_options
from casbin_store.errors import (
    ConnectionError,
    ConstraintViolation,
    QueryError,
    SchemaError,
    StoreError,
)
from casbin_store.models import CasbinRule
from casbin_store.pool import ExternalHandleSource, Handle, PooledHandleSource
from casbin_store.repository import CasbinRepository

__all__ = [
    'CasbinRepository',
    'CasbinRule',
    'StoreOptions',
    'load_options',
    # Dispatcher
    'Handle',
    'PooledHandleSource',
    'ExternalHandleSource',
    # Errors
    'StoreError',
    'ConnectionError',
    'ConstraintViolation',
    'QueryError',
    'SchemaError',
]
