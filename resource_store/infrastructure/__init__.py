"""
Infrastructure package for the resource store.

Centralizes connectivity to the primary (PostgreSQL) and secondary (MongoDB)
stores. Keep this layer focused on I/O and resource management, decoupled
from repository and query-building logic.
"""

from resource_store.infrastructure.db_factory import (
    ConnectionFactory,
    PoolManager,
    apply_statement_timeout,
    build_dsn,
    dedicated_connection,
    get_sync_connection,
    get_sync_pool,
    pooled_connection_factory,
)
from resource_store.infrastructure.mongo_factory import (
    MongoClientManager,
    build_client,
    get_collection,
)

__all__ = [
    "ConnectionFactory",
    "PoolManager",
    "apply_statement_timeout",
    "build_dsn",
    "dedicated_connection",
    "get_sync_connection",
    "get_sync_pool",
    "pooled_connection_factory",
    "MongoClientManager",
    "build_client",
    "get_collection",
]
