"""
Resource Store - optimistic-concurrency persistence for write-heavy aggregates.

The package provides:

- A query condition builder for filtered, paginated list queries
- An aggregate repository with compare-and-swap updates and soft delete
- Best-effort mirroring of committed writes into a document store
- A reconciliation sweep for mirror writes that failed
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from resource_store.config import Settings, get_settings
from resource_store.domain import (
    Actor,
    Aggregate,
    Brand,
    OptimisticLockConflict,
    RecordStatus,
    RepositoryError,
)
from resource_store.query import PaginatedResult, SearchCriteria
from resource_store.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Domain
    "Actor",
    "Aggregate",
    "Brand",
    "OptimisticLockConflict",
    "RecordStatus",
    "RepositoryError",
    # Query
    "PaginatedResult",
    "SearchCriteria",
    # Logging
    "configure_logging",
    "get_logger",
]
