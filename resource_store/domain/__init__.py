"""
Domain package for the resource store.

Exports the aggregate models, lifecycle status and engine errors. Keep this
package free of I/O; persistence lives in `resource_store.persistence`.
"""

from resource_store.domain.errors import OptimisticLockConflict, RepositoryError
from resource_store.domain.models import (
    INITIAL_LOCK_VERSION,
    SYNC_DIRTY,
    Actor,
    Aggregate,
    Brand,
)
from resource_store.domain.status import RecordStatus

__all__ = [
    "INITIAL_LOCK_VERSION",
    "SYNC_DIRTY",
    "Actor",
    "Aggregate",
    "Brand",
    "OptimisticLockConflict",
    "RecordStatus",
    "RepositoryError",
]
