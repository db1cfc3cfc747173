"""
Best-effort mirroring of committed aggregates into the document store.

The primary store is the single source of truth. After a primary write
commits, the synchronizer upserts a denormalised projection keyed by the
aggregate id. A failed mirror write never reaches the caller of the primary
operation: it is logged and recorded as a dirty `sync_flag` on the primary
row, where a reconciliation sweep can find it later.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Protocol, runtime_checkable

import psycopg
from psycopg import sql
from pymongo.collection import Collection
from pymongo.errors import NetworkTimeout, PyMongoError, ServerSelectionTimeoutError

from resource_store.domain.models import SYNC_DIRTY, Aggregate
from resource_store.infrastructure.db_factory import ConnectionFactory
from resource_store.utils.logging import get_logger

log = get_logger(__name__)

SYNC_FLAG_COLUMN = "sync_flag"
SYNC_TIMESTAMP_FIELD = "sync_at"
LOCK_FIELD = "lock_version"


def project(aggregate: Aggregate) -> Dict[str, Any]:
    """
    Document-store shape of an aggregate: business fields, status, metadata
    and lock_version. The sync timestamp is set server-side on write.
    """
    document = aggregate.business_values()
    document.update(
        id=aggregate.id,
        status=int(aggregate.status),
        detail_info=aggregate.detail_info,
        lock_version=aggregate.lock_version,
    )
    return document


def guarded_upsert(document: Dict[str, Any], lock_version: int) -> List[Dict[str, Any]]:
    """
    Update pipeline that writes `document` only when the stored mirror is not
    newer than it.

    Mirror writes for one id can land out of order; a stored `lock_version`
    above the incoming one keeps every field as it is. Missing documents are
    created by the upsert. Values are wrapped in `$literal` so strings that
    start with `$` are not read as field paths.
    """
    stale = {"$gt": [{"$ifNull": ["$" + LOCK_FIELD, 0]}, lock_version]}
    fields = {
        name: {"$cond": [stale, "$" + name, {"$literal": value}]}
        for name, value in document.items()
    }
    fields[SYNC_TIMESTAMP_FIELD] = {"$cond": [stale, "$" + SYNC_TIMESTAMP_FIELD, "$$NOW"]}
    return [{"$set": fields}]


def classify_failure(exc: BaseException) -> str:
    """Short label for the kind of mirror failure, used in logs."""
    if isinstance(exc, NetworkTimeout):
        return "Connection timeout"
    if isinstance(exc, ServerSelectionTimeoutError):
        return "Server selection timeout"
    if isinstance(exc, PyMongoError):
        return "Driver runtime error"
    return "Unexpected error"


@runtime_checkable
class Synchronizer(Protocol):
    def sync(self, aggregate: Aggregate) -> None:
        """Mirror `aggregate`; must not raise for mirror-store failures."""
        ...


class NullSynchronizer:
    """Used when mirroring is switched off; leaves `sync_flag` alone."""

    def sync(self, aggregate: Aggregate) -> None:
        del aggregate


class SyncFlagStore:
    """
    Single-column writer for the `sync_flag` marker on the primary row.

    Leaves `lock_version` untouched.
    """

    def __init__(self, connection_factory: ConnectionFactory, table: str) -> None:
        self._connect = connection_factory
        self.table = table

    def write(self, aggregate_id: int, value: Optional[int]) -> None:
        statement = sql.SQL("UPDATE {table} SET {flag} = {value} WHERE id = {id}").format(
            table=sql.Identifier(self.table),
            flag=sql.Identifier(SYNC_FLAG_COLUMN),
            value=sql.Placeholder(),
            id=sql.Placeholder(),
        )
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(statement, (value, aggregate_id))


class DocumentSynchronizer:
    """
    Upserts aggregate projections into a MongoDB collection.

    Parameters
    ----------
    collection : pymongo.collection.Collection
        Target collection, one per resource type. The client behind it should
        carry short timeouts (see `infrastructure.mongo_factory`).
    flag_store : SyncFlagStore
        Writer for the primary-store `sync_flag` column.
    projector : callable, optional
        Aggregate -> document mapping. Defaults to `project`.
    clock : callable, optional
        UTC "now" used in failure logs.
    """

    def __init__(
        self,
        collection: Collection,
        flag_store: SyncFlagStore,
        projector: Callable[[Aggregate], Dict[str, Any]] = project,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._collection = collection
        self._flags = flag_store
        self._project = projector
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @property
    def collection_name(self) -> str:
        return getattr(self._collection, "name", "?")

    def sync(self, aggregate: Aggregate) -> None:
        try:
            self._collection.update_one(
                {"id": aggregate.id},
                guarded_upsert(self._project(aggregate), aggregate.lock_version),
                upsert=True,
            )
        except Exception as exc:  # every mirror failure is absorbed here
            self._record_failure(aggregate, exc)
            return

        if aggregate.sync_flag is not None:
            self._persist_flag(aggregate, None)

    def _record_failure(self, aggregate: Aggregate, exc: Exception) -> None:
        log.error(
            "Secondary store sync failed",
            extra={
                "error_type": classify_failure(exc),
                "error": str(exc),
                "exception_class": type(exc).__name__,
                "aggregate_id": aggregate.id,
                "aggregate_class": type(aggregate).__name__,
                "collection": self.collection_name,
                "timestamp": self._clock().isoformat(),
            },
        )
        if aggregate.sync_flag != SYNC_DIRTY:
            self._persist_flag(aggregate, SYNC_DIRTY)

    def _persist_flag(self, aggregate: Aggregate, value: Optional[int]) -> None:
        aggregate.sync_flag = value
        try:
            self._flags.write(aggregate.id, value)
        except psycopg.Error:
            # The primary write already committed; the row keeps its previous flag.
            log.exception(
                "Could not persist sync flag",
                extra={"aggregate_id": aggregate.id, "sync_flag": value, "table": self._flags.table},
            )


__all__ = [
    "DocumentSynchronizer",
    "NullSynchronizer",
    "SyncFlagStore",
    "Synchronizer",
    "classify_failure",
    "guarded_upsert",
    "project",
]
