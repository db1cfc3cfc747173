"""
Optimistic-concurrency repository over the primary store.

Every mutating path goes through one compare-and-swap statement:

    UPDATE <table> SET ..., lock_version = <current + 1>
    WHERE id = <id> AND lock_version = <current>

where <current> is the lock_version carried by the in-memory aggregate. Zero
affected rows means somebody else won the race (or the row is gone) and
surfaces as OptimisticLockConflict; the repository never retries. Once the
primary transaction has committed, the synchronizer mirrors the aggregate to
the document store; its failures never reach the caller.

Collaborators are composed in rather than inherited: a QueryScoper for
visibility, a Synchronizer for the mirror, an AuditService for the trail.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Generic, Iterator, List, Optional, Tuple, Type, TypeVar

import psycopg
from psycopg import sql
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from resource_store.config import get_settings
from resource_store.domain.detail_info import (
    clear_deleted,
    stamp_created,
    stamp_deleted,
    stamp_updated,
)
from resource_store.domain.errors import OptimisticLockConflict, RepositoryError
from resource_store.domain.models import INITIAL_LOCK_VERSION, Actor, Aggregate
from resource_store.domain.status import RecordStatus
from resource_store.infrastructure.db_factory import ConnectionFactory, apply_statement_timeout
from resource_store.persistence.audit import AuditEntry, AuditService, NullAuditService
from resource_store.persistence.rows import collect_rows, next_cursor_name
from resource_store.persistence.scoping import DEFAULT_SCOPER, QueryScoper
from resource_store.persistence.sync import NullSynchronizer, Synchronizer
from resource_store.query.conditions import (
    SelectQuery,
    and_in,
    and_like,
    and_range,
    filter_by_exact_match,
)
from resource_store.query.criteria import PaginatedResult, SearchCriteria
from resource_store.utils.logging import get_logger

log = get_logger(__name__)

A = TypeVar("A", bound=Aggregate)

LOCK_COLUMN = "lock_version"
LIKE_OPERATOR = "ILIKE"
META_COLUMNS: Tuple[str, ...] = ("status", "detail_info", "sync_flag", LOCK_COLUMN)


def _key_match(query: SelectQuery, column: str, value: Any) -> SelectQuery:
    # Lookup keys always constrain the query, even when empty.
    return query.where(sql.SQL("{} = {}").format(sql.Identifier(column), sql.Placeholder()), value)


@dataclass(frozen=True)
class ResourceSchema(Generic[A]):
    """
    Per-resource table layout and the column whitelists list queries obey.

    Attributes
    ----------
    table : str
        Primary-store table name.
    aggregate_type : type
        Aggregate subclass rows are reconstituted into.
    filter_columns : tuple of str
        Columns a caller may filter on by equality, membership or range.
    like_columns : tuple of str
        Columns a caller may filter on by case-insensitive substring.
    allowed_sort : mapping
        Public sort key -> column. The first entry is the fallback.
    collection : str, optional
        Document-store collection; defaults to the table name.
    """

    table: str
    aggregate_type: Type[A]
    filter_columns: Tuple[str, ...] = ("id", "status", "sync_flag")
    like_columns: Tuple[str, ...] = ("name",)
    allowed_sort: Mapping[str, str] = field(default_factory=lambda: {"id": "id"})
    collection: Optional[str] = None

    @property
    def collection_name(self) -> str:
        return self.collection or self.table

    @property
    def resource(self) -> str:
        return self.aggregate_type.__name__

    @property
    def business_columns(self) -> List[str]:
        return self.aggregate_type.business_fields()

    @property
    def select_columns(self) -> List[str]:
        return ["id", *self.business_columns, *META_COLUMNS]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AggregateRepository(Generic[A]):
    """
    Single-aggregate persistence with compare-and-swap writes.

    Parameters
    ----------
    schema : ResourceSchema
        Table layout and whitelists.
    connection_factory : callable
        Returns a context manager yielding a psycopg connection that commits
        on clean exit (a pool's `connection()` does).
    synchronizer : Synchronizer, optional
        Mirror writer invoked after each committed mutation.
    scoper : QueryScoper, optional
        Visibility rules; the default hides soft-deleted rows.
    audit : AuditService, optional
        Audit sink written inside each mutation's transaction.
    clock : callable, optional
        UTC "now" for change-log stamps.
    batch_size : int, optional
        Server-side cursor batch size for `list`. Defaults to settings.
    statement_timeout_ms : int, optional
        Per-transaction statement timeout. Defaults to settings; 0 disables.
    """

    def __init__(
        self,
        schema: ResourceSchema[A],
        connection_factory: ConnectionFactory,
        synchronizer: Optional[Synchronizer] = None,
        scoper: QueryScoper = DEFAULT_SCOPER,
        audit: Optional[AuditService] = None,
        clock: Optional[Callable[[], datetime]] = None,
        batch_size: Optional[int] = None,
        statement_timeout_ms: Optional[int] = None,
    ) -> None:
        settings = get_settings()
        self.schema = schema
        self._connect = connection_factory
        self._synchronizer: Synchronizer = synchronizer or NullSynchronizer()
        self._scoper = scoper
        self._audit: AuditService = audit or NullAuditService()
        self._clock = clock or _utc_now
        self.batch_size = batch_size or settings.list_batch_size
        if statement_timeout_ms is None:
            statement_timeout_ms = settings.db_statement_timeout_ms
        self._statement_timeout_ms = statement_timeout_ms

    # ------------------------------------------------------------------ plumbing

    @contextmanager
    def _session(self) -> Iterator[psycopg.Connection]:
        """One connection, one transaction; commits when the block succeeds."""
        with self._connect() as conn:
            with conn.transaction():
                if self._statement_timeout_ms > 0:
                    with conn.cursor() as cur:
                        apply_statement_timeout(cur, self._statement_timeout_ms)
                yield conn

    def _select(self) -> SelectQuery:
        return SelectQuery(self.schema.table, self.schema.select_columns)

    def _fetch_one(self, query: SelectQuery) -> Optional[Dict[str, Any]]:
        query.paginate(limit=1, offset=0)
        statement, params = query.build()
        with self._session() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(statement, params)
                return cur.fetchone()

    def _reconstitute(self, row: Mapping[str, Any]) -> A:
        return self.schema.aggregate_type.model_validate(dict(row))

    def _table(self) -> sql.Identifier:
        return sql.Identifier(self.schema.table)

    @property
    def connection_factory(self) -> ConnectionFactory:
        return self._connect

    @property
    def synchronizer(self) -> Synchronizer:
        return self._synchronizer

    def with_scoper(self, scoper: QueryScoper) -> "AggregateRepository[A]":
        """Copy of this repository reading under another visibility scope."""
        clone = copy.copy(self)
        clone._scoper = scoper
        return clone

    # ------------------------------------------------------------------ reads

    def find_by_id(
        self, aggregate_id: Optional[int], status: Optional[int] = None
    ) -> Optional[A]:
        if aggregate_id is None:
            return None
        query = _key_match(self._select(), "id", aggregate_id)
        self._scoper.exclude_deleted(query)
        self._scoper.with_status(query, status)
        row = self._fetch_one(query)
        return self._reconstitute(row) if row else None

    def find_by_name(self, name: str, status: Optional[int] = None) -> Optional[A]:
        query = _key_match(self._select(), "name", name)
        self._scoper.exclude_deleted(query)
        self._scoper.with_status(query, status)
        row = self._fetch_one(query)
        return self._reconstitute(row) if row else None

    def exists_by_name(self, name: str, status: Optional[int] = None) -> bool:
        query = _key_match(SelectQuery(self.schema.table), "name", name)
        self._scoper.exclude_deleted(query)
        self._scoper.with_status(query, status)
        statement, params = query.build_exists()
        with self._session() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(statement, params)
                row = cur.fetchone()
        return bool(row and row["exists"])

    def _apply_filters(self, query: SelectQuery, filters: Mapping[str, Any]) -> SelectQuery:
        allowed = self.schema.filter_columns
        exact: Dict[str, Any] = {}
        members: Dict[str, List[Any]] = {}
        ranges: Dict[str, Mapping[str, Any]] = {}
        for column, value in filters.items():
            if column not in allowed:
                continue
            if isinstance(value, Mapping):
                ranges[column] = value
            elif isinstance(value, (list, tuple, set, frozenset)):
                members[column] = list(value)
            else:
                exact[column] = value

        filter_by_exact_match(query, exact, allowed)
        and_in(query, members)
        and_range(query, ranges)
        and_like(
            query,
            LIKE_OPERATOR,
            {column: filters.get(column) for column in self.schema.like_columns},
        )
        return query

    def list(self, criteria: SearchCriteria) -> PaginatedResult:
        """
        One page of live rows matching `criteria.filter`.

        `total` is counted before LIMIT/OFFSET, so it stays correct for pages
        past the end (which come back empty).
        """
        query = self._scoper.exclude_deleted(self._select())
        self._apply_filters(query, criteria.filter)
        count_statement, count_params = query.build_count()

        column, direction = criteria.order_by(self.schema.allowed_sort)
        query.order_by(column, direction)
        if column != "id":
            query.order_by("id", direction)
        query.paginate(limit=criteria.page_size, offset=criteria.offset)
        statement, params = query.build()

        with self._session() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(count_statement, count_params)
                total = int(cur.fetchone()["count"])
            with conn.cursor(
                name=next_cursor_name(self.schema.table), row_factory=dict_row
            ) as cur:
                cur.execute(statement, params)
                rows = collect_rows(cur, self.batch_size)

        return PaginatedResult(
            data=rows,
            total=total,
            page=criteria.page,
            page_size=criteria.page_size,
            filter=dict(criteria.filter),
            sort={"by": criteria.sort_by, "dir": criteria.sort_dir},
        )

    def find_unsynced(self, limit: Optional[int] = None) -> List[A]:
        """Aggregates whose last mirror write failed, any status, oldest id first."""
        query = self._select().where(
            sql.SQL("{} IS NOT NULL").format(sql.Identifier("sync_flag"))
        )
        query.order_by("id")
        if limit:
            query.paginate(limit=limit, offset=0)
        statement, params = query.build()
        with self._session() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(statement, params)
                rows = cur.fetchall()
        return [self._reconstitute(row) for row in rows]

    # ------------------------------------------------------------------ writes

    def _column_values(
        self,
        aggregate: A,
        status: RecordStatus,
        detail_info: Dict[str, Any],
        lock_version: int,
    ) -> Dict[str, Any]:
        values = aggregate.business_values()
        values.update(
            status=int(status),
            detail_info=Jsonb(detail_info),
            sync_flag=aggregate.sync_flag,
            lock_version=lock_version,
        )
        return values

    def _audit_snapshot(
        self, aggregate: A, status: RecordStatus, detail_info: Dict[str, Any], lock_version: int
    ) -> Dict[str, Any]:
        snapshot = aggregate.model_dump(mode="json")
        snapshot.update(status=int(status), detail_info=detail_info, lock_version=lock_version)
        return snapshot

    def insert(self, aggregate: A, actor: Actor) -> A:
        """
        Persist a new aggregate and return it reconstituted with its real id
        and lock_version 1. The mirror write follows the commit.
        """
        detail_info = stamp_created(aggregate.detail_info, actor.username, self._clock())
        values = self._column_values(aggregate, aggregate.status, detail_info, INITIAL_LOCK_VERSION)
        statement = sql.SQL("INSERT INTO {table} ({columns}) VALUES ({values}) RETURNING id").format(
            table=self._table(),
            columns=sql.SQL(", ").join(sql.Identifier(column) for column in values),
            values=sql.SQL(", ").join(sql.Placeholder() for _ in values),
        )

        with self._session() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(statement, list(values.values()))
                row = cur.fetchone()
                if not row:
                    raise RepositoryError(f"{self.schema.resource} insert returned no id")
                created = aggregate.model_copy(
                    update={
                        "id": int(row["id"]),
                        "detail_info": detail_info,
                        "lock_version": INITIAL_LOCK_VERSION,
                    }
                )
                self._audit.record(
                    cur,
                    AuditEntry(
                        table_name=self.schema.table,
                        record_id=created.id,
                        action="INSERT",
                        actor=actor,
                        new_values=created.model_dump(mode="json"),
                    ),
                )

        log.debug(
            "Aggregate inserted",
            extra={"resource": self.schema.resource, "aggregate_id": created.id},
        )
        self._synchronizer.sync(created)
        return created

    def _compare_and_swap(
        self,
        aggregate: A,
        actor: Actor,
        action: str,
        status: RecordStatus,
        detail_info: Dict[str, Any],
    ) -> A:
        if aggregate.id is None:
            raise RepositoryError(f"{self.schema.resource} has no id; insert it first")

        expected = aggregate.lock_version
        next_version = expected + 1
        values = self._column_values(aggregate, status, detail_info, next_version)
        statement = sql.SQL(
            "UPDATE {table} SET {assignments} WHERE {id} = {id_value} AND {lock} = {lock_value}"
        ).format(
            table=self._table(),
            assignments=sql.SQL(", ").join(
                sql.SQL("{} = {}").format(sql.Identifier(column), sql.Placeholder())
                for column in values
            ),
            id=sql.Identifier("id"),
            id_value=sql.Placeholder(),
            lock=sql.Identifier(LOCK_COLUMN),
            lock_value=sql.Placeholder(),
        )

        with self._session() as conn:
            with conn.cursor() as cur:
                cur.execute(statement, [*values.values(), aggregate.id, expected])
                if cur.rowcount == 0:
                    log.warning(
                        "Optimistic lock conflict",
                        extra={
                            "resource": self.schema.resource,
                            "aggregate_id": aggregate.id,
                            "expected_version": expected,
                            "action": action,
                        },
                    )
                    raise OptimisticLockConflict(self.schema.resource, aggregate.id, expected)
                self._audit.record(
                    cur,
                    AuditEntry(
                        table_name=self.schema.table,
                        record_id=aggregate.id,
                        action=action,
                        actor=actor,
                        old_values={LOCK_COLUMN: expected},
                        new_values=self._audit_snapshot(aggregate, status, detail_info, next_version),
                    ),
                )

        aggregate.status = status
        aggregate.detail_info = detail_info
        aggregate.lock_version = next_version
        log.debug(
            "Aggregate %s",
            action.lower(),
            extra={
                "resource": self.schema.resource,
                "aggregate_id": aggregate.id,
                "lock_version": next_version,
            },
        )
        self._synchronizer.sync(aggregate)
        return aggregate

    def update(self, aggregate: A, actor: Actor) -> A:
        """
        CAS-write the aggregate's current state.

        Raises
        ------
        OptimisticLockConflict
            The stored lock_version no longer matches `aggregate.lock_version`.
            The aggregate is left as it was.
        """
        return self._update(aggregate, actor, action="UPDATE")

    def _update(self, aggregate: A, actor: Actor, action: str) -> A:
        detail_info = stamp_updated(aggregate.detail_info, actor.username, self._clock())
        return self._compare_and_swap(aggregate, actor, action, aggregate.status, detail_info)

    def delete(self, aggregate: A, actor: Actor) -> A:
        """
        Soft delete: status becomes DELETED and the change log records who and
        when. The row is kept. Same CAS discipline as `update`.
        """
        detail_info = stamp_deleted(aggregate.detail_info, actor.username, self._clock())
        return self._compare_and_swap(
            aggregate, actor, "DELETE", RecordStatus.DELETED, detail_info
        )

    def restore(self, aggregate_id: Optional[int], actor: Actor) -> Optional[A]:
        """
        Bring a soft-deleted aggregate back as DRAFT.

        Returns None unless the row exists and is currently DELETED. The write
        goes through the update path, so it can conflict and it bumps
        lock_version.
        """
        if aggregate_id is None:
            return None
        query = _key_match(self._select(), "id", aggregate_id)
        self._scoper.only_deleted(query)
        row = self._fetch_one(query)
        if not row:
            return None

        aggregate = self._reconstitute(row)
        aggregate.restore()
        aggregate.detail_info = clear_deleted(aggregate.detail_info)
        return self._update(aggregate, actor, action="RESTORE")


__all__ = ["AggregateRepository", "LIKE_OPERATOR", "ResourceSchema"]
