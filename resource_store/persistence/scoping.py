"""
Visibility scopes applied to every primary-store read.

Soft-deleted rows stay in the table; readers must not see them unless they
explicitly run under an elevated scope.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from psycopg import sql

from resource_store.domain.status import RecordStatus
from resource_store.query.conditions import SelectQuery

STATUS_COLUMN = "status"


@dataclass(frozen=True)
class QueryScoper:
    """
    Builds the default visibility predicates.

    Attributes
    ----------
    elevated : bool
        When True, `exclude_deleted` adds nothing and soft-deleted rows become
        visible. Meant for administrative callers only.
    """

    elevated: bool = False

    def exclude_deleted(self, query: SelectQuery) -> SelectQuery:
        if self.elevated:
            return query
        return query.where(
            sql.SQL("{} <> {}").format(sql.Identifier(STATUS_COLUMN), sql.Placeholder()),
            int(RecordStatus.DELETED),
        )

    def only_deleted(self, query: SelectQuery) -> SelectQuery:
        return query.where(
            sql.SQL("{} = {}").format(sql.Identifier(STATUS_COLUMN), sql.Placeholder()),
            int(RecordStatus.DELETED),
        )

    def with_status(self, query: SelectQuery, status: Optional[int]) -> SelectQuery:
        if status is None:
            return query
        return query.where(
            sql.SQL("{} = {}").format(sql.Identifier(STATUS_COLUMN), sql.Placeholder()),
            int(status),
        )


DEFAULT_SCOPER = QueryScoper()
ELEVATED_SCOPER = QueryScoper(elevated=True)


__all__ = ["DEFAULT_SCOPER", "ELEVATED_SCOPER", "QueryScoper"]
