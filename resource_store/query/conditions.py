"""
Query condition builder for list queries against the primary store.

A `SelectQuery` is a small mutable query-building context: the condition
functions below append AND-ed predicates to it and return it for chaining.
Column names are always emitted through `psycopg.sql.Identifier` and values
always travel as bound parameters, never interpolated.

"Unfilled" values (None and the empty string) are skipped everywhere; 0 and
False are legitimate filter values.

Usage:
    query = SelectQuery("brand", ["id", "name", "status"])
    filter_by_exact_match(query, {"status": 1, "evil; DROP": 1}, ["id", "status"])
    and_like(query, "ILIKE", {"name": "ac"})
    and_range(query, {"id": {"min": 10}})
    statement, params = query.build()
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from typing import Any, Iterable, List, Optional, Sequence, Tuple

from psycopg import sql

LIKE_OPERATORS = frozenset({"LIKE", "ILIKE"})


def is_filled(value: Any) -> bool:
    """A value worth filtering on: anything but None or the empty string."""
    return value is not None and value != ""


def _column(name: str) -> sql.Identifier:
    # "alias.column" becomes a qualified identifier
    return sql.Identifier(*name.split("."))


def _escape_like(value: Any) -> str:
    text = str(value)
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _like_operator(operator: str) -> sql.SQL:
    normalized = operator.strip().upper()
    if normalized not in LIKE_OPERATORS:
        raise ValueError(f"Unsupported LIKE operator {operator!r}; use LIKE or ILIKE.")
    return sql.SQL(normalized)


def _is_member_list(values: Any) -> bool:
    return (
        isinstance(values, Sequence)
        and not isinstance(values, (str, bytes, bytearray))
        and len(values) > 0
    )


class SelectQuery:
    """
    Mutable SELECT under construction.

    Predicates accumulate in insertion order and are AND-ed together. `build`
    renders the full statement; `build_count` and `build_exists` reuse the same
    predicates without ordering or pagination.
    """

    def __init__(self, table: str, columns: Optional[Iterable[str]] = None) -> None:
        self.table = table
        self.columns: Optional[List[str]] = list(columns) if columns is not None else None
        self._predicates: List[sql.Composable] = []
        self._params: List[Any] = []
        self._order: List[Tuple[str, str]] = []
        self.limit: Optional[int] = None
        self.offset: Optional[int] = None

    @property
    def params(self) -> List[Any]:
        return list(self._params)

    @property
    def predicate_count(self) -> int:
        return len(self._predicates)

    def where(self, predicate: sql.Composable, *params: Any) -> "SelectQuery":
        """Append a raw predicate whose placeholders match `params`."""
        self._predicates.append(predicate)
        self._params.extend(params)
        return self

    def order_by(self, column: str, direction: str = "ASC") -> "SelectQuery":
        direction = "DESC" if direction.upper() == "DESC" else "ASC"
        self._order.append((column, direction))
        return self

    def paginate(self, limit: int, offset: int) -> "SelectQuery":
        self.limit = limit
        self.offset = offset
        return self

    def clone(self) -> "SelectQuery":
        return copy.deepcopy(self)

    def _where_sql(self) -> sql.Composable:
        if not self._predicates:
            return sql.SQL("")
        return sql.SQL(" WHERE ") + sql.SQL(" AND ").join(self._predicates)

    def _select_list(self) -> sql.Composable:
        if not self.columns:
            return sql.SQL("*")
        return sql.SQL(", ").join(_column(name) for name in self.columns)

    def build(self) -> Tuple[sql.Composed, List[Any]]:
        statement = sql.SQL("SELECT {columns} FROM {table}").format(
            columns=self._select_list(), table=_column(self.table)
        ) + self._where_sql()
        params = self.params

        if self._order:
            statement += sql.SQL(" ORDER BY ") + sql.SQL(", ").join(
                sql.SQL("{} {}").format(_column(column), sql.SQL(direction))
                for column, direction in self._order
            )
        if self.limit is not None:
            statement += sql.SQL(" LIMIT {}").format(sql.Placeholder())
            params.append(self.limit)
        if self.offset is not None:
            statement += sql.SQL(" OFFSET {}").format(sql.Placeholder())
            params.append(self.offset)
        return statement, params

    def build_count(self) -> Tuple[sql.Composed, List[Any]]:
        statement = sql.SQL("SELECT COUNT(*) FROM {table}").format(
            table=_column(self.table)
        ) + self._where_sql()
        return statement, self.params

    def build_exists(self) -> Tuple[sql.Composed, List[Any]]:
        inner = sql.SQL("SELECT 1 FROM {table}").format(table=_column(self.table)) + self._where_sql()
        return sql.SQL("SELECT EXISTS ({})").format(inner), self.params


def filter_by_exact_match(
    query: SelectQuery, filters: Mapping[str, Any], allowed_columns: Iterable[str]
) -> SelectQuery:
    """
    Equality filters restricted to a whitelist of columns.

    Keys outside `allowed_columns` are dropped silently; this is the boundary
    that keeps caller-supplied keys out of the generated SQL.
    """
    allowed = set(allowed_columns)
    active = {
        column: value
        for column, value in filters.items()
        if column in allowed and is_filled(value)
    }
    if active:
        and_where(query, active)
    return query


def and_where(query: SelectQuery, conditions: Mapping[str, Any]) -> SelectQuery:
    """One `AND column = value` per filled condition."""
    for column, value in conditions.items():
        if is_filled(value):
            query.where(sql.SQL("{} = {}").format(_column(column), sql.Placeholder()), value)
    return query


def or_where(query: SelectQuery, conditions: Mapping[str, Any]) -> SelectQuery:
    """A single `AND (c1 = v1 OR c2 = v2 ...)` group over filled conditions."""
    parts: List[sql.Composable] = []
    params: List[Any] = []
    for column, value in conditions.items():
        if is_filled(value):
            parts.append(sql.SQL("{} = {}").format(_column(column), sql.Placeholder()))
            params.append(value)
    if parts:
        query.where(sql.SQL("({})").format(sql.SQL(" OR ").join(parts)), *params)
    return query


def and_like(query: SelectQuery, operator: str, conditions: Mapping[str, Any]) -> SelectQuery:
    """
    Substring match per filled condition, AND-ed.

    `operator` is LIKE (case-sensitive) or ILIKE (case-insensitive). Wildcards
    inside the value are escaped so they match literally.
    """
    op = _like_operator(operator)
    for column, value in conditions.items():
        if is_filled(value):
            query.where(
                sql.SQL("{} {} {}").format(_column(column), op, sql.Placeholder()),
                f"%{_escape_like(value)}%",
            )
    return query


def or_like(query: SelectQuery, operator: str, conditions: Mapping[str, Any]) -> SelectQuery:
    """Substring matches over several columns, OR-ed inside one AND group."""
    op = _like_operator(operator)
    parts: List[sql.Composable] = []
    params: List[Any] = []
    for column, value in conditions.items():
        if is_filled(value):
            parts.append(sql.SQL("{} {} {}").format(_column(column), op, sql.Placeholder()))
            params.append(f"%{_escape_like(value)}%")
    if parts:
        query.where(sql.SQL("({})").format(sql.SQL(" OR ").join(parts)), *params)
    return query


def and_in(query: SelectQuery, conditions: Mapping[str, Sequence[Any]]) -> SelectQuery:
    """
    Membership per column. Empty lists are skipped, never rendered as `IN ()`.
    """
    for column, values in conditions.items():
        if _is_member_list(values):
            query.where(
                sql.SQL("{} = ANY({})").format(_column(column), sql.Placeholder()), list(values)
            )
    return query


def or_in(query: SelectQuery, conditions: Mapping[str, Sequence[Any]]) -> SelectQuery:
    parts: List[sql.Composable] = []
    params: List[Any] = []
    for column, values in conditions.items():
        if _is_member_list(values):
            parts.append(sql.SQL("{} = ANY({})").format(_column(column), sql.Placeholder()))
            params.append(list(values))
    if parts:
        query.where(sql.SQL("({})").format(sql.SQL(" OR ").join(parts)), *params)
    return query


def and_range(query: SelectQuery, ranges: Mapping[str, Mapping[str, Any]]) -> SelectQuery:
    """
    Inclusive numeric/date bounds. Either bound may be given alone.

        and_range(query, {"price": {"min": 100, "max": 500}, "qty": {"min": 1}})
    """
    for column, bounds in ranges.items():
        if not isinstance(bounds, Mapping):
            continue
        if is_filled(bounds.get("min")):
            query.where(sql.SQL("{} >= {}").format(_column(column), sql.Placeholder()), bounds["min"])
        if is_filled(bounds.get("max")):
            query.where(sql.SQL("{} <= {}").format(_column(column), sql.Placeholder()), bounds["max"])
    return query


__all__ = [
    "LIKE_OPERATORS",
    "SelectQuery",
    "and_in",
    "and_like",
    "and_range",
    "and_where",
    "filter_by_exact_match",
    "is_filled",
    "or_in",
    "or_like",
    "or_where",
]
