"""
Row streaming and normalisation for primary-store reads.

List queries read through a named (server-side) cursor in fixed-size batches
so memory stays bounded regardless of how many rows match.
"""

from __future__ import annotations

import itertools
from typing import Any, Dict, Iterable, Iterator, List, Sequence

import psycopg

from resource_store.domain.detail_info import parse_detail_info

JSON_COLUMNS: Sequence[str] = ("detail_info",)

_cursor_seq = itertools.count(1)


def next_cursor_name(prefix: str) -> str:
    """Unique name for a server-side cursor on the current connection."""
    return f"{prefix}_cursor_{next(_cursor_seq)}"


def _batched_fetch(cursor: psycopg.Cursor, batch_size: int) -> Iterator[list]:
    """
    Yield batches from a cursor using fetchmany.
    """
    while True:
        batch = cursor.fetchmany(batch_size)
        if not batch:
            break
        yield batch


def normalize_row(row: Dict[str, Any], json_columns: Iterable[str] = JSON_COLUMNS) -> Dict[str, Any]:
    """Decode structured-metadata columns into dicts; malformed JSON becomes `{}`."""
    normalized = dict(row)
    for column in json_columns:
        if column in normalized:
            normalized[column] = parse_detail_info(normalized[column])
    return normalized


def stream_rows(
    cursor: psycopg.Cursor,
    batch_size: int,
    json_columns: Iterable[str] = JSON_COLUMNS,
) -> Iterator[Dict[str, Any]]:
    """
    Yield normalised rows from an executed cursor, `batch_size` at a time.
    """
    columns = tuple(json_columns)
    for batch in _batched_fetch(cursor, batch_size):
        for row in batch:
            yield normalize_row(row, columns)


def collect_rows(
    cursor: psycopg.Cursor, batch_size: int, json_columns: Iterable[str] = JSON_COLUMNS
) -> List[Dict[str, Any]]:
    return list(stream_rows(cursor, batch_size, json_columns))


__all__ = [
    "JSON_COLUMNS",
    "collect_rows",
    "next_cursor_name",
    "normalize_row",
    "stream_rows",
]
