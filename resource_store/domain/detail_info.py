"""
Helpers for the `detail_info` provenance blob.

`detail_info` holds a nested `change_log` recording who created, last updated
and soft-deleted a record, and when. It is metadata, never business data. All
helpers return new dictionaries; inputs are not mutated.
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Dict

CHANGE_LOG = "change_log"

_CHANGE_LOG_KEYS = (
    "created_at",
    "created_by",
    "updated_at",
    "updated_by",
    "deleted_at",
    "deleted_by",
)


def _stamp(moment: datetime) -> str:
    return moment.isoformat()


def parse_detail_info(raw: Any) -> Dict[str, Any]:
    """
    Coerce a stored `detail_info` value into a dict.

    psycopg already decodes JSONB columns; strings show up for JSON/TEXT
    columns and legacy rows. Unparseable or non-object values yield `{}`.
    """
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8", errors="replace")
    if not isinstance(raw, str) or not raw.strip():
        return {}
    try:
        decoded = json.loads(raw)
    except ValueError:
        return {}
    return decoded if isinstance(decoded, dict) else {}


def get_change_log(detail_info: Dict[str, Any]) -> Dict[str, Any]:
    change_log = detail_info.get(CHANGE_LOG)
    return dict(change_log) if isinstance(change_log, dict) else {}


def _with_change_log(detail_info: Dict[str, Any], **entries: Any) -> Dict[str, Any]:
    merged = dict(detail_info)
    merged[CHANGE_LOG] = {**get_change_log(detail_info), **entries}
    return merged


def stamp_created(detail_info: Dict[str, Any], username: str, moment: datetime) -> Dict[str, Any]:
    """Fresh change log for an insert; every other entry starts out null."""
    merged = dict(detail_info)
    change_log = {key: None for key in _CHANGE_LOG_KEYS}
    change_log.update(created_at=_stamp(moment), created_by=username)
    merged[CHANGE_LOG] = change_log
    return merged


def stamp_updated(detail_info: Dict[str, Any], username: str, moment: datetime) -> Dict[str, Any]:
    return _with_change_log(detail_info, updated_at=_stamp(moment), updated_by=username)


def stamp_deleted(detail_info: Dict[str, Any], username: str, moment: datetime) -> Dict[str, Any]:
    return _with_change_log(detail_info, deleted_at=_stamp(moment), deleted_by=username)


def clear_deleted(detail_info: Dict[str, Any]) -> Dict[str, Any]:
    return _with_change_log(detail_info, deleted_at=None, deleted_by=None)


__all__ = [
    "CHANGE_LOG",
    "clear_deleted",
    "get_change_log",
    "parse_detail_info",
    "stamp_created",
    "stamp_deleted",
    "stamp_updated",
]
