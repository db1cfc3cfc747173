"""
Audit trail for primary-store mutations.

Audit rows are written on the mutation's own cursor, inside its transaction,
so an entry exists exactly for the writes that committed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

import psycopg
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from resource_store.domain.models import Actor

AUDIT_TABLE = "audit_logs"


@dataclass(frozen=True)
class AuditEntry:
    table_name: str
    record_id: int
    action: str
    actor: Actor
    old_values: Optional[Dict[str, Any]] = None
    new_values: Optional[Dict[str, Any]] = None


@runtime_checkable
class AuditService(Protocol):
    def record(self, cursor: psycopg.Cursor, entry: AuditEntry) -> None:
        """Persist `entry` using the caller's cursor (and transaction)."""
        ...


class NullAuditService:
    """Audit sink that discards entries."""

    def record(self, cursor: psycopg.Cursor, entry: AuditEntry) -> None:
        del cursor, entry


class DatabaseAuditService:
    """
    Stores audit entries in the `audit_logs` table of the primary store.
    """

    _INSERT = (
        f"INSERT INTO {AUDIT_TABLE} "
        "(table_name, record_id, action, old_values, new_values, user_id, user_name, created_at) "
        "VALUES (%s, %s, %s, %s, %s, %s, %s, NOW())"
    )

    def record(self, cursor: psycopg.Cursor, entry: AuditEntry) -> None:
        cursor.execute(
            self._INSERT,
            (
                entry.table_name,
                entry.record_id,
                entry.action,
                Jsonb(entry.old_values) if entry.old_values is not None else None,
                Jsonb(entry.new_values) if entry.new_values is not None else None,
                entry.actor.id,
                entry.actor.username,
            ),
        )

    def history(
        self,
        conn: psycopg.Connection,
        table_name: str,
        record_id: int,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Audit rows for one record, newest first."""
        statement = (
            f"SELECT * FROM {AUDIT_TABLE} WHERE table_name = %s AND record_id = %s "
            "ORDER BY created_at DESC, id DESC"
        )
        params: List[Any] = [table_name, record_id]
        if limit:
            statement += " LIMIT %s"
            params.append(limit)
        with conn.cursor(row_factory=dict_row) as cur:
            cur.execute(statement, params)
            return cur.fetchall()


__all__ = [
    "AUDIT_TABLE",
    "AuditEntry",
    "AuditService",
    "DatabaseAuditService",
    "NullAuditService",
]
