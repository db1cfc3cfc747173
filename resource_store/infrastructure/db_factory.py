"""
Primary-store connection factory utilities for the resource store.

Provides centralized management of synchronous PostgreSQL connections and the
shared connection pool. The PoolManager singleton ensures resources are
properly cleaned up on application exit.

Includes retry logic for transient connection failures using tenacity. Only
connection acquisition is retried; statements are never re-executed.
"""

from __future__ import annotations

import atexit
import threading
from contextlib import contextmanager
from typing import Callable, ContextManager, Generator, Optional

import psycopg
from psycopg import Connection, sql
from psycopg_pool import ConnectionPool
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from resource_store.config import get_settings

ConnectionFactory = Callable[[], ContextManager[Connection]]


def build_dsn() -> str:
    """Compose a DSN string from settings."""
    settings = get_settings()
    return (
        f"postgresql://{settings.db_user}:{settings.db_password}"
        f"@{settings.db_host}:{settings.db_port}/{settings.db_name}"
    )


def apply_statement_timeout(cursor: psycopg.Cursor, timeout_ms: int) -> None:
    """
    Bound the current transaction's statements to `timeout_ms`.

    A non-positive value leaves the server default in place.
    """
    if timeout_ms <= 0:
        return
    cursor.execute(
        sql.SQL("SET LOCAL statement_timeout = {}").format(sql.Literal(f"{int(timeout_ms)}ms"))
    )


class PoolManager:
    """
    Thread-safe singleton for managing the primary-store connection pool.

    Handles lifecycle management with automatic cleanup via atexit hook.
    """

    _instance: Optional["PoolManager"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "PoolManager":
        """Create or return the singleton instance."""
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
                cls._instance._sync_pool: Optional[ConnectionPool] = None
                # Register cleanup on exit
                atexit.register(cls._instance.close_all)
            return cls._instance

    def get_sync_pool(
        self, min_size: Optional[int] = None, max_size: Optional[int] = None
    ) -> ConnectionPool:
        """
        Get or create the synchronous connection pool.

        Parameters
        ----------
        min_size : int, optional
            Minimum number of idle connections to keep. Defaults to settings.
        max_size : int, optional
            Maximum total connections in the pool. Defaults to settings.

        Returns
        -------
        ConnectionPool
            The managed sync pool instance.
        """
        with self._lock:
            if self._sync_pool is None:
                settings = get_settings()
                self._sync_pool = ConnectionPool(
                    conninfo=build_dsn(),
                    min_size=min_size or settings.db_pool_min_size,
                    max_size=max_size or settings.db_pool_max_size,
                    open=True,
                )
            return self._sync_pool

    @contextmanager
    def sync_connection(self) -> Generator[Connection, None, None]:
        """
        Context manager for obtaining a sync connection from the pool.

        The pool commits on clean exit and rolls back if the block raises.

        Example
        -------
            manager = PoolManager()
            with manager.sync_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute("SELECT 1")
        """
        pool = self.get_sync_pool()
        with pool.connection() as conn:
            yield conn

    def close_all(self) -> None:
        """
        Close the managed pool and release resources.

        This is called automatically on exit via atexit hook.
        """
        with self._lock:
            if self._sync_pool is not None:
                try:
                    self._sync_pool.close()
                finally:
                    self._sync_pool = None


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((psycopg.OperationalError, psycopg.InterfaceError)),
    reraise=True,
)
def get_sync_connection(dsn: Optional[str] = None) -> Connection:
    """
    Acquire a dedicated synchronous connection with automatic retry.

    Retries up to 3 times with exponential backoff for transient connection errors.
    Use this for simple, one-off operations (CLI, migrations). Prefer the pool
    for repository traffic.

    Raises
    ------
    psycopg.OperationalError
        If connection fails after all retry attempts.
    """
    return psycopg.connect(dsn or build_dsn())


def get_sync_pool(
    min_size: Optional[int] = None, max_size: Optional[int] = None
) -> ConnectionPool:
    """Get or create the synchronous connection pool via PoolManager."""
    manager = PoolManager()
    return manager.get_sync_pool(min_size=min_size, max_size=max_size)


def pooled_connection_factory() -> ConnectionFactory:
    """Connection factory backed by the shared pool, for repository wiring."""
    return PoolManager().sync_connection


@contextmanager
def dedicated_connection(dsn: str) -> Generator[Connection, None, None]:
    """
    Connection factory over a single DSN without pooling.

    Commits when the block succeeds and rolls back otherwise, mirroring the
    pool's behaviour so repositories can use either.
    """
    with psycopg.connect(dsn) as conn:
        yield conn


__all__ = [
    "ConnectionFactory",
    "PoolManager",
    "apply_statement_timeout",
    "build_dsn",
    "dedicated_connection",
    "get_sync_connection",
    "get_sync_pool",
    "pooled_connection_factory",
]
