"""
Secondary-store (MongoDB) client management for the resource store.

The mirror store sits on the write path of every mutation, so the client is
built with short, bounded timeouts: a slow or unreachable mirror fails fast
and the synchronizer records sync debt instead of stalling the request.
"""

from __future__ import annotations

import atexit
import threading
from typing import Optional

from pymongo import MongoClient
from pymongo.collection import Collection

from resource_store.config import Settings, get_settings


class MongoClientManager:
    """
    Thread-safe singleton holding the process-wide MongoClient.

    MongoClient is itself thread-safe and pools connections, so one instance
    per process is enough.
    """

    _instance: Optional["MongoClientManager"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "MongoClientManager":
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
                cls._instance._client: Optional[MongoClient] = None
                atexit.register(cls._instance.close)
            return cls._instance

    def get_client(self, settings: Optional[Settings] = None) -> MongoClient:
        """Get or lazily create the client. Creating it does not connect."""
        with self._lock:
            if self._client is None:
                self._client = build_client(settings or get_settings())
            return self._client

    def get_collection(self, name: str, settings: Optional[Settings] = None) -> Collection:
        """Collection `name` in the configured mirror database."""
        settings = settings or get_settings()
        return self.get_client(settings)[settings.mongo_database][name]

    def close(self) -> None:
        with self._lock:
            if self._client is not None:
                try:
                    self._client.close()
                finally:
                    self._client = None


def build_client(settings: Settings) -> MongoClient:
    """
    Build a MongoClient with the configured timeouts.
    """
    return MongoClient(
        settings.mongo_uri,
        serverSelectionTimeoutMS=settings.mongo_server_selection_timeout_ms,
        connectTimeoutMS=settings.mongo_connect_timeout_ms,
        socketTimeoutMS=settings.mongo_socket_timeout_ms,
        tz_aware=True,
    )


def get_collection(name: str, settings: Optional[Settings] = None) -> Collection:
    """Convenience accessor over the shared MongoClientManager."""
    return MongoClientManager().get_collection(name, settings=settings)


__all__ = ["MongoClientManager", "build_client", "get_collection"]
