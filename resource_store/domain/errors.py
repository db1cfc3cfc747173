"""
Exceptions raised by the persistence engine.

Lookups signal "not found" by returning None rather than raising; only
write-path failures are exceptions.
"""

from __future__ import annotations

from typing import Optional


class RepositoryError(Exception):
    """Base class for persistence-engine errors."""


class OptimisticLockConflict(RepositoryError):
    """
    A compare-and-swap write affected zero rows.

    The row was modified concurrently (its lock_version moved on) or no longer
    exists. The repository never retries; the caller decides whether to
    re-fetch and try again.
    """

    def __init__(
        self,
        resource: str,
        aggregate_id: Optional[int],
        expected_version: int,
    ) -> None:
        self.resource = resource
        self.aggregate_id = aggregate_id
        self.expected_version = expected_version
        super().__init__(
            f"{resource} id={aggregate_id} was modified concurrently "
            f"(expected lock_version={expected_version})"
        )


__all__ = ["OptimisticLockConflict", "RepositoryError"]
