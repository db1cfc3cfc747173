"""
Lifecycle status for persisted aggregates.

Values are stored as a small integer in the primary store and must stay
stable. The transition table is advisory for callers; repositories persist
whatever status they are handed.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Dict, FrozenSet, List


class RecordStatus(IntEnum):
    INACTIVE = 0
    ACTIVE = 1
    DRAFT = 2
    COMPLETED = 3
    DELETED = 4
    MAINTENANCE = 5
    APPROVED = 6
    REJECTED = 7

    @property
    def label(self) -> str:
        return self.name.capitalize()

    def can_transition_to(self, target: "RecordStatus") -> bool:
        """Whether moving from this status to `target` is a legal update."""
        return target in _TRANSITIONS.get(self, frozenset())

    @property
    def is_immutable(self) -> bool:
        return self in _IMMUTABLE

    @classmethod
    def searchable(cls) -> List["RecordStatus"]:
        """Every status a regular listing may show (all but DELETED)."""
        return [status for status in cls if status is not cls.DELETED]

    @classmethod
    def choices(cls) -> Dict[int, str]:
        return {status.value: status.label for status in cls}


_TRANSITIONS: Dict[RecordStatus, FrozenSet[RecordStatus]] = {
    RecordStatus.DRAFT: frozenset(
        {
            RecordStatus.DRAFT,
            RecordStatus.INACTIVE,
            RecordStatus.ACTIVE,
            RecordStatus.DELETED,
            RecordStatus.MAINTENANCE,
        }
    ),
    RecordStatus.ACTIVE: frozenset(
        {RecordStatus.COMPLETED, RecordStatus.APPROVED, RecordStatus.REJECTED}
    ),
    RecordStatus.INACTIVE: frozenset(
        {
            RecordStatus.INACTIVE,
            RecordStatus.ACTIVE,
            RecordStatus.DRAFT,
            RecordStatus.DELETED,
        }
    ),
    RecordStatus.MAINTENANCE: frozenset(
        {
            RecordStatus.MAINTENANCE,
            RecordStatus.INACTIVE,
            RecordStatus.ACTIVE,
            RecordStatus.DRAFT,
            RecordStatus.DELETED,
        }
    ),
    RecordStatus.APPROVED: frozenset(
        {RecordStatus.APPROVED, RecordStatus.COMPLETED, RecordStatus.REJECTED}
    ),
}

_IMMUTABLE = frozenset({RecordStatus.ACTIVE, RecordStatus.COMPLETED, RecordStatus.DELETED})


__all__ = ["RecordStatus"]
