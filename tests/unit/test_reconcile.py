from __future__ import annotations

from types import SimpleNamespace
from typing import List, Optional

from resource_store.domain.models import SYNC_DIRTY, Brand
from resource_store.persistence.reconcile import ReconcileReport, reconcile

RECONCILE_LIMIT = 50


class _FakeRepository:
    schema = SimpleNamespace(table="brand")

    def __init__(self, pending: List[Brand]) -> None:
        self._pending = pending
        self.limits: List[Optional[int]] = []

    def find_unsynced(self, limit: Optional[int] = None) -> List[Brand]:
        self.limits.append(limit)
        return list(self._pending)


class _SelectiveSynchronizer:
    """Clears the flag unless the id is listed as still failing."""

    def __init__(self, failing_ids=()) -> None:
        self.failing_ids = set(failing_ids)
        self.seen: List[int] = []

    def sync(self, aggregate: Brand) -> None:
        self.seen.append(aggregate.id)
        if aggregate.id not in self.failing_ids:
            aggregate.sync_flag = None


def _dirty(aggregate_id: int) -> Brand:
    return Brand(id=aggregate_id, name=f"Brand {aggregate_id}", sync_flag=SYNC_DIRTY)


def test_reconcile_resyncs_every_flagged_aggregate() -> None:
    repository = _FakeRepository([_dirty(1), _dirty(2), _dirty(3)])
    synchronizer = _SelectiveSynchronizer(failing_ids={2})

    report = reconcile(repository, synchronizer, limit=RECONCILE_LIMIT)

    assert repository.limits == [RECONCILE_LIMIT]
    assert synchronizer.seen == [1, 2, 3]
    assert (report.scanned, report.synced, report.still_dirty) == (3, 2, 1)
    assert report.ids_failed == [2]
    assert not report.clean
    assert report.duration_s >= 0


def test_reconcile_with_nothing_pending_is_clean() -> None:
    report = reconcile(_FakeRepository([]), _SelectiveSynchronizer())

    assert report == ReconcileReport(duration_s=report.duration_s)
    assert report.clean
