"""
Out-of-band reconciliation of mirror writes that previously failed.

Rows whose `sync_flag` is set are re-sent to the document store through the
same synchronizer the repository uses; a success clears the flag, another
failure leaves it set for the next sweep.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import List, Optional

from resource_store.persistence.repository import AggregateRepository
from resource_store.persistence.sync import Synchronizer
from resource_store.utils.logging import get_logger

log = get_logger(__name__)


@dataclass
class ReconcileReport:
    scanned: int = 0
    synced: int = 0
    still_dirty: int = 0
    ids_failed: List[int] = field(default_factory=list)
    duration_s: float = 0.0

    @property
    def clean(self) -> bool:
        return self.still_dirty == 0


def reconcile(
    repository: AggregateRepository,
    synchronizer: Synchronizer,
    limit: Optional[int] = None,
) -> ReconcileReport:
    """
    Re-sync up to `limit` flagged aggregates, oldest id first.
    """
    report = ReconcileReport()
    start = time.perf_counter()

    for aggregate in repository.find_unsynced(limit):
        report.scanned += 1
        synchronizer.sync(aggregate)
        if aggregate.needs_sync:
            report.still_dirty += 1
            report.ids_failed.append(aggregate.id)
        else:
            report.synced += 1

    report.duration_s = time.perf_counter() - start
    log.info(
        "Reconciliation finished",
        extra={
            "table": repository.schema.table,
            "scanned": report.scanned,
            "synced": report.synced,
            "still_dirty": report.still_dirty,
            "duration_s": round(report.duration_s, 4),
        },
    )
    return report


__all__ = ["ReconcileReport", "reconcile"]
