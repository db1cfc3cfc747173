"""
Persistence package for the resource store.

Repositories, visibility scoping, mirror synchronization, audit trail and the
reconciliation sweep.
"""

from resource_store.persistence.audit import (
    AuditEntry,
    AuditService,
    DatabaseAuditService,
    NullAuditService,
)
from resource_store.persistence.brand import (
    BRAND_SCHEMA,
    BrandRepository,
    build_synchronizer,
    create_brand_repository,
)
from resource_store.persistence.reconcile import ReconcileReport, reconcile
from resource_store.persistence.repository import AggregateRepository, ResourceSchema
from resource_store.persistence.scoping import DEFAULT_SCOPER, ELEVATED_SCOPER, QueryScoper
from resource_store.persistence.sync import (
    DocumentSynchronizer,
    NullSynchronizer,
    SyncFlagStore,
    Synchronizer,
    classify_failure,
    project,
)

__all__ = [
    # Repositories
    "AggregateRepository",
    "ResourceSchema",
    "BRAND_SCHEMA",
    "BrandRepository",
    "create_brand_repository",
    # Scoping
    "DEFAULT_SCOPER",
    "ELEVATED_SCOPER",
    "QueryScoper",
    # Mirror
    "DocumentSynchronizer",
    "NullSynchronizer",
    "SyncFlagStore",
    "Synchronizer",
    "build_synchronizer",
    "classify_failure",
    "project",
    # Audit
    "AuditEntry",
    "AuditService",
    "DatabaseAuditService",
    "NullAuditService",
    # Reconciliation
    "ReconcileReport",
    "reconcile",
]
