"""
Brand persistence: schema binding plus factory wiring from settings.
"""

from __future__ import annotations

from typing import Optional

from resource_store.config import Settings, get_settings
from resource_store.domain.models import Brand
from resource_store.infrastructure.db_factory import ConnectionFactory, pooled_connection_factory
from resource_store.infrastructure.mongo_factory import get_collection
from resource_store.persistence.audit import DatabaseAuditService
from resource_store.persistence.repository import AggregateRepository, ResourceSchema
from resource_store.persistence.scoping import DEFAULT_SCOPER, ELEVATED_SCOPER
from resource_store.persistence.sync import (
    DocumentSynchronizer,
    NullSynchronizer,
    SyncFlagStore,
    Synchronizer,
)
from resource_store.utils.logging import get_logger

log = get_logger(__name__)

BRAND_SCHEMA: ResourceSchema[Brand] = ResourceSchema(
    table=Brand.RESOURCE,
    aggregate_type=Brand,
    filter_columns=("id", "status", "sync_flag", "lock_version"),
    like_columns=("name",),
    allowed_sort={"id": "id", "name": "name", "status": "status"},
)


class BrandRepository(AggregateRepository[Brand]):
    """Repository for the `brand` table, mirrored into the `brand` collection."""

    def __init__(self, connection_factory: ConnectionFactory, **kwargs) -> None:
        super().__init__(BRAND_SCHEMA, connection_factory, **kwargs)


def build_synchronizer(
    schema: ResourceSchema,
    connection_factory: ConnectionFactory,
    settings: Optional[Settings] = None,
) -> Synchronizer:
    """
    Mirror writer for `schema`, or a no-op one when MONGO_ENABLED is false.
    """
    settings = settings or get_settings()
    if not settings.mongo_enabled:
        log.info("Secondary store disabled; mirror writes skipped", extra={"table": schema.table})
        return NullSynchronizer()
    return DocumentSynchronizer(
        get_collection(schema.collection_name, settings=settings),
        SyncFlagStore(connection_factory, schema.table),
    )


def create_brand_repository(
    settings: Optional[Settings] = None, elevated: bool = False
) -> BrandRepository:
    """
    BrandRepository over the shared connection pool, with mirror and audit
    wired from settings. `elevated=True` makes soft-deleted rows visible.
    """
    settings = settings or get_settings()
    connection_factory = pooled_connection_factory()
    return BrandRepository(
        connection_factory,
        synchronizer=build_synchronizer(BRAND_SCHEMA, connection_factory, settings),
        scoper=ELEVATED_SCOPER if elevated else DEFAULT_SCOPER,
        audit=DatabaseAuditService(),
        batch_size=settings.list_batch_size,
        statement_timeout_ms=settings.db_statement_timeout_ms,
    )


__all__ = ["BRAND_SCHEMA", "BrandRepository", "build_synchronizer", "create_brand_repository"]
