from __future__ import annotations

import logging

import psycopg
import pytest
from pymongo.errors import (
    NetworkTimeout,
    OperationFailure,
    PyMongoError,
    ServerSelectionTimeoutError,
)

from resource_store.domain.models import SYNC_DIRTY, Brand
from resource_store.domain.status import RecordStatus
from resource_store.persistence.sync import (
    DocumentSynchronizer,
    NullSynchronizer,
    SyncFlagStore,
    Synchronizer,
    classify_failure,
    guarded_upsert,
    project,
)
from tests.fakes import FIXED_NOW, FakeCollection, FakeConnection, FakeFlagStore

SYNC_LOGGER = "resource_store.persistence.sync"


def _brand(**overrides) -> Brand:
    values = {
        "id": 7,
        "name": "Acme",
        "status": RecordStatus.ACTIVE,
        "detail_info": {"change_log": {"created_by": "alice"}},
        "lock_version": 4,
        "sync_flag": None,
    }
    values.update(overrides)
    return Brand(**values)


def _synchronizer(collection: FakeCollection, flags: FakeFlagStore) -> DocumentSynchronizer:
    return DocumentSynchronizer(collection, flags, clock=lambda: FIXED_NOW)


def test_project_carries_business_fields_status_metadata_and_version() -> None:
    assert project(_brand()) == {
        "id": 7,
        "name": "Acme",
        "status": 1,
        "detail_info": {"change_log": {"created_by": "alice"}},
        "lock_version": 4,
    }


def test_sync_upserts_by_id_with_server_timestamp() -> None:
    collection, flags = FakeCollection(), FakeFlagStore()

    _synchronizer(collection, flags).sync(_brand())

    (call,) = collection.calls
    assert call["filter"] == {"id": 7}
    assert call["upsert"] is True
    assert collection.documents[7] == {**project(_brand()), "sync_at": FIXED_NOW}
    assert flags.writes == []


def test_older_version_does_not_overwrite_a_newer_mirror() -> None:
    collection, flags = FakeCollection(), FakeFlagStore()
    synchronizer = _synchronizer(collection, flags)

    synchronizer.sync(_brand(name="Acme Five", lock_version=5))
    synchronizer.sync(_brand(name="Acme Four", lock_version=4))

    assert collection.documents[7]["name"] == "Acme Five"
    assert collection.documents[7]["lock_version"] == 5
    assert flags.writes == []


def test_same_version_is_rewritten() -> None:
    collection, flags = FakeCollection(), FakeFlagStore()
    synchronizer = _synchronizer(collection, flags)

    synchronizer.sync(_brand(name="Acme"))
    synchronizer.sync(_brand(name="Acme Again"))

    assert collection.documents[7]["name"] == "Acme Again"


def test_guarded_upsert_wraps_values_as_literals() -> None:
    (stage,) = guarded_upsert({"id": 7, "name": "$price", "lock_version": 4}, 4)

    stale, keep, write = stage["$set"]["name"]["$cond"]
    assert stale == {"$gt": [{"$ifNull": ["$lock_version", 0]}, 4]}
    assert keep == "$name"
    assert write == {"$literal": "$price"}
    assert stage["$set"]["sync_at"]["$cond"][2] == "$$NOW"


def test_successful_sync_clears_a_dirty_flag() -> None:
    collection, flags = FakeCollection(), FakeFlagStore()
    brand = _brand(sync_flag=SYNC_DIRTY)

    _synchronizer(collection, flags).sync(brand)

    assert brand.sync_flag is None
    assert flags.writes == [(7, None)]


@pytest.mark.parametrize(
    "error, label",
    [
        (NetworkTimeout("timed out"), "Connection timeout"),
        (ServerSelectionTimeoutError("no servers"), "Server selection timeout"),
        (OperationFailure("bad update"), "Driver runtime error"),
        (RuntimeError("boom"), "Unexpected error"),
    ],
)
def test_failure_is_absorbed_flagged_and_logged(error, label, caplog) -> None:
    collection, flags = FakeCollection(error=error), FakeFlagStore()
    brand = _brand()

    with caplog.at_level(logging.ERROR, logger=SYNC_LOGGER):
        _synchronizer(collection, flags).sync(brand)

    assert brand.sync_flag == SYNC_DIRTY
    assert flags.writes == [(7, SYNC_DIRTY)]
    (record,) = [r for r in caplog.records if r.name == SYNC_LOGGER]
    assert record.levelno == logging.ERROR
    assert record.error_type == label
    assert record.aggregate_id == 7
    assert record.collection == "brand"
    assert record.timestamp == FIXED_NOW.isoformat()


def test_failure_on_already_dirty_aggregate_does_not_rewrite_flag() -> None:
    collection, flags = FakeCollection(error=NetworkTimeout("timed out")), FakeFlagStore()
    brand = _brand(sync_flag=SYNC_DIRTY)

    _synchronizer(collection, flags).sync(brand)

    assert brand.sync_flag == SYNC_DIRTY
    assert flags.writes == []


def test_flag_persist_failure_is_logged_not_raised(caplog) -> None:
    collection = FakeCollection(error=PyMongoError("down"))
    flags = FakeFlagStore(error=psycopg.OperationalError("primary gone"))

    with caplog.at_level(logging.ERROR, logger=SYNC_LOGGER):
        _synchronizer(collection, flags).sync(_brand())

    messages = [r.getMessage() for r in caplog.records if r.name == SYNC_LOGGER]
    assert "Secondary store sync failed" in messages
    assert "Could not persist sync flag" in messages


@pytest.mark.parametrize(
    "error, label",
    [
        (NetworkTimeout("x"), "Connection timeout"),
        (ServerSelectionTimeoutError("x"), "Server selection timeout"),
        (PyMongoError("x"), "Driver runtime error"),
        (ValueError("x"), "Unexpected error"),
    ],
)
def test_classify_failure(error, label) -> None:
    assert classify_failure(error) == label


def test_flag_store_touches_only_the_flag_column() -> None:
    conn = FakeConnection()

    SyncFlagStore(conn.connect, "brand").write(7, SYNC_DIRTY)

    (text, params), = conn.executed
    assert text == 'UPDATE "brand" SET "sync_flag" = %s WHERE id = %s'
    assert params == [SYNC_DIRTY, 7]
    assert "lock_version" not in text


def test_null_synchronizer_is_a_noop() -> None:
    brand = _brand(sync_flag=SYNC_DIRTY)

    NullSynchronizer().sync(brand)

    assert brand.sync_flag == SYNC_DIRTY
    assert isinstance(NullSynchronizer(), Synchronizer)
