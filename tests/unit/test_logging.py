from __future__ import annotations

import json
import logging

from resource_store.utils.logging import JsonFormatter, _json_formatter, configure_logging

EXPECTED_AGGREGATE_ID = 7
EXPECTED_LOCK_VERSION = 4


def _record() -> logging.LogRecord:
    return logging.LogRecord(
        name="test.logger",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="hello",
        args=(),
        exc_info=None,
    )


def test_json_formatter_promotes_standard_extra_fields() -> None:
    record = _record()
    record.aggregate_id = EXPECTED_AGGREGATE_ID
    record.collection = "brand"

    payload = json.loads(_json_formatter(record))

    assert payload["level"] == "INFO"
    assert payload["logger"] == "test.logger"
    assert payload["message"] == "hello"
    assert payload["aggregate_id"] == EXPECTED_AGGREGATE_ID
    assert payload["collection"] == "brand"


def test_json_formatter_supports_legacy_nested_extra_field() -> None:
    record = _record()
    record.extra = {"lock_version": EXPECTED_LOCK_VERSION}

    payload = json.loads(_json_formatter(record))

    assert payload["lock_version"] == EXPECTED_LOCK_VERSION


def test_json_formatter_stringifies_unserializable_values() -> None:
    record = _record()
    record.error = ValueError("boom")

    payload = json.loads(_json_formatter(record))

    assert payload["error"] == "boom"


def test_configure_logging_installs_json_formatter() -> None:
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        configure_logging(level="DEBUG", json_logs=True)

        assert root.level == logging.DEBUG
        assert any(isinstance(h.formatter, JsonFormatter) for h in root.handlers)
        assert logging.getLogger("pymongo").level == logging.WARNING
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)


def test_configure_logging_without_force_keeps_existing_handlers() -> None:
    root = logging.getLogger()
    saved_handlers = root.handlers[:]
    sentinel = logging.NullHandler()
    root.handlers[:] = [sentinel]
    try:
        configure_logging(json_logs=True, force=False)

        assert root.handlers == [sentinel]
    finally:
        root.handlers[:] = saved_handlers
