"""Tests for the structured logging system (homebox_kernel/logging_config.py)."""

import json
import logging
from io import StringIO
from uuid import uuid4

import pytest

from homebox_kernel.exceptions import ContainerNotEmptyError
from homebox_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


class TestStructuredFormatter:
    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        (record,) = _parse_all_logs(stream)
        assert record["message"] == "hello"
        assert record["level"] == "INFO"
        assert record["logger"] == "homebox.test"
        assert "ts" in record

    def test_extra_fields_are_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        entity = uuid4()
        get_logger("test").info("item_created", extra={"item_id": entity, "quantity": 3})

        (record,) = _parse_all_logs(stream)
        assert record["item_id"] == str(entity)
        assert record["quantity"] == 3

    def test_exception_fields_carry_code_and_kind(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise ContainerNotEmptyError("c-1", 4)
        except ContainerNotEmptyError:
            get_logger("test").error("delete_failed", exc_info=True)

        (record,) = _parse_all_logs(stream)
        assert record["exc_type"] == "ContainerNotEmptyError"
        assert record["exc_code"] == "CONTAINER_NOT_EMPTY"
        assert record["exc_kind"] == "ConflictError"
        assert record["exc_item_count"] == 4
        assert "traceback" in record

    def test_debug_filtered_at_info_level(self):
        handler, stream = _make_handler()
        configure_logging(level=logging.INFO, handler=handler)
        get_logger("test").debug("quiet")
        assert stream.getvalue() == ""


class TestLogContext:
    def test_context_fields_appear_in_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        with LogContext.bind(request_id="req-1", operation="createItem"):
            get_logger("test").info("hello")

        (record,) = _parse_all_logs(stream)
        assert record["request_id"] == "req-1"
        assert record["operation"] == "createItem"

    def test_record_extra_overrides_context(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        with LogContext.bind(entity_id="from-context"):
            get_logger("test").info("hello", extra={"entity_id": "from-record"})

        (record,) = _parse_all_logs(stream)
        assert record["entity_id"] == "from-record"

    def test_bind_nests_and_restores(self):
        with LogContext.bind(request_id="outer"):
            with LogContext.bind(request_id="inner", entity_id="e-1", operation=None):
                assert LogContext.current() == {"request_id": "inner", "entity_id": "e-1"}
            assert LogContext.current() == {"request_id": "outer"}
        assert LogContext.current() == {}

    def test_bind_restores_after_exception(self):
        with pytest.raises(RuntimeError):
            with LogContext.bind(request_id="doomed"):
                raise RuntimeError("boom")
        assert LogContext.current() == {}

    def test_unknown_field_rejected(self):
        with pytest.raises(TypeError):
            with LogContext.bind(user="someone"):
                pass

    def test_current_is_a_copy(self):
        with LogContext.bind(request_id="r"):
            LogContext.current()["request_id"] = "tampered"
            assert LogContext.current() == {"request_id": "r"}


class TestConfigureLogging:
    def test_idempotent(self):
        handler, _ = _make_handler()
        configure_logging(handler=handler)
        configure_logging(handler=handler)
        assert len(logging.getLogger("homebox").handlers) == 1

    def test_reset_removes_handlers(self):
        handler, _ = _make_handler()
        configure_logging(handler=handler)
        reset_logging()
        assert logging.getLogger("homebox").handlers == []
