"""Tests for structured logging."""

import json
import logging
import sys
from collections.abc import Iterator

import pytest

from peerlock.observability.logging import (
    ConsoleFormatter,
    JsonFormatter,
    LogContext,
    configure_logging,
    peer_id_var,
    resource_var,
)


def _record(message: str = "hello", **extra: object) -> logging.LogRecord:
    record = logging.LogRecord(
        name="peerlock.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=10,
        msg=message,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJsonFormatter:
    """Tests for JsonFormatter."""

    def test_basic_fields(self) -> None:
        data = json.loads(JsonFormatter().format(_record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "peerlock.test"
        assert data["message"] == "hello"
        assert "peer_id" not in data

    def test_extra_peer_fields(self) -> None:
        data = json.loads(JsonFormatter().format(_record(peer_id="abc", resource="printer")))

        assert data["peer_id"] == "abc"
        assert data["resource"] == "printer"

    def test_context_fields(self) -> None:
        with LogContext(peer_id="ctx-peer", resource="scanner"):
            data = json.loads(JsonFormatter().format(_record()))

        assert data["peer_id"] == "ctx-peer"
        assert data["resource"] == "scanner"

    def test_unserializable_extra_is_stringified(self) -> None:
        data = json.loads(JsonFormatter().format(_record(thing=object())))

        assert data["thing"].startswith("<object object")

    def test_exception_info(self) -> None:
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = _record()
            record.exc_info = sys.exc_info()

        data = json.loads(JsonFormatter().format(record))

        assert data["exception"]["type"] == "RuntimeError"
        assert data["exception"]["message"] == "boom"


class TestConsoleFormatter:
    def test_includes_short_peer_id(self) -> None:
        output = ConsoleFormatter(use_colors=False).format(
            _record(peer_id="0123456789abcdef", resource="printer")
        )

        assert "| hello | peer=01234567 res=printer" in output


class TestLogContext:
    def test_resets_on_exit(self) -> None:
        with LogContext(peer_id="outer"):
            with LogContext(peer_id="inner", resource="r"):
                assert peer_id_var.get() == "inner"
            assert peer_id_var.get() == "outer"
            assert resource_var.get() == ""

        assert peer_id_var.get() == ""


class TestConfigureLogging:
    @pytest.fixture(autouse=True)
    def _restore_root(self) -> Iterator[None]:
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        root.handlers[:] = handlers
        root.setLevel(level)

    def test_json_handler(self) -> None:
        configure_logging(json_format=True, level="debug")

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JsonFormatter)
        assert logging.getLogger("redis").level == logging.WARNING

    def test_console_handler(self) -> None:
        configure_logging(json_format=False, level="INFO")

        assert isinstance(logging.getLogger().handlers[0].formatter, ConsoleFormatter)
