"""
Integration tests for retailops/observability.py

Tests structured logging, correlation IDs and timing helpers.
"""
import asyncio
import inspect
import json
import logging
import pytest
import time as time_module

from retailops.observability import (
    HumanReadableFormatter,
    StructuredFormatter,
    Timer,
    correlation_context,
    generate_correlation_id,
    get_correlation_id,
    get_logger,
    setup_logging,
    timed,
)


def _record(msg: str = "Test message", **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="test.logger",
        level=logging.INFO,
        pathname="test.py",
        lineno=10,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestCorrelationId:
    """Tests for correlation ID management."""

    def test_generate_correlation_id_not_empty(self):
        """Generated ID is short and not empty."""
        cid = generate_correlation_id()
        assert cid
        assert len(cid) == 8

    def test_context_sets_and_resets(self):
        """correlation_context scopes the ID to the block."""
        assert get_correlation_id() is None
        with correlation_context("sale-1") as cid:
            assert cid == "sale-1"
            assert get_correlation_id() == "sale-1"
        assert get_correlation_id() is None

    def test_context_generates_id(self):
        with correlation_context() as cid:
            assert get_correlation_id() == cid

    def test_nested_contexts(self):
        with correlation_context("outer"):
            with correlation_context("inner"):
                assert get_correlation_id() == "inner"
            assert get_correlation_id() == "outer"


class TestTimer:
    """Tests for Timer context manager."""

    def test_measures_elapsed_time(self):
        """Timer measures elapsed time correctly."""
        with Timer("test_operation") as timer:
            time_module.sleep(0.05)

        assert timer.elapsed_ms >= 45
        assert timer.name == "test_operation"

    def test_logs_warning_over_threshold(self, caplog):
        """Slow operations are logged at WARNING."""
        logger = get_logger("test.timer")
        with caplog.at_level(logging.DEBUG, logger="test.timer"):
            with Timer("slow_op", logger, warn_threshold_ms=0):
                time_module.sleep(0.01)

        assert caplog.records[-1].levelno == logging.WARNING
        assert caplog.records[-1].duration_ms > 0


class TestTimedDecorator:
    """Tests for the timed decorator."""

    def test_sync_function(self):
        @timed()
        def add(a, b):
            return a + b

        assert add(2, 3) == 5
        assert add.__name__ == "add"

    @pytest.mark.asyncio
    async def test_async_function(self):
        """Coroutines stay coroutines after decoration."""
        @timed("async_op")
        async def fetch():
            await asyncio.sleep(0)
            return 42

        assert inspect.iscoroutinefunction(fetch)
        assert await fetch() == 42

    @pytest.mark.asyncio
    async def test_logs_on_exception(self, caplog):
        """Timing is logged even when the call fails."""
        @timed("failing_op", warn_threshold_ms=0)
        async def fail():
            raise RuntimeError("boom")

        with caplog.at_level(logging.DEBUG):
            with pytest.raises(RuntimeError):
                await fail()

        assert any(r.getMessage() == "failing_op completed" for r in caplog.records)


class TestStructuredFormatter:
    """Tests for JSON log formatter."""

    def test_formats_as_json(self):
        """Outputs valid JSON."""
        parsed = json.loads(StructuredFormatter().format(_record()))

        assert parsed["message"] == "Test message"
        assert parsed["level"] == "INFO"
        assert parsed["logger"] == "test.logger"
        assert "T" in parsed["timestamp"]

    def test_includes_extra_fields(self):
        """Fields passed via extra= are merged into the entry."""
        parsed = json.loads(StructuredFormatter().format(_record(order_id=17)))
        assert parsed["order_id"] == 17

    def test_includes_correlation_id(self):
        """JSON includes correlation ID when set."""
        with correlation_context("test-correlation-456"):
            parsed = json.loads(StructuredFormatter().format(_record()))
        assert parsed["correlation_id"] == "test-correlation-456"


class TestHumanReadableFormatter:
    """Tests for text log formatter."""

    def test_format(self):
        with correlation_context("abc12345"):
            output = HumanReadableFormatter().format(_record("Sale recorded", order_id=3))

        assert "INFO" in output
        assert "[abc12345]" in output
        assert "Sale recorded" in output
        assert "'order_id': 3" in output


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_json_handler_installed(self):
        root = logging.getLogger()
        saved_handlers, saved_level = list(root.handlers), root.level
        try:
            setup_logging(level="DEBUG", json_format=True)
            assert root.level == logging.DEBUG
            assert isinstance(root.handlers[0].formatter, StructuredFormatter)
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)

    def test_get_logger(self):
        logger = get_logger("my.custom.logger")
        assert isinstance(logger, logging.Logger)
        assert logger.name == "my.custom.logger"
