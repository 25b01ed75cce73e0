"""
Tests for the ShieldPool logging system.
"""

import io
import json

import pytest

from shieldpool.logging import (
    ConsoleHandler,
    JSONFormatter,
    LogConfig,
    LogContext,
    LogEntry,
    LogLevel,
    LogManager,
    MemoryHandler,
    TextFormatter,
    get_log_manager,
    get_logger,
    setup_logging,
    shutdown_logging,
)


def make_entry(**overrides):
    fields = dict(
        timestamp=1700000000.25,
        level=LogLevel.INFO,
        message="Deposit accepted",
        logger_name="shieldpool.pool.ledger",
        context=LogContext(component="ledger", operation="accept_deposit"),
        extra={"leaf_index": 3},
    )
    fields.update(overrides)
    return LogEntry(**fields)


class TestLogContext:
    """Test LogContext functionality."""

    def test_to_dict(self):
        """Test context to dictionary conversion."""
        context = LogContext(component="client", participant_id="alice")
        data = context.to_dict()
        assert data["component"] == "client"
        assert data["participant_id"] == "alice"
        assert data["operation"] is None
        assert data["metadata"] == {}

    def test_merged_with(self):
        """Test fields set on the receiver take precedence."""
        local = LogContext(operation="deposit", metadata={"a": 1})
        base = LogContext(component="client", operation="sync", metadata={"a": 0, "b": 2})
        merged = local.merged_with(base)

        assert merged.component == "client"
        assert merged.operation == "deposit"
        assert merged.metadata == {"a": 1, "b": 2}


class TestLogEntry:
    """Test LogEntry functionality."""

    def test_defaults(self):
        """Test thread and process ids are filled in."""
        entry = make_entry()
        assert entry.thread_id is not None
        assert entry.process_id is not None

    def test_to_json(self):
        """Test JSON conversion."""
        entry = make_entry(exception=ValueError("bad"))
        data = json.loads(entry.to_json())
        assert data["level"] == "info"
        assert data["exception"] == "bad"
        assert data["context"]["component"] == "ledger"
        assert data["extra"] == {"leaf_index": 3}


class TestFormatters:
    """Test the log formatters."""

    def test_json_formatter(self):
        """Test JSON output."""
        data = json.loads(JSONFormatter().format(make_entry()))
        assert data["message"] == "Deposit accepted"
        assert data["level"] == "info"
        assert data["logger"] == "shieldpool.pool.ledger"
        assert data["context"]["operation"] == "accept_deposit"
        assert data["extra"]["leaf_index"] == 3
        assert data["timestamp"].endswith("Z")
        assert "thread_id" not in data

    def test_json_formatter_options(self):
        """Test JSON output options."""
        formatter = JSONFormatter(
            include_context=False, include_thread=True, timestamp_format="unix"
        )
        data = json.loads(formatter.format(make_entry()))
        assert "context" not in data
        assert data["timestamp"] == "1700000000.25"
        assert "thread_id" in data

    def test_json_formatter_exception(self):
        """Test exceptions are rendered with their type."""
        data = json.loads(JSONFormatter().format(make_entry(exception=KeyError("k"))))
        assert data["exception"]["type"] == "KeyError"

    def test_text_formatter(self):
        """Test text output."""
        line = TextFormatter().format(make_entry(exception=ValueError("bad")))
        assert "[INFO] shieldpool.pool.ledger: Deposit accepted" in line
        assert "(operation=accept_deposit)" in line
        assert "leaf_index=3" in line
        assert line.endswith("| ValueError: bad")


class TestHandlers:
    """Test the log handlers."""

    def test_console_handler(self):
        """Test console output goes to the given stream."""
        stream = io.StringIO()
        handler = ConsoleHandler(stream)
        handler.set_formatter(TextFormatter())
        handler.handle(make_entry())
        assert "Deposit accepted" in stream.getvalue()

    def test_console_handler_without_formatter(self):
        """Test the fallback line format."""
        stream = io.StringIO()
        ConsoleHandler(stream).handle(make_entry())
        assert "[INFO] shieldpool.pool.ledger: Deposit accepted" in stream.getvalue()

    def test_console_handler_closed(self):
        """Test a closed handler drops entries."""
        stream = io.StringIO()
        handler = ConsoleHandler(stream)
        handler.close()
        handler.handle(make_entry())
        assert stream.closed

    def test_handler_level(self):
        """Test entries below the handler level are dropped."""
        handler = MemoryHandler()
        handler.set_level(LogLevel.WARNING)
        handler.handle(make_entry())
        handler.handle(make_entry(level=LogLevel.ERROR))
        assert [log["level"] for log in handler.get_logs()] == ["error"]

    def test_memory_handler(self):
        """Test entries are kept in memory."""
        handler = MemoryHandler(max_size=2)
        for i in range(3):
            handler.handle(make_entry(message=f"m{i}"))
        logs = handler.get_logs()
        assert [log["message"] for log in logs] == ["m1", "m2"]
        assert logs[0]["component"] == "ledger"
        assert logs[0]["extra"] == {"leaf_index": 3}

        handler.clear_logs()
        assert handler.get_logs() == []

    def test_memory_handler_formatted(self):
        """Test the formatted line is stored when a formatter is set."""
        handler = MemoryHandler()
        handler.set_formatter(TextFormatter())
        handler.handle(make_entry())
        assert "Deposit accepted" in handler.get_logs()[0]["formatted"]


class TestLogManager:
    """Test LogManager and the module-level accessors."""

    def setup_method(self):
        self.manager = setup_logging(LogConfig(level=LogLevel.INFO, format_type="text"))
        self.manager.remove_handler("console")
        self.memory = MemoryHandler()
        self.manager.add_handler("memory", self.memory)

    def teardown_method(self):
        shutdown_logging()

    def test_config_validation(self):
        """Test invalid configurations."""
        with pytest.raises(ValueError):
            LogManager(LogConfig(format_type="xml"))
        with pytest.raises(ValueError):
            LogManager(LogConfig(level="info"))

    def test_get_logger_follows_manager(self):
        """Test module-level loggers route to the current manager."""
        logger = get_logger("shieldpool.test")
        logger.info("hello", extra={"k": "v"})

        logs = self.memory.get_logs()
        assert len(logs) == 1
        assert logs[0]["logger_name"] == "shieldpool.test"
        assert logs[0]["extra"] == {"k": "v"}
        assert get_log_manager() is self.manager

    def test_level_filtering(self):
        """Test loggers respect the configured level."""
        logger = get_logger("shieldpool.test")
        logger.debug("hidden")
        logger.warning("shown")
        assert [log["message"] for log in self.memory.get_logs()] == ["shown"]

    def test_global_context(self):
        """Test the manager's context fills unset fields."""
        self.manager.set_context(LogContext(component="pool", operation="default"))
        logger = get_logger("shieldpool.test")
        logger.info("a")
        logger.info("b", context=LogContext(operation="sync"))

        logs = self.memory.get_logs()
        assert logs[0]["component"] == "pool"
        assert logs[0]["operation"] == "default"
        assert logs[1]["component"] == "pool"
        assert logs[1]["operation"] == "sync"

    def test_exception_logging(self):
        """Test logger.exception captures the active exception."""
        stream = io.StringIO()
        console = ConsoleHandler(stream)
        console.set_formatter(TextFormatter())
        self.manager.add_handler("console", console)

        logger = get_logger("shieldpool.test")
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            logger.exception("failed")

        assert self.memory.get_logs()[0]["level"] == "error"
        assert "RuntimeError: boom" in stream.getvalue()

    def test_shutdown(self):
        """Test a fresh default manager is created after shutdown."""
        shutdown_logging()
        assert get_log_manager() is not self.manager
