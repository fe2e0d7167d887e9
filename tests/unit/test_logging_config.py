"""
Unit tests for src/utils/logging/

Covers root logger setup, the JSON and console formatters and ContextLogger.
"""

import json
import logging
import logging.handlers
import sys

import pytest

from utils.logging import (
    ConsoleFormatter,
    ContextLogger,
    JSONFormatter,
    setup_logging,
    shutdown_logging,
)


@pytest.fixture(autouse=True)
def reset_root_logger():
    """setup_logging rewires the root logger; undo it after each test"""
    root = logging.getLogger()
    level = root.level
    yield
    for handler in root.handlers[:]:
        if type(handler) in (logging.StreamHandler, logging.NullHandler, logging.handlers.RotatingFileHandler):
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


def make_record(msg="hello", level=logging.INFO, **extra):
    record = logging.LogRecord(
        name="replication.test",
        level=level,
        pathname=__file__,
        lineno=10,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestSetupLogging:
    """Test root logger configuration"""

    @pytest.mark.parametrize("level,expected", [
        ("DEBUG", logging.DEBUG),
        ("INFO", logging.INFO),
        ("warning", logging.WARNING),
        ("ERROR", logging.ERROR),
        ("bogus", logging.INFO),
    ])
    def test_levels(self, level, expected):
        """Test level names map to numeric levels, unknown names fall back to INFO"""
        setup_logging(level=level)
        assert logging.getLogger().level == expected

    def test_no_console_by_default(self):
        """Test no stream handler is installed unless asked for"""
        setup_logging()

        handlers = logging.getLogger().handlers
        assert not any(type(h) is logging.StreamHandler for h in handlers)
        assert any(isinstance(h, logging.NullHandler) for h in handlers)

    def test_console_output(self):
        """Test console output goes to stderr with the console formatter"""
        setup_logging(console_output=True)

        handlers = [h for h in logging.getLogger().handlers if type(h) is logging.StreamHandler]
        assert len(handlers) == 1
        assert handlers[0].stream is sys.stderr
        assert isinstance(handlers[0].formatter, ConsoleFormatter)

    def test_file_output_creates_directory(self, tmp_path):
        """Test the log directory is created and records reach the file"""
        log_file = tmp_path / "logs" / "run.log"

        setup_logging(log_file=str(log_file))
        logging.getLogger("replication.test").warning("disk check")
        shutdown_logging()

        content = log_file.read_text()
        assert "[WARNING] replication.test: disk check" in content

    def test_file_handler_rotates(self, tmp_path):
        """Test the file handler is a rotating handler with the given limits"""
        setup_logging(log_file=str(tmp_path / "run.log"), max_bytes=1024, backup_count=2)

        handler = next(
            h for h in logging.getLogger().handlers
            if isinstance(h, logging.handlers.RotatingFileHandler)
        )
        assert handler.maxBytes == 1024
        assert handler.backupCount == 2

    def test_json_file_output(self, tmp_path):
        """Test JSON records are written one per line"""
        log_file = tmp_path / "run.json"

        setup_logging(log_file=str(log_file), json_format=True)
        logging.getLogger("replication.test").info("synced", extra={"table_name": "orders"})
        shutdown_logging()

        records = [json.loads(line) for line in log_file.read_text().splitlines()]
        synced = next(r for r in records if r["message"] == "synced")
        assert synced["app"] == "table-mirror"
        assert synced["context"] == {"table_name": "orders"}

    def test_repeated_setup_replaces_handlers(self, tmp_path):
        """Test calling setup twice does not duplicate handlers"""
        setup_logging(log_file=str(tmp_path / "a.log"), console_output=True)
        setup_logging(log_file=str(tmp_path / "a.log"), console_output=True)

        assert len(logging.getLogger().handlers) == 2

    def test_quiets_third_party_loggers(self):
        setup_logging(level="DEBUG")
        assert logging.getLogger("urllib3").level == logging.WARNING


class TestJSONFormatter:
    """Test JSONFormatter output"""

    def test_standard_fields(self):
        data = json.loads(JSONFormatter(app_name="mirror").format(make_record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "replication.test"
        assert data["message"] == "hello"
        assert data["app"] == "mirror"
        assert "timestamp" in data
        assert data["source"]["line"] == 10

    def test_optional_fields_can_be_disabled(self):
        formatter = JSONFormatter(include_timestamp=False, include_hostname=False)
        data = json.loads(formatter.format(make_record()))

        assert "timestamp" not in data
        assert "hostname" not in data

    def test_extra_context(self):
        record = make_record(table_name="orders", driver_message="Login failed")
        data = json.loads(JSONFormatter().format(record))

        assert data["context"] == {"table_name": "orders", "driver_message": "Login failed"}

    def test_exception_info(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = make_record(level=logging.ERROR)
            record.exc_info = sys.exc_info()

        data = json.loads(JSONFormatter().format(record))

        assert data["exception"]["type"] == "RuntimeError"
        assert data["exception"]["message"] == "boom"
        assert any("boom" in line for line in data["exception"]["traceback"])


class TestConsoleFormatter:
    """Test ConsoleFormatter output"""

    def test_plain_line_with_context(self):
        formatter = ConsoleFormatter(use_colors=False)
        line = formatter.format(make_record(table_name="orders"))

        assert "[INFO] replication.test: hello" in line
        assert line.endswith("[table_name=orders]")

    def test_colors_do_not_leak_into_shared_record(self):
        formatter = ConsoleFormatter(use_colors=True)
        formatter.use_colors = True
        record = make_record()

        line = formatter.format(record)

        assert "\033[32mINFO\033[0m" in line
        assert record.levelname == "INFO"


class TestContextLogger:
    """Test ContextLogger context stamping"""

    def test_context_on_every_record(self):
        records = []
        handler = logging.Handler()
        handler.emit = records.append
        logger = logging.getLogger("replication.context_test")
        logger.addHandler(handler)
        logger.setLevel(logging.DEBUG)
        try:
            log = ContextLogger("replication.context_test", table_name="orders")
            log.info("started")
            log.error("slow", elapsed=3)
        finally:
            logger.removeHandler(handler)

        assert [r.getMessage() for r in records] == ["started", "slow"]
        assert all(r.table_name == "orders" for r in records)
        assert records[1].elapsed == 3
