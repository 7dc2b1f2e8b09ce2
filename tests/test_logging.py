"""Tests for logging setup and operation timing."""

import json
import logging

import pytest
import structlog
from structlog.testing import capture_logs

from assetsync.config import LoggingSettings
from assetsync.models import StoreLocation
from assetsync.stores import StoreIOError
from assetsync.utils.logging import (
    CONSOLE_HANDLER_NAME,
    FILE_HANDLER_NAME,
    get_logger,
    log_operation_time,
    setup_logging
)


class FakeStore:
    location = StoreLocation.REMOTE

    @log_operation_time("write")
    def write(self, fail=False):
        if fail:
            raise StoreIOError("disk full", "copy", "a.jpg")
        return "written"

    @log_operation_time("refresh")
    async def refresh(self):
        return 3


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    level = root.level
    yield
    for handler in list(root.handlers):
        if handler.get_name() in (CONSOLE_HANDLER_NAME, FILE_HANDLER_NAME):
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
    structlog.reset_defaults()


def own_handlers():
    return [h.get_name() for h in logging.getLogger().handlers
            if h.get_name() in (CONSOLE_HANDLER_NAME, FILE_HANDLER_NAME)]


class TestSetupLogging:
    """Test handler installation."""

    def test_json_file_holds_one_event_per_line(self, tmp_path, restore_logging):
        log_file = tmp_path / "logs" / "assetsync.log"
        setup_logging(LoggingSettings(level="INFO", format="json", file_path=str(log_file)))

        logger = get_logger("assetsync.test")
        logger.info("Saved asset", file_name="a.jpg", location="remote")
        logger.debug("Not written at info level")
        for handler in logging.getLogger().handlers:
            handler.flush()

        lines = log_file.read_text(encoding="utf-8").strip().splitlines()
        assert len(lines) == 1
        entry = json.loads(lines[0])
        assert entry["event"] == "Saved asset"
        assert entry["file_name"] == "a.jpg"
        assert entry["level"] == "info"
        assert entry["logger"] == "assetsync.test"

    def test_repeated_setup_replaces_handlers(self, tmp_path, restore_logging):
        config = LoggingSettings(level="DEBUG", file_path=str(tmp_path / "assetsync.log"))

        setup_logging(config)
        setup_logging(config)

        assert sorted(own_handlers()) == sorted([CONSOLE_HANDLER_NAME, FILE_HANDLER_NAME])
        assert logging.getLogger().level == logging.DEBUG

    def test_arguments_override_settings(self, restore_logging):
        setup_logging(LoggingSettings(level="INFO"), log_level="warning")

        assert logging.getLogger().level == logging.WARNING
        assert own_handlers() == [CONSOLE_HANDLER_NAME]

    def test_third_party_loggers_are_quieted(self, restore_logging):
        setup_logging(LoggingSettings(level="DEBUG"))

        assert logging.getLogger("apscheduler").level == logging.WARNING
        assert logging.getLogger("aiohttp").level == logging.WARNING


class TestLogOperationTime:
    """Test the operation timing decorator."""

    def test_success_is_logged_with_store_context(self):
        with capture_logs() as logs:
            assert FakeStore().write() == "written"

        entry = logs[-1]
        assert entry["event"] == "Operation finished"
        assert entry["log_level"] == "debug"
        assert entry["operation"] == "write"
        assert entry["component"] == "FakeStore"
        assert entry["location"] == "remote"
        assert entry["duration_ms"] >= 0

    def test_failure_is_logged_and_reraised(self):
        with capture_logs() as logs:
            with pytest.raises(StoreIOError):
                FakeStore().write(fail=True)

        entry = logs[-1]
        assert entry["event"] == "Operation failed"
        assert entry["log_level"] == "error"
        assert entry["error"] == "disk full"

    @pytest.mark.asyncio
    async def test_coroutines_are_timed(self):
        with capture_logs() as logs:
            assert await FakeStore().refresh() == 3

        assert logs[-1]["operation"] == "refresh"
        assert logs[-1]["log_level"] == "debug"
