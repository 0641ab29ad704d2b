"""Unit tests for logger_config: structured formatting, error logging and call logging."""

import json
import logging
import sys

import pytest

from vibe_coding_mcp.logger_config import ErrorCategory
from vibe_coding_mcp.logger_config import StructuredLogFormatter
from vibe_coding_mcp.logger_config import configure_file_logging
from vibe_coding_mcp.logger_config import error_logger
from vibe_coding_mcp.logger_config import log_mcp_call
from vibe_coding_mcp.logger_config import log_structured_error
from vibe_coding_mcp.logger_config import mcp_call_logger


def make_record(msg="Test message", level=logging.ERROR, exc_info=None):
    return logging.LogRecord(
        name="test_logger",
        level=level,
        pathname="test.py",
        lineno=10,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )


class TestStructuredLogFormatter:
    def test_basic_entry(self):
        log_data = json.loads(StructuredLogFormatter().format(make_record()))

        assert log_data["level"] == "ERROR"
        assert log_data["logger"] == "test_logger"
        assert log_data["message"] == "Test message"
        assert "timestamp" in log_data

    def test_exception_info(self):
        try:
            raise ValueError("Test exception")
        except ValueError:
            record = make_record("Error occurred", exc_info=sys.exc_info())

        log_data = json.loads(StructuredLogFormatter().format(record))
        assert log_data["exception"]["type"] == "ValueError"
        assert log_data["exception"]["message"] == "Test exception"
        assert isinstance(log_data["exception"]["traceback"], list)

    def test_extra_fields(self):
        record = make_record("Operation completed", level=logging.INFO)
        record.operation = "batch_execute"
        record.job_id = "batch_1"

        log_data = json.loads(StructuredLogFormatter().format(record))
        assert log_data["operation"] == "batch_execute"
        assert log_data["job_id"] == "batch_1"


class TestLogStructuredError:
    def test_basic(self, mocker):
        mock_logger = mocker.patch("vibe_coding_mcp.logger_config.error_logger")
        log_structured_error(category=ErrorCategory.ERROR, message="Test error message", operation="save")

        mock_logger.log.assert_called_once()
        call_args = mock_logger.log.call_args
        assert call_args[0][0] == logging.ERROR
        assert call_args[0][1] == "Test error message"
        assert call_args[1]["extra"] == {"error_category": "ERROR", "operation": "save"}

    def test_exception_and_context(self, mocker):
        mock_logger = mocker.patch("vibe_coding_mcp.logger_config.error_logger")
        error = ValueError("bad")
        log_structured_error(
            category=ErrorCategory.CRITICAL,
            message="Critical error occurred",
            exception=error,
            context={"session_id": "session_1"},
        )

        call_args = mock_logger.log.call_args
        assert call_args[0][0] == logging.CRITICAL
        assert call_args[1]["exc_info"] is error
        assert call_args[1]["extra"]["session_id"] == "session_1"


class TestLogMcpCall:
    def test_sync_call_logged(self, mocker):
        info = mocker.patch.object(mcp_call_logger, "info")

        @log_mcp_call
        def muse_sample(value):
            return value * 2

        assert muse_sample(21) == 42
        assert muse_sample.__name__ == "muse_sample"
        messages = [call.args[0] for call in info.call_args_list]
        assert messages[0].startswith("Calling tool: muse_sample")
        assert messages[1] == "Tool muse_sample returned: 42"

    @pytest.mark.asyncio
    async def test_async_error_logged_and_reraised(self, mocker):
        mock_log_error = mocker.patch("vibe_coding_mcp.logger_config.log_structured_error")
        mocker.patch.object(mcp_call_logger, "error")

        @log_mcp_call
        async def muse_broken():
            raise RuntimeError("kaput")

        with pytest.raises(RuntimeError, match="kaput"):
            await muse_broken()
        assert mock_log_error.call_args[1]["function"] == "muse_broken"

    @pytest.mark.asyncio
    async def test_metrics_recorded_by_tool_name(self, mocker):
        start = mocker.patch("vibe_coding_mcp.logger_config.record_tool_call_start", return_value=123.0)
        success = mocker.patch("vibe_coding_mcp.logger_config.record_tool_call_success")
        error = mocker.patch("vibe_coding_mcp.logger_config.record_tool_call_error")
        mocker.patch("vibe_coding_mcp.logger_config.log_structured_error")
        mocker.patch.object(mcp_call_logger, "error")

        @log_mcp_call
        async def muse_ok(value):
            return value

        @log_mcp_call
        async def muse_fails():
            raise ValueError("nope")

        await muse_ok("x")
        with pytest.raises(ValueError):
            await muse_fails()

        assert start.call_args_list == [mocker.call("muse_ok"), mocker.call("muse_fails")]
        success.assert_called_once_with("muse_ok", 123.0)
        error.assert_called_once_with("muse_fails", 123.0)


class TestConfigureFileLogging:
    def test_creates_log_directory(self, tmp_path):
        log_dir = tmp_path / "logs"
        before = list(mcp_call_logger.handlers) + list(error_logger.handlers)
        try:
            log_file = configure_file_logging(log_dir, "DEBUG")
            assert log_dir.is_dir()
            assert log_file == log_dir / "mcp_calls.log"
            assert logging.getLogger("vibe_coding_mcp").level == logging.DEBUG
        finally:
            for logger in (mcp_call_logger, error_logger):
                for handler in list(logger.handlers):
                    if handler not in before:
                        logger.removeHandler(handler)
                        handler.close()
            logging.getLogger("vibe_coding_mcp").setLevel(logging.NOTSET)
