"""Logging and structured error handling for the Vibe Coding MCP toolkit.

Two loggers are configured here:
- ``mcp_call_logger`` records every MCP tool call and its result
- ``error_logger`` emits JSON lines for categorized errors
"""

import functools
import inspect
import json
import logging
import sys
import traceback
from enum import Enum
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from .metrics_config import record_tool_call_error
from .metrics_config import record_tool_call_start
from .metrics_config import record_tool_call_success


class ErrorCategory(Enum):
    """Severity categories used for structured error logging."""

    CRITICAL = "CRITICAL"
    ERROR = "ERROR"
    WARNING = "WARNING"
    INFO = "INFO"


_CATEGORY_LEVELS = {
    ErrorCategory.CRITICAL: logging.CRITICAL,
    ErrorCategory.ERROR: logging.ERROR,
    ErrorCategory.WARNING: logging.WARNING,
    ErrorCategory.INFO: logging.INFO,
}

# Attributes every LogRecord has; anything else was passed through ``extra``.
_STANDARD_RECORD_ATTRS = set(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
) | {"message", "asctime"}


class StructuredLogFormatter(logging.Formatter):
    """Format log records as single-line JSON documents."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key not in _STANDARD_RECORD_ATTRS and not key.startswith("_"):
                log_entry[key] = value

        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc_value, exc_tb = record.exc_info
            log_entry["exception"] = {
                "type": exc_type.__name__,
                "message": str(exc_value),
                "traceback": traceback.format_exception(exc_type, exc_value, exc_tb),
            }

        return json.dumps(log_entry, default=str)


# --- Logging Setup ---
mcp_call_logger = logging.getLogger("mcp_call_logger")
mcp_call_logger.setLevel(logging.INFO)
mcp_call_logger.addHandler(logging.NullHandler())
# Prevent logs from propagating to the root logger
mcp_call_logger.propagate = False

error_logger = logging.getLogger("error_logger")
error_logger.setLevel(logging.INFO)
_error_handler = logging.StreamHandler(sys.stderr)
_error_handler.setFormatter(StructuredLogFormatter())
error_logger.addHandler(_error_handler)
error_logger.propagate = False


def configure_file_logging(log_dir: Path, level: str = "INFO") -> Path:
    """Attach rotating file handlers for tool calls and structured errors.

    Called once by the server entry point; stdio transport owns stdout, so
    nothing here writes to it.
    """
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file_path = log_dir / "mcp_calls.log"

    # maxBytes: 10MB per file, backupCount: 5 files (total ~50MB)
    file_handler = RotatingFileHandler(log_file_path, maxBytes=10 * 1024 * 1024, backupCount=5, delay=True)
    file_handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
    mcp_call_logger.addHandler(file_handler)

    error_file_handler = RotatingFileHandler(
        log_dir / "errors.jsonl", maxBytes=10 * 1024 * 1024, backupCount=5, delay=True
    )
    error_file_handler.setFormatter(StructuredLogFormatter())
    error_logger.addHandler(error_file_handler)

    logging.getLogger("vibe_coding_mcp").setLevel(level.upper())
    return log_file_path


def log_structured_error(
    category: ErrorCategory,
    message: str,
    exception: Exception | None = None,
    context: dict[str, Any] | None = None,
    operation: str | None = None,
    **kwargs,
) -> None:
    """Log an error with its category and flattened context fields."""
    extra: dict[str, Any] = {"error_category": category.value}
    if operation:
        extra["operation"] = operation
    if context:
        extra.update(context)
    extra.update(kwargs)

    error_logger.log(
        _CATEGORY_LEVELS[category],
        message,
        exc_info=exception,
        extra=extra,
    )


def _render(value: Any) -> str:
    if hasattr(value, "model_dump_json"):
        return value.model_dump_json(indent=None, exclude_none=True)
    return repr(value)


def _format_arguments(args: tuple, kwargs: dict) -> str:
    try:
        logged_args = [_render(arg) for arg in args]
        logged_kwargs = {k: _render(v) for k, v in kwargs.items()}
        return f"args={logged_args}, kwargs={logged_kwargs}"
    except Exception as e:
        return f"args/kwargs logging error: {e}"


def _format_result(result: Any) -> str:
    try:
        if isinstance(result, list):
            return "[" + ", ".join(_render(item) for item in result) + "]"
        return _render(result)
    except Exception as e:
        return f"Result logging error: {e}"


def _metrics_start(func_name: str) -> float | None:
    try:
        return record_tool_call_start(func_name)
    except Exception as e:
        # Metrics errors never break the tool call
        mcp_call_logger.warning(f"Metrics recording failed for {func_name}: {e}")
        return None


def _metrics_success(func_name: str, start_time: float | None) -> None:
    try:
        record_tool_call_success(func_name, start_time)
    except Exception as e:
        mcp_call_logger.warning(f"Metrics success recording failed for {func_name}: {e}")


def _record_failure(func_name: str, start_time: float | None, error: Exception) -> None:
    try:
        record_tool_call_error(func_name, start_time)
    except Exception as metrics_error:
        mcp_call_logger.warning(f"Metrics error recording failed for {func_name}: {metrics_error}")

    mcp_call_logger.error(f"Tool {func_name} raised exception: {error}", exc_info=True)
    log_structured_error(
        category=ErrorCategory.ERROR,
        message=f"Tool {func_name} raised exception",
        exception=error,
        operation="tool_execution",
        function=func_name,
    )


# --- Decorator for Logging MCP Calls with Metrics ---
def log_mcp_call(func):
    """Log arguments, results and failures of an MCP tool (sync or async)."""
    func_name = getattr(func, "__name__", "unknown_function")

    if inspect.iscoroutinefunction(func):

        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            start_time = _metrics_start(func_name)
            mcp_call_logger.info(f"Calling tool: {func_name} with {_format_arguments(args, kwargs)}")
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                _record_failure(func_name, start_time, e)
                raise
            _metrics_success(func_name, start_time)
            mcp_call_logger.info(f"Tool {func_name} returned: {_format_result(result)}")
            return result

        return async_wrapper

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        start_time = _metrics_start(func_name)
        mcp_call_logger.info(f"Calling tool: {func_name} with {_format_arguments(args, kwargs)}")
        try:
            result = func(*args, **kwargs)
        except Exception as e:
            _record_failure(func_name, start_time, e)
            raise
        _metrics_success(func_name, start_time)
        mcp_call_logger.info(f"Tool {func_name} returned: {_format_result(result)}")
        return result

    return wrapper
