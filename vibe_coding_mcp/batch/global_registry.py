"""Process-wide batch engine instances used by the MCP server.

The engine itself never reaches for these; tests build their own registry,
job store and executor.
"""

from ..config import get_settings
from .executor import BatchExecutor
from .job_store import JobStore

_executor: BatchExecutor | None = None


def get_batch_executor() -> BatchExecutor:
    """Get the server's batch executor, building it on first use."""
    global _executor
    if _executor is None:
        # Imported here to avoid a circular import with the tools package
        from ..tools import build_tool_registry

        settings = get_settings()
        _executor = BatchExecutor(build_tool_registry(), JobStore(settings.batch_max_history), settings)
    return _executor


def reset_batch_executor() -> None:
    """Drop the shared executor (primarily for testing)."""
    global _executor
    _executor = None
