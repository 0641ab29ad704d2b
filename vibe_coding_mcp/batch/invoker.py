"""Run a single batch operation against the tool registry under a timeout.

Timeouts are cooperative: a tool that overruns is no longer awaited, but its
task keeps running in the background and whatever it eventually produces is
discarded.
"""

import asyncio
import logging
import time
from typing import Any

from ..exceptions import OperationTimeoutError
from ..helpers import utc_now
from .models import Operation
from .models import OperationResult
from .models import OperationStatus
from .registry import ToolRegistry

logger = logging.getLogger(__name__)


def _to_payload(value: Any) -> Any:
    if hasattr(value, "model_dump"):
        return value.model_dump(mode="json")
    return value


def _discard_outcome(task: asyncio.Task) -> None:
    # Retrieve the exception so asyncio does not report it as never retrieved
    if not task.cancelled():
        task.exception()


async def invoke_operation(
    operation: Operation,
    params: dict[str, Any],
    registry: ToolRegistry,
    timeout_ms: float | None,
) -> OperationResult:
    """Call the operation's tool with already-resolved ``params``.

    Never raises: tool errors, unknown tools and timeouts all come back as a
    ``failed`` OperationResult. Timing fields are always stamped.
    """
    result = OperationResult(id=operation.id, tool=operation.tool, status=OperationStatus.RUNNING)
    result.started_at = utc_now()
    start = time.perf_counter()

    try:
        tool = registry.get(operation.tool)
        task = asyncio.ensure_future(tool(params))
        timeout = timeout_ms / 1000 if timeout_ms is not None else None
        done, _ = await asyncio.wait({task}, timeout=timeout)
        if task not in done:
            task.add_done_callback(_discard_outcome)
            raise OperationTimeoutError(operation.id, timeout_ms)
        if task.cancelled():
            raise RuntimeError("Operation was cancelled")
        result.result = _to_payload(task.result())
        result.status = OperationStatus.COMPLETED
    except asyncio.CancelledError:
        raise
    except Exception as e:
        logger.debug("Operation %s (%s) failed: %s", operation.id, operation.tool, e)
        result.status = OperationStatus.FAILED
        result.error = str(e) or e.__class__.__name__

    result.completed_at = utc_now()
    result.duration_ms = (time.perf_counter() - start) * 1000
    return result
