"""Batch operation MCP tool.

``muse_batch`` runs several registry tools as one job, in dependency order,
and exposes the job store (status, cancel, history) for inspection.
"""

from typing import Any

from ..batch import BatchExecutor
from ..batch import BatchResponse
from ..batch import Job
from ..batch import JobStatus
from ..batch import OperationResult
from ..exceptions import JobNotFoundError
from ..exceptions import ValidationError
from ..exceptions import VibeCodingMCPError
from ..logger_config import ErrorCategory
from ..logger_config import log_mcp_call
from ..logger_config import log_structured_error

BATCH_ACTIONS = ("execute", "preview", "status", "cancel", "history")


def _strip(results: list[OperationResult], include_results: bool, include_errors: bool) -> list[OperationResult]:
    """Copies of ``results`` without the fields the caller opted out of."""
    update: dict[str, Any] = {}
    if not include_results:
        update["result"] = None
    if not include_errors:
        update["error"] = None
    if not update:
        return list(results)
    return [r.model_copy(update=update) for r in results]


def _present(job: Job, include_results: bool, include_errors: bool) -> Job:
    results = _strip(job.operations, include_results, include_errors)
    return job.model_copy(update={"operations": results})


async def batch_tool(
    action: str,
    operations: list[dict[str, Any]] | None = None,
    mode: str = "sequential",
    stop_on_error: bool = True,
    timeout: float | None = None,
    job_id: str | None = None,
    limit: int | None = None,
    status: str | None = None,
    include_results: bool = True,
    include_errors: bool = True,
    *,
    executor: BatchExecutor | None = None,
) -> BatchResponse:
    """Dispatch one batch action; errors come back as ``success=False``."""
    if executor is None:
        from ..batch.global_registry import get_batch_executor

        executor = get_batch_executor()

    try:
        if action == "execute":
            if not operations:
                raise ValidationError("operations are required", field="operations")
            job = await executor.execute(operations, mode=mode, stop_on_error=stop_on_error, timeout_ms=timeout)
            presented = _present(job, include_results, include_errors)
            return BatchResponse(
                success=job.status == JobStatus.COMPLETED,
                action=action,
                message=f"Batch {job.status.value}: {job.success_count} succeeded, {job.fail_count} failed",
                job=presented,
                results=presented.operations,
            )

        if action == "preview":
            if not operations:
                raise ValidationError("operations are required", field="operations")
            planned = executor.preview(operations, mode)
            return BatchResponse(
                success=True,
                action=action,
                message=f"Preview: {len(planned)} operations will be executed in {mode} mode",
                results=planned,
            )

        if action == "status":
            if not job_id:
                raise ValidationError("job_id is required", field="job_id")
            job = executor.job_store.get(job_id)
            if job is None:
                raise JobNotFoundError(job_id)
            presented = _present(job, include_results, include_errors)
            return BatchResponse(
                success=True,
                action=action,
                message=f"Job {job.status.value}",
                job=presented,
                results=presented.operations,
            )

        if action == "cancel":
            if not job_id:
                raise ValidationError("job_id is required", field="job_id")
            if not executor.job_store.request_cancel(job_id):
                return BatchResponse(
                    success=False, action=action, error=f"Job not found or already completed: {job_id}"
                )
            return BatchResponse(success=True, action=action, message=f"Job {job_id} cancellation requested")

        if action == "history":
            if status is not None and status not in {s.value for s in JobStatus}:
                raise ValidationError(f"Invalid status: {status}", field="status", value=status)
            if limit is None:
                limit = executor.settings.batch_history_limit
            jobs, total = executor.job_store.history(limit=limit, status=status)
            return BatchResponse(
                success=True,
                action=action,
                message=f"Found {total} batch jobs",
                jobs=[_present(job, include_results, include_errors) for job in jobs],
                total=total,
            )

        raise ValidationError(f"Unknown action: {action}", field="action", value=action)

    except VibeCodingMCPError as e:
        return BatchResponse(success=False, action=action, error=str(e))
    except Exception as e:
        log_structured_error(
            category=ErrorCategory.ERROR,
            message=f"Unexpected error during batch {action}",
            exception=e,
            operation=f"batch_{action}",
        )
        return BatchResponse(success=False, action=action, error=str(e))


def register_batch_tools(mcp_server):
    """Register the batch tool with the MCP server."""

    @mcp_server.tool()
    @log_mcp_call
    async def muse_batch(
        action: str,
        operations: list[dict[str, Any]] | None = None,
        mode: str = "sequential",
        stop_on_error: bool = True,
        timeout: float | None = None,
        job_id: str | None = None,
        limit: int | None = None,
        status: str | None = None,
        include_results: bool = True,
        include_errors: bool = True,
    ) -> dict[str, Any]:
        r"""Execute several toolkit operations as one batch job.

        Parameters:
            action (str): execute, preview, status, cancel or history
            operations (List[Dict]): for execute/preview. Each operation contains:
                - tool (str): registered tool name, e.g. "muse_session_history"
                - params (Dict): tool arguments; a string "$<id>" is replaced
                  by the result of operation <id>
                - id (str, optional): defaults to "op_<index>_<tool>"
                - dependsOn (List[str], optional): ids that must finish first
            mode (str): "sequential" or "parallel" (dependency waves)
            stop_on_error (bool): stop scheduling after the first failure
            timeout (float): per-operation timeout in milliseconds
            job_id (str): for status and cancel
            limit (int): history page size (default: VIBE_BATCH_HISTORY_LIMIT, 20)
            status (str): history filter (pending, running, completed, failed, cancelled)
            include_results / include_errors (bool): keep those fields in results

        Example Usage:
            ```json
            {
                "name": "muse_batch",
                "arguments": {
                    "action": "execute",
                    "mode": "parallel",
                    "operations": [
                        {"id": "save", "tool": "muse_session_history",
                         "params": {"action": "save", "title": "Auth", "summary": "JWT login"}},
                        {"id": "tags", "tool": "muse_auto_tag",
                         "params": {"action": "suggest", "content": "JWT login with FastAPI"}},
                        {"id": "stats", "tool": "muse_session_stats",
                         "params": {"action": "overview"}, "dependsOn": ["save"]}
                    ]
                }
            }
            ```
        """
        response = await batch_tool(
            action,
            operations=operations,
            mode=mode,
            stop_on_error=stop_on_error,
            timeout=timeout,
            job_id=job_id,
            limit=limit,
            status=status,
            include_results=include_results,
            include_errors=include_errors,
        )
        return response.model_dump(mode="json", exclude_none=True)
