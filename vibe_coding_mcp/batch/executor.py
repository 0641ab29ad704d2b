"""Batch execution engine.

Operations run either one at a time in dependency order (sequential mode) or
in dependency waves (parallel mode). Each wave is launched concurrently and
fully awaited before the next wave is computed, so nothing runs across a wave
boundary.

Cancellation is cooperative: the job's flag is checked before each operation
in sequential mode and before each wave in parallel mode. Operations already
in flight are never interrupted.
"""

import asyncio
import logging
from typing import Any

import pydantic

from ..config import Settings
from ..config import get_settings
from ..exceptions import ValidationError
from ..helpers import generate_id
from ..helpers import utc_now
from ..metrics_config import record_batch_job
from .invoker import invoke_operation
from .job_store import JobStore
from .models import ExecutionMode
from .models import Job
from .models import JobStatus
from .models import Operation
from .models import OperationResult
from .models import OperationStatus
from .registry import ToolRegistry
from .resolver import resolve_references
from .resolver import sort_by_dependencies

logger = logging.getLogger(__name__)

DEADLOCK_ERROR = "Deadlock detected: unable to proceed with remaining operations"


class BatchExecutor:
    """Executes batches of registry tools and records them in a job store."""

    def __init__(self, registry: ToolRegistry, job_store: JobStore, settings: Settings | None = None):
        self.registry = registry
        self.job_store = job_store
        self.settings = settings or get_settings()

    # --- Planning ---

    def plan(self, operations: list[Operation | dict[str, Any]]) -> list[Operation]:
        """Validate operations and return them in dependency order.

        Raises:
            ValidationError: malformed operation, empty batch or duplicate ids
            UnknownToolError: an operation names an unregistered tool
            CircularDependencyError: the dependency graph has a cycle
        """
        if not operations:
            raise ValidationError("operations are required", field="operations")

        ops = [self._coerce(op, index) for index, op in enumerate(operations)]
        for op in ops:
            # Raises UnknownToolError before anything runs
            self.registry.get(op.tool)
        return sort_by_dependencies(ops, strict=self.settings.batch_strict_dependencies)

    def preview(
        self,
        operations: list[Operation | dict[str, Any]],
        mode: ExecutionMode | str = ExecutionMode.SEQUENTIAL,
    ) -> list[OperationResult]:
        """Return the execution plan with every operation ``pending``."""
        self._mode(mode)
        return [
            OperationResult(id=op.id, tool=op.tool, status=OperationStatus.PENDING) for op in self.plan(operations)
        ]

    # --- Execution ---

    async def execute(
        self,
        operations: list[Operation | dict[str, Any]],
        mode: ExecutionMode | str = ExecutionMode.SEQUENTIAL,
        stop_on_error: bool = True,
        timeout_ms: float | None = None,
    ) -> Job:
        """Run a batch to completion (or cancellation) and return its job.

        Planning errors are raised before a job is created, so a batch with
        an unknown tool or a cycle never starts.
        """
        mode = self._mode(mode)
        timeout_ms = self._validate_timeout(timeout_ms)
        ordered = self.plan(operations)

        job = Job(
            id=generate_id("batch"),
            status=JobStatus.RUNNING,
            mode=mode,
            stop_on_error=stop_on_error,
            timeout_ms=timeout_ms,
            started_at=utc_now(),
        )
        self.job_store.start(job)
        logger.info("Batch job %s started: %d operations in %s mode", job.id, len(ordered), mode.value)

        # Anything escaping the run loops still leaves a terminal job behind
        final_status = JobStatus.FAILED
        try:
            if mode == ExecutionMode.PARALLEL:
                outcome = await self._run_parallel(job, ordered)
            else:
                outcome = await self._run_sequential(job, ordered)
            final_status = outcome or (JobStatus.FAILED if job.fail_count > 0 else JobStatus.COMPLETED)
        finally:
            job.status = final_status
            job.completed_at = utc_now()
            job.total_duration_ms = (job.completed_at - job.started_at).total_seconds() * 1000
            self.job_store.finish(job)

        record_batch_job(job.mode.value, job.status.value, len(job.operations))
        logger.info(
            "Batch job %s %s: %d succeeded, %d failed",
            job.id,
            job.status.value,
            job.success_count,
            job.fail_count,
        )
        return job

    async def _run_sequential(self, job: Job, ordered: list[Operation]) -> JobStatus | None:
        """Run operations one by one; returns the forced final status, if any."""
        completed: dict[str, Any] = {}
        for op in ordered:
            if self.job_store.is_cancelled(job.id):
                return JobStatus.CANCELLED

            result = await self._invoke(job, op, completed)
            job.record(result)
            if result.succeeded:
                completed[result.id] = result.result
            elif job.stop_on_error:
                return JobStatus.FAILED
        return None

    async def _run_parallel(self, job: Job, ordered: list[Operation]) -> JobStatus | None:
        """Run operations in dependency waves; returns the forced final status, if any."""
        batch_ids = {op.id for op in ordered}
        finished: set[str] = set()
        completed: dict[str, Any] = {}
        pending = {op.id: op for op in ordered}

        while pending:
            if self.job_store.is_cancelled(job.id):
                return JobStatus.CANCELLED

            ready = [
                op
                for op in pending.values()
                if all(dep in finished for dep in op.depends_on if dep in batch_ids)
            ]
            if not ready:
                job.operations.append(
                    OperationResult(
                        id="deadlock",
                        tool="batch",
                        status=OperationStatus.FAILED,
                        error=DEADLOCK_ERROR,
                    )
                )
                logger.error("Batch job %s deadlocked with %d pending operations", job.id, len(pending))
                return JobStatus.FAILED

            logger.debug("Batch job %s wave: %s", job.id, [op.id for op in ready])
            results = await asyncio.gather(*(self._invoke(job, op, completed) for op in ready))

            wave_failed = False
            for result in results:
                job.record(result)
                finished.add(result.id)
                pending.pop(result.id, None)
                if result.succeeded:
                    completed[result.id] = result.result
                else:
                    wave_failed = True

            if wave_failed and job.stop_on_error:
                return JobStatus.FAILED
        return None

    async def _invoke(self, job: Job, op: Operation, completed: dict[str, Any]) -> OperationResult:
        params = resolve_references(op.params, completed)
        return await invoke_operation(op, params, self.registry, job.timeout_ms)

    # --- Internals ---

    def _validate_timeout(self, timeout_ms: float | None) -> float:
        if timeout_ms is None:
            return float(self.settings.batch_default_timeout_ms)
        if timeout_ms <= 0 or timeout_ms > self.settings.batch_max_timeout_ms:
            raise ValidationError(
                f"timeout must be between 1 and {self.settings.batch_max_timeout_ms} ms",
                field="timeout",
                value=timeout_ms,
            )
        return float(timeout_ms)

    @staticmethod
    def _coerce(operation: Operation | dict[str, Any], index: int) -> Operation:
        if isinstance(operation, Operation):
            return operation
        try:
            return Operation.model_validate(operation)
        except pydantic.ValidationError as e:
            first = e.errors()[0]
            location = ".".join(str(part) for part in first["loc"]) or "operation"
            raise ValidationError(
                f"Invalid operation at index {index}: {location}: {first['msg']}",
                field=f"operations[{index}]",
            ) from e

    @staticmethod
    def _mode(mode: ExecutionMode | str) -> ExecutionMode:
        try:
            return ExecutionMode(mode)
        except ValueError:
            raise ValidationError(f"Invalid mode: {mode}", field="mode", value=mode) from None
