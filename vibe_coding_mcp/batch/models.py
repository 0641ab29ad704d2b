"""Batch operation models.

This module contains the data structures shared by the dependency resolver,
the tool invoker, the executor and the job store.
"""

import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import field_validator


class OperationStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED)


class ExecutionMode(str, Enum):
    SEQUENTIAL = "sequential"
    PARALLEL = "parallel"


class Operation(BaseModel):
    """A single tool invocation requested as part of a batch.

    String parameters of the form ``"$<id>"`` are back-references: they are
    replaced by the result of the operation with that id before the tool runs.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str | None = Field(default=None, description="Unique id within the batch")
    tool: str = Field(..., min_length=1, description="Registered tool name")
    params: dict[str, Any] = Field(default_factory=dict, description="Tool parameters")
    depends_on: list[str] = Field(
        default_factory=list,
        alias="dependsOn",
        description="Ids of operations that must finish before this one starts",
    )

    @field_validator("depends_on", mode="before")
    @classmethod
    def _dedupe_dependencies(cls, value):
        if value is None:
            return []
        # Ordered set semantics
        return list(dict.fromkeys(value))


class OperationResult(BaseModel):
    """Outcome of one operation. ``result`` is set on success, ``error`` on failure."""

    id: str
    tool: str
    status: OperationStatus = OperationStatus.PENDING
    result: Any = None
    error: str | None = None
    started_at: datetime.datetime | None = None
    completed_at: datetime.datetime | None = None
    duration_ms: float | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == OperationStatus.COMPLETED


class Job(BaseModel):
    """One batch execution and its accumulated operation results.

    ``operations`` grows in completion order; it is never pre-sized.
    """

    id: str
    status: JobStatus = JobStatus.PENDING
    mode: ExecutionMode = ExecutionMode.SEQUENTIAL
    stop_on_error: bool = True
    timeout_ms: float = 60_000
    operations: list[OperationResult] = Field(default_factory=list)
    started_at: datetime.datetime | None = None
    completed_at: datetime.datetime | None = None
    total_duration_ms: float | None = None
    success_count: int = 0
    fail_count: int = 0

    def record(self, result: OperationResult) -> None:
        """Append an operation result and update the tallies."""
        self.operations.append(result)
        if result.succeeded:
            self.success_count += 1
        else:
            self.fail_count += 1


class BatchResponse(BaseModel):
    """Structured response returned by every batch action."""

    success: bool = Field(..., description="Whether the action succeeded")
    action: str = Field(..., description="Echo of the requested action")
    message: str | None = Field(default=None, description="Human-readable summary")
    error: str | None = Field(default=None, description="Error message when success is false")
    job: Job | None = None
    results: list[OperationResult] | None = None
    jobs: list[Job] | None = None
    total: int | None = None
